import json

import pytest

from apps.offers import services
from apps.offers.models import Offer
from apps.orders.models import Order

pytestmark = pytest.mark.django_db


def _post(client, url, data):
    return client.post(url, data=json.dumps(data), content_type="application/json")


@pytest.fixture
def base(foodtruck):
    return f"/t/{foodtruck.slug}"


@pytest.fixture
def add_pizza(client, base, margherita, pizza_sizes):
    def _add(size="large", quantity=1):
        return _post(
            client,
            f"{base}/cart/add",
            {"menu_item_id": str(margherita.id), "quantity": quantity, "option_ids": [str(pizza_sizes[size].id)]},
        )

    return _add


@pytest.fixture
def add_cola(client, base, cola):
    def _add(quantity=1):
        return _post(client, f"{base}/cart/add", {"menu_item_id": str(cola.id), "quantity": quantity})

    return _add


def test_empty_cart(client, base):
    resp = client.get(f"{base}/cart/")
    assert resp.status_code == 200
    body = resp.json()
    assert body["items"] == []
    assert body["final_total"] == 0
    assert body["final_total_display"] == "0,00 €"


def test_add_and_merge_lines(add_pizza):
    first = add_pizza().json()
    second = add_pizza(quantity=2).json()
    assert first["line_key"] == second["line_key"]
    assert len(second["items"]) == 1
    assert second["items"][0]["quantity"] == 3
    assert second["subtotal"] == 4800
    assert second["item_count"] == 3


def test_add_rejects_bad_input(client, base, margherita, pizza_sizes):
    url = f"{base}/cart/add"
    missing_size = _post(client, url, {"menu_item_id": str(margherita.id)})
    assert missing_size.status_code == 422
    assert missing_size.json()["error"] == "Choix obligatoire : Taille."

    unknown = _post(client, url, {"menu_item_id": "nope"})
    assert unknown.json()["error"] == "Article indisponible."

    zero = _post(client, url, {"menu_item_id": str(margherita.id), "quantity": 0})
    assert zero.json()["error"] == "Quantité invalide."


def test_update_to_zero_removes_line(client, base, add_pizza, add_cola):
    key = add_pizza().json()["line_key"]
    add_cola()
    body = _post(client, f"{base}/cart/update", {"key": key, "quantity": 0}).json()
    assert [i["name"] for i in body["items"]] == ["Cola"]
    assert body["subtotal"] == 300


def test_bundle_suggestion_then_accept(client, base, add_pizza, add_cola, menu_bundle):
    add_pizza()
    add_cola()

    suggestions = client.get(f"{base}/bundles/suggestions").json()
    assert suggestions["best"]["bundle_id"] == str(menu_bundle.id)
    assert suggestions["total_savings"] == 1900 - 1300

    accepted = _post(client, f"{base}/bundles/{menu_bundle.id}/accept", {})
    assert accepted.status_code == 200
    body = accepted.json()
    assert len(body["items"]) == 1
    assert body["items"][0]["bundle"]["bundle_name"] == "Formule midi"
    assert body["subtotal"] == 1300
    assert body["applied_offers"][0]["discount_amount"] == 0

    again = _post(client, f"{base}/bundles/{menu_bundle.id}/accept", {})
    assert again.status_code == 422
    assert again.json()["error"] == "Cette formule ne correspond plus à votre panier."
    assert client.get(f"{base}/bundles/suggestions").json()["suggestions"] == []


def test_bundle_built_from_picks(client, base, menu_bundle, margherita, cola, pizza_sizes, pizza_extras):
    picks = [
        {"menu_item_id": str(margherita.id), "option_ids": [str(pizza_sizes["medium"].id), str(pizza_extras["cheese"].id)]},
        {"menu_item_id": str(cola.id)},
    ]
    body = _post(client, f"{base}/bundles/{menu_bundle.id}/add", {"picks": picks}).json()
    assert body["subtotal"] == 1300 + 150

    wrong = _post(client, f"{base}/bundles/{menu_bundle.id}/add", {"picks": picks[:1]})
    assert wrong.status_code == 422


def test_inactive_bundle_refused(client, base, menu_bundle):
    menu_bundle.is_active = False
    menu_bundle.save()
    resp = _post(client, f"{base}/bundles/{menu_bundle.id}/accept", {})
    assert resp.json()["error"] == "Cette offre n'est pas disponible actuellement."


def test_buy_x_get_y_offer(client, base, foodtruck, pizzas, drinks, margherita, cola):
    offer = Offer.objects.create(
        foodtruck=foodtruck,
        name="2 pizzas = 1 boisson",
        offer_type="buy_x_get_y",
        config={
            "trigger_category_ids": [str(pizzas.id)],
            "trigger_quantity": 2,
            "reward_category_ids": [str(drinks.id)],
            "reward_quantity": 1,
            "reward_type": "free",
        },
    )
    data = {
        "triggers": [{"menu_item_id": str(margherita.id)}, {"menu_item_id": str(margherita.id)}],
        "rewards": [{"menu_item_id": str(cola.id)}],
    }
    body = _post(client, f"{base}/offers/{offer.id}/add", data).json()
    assert body["subtotal"] == 2700
    assert body["offer_discount"] == 300
    assert body["final_total"] == 2400
    assert {i["offer_link"]["role"] for i in body["items"]} == {"trigger", "reward"}

    short = _post(client, f"{base}/offers/{offer.id}/add", {**data, "triggers": data["triggers"][:1]})
    assert short.json()["error"] == "Choisissez 2 article(s) achetés."


def test_offers_list_progress(client, base, foodtruck, add_pizza):
    Offer.objects.create(
        foodtruck=foodtruck,
        name="Dès 20€",
        offer_type="threshold_discount",
        config={"min_amount": 2000, "discount_type": "fixed", "discount_value": 200},
    )
    add_pizza()
    body = client.get(f"{base}/offers/").json()
    offer = body["offers"][0]
    assert offer["is_applicable"] is False
    assert (offer["progress_current"], offer["progress_required"]) == (1600, 2000)
    assert body["offer_discount"] == 0

    add_pizza()
    body = client.get(f"{base}/offers/").json()
    assert body["best_offer"]["calculated_discount"] == 200
    assert body["offers"][0]["calculated_discount_display"] == "2,00 €"
    assert body["offer_discount"] == 200


def test_promo_code_validate_and_remove(client, base, add_pizza, promo_code):
    add_pizza()
    bad = _post(client, f"{base}/promo/validate", {"code": "nope"}).json()
    assert bad["result"]["error"] == "Code promo invalide"
    assert bad["promo_discount"] == 0

    good = _post(client, f"{base}/promo/validate", {"code": "bienvenue"}).json()
    assert good["result"]["is_valid"] is True
    assert good["promo_discount"] == 160
    assert good["final_total"] == 1440
    assert good["final_total_display"] == "14,40 €"
    assert client.get(f"{base}/cart/").json()["promo_code"]["code"] == "BIENVENUE"

    removed = _post(client, f"{base}/promo/remove", {}).json()
    assert removed["promo_code"] is None
    assert removed["final_total"] == 1600


def test_offer_lookup_failure_degrades_to_no_offers(client, base, add_pizza, add_cola, menu_bundle, monkeypatch):
    add_pizza()
    add_cola()

    def boom(*args, **kwargs):
        raise RuntimeError("db unavailable")

    monkeypatch.setattr(services, "active_offers", boom)
    assert client.get(f"{base}/bundles/suggestions").json()["suggestions"] == []
    body = client.get(f"{base}/cart/").json()
    assert body["subtotal"] == 1900
    assert body["applied_offers"] == []


def test_failed_suggestion_lookup_is_not_cached(client, base, add_pizza, add_cola, menu_bundle, monkeypatch, settings):
    settings.OFFERS = {**settings.OFFERS, "BUNDLE_SUGGESTIONS_CACHE": True}
    add_pizza()
    add_cola()

    def boom(*args, **kwargs):
        raise RuntimeError("db unavailable")

    with monkeypatch.context() as patched:
        patched.setattr(services, "active_offers", boom)
        assert client.get(f"{base}/bundles/suggestions").json()["suggestions"] == []

    body = client.get(f"{base}/bundles/suggestions").json()
    assert [s["bundle_id"] for s in body["suggestions"]] == [str(menu_bundle.id)]
    assert body["total_savings"] == 600


def test_submit_order_from_session_cart(client, base, add_pizza, future_pickup):
    add_pizza(quantity=2)
    resp = _post(
        client,
        f"{base}/orders/",
        {
            "customer_name": "Paul",
            "customer_email": "paul@example.com",
            "pickup_time": future_pickup.isoformat(),
            "expected_total": 3200,
        },
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["total"] == 3200
    assert Order.objects.get().public_code == body["public_code"]
    assert client.get(f"{base}/cart/").json()["items"] == []

    detail = client.get(f"{base}/orders/{body['public_code'].lower()}/")
    assert detail.json()["status"] == "pending"


def test_submit_order_error_is_422(client, base, add_pizza, future_pickup):
    add_pizza()
    resp = _post(
        client,
        f"{base}/orders/",
        {"customer_name": "Paul", "customer_email": "paul@example.com", "pickup_time": future_pickup.isoformat(), "expected_total": 1},
    )
    assert resp.status_code == 422
    assert "ne correspond pas au total envoyé" in resp.json()["error"]
    assert len(client.get(f"{base}/cart/").json()["items"]) == 1
