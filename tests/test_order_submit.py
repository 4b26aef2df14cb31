import datetime as dt
import uuid

import pytest
from django.core.exceptions import ValidationError
from django.utils import timezone

from apps.loyalty.models import CustomerLoyalty, LoyaltyTransaction
from apps.offers.models import Offer, OfferUse
from apps.orders.models import Order, OrderAppliedOffer
from apps.orders.services import OrderRequest, confirm_order, submit_order, validate_pickup_time


@pytest.fixture
def pizza_line(margherita, pizza_sizes):
    def _line(quantity=1, size="large", extras=()):
        options = [{"option_id": str(pizza_sizes[size].id)}] + [{"option_id": str(o.id)} for o in extras]
        return {"menu_item": {"id": str(margherita.id)}, "quantity": quantity, "selected_options": options}

    return _line


@pytest.fixture
def payload(foodtruck, future_pickup):
    def _payload(items, **extra):
        return {
            "foodtruck_id": str(foodtruck.id),
            "customer_name": "Paul Martin",
            "customer_email": "Paul@Example.com",
            "pickup_time": future_pickup.isoformat(),
            "items": items,
            **extra,
        }

    return _payload


def _message(excinfo) -> str:
    return excinfo.value.messages[0]


@pytest.mark.django_db
def test_missing_fields_rejected(payload, pizza_line):
    data = payload([pizza_line()])
    data.pop("customer_email")
    with pytest.raises(ValidationError) as excinfo:
        submit_order(data)
    assert _message(excinfo) == "Champs obligatoires manquants"

    with pytest.raises(ValidationError):
        submit_order(payload([]))


def test_pickup_in_the_past_rejected():
    now = timezone.now()
    validate_pickup_time(now - dt.timedelta(seconds=30), now)
    with pytest.raises(ValidationError) as excinfo:
        validate_pickup_time(now - dt.timedelta(hours=1), now)
    assert _message(excinfo) == "L'heure de retrait ne peut pas être dans le passé"


def test_request_parses_naive_pickup_and_normalizes():
    req = OrderRequest.from_payload(
        {
            "foodtruck_id": "x",
            "customer_name": " Paul ",
            "customer_email": " PAUL@EXAMPLE.COM ",
            "pickup_time": "2030-01-01T12:00:00",
            "items": [{}],
            "promo_code": "bienvenue",
            "expected_total": "1200",
        }
    )
    assert timezone.is_aware(req.pickup_time)
    assert req.customer_email == "paul@example.com"
    assert req.customer_name == "Paul"
    assert req.promo_code == "BIENVENUE"
    assert req.expected_total == 1200

    bad = {"foodtruck_id": "x", "customer_name": "Paul", "customer_email": "p@x.fr", "pickup_time": "demain midi", "items": [{}]}
    with pytest.raises(ValidationError) as excinfo:
        OrderRequest.from_payload(bad)
    assert _message(excinfo) == "Heure de retrait invalide"


@pytest.mark.django_db
def test_unavailable_item_rejected(payload, pizza_line, margherita):
    margherita.is_available = False
    margherita.save()
    with pytest.raises(ValidationError) as excinfo:
        submit_order(payload([pizza_line()]))
    assert _message(excinfo) == 'L\'article "Margherita" n\'est plus disponible'


@pytest.mark.django_db
def test_unknown_item_rejected(payload):
    missing = str(uuid.uuid4())
    with pytest.raises(ValidationError) as excinfo:
        submit_order(payload([{"menu_item": {"id": missing}, "quantity": 1}]))
    assert _message(excinfo) == f"L'article avec l'id {missing} n'existe pas"


@pytest.mark.django_db
def test_client_prices_are_ignored(payload, pizza_line, pizza_extras):
    line = pizza_line(quantity=2, extras=[pizza_extras["cheese"]])
    line["menu_item"]["price"] = 1
    line["selected_options"][0]["price_modifier"] = 0
    order = submit_order(payload([line], expected_total=3500))
    assert order.subtotal_cents == 3500
    item = order.items.get()
    assert item.unit_price_cents_snapshot == 1750
    assert item.options.count() == 2
    assert item.options.filter(is_size_option=True).get().name_snapshot == "Grande"


@pytest.mark.django_db
def test_expected_total_mismatch(payload, pizza_line):
    with pytest.raises(ValidationError) as excinfo:
        submit_order(payload([pizza_line(quantity=2)], expected_total=1000))
    assert _message(excinfo) == (
        "Le total calculé (32.00€) ne correspond pas au total envoyé (10.00€). Veuillez rafraîchir la page."
    )
    assert Order.objects.count() == 0


@pytest.mark.django_db
def test_promo_discount_mismatch(payload, pizza_line, promo_code):
    with pytest.raises(ValidationError) as excinfo:
        submit_order(payload([pizza_line(quantity=2)], promo_code="bienvenue", promo_discount=100))
    assert _message(excinfo) == "La réduction calculée (3.20€) ne correspond pas. Veuillez rafraîchir la page."


@pytest.mark.django_db
def test_order_with_promo_code(payload, pizza_line, promo_code):
    order = submit_order(
        payload([pizza_line(quantity=2)], promo_code="bienvenue", promo_discount=320, expected_total=2880)
    )
    assert order.status == "pending"
    assert order.public_code.startswith("F")
    assert order.customer_email == "paul@example.com"
    assert (order.subtotal_cents, order.promo_discount_cents, order.total_cents) == (3200, 320, 2880)
    assert order.promo_code == "BIENVENUE"
    assert order.promo_offer_id == str(promo_code.id)
    assert order.pricing_json["final_total"] == 2880

    promo_code.refresh_from_db()
    assert promo_code.current_uses == 1
    assert promo_code.total_discount_given_cents == 320
    use = OfferUse.objects.get()
    assert (use.order_id, use.customer_email) == (order.id, "paul@example.com")

    change = order.status_changes.get()
    assert (change.status, change.source) == ("pending", "customer")


@pytest.mark.django_db
def test_unknown_applied_offer_rejected(payload, pizza_line):
    applied = [{"offer_id": str(uuid.uuid4()), "discount_amount": 100}]
    with pytest.raises(ValidationError) as excinfo:
        submit_order(payload([pizza_line()], applied_offers=applied))
    assert _message(excinfo) == "Une ou plusieurs offres sont invalides"


@pytest.mark.django_db
def test_applied_offer_consuming_missing_item(payload, pizza_line, menu_bundle, cola):
    applied = [
        {
            "offer_id": str(menu_bundle.id),
            "discount_amount": 0,
            "items_consumed": [{"menu_item_id": str(cola.id), "quantity": 1}],
        }
    ]
    with pytest.raises(ValidationError) as excinfo:
        submit_order(payload([pizza_line()], applied_offers=applied))
    assert _message(excinfo) == 'L\'article "Cola" est requis pour une offre mais n\'est pas dans le panier'


@pytest.mark.django_db
def test_inactive_applied_offer(payload, pizza_line, menu_bundle, margherita):
    menu_bundle.is_active = False
    menu_bundle.save()
    applied = [{"offer_id": str(menu_bundle.id), "items_consumed": [{"menu_item_id": str(margherita.id), "quantity": 1}]}]
    with pytest.raises(ValidationError) as excinfo:
        submit_order(payload([pizza_line()], applied_offers=applied))
    assert _message(excinfo) == "L'offre \"Formule midi\" n'est plus active"


@pytest.mark.django_db
def test_bundle_order_stores_header_and_components(payload, menu_bundle, margherita, cola, pizza_sizes, pizzas, drinks):
    bundle_line = {
        "menu_item": {"id": f"bundle-{menu_bundle.id}"},
        "quantity": 1,
        "bundle": {
            "bundle_id": str(menu_bundle.id),
            "bundle_name": "Formule midi",
            "fixed_price": 1,
            "selections": [
                {
                    "category_id": str(pizzas.id),
                    "menu_item": {"id": str(margherita.id)},
                    "selected_options": [{"option_id": str(pizza_sizes["medium"].id)}],
                },
                {"category_id": str(drinks.id), "menu_item": {"id": str(cola.id)}},
            ],
        },
    }
    order = submit_order(payload([bundle_line], expected_total=1300))

    assert order.total_cents == 1300
    header = order.items.get(menu_item=None)
    assert (header.name_snapshot, header.line_subtotal_cents) == ("Formule midi", 1300)
    components = order.items.exclude(menu_item=None)
    assert sorted(components.values_list("name_snapshot", flat=True)) == ["Cola", "Margherita"]
    assert all(c.line_subtotal_cents == 0 for c in components)

    applied = OrderAppliedOffer.objects.get(order=order)
    assert (applied.offer_id, applied.discount_cents, applied.times_applied) == (str(menu_bundle.id), 0, 1)
    menu_bundle.refresh_from_db()
    assert menu_bundle.current_uses == 1


@pytest.mark.django_db
def test_full_slot_rejected(payload, pizza_line, foodtruck, future_pickup):
    foodtruck.max_orders_per_slot = 1
    foodtruck.save()
    submit_order(payload([pizza_line()]))
    with pytest.raises(ValidationError) as excinfo:
        submit_order(payload([pizza_line()]))
    assert _message(excinfo) == "Ce créneau horaire est complet. Veuillez choisir un autre horaire."


@pytest.fixture
def loyal_customer(foodtruck):
    foodtruck.loyalty_enabled = True
    foodtruck.loyalty_threshold = 100
    foodtruck.loyalty_reward_cents = 500
    foodtruck.save()
    return CustomerLoyalty.objects.create(foodtruck=foodtruck, email="paul@example.com", loyalty_points=150, loyalty_opt_in=True)


@pytest.mark.django_db
def test_loyalty_reward_redeemed(payload, pizza_line, loyal_customer):
    order = submit_order(payload([pizza_line(quantity=2)], use_loyalty_reward=True, expected_total=2700))
    assert order.loyalty_discount_cents == 500
    assert order.loyalty_reward_count == 1

    loyal_customer.refresh_from_db()
    assert loyal_customer.loyalty_points == 50
    tx = LoyaltyTransaction.objects.get(order=order)
    assert (tx.kind, tx.points) == ("redeem", -100)


@pytest.mark.django_db
def test_loyalty_reward_needs_points(payload, pizza_line, loyal_customer):
    loyal_customer.loyalty_points = 40
    loyal_customer.save()
    with pytest.raises(ValidationError) as excinfo:
        submit_order(payload([pizza_line()], use_loyalty_reward=True))
    assert _message(excinfo) == "Points de fidélité insuffisants"


@pytest.mark.django_db
def test_auto_accept_credits_points(payload, pizza_line, foodtruck, loyal_customer, django_capture_on_commit_callbacks):
    foodtruck.auto_accept_orders = True
    foodtruck.save()
    with django_capture_on_commit_callbacks(execute=True):
        order = submit_order(payload([pizza_line(quantity=2)]))

    assert order.status == "confirmed"
    assert order.status_changes.get().source == "auto_accept"
    loyal_customer.refresh_from_db()
    assert loyal_customer.loyalty_points == 150 + 32
    assert loyal_customer.lifetime_points == 32


@pytest.mark.django_db
def test_confirm_order(payload, pizza_line, django_capture_on_commit_callbacks):
    order = submit_order(payload([pizza_line()]))
    with django_capture_on_commit_callbacks(execute=True):
        confirm_order(order)
    order.refresh_from_db()
    assert order.status == "confirmed"
    assert list(order.status_changes.values_list("status", flat=True)) == ["pending", "confirmed"]

    with pytest.raises(ValidationError):
        confirm_order(order)


@pytest.mark.django_db
def test_unreadable_offer_does_not_block_submission(foodtruck, payload, pizza_line):
    Offer.objects.create(
        foodtruck=foodtruck,
        name="Remise mal saisie",
        offer_type="threshold_discount",
        config={"min_amount": "15 euros", "discount_type": "fixed", "discount_value": 200},
    )
    order = submit_order(payload([pizza_line()], expected_total=1600))
    assert order.total_cents == 1600
    assert order.offer_discount_cents == 0
