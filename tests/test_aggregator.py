import datetime as dt

import pytest

from apps.offers.aggregator import applicable_offers, best_offer, promo_section_visible, resolve_offers, usable
from apps.offers.cart import Cart
from apps.offers.types import BUY_X_GET_Y, THRESHOLD_DISCOUNT, BundleInfo, BundleSelection, FoodtruckSettings, OfferLink

MONDAY_NOON = dt.datetime(2024, 5, 6, 12, 0)


@pytest.fixture
def threshold(make_offer):
    def _threshold(offer_id: str, min_amount: int, value, discount_type: str = "fixed", **kwargs):
        config = {"min_amount": min_amount, "discount_type": discount_type, "discount_value": value}
        config.update(kwargs.pop("config", {}))
        return make_offer(offer_id, THRESHOLD_DISCOUNT, config, **kwargs)

    return _threshold


def test_best_threshold_only_unless_stackable(make_item, make_line, threshold):
    lines = [make_line(make_item("menu", 3000, "plats"))]
    offers = [threshold("t1", 2000, 300), threshold("t2", 2500, 10, "percentage")]

    single = resolve_offers(lines, offers, FoodtruckSettings(offers_stackable=False))
    assert [a.offer_id for a in single.applied_offers] == ["t1"]
    assert single.total_discount == 300

    stacked = resolve_offers(lines, offers, FoodtruckSettings(offers_stackable=True))
    assert stacked.total_discount == 600


def test_threshold_below_minimum_and_percentage_cap(make_item, make_line, threshold):
    lines = [make_line(make_item("menu", 1500, "plats"))]
    assert resolve_offers(lines, [threshold("t1", 2000, 300)]).total_discount == 0
    capped = threshold("t2", 1000, 50, "percentage", config={"max_discount": 400})
    assert resolve_offers(lines, [capped]).total_discount == 400


def test_bundle_lines_reported_without_extra_discount(make_item, threshold):
    cart = Cart("truck-1")
    cart.add_bundle(
        BundleInfo("b1", "Formule", 1500, selections=(BundleSelection("p", make_item("pizza", 1200, "p")),)), 2
    )
    resolution = resolve_offers(cart.lines, [])
    assert len(resolution.applied_offers) == 1
    detail = resolution.applied_offers[0]
    assert (detail.offer_id, detail.times_applied, detail.discount_amount) == ("b1", 2, 0)
    assert detail.items_consumed[0].quantity == 2


def test_thresholds_apply_after_item_discounts(make_item, make_line, make_offer, threshold):
    bxgy = make_offer(
        "x1",
        BUY_X_GET_Y,
        {"trigger_category_ids": ["pizza"], "reward_category_ids": ["drink"], "trigger_quantity": 2},
    )
    lines = [
        make_line(make_item("pizza", 1000, "pizza"), 2, offer_link=OfferLink("x1", "trigger")),
        make_line(make_item("cola", 500, "drink"), 1, offer_link=OfferLink("x1", "reward")),
    ]
    resolution = resolve_offers(lines, [bxgy, threshold("t1", 2500, 10, "percentage")])
    # 2500 subtotal, 500 free drink, threshold no longer reached on the remaining 2000
    assert resolution.total_discount == 500
    resolution = resolve_offers(lines, [bxgy, threshold("t1", 2000, 10, "percentage")])
    assert resolution.total_discount == 700


def test_unusable_offers_are_ignored(make_item, make_line, threshold):
    lines = [make_line(make_item("menu", 3000, "plats"))]
    exhausted = threshold("t1", 1000, 300, max_uses=5, current_uses=5)
    inactive = threshold("t2", 1000, 300, is_active=False)
    weekend = threshold("t3", 1000, 300, days_of_week=(0, 6))
    assert resolve_offers(lines, [exhausted, inactive, weekend], at=MONDAY_NOON).total_discount == 0
    per_customer = threshold("t4", 1000, 300, max_uses_per_customer=1)
    assert not usable(per_customer, MONDAY_NOON, {"t4": 1})
    assert usable(per_customer, MONDAY_NOON, {})


def test_applicable_offers_progress_and_best(make_item, make_line, threshold, category_bundle):
    lines = [make_line(make_item("pizza", 1200, "pizza"))]
    bundle = category_bundle("b1", 1300, [{"category_ids": ["pizza"]}, {"category_ids": ["drink"]}])
    views = {v.offer_id: v for v in applicable_offers(lines, [threshold("t1", 1000, 150), bundle])}

    assert views["b1"].is_applicable is False
    assert (views["b1"].progress_current, views["b1"].progress_required) == (1, 2)
    assert views["t1"].is_applicable is True
    assert views["t1"].calculated_discount == 150
    assert (views["t1"].progress_current, views["t1"].progress_required) == (1200, 1000)
    assert best_offer(views.values()).offer_id == "t1"


def test_applicable_offer_describes_restrictions(make_item, make_line, threshold):
    lunch = threshold(
        "t1", 1000, 150, days_of_week=(1, 2, 3, 4, 5), time_start=dt.time(11, 30), time_end=dt.time(14, 0)
    )
    view = applicable_offers([make_line(make_item("menu", 1500, "plats"))], [lunch], at=MONDAY_NOON)[0]
    assert view.description == "Lun-Ven · 11h30 - 14h00"
    assert view.is_applicable


def test_promo_section_visibility():
    stackable = FoodtruckSettings(promo_codes_stackable=True)
    exclusive = FoodtruckSettings(promo_codes_stackable=False)
    assert promo_section_visible(stackable, 1, 500)
    assert not promo_section_visible(exclusive, 1, 500)
    assert promo_section_visible(exclusive, 1, 0)
    assert not promo_section_visible(stackable, 0, 0)
    assert not promo_section_visible(FoodtruckSettings(show_promo_section=False), 3, 0)


def test_promo_section_hidden_when_bundles_already_save():
    exclusive = FoodtruckSettings(promo_codes_stackable=False)
    assert not promo_section_visible(exclusive, 1, 0, bundle_savings=200)
    assert promo_section_visible(FoodtruckSettings(promo_codes_stackable=True), 1, 0, bundle_savings=200)
