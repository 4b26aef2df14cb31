import datetime as dt

import pytest

from apps.offers.aggregator import applicable_offers, resolve_offers
from apps.offers.bundles import accept_bundle
from apps.offers.cart import Cart
from apps.offers.checkout import price_cart
from apps.offers.types import HAPPY_HOUR, THRESHOLD_DISCOUNT, FoodtruckSettings, parse_config

WEDNESDAY_1115 = dt.datetime(2024, 5, 8, 11, 15)
WEDNESDAY_1131 = dt.datetime(2024, 5, 8, 11, 31)
THURSDAY_1115 = dt.datetime(2024, 5, 9, 11, 15)


@pytest.fixture
def happy_hour(make_offer):
    def _happy_hour(offer_id: str, value, discount_type: str = "percentage", **kwargs):
        config = {"discount_type": discount_type, "discount_value": value, "applies_to": "all"}
        config.update(kwargs.pop("config", {}))
        kwargs.setdefault("time_start", dt.time(11, 0))
        kwargs.setdefault("time_end", dt.time(11, 30))
        kwargs.setdefault("days_of_week", (3, 5, 6))
        return make_offer(offer_id, HAPPY_HOUR, config, **kwargs)

    return _happy_hour


@pytest.fixture
def lines(make_item, make_line):
    return [make_line(make_item("pizza-1", 1200, "pizza")), make_line(make_item("drink-1", 500, "drink"))]


def test_discount_applies_inside_the_window(happy_hour, lines):
    resolution = resolve_offers(lines, [happy_hour("hh", 15)], at=WEDNESDAY_1115)
    assert resolution.total_discount == 255
    detail = resolution.applied_offers[0]
    assert detail.offer_type == HAPPY_HOUR
    assert {c.menu_item_id: c.quantity for c in detail.items_consumed} == {"pizza-1": 1, "drink-1": 1}


def test_no_discount_outside_time_or_day(happy_hour, lines):
    offer = happy_hour("hh", 15)
    assert resolve_offers(lines, [offer], at=WEDNESDAY_1131).total_discount == 0
    assert resolve_offers(lines, [offer], at=THURSDAY_1115).total_discount == 0


def test_category_scope(happy_hour, lines):
    drinks_only = happy_hour("hh", 20, config={"applies_to": "category", "category_id": "drink"})
    resolution = resolve_offers(lines, [drinks_only], at=WEDNESDAY_1115)
    assert resolution.total_discount == 100
    assert [c.menu_item_id for c in resolution.applied_offers[0].items_consumed] == ["drink-1"]

    desserts = happy_hour("hh2", 20, config={"applies_to": "category", "category_id": "dessert"})
    assert resolve_offers(lines, [desserts], at=WEDNESDAY_1115).applied_offers == []


def test_fixed_amount_per_unit_never_below_zero(happy_hour, make_item, make_line):
    cart = [make_line(make_item("coffee", 150, "drink"), 2), make_line(make_item("pizza-1", 1200, "pizza"))]
    offer = happy_hour("hh", 200, "fixed")
    assert resolve_offers(cart, [offer], at=WEDNESDAY_1115).total_discount == 150 * 2 + 200


def test_best_happy_hour_only(happy_hour, lines):
    small = happy_hour("hh1", 10)
    big = happy_hour("hh2", 20, display_order=5)
    resolution = resolve_offers(lines, [small, big], at=WEDNESDAY_1115)
    assert [a.offer_id for a in resolution.applied_offers] == ["hh2"]
    assert resolution.total_discount == 340


def test_bundle_lines_are_not_discounted_again(happy_hour, category_bundle, make_item):
    cart = Cart("truck-1")
    cart.add_item(make_item("pizza-1", 1200, "pizza"), 1)
    cart.add_item(make_item("drink-1", 500, "drink"), 2)
    accept_bundle(cart, category_bundle("b1", 1500, [{"category_ids": ["pizza"]}, {"category_ids": ["drink"]}]))
    resolution = resolve_offers(cart.lines, [happy_hour("hh", 10)], at=WEDNESDAY_1115)
    assert resolution.total_discount == 50


def test_threshold_uses_total_after_happy_hour(happy_hour, make_offer, lines):
    threshold = make_offer("t1", THRESHOLD_DISCOUNT, {"min_amount": 1400, "discount_type": "fixed", "discount_value": 300})
    priced = price_cart(lines, [happy_hour("hh", 15), threshold], FoodtruckSettings(), at=WEDNESDAY_1115)
    assert priced.offer_discount == 255 + 300
    assert priced.final_total == 1700 - 555

    later = price_cart(lines, [happy_hour("hh", 15), threshold], FoodtruckSettings(), at=WEDNESDAY_1131)
    assert later.offer_discount == 300


def test_applicable_view_follows_the_window(happy_hour, lines):
    offer = happy_hour("hh", 15)
    inside = applicable_offers(lines, [offer], at=WEDNESDAY_1115)[0]
    assert inside.is_applicable
    assert inside.calculated_discount == 255
    assert inside.description == "Mer, Ven, Sam · 11h00 - 11h30"

    outside = applicable_offers(lines, [offer], at=THURSDAY_1115)[0]
    assert not outside.is_applicable
    assert outside.calculated_discount == 0


def test_category_scope_needs_a_category():
    with pytest.raises(ValueError):
        parse_config(HAPPY_HOUR, {"discount_value": 10, "applies_to": "category"})
    with pytest.raises(ValueError):
        parse_config(HAPPY_HOUR, {"discount_value": 10, "applies_to": "menu"})
    assert parse_config(HAPPY_HOUR, {"discount_value": 10, "applies_to": "category", "category_id": 7}).category_id == "7"
