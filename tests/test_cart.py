import pytest

from apps.offers.cart import Cart
from apps.offers.types import BundleInfo, BundleSelection, OfferLink


def test_identical_lines_merge_and_keep_first_notes(make_item, extra):
    item = make_item("burger", 900, "burgers")
    cart = Cart("truck-1")
    cart.add_item(item, 1, [extra("bacon", 150), extra("egg", 100)], notes="bien cuit")
    cart.add_item(item, 2, [extra("egg", 100), extra("bacon", 150)])
    assert len(cart) == 1
    assert cart.lines[0].quantity == 3
    assert cart.lines[0].notes == "bien cuit"
    assert cart.total == 3 * 1150


def test_distinct_configurations_stay_separate(make_item, size):
    item = make_item("pizza", 1200, "pizza")
    cart = Cart("truck-1")
    cart.add_item(item, 1, [size("medium", 1200)])
    cart.add_item(item, 1, [size("large", 1600)])
    assert len(cart) == 2
    assert cart.item_count == 2


def test_quantity_zero_or_less_removes_line(make_item):
    cart = Cart("truck-1")
    line = cart.add_item(make_item("fries", 350), 2)
    cart.update_quantity(line.key, 0)
    assert len(cart) == 0
    line = cart.add_item(make_item("fries", 350), 1)
    cart.decrement(line.key)
    assert len(cart) == 0
    with pytest.raises(ValueError):
        cart.add_item(make_item("fries", 350), 0)


def test_switching_foodtruck_clears_cart(make_item):
    cart = Cart("truck-1")
    cart.add_item(make_item("fries", 350))
    cart.set_foodtruck("truck-1")
    assert len(cart) == 1
    cart.set_foodtruck("truck-2")
    assert len(cart) == 0
    assert cart.foodtruck_id == "truck-2"


def test_bundle_lines_with_different_picks_do_not_merge(make_item):
    pizza, calzone, cola = make_item("pizza", 1200, "p"), make_item("calzone", 1300, "p"), make_item("cola", 300, "d")

    def info(main):
        return BundleInfo(
            bundle_id="b1",
            bundle_name="Formule",
            fixed_price=1300,
            selections=(BundleSelection("p", main), BundleSelection("d", cola)),
        )

    cart = Cart("truck-1")
    cart.add_bundle(info(pizza))
    cart.add_bundle(info(calzone))
    cart.add_bundle(info(pizza))
    assert [line.quantity for line in cart.lines] == [2, 1]
    assert cart.lines[0].menu_item.id == "bundle-b1"
    assert cart.regular_lines == []


def test_signature_tracks_regular_lines_only(make_item, size):
    cart = Cart("truck-1")
    cart.add_item(make_item("pizza", 1200, "p"), 1, [size("large", 1600)])
    before = cart.signature()
    cart.add_bundle(
        BundleInfo("b1", "Formule", 1000, selections=(BundleSelection("d", make_item("cola", 300, "d")),))
    )
    assert cart.signature() == before
    cart.add_item(make_item("cola", 300, "d"))
    assert cart.signature() != before
    assert "pizza:1:p:large" in before


def test_session_round_trip_keeps_bundles_and_offer_links(make_item, size, extra):
    cart = Cart("truck-1")
    cart.add_item(make_item("pizza", 1200, "p"), 2, [size("large", 1600), extra("cheese", 150)], notes="sans basilic")
    cart.add_item(make_item("cola", 300, "d"), 1, offer_link=OfferLink("o1", "reward"))
    cart.add_bundle(BundleInfo("b1", "Formule", 1000, True, (BundleSelection("d", make_item("tea", 250, "d")),)))

    restored = Cart.from_dict(cart.to_dict())
    assert restored.foodtruck_id == "truck-1"
    assert [line.key for line in restored.lines] == [line.key for line in cart.lines]
    assert restored.total == cart.total
    assert restored.lines[1].offer_link == OfferLink("o1", "reward")
    assert restored.lines[2].bundle.free_options is True
    assert restored.lines[0].notes == "sans basilic"
