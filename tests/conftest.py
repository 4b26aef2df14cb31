from __future__ import annotations

import datetime as dt

import pytest
from django.core.cache import cache
from django.utils import timezone

from apps.menu.models import Category, CategoryOption, CategoryOptionGroup, Foodtruck, MenuItem
from apps.offers.models import Offer
from apps.offers.cart import linked_line_key
from apps.offers.pricing import cart_key
from apps.offers.types import (
    BUNDLE,
    CartLine,
    MenuItemSnapshot,
    OfferLink,
    OfferSnapshot,
    SelectedOption,
    parse_config,
)


@pytest.fixture(autouse=True)
def clear_cache():
    cache.clear()
    yield
    cache.clear()


# ---------------------------------------------------------------------------
# Engine snapshots (no database)
# ---------------------------------------------------------------------------


@pytest.fixture
def make_item():
    def _make_item(item_id: str, price: int, category_id: str | None = None, **kwargs) -> MenuItemSnapshot:
        return MenuItemSnapshot(id=item_id, category_id=category_id, name=kwargs.pop("name", item_id), price=price, **kwargs)

    return _make_item


@pytest.fixture
def size():
    def _size(option_id: str, price: int, name: str | None = None) -> SelectedOption:
        return SelectedOption(
            option_id=option_id,
            option_group_id="size-group",
            name=name or option_id,
            group_name="Taille",
            price_modifier=price,
            is_size_option=True,
        )

    return _size


@pytest.fixture
def extra():
    def _extra(option_id: str, price: int) -> SelectedOption:
        return SelectedOption(
            option_id=option_id,
            option_group_id="extras",
            name=option_id,
            group_name="Suppléments",
            price_modifier=price,
        )

    return _extra


@pytest.fixture
def make_line():
    def _make_line(item: MenuItemSnapshot, quantity: int = 1, options=(), offer_link: OfferLink | None = None) -> CartLine:
        options = list(options)
        key = cart_key(item.id, options)
        if offer_link is not None:
            key = linked_line_key(key, offer_link)
        return CartLine(key=key, menu_item=item, quantity=quantity, selected_options=options, offer_link=offer_link)

    return _make_line


@pytest.fixture
def make_offer():
    def _make_offer(offer_id: str, offer_type: str, config: dict, **kwargs) -> OfferSnapshot:
        items = kwargs.pop("items", ())
        return OfferSnapshot(
            id=offer_id,
            name=kwargs.pop("name", offer_id),
            offer_type=offer_type,
            config=parse_config(offer_type, config, items),
            **kwargs,
        )

    return _make_offer


@pytest.fixture
def category_bundle(make_offer):
    def _category_bundle(offer_id: str, fixed_price: int, slots: list[dict], **kwargs) -> OfferSnapshot:
        config = {
            "type": "category_choice",
            "fixed_price": fixed_price,
            "free_options": kwargs.pop("free_options", False),
            "bundle_categories": slots,
        }
        return make_offer(offer_id, BUNDLE, config, **kwargs)

    return _category_bundle


# ---------------------------------------------------------------------------
# Database records
# ---------------------------------------------------------------------------


@pytest.fixture
def foodtruck(db):
    return Foodtruck.objects.create(name="Chez Marcel", slug="chez-marcel")


@pytest.fixture
def pizzas(foodtruck):
    return Category.objects.create(foodtruck=foodtruck, name="Pizzas", display_order=1)


@pytest.fixture
def drinks(foodtruck):
    return Category.objects.create(foodtruck=foodtruck, name="Boissons", display_order=2)


@pytest.fixture
def pizza_sizes(pizzas):
    group = CategoryOptionGroup.objects.create(category=pizzas, name="Taille", is_required=True, display_order=0)
    medium = CategoryOption.objects.create(group=group, name="Moyenne", price_modifier_cents=0, is_default=True, display_order=0)
    large = CategoryOption.objects.create(group=group, name="Grande", price_modifier_cents=400, display_order=1)
    return {"group": group, "medium": medium, "large": large}


@pytest.fixture
def pizza_extras(pizzas):
    group = CategoryOptionGroup.objects.create(category=pizzas, name="Suppléments", is_multiple=True, display_order=1)
    cheese = CategoryOption.objects.create(group=group, name="Fromage", price_modifier_cents=150, display_order=0)
    return {"group": group, "cheese": cheese}


@pytest.fixture
def margherita(foodtruck, pizzas, pizza_sizes, pizza_extras):
    return MenuItem.objects.create(foodtruck=foodtruck, category=pizzas, name="Margherita", price_cents=1200)


@pytest.fixture
def cola(foodtruck, drinks):
    return MenuItem.objects.create(foodtruck=foodtruck, category=drinks, name="Cola", price_cents=300)


@pytest.fixture
def menu_bundle(foodtruck, pizzas, drinks):
    return Offer.objects.create(
        foodtruck=foodtruck,
        name="Formule midi",
        offer_type="bundle",
        config={
            "type": "category_choice",
            "fixed_price": 1300,
            "bundle_categories": [
                {"category_ids": [str(pizzas.id)], "quantity": 1},
                {"category_ids": [str(drinks.id)], "quantity": 1},
            ],
        },
    )


@pytest.fixture
def promo_code(foodtruck):
    return Offer.objects.create(
        foodtruck=foodtruck,
        name="Bienvenue",
        offer_type="promo_code",
        config={"code": "bienvenue", "discount_type": "percentage", "discount_value": 10},
    )


@pytest.fixture
def future_pickup():
    return timezone.now() + dt.timedelta(hours=2)
