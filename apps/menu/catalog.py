"""Load a foodtruck's menu into engine snapshots.

Option group roles are settled here, once: the size group of a category is its first
required single-choice group by display order; every other group holds supplements.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable

from django.db.models import Prefetch

from apps.offers.types import (
    SIZE,
    SUPPLEMENT,
    Catalog,
    CatalogOption,
    FoodtruckSettings,
    MenuItemSnapshot,
    OptionGroup,
    PriceKey,
)

from .models import Category, CategoryOption, CategoryOptionGroup, Foodtruck, MenuItem

log = logging.getLogger(__name__)


def size_group_id(groups: Iterable[CategoryOptionGroup]) -> str | None:
    for group in sorted(groups, key=lambda g: (g.display_order, g.created_at)):
        if group.is_required and not group.is_multiple:
            return str(group.id)
    return None


def group_snapshots(category: Category) -> list[OptionGroup]:
    groups = list(category.option_groups.all())
    size_id = size_group_id(groups)
    out = []
    for group in sorted(groups, key=lambda g: (g.display_order, g.created_at)):
        options = sorted(group.options.all(), key=lambda o: (o.display_order, o.created_at))
        out.append(
            OptionGroup(
                id=str(group.id),
                category_id=str(category.id),
                name=group.name,
                is_required=group.is_required,
                is_multiple=group.is_multiple,
                display_order=group.display_order,
                options=tuple(
                    CatalogOption(
                        id=str(o.id),
                        name=o.name,
                        price_modifier=o.price_modifier_cents,
                        is_available=o.is_available,
                        is_default=o.is_default,
                    )
                    for o in options
                ),
                role=SIZE if str(group.id) == size_id else SUPPLEMENT,
            )
        )
    return out


def parse_option_prices(raw: dict[str, Any] | None) -> dict[PriceKey, int]:
    out: dict[PriceKey, int] = {}
    for key, value in (raw or {}).items():
        try:
            out[PriceKey.parse(key)] = int(value)
        except (TypeError, ValueError):
            log.warning("[menu] ignoring option price %r=%r", key, value)
    return out


def item_snapshot(item: MenuItem) -> MenuItemSnapshot:
    return MenuItemSnapshot(
        id=str(item.id),
        category_id=str(item.category_id) if item.category_id else None,
        name=item.name,
        price=item.price_cents,
        is_available=item.is_available,
        is_archived=item.is_archived,
        is_daily_special=item.is_daily_special,
        allergens=tuple(item.allergens or ()),
        disabled_options=frozenset(str(x) for x in item.disabled_options or ()),
        option_prices=parse_option_prices(item.option_prices),
    )


def load_catalog(foodtruck: Foodtruck) -> Catalog:
    categories = (
        Category.objects.filter(foodtruck=foodtruck)
        .order_by("display_order", "created_at")
        .prefetch_related(
            Prefetch(
                "option_groups",
                queryset=CategoryOptionGroup.objects.prefetch_related(
                    Prefetch("options", queryset=CategoryOption.objects.all())
                ),
            )
        )
    )
    catalog = Catalog()
    for category in categories:
        catalog.category_names[str(category.id)] = category.name
        catalog.groups[str(category.id)] = group_snapshots(category)
    items = MenuItem.objects.filter(foodtruck=foodtruck).order_by("display_order", "created_at")
    for item in items:
        catalog.items[str(item.id)] = item_snapshot(item)
    return catalog


def truck_settings(foodtruck: Foodtruck) -> FoodtruckSettings:
    return FoodtruckSettings(
        slot_interval=foodtruck.slot_interval,
        max_orders_per_slot=foodtruck.max_orders_per_slot,
        allow_advance_orders=foodtruck.allow_advance_orders,
        advance_order_days=foodtruck.advance_order_days,
        allow_asap_orders=foodtruck.allow_asap_orders,
        min_preparation_time=foodtruck.min_preparation_time,
        offers_stackable=foodtruck.offers_stackable,
        promo_codes_stackable=foodtruck.promo_codes_stackable,
        show_promo_section=foodtruck.show_promo_section,
        loyalty_enabled=foodtruck.loyalty_enabled,
    )
