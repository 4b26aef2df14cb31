from __future__ import annotations

import datetime as dt
import logging
from typing import Iterable, Sequence

from django.core.exceptions import ValidationError

from . import schedule
from .cart import Cart
from .pricing import build_selection, default_selection, unit_price
from .types import (
    BUNDLE,
    BundleConfig,
    BundleDetection,
    BundleInfo,
    BundleMatch,
    BundleSelection,
    CartLine,
    Catalog,
    OfferSnapshot,
    SlotMatch,
)

log = logging.getLogger(__name__)


def _option_delta(line: CartLine) -> int:
    return sum(int(o.price_modifier) for o in line.selected_options if not o.is_size_option)


def match_bundle(bundle: OfferSnapshot, lines: Iterable[CartLine]) -> BundleMatch | None:
    """Fill every slot of a category-choice bundle from the cart, or return None.

    Slots are walked in order and each takes the first unused regular line it accepts. There
    is no backtracking: a slot without a donor fails the whole bundle. A match that would not
    save the customer anything is dropped as well.
    """
    config = bundle.config
    if not isinstance(config, BundleConfig) or not config.is_category_choice:
        return None

    donors = [line for line in lines if not line.is_bundle]
    used: set[str] = set()
    filled: list[SlotMatch] = []
    for index, slot in enumerate(config.slots):
        found = None
        for line in donors:
            if line.key in used:
                continue
            item = line.menu_item
            if slot.eligibility.accepts(item.category_id, item.id, line.size_id):
                found = line
                break
        if found is None:
            return None
        used.add(found.key)
        item = found.menu_item
        filled.append(
            SlotMatch(
                slot_index=index,
                line_key=found.key,
                menu_item_id=item.id,
                menu_item_name=item.name,
                category_id=item.category_id,
                size_id=found.size_id,
                unit_price=unit_price(item, found.selected_options),
                supplement=slot.supplement_for(item.id, found.size_id),
                option_delta=_option_delta(found),
            )
        )

    original_price = sum(s.unit_price for s in filled)
    bundle_price = config.fixed_price + sum(s.supplement for s in filled)
    if not config.free_options:
        bundle_price += sum(s.option_delta for s in filled)
    if original_price - bundle_price <= 0:
        return None
    return BundleMatch(offer=bundle, slots=tuple(filled), original_price=original_price, bundle_price=bundle_price)


def detect_bundles(
    bundles: Iterable[OfferSnapshot],
    lines: Sequence[CartLine],
    at: dt.datetime | None = None,
) -> BundleDetection:
    matches = []
    for bundle in bundles:
        if bundle.offer_type != BUNDLE or not schedule.offer_valid_at(bundle, at):
            continue
        match = match_bundle(bundle, lines)
        if match is not None:
            matches.append(match)
    matches.sort(key=lambda m: (-m.savings, m.offer.display_order, m.offer.id))
    return BundleDetection(tuple(matches))


def accept_bundle(cart: Cart, bundle: OfferSnapshot) -> CartLine | None:
    """Replace the lines a bundle matches with one bundle line; None when it no longer matches."""
    match = match_bundle(bundle, cart.lines)
    if match is None:
        return None
    config: BundleConfig = bundle.config
    selections = []
    for s in match.slots:
        donor = cart.line(s.line_key)
        selections.append(
            BundleSelection(
                category_id=s.category_id,
                menu_item=donor.menu_item,
                selected_options=tuple(donor.selected_options),
                supplement=s.supplement,
            )
        )
    info = BundleInfo(
        bundle_id=bundle.id,
        bundle_name=bundle.name,
        fixed_price=config.fixed_price,
        free_options=config.free_options,
        selections=tuple(selections),
    )
    for s in match.slots:
        cart.decrement(s.line_key)
    log.info("[offers] bundle %s accepted, savings=%s", bundle.id, match.savings)
    return cart.add_bundle(info)


def build_bundle_info(
    bundle: OfferSnapshot,
    picks: Sequence[tuple[str, Sequence[str]]],
    catalog: Catalog,
) -> BundleInfo:
    """Validate a guided category-choice build: one ``(menu_item_id, option_ids)`` per slot."""
    config = bundle.config
    if not isinstance(config, BundleConfig) or not config.is_category_choice:
        raise ValidationError("Cette formule n'est pas composable.")
    if len(picks) != len(config.slots):
        raise ValidationError("Choisissez un article pour chaque étape de la formule.")

    selections = []
    for slot, (item_id, option_ids) in zip(config.slots, picks):
        item = catalog.items.get(str(item_id))
        if item is None or not item.orderable:
            raise ValidationError("Article indisponible.")
        options = build_selection(item, catalog.groups_for(item.category_id), option_ids)
        size_id = next((o.option_id for o in options if o.is_size_option), None)
        if not slot.eligibility.accepts(item.category_id, item.id, size_id):
            raise ValidationError(f"{item.name} ne fait pas partie de cette formule.")
        selections.append(
            BundleSelection(
                category_id=item.category_id,
                menu_item=item,
                selected_options=tuple(options),
                supplement=slot.supplement_for(item.id, size_id),
            )
        )
    return BundleInfo(
        bundle_id=bundle.id,
        bundle_name=bundle.name,
        fixed_price=config.fixed_price,
        free_options=config.free_options,
        selections=tuple(selections),
    )


def build_specific_items_info(
    bundle: OfferSnapshot,
    catalog: Catalog,
    options_by_item: dict[str, Sequence[str]] | None = None,
) -> BundleInfo:
    """Bundle made of a fixed item list; items without explicit options get their defaults."""
    config = bundle.config
    if not isinstance(config, BundleConfig) or config.is_category_choice or not config.items:
        raise ValidationError("Cette formule n'a pas d'articles définis.")
    options_by_item = options_by_item or {}
    selections = []
    for required in config.items:
        item = catalog.items.get(required.menu_item_id)
        if item is None or not item.orderable:
            raise ValidationError("Un article de la formule est indisponible.")
        groups = catalog.groups_for(item.category_id)
        if required.menu_item_id in options_by_item:
            options = build_selection(item, groups, options_by_item[required.menu_item_id])
        else:
            options = default_selection(item, groups)
        for _ in range(required.quantity):
            selections.append(
                BundleSelection(category_id=item.category_id, menu_item=item, selected_options=tuple(options))
            )
    return BundleInfo(
        bundle_id=bundle.id,
        bundle_name=bundle.name,
        fixed_price=config.fixed_price,
        free_options=config.free_options,
        selections=tuple(selections),
    )
