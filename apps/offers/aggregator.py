"""Single owner of the offer discount total.

``resolve_offers`` is the authoritative resolution; ``applicable_offers`` and ``best_offer``
are read-only views for progress bars and labels and never feed a total.
"""
from __future__ import annotations

import datetime as dt
import logging
from typing import Iterable, Mapping, Sequence

from . import schedule
from .bundles import match_bundle
from .buy_x_get_y import count_trigger_units, resolve_linked_lines
from .happy_hour import happy_hour_discount, matching_lines, resolve_happy_hour
from .pricing import subtotal as lines_subtotal
from .pricing import unit_price
from .promo import amount_discount
from .types import (
    BUNDLE,
    BUY_X_GET_Y,
    HAPPY_HOUR,
    PROMO_CODE,
    THRESHOLD_DISCOUNT,
    ApplicableOffer,
    AppliedOfferDetail,
    BundleConfig,
    CartLine,
    ConsumedItem,
    FoodtruckSettings,
    OfferResolution,
    OfferSnapshot,
)

log = logging.getLogger(__name__)


def usable(offer: OfferSnapshot, at: dt.datetime | None, customer_uses: Mapping[str, int] | None = None) -> bool:
    if not offer.is_active:
        return False
    if not schedule.offer_valid_at(offer, at):
        return False
    if offer.max_uses is not None and offer.current_uses >= offer.max_uses:
        return False
    if offer.max_uses_per_customer is not None and customer_uses is not None:
        if customer_uses.get(offer.id, 0) >= offer.max_uses_per_customer:
            return False
    return True


def _bundle_details(lines: Sequence[CartLine]) -> list[AppliedOfferDetail]:
    grouped: dict[str, list[CartLine]] = {}
    for line in lines:
        if line.bundle is not None:
            grouped.setdefault(line.bundle.bundle_id, []).append(line)
    details = []
    for bundle_id, group in grouped.items():
        consumed: dict[str, int] = {}
        for line in group:
            for sel in line.bundle.selections:
                consumed[sel.menu_item.id] = consumed.get(sel.menu_item.id, 0) + line.quantity
        details.append(
            AppliedOfferDetail(
                offer_id=bundle_id,
                offer_name=group[0].bundle.bundle_name,
                offer_type=BUNDLE,
                times_applied=sum(line.quantity for line in group),
                discount_amount=0,
                items_consumed=[ConsumedItem(k, v) for k, v in consumed.items()],
            )
        )
    return details


def _threshold_details(
    offers: Sequence[OfferSnapshot],
    base: int,
    settings: FoodtruckSettings,
) -> list[AppliedOfferDetail]:
    candidates = []
    for offer in offers:
        if base < offer.config.min_amount:
            continue
        amount = amount_discount(offer.config, base)
        if amount > 0:
            candidates.append((offer, amount))
    if not candidates:
        return []
    if not settings.offers_stackable:
        candidates = [min(candidates, key=lambda c: (-c[1], c[0].sort_key))]

    remaining = base
    details = []
    for offer, amount in candidates:
        amount = min(amount, remaining)
        if amount <= 0:
            break
        remaining -= amount
        details.append(
            AppliedOfferDetail(
                offer_id=offer.id,
                offer_name=offer.name,
                offer_type=THRESHOLD_DISCOUNT,
                times_applied=1,
                discount_amount=amount,
            )
        )
    return details


def resolve_offers(
    lines: Iterable[CartLine],
    offers: Iterable[OfferSnapshot],
    settings: FoodtruckSettings | None = None,
    at: dt.datetime | None = None,
    customer_uses: Mapping[str, int] | None = None,
) -> OfferResolution:
    """Every non-promo-code discount the cart earns.

    Bundle lines are reported with a zero discount since their line price already is the
    bundle price. Item-level offers (bundles, buy-X-get-Y, happy hour) always combine as they
    consume distinct lines; only the best running happy hour applies. Cart-level threshold
    offers are computed on what is left and only the best one applies unless the truck
    allows stacking them.
    """
    settings = settings or FoodtruckSettings()
    lines = list(lines)
    offers = sorted((o for o in offers if usable(o, at, customer_uses)), key=lambda o: o.sort_key)

    applied = _bundle_details(lines)
    for offer in offers:
        if offer.offer_type == BUY_X_GET_Y:
            detail = resolve_linked_lines(offer, lines)
            if detail is not None:
                applied.append(detail)
    happy_hour = resolve_happy_hour(offers, lines)
    if happy_hour is not None:
        applied.append(happy_hour)

    item_discount = sum(a.discount_amount for a in applied)
    base = max(0, lines_subtotal(lines) - item_discount)
    thresholds = [o for o in offers if o.offer_type == THRESHOLD_DISCOUNT]
    applied.extend(_threshold_details(thresholds, base, settings))

    resolution = OfferResolution(applied)
    log.debug("[offers] resolved %s offers, discount=%s", len(applied), resolution.total_discount)
    return resolution


def _fillable_slots(offer: OfferSnapshot, lines: Sequence[CartLine]) -> int:
    donors = [line for line in lines if not line.is_bundle]
    used: set[str] = set()
    filled = 0
    for slot in offer.config.slots:
        for line in donors:
            if line.key not in used and slot.eligibility.accepts(line.menu_item.category_id, line.menu_item.id, line.size_id):
                used.add(line.key)
                filled += 1
                break
    return filled


def _bundle_progress(offer: OfferSnapshot, lines: Sequence[CartLine]) -> tuple[int, int, int]:
    config: BundleConfig = offer.config
    if config.is_category_choice:
        match = match_bundle(offer, lines)
        savings = match.savings if match else 0
        return _fillable_slots(offer, lines), len(config.slots), savings

    required = sum(i.quantity for i in config.items)
    current = 0
    original = 0
    regular = [line for line in lines if not line.is_bundle]
    for wanted in config.items:
        matching = [line for line in regular if line.menu_item.id == wanted.menu_item_id]
        have = sum(line.quantity for line in matching)
        current += min(have, wanted.quantity)
        if matching:
            original += unit_price(matching[0].menu_item, matching[0].selected_options) * wanted.quantity
    savings = max(0, original - config.fixed_price) if current >= required else 0
    return current, required, savings


def applicable_offers(
    lines: Iterable[CartLine],
    offers: Iterable[OfferSnapshot],
    settings: FoodtruckSettings | None = None,
    at: dt.datetime | None = None,
) -> list[ApplicableOffer]:
    lines = list(lines)
    offers = sorted((o for o in offers if o.offer_type != PROMO_CODE and o.is_active), key=lambda o: o.sort_key)
    applied = {a.offer_id: a for a in resolve_offers(lines, offers, settings, at).applied_offers}
    cart_total = lines_subtotal(lines)

    out = []
    for offer in offers:
        available = usable(offer, at)
        description = offer.description or schedule.format_restrictions(
            offer.time_start, offer.time_end, offer.days_of_week
        ) or ""
        view = ApplicableOffer(
            offer_id=offer.id,
            offer_name=offer.name,
            offer_type=offer.offer_type,
            is_applicable=False,
            description=description,
        )
        if offer.offer_type == BUNDLE:
            current, required, savings = _bundle_progress(offer, lines)
            view.progress_current, view.progress_required = current, required
            view.is_applicable = available and savings > 0
            view.calculated_discount = savings if view.is_applicable else 0
        elif offer.offer_type == BUY_X_GET_Y:
            view.progress_current = count_trigger_units(offer, lines)
            view.progress_required = offer.config.trigger_quantity
            view.is_applicable = available and view.progress_current >= view.progress_required
            detail = applied.get(offer.id)
            if detail is not None:
                view.calculated_discount = detail.discount_amount
                view.free_item_name = detail.free_item_name
        elif offer.offer_type == THRESHOLD_DISCOUNT:
            view.progress_current = cart_total
            view.progress_required = offer.config.min_amount
            view.is_applicable = available and cart_total >= offer.config.min_amount
            detail = applied.get(offer.id)
            if detail is not None:
                view.calculated_discount = detail.discount_amount
            elif view.is_applicable:
                view.calculated_discount = amount_discount(offer.config, cart_total)
        elif offer.offer_type == HAPPY_HOUR:
            matching = matching_lines(offer, lines)
            view.progress_current = sum(line.quantity for line in matching)
            view.progress_required = 1
            view.is_applicable = available and bool(matching)
            detail = applied.get(offer.id)
            if detail is not None:
                view.calculated_discount = detail.discount_amount
            elif view.is_applicable:
                view.calculated_discount = happy_hour_discount(offer, lines)
        out.append(view)
    return out


def best_offer(views: Iterable[ApplicableOffer]) -> ApplicableOffer | None:
    """Largest applicable offer, for labels only."""
    candidates = [v for v in views if v.is_applicable]
    if not candidates:
        return None
    return max(candidates, key=lambda v: v.calculated_discount)


def promo_section_visible(
    settings: FoodtruckSettings, active_promo_count: int, offer_discount: int, bundle_savings: int = 0
) -> bool:
    if not settings.show_promo_section or active_promo_count <= 0:
        return False
    return settings.promo_codes_stackable or (offer_discount == 0 and bundle_savings == 0)
