"""Happy hour: a discount on matching items while the offer's day and time window is open.

The window itself is checked by ``aggregator.usable``; this module only prices a happy hour
against the cart once it is known to be running.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Sequence

from .pricing import line_price, line_unit_price
from .promo import round_half_up
from .types import (
    HAPPY_HOUR,
    PERCENTAGE,
    AppliedOfferDetail,
    CartLine,
    ConsumedItem,
    HappyHourConfig,
    OfferSnapshot,
)


def matching_lines(offer: OfferSnapshot, lines: Iterable[CartLine]) -> list[CartLine]:
    """Regular lines in the offer's scope; bundle and buy-X-get-Y lines are already discounted."""
    config: HappyHourConfig = offer.config
    return [
        line
        for line in lines
        if line.bundle is None and line.offer_link is None and config.covers(line.menu_item.category_id)
    ]


def happy_hour_discount(offer: OfferSnapshot, lines: Sequence[CartLine]) -> int:
    config: HappyHourConfig = offer.config
    matching = matching_lines(offer, lines)
    base = sum(line_price(line) for line in matching)
    if base <= 0:
        return 0
    if config.discount_type == PERCENTAGE:
        discount = round_half_up(Decimal(base) * config.discount_value / 100)
    else:
        per_unit = int(config.discount_value)
        discount = sum(min(per_unit, line_unit_price(line)) * line.quantity for line in matching)
    if config.max_discount:
        discount = min(discount, config.max_discount)
    return max(0, min(discount, base))


def resolve_happy_hour(offers: Iterable[OfferSnapshot], lines: Sequence[CartLine]) -> AppliedOfferDetail | None:
    """The running happy hour worth the most; ties go to display order."""
    best = None
    for offer in offers:
        if offer.offer_type != HAPPY_HOUR:
            continue
        amount = happy_hour_discount(offer, lines)
        if amount > 0 and (best is None or (-amount, offer.sort_key) < (-best[1], best[0].sort_key)):
            best = (offer, amount)
    if best is None:
        return None

    offer, amount = best
    consumed: dict[str, int] = {}
    for line in matching_lines(offer, lines):
        consumed[line.menu_item.id] = consumed.get(line.menu_item.id, 0) + line.quantity
    return AppliedOfferDetail(
        offer_id=offer.id,
        offer_name=offer.name,
        offer_type=HAPPY_HOUR,
        times_applied=1,
        discount_amount=amount,
        items_consumed=[ConsumedItem(k, v) for k, v in consumed.items()],
    )
