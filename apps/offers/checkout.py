from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Mapping

from .aggregator import resolve_offers
from .pricing import bundle_savings, line_price, line_unit_price
from .promo import round_half_up
from .types import (
    PERCENTAGE,
    AppliedOfferDetail,
    CartLine,
    FoodtruckSettings,
    OfferSnapshot,
    PromoCodeResult,
)

log = logging.getLogger(__name__)


def promo_discount_for(promo: PromoCodeResult | None, post_offer_total: int) -> int:
    """Promo amount once offers are taken off; percentages apply to the post-offer total."""
    if promo is None or not promo.is_valid:
        return 0
    if promo.discount_type == PERCENTAGE:
        discount = round_half_up(Decimal(post_offer_total) * promo.discount_value / 100)
        if promo.max_discount:
            discount = min(discount, promo.max_discount)
    else:
        discount = int(promo.discount)
    return max(0, min(discount, post_offer_total))


@dataclass(frozen=True)
class CheckoutTotals:
    subtotal: int
    offer_discount: int
    promo_discount: int
    loyalty_discount: int
    final_total: int

    @property
    def post_offer_total(self) -> int:
        return max(0, self.subtotal - self.offer_discount)


def compose_totals(
    subtotal: int,
    offer_discount: int = 0,
    promo: PromoCodeResult | None = None,
    loyalty_discount: int = 0,
) -> CheckoutTotals:
    """Offers first, then the promo code on what is left, loyalty last; never below zero."""
    if offer_discount > subtotal:
        log.warning("[offers] offer discount %s exceeds subtotal %s, clamping", offer_discount, subtotal)
    post_offer = max(0, subtotal - offer_discount)
    promo_discount = promo_discount_for(promo, post_offer)
    final_total = post_offer - promo_discount - loyalty_discount
    if final_total < 0:
        log.warning("[offers] discounts exceed order total (%s), clamping to 0", final_total)
        final_total = 0
    return CheckoutTotals(
        subtotal=subtotal,
        offer_discount=offer_discount,
        promo_discount=promo_discount,
        loyalty_discount=loyalty_discount,
        final_total=final_total,
    )


def line_view(line: CartLine) -> dict[str, Any]:
    out: dict[str, Any] = {
        "key": line.key,
        "menu_item_id": line.menu_item.id,
        "name": line.menu_item.name,
        "category_id": line.menu_item.category_id,
        "quantity": line.quantity,
        "notes": line.notes,
        "unit_price": line_unit_price(line),
        "line_total": line_price(line),
        "selected_options": [o.to_dict() for o in line.selected_options],
    }
    if line.bundle is not None:
        out["bundle"] = {
            "bundle_id": line.bundle.bundle_id,
            "bundle_name": line.bundle.bundle_name,
            "fixed_price": line.bundle.fixed_price,
            "free_options": line.bundle.free_options,
            "selections": [
                {
                    "menu_item_id": s.menu_item.id,
                    "name": s.menu_item.name,
                    "supplement": s.supplement,
                    "selected_options": [o.to_dict() for o in s.selected_options],
                }
                for s in line.bundle.selections
            ],
        }
    if line.offer_link is not None:
        out["offer_link"] = {"offer_id": line.offer_link.offer_id, "role": line.offer_link.role}
    return out


@dataclass
class PricedCart:
    items: list[CartLine]
    subtotal: int
    applied_offers: list[AppliedOfferDetail] = field(default_factory=list)
    offer_discount: int = 0
    promo_discount: int = 0
    loyalty_discount: int = 0
    final_total: int = 0
    promo: PromoCodeResult | None = None
    bundle_savings: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [line_view(line) for line in self.items],
            "subtotal": self.subtotal,
            "applied_offers": [a.to_dict() for a in self.applied_offers],
            "offer_discount": self.offer_discount,
            "bundle_savings": self.bundle_savings,
            "promo_code": self.promo.to_dict() if self.promo else None,
            "promo_discount": self.promo_discount,
            "loyalty_discount": self.loyalty_discount,
            "final_total": self.final_total,
        }


def price_cart(
    lines: Iterable[CartLine],
    offers: Iterable[OfferSnapshot],
    settings: FoodtruckSettings | None = None,
    promo: PromoCodeResult | None = None,
    loyalty_discount: int = 0,
    at: dt.datetime | None = None,
    customer_uses: Mapping[str, int] | None = None,
) -> PricedCart:
    """Full pipeline: subtotal, offer resolution, promo code, loyalty, final total."""
    settings = settings or FoodtruckSettings()
    lines = list(lines)
    for line in lines:
        if line.quantity <= 0:
            raise ValueError(f"cart line {line.key} has quantity {line.quantity}")

    subtotal = sum(line_price(line) for line in lines)
    resolution = resolve_offers(lines, offers, settings, at, customer_uses)
    offer_discount = min(resolution.total_discount, subtotal)

    # bundle prices are already in the subtotal, but they still count as an offer
    savings = sum(bundle_savings(line) for line in lines)
    discounted = offer_discount > 0 or savings > 0
    if promo is not None and promo.is_valid and discounted and not settings.promo_codes_stackable:
        log.info("[offers] promo code %s dropped: not stackable with offers", promo.code)
        promo = None

    totals = compose_totals(subtotal, offer_discount, promo, loyalty_discount)
    return PricedCart(
        items=lines,
        subtotal=subtotal,
        applied_offers=resolution.applied_offers,
        offer_discount=totals.offer_discount,
        promo_discount=totals.promo_discount,
        loyalty_discount=totals.loyalty_discount,
        final_total=totals.final_total,
        promo=promo if promo is not None and promo.is_valid else None,
        bundle_savings=savings,
    )
