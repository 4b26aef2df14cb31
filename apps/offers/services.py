"""Database side of offers: snapshots, promo code lookups, session cart pricing."""
from __future__ import annotations

import datetime as dt
import logging

from django.conf import settings
from django.db.models import Count, F, Q
from django.utils import timezone

from apps.menu.catalog import truck_settings
from apps.menu.models import Foodtruck

from .cart import Cart
from .checkout import PricedCart, price_cart
from .guards import Generation, best_effort
from .models import Offer, OfferUse
from .promo import MSG_INVALID, evaluate_promo_code, normalize_code, normalize_email
from .types import BUNDLE, PROMO_CODE, BundleItem, OfferSnapshot, PromoCodeResult, parse_config

log = logging.getLogger(__name__)

# Offer loads per foodtruck; a load overtaken by a newer one is dropped
offer_loads = Generation()


def anonymous_email() -> str:
    return settings.OFFERS["ANONYMOUS_EMAIL"]


def offer_snapshot(offer: Offer) -> OfferSnapshot:
    items: tuple[BundleItem, ...] = ()
    if offer.offer_type == BUNDLE:
        items = tuple(BundleItem(str(oi.menu_item_id), oi.quantity) for oi in offer.offer_items.all())
    return OfferSnapshot(
        id=str(offer.id),
        name=offer.name,
        offer_type=offer.offer_type,
        config=parse_config(offer.offer_type, offer.config, items),
        description=offer.description,
        is_active=offer.is_active,
        start_date=offer.start_date,
        end_date=offer.end_date,
        time_start=offer.time_start,
        time_end=offer.time_end,
        days_of_week=tuple(int(d) for d in offer.days_of_week or ()),
        max_uses=offer.max_uses,
        max_uses_per_customer=offer.max_uses_per_customer,
        current_uses=offer.current_uses,
        stackable=offer.stackable,
        display_order=offer.display_order,
    )


def parse_offer(offer: Offer) -> OfferSnapshot | None:
    """Snapshot of ``offer``, or None when its config cannot be read."""
    try:
        return offer_snapshot(offer)
    except (ArithmeticError, AttributeError, KeyError, TypeError, ValueError):
        log.warning("[offers] skipping offer %s with unreadable %s config", offer.id, offer.offer_type, exc_info=True)
        return None


def active_offers(foodtruck: Foodtruck, at: dt.datetime | None = None, include_promo: bool = False) -> list[OfferSnapshot]:
    """Active offers inside their date window; day and time windows are left to the engine."""
    at = at or timezone.now()
    qs = (
        Offer.objects.filter(foodtruck=foodtruck, is_active=True)
        .filter(Q(start_date__isnull=True) | Q(start_date__lte=at))
        .filter(Q(end_date__isnull=True) | Q(end_date__gte=at))
        .prefetch_related("offer_items")
        .order_by("display_order", "created_at")
    )
    if not include_promo:
        qs = qs.exclude(offer_type=PROMO_CODE)
    return [s for s in (parse_offer(o) for o in qs) if s is not None]


def load_offers(foodtruck: Foodtruck, at: dt.datetime | None = None) -> list[OfferSnapshot]:
    key = str(foodtruck.id)
    return offer_loads.run(key, lambda: active_offers(foodtruck, at), default=[])


discover_offers = best_effort(list)(load_offers)


def active_promo_count(foodtruck: Foodtruck, at: dt.datetime | None = None) -> int:
    at = at or timezone.now()
    return (
        Offer.objects.filter(foodtruck=foodtruck, offer_type=PROMO_CODE, is_active=True)
        .filter(Q(start_date__isnull=True) | Q(start_date__lte=at))
        .filter(Q(end_date__isnull=True) | Q(end_date__gte=at))
        .count()
    )


def customer_offer_uses(foodtruck: Foodtruck, email: str | None) -> dict[str, int]:
    email = normalize_email(email, anonymous_email())
    rows = (
        OfferUse.objects.filter(offer__foodtruck=foodtruck, customer_email=email)
        .values("offer_id")
        .annotate(n=Count("id"))
    )
    return {str(r["offer_id"]): r["n"] for r in rows}


def find_promo_code(foodtruck: Foodtruck, code: str) -> Offer | None:
    code = normalize_code(code)
    if not code:
        return None
    return Offer.objects.filter(foodtruck=foodtruck, offer_type=PROMO_CODE, code=code).first()


def validate_promo_code(
    foodtruck: Foodtruck,
    code: str,
    email: str | None,
    subtotal: int,
    at: dt.datetime | None = None,
) -> PromoCodeResult:
    at = at or timezone.now()
    offer = find_promo_code(foodtruck, code)
    if offer is None:
        log.info("[offers] unknown promo code %r for %s", normalize_code(code), foodtruck.slug)
        return PromoCodeResult(is_valid=False, code=normalize_code(code), error=MSG_INVALID)
    email = normalize_email(email, anonymous_email())
    uses = OfferUse.objects.filter(offer=offer, customer_email=email).count()
    return evaluate_promo_code(parse_offer(offer), subtotal=subtotal, at=at, customer_uses=uses)


def record_offer_use(offer_id: str, order, email: str | None, discount: int) -> None:
    """Count one use of an offer by an order and add its discount to the running total."""
    email = normalize_email(email, anonymous_email())
    updated = Offer.objects.filter(id=offer_id).update(
        current_uses=F("current_uses") + 1,
        total_discount_given_cents=F("total_discount_given_cents") + max(0, int(discount)),
    )
    if not updated:
        log.warning("[offers] cannot record use of missing offer %s", offer_id)
        return
    OfferUse.objects.create(offer_id=offer_id, order=order, customer_email=email, discount_cents=max(0, int(discount)))


def price_session_cart(
    foodtruck: Foodtruck,
    cart: Cart,
    *,
    promo_code: str | None = None,
    email: str | None = None,
    loyalty_discount: int = 0,
    at: dt.datetime | None = None,
) -> PricedCart:
    """Price a cart against the truck's current offers; promo and uses are re-read from the DB."""
    at = at or timezone.now()
    local_at = timezone.localtime(at) if timezone.is_aware(at) else at
    offers = discover_offers(foodtruck, at)
    lines = list(cart.lines)
    subtotal = cart.total
    promo = validate_promo_code(foodtruck, promo_code, email, subtotal, at) if promo_code else None
    uses = customer_offer_uses(foodtruck, email) if email else None
    return price_cart(
        lines,
        offers,
        truck_settings(foodtruck),
        promo=promo,
        loyalty_discount=loyalty_discount,
        at=local_at,
        customer_uses=uses,
    )
