"""Order submission: the server re-prices the cart and refuses anything the client got wrong.

The client sends the priced cart it displayed. Nothing in it is trusted: lines are rebuilt
from the catalog, offers are resolved again and the resulting totals must agree with what the
client announced (within ``PROMO_TOLERANCE_CENTS``).
"""
from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Any

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from apps.loyalty import services as loyalty
from apps.menu.catalog import load_catalog, truck_settings
from apps.menu.models import Foodtruck
from apps.offers import services as offers
from apps.offers.bundles import build_bundle_info, build_specific_items_info
from apps.offers.cart import Cart, bundle_line_key, bundle_menu_item, linked_line_key
from apps.offers.checkout import PricedCart, price_cart
from apps.offers.models import Offer
from apps.offers.pricing import build_selection, cart_key, line_price, line_unit_price
from apps.offers.pricing import subtotal as lines_subtotal
from apps.offers.types import BUNDLE, AppliedOfferDetail, CartLine, Catalog, OfferSnapshot

from .models import Order, OrderAppliedOffer, OrderItem, OrderItemOption

log = logging.getLogger(__name__)


def _money(cents: int) -> str:
    return f"{cents / 100:.2f}€"


@dataclass
class OrderRequest:
    foodtruck_id: str
    customer_name: str
    customer_email: str
    pickup_time: dt.datetime
    items: list[dict[str, Any]]
    customer_phone: str = ""
    is_asap: bool = False
    notes: str = ""
    promo_code: str = ""
    promo_discount: int | None = None
    applied_offers: list[AppliedOfferDetail] = field(default_factory=list)
    use_loyalty_reward: bool = False
    loyalty_reward_count: int = 0
    expected_total: int | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> OrderRequest:
        """Parse a submission body; missing essentials raise before anything is looked up."""
        required = ("foodtruck_id", "customer_email", "customer_name", "pickup_time")
        if any(not str(data.get(k) or "").strip() for k in required) or not data.get("items"):
            raise ValidationError("Champs obligatoires manquants")
        pickup = data["pickup_time"]
        if not isinstance(pickup, dt.datetime):
            pickup = parse_datetime(str(pickup))
        if pickup is None:
            raise ValidationError("Heure de retrait invalide")
        if timezone.is_naive(pickup):
            pickup = timezone.make_aware(pickup)
        try:
            return cls(
                foodtruck_id=str(data["foodtruck_id"]),
                customer_name=str(data["customer_name"]).strip()[:160],
                customer_email=str(data["customer_email"]).strip().lower(),
                customer_phone=str(data.get("customer_phone") or "").strip()[:40],
                pickup_time=pickup,
                is_asap=bool(data.get("is_asap")),
                notes=str(data.get("notes") or "").strip(),
                items=list(data["items"]),
                promo_code=str(data.get("promo_code") or "").strip().upper(),
                promo_discount=_optional_int(data.get("promo_discount")),
                applied_offers=[AppliedOfferDetail.from_dict(a) for a in data.get("applied_offers") or []],
                use_loyalty_reward=bool(data.get("use_loyalty_reward")),
                loyalty_reward_count=int(data.get("loyalty_reward_count") or 0),
                expected_total=_optional_int(data.get("expected_total")),
            )
        except (KeyError, TypeError, ValueError):
            raise ValidationError("Requête invalide")


def _optional_int(value) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------


def validate_pickup_time(pickup_time: dt.datetime, now: dt.datetime | None = None) -> None:
    now = now or timezone.now()
    tolerance = dt.timedelta(seconds=settings.OFFERS["PICKUP_PAST_TOLERANCE_SECONDS"])
    if pickup_time < now - tolerance:
        raise ValidationError("L'heure de retrait ne peut pas être dans le passé")


def check_slot_availability(foodtruck: Foodtruck, pickup_time: dt.datetime) -> None:
    if not foodtruck.max_orders_per_slot:
        return
    start = pickup_time.replace(second=0, microsecond=0)
    count = (
        Order.objects.filter(foodtruck=foodtruck, pickup_time__gte=start, pickup_time__lt=start + dt.timedelta(minutes=1))
        .exclude(status="cancelled")
        .count()
    )
    if count >= foodtruck.max_orders_per_slot:
        raise ValidationError("Ce créneau horaire est complet. Veuillez choisir un autre horaire.")


def _catalog_item(catalog: Catalog, menu_item_id: str):
    item = catalog.items.get(str(menu_item_id))
    if item is None:
        raise ValidationError(f"L'article avec l'id {menu_item_id} n'existe pas")
    if not item.orderable:
        raise ValidationError(f"L'article \"{item.name}\" n'est plus disponible")
    return item


def _check_supplement(bundle: OfferSnapshot, index: int, client_line: CartLine, server_supplement: int) -> None:
    client = client_line.bundle.selections[index].supplement
    if client < 0:
        raise ValidationError(f"Le supplément de la formule \"{bundle.name}\" est invalide.")
    factor = settings.OFFERS["MAX_SUPPLEMENT_FACTOR"]
    if server_supplement > 0 and client > server_supplement * factor:
        raise ValidationError(
            f"Le supplément de la formule \"{bundle.name}\" est anormalement élevé. Veuillez rafraîchir la page."
        )


def _rebuild_bundle(line: CartLine, catalog: Catalog, bundles: dict[str, OfferSnapshot]) -> CartLine:
    bundle = bundles.get(line.bundle.bundle_id)
    if bundle is None:
        raise ValidationError(f"La formule \"{line.bundle.bundle_name}\" n'est plus active")
    for sel in line.bundle.selections:
        _catalog_item(catalog, sel.menu_item.id)
    if bundle.config.is_category_choice:
        picks = [(s.menu_item.id, [o.option_id for o in s.selected_options]) for s in line.bundle.selections]
        info = build_bundle_info(bundle, picks, catalog)
        for index, sel in enumerate(info.selections):
            _check_supplement(bundle, index, line, sel.supplement)
    else:
        options = {s.menu_item.id: [o.option_id for o in s.selected_options] for s in line.bundle.selections}
        info = build_specific_items_info(bundle, catalog, options)
        for sel in line.bundle.selections:
            if sel.supplement < 0:
                raise ValidationError(f"Le supplément de la formule \"{bundle.name}\" est invalide.")
    return CartLine(key=bundle_line_key(info), menu_item=bundle_menu_item(info), quantity=line.quantity, bundle=info)


def rebuild_lines(client_items: list[dict[str, Any]], catalog: Catalog, bundles: dict[str, OfferSnapshot]) -> list[CartLine]:
    """Re-resolve every client line against the catalog; prices come from the server only."""
    try:
        client = Cart.from_dict({"items": [{"key": "", **raw} for raw in client_items]})
    except (AttributeError, KeyError, TypeError, ValueError):
        raise ValidationError("Panier invalide")
    if len(client.lines) != len(client_items):
        raise ValidationError("Panier invalide")

    lines: list[CartLine] = []
    for line in client.lines:
        if line.is_bundle:
            lines.append(_rebuild_bundle(line, catalog, bundles))
            continue
        item = _catalog_item(catalog, line.menu_item.id)
        options = build_selection(item, catalog.groups_for(item.category_id), [o.option_id for o in line.selected_options])
        key = cart_key(item.id, options)
        if line.offer_link is not None:
            key = linked_line_key(key, line.offer_link)
        lines.append(
            CartLine(
                key=key,
                menu_item=item,
                quantity=line.quantity,
                selected_options=options,
                notes=line.notes[:200],
                offer_link=line.offer_link,
            )
        )
    return lines


def _cart_quantities(lines: list[CartLine]) -> dict[str, int]:
    out: dict[str, int] = {}
    for line in lines:
        if line.is_bundle:
            for sel in line.bundle.selections:
                out[sel.menu_item.id] = out.get(sel.menu_item.id, 0) + line.quantity
        else:
            out[line.menu_item.id] = out.get(line.menu_item.id, 0) + line.quantity
    return out


def validate_applied_offers(
    foodtruck: Foodtruck,
    applied: list[AppliedOfferDetail],
    lines: list[CartLine],
    catalog: Catalog,
    at: dt.datetime,
) -> int:
    """Check the offers the client claims; return their total discount."""
    if not applied:
        return 0
    ids = {a.offer_id for a in applied}
    found = {str(o.id): o for o in Offer.objects.filter(foodtruck=foodtruck, id__in=ids)}
    if len(found) != len(ids):
        raise ValidationError("Une ou plusieurs offres sont invalides")

    for detail in applied:
        offer = found[detail.offer_id]
        if not offer.is_active:
            raise ValidationError(f"L'offre \"{offer.name}\" n'est plus active")
        if offer.start_date and offer.start_date > at:
            raise ValidationError(f"L'offre \"{offer.name}\" n'est pas encore active")
        if offer.end_date and offer.end_date < at:
            raise ValidationError(f"L'offre \"{offer.name}\" a expiré")

    quantities = _cart_quantities(lines)
    consumed: dict[str, int] = {}
    for detail in applied:
        for c in detail.items_consumed:
            consumed[c.menu_item_id] = consumed.get(c.menu_item_id, 0) + c.quantity
    for item_id, count in consumed.items():
        item = catalog.items.get(item_id)
        name = item.name if item else item_id
        in_cart = quantities.get(item_id, 0)
        if in_cart == 0:
            raise ValidationError(f"L'article \"{name}\" est requis pour une offre mais n'est pas dans le panier")
        if count > in_cart:
            raise ValidationError(f"{name}: utilisé {count} fois dans les offres mais seulement {in_cart} dans le panier")

    total = sum(max(0, a.discount_amount) for a in applied)
    if total > lines_subtotal(lines):
        raise ValidationError("Le total des réductions ne peut pas dépasser le montant du panier")
    return total


# ---------------------------------------------------------------------------
# Pricing and submission
# ---------------------------------------------------------------------------


def _check_promo(req: OrderRequest, priced: PricedCart) -> None:
    if req.promo_discount is None:
        return
    tolerance = settings.OFFERS["PROMO_TOLERANCE_CENTS"]
    if abs(priced.promo_discount - req.promo_discount) > tolerance:
        raise ValidationError(
            f"La réduction calculée ({_money(priced.promo_discount)}) ne correspond pas. Veuillez rafraîchir la page."
        )


def _check_total(req: OrderRequest, priced: PricedCart) -> None:
    if req.expected_total is None:
        return
    tolerance = settings.OFFERS["PROMO_TOLERANCE_CENTS"]
    if abs(priced.final_total - req.expected_total) > tolerance:
        log.warning(
            "[orders] total mismatch server=%s client=%s subtotal=%s offers=%s promo=%s loyalty=%s",
            priced.final_total,
            req.expected_total,
            priced.subtotal,
            priced.offer_discount,
            priced.promo_discount,
            priced.loyalty_discount,
        )
        raise ValidationError(
            f"Le total calculé ({_money(priced.final_total)}) ne correspond pas au total envoyé "
            f"({_money(req.expected_total)}). Veuillez rafraîchir la page."
        )


def reprice(foodtruck: Foodtruck, req: OrderRequest, at: dt.datetime | None = None) -> tuple[PricedCart, int]:
    """Server-side priced cart for a submission, with the number of loyalty rewards it spends."""
    at = at or timezone.now()
    catalog = load_catalog(foodtruck)
    snapshots = offers.active_offers(foodtruck, at)
    bundles = {o.id: o for o in snapshots if o.offer_type == BUNDLE}
    lines = rebuild_lines(req.items, catalog, bundles)

    validate_applied_offers(foodtruck, req.applied_offers, lines, catalog, at)

    promo = None
    if req.promo_code:
        promo = offers.validate_promo_code(foodtruck, req.promo_code, req.customer_email, lines_subtotal(lines), at)
        if not promo.is_valid:
            raise ValidationError(promo.error)

    loyalty_discount, reward_count = 0, 0
    if req.use_loyalty_reward:
        info = loyalty.get_loyalty_info(foodtruck, req.customer_email)
        available_discount, available = loyalty.calculate_loyalty_discount(info, True)
        if available == 0 or req.loyalty_reward_count > available:
            raise ValidationError("Points de fidélité insuffisants")
        reward_count = req.loyalty_reward_count or available
        loyalty_discount = info.reward * reward_count

    priced = price_cart(
        lines,
        snapshots,
        settings=truck_settings(foodtruck),
        promo=promo,
        loyalty_discount=loyalty_discount,
        at=timezone.localtime(at),
        customer_uses=offers.customer_offer_uses(foodtruck, req.customer_email),
    )
    return priced, reward_count


def _save_lines(order: Order, priced: PricedCart) -> None:
    for line in priced.items:
        if line.is_bundle:
            bundle = line.bundle
            OrderItem.objects.create(
                order=order,
                name_snapshot=bundle.bundle_name,
                qty=line.quantity,
                unit_price_cents_snapshot=line_unit_price(line),
                line_subtotal_cents=line_price(line),
                bundle_id=bundle.bundle_id,
                bundle_name=bundle.bundle_name,
            )
            # Components are priced by the bundle line above
            for sel in bundle.selections:
                item = OrderItem.objects.create(
                    order=order,
                    menu_item_id=sel.menu_item.id,
                    name_snapshot=sel.menu_item.name,
                    qty=line.quantity,
                    unit_price_cents_snapshot=0,
                    line_subtotal_cents=0,
                    bundle_id=bundle.bundle_id,
                    bundle_name=bundle.bundle_name,
                )
                _save_options(item, sel.selected_options)
            continue
        item = OrderItem.objects.create(
            order=order,
            menu_item_id=line.menu_item.id,
            name_snapshot=line.menu_item.name,
            qty=line.quantity,
            unit_price_cents_snapshot=line_unit_price(line),
            line_subtotal_cents=line_price(line),
            notes=line.notes,
            offer_id=line.offer_link.offer_id if line.offer_link else "",
            offer_role=line.offer_link.role if line.offer_link else "",
        )
        _save_options(item, line.selected_options)


def _save_options(item: OrderItem, options) -> None:
    for opt in options:
        OrderItemOption.objects.create(
            order_item=item,
            option_id=opt.option_id,
            name_snapshot=opt.name,
            price_modifier_cents_snapshot=opt.price_modifier,
            is_size_option=opt.is_size_option,
        )


@transaction.atomic
def submit_order(data: dict[str, Any], *, now: dt.datetime | None = None) -> Order:
    """Validate, re-price and store an order; raises ``ValidationError`` with a customer message."""
    now = now or timezone.now()
    req = OrderRequest.from_payload(data)
    foodtruck = Foodtruck.objects.filter(id=req.foodtruck_id, is_active=True).first()
    if foodtruck is None:
        raise ValidationError("Foodtruck introuvable")

    validate_pickup_time(req.pickup_time, now)
    check_slot_availability(foodtruck, req.pickup_time)

    priced, reward_count = reprice(foodtruck, req, now)
    _check_promo(req, priced)
    _check_total(req, priced)

    status = "confirmed" if foodtruck.auto_accept_orders else "pending"
    order = Order(
        foodtruck=foodtruck,
        status=status,
        customer_name=req.customer_name,
        customer_email=req.customer_email,
        customer_phone=req.customer_phone,
        pickup_time=req.pickup_time,
        is_asap=req.is_asap,
        subtotal_cents=priced.subtotal,
        offer_discount_cents=priced.offer_discount,
        promo_discount_cents=priced.promo_discount,
        loyalty_discount_cents=priced.loyalty_discount,
        total_cents=priced.final_total,
        promo_code=priced.promo.code if priced.promo else "",
        promo_offer_id=(priced.promo.promo_code_id or "") if priced.promo else "",
        loyalty_reward_count=reward_count,
        pricing_json=priced.to_dict(),
        notes=req.notes,
    )
    order._status_change_source = "auto_accept" if status == "confirmed" else "customer"
    order.save()
    _save_lines(order, priced)

    for detail in priced.applied_offers:
        OrderAppliedOffer.objects.create(
            order=order,
            offer_id=detail.offer_id,
            offer_name=detail.offer_name,
            offer_type=detail.offer_type,
            times_applied=detail.times_applied,
            discount_cents=detail.discount_amount,
            items_consumed=[{"menu_item_id": c.menu_item_id, "quantity": c.quantity} for c in detail.items_consumed],
            free_item_name=detail.free_item_name or "",
        )
        offers.record_offer_use(detail.offer_id, order, req.customer_email, detail.discount_amount)
    if priced.promo is not None:
        offers.record_offer_use(priced.promo.promo_code_id, order, req.customer_email, priced.promo_discount)

    if reward_count:
        loyalty.redeem(order, reward_count)
    if status == "confirmed":
        loyalty.schedule_credit(order)

    log.info(
        "[orders] order %s created for %s total=%s status=%s", order.public_code, foodtruck.slug, order.total_cents, status
    )
    return order


def confirm_order(order: Order, *, source: str = "owner") -> Order:
    """Accept a pending order; loyalty points follow once the change is committed."""
    if order.status != "pending":
        raise ValidationError("Seules les commandes en attente peuvent être confirmées")
    with transaction.atomic():
        order.set_status("confirmed", source=source)
        loyalty.schedule_credit(order)
    log.info("[orders] order %s confirmed by %s", order.public_code, source)
    return order
