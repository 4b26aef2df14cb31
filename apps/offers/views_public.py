from __future__ import annotations

import json
import logging
from typing import Any

from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from django.views.decorators.csrf import ensure_csrf_cookie
from django.views.decorators.http import require_GET, require_POST

from apps.menu.catalog import load_catalog, truck_settings
from apps.menu.models import Foodtruck
from apps.menu.templatetags.currency import format_eur

from . import schedule, services
from .aggregator import applicable_offers, best_offer, promo_section_visible, usable
from .bundles import accept_bundle, build_bundle_info, build_specific_items_info, detect_bundles
from .buy_x_get_y import add_selection_to_cart, build_offer_selection
from .cart import Cart
from .guards import SignatureCache, best_effort
from .models import Offer
from .pricing import build_selection
from .types import BUNDLE, BUY_X_GET_Y, OfferSnapshot

log = logging.getLogger(__name__)


def _get_truck(slug: str) -> Foodtruck:
    return get_object_or_404(Foodtruck, slug=slug, is_active=True)


def _cart_key(foodtruck_id: str) -> str:
    return f"cart:{foodtruck_id}"


def _promo_key(foodtruck_id: str) -> str:
    return f"promo:{foodtruck_id}"


def _get_cart(request, foodtruck: Foodtruck) -> Cart:
    cart = Cart.from_dict(request.session.get(_cart_key(str(foodtruck.id))))
    cart.set_foodtruck(str(foodtruck.id))
    return cart


def _save_cart(request, foodtruck: Foodtruck, cart: Cart) -> None:
    request.session[_cart_key(str(foodtruck.id))] = cart.to_dict()
    request.session.modified = True


def _payload(request) -> dict[str, Any]:
    if request.content_type == "application/json":
        try:
            data = json.loads(request.body or b"{}")
        except ValueError:
            raise ValidationError("Requête invalide.")
        if not isinstance(data, dict):
            raise ValidationError("Requête invalide.")
        return data
    data: dict[str, Any] = {k: request.POST.get(k) for k in request.POST}
    if "option_ids" in request.POST:
        data["option_ids"] = request.POST.getlist("option_ids")
    return data


def _int(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("Quantité invalide.")


def _picks(raw) -> list[tuple[str, list[str]]]:
    out = []
    for entry in raw or []:
        if not isinstance(entry, dict) or not entry.get("menu_item_id"):
            raise ValidationError("Sélection invalide.")
        out.append((str(entry["menu_item_id"]), [str(x) for x in entry.get("option_ids") or []]))
    return out


def _error(exc: ValidationError) -> JsonResponse:
    return JsonResponse({"error": " ".join(exc.messages)}, status=422)


def _local_now():
    return timezone.localtime(timezone.now())


def _offer(foodtruck: Foodtruck, offer_id, offer_type: str) -> OfferSnapshot:
    offer = get_object_or_404(
        Offer.objects.prefetch_related("offer_items"), foodtruck=foodtruck, pk=offer_id, offer_type=offer_type
    )
    snapshot = services.parse_offer(offer)
    if snapshot is None:
        raise ValidationError("Cette offre n'est pas disponible actuellement.")
    if not schedule.in_date_window(snapshot, timezone.now()) or not usable(snapshot, _local_now()):
        raise ValidationError("Cette offre n'est pas disponible actuellement.")
    return snapshot


def _cart_data(request, foodtruck: Foodtruck, cart: Cart) -> dict[str, Any]:
    promo_code = request.session.get(_promo_key(str(foodtruck.id)))
    priced = services.price_session_cart(foodtruck, cart, promo_code=promo_code)
    data = priced.to_dict()
    data["item_count"] = cart.item_count
    data["final_total_display"] = format_eur(priced.final_total)
    return data


def _cart_response(request, foodtruck: Foodtruck, cart: Cart, **extra) -> JsonResponse:
    data = _cart_data(request, foodtruck, cart)
    data.update(extra)
    return JsonResponse(data)


@ensure_csrf_cookie
@require_GET
def cart_view(request, slug: str):
    foodtruck = _get_truck(slug)
    return _cart_response(request, foodtruck, _get_cart(request, foodtruck))


@require_POST
def cart_add(request, slug: str):
    foodtruck = _get_truck(slug)
    try:
        data = _payload(request)
        quantity = _int(data.get("quantity", 1))
        if quantity < 1:
            raise ValidationError("Quantité invalide.")
        catalog = load_catalog(foodtruck)
        item = catalog.items.get(str(data.get("menu_item_id") or ""))
        if item is None or not item.orderable:
            raise ValidationError("Article indisponible.")
        options = build_selection(item, catalog.groups_for(item.category_id), data.get("option_ids") or [])
    except ValidationError as exc:
        return _error(exc)
    cart = _get_cart(request, foodtruck)
    line = cart.add_item(item, quantity, options, notes=(data.get("notes") or "").strip()[:200])
    _save_cart(request, foodtruck, cart)
    log.info("[offers] cart add %s x%s on %s", item.id, quantity, foodtruck.slug)
    return _cart_response(request, foodtruck, cart, line_key=line.key)


@require_POST
def cart_update(request, slug: str):
    foodtruck = _get_truck(slug)
    try:
        data = _payload(request)
        quantity = _int(data.get("quantity"))
    except ValidationError as exc:
        return _error(exc)
    cart = _get_cart(request, foodtruck)
    cart.update_quantity(str(data.get("key") or ""), quantity)
    _save_cart(request, foodtruck, cart)
    return _cart_response(request, foodtruck, cart)


@require_POST
def cart_remove(request, slug: str):
    foodtruck = _get_truck(slug)
    try:
        data = _payload(request)
    except ValidationError as exc:
        return _error(exc)
    cart = _get_cart(request, foodtruck)
    cart.remove(str(data.get("key") or ""))
    _save_cart(request, foodtruck, cart)
    return _cart_response(request, foodtruck, cart)


@require_POST
def cart_clear(request, slug: str):
    foodtruck = _get_truck(slug)
    cart = _get_cart(request, foodtruck)
    cart.clear()
    _save_cart(request, foodtruck, cart)
    request.session.pop(_promo_key(str(foodtruck.id)), None)
    return _cart_response(request, foodtruck, cart)


@require_POST
def bundle_add(request, slug: str, offer_id):
    """Add a bundle built from explicit picks (category choice) or its fixed item list."""
    foodtruck = _get_truck(slug)
    try:
        data = _payload(request)
        quantity = _int(data.get("quantity", 1))
        if quantity < 1:
            raise ValidationError("Quantité invalide.")
        bundle = _offer(foodtruck, offer_id, BUNDLE)
        catalog = load_catalog(foodtruck)
        if bundle.config.is_category_choice:
            info = build_bundle_info(bundle, _picks(data.get("picks")), catalog)
        else:
            options_by_item = {str(k): [str(x) for x in v or []] for k, v in (data.get("options") or {}).items()}
            info = build_specific_items_info(bundle, catalog, options_by_item)
    except ValidationError as exc:
        return _error(exc)
    cart = _get_cart(request, foodtruck)
    line = cart.add_bundle(info, quantity)
    _save_cart(request, foodtruck, cart)
    log.info("[offers] bundle %s added on %s", bundle.id, foodtruck.slug)
    return _cart_response(request, foodtruck, cart, line_key=line.key)


@best_effort(lambda: None)
def _detect(foodtruck: Foodtruck, cart: Cart) -> list[dict] | None:
    bundles = [o for o in services.load_offers(foodtruck) if o.offer_type == BUNDLE]
    detection = detect_bundles(bundles, cart.regular_lines, _local_now())
    return [m.to_dict() for m in detection.matches]


@require_GET
def bundle_suggestions(request, slug: str):
    foodtruck = _get_truck(slug)
    cart = _get_cart(request, foodtruck)
    if settings.OFFERS["BUNDLE_SUGGESTIONS_CACHE"]:
        cache = SignatureCache(request.session, f"bundles:{foodtruck.id}")
        suggestions = cache.get_or_compute(cart.signature(), lambda: _detect(foodtruck, cart))
    else:
        suggestions = _detect(foodtruck, cart)
    if suggestions is None:
        suggestions = []
    return JsonResponse(
        {
            "suggestions": suggestions,
            "best": suggestions[0] if suggestions else None,
            "total_savings": suggestions[0]["savings"] if suggestions else 0,
        }
    )


@require_POST
def bundle_accept(request, slug: str, offer_id):
    """Swap the cart lines a detected bundle matches for the bundle itself."""
    foodtruck = _get_truck(slug)
    try:
        bundle = _offer(foodtruck, offer_id, BUNDLE)
    except ValidationError as exc:
        return _error(exc)
    cart = _get_cart(request, foodtruck)
    line = accept_bundle(cart, bundle)
    if line is None:
        return _error(ValidationError("Cette formule ne correspond plus à votre panier."))
    _save_cart(request, foodtruck, cart)
    SignatureCache(request.session, f"bundles:{foodtruck.id}").invalidate()
    return _cart_response(request, foodtruck, cart, line_key=line.key)


@require_POST
def offer_add(request, slug: str, offer_id):
    """Add the items picked for a buy-X-get-Y offer, tagged with the offer."""
    foodtruck = _get_truck(slug)
    try:
        data = _payload(request)
        offer = _offer(foodtruck, offer_id, BUY_X_GET_Y)
        selection = build_offer_selection(
            offer, load_catalog(foodtruck), _picks(data.get("triggers")), _picks(data.get("rewards"))
        )
    except ValidationError as exc:
        return _error(exc)
    cart = _get_cart(request, foodtruck)
    add_selection_to_cart(cart, selection)
    _save_cart(request, foodtruck, cart)
    log.info("[offers] offer %s added on %s, discount=%s", offer.id, foodtruck.slug, selection.discount)
    return _cart_response(request, foodtruck, cart)


@require_GET
def offers_list(request, slug: str):
    """Progress and discount of every offer for the current cart, for display."""
    foodtruck = _get_truck(slug)
    cart = _get_cart(request, foodtruck)
    truck = truck_settings(foodtruck)
    views = applicable_offers(cart.lines, services.discover_offers(foodtruck), truck, _local_now())
    promo_code = request.session.get(_promo_key(str(foodtruck.id)))
    priced = services.price_session_cart(foodtruck, cart, promo_code=promo_code)
    top = best_offer(views)
    out = []
    for view in views:
        entry = view.to_dict()
        entry["calculated_discount_display"] = format_eur(view.calculated_discount)
        out.append(entry)
    return JsonResponse(
        {
            "offers": out,
            "best_offer": top.to_dict() if top else None,
            "offer_discount": priced.offer_discount,
            "show_promo_section": promo_section_visible(
                truck, services.active_promo_count(foodtruck), priced.offer_discount, priced.bundle_savings
            ),
        }
    )


@require_POST
def promo_validate(request, slug: str):
    foodtruck = _get_truck(slug)
    try:
        data = _payload(request)
    except ValidationError as exc:
        return _error(exc)
    cart = _get_cart(request, foodtruck)
    result = services.validate_promo_code(foodtruck, data.get("code") or "", data.get("email"), cart.total)
    if result.is_valid:
        request.session[_promo_key(str(foodtruck.id))] = result.code
        request.session.modified = True
    return _cart_response(request, foodtruck, cart, result=result.to_dict())


@require_POST
def promo_remove(request, slug: str):
    foodtruck = _get_truck(slug)
    request.session.pop(_promo_key(str(foodtruck.id)), None)
    return _cart_response(request, foodtruck, _get_cart(request, foodtruck))
