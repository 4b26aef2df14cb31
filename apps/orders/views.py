import json
import logging

from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_POST

from apps.menu.models import Foodtruck
from apps.offers.views_public import _cart_key, _get_cart, _promo_key

from . import services
from .models import Order

log = logging.getLogger(__name__)


def _order_json(order: Order) -> dict:
    return {
        "order_id": str(order.id),
        "public_code": order.public_code,
        "status": order.status,
        "pickup_time": order.pickup_time.isoformat(),
        "subtotal": order.subtotal_cents,
        "offer_discount": order.offer_discount_cents,
        "promo_discount": order.promo_discount_cents,
        "loyalty_discount": order.loyalty_discount_cents,
        "total": order.total_cents,
    }


@require_POST
def submit(request, slug: str):
    """Create an order from the posted priced cart, or from the session cart when none is posted."""
    foodtruck = get_object_or_404(Foodtruck, slug=slug, is_active=True)
    try:
        data = json.loads(request.body or b"{}")
    except ValueError:
        return JsonResponse({"error": "Requête invalide"}, status=422)
    if not isinstance(data, dict):
        return JsonResponse({"error": "Requête invalide"}, status=422)
    data["foodtruck_id"] = str(foodtruck.id)
    if not data.get("items"):
        data["items"] = _get_cart(request, foodtruck).to_dict()["items"]

    try:
        order = services.submit_order(data)
    except ValidationError as exc:
        log.info("[orders] submission refused on %s: %s", slug, exc.messages)
        return JsonResponse({"error": " ".join(exc.messages)}, status=422)

    request.session.pop(_cart_key(str(foodtruck.id)), None)
    request.session.pop(_promo_key(str(foodtruck.id)), None)
    request.session.modified = True
    return JsonResponse(_order_json(order), status=201)


@require_GET
def detail(request, slug: str, public_code: str):
    order = get_object_or_404(Order, foodtruck__slug=slug, public_code=public_code.upper())
    return JsonResponse(_order_json(order))
