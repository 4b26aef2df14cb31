import json
import logging

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_POST

from apps.common.throttle import coalesce, forget
from apps.menu.models import Foodtruck
from apps.offers.guards import Generation, best_effort

from . import services

log = logging.getLogger(__name__)

lookups = Generation()


@best_effort(lambda: None)
def _lookup(foodtruck: Foodtruck, email: str):
    key = f"{foodtruck.id}:{email}"
    window = settings.OFFERS["LOYALTY_LOOKUP_DEBOUNCE_MS"]

    def _load():
        info = services.get_loyalty_info(foodtruck, email)
        return info.to_dict() if info else None

    return lookups.run(key, lambda: coalesce("loyalty", key, window, _load).value)


@require_GET
def lookup(request, slug: str):
    foodtruck = get_object_or_404(Foodtruck, slug=slug, is_active=True)
    if not foodtruck.loyalty_enabled:
        return JsonResponse({"enabled": False, "loyalty": None})
    email = services.normalize_email(request.GET.get("email"))
    try:
        validate_email(email)
    except ValidationError:
        return JsonResponse({"enabled": True, "loyalty": None})
    return JsonResponse({"enabled": True, "loyalty": _lookup(foodtruck, email)})


@require_POST
def opt_in(request, slug: str):
    foodtruck = get_object_or_404(Foodtruck, slug=slug, is_active=True)
    if not foodtruck.loyalty_enabled:
        return JsonResponse({"error": "Programme de fidélité indisponible."}, status=422)
    try:
        data = json.loads(request.body or b"{}") if request.content_type == "application/json" else request.POST
        email = services.normalize_email(data.get("email"))
        validate_email(email)
    except (ValueError, ValidationError):
        return JsonResponse({"error": "Adresse e-mail invalide."}, status=422)
    wants = str(data.get("opt_in", True)).lower() in ("1", "true", "yes", "on")
    services.set_opt_in(foodtruck, email, name=(data.get("name") or "").strip(), opt_in=wants)
    forget("loyalty", f"{foodtruck.id}:{email}")
    info = services.get_loyalty_info(foodtruck, email)
    log.info("[loyalty] opt-in updated for %s on %s", email, foodtruck.slug)
    return JsonResponse({"enabled": True, "loyalty": info.to_dict() if info else None})
