from __future__ import annotations

import datetime as dt
from decimal import ROUND_HALF_UP, Decimal

from .types import PERCENTAGE, PROMO_CODE, AmountDiscountConfig, OfferSnapshot, PromoCodeResult

MSG_INVALID = "Code promo invalide"
MSG_INACTIVE = "Ce code promo n'est plus actif"
MSG_NOT_STARTED = "Ce code promo n'est pas encore actif"
MSG_EXPIRED = "Ce code promo a expiré"
MSG_MIN_ORDER = "Commande minimum de {amount}€ requise pour ce code"
MSG_LIMIT_REACHED = "Ce code promo a atteint sa limite d'utilisation"
MSG_ALREADY_USED = "Vous avez déjà utilisé ce code promo"


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def normalize_email(email: str | None, anonymous: str) -> str:
    email = (email or "").strip().lower()
    return email or anonymous


def amount_discount(config: AmountDiscountConfig, base: int) -> int:
    """Percentage (rounded half-up, capped by ``max_discount``) or fixed amount off ``base``."""
    base = max(0, int(base))
    if config.discount_type == PERCENTAGE:
        discount = round_half_up(Decimal(base) * config.discount_value / 100)
        if config.max_discount:
            discount = min(discount, config.max_discount)
    else:
        discount = min(int(config.discount_value), base)
    return max(0, discount)


def evaluate_promo_code(
    offer: OfferSnapshot | None,
    *,
    subtotal: int,
    at: dt.datetime,
    customer_uses: int = 0,
) -> PromoCodeResult:
    """Check a promo code against an order subtotal; failures come back as messages."""
    if offer is None or offer.offer_type != PROMO_CODE:
        return PromoCodeResult(is_valid=False, error=MSG_INVALID)
    config: AmountDiscountConfig = offer.config
    if not offer.is_active:
        return PromoCodeResult(is_valid=False, code=config.code, error=MSG_INACTIVE)
    if offer.start_date is not None and offer.start_date > at:
        return PromoCodeResult(is_valid=False, code=config.code, error=MSG_NOT_STARTED)
    if offer.end_date is not None and offer.end_date < at:
        return PromoCodeResult(is_valid=False, code=config.code, error=MSG_EXPIRED)
    if config.min_amount and subtotal < config.min_amount:
        amount = f"{config.min_amount / 100:.2f}"
        return PromoCodeResult(is_valid=False, code=config.code, error=MSG_MIN_ORDER.format(amount=amount))
    if offer.max_uses is not None and offer.current_uses >= offer.max_uses:
        return PromoCodeResult(is_valid=False, code=config.code, error=MSG_LIMIT_REACHED)
    if offer.max_uses_per_customer is not None and customer_uses >= offer.max_uses_per_customer:
        return PromoCodeResult(is_valid=False, code=config.code, error=MSG_ALREADY_USED)
    return PromoCodeResult(
        is_valid=True,
        promo_code_id=offer.id,
        code=config.code,
        discount_type=config.discount_type,
        discount_value=config.discount_value,
        max_discount=config.max_discount,
        discount=amount_discount(config, subtotal),
    )
