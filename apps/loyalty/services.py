"""Customer loyalty balances per (foodtruck, email).

Points are earned on confirmed orders and spent at submission; the discount itself is a pure
function of the balance and the truck's program settings.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from apps.menu.models import Foodtruck

from .models import CustomerLoyalty, LoyaltyTransaction

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomerLoyaltyInfo:
    customer_id: str | None
    email: str
    loyalty_points: int
    threshold: int
    reward: int
    allow_multiple: bool
    points_per_euro: int
    opt_in: bool

    @property
    def can_redeem(self) -> bool:
        return self.opt_in and self.threshold > 0 and self.loyalty_points >= self.threshold

    @property
    def redeemable_count(self) -> int:
        if not self.can_redeem:
            return 0
        if self.allow_multiple:
            return self.loyalty_points // self.threshold
        return 1

    @property
    def max_discount(self) -> int:
        return self.reward * self.redeemable_count

    @property
    def progress_percent(self) -> int:
        if self.threshold <= 0:
            return 0
        return min(100, self.loyalty_points * 100 // self.threshold)

    def to_dict(self) -> dict:
        return {
            "email": self.email,
            "loyalty_points": self.loyalty_points,
            "threshold": self.threshold,
            "reward": self.reward,
            "allow_multiple": self.allow_multiple,
            "points_per_euro": self.points_per_euro,
            "opt_in": self.opt_in,
            "can_redeem": self.can_redeem,
            "redeemable_count": self.redeemable_count,
            "max_discount": self.max_discount,
            "progress_percent": self.progress_percent,
        }


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def _info(foodtruck: Foodtruck, customer: CustomerLoyalty | None, email: str) -> CustomerLoyaltyInfo:
    return CustomerLoyaltyInfo(
        customer_id=str(customer.id) if customer else None,
        email=email,
        loyalty_points=customer.loyalty_points if customer else 0,
        threshold=foodtruck.loyalty_threshold,
        reward=foodtruck.loyalty_reward_cents,
        allow_multiple=foodtruck.loyalty_allow_multiple,
        points_per_euro=foodtruck.loyalty_points_per_euro,
        opt_in=customer.loyalty_opt_in if customer else False,
    )


def get_loyalty_info(foodtruck: Foodtruck, email: str | None) -> CustomerLoyaltyInfo | None:
    """Balance for ``email``; None when the program is off or the email is blank."""
    email = normalize_email(email)
    if not foodtruck.loyalty_enabled or not email:
        return None
    customer = CustomerLoyalty.objects.filter(foodtruck=foodtruck, email=email).first()
    return _info(foodtruck, customer, email)


def calculate_loyalty_discount(info: CustomerLoyaltyInfo | None, use_reward: bool) -> tuple[int, int]:
    """Return ``(discount_cents, reward_count)``; nothing unless the customer asked for it."""
    if info is None or not use_reward or not info.can_redeem:
        return 0, 0
    count = info.redeemable_count
    return info.reward * count, count


def points_for(total_cents: int, points_per_euro: int) -> int:
    return max(0, int(total_cents)) * int(points_per_euro) // 100


def set_opt_in(foodtruck: Foodtruck, email: str, *, name: str = "", phone: str = "", opt_in: bool = True) -> CustomerLoyalty:
    email = normalize_email(email)
    customer, created = CustomerLoyalty.objects.get_or_create(
        foodtruck=foodtruck, email=email, defaults={"name": name, "phone": phone, "loyalty_opt_in": opt_in}
    )
    if not created:
        customer.loyalty_opt_in = opt_in
        if name:
            customer.name = name
        if phone:
            customer.phone = phone
        customer.save(update_fields=["loyalty_opt_in", "name", "phone", "updated_at"])
    return customer


def redeem(order, count: int) -> int:
    """Spend ``count`` rewards for ``order``; must run inside the submission transaction."""
    if count <= 0:
        return 0
    foodtruck = order.foodtruck
    email = normalize_email(order.customer_email)
    customer = CustomerLoyalty.objects.select_for_update().filter(foodtruck=foodtruck, email=email).first()
    needed = foodtruck.loyalty_threshold * count
    if customer is None or not customer.loyalty_opt_in or customer.loyalty_points < needed:
        raise ValidationError("Points de fidélité insuffisants")
    customer.loyalty_points -= needed
    customer.save(update_fields=["loyalty_points", "updated_at"])
    LoyaltyTransaction.objects.create(customer=customer, order=order, kind="redeem", points=-needed)
    log.info("[loyalty] redeemed %s points for order %s", needed, order.public_code)
    return needed


def credit_points(order) -> int:
    """Credit points earned by a confirmed order; a second call for the same order is a no-op."""
    foodtruck = order.foodtruck
    if not foodtruck.loyalty_enabled or order.status != "confirmed":
        return 0
    email = normalize_email(order.customer_email)
    points = points_for(order.total_cents, foodtruck.loyalty_points_per_euro)
    if points <= 0:
        return 0
    with transaction.atomic():
        customer = CustomerLoyalty.objects.select_for_update().filter(foodtruck=foodtruck, email=email).first()
        if customer is None or not customer.loyalty_opt_in:
            return 0
        if LoyaltyTransaction.objects.filter(order=order, kind="earn").exists():
            return 0
        try:
            with transaction.atomic():
                LoyaltyTransaction.objects.create(customer=customer, order=order, kind="earn", points=points)
        except IntegrityError:
            log.info("[loyalty] order %s already credited", order.public_code)
            return 0
        customer.loyalty_points += points
        customer.lifetime_points += points
        customer.save(update_fields=["loyalty_points", "lifetime_points", "updated_at"])
    log.info("[loyalty] credited %s points to %s for order %s", points, email, order.public_code)
    return points


def schedule_credit(order) -> None:
    """Queue point crediting once the surrounding transaction commits."""
    from .tasks import credit_loyalty_points

    order_id = str(order.id)

    def _dispatch():
        try:
            credit_loyalty_points.delay(order_id)
        except Exception:
            log.exception("[loyalty] failed to queue credit for order %s", order_id)

    transaction.on_commit(_dispatch)
