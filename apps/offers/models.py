from django.core.validators import MinValueValidator
from django.db import models

from apps.common.models import BaseModel


class Offer(BaseModel):
    TYPE_CHOICES = [
        ("bundle", "Formule"),
        ("buy_x_get_y", "X achetés = Y offert"),
        ("threshold_discount", "Remise au palier"),
        ("happy_hour", "Happy hour"),
        ("promo_code", "Code promo"),
    ]

    foodtruck = models.ForeignKey("menu.Foodtruck", on_delete=models.CASCADE, related_name="offers")
    name = models.CharField(max_length=120)
    description = models.TextField(blank=True)
    offer_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    # Shape depends on offer_type (bundle slots, buy-X-get-Y sides, amounts)
    config = models.JSONField(default=dict, blank=True)
    # Promo codes only; upper-cased copy of config["code"]
    code = models.CharField(max_length=40, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    start_date = models.DateTimeField(blank=True, null=True)
    end_date = models.DateTimeField(blank=True, null=True)
    time_start = models.TimeField(blank=True, null=True)
    time_end = models.TimeField(blank=True, null=True)
    # 0 = Sunday ... 6 = Saturday; empty means every day
    days_of_week = models.JSONField(default=list, blank=True)
    max_uses = models.PositiveIntegerField(blank=True, null=True)
    max_uses_per_customer = models.PositiveIntegerField(blank=True, null=True)
    current_uses = models.PositiveIntegerField(default=0)
    total_discount_given_cents = models.PositiveIntegerField(default=0)
    stackable = models.BooleanField(default=False)
    display_order = models.PositiveIntegerField(default=0)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["foodtruck", "code"], name="uniq_offer_code_per_truck", condition=~models.Q(code=None)
            ),
        ]
        indexes = [
            models.Index(fields=["foodtruck", "offer_type", "is_active"], name="offers_truck_type_idx"),
        ]
        ordering = ["display_order", "created_at"]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if self.offer_type == "promo_code":
            code = str((self.config or {}).get("code") or self.code or "").strip().upper()
            self.config = {**(self.config or {}), "code": code}
            self.code = code or None
        else:
            self.code = None
        super().save(*args, **kwargs)


class OfferItem(BaseModel):
    """Required item of a specific-items bundle."""

    offer = models.ForeignKey(Offer, on_delete=models.CASCADE, related_name="offer_items")
    menu_item = models.ForeignKey("menu.MenuItem", on_delete=models.CASCADE, related_name="+")
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])


class OfferUse(BaseModel):
    offer = models.ForeignKey(Offer, on_delete=models.CASCADE, related_name="uses")
    order = models.ForeignKey("orders.Order", on_delete=models.SET_NULL, null=True, blank=True, related_name="offer_uses")
    customer_email = models.EmailField()
    discount_cents = models.PositiveIntegerField(default=0)

    class Meta:
        indexes = [models.Index(fields=["offer", "customer_email"], name="offers_use_email_idx")]
