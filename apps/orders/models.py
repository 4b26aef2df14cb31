from django.core.validators import MinValueValidator
from django.db import models

from apps.common.models import BaseModel


class Order(BaseModel):
    STATUS_CHOICES = [
        ("pending", "En attente"),
        ("confirmed", "Confirmée"),
        ("preparing", "En préparation"),
        ("ready", "Prête"),
        ("picked_up", "Retirée"),
        ("cancelled", "Annulée"),
    ]

    foodtruck = models.ForeignKey("menu.Foodtruck", on_delete=models.CASCADE, related_name="orders")
    public_code = models.CharField(max_length=12, unique=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="pending")
    customer_name = models.CharField(max_length=160)
    customer_email = models.EmailField()
    customer_phone = models.CharField(max_length=40, blank=True)
    pickup_time = models.DateTimeField()
    is_asap = models.BooleanField(default=False)
    subtotal_cents = models.IntegerField(validators=[MinValueValidator(0)])
    offer_discount_cents = models.IntegerField(default=0, validators=[MinValueValidator(0)])
    promo_discount_cents = models.IntegerField(default=0, validators=[MinValueValidator(0)])
    loyalty_discount_cents = models.IntegerField(default=0, validators=[MinValueValidator(0)])
    total_cents = models.IntegerField(validators=[MinValueValidator(0)])
    promo_code = models.CharField(max_length=40, blank=True)
    promo_offer_id = models.CharField(max_length=36, blank=True)
    loyalty_reward_count = models.PositiveIntegerField(default=0)
    # Priced cart exactly as computed at submission
    pricing_json = models.JSONField(default=dict, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        indexes = [models.Index(fields=["foodtruck", "status", "created_at"], name="orders_truck_status_idx")]

    def __str__(self):
        return self.public_code

    @property
    def discount_cents(self) -> int:
        return self.offer_discount_cents + self.promo_discount_cents + self.loyalty_discount_cents

    def save(self, *args, **kwargs):
        from apps.common.codes import generate_unique_code

        is_new = self._state.adding
        prev_status = None
        should_track_status = True
        source = getattr(self, "_status_change_source", None)
        note = getattr(self, "_status_change_note", "")
        if not is_new and self.pk:
            update_fields = kwargs.get("update_fields")
            should_track_status = update_fields is None or "status" in update_fields
            if should_track_status:
                prev_status = type(self).objects.filter(pk=self.pk).values_list("status", flat=True).first()

        if not self.public_code:
            def _exists(code: str) -> bool:
                return type(self).objects.filter(public_code=code).exists()

            self.public_code = generate_unique_code(length=6, prefix="F", exists=_exists)
        super().save(*args, **kwargs)
        for attr in ("_status_change_source", "_status_change_note"):
            if hasattr(self, attr):
                delattr(self, attr)
        if is_new:
            OrderStatusChange.objects.create(order=self, status=self.status, source=source or "initial", note=note or "")
        elif should_track_status and prev_status != self.status:
            OrderStatusChange.objects.create(order=self, status=self.status, source=source or "", note=note or "")

    def set_status(self, status: str, *, source: str | None = None, note: str = "") -> None:
        self.status = status
        if source:
            self._status_change_source = source
        if note:
            self._status_change_note = note
        self.save(update_fields=["status", "updated_at"])


class OrderItem(BaseModel):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    menu_item = models.ForeignKey("menu.MenuItem", on_delete=models.SET_NULL, null=True, blank=True)
    name_snapshot = models.CharField(max_length=160)
    qty = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    unit_price_cents_snapshot = models.IntegerField(validators=[MinValueValidator(0)])
    line_subtotal_cents = models.IntegerField(validators=[MinValueValidator(0)])
    notes = models.CharField(max_length=200, blank=True)
    bundle_id = models.CharField(max_length=36, blank=True)
    bundle_name = models.CharField(max_length=120, blank=True)
    offer_id = models.CharField(max_length=36, blank=True)
    offer_role = models.CharField(max_length=10, blank=True)


class OrderItemOption(BaseModel):
    order_item = models.ForeignKey(OrderItem, on_delete=models.CASCADE, related_name="options")
    option = models.ForeignKey("menu.CategoryOption", on_delete=models.SET_NULL, null=True, blank=True)
    name_snapshot = models.CharField(max_length=120)
    price_modifier_cents_snapshot = models.IntegerField(default=0)
    is_size_option = models.BooleanField(default=False)


class OrderAppliedOffer(BaseModel):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="applied_offers")
    offer_id = models.CharField(max_length=36)
    offer_name = models.CharField(max_length=120)
    offer_type = models.CharField(max_length=20)
    times_applied = models.PositiveIntegerField(default=1)
    discount_cents = models.IntegerField(default=0, validators=[MinValueValidator(0)])
    items_consumed = models.JSONField(default=list, blank=True)
    free_item_name = models.CharField(max_length=160, blank=True)


class OrderStatusChange(BaseModel):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="status_changes")
    status = models.CharField(max_length=20, choices=Order.STATUS_CHOICES)
    source = models.CharField(max_length=32, blank=True)
    note = models.CharField(max_length=200, blank=True)

    class Meta:
        indexes = [models.Index(fields=["order", "created_at"], name="orders_status_chg_idx")]
        ordering = ["created_at"]
