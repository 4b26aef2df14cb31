from django.db import models

from apps.common.models import BaseModel


class CustomerLoyalty(BaseModel):
    foodtruck = models.ForeignKey("menu.Foodtruck", on_delete=models.CASCADE, related_name="loyalty_customers")
    # Stored lower-cased
    email = models.EmailField()
    name = models.CharField(max_length=160, blank=True)
    phone = models.CharField(max_length=40, blank=True)
    loyalty_points = models.PositiveIntegerField(default=0)
    lifetime_points = models.PositiveIntegerField(default=0)
    loyalty_opt_in = models.BooleanField(default=False)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["foodtruck", "email"], name="uniq_loyalty_email_per_truck"),
        ]

    def __str__(self):
        return f"{self.email} ({self.loyalty_points})"

    def save(self, *args, **kwargs):
        self.email = (self.email or "").strip().lower()
        super().save(*args, **kwargs)


class LoyaltyTransaction(BaseModel):
    KIND_CHOICES = [("earn", "Gain"), ("redeem", "Utilisation")]

    customer = models.ForeignKey(CustomerLoyalty, on_delete=models.CASCADE, related_name="transactions")
    order = models.ForeignKey("orders.Order", on_delete=models.SET_NULL, null=True, blank=True, related_name="loyalty_transactions")
    kind = models.CharField(max_length=10, choices=KIND_CHOICES)
    # Positive for earn, negative for redeem
    points = models.IntegerField()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["order", "kind"], name="uniq_loyalty_tx_per_order", condition=~models.Q(order=None)
            ),
        ]
        ordering = ["-created_at"]
