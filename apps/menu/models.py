from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils.text import slugify

from apps.common.models import BaseModel


class Foodtruck(BaseModel):
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="foodtrucks"
    )
    name = models.CharField(max_length=120)
    slug = models.SlugField(max_length=120, unique=True)
    is_active = models.BooleanField(default=True)
    # Ordering
    slot_interval = models.PositiveIntegerField(default=15)
    max_orders_per_slot = models.PositiveIntegerField(default=999)
    allow_advance_orders = models.BooleanField(default=True)
    advance_order_days = models.PositiveIntegerField(default=7)
    allow_asap_orders = models.BooleanField(default=False)
    min_preparation_time = models.PositiveIntegerField(default=15)
    auto_accept_orders = models.BooleanField(default=False)
    # Offers
    offers_stackable = models.BooleanField(default=False)
    promo_codes_stackable = models.BooleanField(default=True)
    show_promo_section = models.BooleanField(default=True)
    # Loyalty
    loyalty_enabled = models.BooleanField(default=False)
    loyalty_threshold = models.PositiveIntegerField(default=100, validators=[MinValueValidator(1)])
    loyalty_reward_cents = models.PositiveIntegerField(default=500)
    loyalty_allow_multiple = models.BooleanField(default=False)
    loyalty_points_per_euro = models.PositiveIntegerField(default=1)

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name)[:120]
        super().save(*args, **kwargs)


class Category(BaseModel):
    foodtruck = models.ForeignKey(Foodtruck, on_delete=models.CASCADE, related_name="categories")
    name = models.CharField(max_length=120)
    display_order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        indexes = [models.Index(fields=["foodtruck", "display_order"], name="menu_cat_truck_order_idx")]
        verbose_name_plural = "categories"

    def __str__(self):
        return self.name


class CategoryOptionGroup(BaseModel):
    category = models.ForeignKey(Category, on_delete=models.CASCADE, related_name="option_groups")
    name = models.CharField(max_length=120)
    is_required = models.BooleanField(default=False)
    is_multiple = models.BooleanField(default=False)
    display_order = models.PositiveIntegerField(default=0)

    class Meta:
        indexes = [models.Index(fields=["category", "display_order"], name="menu_grp_cat_order_idx")]

    def __str__(self):
        return f"{self.category} / {self.name}"


class CategoryOption(BaseModel):
    group = models.ForeignKey(CategoryOptionGroup, on_delete=models.CASCADE, related_name="options")
    name = models.CharField(max_length=120)
    # Size group: added to the item price to get the size price. Other groups: surcharge.
    price_modifier_cents = models.IntegerField(default=0)
    is_available = models.BooleanField(default=True)
    is_default = models.BooleanField(default=False)
    display_order = models.PositiveIntegerField(default=0)

    class Meta:
        indexes = [models.Index(fields=["group", "display_order"], name="menu_opt_grp_order_idx")]

    def __str__(self):
        return self.name


class MenuItem(BaseModel):
    foodtruck = models.ForeignKey(Foodtruck, on_delete=models.CASCADE, related_name="menu_items")
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True, related_name="items")
    name = models.CharField(max_length=160)
    description = models.TextField(blank=True)
    price_cents = models.IntegerField(validators=[MinValueValidator(0)])
    is_available = models.BooleanField(default=True)
    is_archived = models.BooleanField(default=False)
    is_daily_special = models.BooleanField(default=False)
    display_order = models.PositiveIntegerField(default=0)
    allergens = models.JSONField(default=list, blank=True)
    # Option ids hidden for this item
    disabled_options = models.JSONField(default=list, blank=True)
    # "optionId" or "optionId:sizeId" -> absolute price in cents
    option_prices = models.JSONField(default=dict, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["foodtruck", "category", "is_available"], name="menu_item_truck_cat_idx"),
        ]

    def __str__(self):
        return self.name
