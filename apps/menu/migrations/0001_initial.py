from django.conf import settings
from django.db import migrations, models
import django.core.validators
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Foodtruck",
            fields=[
                ("id", models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=120)),
                ("slug", models.SlugField(max_length=120, unique=True)),
                ("is_active", models.BooleanField(default=True)),
                ("slot_interval", models.PositiveIntegerField(default=15)),
                ("max_orders_per_slot", models.PositiveIntegerField(default=999)),
                ("allow_advance_orders", models.BooleanField(default=True)),
                ("advance_order_days", models.PositiveIntegerField(default=7)),
                ("allow_asap_orders", models.BooleanField(default=False)),
                ("min_preparation_time", models.PositiveIntegerField(default=15)),
                ("auto_accept_orders", models.BooleanField(default=False)),
                ("offers_stackable", models.BooleanField(default=False)),
                ("promo_codes_stackable", models.BooleanField(default=True)),
                ("show_promo_section", models.BooleanField(default=True)),
                ("loyalty_enabled", models.BooleanField(default=False)),
                ("loyalty_threshold", models.PositiveIntegerField(default=100, validators=[django.core.validators.MinValueValidator(1)])),
                ("loyalty_reward_cents", models.PositiveIntegerField(default=500)),
                ("loyalty_allow_multiple", models.BooleanField(default=False)),
                ("loyalty_points_per_euro", models.PositiveIntegerField(default=1)),
                ("owner", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="foodtrucks", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="Category",
            fields=[
                ("id", models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=120)),
                ("display_order", models.PositiveIntegerField(default=0)),
                ("is_active", models.BooleanField(default=True)),
                ("foodtruck", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="categories", to="menu.foodtruck")),
            ],
            options={
                "verbose_name_plural": "categories",
                "indexes": [models.Index(fields=["foodtruck", "display_order"], name="menu_cat_truck_order_idx")],
            },
        ),
        migrations.CreateModel(
            name="CategoryOptionGroup",
            fields=[
                ("id", models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=120)),
                ("is_required", models.BooleanField(default=False)),
                ("is_multiple", models.BooleanField(default=False)),
                ("display_order", models.PositiveIntegerField(default=0)),
                ("category", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="option_groups", to="menu.category")),
            ],
            options={
                "indexes": [models.Index(fields=["category", "display_order"], name="menu_grp_cat_order_idx")],
            },
        ),
        migrations.CreateModel(
            name="CategoryOption",
            fields=[
                ("id", models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=120)),
                ("price_modifier_cents", models.IntegerField(default=0)),
                ("is_available", models.BooleanField(default=True)),
                ("is_default", models.BooleanField(default=False)),
                ("display_order", models.PositiveIntegerField(default=0)),
                ("group", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="options", to="menu.categoryoptiongroup")),
            ],
            options={
                "indexes": [models.Index(fields=["group", "display_order"], name="menu_opt_grp_order_idx")],
            },
        ),
        migrations.CreateModel(
            name="MenuItem",
            fields=[
                ("id", models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=160)),
                ("description", models.TextField(blank=True)),
                ("price_cents", models.IntegerField(validators=[django.core.validators.MinValueValidator(0)])),
                ("is_available", models.BooleanField(default=True)),
                ("is_archived", models.BooleanField(default=False)),
                ("is_daily_special", models.BooleanField(default=False)),
                ("display_order", models.PositiveIntegerField(default=0)),
                ("allergens", models.JSONField(blank=True, default=list)),
                ("disabled_options", models.JSONField(blank=True, default=list)),
                ("option_prices", models.JSONField(blank=True, default=dict)),
                ("category", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="items", to="menu.category")),
                ("foodtruck", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="menu_items", to="menu.foodtruck")),
            ],
            options={
                "indexes": [models.Index(fields=["foodtruck", "category", "is_available"], name="menu_item_truck_cat_idx")],
            },
        ),
    ]
