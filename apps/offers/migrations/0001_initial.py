from django.db import migrations, models
import django.core.validators
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("menu", "0001_initial"),
        ("orders", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Offer",
            fields=[
                ("id", models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=120)),
                ("description", models.TextField(blank=True)),
                ("offer_type", models.CharField(choices=[("bundle", "Formule"), ("buy_x_get_y", "X achetés = Y offert"), ("threshold_discount", "Remise au palier"), ("promo_code", "Code promo")], max_length=20)),
                ("config", models.JSONField(blank=True, default=dict)),
                ("code", models.CharField(blank=True, max_length=40, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("start_date", models.DateTimeField(blank=True, null=True)),
                ("end_date", models.DateTimeField(blank=True, null=True)),
                ("time_start", models.TimeField(blank=True, null=True)),
                ("time_end", models.TimeField(blank=True, null=True)),
                ("days_of_week", models.JSONField(blank=True, default=list)),
                ("max_uses", models.PositiveIntegerField(blank=True, null=True)),
                ("max_uses_per_customer", models.PositiveIntegerField(blank=True, null=True)),
                ("current_uses", models.PositiveIntegerField(default=0)),
                ("total_discount_given_cents", models.PositiveIntegerField(default=0)),
                ("stackable", models.BooleanField(default=False)),
                ("display_order", models.PositiveIntegerField(default=0)),
                ("foodtruck", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="offers", to="menu.foodtruck")),
            ],
            options={
                "ordering": ["display_order", "created_at"],
                "indexes": [models.Index(fields=["foodtruck", "offer_type", "is_active"], name="offers_truck_type_idx")],
                "constraints": [models.UniqueConstraint(condition=models.Q(("code", None), _negated=True), fields=("foodtruck", "code"), name="uniq_offer_code_per_truck")],
            },
        ),
        migrations.CreateModel(
            name="OfferItem",
            fields=[
                ("id", models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("quantity", models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ("menu_item", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="+", to="menu.menuitem")),
                ("offer", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="offer_items", to="offers.offer")),
            ],
            options={
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="OfferUse",
            fields=[
                ("id", models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("customer_email", models.EmailField(max_length=254)),
                ("discount_cents", models.PositiveIntegerField(default=0)),
                ("offer", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="uses", to="offers.offer")),
                ("order", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="offer_uses", to="orders.order")),
            ],
            options={
                "indexes": [models.Index(fields=["offer", "customer_email"], name="offers_use_email_idx")],
            },
        ),
    ]
