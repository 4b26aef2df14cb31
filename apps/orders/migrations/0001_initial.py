from django.db import migrations, models
import django.core.validators
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("menu", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("public_code", models.CharField(max_length=12, unique=True)),
                ("status", models.CharField(choices=[("pending", "En attente"), ("confirmed", "Confirmée"), ("preparing", "En préparation"), ("ready", "Prête"), ("picked_up", "Retirée"), ("cancelled", "Annulée")], default="pending", max_length=20)),
                ("customer_name", models.CharField(max_length=160)),
                ("customer_email", models.EmailField(max_length=254)),
                ("customer_phone", models.CharField(blank=True, max_length=40)),
                ("pickup_time", models.DateTimeField()),
                ("is_asap", models.BooleanField(default=False)),
                ("subtotal_cents", models.IntegerField(validators=[django.core.validators.MinValueValidator(0)])),
                ("offer_discount_cents", models.IntegerField(default=0, validators=[django.core.validators.MinValueValidator(0)])),
                ("promo_discount_cents", models.IntegerField(default=0, validators=[django.core.validators.MinValueValidator(0)])),
                ("loyalty_discount_cents", models.IntegerField(default=0, validators=[django.core.validators.MinValueValidator(0)])),
                ("total_cents", models.IntegerField(validators=[django.core.validators.MinValueValidator(0)])),
                ("promo_code", models.CharField(blank=True, max_length=40)),
                ("promo_offer_id", models.CharField(blank=True, max_length=36)),
                ("loyalty_reward_count", models.PositiveIntegerField(default=0)),
                ("pricing_json", models.JSONField(blank=True, default=dict)),
                ("notes", models.TextField(blank=True)),
                ("foodtruck", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="orders", to="menu.foodtruck")),
            ],
            options={
                "indexes": [models.Index(fields=["foodtruck", "status", "created_at"], name="orders_truck_status_idx")],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                ("id", models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name_snapshot", models.CharField(max_length=160)),
                ("qty", models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ("unit_price_cents_snapshot", models.IntegerField(validators=[django.core.validators.MinValueValidator(0)])),
                ("line_subtotal_cents", models.IntegerField(validators=[django.core.validators.MinValueValidator(0)])),
                ("notes", models.CharField(blank=True, max_length=200)),
                ("bundle_id", models.CharField(blank=True, max_length=36)),
                ("bundle_name", models.CharField(blank=True, max_length=120)),
                ("offer_id", models.CharField(blank=True, max_length=36)),
                ("offer_role", models.CharField(blank=True, max_length=10)),
                ("menu_item", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to="menu.menuitem")),
                ("order", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="orders.order")),
            ],
            options={
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="OrderItemOption",
            fields=[
                ("id", models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name_snapshot", models.CharField(max_length=120)),
                ("price_modifier_cents_snapshot", models.IntegerField(default=0)),
                ("is_size_option", models.BooleanField(default=False)),
                ("option", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to="menu.categoryoption")),
                ("order_item", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="options", to="orders.orderitem")),
            ],
            options={
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="OrderAppliedOffer",
            fields=[
                ("id", models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("offer_id", models.CharField(max_length=36)),
                ("offer_name", models.CharField(max_length=120)),
                ("offer_type", models.CharField(max_length=20)),
                ("times_applied", models.PositiveIntegerField(default=1)),
                ("discount_cents", models.IntegerField(default=0, validators=[django.core.validators.MinValueValidator(0)])),
                ("items_consumed", models.JSONField(blank=True, default=list)),
                ("free_item_name", models.CharField(blank=True, max_length=160)),
                ("order", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="applied_offers", to="orders.order")),
            ],
            options={
                "abstract": False,
            },
        ),
        migrations.CreateModel(
            name="OrderStatusChange",
            fields=[
                ("id", models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("status", models.CharField(choices=[("pending", "En attente"), ("confirmed", "Confirmée"), ("preparing", "En préparation"), ("ready", "Prête"), ("picked_up", "Retirée"), ("cancelled", "Annulée")], max_length=20)),
                ("source", models.CharField(blank=True, max_length=32)),
                ("note", models.CharField(blank=True, max_length=200)),
                ("order", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="status_changes", to="orders.order")),
            ],
            options={
                "ordering": ["created_at"],
                "indexes": [models.Index(fields=["order", "created_at"], name="orders_status_chg_idx")],
            },
        ),
    ]
