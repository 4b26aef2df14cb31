from django.db import migrations, models
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
            name="CustomerLoyalty",
            fields=[
                ("id", models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("email", models.EmailField(max_length=254)),
                ("name", models.CharField(blank=True, max_length=160)),
                ("phone", models.CharField(blank=True, max_length=40)),
                ("loyalty_points", models.PositiveIntegerField(default=0)),
                ("lifetime_points", models.PositiveIntegerField(default=0)),
                ("loyalty_opt_in", models.BooleanField(default=False)),
                ("foodtruck", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="loyalty_customers", to="menu.foodtruck")),
            ],
            options={
                "constraints": [models.UniqueConstraint(fields=("foodtruck", "email"), name="uniq_loyalty_email_per_truck")],
            },
        ),
        migrations.CreateModel(
            name="LoyaltyTransaction",
            fields=[
                ("id", models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("kind", models.CharField(choices=[("earn", "Gain"), ("redeem", "Utilisation")], max_length=10)),
                ("points", models.IntegerField()),
                ("customer", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="transactions", to="loyalty.customerloyalty")),
                ("order", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="loyalty_transactions", to="orders.order")),
            ],
            options={
                "ordering": ["-created_at"],
                "constraints": [models.UniqueConstraint(condition=models.Q(("order", None), _negated=True), fields=("order", "kind"), name="uniq_loyalty_tx_per_order")],
            },
        ),
    ]
