from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("offers", "0001_initial"),
    ]

    operations = [
        migrations.AlterField(
            model_name="offer",
            name="offer_type",
            field=models.CharField(
                choices=[
                    ("bundle", "Formule"),
                    ("buy_x_get_y", "X achetés = Y offert"),
                    ("threshold_discount", "Remise au palier"),
                    ("happy_hour", "Happy hour"),
                    ("promo_code", "Code promo"),
                ],
                max_length=20,
            ),
        ),
    ]
