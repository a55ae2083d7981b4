from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="ExpenseRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.01"))],
                    ),
                ),
                (
                    "category",
                    models.CharField(
                        choices=[
                            ("travel", "Travel"),
                            ("food", "Food"),
                            ("accommodation", "Accommodation"),
                            ("office_supplies", "Office Supplies"),
                            ("others", "Others"),
                        ],
                        db_index=True,
                        max_length=20,
                    ),
                ),
                ("expense_date", models.DateField()),
                ("description", models.TextField()),
                ("submitted_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="expense_records",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "db_table": "expense_records",
                "ordering": ["-submitted_at", "-id"],
                "indexes": [
                    models.Index(fields=["user", "category"], name="expense_rec_user_id_2b7c4e_idx"),
                ],
            },
        ),
    ]
