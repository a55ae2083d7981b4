from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models


class ExpenseCategory(models.TextChoices):
    TRAVEL = "travel", "Travel"
    FOOD = "food", "Food"
    ACCOMMODATION = "accommodation", "Accommodation"
    OFFICE_SUPPLIES = "office_supplies", "Office Supplies"
    OTHERS = "others", "Others"


class ExpenseRecord(models.Model):
    """An expense submitted by an employee. Records are final once created."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="expense_records",
    )
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
    )
    category = models.CharField(max_length=20, choices=ExpenseCategory.choices, db_index=True)
    expense_date = models.DateField()
    description = models.TextField()
    submitted_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = "expense_records"
        ordering = ["-submitted_at", "-id"]
        indexes = [
            models.Index(fields=["user", "category"], name="expense_rec_user_id_2b7c4e_idx"),
        ]

    def __str__(self):
        return f"{self.category} {self.amount} by {self.user_id}"
