import logging
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db.models import Sum
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from .models import ExpenseCategory, ExpenseRecord

logger = logging.getLogger(__name__)


def _decimal_amount(value):
    try:
        return Decimal(str(value))
    except (TypeError, ValueError, InvalidOperation):
        raise ValidationError({"amount": "Amount must be a valid number."})


def validate_expense_submission(*, amount, category, expense_date, description):
    amount = _decimal_amount(amount)
    if not amount.is_finite() or amount <= 0:
        raise ValidationError({"amount": "Amount must be greater than zero."})
    if category not in ExpenseCategory.values:
        raise ValidationError({"category": f"Unknown expense category '{category}'."})
    if not description or not str(description).strip():
        raise ValidationError({"description": "Description is required."})

    days_back = (timezone.localdate() - expense_date).days
    if days_back < 0:
        raise ValidationError({"expense_date": "Expense date cannot be in the future."})
    max_backdate = settings.EXPENSES_MAX_BACKDATE_DAYS
    if max_backdate is not None and days_back > max_backdate:
        raise ValidationError({"expense_date": f"Expenses older than {max_backdate} days cannot be submitted."})
    return amount


def submit_expense(*, user, amount, category, expense_date, description) -> ExpenseRecord:
    amount = validate_expense_submission(
        amount=amount,
        category=category,
        expense_date=expense_date,
        description=description,
    )
    record = ExpenseRecord.objects.create(
        user=user,
        amount=amount,
        category=category,
        expense_date=expense_date,
        description=description.strip(),
    )
    logger.info("User %s submitted %s expense %s (%s)", user.id, category, record.id, amount)
    return record


def list_mine(user, category=None, date_from=None, date_to=None):
    """The user's expenses, newest submission first."""
    qs = ExpenseRecord.objects.filter(user=user)
    if category:
        if category not in ExpenseCategory.values:
            raise ValidationError({"category": f"Unknown expense category '{category}'."})
        qs = qs.filter(category=category)
    if date_from:
        qs = qs.filter(expense_date__gte=date_from)
    if date_to:
        qs = qs.filter(expense_date__lte=date_to)
    return qs.order_by("-submitted_at", "-id")


def total_amount(queryset) -> Decimal:
    total = queryset.aggregate(total=Sum("amount"))["total"] or Decimal("0")
    return Decimal(str(total)).quantize(Decimal("0.01"))
