from datetime import timedelta
from decimal import Decimal

from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.test import APITestCase

from accounts.models import User
from expenses.models import ExpenseRecord
from expenses.services import list_mine, submit_expense


class ExpenseServiceTests(TestCase):
    def setUp(self):
        self.today = timezone.localdate()
        self.user = User.objects.create_user(email="employee@example.com", password="secret123")
        self.other = User.objects.create_user(email="other@example.com", password="secret123")

    def _submit(self, **overrides):
        data = {
            "user": self.user,
            "amount": Decimal("42.50"),
            "category": "travel",
            "expense_date": self.today,
            "description": "Taxi to client site",
        }
        data.update(overrides)
        return submit_expense(**data)

    def test_submit_creates_record(self):
        record = self._submit()
        self.assertEqual(record.amount, Decimal("42.50"))
        self.assertEqual(record.user, self.user)
        self.assertIsNotNone(record.submitted_at)

    def test_non_positive_amount_is_rejected(self):
        for amount in (Decimal("0"), Decimal("-5.00")):
            with self.assertRaises(ValidationError):
                self._submit(amount=amount)
        self.assertFalse(ExpenseRecord.objects.exists())

    def test_unknown_category_and_blank_description_are_rejected(self):
        with self.assertRaises(ValidationError):
            self._submit(category="entertainment")
        with self.assertRaises(ValidationError):
            self._submit(description="  ")

    def test_future_date_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self._submit(expense_date=self.today + timedelta(days=1))
        self.assertIn("expense_date", ctx.exception.detail)

    @override_settings(EXPENSES_MAX_BACKDATE_DAYS=30)
    def test_backdate_limit(self):
        self._submit(expense_date=self.today - timedelta(days=30))
        with self.assertRaises(ValidationError):
            self._submit(expense_date=self.today - timedelta(days=31))

    def test_list_mine_is_scoped_and_newest_first(self):
        older = self._submit(category="food")
        newer = self._submit(category="travel")
        ExpenseRecord.objects.filter(id=older.id).update(submitted_at=timezone.now() - timedelta(hours=2))
        submit_expense(
            user=self.other,
            amount=Decimal("10"),
            category="food",
            expense_date=self.today,
            description="Lunch",
        )

        self.assertEqual([r.id for r in list_mine(self.user)], [newer.id, older.id])
        self.assertEqual([r.id for r in list_mine(self.user, category="food")], [older.id])


class ExpenseApiTests(APITestCase):
    def setUp(self):
        self.today = timezone.localdate()
        self.user = User.objects.create_user(email="employee@example.com", password="secret123")
        self.client.force_authenticate(self.user)

    def test_submit_and_history(self):
        payload = {
            "amount": "120.00",
            "category": "accommodation",
            "expense_date": self.today.isoformat(),
            "description": "Hotel night",
        }
        response = self.client.post(reverse("expenses:submit"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["data"]["amount"], "120.00")

        response = self.client.get(reverse("expenses:history"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["count"], 1)
        self.assertEqual(response.data["data"]["total_amount"], "120.00")

    def test_invalid_submission_returns_400(self):
        payload = {
            "amount": "-1.00",
            "category": "food",
            "expense_date": self.today.isoformat(),
            "description": "Refund?",
        }
        response = self.client.post(reverse("expenses:submit"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data["success"])
        self.assertIn("amount", response.data["errors"])

    def test_unknown_category_filter_returns_400(self):
        response = self.client.get(reverse("expenses:history"), {"category": "gifts"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_requires_authentication(self):
        self.client.force_authenticate(None)
        response = self.client.get(reverse("expenses:history"))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
