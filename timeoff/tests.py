import os
import threading
from datetime import timedelta
from io import StringIO
from smtplib import SMTPException
from unittest import mock, skipUnless

from django.core import mail
from django.core.management import call_command
from django.db import connection
from django.template.loader import get_template
from django.test import TestCase, TransactionTestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError
from rest_framework.test import APITestCase

from accounts.models import Role, TeamAssignment, User
from timeoff.exceptions import InsufficientBalance, InvalidState
from timeoff.models import LeaveBalance, LeaveLedgerEntry, LeaveRequest, LeaveStatus, count_leave_days
from timeoff.services import (
    adjust_allotment,
    apply_leave,
    cancel_leave,
    decide_leave,
    get_balance,
    get_leave,
    leave_summary,
    list_mine,
    list_pending_for_manager,
    reserve_or_deduct,
    team_calendar,
    team_members,
    update_leave,
)


def make_user(email, role=Role.EMPLOYEE, **extra):
    return User.objects.create_user(
        email=email,
        password="secret123",
        first_name=email.split("@")[0].title(),
        role=role,
        **extra,
    )


@override_settings(TIMEOFF_NOTIFICATIONS_ASYNC=False)
class LeaveServiceTestBase(TestCase):
    def setUp(self):
        self.today = timezone.localdate()
        self.admin = make_user("admin@example.com", Role.ADMIN)
        self.manager = make_user("manager@example.com", Role.MANAGER)
        self.other_manager = make_user("other.manager@example.com", Role.MANAGER)
        self.employee = make_user("employee@example.com")
        self.outsider = make_user("outsider@example.com")
        TeamAssignment.objects.create(manager=self.manager, employee=self.employee)
        TeamAssignment.objects.create(manager=self.other_manager, employee=self.outsider)

    def _apply(self, user=None, leave_type="casual", offset=7, length=3, **kwargs):
        start = self.today + timedelta(days=offset)
        return apply_leave(
            user=user or self.employee,
            leave_type=leave_type,
            start_date=start,
            end_date=start + timedelta(days=length - 1),
            reason=kwargs.pop("reason", "Family event"),
            **kwargs,
        )

    def _remaining(self, leave, user=None):
        return get_balance(user or self.employee, leave.period_year)[leave.leave_type]


class ApplyLeaveTests(LeaveServiceTestBase):
    def test_day_count_is_inclusive_calendar_days(self):
        for length in (1, 2, 7, 30):
            start = self.today + timedelta(days=40 * length)
            end = start + timedelta(days=length - 1)
            self.assertEqual(count_leave_days(start, end), (end - start).days + 1)

        # A Friday-to-Monday span counts the weekend.
        start = self.today + timedelta(days=7)
        while start.weekday() != 4:
            start += timedelta(days=1)
        leave = apply_leave(
            user=self.employee,
            leave_type="casual",
            start_date=start,
            end_date=start + timedelta(days=3),
            reason="Long weekend",
        )
        self.assertEqual(leave.days, 4)

    def test_apply_creates_pending_request_without_deducting(self):
        leave = self._apply(length=3)
        self.assertEqual(leave.status, LeaveStatus.PENDING)
        self.assertEqual(leave.days, 3)
        self.assertEqual(self._remaining(leave), 12)
        self.assertFalse(LeaveLedgerEntry.objects.exists())

    def test_inverted_range_is_rejected(self):
        start = self.today + timedelta(days=10)
        with self.assertRaises(ValidationError) as ctx:
            apply_leave(
                user=self.employee,
                leave_type="casual",
                start_date=start,
                end_date=start - timedelta(days=1),
                reason="Oops",
            )
        self.assertIn("end_date", ctx.exception.detail)
        self.assertFalse(LeaveRequest.objects.exists())

    def test_blank_reason_and_unknown_type_are_rejected(self):
        with self.assertRaises(ValidationError):
            self._apply(reason="   ")
        with self.assertRaises(ValidationError):
            self._apply(leave_type="vacation")

    def test_past_start_date_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self._apply(offset=-2, length=1)
        self.assertIn("start_date", ctx.exception.detail)

    @override_settings(TIMEOFF_ALLOW_BACKDATED_REQUESTS=True)
    def test_past_start_date_allowed_when_configured(self):
        leave = self._apply(offset=-2, length=1)
        self.assertEqual(leave.status, LeaveStatus.PENDING)

    def test_span_longer_than_maximum_is_rejected(self):
        with self.assertRaises(ValidationError):
            self._apply(length=31)

    def test_overlapping_request_is_rejected(self):
        self._apply(offset=7, length=3)
        with self.assertRaises(ValidationError):
            self._apply(offset=8, length=1)

    def test_cancelled_request_does_not_block_overlap(self):
        first = self._apply(offset=7, length=3)
        cancel_leave(first.id, self.employee)
        second = self._apply(offset=8, length=1)
        self.assertEqual(second.status, LeaveStatus.PENDING)

    def test_submission_emails_the_manager(self):
        with self.captureOnCommitCallbacks(execute=True):
            self._apply()
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, [self.manager.email])
        self.assertIn("Employee", mail.outbox[0].subject)


class DecideLeaveTests(LeaveServiceTestBase):
    def test_approve_scenario_deducts_once_and_blocks_reject(self):
        leave = self._apply(length=3)
        self.assertEqual(self._remaining(leave), 12)

        leave = decide_leave(leave.id, self.manager, LeaveStatus.APPROVED, comment="Enjoy")
        self.assertEqual(leave.status, LeaveStatus.APPROVED)
        self.assertEqual(leave.decided_by, self.manager)
        self.assertIsNotNone(leave.decided_at)
        self.assertEqual(self._remaining(leave), 9)

        with self.assertRaises(InvalidState):
            decide_leave(leave.id, self.manager, LeaveStatus.REJECTED)
        leave.refresh_from_db()
        self.assertEqual(leave.status, LeaveStatus.APPROVED)
        self.assertEqual(self._remaining(leave), 9)

    def test_insufficient_balance_leaves_request_pending(self):
        leave = self._apply(leave_type="sick", length=5)
        LeaveBalance.objects.create(
            user=self.employee, leave_type="sick", year=leave.period_year, allotted=3, used=0
        )

        with self.assertRaises(InsufficientBalance) as ctx:
            decide_leave(leave.id, self.manager, LeaveStatus.APPROVED)
        self.assertEqual(ctx.exception.available, 3)
        self.assertEqual(ctx.exception.requested, 5)

        leave.refresh_from_db()
        self.assertEqual(leave.status, LeaveStatus.PENDING)
        self.assertIsNone(leave.decided_at)
        self.assertEqual(self._remaining(leave), 3)
        self.assertFalse(LeaveLedgerEntry.objects.filter(request=leave).exists())

    def test_reject_does_not_touch_balance(self):
        leave = self._apply(length=2)
        leave = decide_leave(leave.id, self.manager, LeaveStatus.REJECTED, comment="Busy week")
        self.assertEqual(leave.status, LeaveStatus.REJECTED)
        self.assertEqual(leave.manager_comment, "Busy week")
        self.assertEqual(self._remaining(leave), 12)

    def test_second_decision_fails_and_balance_is_debited_once(self):
        """
        Sequential double decision. The row lock taken by decide_leave and the
        ``uniq_ledger_entry_per_request`` constraint keep a racing decision to
        one debit; ConcurrentDecisionTests covers the threaded case.
        """
        leave = self._apply(length=2)
        decide_leave(leave.id, self.manager, LeaveStatus.APPROVED)
        with self.assertRaises(InvalidState):
            decide_leave(leave.id, self.admin, LeaveStatus.APPROVED)

        self.assertEqual(LeaveLedgerEntry.objects.filter(request=leave, entry_type="DEBIT").count(), 1)
        self.assertEqual(self._remaining(leave), 10)

    def test_reserve_or_deduct_is_idempotent_per_request(self):
        leave = self._apply(length=2)
        for _ in range(2):
            reserve_or_deduct(
                user=self.employee,
                leave_type=leave.leave_type,
                days=leave.days,
                request=leave,
                year=leave.period_year,
            )
        balance = LeaveBalance.objects.get(user=self.employee, leave_type="casual", year=leave.period_year)
        self.assertEqual(balance.used, 2)
        self.assertEqual(balance.ledger_entries.count(), 1)
        self.assertEqual(balance.ledger_entries.get().days, -2)

    def test_terminal_states_never_transition(self):
        approved = self._apply(offset=7, length=1)
        decide_leave(approved.id, self.manager, LeaveStatus.APPROVED)
        rejected = self._apply(offset=10, length=1)
        decide_leave(rejected.id, self.manager, LeaveStatus.REJECTED)
        cancelled = self._apply(offset=13, length=1)
        cancel_leave(cancelled.id, self.employee)

        for leave in (approved, rejected, cancelled):
            with self.assertRaises(InvalidState):
                decide_leave(leave.id, self.manager, LeaveStatus.APPROVED)
            with self.assertRaises(InvalidState):
                decide_leave(leave.id, self.manager, LeaveStatus.REJECTED)
            with self.assertRaises(InvalidState):
                cancel_leave(leave.id, self.employee)

    def test_manager_cannot_decide_outside_team(self):
        leave = self._apply(user=self.outsider)
        with self.assertRaises(PermissionDenied):
            decide_leave(leave.id, self.manager, LeaveStatus.APPROVED)
        leave.refresh_from_db()
        self.assertEqual(leave.status, LeaveStatus.PENDING)

    def test_admin_can_decide_any_request(self):
        leave = self._apply(user=self.outsider)
        leave = decide_leave(leave.id, self.admin, LeaveStatus.APPROVED)
        self.assertEqual(leave.status, LeaveStatus.APPROVED)

    def test_nobody_decides_their_own_request(self):
        TeamAssignment.objects.create(manager=self.admin, employee=self.manager)
        leave = self._apply(user=self.manager)
        with self.assertRaises(PermissionDenied):
            decide_leave(leave.id, self.manager, LeaveStatus.APPROVED)

    def test_employee_cannot_decide(self):
        leave = self._apply(user=self.outsider)
        with self.assertRaises(PermissionDenied):
            decide_leave(leave.id, self.employee, LeaveStatus.APPROVED)

    def test_unknown_request_raises_not_found(self):
        with self.assertRaises(NotFound):
            decide_leave(999999, self.manager, LeaveStatus.APPROVED)

    def test_decision_emails_the_employee(self):
        leave = self._apply()
        mail.outbox = []
        with self.captureOnCommitCallbacks(execute=True):
            decide_leave(leave.id, self.manager, LeaveStatus.REJECTED, comment="Not this week")
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, [self.employee.email])
        self.assertIn("rejected", mail.outbox[0].subject)
        self.assertIn("Not this week", mail.outbox[0].body)

    def test_email_failure_does_not_roll_back_decision(self):
        leave = self._apply(length=2)
        with mock.patch("timeoff.notifications.send_mail", side_effect=SMTPException("down")):
            with self.captureOnCommitCallbacks(execute=True):
                decide_leave(leave.id, self.manager, LeaveStatus.APPROVED)
        leave.refresh_from_db()
        self.assertEqual(leave.status, LeaveStatus.APPROVED)
        self.assertEqual(self._remaining(leave), 10)

    def test_email_templates_ship_with_the_app(self):
        app_dir = os.path.join("timeoff", "templates", "emails")
        for name in ("leave_submitted", "leave_decided", "leave_cancelled"):
            for ext in ("txt", "html"):
                template = get_template(f"emails/{name}.{ext}")
                self.assertIn(app_dir, template.origin.name)


@skipUnless(connection.features.has_select_for_update, "Needs row-level locking (e.g. PostgreSQL).")
@override_settings(TIMEOFF_NOTIFICATIONS_ASYNC=False)
class ConcurrentDecisionTests(TransactionTestCase):
    """Two deciders racing on one pending request."""

    def setUp(self):
        self.admin = make_user("admin@example.com", Role.ADMIN)
        self.manager = make_user("manager@example.com", Role.MANAGER)
        self.employee = make_user("employee@example.com")
        TeamAssignment.objects.create(manager=self.manager, employee=self.employee)
        start = timezone.localdate() + timedelta(days=7)
        self.leave = apply_leave(
            user=self.employee,
            leave_type="casual",
            start_date=start,
            end_date=start + timedelta(days=1),
            reason="Family event",
        )

    def test_racing_approvals_debit_once(self):
        barrier = threading.Barrier(2)
        results, errors = [], []

        def decide(decider):
            try:
                barrier.wait(timeout=5)
                results.append(decide_leave(self.leave.id, decider, LeaveStatus.APPROVED))
            except Exception as exc:
                errors.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=decide, args=(user,)) for user in (self.manager, self.admin)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        self.assertEqual(len(results), 1)
        self.assertEqual(len(errors), 1)
        self.assertIsInstance(errors[0], InvalidState)

        self.leave.refresh_from_db()
        self.assertEqual(self.leave.status, LeaveStatus.APPROVED)
        self.assertEqual(LeaveLedgerEntry.objects.filter(request=self.leave, entry_type="DEBIT").count(), 1)
        balance = LeaveBalance.objects.get(user=self.employee, leave_type="casual", year=self.leave.period_year)
        self.assertEqual(balance.used, 2)


class CancelAndUpdateLeaveTests(LeaveServiceTestBase):
    def test_owner_cancels_pending_request(self):
        leave = self._apply(length=3)
        leave = cancel_leave(leave.id, self.employee)
        self.assertEqual(leave.status, LeaveStatus.CANCELLED)
        self.assertIsNotNone(leave.cancelled_at)
        self.assertEqual(self._remaining(leave), 12)

    def test_non_owner_cannot_cancel(self):
        leave = self._apply()
        for caller in (self.outsider, self.manager, self.admin):
            with self.assertRaises(PermissionDenied):
                cancel_leave(leave.id, caller)
        leave.refresh_from_db()
        self.assertEqual(leave.status, LeaveStatus.PENDING)
        self.assertIsNone(leave.cancelled_at)

    def test_update_pending_request(self):
        leave = self._apply()
        leave = update_leave(leave.id, self.employee, reason="Wedding", contact="+1 555 0100")
        self.assertEqual(leave.reason, "Wedding")
        self.assertEqual(leave.contact_during_leave, "+1 555 0100")

    def test_update_after_decision_is_invalid(self):
        leave = self._apply()
        decide_leave(leave.id, self.manager, LeaveStatus.REJECTED)
        with self.assertRaises(InvalidState):
            update_leave(leave.id, self.employee, reason="Changed my mind")

    def test_get_leave_visibility(self):
        leave = self._apply()
        self.assertEqual(get_leave(leave.id, self.employee), leave)
        self.assertEqual(get_leave(leave.id, self.manager), leave)
        self.assertEqual(get_leave(leave.id, self.admin), leave)
        with self.assertRaises(PermissionDenied):
            get_leave(leave.id, self.other_manager)
        with self.assertRaises(PermissionDenied):
            get_leave(leave.id, self.outsider)

    def test_team_access_follows_role_not_assignment(self):
        leave = self._apply()
        self.manager.role = Role.EMPLOYEE
        self.manager.save(update_fields=["role"])

        # The stale TeamAssignment row alone grants nothing.
        with self.assertRaises(PermissionDenied):
            get_leave(leave.id, self.manager)
        with self.assertRaises(PermissionDenied):
            decide_leave(leave.id, self.manager, LeaveStatus.APPROVED)
        with self.assertRaises(PermissionDenied):
            team_members(self.manager)

        self.other_manager.role = Role.ADMIN
        self.other_manager.save(update_fields=["role"])
        self.assertEqual(get_leave(leave.id, self.other_manager), leave)
        self.assertIn(self.employee, list(team_members(self.other_manager)))
        leave.refresh_from_db()
        self.assertEqual(leave.status, LeaveStatus.PENDING)


class LeaveQueryTests(LeaveServiceTestBase):
    def test_list_mine_newest_first_with_status_filter(self):
        first = self._apply(offset=7, length=1)
        second = self._apply(offset=10, length=1)
        LeaveRequest.objects.filter(id=first.id).update(applied_at=timezone.now() - timedelta(hours=1))
        decide_leave(second.id, self.manager, LeaveStatus.REJECTED)

        self.assertEqual([l.id for l in list_mine(self.employee)], [second.id, first.id])
        self.assertEqual([l.id for l in list_mine(self.employee, status="pending")], [first.id])
        with self.assertRaises(ValidationError):
            list(list_mine(self.employee, status="archived"))

    def test_pending_list_is_team_scoped(self):
        mine = self._apply(user=self.employee)
        theirs = self._apply(user=self.outsider)

        self.assertEqual([l.id for l in list_pending_for_manager(self.manager)], [mine.id])
        self.assertEqual([l.id for l in list_pending_for_manager(self.other_manager)], [theirs.id])
        self.assertEqual(
            {l.id for l in list_pending_for_manager(self.admin)},
            {mine.id, theirs.id},
        )
        with self.assertRaises(PermissionDenied):
            list_pending_for_manager(self.employee)

    def test_leave_summary_counts(self):
        approved = self._apply(offset=7, length=2)
        decide_leave(approved.id, self.manager, LeaveStatus.APPROVED)
        self._apply(offset=12, length=1)

        summary = leave_summary(self.employee, approved.period_year)
        self.assertEqual(summary["by_status"]["approved"], 1)
        self.assertEqual(summary["approved_days_by_type"]["casual"], 2)
        self.assertEqual(summary["balance"]["casual"], 10)

    def test_team_calendar_returns_approved_leaves_in_month(self):
        leave = self._apply(offset=20, length=2)
        decide_leave(leave.id, self.manager, LeaveStatus.APPROVED)
        self._apply(offset=30, length=1)

        start = leave.start_date
        results = list(team_calendar(self.manager, start.year, start.month))
        self.assertEqual([l.id for l in results], [leave.id])
        self.assertEqual(list(team_calendar(self.other_manager, start.year, start.month)), [])


class BalanceAdjustmentTests(LeaveServiceTestBase):
    def test_admin_adjusts_allotment_with_ledger_entry(self):
        year = self.today.year
        balance = adjust_allotment(
            user=self.employee, leave_type="earned", year=year, delta=5, actor=self.admin, notes="Carry over"
        )
        self.assertEqual(balance.allotted, 20)
        self.assertEqual(get_balance(self.employee, year)["earned"], 20)
        entry = balance.ledger_entries.get()
        self.assertEqual(entry.entry_type, "ADJUSTMENT")
        self.assertEqual(entry.days, 5)

    def test_allotment_cannot_drop_below_used(self):
        leave = self._apply(length=5)
        decide_leave(leave.id, self.manager, LeaveStatus.APPROVED)
        with self.assertRaises(ValidationError):
            adjust_allotment(
                user=self.employee, leave_type="casual", year=leave.period_year, delta=-10, actor=self.admin
            )

    def test_only_admin_can_adjust(self):
        with self.assertRaises(PermissionDenied):
            adjust_allotment(user=self.employee, leave_type="casual", year=None, delta=1, actor=self.manager)


@override_settings(TIMEOFF_NOTIFICATIONS_ASYNC=False)
class LeaveApiTests(APITestCase):
    def setUp(self):
        self.today = timezone.localdate()
        self.manager = make_user("manager@example.com", Role.MANAGER)
        self.employee = make_user("employee@example.com")
        self.admin = make_user("admin@example.com", Role.ADMIN)
        TeamAssignment.objects.create(manager=self.manager, employee=self.employee)

    def _payload(self, offset=7, length=3, **overrides):
        start = self.today + timedelta(days=offset)
        payload = {
            "leave_type": "casual",
            "start_date": start.isoformat(),
            "end_date": (start + timedelta(days=length - 1)).isoformat(),
            "reason": "Family event",
        }
        payload.update(overrides)
        return payload

    def _apply(self, **kwargs):
        self.client.force_authenticate(self.employee)
        response = self.client.post(reverse("timeoff:apply"), self._payload(**kwargs), format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        return response.data["data"]

    def test_requires_authentication(self):
        response = self.client.get(reverse("timeoff:history"))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertFalse(response.data["success"])

    def test_apply_and_history(self):
        created = self._apply(length=3)
        self.assertEqual(created["status"], "pending")
        self.assertEqual(created["days"], 3)
        self.assertEqual(created["employee"]["email"], self.employee.email)

        response = self.client.get(reverse("timeoff:history"), {"status": "pending"})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["pagination"]["count"], 1)
        self.assertEqual(response.data["data"]["results"][0]["id"], created["id"])

    def test_invalid_range_returns_400_envelope(self):
        self.client.force_authenticate(self.employee)
        start = self.today + timedelta(days=5)
        response = self.client.post(
            reverse("timeoff:apply"),
            self._payload(end_date=(start - timedelta(days=2)).isoformat(), start_date=start.isoformat()),
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(response.data["success"])
        self.assertIn("end_date", response.data["errors"])

    def test_balance_endpoint(self):
        self.client.force_authenticate(self.employee)
        response = self.client.get(reverse("timeoff:balance"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["balance"], {"casual": 12, "sick": 10, "earned": 15})

    def test_cancel_by_non_owner_is_forbidden(self):
        created = self._apply()
        self.client.force_authenticate(self.manager)
        response = self.client.patch(reverse("timeoff:cancel", args=[created["id"]]))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.employee)
        response = self.client.patch(reverse("timeoff:cancel", args=[created["id"]]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["status"], "cancelled")

        response = self.client.patch(reverse("timeoff:cancel", args=[created["id"]]))
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_detail_and_update(self):
        created = self._apply()
        url = reverse("timeoff:detail", args=[created["id"]])
        response = self.client.patch(url, {"reason": "Wedding"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["reason"], "Wedding")

        self.client.force_authenticate(self.manager)
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_unknown_request_returns_404(self):
        self.client.force_authenticate(self.employee)
        response = self.client.get(reverse("timeoff:detail", args=[424242]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_employee_cannot_use_manager_endpoints(self):
        self.client.force_authenticate(self.employee)
        response = self.client.get(reverse("manager:pending"))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(response.data["success"])

    def test_manager_approves_then_cannot_reject(self):
        created = self._apply(length=3)
        self.client.force_authenticate(self.manager)

        response = self.client.get(reverse("manager:pending"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([r["id"] for r in response.data["data"]["results"]], [created["id"]])

        response = self.client.patch(reverse("manager:approve", args=[created["id"]]), {"comment": "OK"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["status"], "approved")

        response = self.client.patch(reverse("manager:reject", args=[created["id"]]), format="json")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertFalse(response.data["success"])

    def test_insufficient_balance_returns_409_with_numbers(self):
        created = self._apply(leave_type="sick", length=5)
        start_year = (self.today + timedelta(days=7)).year
        LeaveBalance.objects.create(user=self.employee, leave_type="sick", year=start_year, allotted=3)

        self.client.force_authenticate(self.manager)
        response = self.client.patch(reverse("manager:approve", args=[created["id"]]), format="json")
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["errors"]["available"], 3)
        self.assertEqual(response.data["errors"]["requested"], 5)
        self.assertEqual(LeaveRequest.objects.get(id=created["id"]).status, LeaveStatus.PENDING)

    def test_team_and_calendar(self):
        created = self._apply(offset=10, length=2)
        self.client.force_authenticate(self.manager)
        self.client.patch(reverse("manager:approve", args=[created["id"]]), format="json")

        response = self.client.get(reverse("manager:team"))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([m["email"] for m in response.data["data"]], [self.employee.email])

        start = self.today + timedelta(days=10)
        response = self.client.get(reverse("manager:calendar"), {"year": start.year, "month": start.month})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([r["id"] for r in response.data["data"]], [created["id"]])

    def test_balance_adjust_is_admin_only(self):
        payload = {"user": self.employee.id, "leave_type": "earned", "delta": 2}
        self.client.force_authenticate(self.manager)
        response = self.client.post(reverse("manager:balance-adjust"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.admin)
        response = self.client.post(reverse("manager:balance-adjust"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["remaining"], 17)


class OpenLeaveYearCommandTests(TestCase):
    def test_creates_missing_rows_and_is_rerunnable(self):
        employee = make_user("employee@example.com")
        make_user("gone@example.com", is_active=False)
        LeaveBalance.objects.create(user=employee, leave_type="casual", year=2031, allotted=20)

        out = StringIO()
        call_command("open_leave_year", "--year", "2031", stdout=out)
        self.assertIn("created 2 balance row(s)", out.getvalue())

        balances = {b.leave_type: b.allotted for b in LeaveBalance.objects.filter(user=employee, year=2031)}
        self.assertEqual(balances, {"casual": 20, "sick": 10, "earned": 15})
        self.assertFalse(LeaveBalance.objects.filter(user__email="gone@example.com").exists())

        call_command("open_leave_year", "--year", "2031", stdout=StringIO())
        self.assertEqual(LeaveBalance.objects.filter(year=2031).count(), 3)

    def test_dry_run_writes_nothing(self):
        make_user("employee@example.com")
        out = StringIO()
        call_command("open_leave_year", "--year", "2031", "--dry-run", stdout=out)
        self.assertIn("Would create 3", out.getvalue())
        self.assertFalse(LeaveBalance.objects.exists())
