"""
Core helpers for leave balances, the ledger, and request transitions.
"""
import calendar
import logging
from datetime import date
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Count, Sum
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from accounts.models import Role, User
from accounts.permissions import has_role, require_role

from . import notifications
from .exceptions import InsufficientBalance, InvalidState
from .models import (
    LeaveBalance,
    LeaveLedgerEntry,
    LeaveRequest,
    LeaveStatus,
    LeaveType,
    count_leave_days,
)

logger = logging.getLogger(__name__)

MANAGING_ROLES = {Role.MANAGER, Role.ADMIN}
BLOCKING_STATUSES = [LeaveStatus.PENDING, LeaveStatus.APPROVED]


def _today() -> date:
    return timezone.localdate()


def _resolve_year(year) -> int:
    if year in (None, ''):
        return _today().year
    try:
        year = int(year)
    except (TypeError, ValueError):
        raise ValidationError({"year": "Year must be a number."})
    if year < 1900 or year > 9999:
        raise ValidationError({"year": "Year is out of range."})
    return year


def _validate_leave_type(leave_type):
    if leave_type not in LeaveType.values:
        raise ValidationError({"leave_type": f"Unknown leave type '{leave_type}'."})
    return leave_type


def default_allotment(leave_type: str) -> int:
    return int(settings.TIMEOFF_DEFAULT_ALLOTMENTS.get(leave_type, 0))


# ---------------------------------------------------------------------------
# Balance ledger
# ---------------------------------------------------------------------------

def _locked_balance(user, leave_type: str, year: int) -> LeaveBalance:
    """Fetch (creating lazily) and lock the balance row for one period."""
    LeaveBalance.objects.get_or_create(
        user=user,
        leave_type=leave_type,
        year=year,
        defaults={"allotted": default_allotment(leave_type)},
    )
    return LeaveBalance.objects.select_for_update().get(user=user, leave_type=leave_type, year=year)


def get_balance(user, year=None) -> dict:
    """
    Remaining days per leave type for the period (current year by default).
    Periods with no stored row report the configured default allotment.
    """
    year = _resolve_year(year)
    remaining = {leave_type: default_allotment(leave_type) for leave_type in LeaveType.values}
    for balance in LeaveBalance.objects.filter(user=user, year=year):
        remaining[balance.leave_type] = balance.remaining
    return remaining


def get_balance_details(user, year=None) -> list:
    """Allotted/used/remaining per leave type, without creating rows."""
    year = _resolve_year(year)
    stored = {b.leave_type: b for b in LeaveBalance.objects.filter(user=user, year=year)}
    details = []
    for leave_type in LeaveType.values:
        balance = stored.get(leave_type)
        allotted = balance.allotted if balance else default_allotment(leave_type)
        used = balance.used if balance else 0
        details.append({
            "leave_type": leave_type,
            "year": year,
            "allotted": allotted,
            "used": used,
            "remaining": allotted - used,
        })
    return details


def write_ledger_entry(
    *,
    balance: LeaveBalance,
    entry_type: str,
    days: int,
    created_by=None,
    request: Optional[LeaveRequest] = None,
    notes: str = "",
) -> LeaveLedgerEntry:
    """Create a ledger entry in an atomic, reusable way."""
    return LeaveLedgerEntry.objects.create(
        balance=balance,
        entry_type=entry_type,
        days=days,
        request=request,
        notes=notes or "",
        created_by=created_by,
    )


def reserve_or_deduct(
    *,
    user,
    leave_type: str,
    days: int,
    request: LeaveRequest,
    year: int,
    actor=None,
) -> LeaveBalance:
    """
    Deduct ``days`` from the user's balance for ``year`` and record a DEBIT.

    Must run in the same transaction as the status change it accompanies.
    Idempotent per request: a request that already carries a DEBIT is not
    charged again.
    """
    _validate_leave_type(leave_type)
    with transaction.atomic():
        balance = _locked_balance(user, leave_type, year)
        already_debited = LeaveLedgerEntry.objects.filter(request=request, entry_type="DEBIT").exists()
        if already_debited:
            return balance
        if balance.remaining < days:
            raise InsufficientBalance(leave_type=leave_type, available=balance.remaining, requested=days)
        balance.used += days
        balance.save(update_fields=["used", "updated_at"])
        write_ledger_entry(
            balance=balance,
            entry_type="DEBIT",
            days=-abs(days),
            created_by=actor,
            request=request,
            notes=f"request:{request.id}",
        )
    return balance


def adjust_allotment(*, user, leave_type: str, year, delta: int, actor, notes: str = "") -> LeaveBalance:
    """Admin correction of a period's allotment; recorded as an ADJUSTMENT."""
    require_role(actor, {Role.ADMIN})
    _validate_leave_type(leave_type)
    year = _resolve_year(year)
    if not delta:
        raise ValidationError({"delta": "Adjustment must be a non-zero number of days."})

    with transaction.atomic():
        balance = _locked_balance(user, leave_type, year)
        new_allotted = balance.allotted + delta
        if new_allotted < balance.used:
            raise ValidationError({
                "delta": f"Allotment cannot drop below the {balance.used} day(s) already used."
            })
        balance.allotted = new_allotted
        balance.save(update_fields=["allotted", "updated_at"])
        write_ledger_entry(
            balance=balance,
            entry_type="ADJUSTMENT",
            days=delta,
            created_by=actor,
            notes=notes,
        )

    logger.info(
        "Adjusted %s allotment for user %s (%s) by %s to %s",
        leave_type, user.id, year, delta, balance.allotted,
    )
    return balance


# ---------------------------------------------------------------------------
# Request lifecycle
# ---------------------------------------------------------------------------

def has_overlap(user, start_date: date, end_date: date, exclude_request_id=None) -> bool:
    """Check the user's own pending/approved requests for an overlapping range."""
    qs = LeaveRequest.objects.filter(
        user=user,
        status__in=BLOCKING_STATUSES,
        start_date__lte=end_date,
        end_date__gte=start_date,
    )
    if exclude_request_id:
        qs = qs.exclude(id=exclude_request_id)
    return qs.exists()


def validate_leave_application(*, user, leave_type, start_date, end_date, reason) -> int:
    """Return the day count, or raise ValidationError."""
    _validate_leave_type(leave_type)
    if not reason or not str(reason).strip():
        raise ValidationError({"reason": "Reason is required."})
    if start_date > end_date:
        raise ValidationError({"end_date": "End date must be on or after the start date."})

    days = count_leave_days(start_date, end_date)
    if days < 1:
        raise ValidationError({"end_date": "Leave must cover at least one day."})

    max_days = settings.TIMEOFF_MAX_REQUEST_DAYS
    if max_days and days > max_days:
        raise ValidationError({"end_date": f"Leave cannot exceed {max_days} days in a single request."})

    if not settings.TIMEOFF_ALLOW_BACKDATED_REQUESTS and start_date < _today():
        raise ValidationError({"start_date": "Start date cannot be in the past."})

    if has_overlap(user, start_date, end_date):
        raise ValidationError({"start_date": "You already have a pending or approved leave in this period."})
    return days


def apply_leave(*, user, leave_type, start_date, end_date, reason, contact=None) -> LeaveRequest:
    """Create a pending request. The balance is only checked at approval."""
    days = validate_leave_application(
        user=user,
        leave_type=leave_type,
        start_date=start_date,
        end_date=end_date,
        reason=reason,
    )
    with transaction.atomic():
        leave = LeaveRequest.objects.create(
            user=user,
            leave_type=leave_type,
            start_date=start_date,
            end_date=end_date,
            days=days,
            reason=reason.strip(),
            contact_during_leave=(contact or "").strip(),
        )
        transaction.on_commit(lambda: notifications.notify_leave_submitted(leave))

    logger.info("User %s applied for %s %s leave day(s) (request %s)", user.id, days, leave_type, leave.id)
    return leave


def _get_request(request_id, *, lock=False) -> LeaveRequest:
    qs = LeaveRequest.objects.select_for_update() if lock else LeaveRequest.objects.select_related("user")
    try:
        return qs.get(pk=request_id)
    except (LeaveRequest.DoesNotExist, ValueError, TypeError):
        raise NotFound("Leave request not found.")


def _can_view(caller, leave: LeaveRequest) -> bool:
    if leave.user_id == caller.id or has_role(caller, {Role.ADMIN}):
        return True
    return has_role(caller, {Role.MANAGER}) and caller.manages(leave.user_id)


def get_leave(request_id, caller) -> LeaveRequest:
    """Owner, the owner's manager, or an admin may read a request."""
    leave = _get_request(request_id)
    if not _can_view(caller, leave):
        raise PermissionDenied("You do not have access to this leave request.")
    return leave


def cancel_leave(request_id, caller) -> LeaveRequest:
    """Owner withdraws a pending request. The balance is untouched."""
    with transaction.atomic():
        leave = _get_request(request_id, lock=True)
        if leave.user_id != caller.id:
            raise PermissionDenied("You can only cancel your own leave requests.")
        if not leave.is_pending:
            raise InvalidState(f"Only pending requests can be cancelled; this request is {leave.status}.")
        leave.mark_cancelled()
        leave.save(update_fields=["status", "cancelled_at", "updated_at"])
        transaction.on_commit(lambda: notifications.notify_leave_cancelled(leave))

    logger.info("User %s cancelled leave request %s", caller.id, leave.id)
    return leave


def update_leave(request_id, caller, *, reason=None, contact=None) -> LeaveRequest:
    """Owner edits the free-text fields of a pending request."""
    with transaction.atomic():
        leave = _get_request(request_id, lock=True)
        if leave.user_id != caller.id:
            raise PermissionDenied("You can only update your own leave requests.")
        if not leave.is_pending:
            raise InvalidState(f"Only pending requests can be updated; this request is {leave.status}.")
        fields = []
        if reason is not None:
            if not str(reason).strip():
                raise ValidationError({"reason": "Reason is required."})
            leave.reason = reason.strip()
            fields.append("reason")
        if contact is not None:
            leave.contact_during_leave = contact.strip()
            fields.append("contact_during_leave")
        if fields:
            leave.save(update_fields=fields + ["updated_at"])
    return leave


def decide_leave(request_id, manager, outcome, comment=None) -> LeaveRequest:
    """
    Approve or reject a pending request.

    Runs in one transaction with the request row locked. Approval deducts the
    balance first; if the balance is insufficient the whole decision rolls
    back and the request stays pending. The notification is sent after
    commit and its failure never affects the decision.
    """
    require_role(manager, MANAGING_ROLES)
    if outcome not in (LeaveStatus.APPROVED, LeaveStatus.REJECTED):
        raise ValidationError({"outcome": "Outcome must be 'approved' or 'rejected'."})

    with transaction.atomic():
        leave = _get_request(request_id, lock=True)
        if leave.user_id == manager.id:
            raise PermissionDenied("You cannot decide your own leave request.")
        if not has_role(manager, {Role.ADMIN}) and not manager.manages(leave.user_id):
            raise PermissionDenied("You can only decide leave requests from your own team.")
        if not leave.is_pending:
            raise InvalidState(f"Leave request has already been {leave.status}.")

        if outcome == LeaveStatus.APPROVED:
            reserve_or_deduct(
                user=leave.user,
                leave_type=leave.leave_type,
                days=leave.days,
                request=leave,
                year=leave.period_year,
                actor=manager,
            )
            leave.mark_approved(manager, comment)
        else:
            leave.mark_rejected(manager, comment)
        leave.save(update_fields=["status", "decided_by", "manager_comment", "decided_at", "updated_at"])
        transaction.on_commit(lambda: notifications.notify_leave_decided(leave))

    logger.info("Manager %s %s leave request %s", manager.id, leave.status, leave.id)
    return leave


def list_mine(user, status=None, year=None):
    """The user's own requests, newest first."""
    qs = LeaveRequest.objects.filter(user=user).select_related("decided_by")
    if status:
        if status not in LeaveStatus.values:
            raise ValidationError({"status": f"Unknown status '{status}'."})
        qs = qs.filter(status=status)
    if year not in (None, ''):
        qs = qs.filter(start_date__year=_resolve_year(year))
    return qs.order_by("-applied_at", "-id")


def _scope_to_team(qs, manager, user_field="user"):
    if has_role(manager, {Role.ADMIN}):
        return qs
    return qs.filter(**{f"{user_field}__team_assignment__manager": manager})


def list_pending_for_manager(manager):
    """Pending requests the caller may decide: admins see all, managers their team."""
    require_role(manager, MANAGING_ROLES)
    qs = LeaveRequest.objects.filter(status=LeaveStatus.PENDING).exclude(user=manager).select_related("user")
    return _scope_to_team(qs, manager).order_by("-applied_at", "-id")


def leave_summary(user, year=None) -> dict:
    """Counts per status and approved days per type for one year."""
    year = _resolve_year(year)
    qs = LeaveRequest.objects.filter(user=user, start_date__year=year)

    by_status = {value: 0 for value in LeaveStatus.values}
    for row in qs.values("status").annotate(total=Count("id")):
        by_status[row["status"]] = row["total"]

    approved_days = {value: 0 for value in LeaveType.values}
    approved = qs.filter(status=LeaveStatus.APPROVED).values("leave_type").annotate(total=Sum("days"))
    for row in approved:
        approved_days[row["leave_type"]] = row["total"] or 0

    return {
        "year": year,
        "total_requests": sum(by_status.values()),
        "by_status": by_status,
        "approved_days_by_type": approved_days,
        "balance": get_balance(user, year),
    }


def team_members(manager):
    """Active users the caller manages (everyone but the caller, for admins)."""
    require_role(manager, MANAGING_ROLES)
    qs = User.objects.filter(is_active=True).exclude(id=manager.id)
    if not has_role(manager, {Role.ADMIN}):
        qs = qs.filter(team_assignment__manager=manager)
    return qs.order_by("first_name", "last_name", "email")


def team_calendar(manager, year=None, month=None):
    """Approved team leaves overlapping the given month."""
    require_role(manager, MANAGING_ROLES)
    today = _today()
    year = _resolve_year(year or today.year)
    try:
        month = int(month or today.month)
    except (TypeError, ValueError):
        raise ValidationError({"month": "Month must be a number."})
    if not 1 <= month <= 12:
        raise ValidationError({"month": "Month must be between 1 and 12."})

    first_day = date(year, month, 1)
    last_day = date(year, month, calendar.monthrange(year, month)[1])
    qs = LeaveRequest.objects.filter(
        status=LeaveStatus.APPROVED,
        start_date__lte=last_day,
        end_date__gte=first_day,
    ).select_related("user")
    return _scope_to_team(qs, manager).order_by("start_date", "id")
