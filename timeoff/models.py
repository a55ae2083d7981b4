from datetime import date

from django.conf import settings
from django.db import models
from django.utils import timezone


class LeaveType(models.TextChoices):
    CASUAL = 'casual', 'Casual'
    SICK = 'sick', 'Sick'
    EARNED = 'earned', 'Earned'


class LeaveStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    APPROVED = 'approved', 'Approved'
    REJECTED = 'rejected', 'Rejected'
    CANCELLED = 'cancelled', 'Cancelled'


def count_leave_days(start_date: date, end_date: date) -> int:
    """Inclusive calendar-day count; weekends are counted."""
    return (end_date - start_date).days + 1


class LeaveRequest(models.Model):
    """A leave request made by an employee."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='leave_requests',
        help_text="Employee requesting leave",
    )
    leave_type = models.CharField(max_length=10, choices=LeaveType.choices, db_index=True)
    start_date = models.DateField()
    end_date = models.DateField()
    days = models.PositiveIntegerField(help_text="Inclusive calendar days")
    reason = models.TextField()
    contact_during_leave = models.CharField(max_length=255, blank=True, default='')
    status = models.CharField(
        max_length=10,
        choices=LeaveStatus.choices,
        default=LeaveStatus.PENDING,
        db_index=True,
    )
    manager_comment = models.TextField(blank=True, default='')
    decided_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='decided_leave_requests',
    )

    applied_at = models.DateTimeField(default=timezone.now, db_index=True)
    decided_at = models.DateTimeField(blank=True, null=True)
    cancelled_at = models.DateTimeField(blank=True, null=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'leave_requests'
        ordering = ['-applied_at', '-id']
        indexes = [
            models.Index(fields=['user', 'status'], name='leave_reque_user_id_8f3b21_idx'),
            models.Index(fields=['start_date', 'end_date'], name='leave_reque_start_d_4d7e90_idx'),
        ]

    def __str__(self):
        return f"{self.leave_type} leave by {self.user_id} ({self.status})"

    def save(self, *args, **kwargs):
        if self.start_date and self.end_date:
            self.days = count_leave_days(self.start_date, self.end_date)
        super().save(*args, **kwargs)

    @property
    def is_pending(self) -> bool:
        return self.status == LeaveStatus.PENDING

    @property
    def period_year(self) -> int:
        return self.start_date.year

    def mark_approved(self, decided_by, comment=''):
        self.status = LeaveStatus.APPROVED
        self.decided_by = decided_by
        self.manager_comment = comment or ''
        self.decided_at = timezone.now()

    def mark_rejected(self, decided_by, comment=''):
        self.status = LeaveStatus.REJECTED
        self.decided_by = decided_by
        self.manager_comment = comment or ''
        self.decided_at = timezone.now()

    def mark_cancelled(self):
        self.status = LeaveStatus.CANCELLED
        self.cancelled_at = timezone.now()


class LeaveBalance(models.Model):
    """Per-user, per-type allotment and consumption for one calendar year."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='leave_balances',
    )
    leave_type = models.CharField(max_length=10, choices=LeaveType.choices)
    year = models.PositiveIntegerField(db_index=True)
    allotted = models.PositiveIntegerField(default=0)
    used = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'leave_balances'
        ordering = ['user_id', 'year', 'leave_type']
        constraints = [
            models.UniqueConstraint(fields=['user', 'leave_type', 'year'], name='uniq_leave_balance_period'),
        ]

    def __str__(self):
        return f"{self.user_id} {self.leave_type} {self.year}: {self.remaining}/{self.allotted}"

    @property
    def remaining(self) -> int:
        return self.allotted - self.used


class LeaveLedgerEntry(models.Model):
    """Immutable audit rows explaining every change to a balance."""

    ENTRY_TYPES = [
        ('DEBIT', 'Debit'),
        ('ADJUSTMENT', 'Adjustment'),
    ]

    balance = models.ForeignKey(
        LeaveBalance,
        on_delete=models.CASCADE,
        related_name='ledger_entries',
    )
    entry_type = models.CharField(max_length=15, choices=ENTRY_TYPES, db_index=True)
    days = models.IntegerField(help_text="Signed days; debits are negative")
    request = models.ForeignKey(
        LeaveRequest,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='ledger_entries',
        help_text="Linked request (if any)",
    )
    notes = models.TextField(blank=True, default='')
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'leave_ledger_entries'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['request', 'entry_type'],
                condition=models.Q(request__isnull=False),
                name='uniq_ledger_entry_per_request',
            ),
        ]

    def __str__(self):
        return f"{self.entry_type} {self.days}d on balance {self.balance_id}"
