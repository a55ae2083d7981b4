from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.management import BaseCommand
from django.db import transaction
from django.utils import timezone

from timeoff.models import LeaveBalance, LeaveType


class Command(BaseCommand):
    help = (
        "Create the yearly leave balance rows for every active user with the "
        "configured default allotments. Existing rows are left untouched, so "
        "the command is safe to re-run."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--year",
            type=int,
            default=None,
            help="Calendar year to open (default: current year).",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report what would be created without writing anything.",
        )

    def handle(self, *args, **options):
        year = options.get("year") or timezone.localdate().year
        dry_run = options.get("dry_run", False)
        allotments = settings.TIMEOFF_DEFAULT_ALLOTMENTS

        users = get_user_model().objects.filter(is_active=True).order_by("id")
        existing = set(
            LeaveBalance.objects.filter(year=year).values_list("user_id", "leave_type")
        )

        to_create = [
            LeaveBalance(
                user=user,
                leave_type=leave_type,
                year=year,
                allotted=int(allotments.get(leave_type, 0)),
            )
            for user in users
            for leave_type in LeaveType.values
            if (user.id, leave_type) not in existing
        ]

        if dry_run:
            self.stdout.write(f"[dry-run] Would create {len(to_create)} balance row(s) for {year}.")
            return

        with transaction.atomic():
            LeaveBalance.objects.bulk_create(to_create, ignore_conflicts=True)

        self.stdout.write(
            self.style.SUCCESS(f"Opened leave year {year}: created {len(to_create)} balance row(s).")
        )
