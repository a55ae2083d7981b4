from django.contrib import admin

from .models import LeaveBalance, LeaveLedgerEntry, LeaveRequest


@admin.register(LeaveRequest)
class LeaveRequestAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "leave_type", "start_date", "end_date", "days", "status", "applied_at")
    list_filter = ("status", "leave_type")
    search_fields = ("user__email", "reason")
    readonly_fields = ("days", "applied_at", "decided_at", "cancelled_at", "decided_by")


@admin.register(LeaveBalance)
class LeaveBalanceAdmin(admin.ModelAdmin):
    list_display = ("user", "leave_type", "year", "allotted", "used")
    list_filter = ("leave_type", "year")
    search_fields = ("user__email",)


@admin.register(LeaveLedgerEntry)
class LeaveLedgerEntryAdmin(admin.ModelAdmin):
    list_display = ("balance", "entry_type", "days", "request", "created_by", "created_at")
    list_filter = ("entry_type",)

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
