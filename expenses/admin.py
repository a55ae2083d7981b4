from django.contrib import admin

from .models import ExpenseRecord


@admin.register(ExpenseRecord)
class ExpenseRecordAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "category", "amount", "expense_date", "submitted_at")
    list_filter = ("category",)
    search_fields = ("user__email", "description")
    date_hierarchy = "expense_date"
