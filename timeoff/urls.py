from django.urls import path

from .views import (
    LeaveApplyView,
    LeaveBalanceView,
    LeaveCancelView,
    LeaveDetailView,
    LeaveHistoryView,
    LeaveSummaryView,
)

app_name = "timeoff"

urlpatterns = [
    path("apply/", LeaveApplyView.as_view(), name="apply"),
    path("history/", LeaveHistoryView.as_view(), name="history"),
    path("balance/", LeaveBalanceView.as_view(), name="balance"),
    path("summary/", LeaveSummaryView.as_view(), name="summary"),
    path("cancel/<int:pk>/", LeaveCancelView.as_view(), name="cancel"),
    path("<int:pk>/", LeaveDetailView.as_view(), name="detail"),
]
