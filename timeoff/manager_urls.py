from django.urls import path

from .views import (
    BalanceAdjustView,
    LeaveApproveView,
    LeaveRejectView,
    PendingLeavesView,
    TeamCalendarView,
    TeamMembersView,
)

app_name = "manager"

urlpatterns = [
    path("leaves/pending/", PendingLeavesView.as_view(), name="pending"),
    path("leaves/approve/<int:pk>/", LeaveApproveView.as_view(), name="approve"),
    path("leaves/reject/<int:pk>/", LeaveRejectView.as_view(), name="reject"),
    path("leaves/calendar/", TeamCalendarView.as_view(), name="calendar"),
    path("team/", TeamMembersView.as_view(), name="team"),
    path("balances/adjust/", BalanceAdjustView.as_view(), name="balance-adjust"),
]
