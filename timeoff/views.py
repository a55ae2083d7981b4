import logging

from rest_framework import status
from rest_framework.pagination import PageNumberPagination
from rest_framework.views import APIView

from accounts.permissions import IsAdminRole, IsManagerOrAdmin
from accounts.serializers import UserSerializer
from accounts.utils import api_response

from . import services
from .models import LeaveStatus
from .serializers import (
    BalanceAdjustmentSerializer,
    CalendarQuerySerializer,
    LeaveApplySerializer,
    LeaveBalanceSerializer,
    LeaveDecisionSerializer,
    LeaveHistoryQuerySerializer,
    LeaveRequestSerializer,
    LeaveUpdateSerializer,
    YearQuerySerializer,
)

logger = logging.getLogger(__name__)


class LeaveHistoryPagination(PageNumberPagination):
    page_size = 10
    page_size_query_param = "limit"
    max_page_size = 100


def _paginated(view, request, queryset, serializer_class):
    paginator = LeaveHistoryPagination()
    page = paginator.paginate_queryset(queryset, request, view=view)
    return {
        "results": serializer_class(page, many=True).data,
        "pagination": {
            "count": paginator.page.paginator.count,
            "page": paginator.page.number,
            "total_pages": paginator.page.paginator.num_pages,
        },
    }


class LeaveApplyView(APIView):
    """Employee submits a new leave request"""

    def post(self, request):
        serializer = LeaveApplySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        leave = services.apply_leave(
            user=request.user,
            leave_type=data["leave_type"],
            start_date=data["start_date"],
            end_date=data["end_date"],
            reason=data["reason"],
            contact=data.get("contact_during_leave"),
        )
        return api_response(
            success=True,
            message="Leave request submitted successfully.",
            data=LeaveRequestSerializer(leave).data,
            status=status.HTTP_201_CREATED,
        )


class LeaveHistoryView(APIView):
    def get(self, request):
        query = LeaveHistoryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        leaves = services.list_mine(
            request.user,
            status=query.validated_data.get("status"),
            year=query.validated_data.get("year"),
        )
        return api_response(
            success=True,
            message="Leave history retrieved successfully.",
            data=_paginated(self, request, leaves, LeaveRequestSerializer),
        )


class LeaveBalanceView(APIView):
    def get(self, request):
        query = YearQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        year = query.validated_data.get("year")
        return api_response(
            success=True,
            message="Leave balance retrieved successfully.",
            data={
                "balance": services.get_balance(request.user, year),
                "details": services.get_balance_details(request.user, year),
            },
        )


class LeaveSummaryView(APIView):
    def get(self, request):
        query = YearQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        return api_response(
            success=True,
            message="Leave summary retrieved successfully.",
            data=services.leave_summary(request.user, query.validated_data.get("year")),
        )


class LeaveDetailView(APIView):
    """Read a request, or let its owner edit reason/contact while pending"""

    def get(self, request, pk):
        leave = services.get_leave(pk, request.user)
        return api_response(
            success=True,
            message="Leave request retrieved successfully.",
            data=LeaveRequestSerializer(leave).data,
        )

    def patch(self, request, pk):
        serializer = LeaveUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        leave = services.update_leave(
            pk,
            request.user,
            reason=serializer.validated_data.get("reason"),
            contact=serializer.validated_data.get("contact_during_leave"),
        )
        return api_response(
            success=True,
            message="Leave request updated successfully.",
            data=LeaveRequestSerializer(leave).data,
        )


class LeaveCancelView(APIView):
    def patch(self, request, pk):
        leave = services.cancel_leave(pk, request.user)
        return api_response(
            success=True,
            message="Leave request cancelled successfully.",
            data=LeaveRequestSerializer(leave).data,
        )


# ---------------------------------------------------------------------------
# Manager endpoints
# ---------------------------------------------------------------------------

class PendingLeavesView(APIView):
    permission_classes = [IsManagerOrAdmin]

    def get(self, request):
        leaves = services.list_pending_for_manager(request.user)
        return api_response(
            success=True,
            message="Pending leave requests retrieved successfully.",
            data=_paginated(self, request, leaves, LeaveRequestSerializer),
        )


class LeaveDecisionView(APIView):
    """Base view for approve/reject; subclasses set ``outcome``."""

    permission_classes = [IsManagerOrAdmin]
    outcome = None

    def patch(self, request, pk):
        serializer = LeaveDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        leave = services.decide_leave(
            pk,
            request.user,
            self.outcome,
            comment=serializer.validated_data.get("comment"),
        )
        return api_response(
            success=True,
            message=f"Leave request {leave.status} successfully.",
            data=LeaveRequestSerializer(leave).data,
        )


class LeaveApproveView(LeaveDecisionView):
    outcome = LeaveStatus.APPROVED


class LeaveRejectView(LeaveDecisionView):
    outcome = LeaveStatus.REJECTED


class TeamCalendarView(APIView):
    permission_classes = [IsManagerOrAdmin]

    def get(self, request):
        query = CalendarQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        leaves = services.team_calendar(
            request.user,
            year=query.validated_data.get("year"),
            month=query.validated_data.get("month"),
        )
        return api_response(
            success=True,
            message="Team calendar retrieved successfully.",
            data=LeaveRequestSerializer(leaves, many=True).data,
        )


class TeamMembersView(APIView):
    permission_classes = [IsManagerOrAdmin]

    def get(self, request):
        query = YearQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        year = query.validated_data.get("year")
        members = []
        for member in services.team_members(request.user):
            member_data = UserSerializer(member).data
            member_data["leave_balance"] = services.get_balance(member, year)
            members.append(member_data)
        return api_response(
            success=True,
            message="Team members retrieved successfully.",
            data=members,
        )


class BalanceAdjustView(APIView):
    """Admin correction of a user's yearly allotment"""

    permission_classes = [IsAdminRole]

    def post(self, request):
        serializer = BalanceAdjustmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        balance = services.adjust_allotment(
            user=data["user"],
            leave_type=data["leave_type"],
            year=data.get("year"),
            delta=data["delta"],
            actor=request.user,
            notes=data.get("notes", ""),
        )
        return api_response(
            success=True,
            message="Leave balance adjusted successfully.",
            data=LeaveBalanceSerializer(balance).data,
        )
