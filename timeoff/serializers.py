from rest_framework import serializers

from accounts.models import User

from .models import LeaveBalance, LeaveRequest, LeaveStatus, LeaveType


class EmployeeSummarySerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = ("id", "email", "full_name", "role")
        read_only_fields = fields


class LeaveRequestSerializer(serializers.ModelSerializer):
    employee = EmployeeSummarySerializer(source="user", read_only=True)
    decided_by = EmployeeSummarySerializer(read_only=True)

    class Meta:
        model = LeaveRequest
        fields = (
            "id",
            "employee",
            "leave_type",
            "start_date",
            "end_date",
            "days",
            "reason",
            "contact_during_leave",
            "status",
            "manager_comment",
            "decided_by",
            "applied_at",
            "decided_at",
            "cancelled_at",
        )
        read_only_fields = fields


class LeaveApplySerializer(serializers.Serializer):
    """Input for a new leave request; business rules live in services.apply_leave."""

    leave_type = serializers.ChoiceField(choices=LeaveType.choices)
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    reason = serializers.CharField(max_length=1000)
    contact_during_leave = serializers.CharField(max_length=255, required=False, allow_blank=True)


class LeaveUpdateSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=1000, required=False)
    contact_during_leave = serializers.CharField(max_length=255, required=False, allow_blank=True)

    def validate(self, data):
        if not data:
            raise serializers.ValidationError("Provide reason or contact_during_leave to update.")
        return data


class LeaveDecisionSerializer(serializers.Serializer):
    comment = serializers.CharField(max_length=1000, required=False, allow_blank=True)


class LeaveHistoryQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=LeaveStatus.choices, required=False)
    year = serializers.IntegerField(required=False, min_value=1900, max_value=9999)


class YearQuerySerializer(serializers.Serializer):
    year = serializers.IntegerField(required=False, min_value=1900, max_value=9999)


class CalendarQuerySerializer(serializers.Serializer):
    year = serializers.IntegerField(required=False, min_value=1900, max_value=9999)
    month = serializers.IntegerField(required=False, min_value=1, max_value=12)


class LeaveBalanceSerializer(serializers.ModelSerializer):
    remaining = serializers.IntegerField(read_only=True)

    class Meta:
        model = LeaveBalance
        fields = ("id", "user", "leave_type", "year", "allotted", "used", "remaining", "updated_at")
        read_only_fields = fields


class BalanceAdjustmentSerializer(serializers.Serializer):
    user = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))
    leave_type = serializers.ChoiceField(choices=LeaveType.choices)
    year = serializers.IntegerField(required=False, min_value=1900, max_value=9999)
    delta = serializers.IntegerField()
    notes = serializers.CharField(max_length=500, required=False, allow_blank=True)

    def validate_delta(self, value):
        if value == 0:
            raise serializers.ValidationError("Adjustment must be a non-zero number of days.")
        return value
