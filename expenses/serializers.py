from rest_framework import serializers

from .models import ExpenseCategory, ExpenseRecord


class ExpenseRecordSerializer(serializers.ModelSerializer):
    class Meta:
        model = ExpenseRecord
        fields = ("id", "user", "amount", "category", "expense_date", "description", "submitted_at")
        read_only_fields = fields


class ExpenseSubmitSerializer(serializers.Serializer):
    """Input parsing only; business rules live in services.submit_expense."""

    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    category = serializers.ChoiceField(choices=ExpenseCategory.choices)
    expense_date = serializers.DateField()
    description = serializers.CharField(max_length=2000)


class ExpenseHistoryQuerySerializer(serializers.Serializer):
    category = serializers.ChoiceField(choices=ExpenseCategory.choices, required=False)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)

    def validate(self, data):
        if data.get("date_from") and data.get("date_to") and data["date_from"] > data["date_to"]:
            raise serializers.ValidationError({"date_to": "date_to must be on or after date_from."})
        return data
