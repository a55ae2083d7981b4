from rest_framework import status
from rest_framework.views import APIView

from accounts.utils import api_response

from .serializers import ExpenseHistoryQuerySerializer, ExpenseRecordSerializer, ExpenseSubmitSerializer
from .services import list_mine, submit_expense, total_amount


class ExpenseSubmitView(APIView):
    def post(self, request):
        serializer = ExpenseSubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        record = submit_expense(user=request.user, **serializer.validated_data)
        return api_response(
            success=True,
            message="Expense submitted successfully.",
            data=ExpenseRecordSerializer(record).data,
            status=status.HTTP_201_CREATED,
        )


class ExpenseHistoryView(APIView):
    def get(self, request):
        query = ExpenseHistoryQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        records = list_mine(request.user, **query.validated_data)
        return api_response(
            success=True,
            message="Expense history retrieved successfully.",
            data={
                "results": ExpenseRecordSerializer(records, many=True).data,
                "count": records.count(),
                "total_amount": str(total_amount(records)),
            },
        )
