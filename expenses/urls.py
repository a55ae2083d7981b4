from django.urls import path

from .views import ExpenseHistoryView, ExpenseSubmitView

app_name = "expenses"

urlpatterns = [
    path("submit/", ExpenseSubmitView.as_view(), name="submit"),
    path("history/", ExpenseHistoryView.as_view(), name="history"),
]
