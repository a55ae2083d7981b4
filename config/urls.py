"""
URL configuration for the leave & expense API.
"""
from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include('accounts.urls')),
    path('api/leaves/', include('timeoff.urls')),
    path('api/manager/', include('timeoff.manager_urls')),
    path('api/expenses/', include('expenses.urls')),
]
