from django.urls import path
from .views import (
    CertificateExpiriesView,
    CompletionTrendView,
    DashboardStatsView,
    ReportExportView,
    UnitPerformanceView,
)

urlpatterns = [
    path('dashboard/stats/', DashboardStatsView.as_view(), name='dashboard-stats'),
    path('dashboard/certificate-expiries/', CertificateExpiriesView.as_view(), name='dashboard-certificate-expiries'),
    path('dashboard/completion-trend/', CompletionTrendView.as_view(), name='dashboard-completion-trend'),
    path('dashboard/unit-performance/', UnitPerformanceView.as_view(), name='dashboard-unit-performance'),
    path('reports/export/', ReportExportView.as_view(), name='reports-export'),
]
