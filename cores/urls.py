from django.urls import path
from .views import ArchiveView, AuditLogListView

urlpatterns = [
    path('audit-logs/', AuditLogListView.as_view(), name='audit-logs'),
    path('archive/', ArchiveView.as_view(), name='archive'),
]
