from django.urls import path
from .views import MarkAllReadView, NotificationDetailView, NotificationListView, UnreadCountView

urlpatterns = [
    path('notifications/', NotificationListView.as_view(), name='notifications'),
    path('notifications/mark-all-read/', MarkAllReadView.as_view(), name='notifications-mark-all-read'),
    path('notifications/unread-count/', UnreadCountView.as_view(), name='notifications-unread-count'),
    path('notifications/<int:pk>/', NotificationDetailView.as_view(), name='notification-detail'),
]
