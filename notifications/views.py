from rest_framework import status, views
from rest_framework.response import Response

from cores.errors import NotFoundError, ValidationError
from cores.permissions import HasPermission

from .models import Notification
from .serializers import NotificationCreateSerializer, NotificationSerializer
from .services import NotificationService


def _int_param(request, name, default, minimum, maximum=None):
    try:
        value = int(request.query_params.get(name, default))
    except (TypeError, ValueError):
        value = default
    value = max(minimum, value)
    return min(maximum, value) if maximum is not None else value


class NotificationListView(views.APIView):
    """
    GET ?limit=20&offset=0&unreadOnly=true&type=EXAM_GRADED lists the caller's notifications.
    POST sends a notification to another user (notifications:write).
    """
    permission_classes = [HasPermission]
    required_permissions = {
        'GET': ['notifications:read'],
        'POST': ['notifications:write'],
    }

    def get(self, request):
        result = NotificationService.get_user_notifications(
            request.user,
            limit=_int_param(request, 'limit', 20, 1, 50),
            offset=_int_param(request, 'offset', 0, 0),
            unread_only=request.query_params.get('unreadOnly') == 'true',
            type=request.query_params.get('type') or None,
        )
        return Response({
            'notifications': NotificationSerializer(result['notifications'], many=True).data,
            'total': result['total'],
            'hasMore': result['has_more'],
        })

    def post(self, request):
        serializer = NotificationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        notification = NotificationService.create(
            data['recipientId'],
            data['type'],
            title_ar=data['titleAr'],
            title_en=data['titleEn'],
            message_ar=data['messageAr'],
            message_en=data['messageEn'],
            sender=request.user,
            priority=data['priority'],
            channels=data['channels'],
            metadata=data['metadata'],
            scheduled_at=data.get('scheduledAt'),
            expires_at=data.get('expiresAt'),
        )
        return Response({'notification': NotificationSerializer(notification).data}, status=status.HTTP_201_CREATED)


class NotificationDetailView(views.APIView):
    permission_classes = [HasPermission]
    required_permissions = ['notifications:read']

    def patch(self, request, pk):
        if request.query_params.get('action') != 'mark_read':
            raise ValidationError("Invalid action")

        if not Notification.objects.filter(pk=pk, recipient=request.user).exists():
            raise NotFoundError("Notification")

        NotificationService.mark_as_read(pk, request.user)
        return Response({'success': True})


class MarkAllReadView(views.APIView):
    permission_classes = [HasPermission]
    required_permissions = ['notifications:read']

    def post(self, request):
        count = NotificationService.mark_all_as_read(request.user)
        return Response({'success': True, 'count': count})


class UnreadCountView(views.APIView):
    permission_classes = [HasPermission]
    required_permissions = ['notifications:read']

    def get(self, request):
        return Response({'count': NotificationService.get_unread_count(request.user)})
