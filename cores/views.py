from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import generics, status
from rest_framework.response import Response

from .audit import create_audit_log
from .filters import ArchiveFilter, AuditLogFilter
from .models import Archive, AuditLog
from .permissions import HasPermission, IsAdminRole
from .serializers import ArchiveRequestSerializer, ArchiveSerializer, AuditLogSerializer
from .services import archive_entity


class AuditLogListView(generics.ListAPIView):
    # Select related avoids N+1 queries when fetching users
    queryset = AuditLog.objects.select_related('actor').all()
    serializer_class = AuditLogSerializer
    permission_classes = [HasPermission]
    required_permissions = ['audit:read']
    filter_backends = [DjangoFilterBackend]
    filterset_class = AuditLogFilter


class ArchiveView(generics.ListCreateAPIView):
    """
    Admins freeze a copy of a course, module or exam.
    Payload: { "entityType": "course", "entityId": "4", "version": "2024.1", "reason": "..." }
    """
    queryset = Archive.objects.select_related('archived_by').all()
    serializer_class = ArchiveSerializer
    permission_classes = [IsAdminRole]
    filter_backends = [DjangoFilterBackend]
    filterset_class = ArchiveFilter

    def create(self, request, *args, **kwargs):
        serializer = ArchiveRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        archive = archive_entity(
            data['entityType'], data['entityId'], data['version'],
            archived_by=request.user, reason=data['reason'],
        )
        create_audit_log(
            request.user, 'ARCHIVE', data['entityType'].capitalize(), data['entityId'],
            {'version': data['version'], 'archiveId': archive.id},
            request=request,
        )
        return Response({'success': True, 'data': ArchiveSerializer(archive).data}, status=status.HTTP_201_CREATED)
