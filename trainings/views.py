from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from cores.audit import create_audit_log
from cores.errors import ValidationError
from cores.permissions import HasPermission

from .models import TrainingSession
from .serializers import AttendanceRecordSerializer, AttendanceSerializer, TrainingSessionSerializer
from .services import mark_attendance, mark_bulk_attendance


class TrainingSessionViewSet(viewsets.ModelViewSet):
    queryset = TrainingSession.objects.select_related('course', 'instructor')
    serializer_class = TrainingSessionSerializer
    permission_classes = [HasPermission]
    required_permissions = {
        'GET': ['sessions:read'],
        'destroy': ['sessions:delete'],
        'attendance': {'GET': ['sessions:read'], 'POST': ['sessions:write']},
        '*': ['sessions:write'],
    }
    http_method_names = ['get', 'post', 'patch', 'delete', 'head', 'options']

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get('courseId'):
            queryset = queryset.filter(course_id=params['courseId'])
        if params.get('instructorId'):
            queryset = queryset.filter(instructor_id=params['instructorId'])
        if params.get('mode'):
            queryset = queryset.filter(mode=params['mode'].lower())

        now = timezone.now()
        when = params.get('status')
        if when == 'upcoming':
            queryset = queryset.filter(starts_at__gte=now)
        elif when == 'completed':
            queryset = queryset.filter(ends_at__lt=now)
        elif when == 'ongoing':
            queryset = queryset.filter(starts_at__lte=now, ends_at__gte=now)
        return queryset

    def perform_create(self, serializer):
        session = serializer.save()
        create_audit_log(
            self.request.user, 'CREATE', 'Session', session.id,
            {'courseId': session.course_id, 'instructorId': session.instructor_id,
             'startsAt': session.starts_at.isoformat(), 'mode': session.mode},
            request=self.request,
        )

    def perform_update(self, serializer):
        session = serializer.save()
        create_audit_log(
            self.request.user, 'UPDATE', 'Session', session.id,
            {'changes': sorted(serializer.validated_data.keys())},
            request=self.request,
        )

    def perform_destroy(self, instance):
        if instance.attendance.exists():
            raise ValidationError("Cannot delete session with attendance records")
        if instance.starts_at < timezone.now():
            raise ValidationError("Cannot delete sessions that have already started")
        create_audit_log(
            self.request.user, 'DELETE', 'Session', instance.id,
            {'title_ar': instance.title_ar, 'startsAt': instance.starts_at.isoformat()},
            request=self.request,
        )
        instance.delete()

    @action(detail=True, methods=['get', 'post'])
    def attendance(self, request, pk=None):
        """
        GET lists marks for the session, newest first.
        POST takes one record { "userId": 7, "status": "present" } or an array of them.
        """
        session = get_object_or_404(TrainingSession, pk=pk)

        if request.method == 'GET':
            records = session.attendance.select_related('user', 'captured_by')
            return Response({'attendance': AttendanceSerializer(records, many=True).data})

        if isinstance(request.data, list):
            serializer = AttendanceRecordSerializer(data=request.data, many=True)
            serializer.is_valid(raise_exception=True)
            results = mark_bulk_attendance(session, serializer.validated_data, request.user)
            create_audit_log(
                request.user, 'BULK_ATTENDANCE', 'Session', session.id,
                {'recordsProcessed': len(results), 'successful': sum(1 for r in results if r['success'])},
                request=request,
            )
            return Response({'results': results})

        serializer = AttendanceRecordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        record = serializer.validated_data
        attendance = mark_attendance(session, record, request.user)
        create_audit_log(
            request.user, 'MARK_ATTENDANCE', 'Session', session.id,
            {'userId': record['userId'], 'status': record['status'], 'method': record['method']},
            request=request,
        )
        return Response({'attendance': AttendanceSerializer(attendance).data})
