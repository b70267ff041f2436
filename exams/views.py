import csv
import io
import logging

from django.db import transaction
from rest_framework import viewsets, status, filters
from rest_framework.decorators import action
from rest_framework.parsers import JSONParser, MultiPartParser, FormParser
from rest_framework.response import Response

from cores.audit import create_audit_log
from cores.errors import ValidationError
from cores.permissions import HasPermission, has_permission
from notifications.models import Notification
from notifications.services import NotificationService
from .models import Exam, Question
from .serializers import (
    ExamSerializer, ExamDetailSerializer, ExamListSerializer,
    QuestionSerializer,
)

logger = logging.getLogger(__name__)


class ExamViewSet(viewsets.ModelViewSet):
    queryset = Exam.objects.select_related('course').prefetch_related('questions').order_by('-created_at')
    permission_classes = [HasPermission]
    required_permissions = {
        'GET': ['exams:read'],
        'destroy': ['exams:delete'],
        '*': ['exams:write'],
    }

    # Enable search on titles and course code
    filter_backends = [filters.SearchFilter]
    search_fields = ['title_en', 'title_ar', 'course__code']

    def _is_staff_view(self):
        return has_permission(self.request.user.role, 'exams:write')

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return ExamDetailSerializer if not self._is_staff_view() else ExamSerializer
        if self.action == 'list':
            # Staff get full info, trainees get a simple list
            if self._is_staff_view():
                return ExamSerializer
            return ExamListSerializer
        return ExamSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        if not self._is_staff_view():
            queryset = queryset.filter(is_published=True)
        course_id = self.request.query_params.get('course')
        if course_id:
            queryset = queryset.filter(course_id=course_id)
        return queryset

    def perform_create(self, serializer):
        exam = serializer.save()
        create_audit_log(
            self.request.user, 'CREATE', 'Exam', exam.id,
            {'title_en': exam.title_en, 'courseId': exam.course_id},
            request=self.request,
        )

    def perform_update(self, serializer):
        exam = serializer.save()
        create_audit_log(
            self.request.user, 'UPDATE', 'Exam', exam.id,
            {'fields': sorted(serializer.validated_data.keys())},
            request=self.request,
        )

    def perform_destroy(self, instance):
        create_audit_log(self.request.user, 'DELETE', 'Exam', instance.id, {'title_en': instance.title_en}, request=self.request)
        instance.delete()

    @action(detail=True, methods=['post'])
    def publish(self, request, pk=None):
        exam = self.get_object()
        if not exam.questions.exists():
            raise ValidationError("An exam without questions cannot be published")
        exam.is_published = True
        exam.save(update_fields=['is_published'])
        create_audit_log(request.user, 'UPDATE', 'Exam', exam.id, {'is_published': True}, request=request)
        for enrollment in exam.course.enrollments.select_related('user'):
            NotificationService.create_from_template(
                Notification.Type.EXAM_AVAILABLE,
                enrollment.user,
                {'courseTitle': exam.course.title_en},
                sender=request.user,
                metadata={'examId': exam.id},
            )
        return Response(ExamSerializer(exam).data)


class QuestionViewSet(viewsets.ModelViewSet):
    queryset = Question.objects.select_related('exam').order_by('-id')
    serializer_class = QuestionSerializer
    permission_classes = [HasPermission]
    required_permissions = {
        'GET': ['exams:write'],
        'destroy': ['exams:delete'],
        '*': ['exams:write'],
    }

    # Enable Search and Filtering for the Question Bank
    filter_backends = [filters.SearchFilter]
    search_fields = ['stem_en', 'stem_ar', 'bank_tag']

    # Add parsers to handle file uploads
    parser_classes = (JSONParser, MultiPartParser, FormParser)

    def get_queryset(self):
        queryset = super().get_queryset()
        # Filter by Exam if provided ?exam=1
        exam_id = self.request.query_params.get('exam')
        if exam_id:
            queryset = queryset.filter(exam_id=exam_id)
        return queryset

    def perform_create(self, serializer):
        question = serializer.save()
        create_audit_log(
            self.request.user, 'CREATE', 'Question', question.id,
            {'examId': question.exam_id, 'type': question.type},
            request=self.request,
        )

    @action(detail=False, methods=['post'], url_path='bulk-upload')
    def bulk_upload(self, request):
        """
        Upload questions via CSV.
        Expected CSV Header: exam, type, stem_en, stem_ar, options, answer, marks, bank_tag
        Options and multiple_select answers are pipe separated.
        """
        file_obj = request.FILES.get('file')
        if not file_obj:
            raise ValidationError("No file uploaded")

        try:
            reader = csv.DictReader(io.StringIO(file_obj.read().decode('utf-8')))
        except UnicodeDecodeError:
            raise ValidationError("File must be UTF-8 encoded CSV")

        rows = []
        for line_no, row in enumerate(reader, start=2):
            q_type = (row.get('type') or Question.QuestionType.MULTIPLE_CHOICE).strip().lower()
            options = [opt.strip() for opt in (row.get('options') or '').split('|') if opt.strip()]
            answer = (row.get('answer') or '').strip()
            if q_type == Question.QuestionType.MULTIPLE_SELECT:
                answer = [a.strip() for a in answer.split('|') if a.strip()]
            serializer = QuestionSerializer(data={
                'exam': row.get('exam'),
                'type': q_type,
                'stem_en': row.get('stem_en', ''),
                'stem_ar': row.get('stem_ar', ''),
                'options': options,
                'answer': answer,
                'marks': row.get('marks') or 1,
                'bank_tag': row.get('bank_tag', ''),
            })
            if not serializer.is_valid():
                raise ValidationError(f"Invalid question on line {line_no}", details=serializer.errors)
            rows.append(serializer)

        with transaction.atomic():
            for serializer in rows:
                serializer.save()

        logger.info("Bulk uploaded %s questions", len(rows))
        create_audit_log(request.user, 'IMPORT', 'Question', None, {'created': len(rows)}, request=request)
        return Response({"status": f"Successfully uploaded {len(rows)} questions"}, status=status.HTTP_201_CREATED)
