# certificates/views.py
from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404
from rest_framework import generics, permissions, status, views
from rest_framework.response import Response

from cores.audit import create_audit_log
from cores.errors import NotFoundError, ValidationError
from cores.permissions import HasPermission, has_permission
from courses.models import Course, Enrollment
from exams.models import Exam
from notifications.models import Notification
from notifications.services import NotificationService

from .models import Certificate
from .serializers import CertificateSerializer, CertificateVerificationSerializer, IssueCertificateSerializer
from .services import issue_certificate

User = get_user_model()


class CertificateListView(generics.ListCreateAPIView):
    """
    Trainees see their own certificates; staff with certificates:write or
    reports:read see everyone's (filter with ?userId= and ?courseId=).
    """
    permission_classes = [HasPermission]
    required_permissions = {
        'GET': ['certificates:read'],
        'POST': ['certificates:write'],
    }
    serializer_class = CertificateSerializer

    def get_queryset(self):
        queryset = Certificate.objects.select_related('user', 'course')
        role = self.request.user.role
        if not (has_permission(role, 'certificates:write') or has_permission(role, 'reports:read')):
            return queryset.filter(user=self.request.user)

        user_id = self.request.query_params.get('userId')
        if user_id:
            queryset = queryset.filter(user_id=user_id)
        course_id = self.request.query_params.get('courseId')
        if course_id:
            queryset = queryset.filter(course_id=course_id)
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = IssueCertificateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user = User.objects.filter(pk=data['userId']).first()
        if user is None:
            raise NotFoundError("User")
        course = Course.objects.filter(pk=data['courseId']).first()
        if course is None:
            raise NotFoundError("Course")
        exam = None
        if data.get('examId'):
            exam = get_object_or_404(Exam, pk=data['examId'], course=course)

        if not Enrollment.objects.filter(user=user, course=course).exists():
            raise ValidationError("User is not enrolled in this course")
        if Certificate.objects.filter(user=user, course=course).exists():
            raise ValidationError("Certificate already exists for this user and course")

        certificate, created = issue_certificate(
            user, course, exam=exam, issued_by=request.user, expires_at=data.get('expiresAt'),
        )
        if not created:
            raise ValidationError("Certificate already exists for this user and course")

        create_audit_log(
            request.user, 'CERTIFICATE', 'Certificate', certificate.id,
            {'userId': user.id, 'courseId': course.id, 'serial': certificate.serial},
            request=request,
        )
        NotificationService.create_from_template(
            Notification.Type.CERTIFICATE_ISSUED,
            user,
            {'courseTitle': course.title_en},
            sender=request.user,
            priority=Notification.Priority.HIGH,
            metadata={'certificateId': certificate.id, 'serial': certificate.serial},
        )
        return Response(CertificateSerializer(certificate).data, status=status.HTTP_201_CREATED)


class CertificateVerifyView(views.APIView):
    """Public lookup by serial, e.g. from the printed QR code."""
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def get(self, request, serial):
        certificate = Certificate.objects.select_related('user', 'course').filter(serial=serial).first()
        if certificate is None:
            raise NotFoundError("Certificate")
        return Response(CertificateVerificationSerializer(certificate).data)
