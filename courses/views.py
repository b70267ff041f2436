from django.shortcuts import get_object_or_404
from rest_framework import filters, generics, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from cores.audit import create_audit_log
from cores.permissions import HasPermission, IsAdminRole, has_permission
from notifications.models import Notification
from notifications.services import NotificationService

from .models import Course, Module, Tag, TrainingProgram
from .serializers import (
    CourseDetailSerializer,
    CourseSerializer,
    CourseTagsSerializer,
    EnrollmentSerializer,
    EnrollSerializer,
    ModuleSerializer,
    ModuleVersionSerializer,
    ProgramEnrollmentSerializer,
    TagSerializer,
    TrainingProgramSerializer,
)
from .services import enroll_in_program, enroll_user, publish_module_version


class CourseViewSet(viewsets.ModelViewSet):
    queryset = Course.objects.all().prefetch_related('tags').order_by('-created_at')
    permission_classes = [HasPermission]
    required_permissions = {
        'GET': ['courses:read'],
        'destroy': ['courses:delete'],
        '*': ['courses:write'],
    }

    # Enable search on code and titles
    filter_backends = [filters.SearchFilter]
    search_fields = ['code', 'title_en', 'title_ar']

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return CourseDetailSerializer
        if self.action == 'enroll':
            return EnrollSerializer
        if self.action in ('modules', 'module_detail'):
            return ModuleSerializer
        if self.action == 'tags':
            return CourseTagsSerializer
        return CourseSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        # Learners only browse what has been published
        if not has_permission(self.request.user.role, 'courses:write'):
            queryset = queryset.filter(status=Course.Status.PUBLISHED)
        course_status = self.request.query_params.get('status')
        if course_status:
            queryset = queryset.filter(status=course_status)
        return queryset

    def perform_create(self, serializer):
        course = serializer.save(created_by=self.request.user)
        create_audit_log(
            self.request.user, 'CREATE', 'Course', course.id,
            {'code': course.code, 'title_en': course.title_en},
            request=self.request,
        )

    def perform_update(self, serializer):
        course = serializer.save()
        create_audit_log(
            self.request.user, 'UPDATE', 'Course', course.id,
            {'fields': sorted(serializer.validated_data.keys())},
            request=self.request,
        )

    def perform_destroy(self, instance):
        create_audit_log(self.request.user, 'DELETE', 'Course', instance.id, {'code': instance.code}, request=self.request)
        instance.delete()

    @action(detail=True, methods=['post'])
    def enroll(self, request, pk=None):
        """
        Assigns a user to this course.
        Payload: { "userId": 12 }
        """
        course = self.get_object()
        serializer = EnrollSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        enrollment = enroll_user(course, serializer.validated_data['userId'], assigned_by=request.user)

        create_audit_log(
            request.user, 'ENROLL', 'Course', course.id,
            {'userId': enrollment.user_id},
            request=request,
        )
        NotificationService.create_from_template(
            Notification.Type.COURSE_ENROLLMENT,
            enrollment.user,
            {'courseTitle': course.title_en},
            sender=request.user,
        )
        return Response({'enrollment': EnrollmentSerializer(enrollment).data}, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get', 'post'])
    def modules(self, request, pk=None):
        course = get_object_or_404(Course, pk=pk)
        if request.method == 'GET':
            return Response(ModuleSerializer(course.modules.all(), many=True).data)

        serializer = ModuleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        last = course.modules.order_by('-order').first()
        module = serializer.save(course=course, order=(last.order + 1) if last else 1)
        create_audit_log(request.user, 'CREATE', 'Module', module.id, {'courseId': course.id}, request=request)
        return Response(ModuleSerializer(module).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get', 'put', 'patch', 'delete'], url_path=r'modules/(?P<module_id>\d+)')
    def module_detail(self, request, pk=None, module_id=None):
        module = get_object_or_404(Module, pk=module_id, course_id=pk)

        if request.method == 'GET':
            return Response({'module': ModuleSerializer(module).data})

        if request.method == 'DELETE':
            create_audit_log(request.user, 'DELETE', 'Module', module.id, {'courseId': module.course_id}, request=request)
            module.delete()
            return Response({'success': True})

        serializer = ModuleSerializer(module, data=request.data, partial=request.method == 'PATCH')
        serializer.is_valid(raise_exception=True)
        module = serializer.save()
        create_audit_log(
            request.user, 'UPDATE', 'Module', module.id,
            {'courseId': module.course_id, 'fields': sorted(serializer.validated_data.keys())},
            request=request,
        )
        return Response({'module': ModuleSerializer(module).data})

    @action(detail=True, methods=['get', 'put'])
    def tags(self, request, pk=None):
        """
        GET lists the course's tags.
        PUT replaces them: { "tagIds": [1, 4] }
        """
        course = get_object_or_404(Course, pk=pk)
        if request.method == 'GET':
            return Response({'tags': TagSerializer(course.tags.order_by('name'), many=True).data})

        serializer = CourseTagsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        tag_ids = serializer.validated_data['tagIds']
        course.tags.set(tag_ids)
        create_audit_log(request.user, 'UPDATE', 'Course', course.id, {'tagIds': tag_ids}, request=request)
        return Response({'success': True, 'course': CourseSerializer(course).data})


class ModuleVersionListCreateView(generics.ListCreateAPIView):
    """Revision history of a module, newest first. POST publishes a new revision."""
    serializer_class = ModuleVersionSerializer
    permission_classes = [HasPermission]
    required_permissions = {
        'GET': ['courses:read'],
        '*': ['courses:write'],
    }
    pagination_class = None

    def get_module(self):
        return get_object_or_404(Module, pk=self.kwargs['module_id'])

    def get_queryset(self):
        return self.get_module().versions.select_related('created_by')

    def create(self, request, *args, **kwargs):
        module = self.get_module()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        module_version = publish_module_version(module, serializer.validated_data, created_by=request.user)
        create_audit_log(
            request.user, 'CREATE', 'ModuleVersion', module_version.id,
            {'moduleId': module.id, 'version': module_version.version},
            request=request,
        )
        return Response(self.get_serializer(module_version).data, status=status.HTTP_201_CREATED)


class TagViewSet(viewsets.ModelViewSet):
    queryset = Tag.objects.all().order_by('name')
    serializer_class = TagSerializer
    permission_classes = [HasPermission]
    required_permissions = {
        'GET': ['courses:read'],
        '*': ['courses:write'],
    }


class TrainingProgramViewSet(viewsets.ModelViewSet):
    """
    Ordered bundles of courses. Admins maintain them; enrolling a user into a
    program enrolls them into each of its courses.
    """
    serializer_class = TrainingProgramSerializer
    permission_classes = [HasPermission]
    required_permissions = {
        'GET': ['courses:read'],
        # Commanders staff their units into programs
        'enroll': {'GET': ['courses:read'], 'POST': ['users:read']},
    }

    def get_permissions(self):
        if self.action in ('create', 'update', 'partial_update', 'destroy'):
            return [IsAdminRole()]
        return super().get_permissions()

    def get_queryset(self):
        queryset = TrainingProgram.objects.prefetch_related('program_courses__course').order_by('-created_at')
        if self.action == 'list':
            queryset = queryset.filter(is_active=True)
        return queryset

    def perform_create(self, serializer):
        program = serializer.save()
        create_audit_log(
            self.request.user, 'CREATE', 'TrainingProgram', program.id,
            {'name': program.name, 'courseIds': serializer.validated_data['courseIds']},
            request=self.request,
        )

    def perform_update(self, serializer):
        program = serializer.save()
        create_audit_log(
            self.request.user, 'UPDATE', 'TrainingProgram', program.id,
            {'fields': sorted(serializer.validated_data.keys())},
            request=self.request,
        )

    def perform_destroy(self, instance):
        create_audit_log(self.request.user, 'DELETE', 'TrainingProgram', instance.id, {'name': instance.name}, request=self.request)
        instance.delete()

    @action(detail=True, methods=['get', 'post'])
    def enroll(self, request, pk=None):
        """
        GET lists who is enrolled in the program.
        POST enrolls one user: { "userId": 12 }
        """
        program = self.get_object()
        if request.method == 'GET':
            enrollments = program.enrollments.select_related('user', 'program')
            return Response({'enrollments': ProgramEnrollmentSerializer(enrollments, many=True).data})

        serializer = EnrollSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        program_enrollment, course_enrollments = enroll_in_program(
            program, serializer.validated_data['userId'], assigned_by=request.user,
        )

        create_audit_log(
            request.user, 'ENROLL', 'TrainingProgram', program.id,
            {'userId': program_enrollment.user_id, 'courseIds': [e.course_id for e in course_enrollments]},
            request=request,
        )
        for enrollment in course_enrollments:
            NotificationService.create_from_template(
                Notification.Type.COURSE_ENROLLMENT,
                enrollment.user,
                {'courseTitle': enrollment.course.title_en},
                sender=request.user,
            )
        return Response({
            'enrollment': ProgramEnrollmentSerializer(program_enrollment).data,
            'courseEnrollments': EnrollmentSerializer(course_enrollments, many=True).data,
        }, status=status.HTTP_201_CREATED)
