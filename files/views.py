import json

from django.db.models import Q
from django.http import HttpResponse
from rest_framework import generics, permissions, status, views
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response

from cores.audit import create_audit_log
from cores.errors import ValidationError
from cores.permissions import HasPermission, is_admin_role

from .models import FileObject
from .serializers import FileObjectSerializer, FileUploadMetadataSerializer
from .services import check_file_access, delete_file, get_active_file, read_file, store_upload
from .storage import get_storage


class FileUploadView(views.APIView):
    """
    Multipart upload.
    Fields: file (required), metadata (JSON: {"courseId", "moduleId", "isPublic"})
    """
    permission_classes = [HasPermission]
    required_permissions = ['files:upload']
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request):
        uploaded = request.FILES.get('file')
        if uploaded is None:
            raise ValidationError("No file provided", details={'file': ["This field is required."]})

        try:
            raw_metadata = json.loads(request.data.get('metadata') or '{}')
        except json.JSONDecodeError:
            raise ValidationError("Invalid metadata", details={'metadata': ["Must be valid JSON."]})

        metadata = FileUploadMetadataSerializer(data=raw_metadata)
        metadata.is_valid(raise_exception=True)
        options = metadata.validated_data

        file_object, storage = store_upload(
            uploaded,
            request.user,
            course=options.get('courseId'),
            module=options.get('moduleId'),
            is_public=options['isPublic'],
        )
        create_audit_log(
            request.user, 'UPLOAD', 'FileObject', file_object.id,
            {'filename': file_object.filename, 'size': file_object.size, 'key': file_object.key},
            request=request,
        )
        data = FileObjectSerializer(file_object, context={'storage': storage}).data
        return Response({'file': data}, status=status.HTTP_201_CREATED)


class FileListView(generics.ListAPIView):
    permission_classes = [HasPermission]
    required_permissions = ['files:read']
    serializer_class = FileObjectSerializer

    def get_queryset(self):
        queryset = FileObject.objects.filter(status=FileObject.Status.ACTIVE).select_related('uploader')
        if not is_admin_role(self.request.user.role):
            user = self.request.user
            queryset = queryset.filter(
                Q(uploader=user) | Q(is_public=True) | Q(course__enrollments__user=user)
            ).distinct()
        params = self.request.query_params
        if params.get('courseId'):
            queryset = queryset.filter(course_id=params['courseId'])
        if params.get('moduleId'):
            queryset = queryset.filter(module_id=params['moduleId'])
        return queryset

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['storage'] = get_storage()
        return context


def _file_response(file_object, data, disposition):
    response = HttpResponse(data, content_type=file_object.content_type)
    response['Content-Length'] = str(len(data))
    response['Content-Disposition'] = f'{disposition}; filename="{file_object.filename}"'
    response['Cache-Control'] = 'private, max-age=3600'
    return response


class FileDetailView(views.APIView):
    """GET downloads as an attachment; DELETE soft-deletes (uploader or admin)."""
    permission_classes = [permissions.AllowAny]

    def get(self, request, key):
        file_object = get_active_file(key)
        check_file_access(file_object, request.user)
        return _file_response(file_object, read_file(file_object), 'attachment')

    def delete(self, request, key):
        if not request.user.is_authenticated:
            self.permission_denied(request)
        file_object = get_active_file(key)
        delete_file(file_object, request.user)
        create_audit_log(
            request.user, 'DELETE', 'FileObject', file_object.id,
            {'filename': file_object.filename, 'key': file_object.key},
            request=request,
        )
        return Response({'success': True, 'message': 'File deleted successfully'})


class FilePreviewView(views.APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request, key):
        file_object = get_active_file(key)
        check_file_access(file_object, request.user)
        return _file_response(file_object, read_file(file_object), 'inline')
