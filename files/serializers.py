from rest_framework import serializers

from courses.models import Course, Module

from .models import FileObject


class FileUploadMetadataSerializer(serializers.Serializer):
    courseId = serializers.PrimaryKeyRelatedField(queryset=Course.objects.all(), required=False, allow_null=True)
    moduleId = serializers.PrimaryKeyRelatedField(queryset=Module.objects.all(), required=False, allow_null=True)
    isPublic = serializers.BooleanField(default=False)
    description = serializers.CharField(required=False, allow_blank=True)


class FileObjectSerializer(serializers.ModelSerializer):
    uploader_name = serializers.CharField(source='uploader.display_name', read_only=True, default=None)
    url = serializers.SerializerMethodField()

    class Meta:
        model = FileObject
        fields = [
            'id', 'bucket', 'key', 'filename', 'size', 'checksum', 'content_type',
            'uploader', 'uploader_name', 'course', 'module', 'is_public', 'status',
            'download_count', 'created_at', 'url',
        ]

    def get_url(self, obj):
        storage = self.context.get('storage')
        if storage is None:
            return None
        return storage.resolve_url(obj.key)
