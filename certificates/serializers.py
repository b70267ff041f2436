from rest_framework import serializers
from .models import Certificate

class CertificateSerializer(serializers.ModelSerializer):
    # Readable names from the related user and course
    holder_name = serializers.CharField(source='user.display_name', read_only=True)
    holder_email = serializers.CharField(source='user.email', read_only=True)
    course_code = serializers.CharField(source='course.code', read_only=True)
    course_title = serializers.CharField(source='course.title_en', read_only=True)
    is_expired = serializers.ReadOnlyField()
    verification_url = serializers.CharField(source='verification_path', read_only=True)

    class Meta:
        model = Certificate
        fields = [
            'id',
            'serial',
            'qr_code',
            'user',
            'holder_name',
            'holder_email',
            'course',
            'course_code',
            'course_title',
            'exam',
            'issued_at',
            'expires_at',
            'is_expired',
            'verification_url',
        ]


class IssueCertificateSerializer(serializers.Serializer):
    userId = serializers.IntegerField()
    courseId = serializers.IntegerField()
    examId = serializers.IntegerField(required=False, allow_null=True)
    expiresAt = serializers.DateTimeField(required=False, allow_null=True)


class CertificateVerificationSerializer(serializers.ModelSerializer):
    """Public view of a certificate; no contact details."""
    holder_name = serializers.CharField(source='user.display_name', read_only=True)
    course_title = serializers.CharField(source='course.title_en', read_only=True)
    valid = serializers.SerializerMethodField()

    class Meta:
        model = Certificate
        fields = ['serial', 'holder_name', 'course_title', 'issued_at', 'expires_at', 'valid']

    def get_valid(self, obj):
        return not obj.is_expired
