from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework import serializers

from cores.serializers import LowercaseChoiceField

from .models import Attendance, TrainingSession

User = get_user_model()


class AttendancePolicySerializer(serializers.Serializer):
    allowLateCheckin = serializers.BooleanField(default=False)
    lateCheckinMinutes = serializers.IntegerField(default=15, min_value=0)
    autoMarkAbsent = serializers.BooleanField(default=False)
    qrRequired = serializers.BooleanField(default=False)


class TrainingSessionSerializer(serializers.ModelSerializer):
    course_title = serializers.CharField(source='course.title_en', read_only=True)
    instructor_name = serializers.CharField(source='instructor.display_name', read_only=True, default=None)
    attendance_count = serializers.IntegerField(source='attendance.count', read_only=True)
    mode = LowercaseChoiceField(choices=TrainingSession.Mode.choices, default=TrainingSession.Mode.CLASSROOM)
    attendance_policy = serializers.JSONField(required=False)

    class Meta:
        model = TrainingSession
        fields = [
            'id', 'course', 'course_title', 'title_ar', 'title_en', 'room',
            'starts_at', 'ends_at', 'instructor', 'instructor_name', 'capacity',
            'mode', 'attendance_policy', 'attendance_count',
        ]

    def validate_instructor(self, value):
        if value is not None and value.role != User.Role.INSTRUCTOR:
            raise serializers.ValidationError("Invalid instructor")
        return value

    def validate_attendance_policy(self, value):
        policy = AttendancePolicySerializer(data=value)
        policy.is_valid(raise_exception=True)
        return dict(policy.validated_data)

    def validate_capacity(self, value):
        if value < 1:
            raise serializers.ValidationError("Capacity must be at least 1")
        return value

    def validate(self, attrs):
        starts_at = attrs.get('starts_at', getattr(self.instance, 'starts_at', None))
        ends_at = attrs.get('ends_at', getattr(self.instance, 'ends_at', None))
        if starts_at and ends_at and starts_at >= ends_at:
            raise serializers.ValidationError({'ends_at': "Session end time must be after start time"})
        if self.instance is None and starts_at and starts_at < timezone.now():
            raise serializers.ValidationError({'starts_at': "Session start time cannot be in the past"})
        return attrs


class AttendanceRecordSerializer(serializers.Serializer):
    """One attendance mark as posted by an instructor."""
    userId = serializers.IntegerField()
    status = LowercaseChoiceField(choices=Attendance.Status.choices)
    method = LowercaseChoiceField(choices=Attendance.Method.choices, default=Attendance.Method.MANUAL)
    notes = serializers.CharField(allow_blank=True, default='')


class AttendanceSerializer(serializers.ModelSerializer):
    user_name = serializers.CharField(source='user.display_name', read_only=True)
    badge_no = serializers.CharField(source='user.badge_no', read_only=True)
    rank = serializers.CharField(source='user.rank', read_only=True)
    unit = serializers.CharField(source='user.unit', read_only=True)
    captured_by_name = serializers.CharField(source='captured_by.display_name', read_only=True, default=None)

    class Meta:
        model = Attendance
        fields = [
            'id', 'session', 'user', 'user_name', 'badge_no', 'rank', 'unit',
            'status', 'method', 'notes', 'captured_by', 'captured_by_name', 'captured_at',
        ]
