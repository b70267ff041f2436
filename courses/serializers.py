from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import Course, Enrollment, Module, ModuleVersion, ProgramCourse, ProgramEnrollment, Tag, TrainingProgram

User = get_user_model()

class TagSerializer(serializers.ModelSerializer):
    class Meta:
        model = Tag
        fields = ['id', 'name', 'description', 'color']

class ModuleSerializer(serializers.ModelSerializer):
    class Meta:
        model = Module
        fields = ['id', 'course', 'order', 'title_ar', 'title_en', 'kind', 'uri', 'duration_mins', 'version']
        read_only_fields = ['course', 'version']

class CourseSerializer(serializers.ModelSerializer):
    tags = TagSerializer(many=True, read_only=True)
    tag_ids = serializers.PrimaryKeyRelatedField(
        source='tags', queryset=Tag.objects.all(), many=True, write_only=True, required=False
    )
    module_count = serializers.IntegerField(source='modules.count', read_only=True)
    enrollment_count = serializers.IntegerField(source='enrollments.count', read_only=True)

    class Meta:
        model = Course
        fields = [
            'id', 'code', 'title_ar', 'title_en', 'summary_ar', 'summary_en',
            'modality', 'duration_mins', 'status', 'tags', 'tag_ids',
            'module_count', 'enrollment_count', 'created_at',
        ]
        read_only_fields = ['created_at']

class CourseDetailSerializer(CourseSerializer):
    modules = ModuleSerializer(many=True, read_only=True)

    class Meta(CourseSerializer.Meta):
        fields = CourseSerializer.Meta.fields + ['modules']

class EnrollmentSerializer(serializers.ModelSerializer):
    user_email = serializers.CharField(source='user.email', read_only=True)
    course_code = serializers.CharField(source='course.code', read_only=True)

    class Meta:
        model = Enrollment
        fields = ['id', 'user', 'user_email', 'course', 'course_code', 'status', 'assigned_by', 'assigned_at', 'completed_at']
        read_only_fields = fields

class EnrollSerializer(serializers.Serializer):
    userId = serializers.IntegerField(min_value=1)

class CourseTagsSerializer(serializers.Serializer):
    """Payload for replacing a course's tags: { "tagIds": [1, 4] }"""
    tagIds = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=True)

    def validate_tagIds(self, value):
        ids = set(value)
        if Tag.objects.filter(pk__in=ids).count() != len(ids):
            raise serializers.ValidationError("Some tags not found")
        return sorted(ids)

class ModuleVersionSerializer(serializers.ModelSerializer):
    created_by_email = serializers.CharField(source='created_by.email', read_only=True, default=None)

    class Meta:
        model = ModuleVersion
        fields = ['id', 'module', 'version', 'uri', 'metadata', 'change_log', 'created_by', 'created_by_email', 'created_at']
        read_only_fields = ['module', 'created_by', 'created_at']

class ProgramCourseSerializer(serializers.ModelSerializer):
    id = serializers.IntegerField(source='course.id', read_only=True)
    code = serializers.CharField(source='course.code', read_only=True)
    title_ar = serializers.CharField(source='course.title_ar', read_only=True)
    title_en = serializers.CharField(source='course.title_en', read_only=True)
    duration_mins = serializers.IntegerField(source='course.duration_mins', read_only=True)
    modality = serializers.CharField(source='course.modality', read_only=True)

    class Meta:
        model = ProgramCourse
        fields = ['id', 'code', 'title_ar', 'title_en', 'duration_mins', 'modality', 'order', 'is_required']

class TrainingProgramSerializer(serializers.ModelSerializer):
    courses = ProgramCourseSerializer(source='program_courses', many=True, read_only=True)
    courseIds = serializers.ListField(child=serializers.IntegerField(min_value=1), write_only=True)
    enrollment_count = serializers.IntegerField(source='enrollments.count', read_only=True)

    class Meta:
        model = TrainingProgram
        fields = ['id', 'name', 'description', 'is_active', 'courses', 'courseIds', 'enrollment_count', 'created_at']
        read_only_fields = ['created_at']

    def validate_courseIds(self, value):
        if len(set(value)) != len(value):
            raise serializers.ValidationError("A course can only appear once in a program")
        if Course.objects.filter(pk__in=value).count() != len(value):
            raise serializers.ValidationError("Some courses not found")
        return value

    def _set_courses(self, program, course_ids):
        program.program_courses.all().delete()
        ProgramCourse.objects.bulk_create([
            ProgramCourse(program=program, course_id=course_id, order=index)
            for index, course_id in enumerate(course_ids, start=1)
        ])

    def create(self, validated_data):
        course_ids = validated_data.pop('courseIds')
        program = TrainingProgram.objects.create(**validated_data)
        self._set_courses(program, course_ids)
        return program

    def update(self, instance, validated_data):
        course_ids = validated_data.pop('courseIds', None)
        instance = super().update(instance, validated_data)
        if course_ids is not None:
            self._set_courses(instance, course_ids)
        return instance

class ProgramEnrollmentSerializer(serializers.ModelSerializer):
    user_email = serializers.CharField(source='user.email', read_only=True)
    user_name = serializers.CharField(source='user.get_full_name', read_only=True)
    badge_no = serializers.CharField(source='user.badge_no', read_only=True)
    unit = serializers.CharField(source='user.unit', read_only=True, default=None)
    program_name = serializers.CharField(source='program.name', read_only=True)

    class Meta:
        model = ProgramEnrollment
        fields = ['id', 'user', 'user_email', 'user_name', 'badge_no', 'unit', 'program', 'program_name', 'status', 'assigned_by', 'assigned_at']
        read_only_fields = fields
