from rest_framework import serializers

from .models import Attempt


class AnswerField(serializers.Field):
    """A single string, or a list of strings for multiple_select."""

    default_error_messages = {
        'invalid': 'Answer must be a string or a list of strings.',
    }

    def to_internal_value(self, data):
        if isinstance(data, bool):
            self.fail('invalid')
        if isinstance(data, (int, float)):
            return str(data)
        if isinstance(data, str):
            return data
        if isinstance(data, list) and all(isinstance(item, str) for item in data):
            return data
        self.fail('invalid')

    def to_representation(self, value):
        return value


class SubmitAnswerSerializer(serializers.Serializer):
    questionId = serializers.CharField()
    answer = AnswerField()
    timeSpent = serializers.FloatField(min_value=0, default=0)


class ExamSubmitSerializer(serializers.Serializer):
    answers = SubmitAnswerSerializer(many=True)
    autoSubmit = serializers.BooleanField(default=False)


class AttemptResultSerializer(serializers.ModelSerializer):
    """Wire shape of a submitted attempt."""
    maxScore = serializers.SerializerMethodField()
    timeSpent = serializers.SerializerMethodField()
    submittedAt = serializers.DateTimeField(source='submitted_at')
    certificate = serializers.SerializerMethodField()

    class Meta:
        model = Attempt
        fields = ['id', 'score', 'maxScore', 'percentage', 'passed', 'timeSpent', 'submittedAt', 'certificate']

    def get_maxScore(self, obj):
        return obj.max_score

    def get_timeSpent(self, obj):
        return obj.time_spent

    def get_certificate(self, obj):
        certificate = self.context.get('certificate')
        return certificate.serial if certificate else None


class AttemptSerializer(serializers.ModelSerializer):
    exam_title = serializers.CharField(source='exam.title_en', read_only=True)
    course = serializers.IntegerField(source='exam.course_id', read_only=True)
    max_score = serializers.ReadOnlyField()
    percentage = serializers.ReadOnlyField()
    time_spent = serializers.ReadOnlyField()

    class Meta:
        model = Attempt
        fields = ['id', 'exam', 'exam_title', 'course', 'score', 'max_score', 'percentage',
                  'passed', 'time_spent', 'submitted_at', 'created_at']


class AttemptDetailSerializer(AttemptSerializer):
    """Includes the per-question breakdown."""
    answers = serializers.SerializerMethodField()
    auto_submitted = serializers.SerializerMethodField()

    class Meta(AttemptSerializer.Meta):
        fields = AttemptSerializer.Meta.fields + ['answers', 'auto_submitted']

    def get_answers(self, obj):
        return obj.detail.get('answers', [])

    def get_auto_submitted(self, obj):
        return obj.detail.get('autoSubmitted', False)
