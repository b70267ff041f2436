# exams/serializers.py
import random

from rest_framework import serializers
from .models import Exam, Question

# --- Question Serializers ---

class QuestionSerializer(serializers.ModelSerializer):
    """Full question, answer key included. Staff only."""
    exam_title = serializers.CharField(source='exam.title_en', read_only=True)
    answer = serializers.JSONField()

    class Meta:
        model = Question
        fields = [
            'id', 'exam', 'exam_title', 'order', 'type', 'stem_ar', 'stem_en',
            'options', 'answer', 'marks', 'bank_tag',
        ]

    def validate(self, attrs):
        q_type = attrs.get('type', getattr(self.instance, 'type', Question.QuestionType.MULTIPLE_CHOICE))
        options = attrs.get('options', getattr(self.instance, 'options', []))
        answer = attrs.get('answer', getattr(self.instance, 'answer', None))

        if q_type in (Question.QuestionType.MULTIPLE_CHOICE, Question.QuestionType.MULTIPLE_SELECT):
            if not options or len(options) < 2:
                raise serializers.ValidationError({'options': "Choice questions must have at least 2 options"})

        if q_type == Question.QuestionType.MULTIPLE_CHOICE:
            if not isinstance(answer, str) or answer not in options:
                raise serializers.ValidationError({'answer': "Answer must be one of the options"})
        elif q_type == Question.QuestionType.MULTIPLE_SELECT:
            if not isinstance(answer, list) or not answer or any(a not in options for a in answer):
                raise serializers.ValidationError({'answer': "Answer must be a non-empty list of options"})
        elif q_type == Question.QuestionType.TRUE_FALSE:
            if str(answer).lower() not in ('true', 'false'):
                raise serializers.ValidationError({'answer': "Answer must be 'true' or 'false'"})
            attrs['answer'] = str(answer).lower()
        elif q_type == Question.QuestionType.NUMERIC:
            try:
                float(answer)
            except (TypeError, ValueError):
                raise serializers.ValidationError({'answer': "Answer must be a number"})
            attrs['answer'] = str(answer)
        return attrs

class QuestionPublicSerializer(serializers.ModelSerializer):
    """What a trainee sees while taking the exam: no answer key."""
    class Meta:
        model = Question
        fields = ['id', 'order', 'type', 'stem_ar', 'stem_en', 'options', 'marks']

# --- Exam Serializers ---

class ExamSerializer(serializers.ModelSerializer):
    course_title = serializers.CharField(source='course.title_en', read_only=True)

    # Read-only counts
    total_questions = serializers.IntegerField(source='questions.count', read_only=True)
    total_marks = serializers.IntegerField(read_only=True)
    attempt_count = serializers.IntegerField(source='attempts.count', read_only=True)

    class Meta:
        model = Exam
        fields = [
            'id', 'course', 'course_title', 'title_ar', 'title_en',
            'time_limit_mins', 'is_published', 'randomize', 'negative_marking',
            'lockdown', 'total_questions', 'total_marks', 'attempt_count', 'created_at',
        ]
        read_only_fields = ['created_at']

class ExamListSerializer(serializers.ModelSerializer):
    course_title = serializers.CharField(source='course.title_en', read_only=True)

    class Meta:
        model = Exam
        fields = ['id', 'course', 'course_title', 'title_ar', 'title_en', 'time_limit_mins']

class ExamDetailSerializer(ExamSerializer):
    """Detailed view for trainees taking the exam"""
    questions = serializers.SerializerMethodField()

    class Meta(ExamSerializer.Meta):
        fields = ExamSerializer.Meta.fields + ['questions']

    def get_questions(self, obj):
        questions = list(obj.questions.all())
        if obj.randomize:
            random.shuffle(questions)
        return QuestionPublicSerializer(questions, many=True).data
