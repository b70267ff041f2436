# exams/models.py
from django.core.validators import MinValueValidator
from django.db import models

from courses.models import Course

class Exam(models.Model):
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name='exams')
    title_ar = models.CharField(max_length=255)
    title_en = models.CharField(max_length=255)
    time_limit_mins = models.PositiveIntegerField(default=60)

    is_published = models.BooleanField(default=False)
    randomize = models.BooleanField(default=False)
    negative_marking = models.BooleanField(default=False)
    lockdown = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.title_en

    @property
    def total_marks(self):
        return sum(q.marks for q in self.questions.all())

class Question(models.Model):
    class QuestionType(models.TextChoices):
        MULTIPLE_CHOICE = "multiple_choice", "Multiple Choice"
        MULTIPLE_SELECT = "multiple_select", "Multiple Select"
        TRUE_FALSE = "true_false", "True / False"
        NUMERIC = "numeric", "Numeric"
        SHORT_ANSWER = "short_answer", "Short Answer"

    exam = models.ForeignKey(Exam, related_name='questions', on_delete=models.CASCADE)
    order = models.PositiveIntegerField(default=1)

    type = models.CharField(max_length=20, choices=QuestionType.choices, default=QuestionType.MULTIPLE_CHOICE)
    stem_ar = models.TextField(blank=True)
    stem_en = models.TextField()
    options = models.JSONField(default=list, blank=True)

    # Answer key: a string, or a list of strings for multiple_select
    answer = models.JSONField(null=True, blank=True)
    marks = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    bank_tag = models.CharField(max_length=100, blank=True)

    class Meta:
        ordering = ['exam', 'order', 'id']

    def __str__(self):
        return f"{self.stem_en[:50]}..."
