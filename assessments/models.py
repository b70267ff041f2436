# assessments/models.py
from django.db import models
from django.conf import settings
from exams.models import Exam

class Attempt(models.Model):
    """One trainee's scored submission for one exam. Retakes create new rows."""
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='attempts')
    exam = models.ForeignKey(Exam, on_delete=models.CASCADE, related_name='attempts')
    submitted_at = models.DateTimeField(default=None, null=True, blank=True, db_index=True)
    score = models.FloatField(default=0)
    passed = models.BooleanField(default=False)

    # Graded answers, totals, percentage, time spent, auto-submit flag
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.user} - {self.exam.title_en}"

    @property
    def max_score(self):
        return self.detail.get('maxScore', 0)

    @property
    def percentage(self):
        return self.detail.get('percentage', 0)

    @property
    def time_spent(self):
        return self.detail.get('timeSpent', 0)
