from django.conf import settings
from django.db import models
from django.utils import timezone

from courses.models import Course


def default_attendance_policy():
    return {
        'allowLateCheckin': False,
        'lateCheckinMinutes': 15,
        'autoMarkAbsent': False,
        'qrRequired': False,
    }


class TrainingSession(models.Model):
    """A scheduled classroom or field session of a course."""

    class Mode(models.TextChoices):
        CLASSROOM = "classroom", "Classroom"
        FIELD = "field", "Field"

    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name='sessions')
    title_ar = models.CharField(max_length=255)
    title_en = models.CharField(max_length=255)
    room = models.CharField(max_length=100, blank=True)
    starts_at = models.DateTimeField(db_index=True)
    ends_at = models.DateTimeField()
    instructor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='instructed_sessions')
    capacity = models.PositiveIntegerField(default=30)
    mode = models.CharField(max_length=20, choices=Mode.choices, default=Mode.CLASSROOM)
    attendance_policy = models.JSONField(default=default_attendance_policy, blank=True)

    class Meta:
        ordering = ['starts_at']

    def __str__(self):
        return f"{self.title_en} ({self.starts_at:%Y-%m-%d %H:%M})"


class Attendance(models.Model):
    class Status(models.TextChoices):
        PRESENT = "present", "Present"
        ABSENT = "absent", "Absent"
        LATE = "late", "Late"

    class Method(models.TextChoices):
        QR = "qr", "QR"
        MANUAL = "manual", "Manual"
        IMPORT = "import", "Import"

    session = models.ForeignKey(TrainingSession, on_delete=models.CASCADE, related_name='attendance')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='attendance')
    status = models.CharField(max_length=10, choices=Status.choices)
    method = models.CharField(max_length=10, choices=Method.choices, default=Method.MANUAL)
    notes = models.TextField(blank=True)
    captured_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='+')
    captured_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-captured_at', '-id']
        constraints = [
            models.UniqueConstraint(fields=['session', 'user'], name='unique_attendance_per_session')
        ]

    def __str__(self):
        return f"{self.user} @ {self.session_id}: {self.status}"
