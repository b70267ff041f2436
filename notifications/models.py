from django.conf import settings
from django.db import models


def default_channels():
    return ["in_app"]


class Notification(models.Model):
    class Type(models.TextChoices):
        COURSE_ENROLLMENT = "COURSE_ENROLLMENT", "Course Enrollment"
        COURSE_COMPLETION = "COURSE_COMPLETION", "Course Completion"
        EXAM_AVAILABLE = "EXAM_AVAILABLE", "Exam Available"
        EXAM_SUBMITTED = "EXAM_SUBMITTED", "Exam Submitted"
        EXAM_GRADED = "EXAM_GRADED", "Exam Graded"
        CERTIFICATE_ISSUED = "CERTIFICATE_ISSUED", "Certificate Issued"
        SESSION_REMINDER = "SESSION_REMINDER", "Session Reminder"
        SYSTEM_ANNOUNCEMENT = "SYSTEM_ANNOUNCEMENT", "System Announcement"
        CUSTOM_MESSAGE = "CUSTOM_MESSAGE", "Custom Message"

    class Channel(models.TextChoices):
        IN_APP = "in_app", "In App"
        EMAIL = "email", "Email"
        SMS = "sms", "SMS"

    class Priority(models.TextChoices):
        LOW = "low", "Low"
        MEDIUM = "medium", "Medium"
        HIGH = "high", "High"
        URGENT = "urgent", "Urgent"

    type = models.CharField(max_length=30, choices=Type.choices)
    recipient = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='notifications')
    sender = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='sent_notifications')

    title_ar = models.CharField(max_length=255)
    title_en = models.CharField(max_length=255)
    message_ar = models.TextField()
    message_en = models.TextField()

    priority = models.CharField(max_length=10, choices=Priority.choices, default=Priority.MEDIUM)
    channels = models.JSONField(default=default_channels)
    metadata = models.JSONField(default=dict, blank=True)

    is_read = models.BooleanField(default=False, db_index=True)
    read_at = models.DateTimeField(null=True, blank=True)
    sent_at = models.DateTimeField(auto_now_add=True)
    scheduled_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-sent_at', '-id']

    def __str__(self):
        return f"{self.type} -> {self.recipient}"
