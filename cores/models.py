from django.db import models
from django.conf import settings


class AuditLog(models.Model):
    ACTION_CHOICES = [
        ('CREATE', 'Create'),
        ('UPDATE', 'Update'),
        ('DELETE', 'Delete'),
        ('LOGIN', 'Login'),
        ('LOGOUT', 'Logout'),
        ('SUBMIT', 'Exam Submitted'),
        ('ENROLL', 'Enrollment'),
        ('CERTIFICATE', 'Certificate Issued'),
        ('MARK_ATTENDANCE', 'Attendance Marked'),
        ('BULK_ATTENDANCE', 'Bulk Attendance'),
        ('UPLOAD', 'File Uploaded'),
        ('ARCHIVE', 'Archived'),
        ('IMPORT', 'Import'),
        ('EXPORT', 'Export'),
    ]

    actor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=30, choices=ACTION_CHOICES)
    entity = models.CharField(max_length=50, help_text="e.g., Exam, User, Certificate")
    entity_id = models.CharField(max_length=100, blank=True, null=True)
    metadata = models.JSONField(default=dict, blank=True)
    ip = models.GenericIPAddressField(null=True, blank=True)
    ts = models.DateTimeField(auto_now_add=True, db_index=True)

    # sha256(previous hash + record payload); the first record chains from "genesis"
    immutable_hash = models.CharField(max_length=64, editable=False)

    class Meta:
        ordering = ['-ts', '-id']

    def __str__(self):
        return f"{self.actor} - {self.action} - {self.ts}"


class Archive(models.Model):
    class EntityType(models.TextChoices):
        COURSE = "course", "Course"
        MODULE = "module", "Module"
        EXAM = "exam", "Exam"

    entity_type = models.CharField(max_length=20, choices=EntityType.choices)
    entity_id = models.CharField(max_length=100)
    version = models.CharField(max_length=50)
    reason = models.TextField(blank=True)
    snapshot = models.JSONField(default=dict)
    archived_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='archives')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.entity_type}:{self.entity_id} v{self.version}"
