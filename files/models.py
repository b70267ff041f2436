from django.conf import settings
from django.db import models

from courses.models import Course, Module


class FileObject(models.Model):
    """Metadata for an uploaded blob; the bytes live in the storage driver."""

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        DELETED = "deleted", "Deleted"

    bucket = models.CharField(max_length=100)
    key = models.CharField(max_length=512, unique=True)
    filename = models.CharField(max_length=255)
    size = models.PositiveBigIntegerField()
    checksum = models.CharField(max_length=64)
    content_type = models.CharField(max_length=150)

    uploader = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='uploads')
    course = models.ForeignKey(Course, on_delete=models.SET_NULL, null=True, blank=True, related_name='files')
    module = models.ForeignKey(Module, on_delete=models.SET_NULL, null=True, blank=True, related_name='files')

    is_public = models.BooleanField(default=False)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.ACTIVE, db_index=True)
    download_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return self.filename
