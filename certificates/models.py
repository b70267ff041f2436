# certificates/models.py
from django.conf import settings
from django.db import models
from django.utils import timezone

from courses.models import Course
from exams.models import Exam

class Certificate(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='certificates')
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name='certificates')
    exam = models.ForeignKey(Exam, on_delete=models.SET_NULL, null=True, blank=True, related_name='certificates')

    issued_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField(null=True, blank=True, db_index=True)

    # Public identifiers printed on the certificate
    serial = models.CharField(max_length=60, unique=True)
    qr_code = models.CharField(max_length=60)

    issued_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')

    class Meta:
        ordering = ['-issued_at']
        constraints = [
            models.UniqueConstraint(fields=['user', 'course'], name='unique_certificate_per_course')
        ]

    def __str__(self):
        return f"Cert {self.serial} for {self.user}"

    @property
    def is_expired(self):
        return self.expires_at is not None and self.expires_at < timezone.now()

    @property
    def verification_path(self):
        return f"/api/certificates/verify/{self.serial}/"
