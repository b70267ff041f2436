# tsf_platform/courses/models.py
from django.conf import settings
from django.core.validators import RegexValidator
from django.db import models

class Tag(models.Model):
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True)
    color = models.CharField(
        max_length=7, blank=True,
        validators=[RegexValidator(r'^#[0-9A-Fa-f]{6}$', "Color must look like #1A2B3C")],
    )

    def __str__(self):
        return self.name

class Course(models.Model):
    class Modality(models.TextChoices):
        ELEARNING = "elearning", "E-Learning"
        CLASSROOM = "classroom", "Classroom"
        BLENDED = "blended", "Blended"

    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        PUBLISHED = "published", "Published"
        ARCHIVED = "archived", "Archived"

    code = models.CharField(max_length=30, unique=True)
    title_ar = models.CharField(max_length=255)
    title_en = models.CharField(max_length=255)
    summary_ar = models.TextField(blank=True)
    summary_en = models.TextField(blank=True)
    modality = models.CharField(max_length=20, choices=Modality.choices, default=Modality.ELEARNING)
    duration_mins = models.PositiveIntegerField(default=60)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)

    tags = models.ManyToManyField(Tag, blank=True, related_name='courses')
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='courses_created')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.code} - {self.title_en}"

class Module(models.Model):
    class Kind(models.TextChoices):
        VIDEO = "video", "Video"
        PDF = "pdf", "PDF"
        QUIZ = "quiz", "Quiz"
        SCORM = "scorm", "SCORM"
        H5P = "h5p", "H5P"

    course = models.ForeignKey(Course, related_name='modules', on_delete=models.CASCADE)
    order = models.PositiveIntegerField(default=1)
    title_ar = models.CharField(max_length=255)
    title_en = models.CharField(max_length=255)
    kind = models.CharField(max_length=10, choices=Kind.choices, default=Kind.PDF)
    uri = models.CharField(max_length=500, blank=True)
    duration_mins = models.PositiveIntegerField(default=1)
    version = models.PositiveIntegerField(default=1)

    class Meta:
        ordering = ['course', 'order', 'id']

    def __str__(self):
        return f"{self.course.code} #{self.order} {self.title_en}"

class Enrollment(models.Model):
    class Status(models.TextChoices):
        ASSIGNED = "assigned", "Assigned"
        IN_PROGRESS = "in_progress", "In Progress"
        COMPLETED = "completed", "Completed"

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='enrollments')
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name='enrollments')
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ASSIGNED)
    assigned_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    assigned_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['user', 'course'], name='unique_enrollment_per_course')
        ]

    def __str__(self):
        return f"{self.user} - {self.course.code} ({self.status})"

class ModuleVersion(models.Model):
    """A published revision of a module's content."""
    module = models.ForeignKey(Module, related_name='versions', on_delete=models.CASCADE)
    version = models.CharField(max_length=50)
    uri = models.CharField(max_length=500)
    metadata = models.JSONField(default=dict, blank=True)
    change_log = models.TextField(blank=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.module} v{self.version}"

class TrainingProgram(models.Model):
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    courses = models.ManyToManyField(Course, through='ProgramCourse', related_name='programs')
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

class ProgramCourse(models.Model):
    program = models.ForeignKey(TrainingProgram, related_name='program_courses', on_delete=models.CASCADE)
    course = models.ForeignKey(Course, related_name='program_links', on_delete=models.CASCADE)
    order = models.PositiveIntegerField(default=1)
    is_required = models.BooleanField(default=True)

    class Meta:
        ordering = ['program', 'order']
        constraints = [
            models.UniqueConstraint(fields=['program', 'course'], name='unique_course_per_program')
        ]

class ProgramEnrollment(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='program_enrollments')
    program = models.ForeignKey(TrainingProgram, on_delete=models.CASCADE, related_name='enrollments')
    status = models.CharField(max_length=20, choices=Enrollment.Status.choices, default=Enrollment.Status.ASSIGNED)
    assigned_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    assigned_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-assigned_at', '-id']
        constraints = [
            models.UniqueConstraint(fields=['user', 'program'], name='unique_enrollment_per_program')
        ]

    def __str__(self):
        return f"{self.user} - {self.program} ({self.status})"
