import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from cores.errors import NotFoundError, ValidationError

from .models import Enrollment, ModuleVersion, ProgramEnrollment

logger = logging.getLogger(__name__)

User = get_user_model()


def enroll_user(course, user_id, assigned_by=None):
    """Assign a user to a course. A second enrollment for the same pair is rejected."""
    user = User.objects.filter(pk=user_id).first()
    if user is None:
        raise NotFoundError("User", context={'userId': user_id})

    if Enrollment.objects.filter(user=user, course=course).exists():
        raise ValidationError("User is already enrolled in this course")

    enrollment = Enrollment.objects.create(user=user, course=course, assigned_by=assigned_by)
    logger.info("Enrollment created: user=%s course=%s", user.email, course.code)
    return enrollment


def mark_enrollment_completed(user, course):
    """Moves an existing enrollment to completed; returns True when one was updated."""
    updated = Enrollment.objects.filter(user=user, course=course).exclude(
        status=Enrollment.Status.COMPLETED
    ).update(status=Enrollment.Status.COMPLETED, completed_at=timezone.now())
    return updated > 0


def enroll_in_program(program, user_id, assigned_by=None):
    """
    Assigns a user to a training program and to every course in it.

    Returns (program_enrollment, new_course_enrollments). Course enrollments the
    user already holds are left as they are, completed ones included.
    """
    user = User.objects.filter(pk=user_id).first()
    if user is None:
        raise NotFoundError("User", context={'userId': user_id})

    if ProgramEnrollment.objects.filter(user=user, program=program).exists():
        raise ValidationError("User is already enrolled in this program")

    created = []
    with transaction.atomic():
        program_enrollment = ProgramEnrollment.objects.create(user=user, program=program, assigned_by=assigned_by)
        for link in program.program_courses.select_related('course'):
            enrollment, is_new = Enrollment.objects.get_or_create(
                user=user, course=link.course, defaults={'assigned_by': assigned_by},
            )
            if is_new:
                created.append(enrollment)

    logger.info(
        "Program enrollment created: user=%s program=%s new_courses=%s",
        user.email, program.pk, len(created),
    )
    return program_enrollment, created


def publish_module_version(module, data, created_by=None):
    """Records a new revision and points the module at its content."""
    with transaction.atomic():
        module_version = ModuleVersion.objects.create(module=module, created_by=created_by, **data)
        module.uri = module_version.uri
        module.version += 1
        module.save(update_fields=['uri', 'version'])
    logger.info("Module %s moved to version %s (%s)", module.pk, module_version.version, module.version)
    return module_version
