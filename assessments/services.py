import logging

from django.db import transaction
from django.utils import timezone

from certificates.services import issue_certificate
from cores.audit import create_audit_log
from cores.errors import NotFoundError, ValidationError
from courses.services import mark_enrollment_completed
from exams.models import Exam
from notifications.models import Notification
from notifications.services import NotificationService

from .models import Attempt
from .scoring import score_submission

logger = logging.getLogger(__name__)


def _check_question_ids(questions, answers):
    known = {str(q.id) for q in questions}
    seen = set()
    errors = {}
    for index, answer in enumerate(answers):
        question_id = str(answer['questionId'])
        if question_id not in known:
            errors[str(index)] = [f"Unknown question: {question_id}"]
        elif question_id in seen:
            errors[str(index)] = [f"Duplicate answer for question: {question_id}"]
        seen.add(question_id)
    if errors:
        raise ValidationError("Invalid answers", details={'answers': errors})


def submit_exam(exam_id, user, answers, auto_submit=False, request=None):
    """
    Grades a trainee's answers and records the attempt.

    The attempt, the certificate (when passed) and the enrollment completion
    are written together or not at all. Audit and notifications follow the
    commit.

    Returns (attempt, certificate_or_None).
    """
    exam = Exam.objects.select_related('course').filter(pk=exam_id).first()
    if exam is None:
        raise NotFoundError("Exam", context={'examId': exam_id})
    if not exam.is_published:
        raise ValidationError("Exam is not published")

    questions = list(exam.questions.all())

    prior_attempts = Attempt.objects.filter(user=user, exam=exam).count()
    if prior_attempts:
        logger.warning(
            "User %s resubmitting exam %s (%s previous attempts)", user.pk, exam.pk, prior_attempts
        )

    _check_question_ids(questions, answers)

    summary = score_submission(questions, answers, exam.negative_marking)

    certificate = None
    certificate_created = False
    with transaction.atomic():
        attempt = Attempt.objects.create(
            user=user,
            exam=exam,
            submitted_at=timezone.now(),
            score=summary.total_score,
            passed=summary.passed,
            detail=summary.as_detail(auto_submitted=auto_submit),
        )
        if summary.passed:
            certificate, certificate_created = issue_certificate(user, exam.course, exam=exam)
            mark_enrollment_completed(user, exam.course)

    logger.info(
        "Exam %s submitted by %s: score=%s/%s (%.2f%%) passed=%s",
        exam.pk, user.pk, summary.total_score, summary.max_score, summary.percentage, summary.passed,
    )

    create_audit_log(
        user, 'SUBMIT', 'Exam', exam.id,
        {
            'attemptId': attempt.id,
            'score': summary.total_score,
            'percentage': summary.percentage,
            'passed': summary.passed,
            'autoSubmitted': auto_submit,
        },
        request=request,
    )

    NotificationService.create_from_template(
        Notification.Type.EXAM_GRADED,
        user,
        {'courseTitle': exam.course.title_en, 'score': round(summary.percentage, 2)},
        metadata={'examId': exam.id, 'attemptId': attempt.id},
    )
    if certificate_created:
        NotificationService.create_from_template(
            Notification.Type.CERTIFICATE_ISSUED,
            user,
            {'courseTitle': exam.course.title_en},
            priority=Notification.Priority.HIGH,
            metadata={'certificateId': certificate.id, 'serial': certificate.serial},
        )

    return attempt, certificate


def latest_attempt(exam_id, user):
    attempt = Attempt.objects.select_related('exam').filter(exam_id=exam_id, user=user).first()
    if attempt is None:
        raise NotFoundError("Attempt", context={'examId': exam_id})
    return attempt
