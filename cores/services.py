import logging

from .errors import NotFoundError
from .models import Archive

logger = logging.getLogger(__name__)


def _snapshot(entity_type, entity_id):
    # Local imports: cores sits below the domain apps
    from courses.models import Course, Module
    from courses.serializers import CourseDetailSerializer, ModuleSerializer
    from exams.models import Exam
    from exams.serializers import ExamSerializer, QuestionSerializer

    if entity_type == Archive.EntityType.COURSE:
        course = Course.objects.prefetch_related('modules', 'tags').filter(pk=entity_id).first()
        return CourseDetailSerializer(course).data if course else None

    if entity_type == Archive.EntityType.MODULE:
        module = Module.objects.select_related('course').filter(pk=entity_id).first()
        if module is None:
            return None
        data = dict(ModuleSerializer(module).data)
        data['course_code'] = module.course.code
        return data

    exam = Exam.objects.select_related('course').filter(pk=entity_id).first()
    if exam is None:
        return None
    data = dict(ExamSerializer(exam).data)
    data['questions'] = QuestionSerializer(exam.questions.all(), many=True).data
    return data


def archive_entity(entity_type, entity_id, version, archived_by, reason=''):
    """Stores a frozen JSON copy of a course, module or exam."""
    if not str(entity_id).isdigit():
        raise NotFoundError("Entity", context={'entityType': entity_type, 'entityId': entity_id})

    snapshot = _snapshot(entity_type, int(entity_id))
    if snapshot is None:
        raise NotFoundError("Entity", context={'entityType': entity_type, 'entityId': entity_id})

    archive = Archive.objects.create(
        entity_type=entity_type,
        entity_id=str(entity_id),
        version=version,
        reason=reason,
        snapshot=snapshot,
        archived_by=archived_by,
    )
    logger.info("Archived %s %s as version %s", entity_type, entity_id, version)
    return archive
