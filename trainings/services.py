import logging

from django.contrib.auth import get_user_model
from django.db import DatabaseError, transaction
from django.utils import timezone

from cores.errors import NotFoundError

from .models import Attendance

logger = logging.getLogger(__name__)

User = get_user_model()


def _upsert(session, user, record, captured_by):
    attendance, _ = Attendance.objects.update_or_create(
        session=session,
        user=user,
        defaults={
            'status': record['status'],
            'method': record.get('method', Attendance.Method.MANUAL),
            'notes': record.get('notes') or '',
            'captured_by': captured_by,
            'captured_at': timezone.now(),
        },
    )
    return attendance


def mark_attendance(session, record, captured_by):
    """Create or overwrite one user's attendance for a session."""
    user = User.objects.filter(pk=record['userId']).first()
    if user is None:
        raise NotFoundError("User", context={'userId': record['userId']})

    attendance = _upsert(session, user, record, captured_by)
    logger.info("Attendance marked: session=%s user=%s status=%s", session.pk, user.pk, attendance.status)
    return attendance


def mark_bulk_attendance(session, records, captured_by):
    """
    Upserts every record independently. One bad record never aborts the rest;
    each gets {success, userId, status} or {success: False, userId, error}.
    """
    results = []
    for record in records:
        user_id = record['userId']
        try:
            with transaction.atomic():
                user = User.objects.filter(pk=user_id).first()
                if user is None:
                    raise NotFoundError("User", context={'userId': user_id})
                attendance = _upsert(session, user, record, captured_by)
        except NotFoundError as exc:
            results.append({'success': False, 'userId': user_id, 'error': exc.message})
        except DatabaseError as exc:
            logger.warning("Attendance record failed: session=%s user=%s: %s", session.pk, user_id, exc)
            results.append({'success': False, 'userId': user_id, 'error': str(exc)})
        else:
            results.append({'success': True, 'userId': user_id, 'status': attendance.status})

    successful = sum(1 for r in results if r['success'])
    logger.info("Bulk attendance marked: session=%s processed=%s successful=%s", session.pk, len(records), successful)
    return results
