import logging
from datetime import timedelta

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from .models import Certificate

logger = logging.getLogger(__name__)

SERIAL_ATTEMPTS = 3


def _epoch_ms(moment):
    return int(moment.timestamp() * 1000)


def build_serial(user, issued_at):
    """CERT-<epoch ms>-<last 6 chars of the user id>"""
    return f"CERT-{_epoch_ms(issued_at)}-{str(user.pk)[-6:]}"


def build_qr_code(issued_at):
    return f"QR-{_epoch_ms(issued_at)}"


def default_expiry(issued_at):
    return issued_at + timedelta(days=getattr(settings, 'CERTIFICATE_VALIDITY_DAYS', 365))


def issue_certificate(user, course, exam=None, issued_by=None, expires_at=None, issued_at=None):
    """
    Returns (certificate, created).

    At most one certificate exists per (user, course): an existing one is
    returned untouched. The unique constraint settles concurrent issuers, the
    loser gets the winner's row back. A serial clash with another course
    moves the timestamp forward a millisecond and tries again.
    """
    existing = Certificate.objects.filter(user=user, course=course).first()
    if existing is not None:
        return existing, False

    issued_at = issued_at or timezone.now()
    for attempt in range(SERIAL_ATTEMPTS):
        try:
            with transaction.atomic():
                certificate = Certificate.objects.create(
                    user=user,
                    course=course,
                    exam=exam,
                    issued_at=issued_at,
                    expires_at=expires_at or default_expiry(issued_at),
                    serial=build_serial(user, issued_at),
                    qr_code=build_qr_code(issued_at),
                    issued_by=issued_by,
                )
            break
        except IntegrityError:
            existing = Certificate.objects.filter(user=user, course=course).first()
            if existing is not None:
                return existing, False
            if attempt == SERIAL_ATTEMPTS - 1:
                raise
            # Serial taken by this user's certificate for another course in the same millisecond
            logger.warning("Certificate serial %s already taken, retrying", build_serial(user, issued_at))
            issued_at += timedelta(milliseconds=1)

    logger.info(
        "Certificate %s issued: user=%s course=%s exam=%s",
        certificate.serial, user.pk, course.pk, getattr(exam, 'pk', None),
    )
    return certificate, True
