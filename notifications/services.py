import logging

from django.utils import timezone

from cores.errors import ValidationError

from .models import Notification

logger = logging.getLogger(__name__)

TEMPLATES = {
    Notification.Type.COURSE_ENROLLMENT: {
        'title_ar': 'تم تسجيلك في دورة تدريبية',
        'title_en': 'Enrolled in Training Course',
        'message_ar': 'تم تسجيلك بنجاح في الدورة: {courseTitle}',
        'message_en': 'You have been successfully enrolled in the course: {courseTitle}',
    },
    Notification.Type.COURSE_COMPLETION: {
        'title_ar': 'أكملت دورة تدريبية',
        'title_en': 'Course Completed',
        'message_ar': 'تهانينا! لقد أكملت الدورة: {courseTitle}',
        'message_en': 'Congratulations! You have completed the course: {courseTitle}',
    },
    Notification.Type.EXAM_AVAILABLE: {
        'title_ar': 'امتحان متاح',
        'title_en': 'Exam Available',
        'message_ar': 'امتحان جديد متاح للدورة: {courseTitle}',
        'message_en': 'A new exam is available for the course: {courseTitle}',
    },
    Notification.Type.EXAM_SUBMITTED: {
        'title_ar': 'تم تسليم الامتحان',
        'title_en': 'Exam Submitted',
        'message_ar': 'تم تسليم امتحانك للدورة: {courseTitle}',
        'message_en': 'Your exam has been submitted for the course: {courseTitle}',
    },
    Notification.Type.EXAM_GRADED: {
        'title_ar': 'تم تقييم الامتحان',
        'title_en': 'Exam Graded',
        'message_ar': 'تم تقييم امتحانك في الدورة: {courseTitle}. الدرجة: {score}%',
        'message_en': 'Your exam has been graded for the course: {courseTitle}. Score: {score}%',
    },
    Notification.Type.CERTIFICATE_ISSUED: {
        'title_ar': 'شهادة جديدة',
        'title_en': 'New Certificate',
        'message_ar': 'تم إصدار شهادة لك في الدورة: {courseTitle}',
        'message_en': 'A certificate has been issued for you in the course: {courseTitle}',
    },
    Notification.Type.SESSION_REMINDER: {
        'title_ar': 'تذكير بجلسة تدريبية',
        'title_en': 'Session Reminder',
        'message_ar': 'تذكير: لديك جلسة تدريبية في {sessionTime} - {courseTitle}',
        'message_en': 'Reminder: You have a training session at {sessionTime} - {courseTitle}',
    },
    Notification.Type.SYSTEM_ANNOUNCEMENT: {
        'title_ar': 'إعلان نظام',
        'title_en': 'System Announcement',
        'message_ar': '{message}',
        'message_en': '{message}',
    },
}


def _fill(text, variables):
    for key, value in variables.items():
        text = text.replace('{%s}' % key, str(value))
    return text


class NotificationService:
    """
    In-app notification records. Email and SMS channels are only logged;
    there is no external delivery.
    """

    @classmethod
    def create(cls, recipient, type, title_ar, title_en, message_ar, message_en,
               sender=None, priority=Notification.Priority.MEDIUM, channels=None,
               metadata=None, scheduled_at=None, expires_at=None):
        notification = Notification.objects.create(
            type=type,
            recipient=recipient,
            sender=sender,
            title_ar=title_ar,
            title_en=title_en,
            message_ar=message_ar,
            message_en=message_en,
            priority=priority,
            channels=channels or [Notification.Channel.IN_APP],
            metadata=metadata or {},
            scheduled_at=scheduled_at,
            expires_at=expires_at,
        )
        logger.info("Notification %s created: type=%s recipient=%s", notification.id, type, recipient.pk)

        # Scheduled notifications are picked up later
        if scheduled_at is None:
            cls.send(notification)
        return notification

    @classmethod
    def send(cls, notification):
        for channel in notification.channels:
            if channel == Notification.Channel.EMAIL:
                cls._send_email(notification)
            elif channel == Notification.Channel.SMS:
                cls._send_sms(notification)
            # in_app: the stored row is the delivery
        logger.info("Notification %s sent on %s", notification.id, notification.channels)

    @staticmethod
    def _localized(notification):
        if notification.recipient.locale == 'ar':
            return notification.title_ar, notification.message_ar
        return notification.title_en, notification.message_en

    @classmethod
    def _send_email(cls, notification):
        subject, _ = cls._localized(notification)
        logger.info("Email notification not delivered (no provider): to=%s subject=%s",
                    notification.recipient.email, subject)

    @classmethod
    def _send_sms(cls, notification):
        logger.info("SMS notification not delivered (no provider): to=%s",
                    notification.recipient.phone_number or '-')

    @staticmethod
    def mark_as_read(notification_id, user):
        updated = Notification.objects.filter(
            id=notification_id, recipient=user, is_read=False
        ).update(is_read=True, read_at=timezone.now())
        if updated:
            logger.info("Notification %s marked as read by %s", notification_id, user.pk)
        return updated > 0

    @staticmethod
    def mark_all_as_read(user):
        count = Notification.objects.filter(recipient=user, is_read=False).update(
            is_read=True, read_at=timezone.now()
        )
        logger.info("%s notifications marked as read for %s", count, user.pk)
        return count

    @staticmethod
    def get_user_notifications(user, limit=20, offset=0, unread_only=False, type=None):
        queryset = Notification.objects.filter(recipient=user).select_related('sender')
        if unread_only:
            queryset = queryset.filter(is_read=False)
        if type:
            queryset = queryset.filter(type=type)

        total = queryset.count()
        return {
            'notifications': list(queryset[offset:offset + limit]),
            'total': total,
            'has_more': offset + limit < total,
        }

    @staticmethod
    def get_unread_count(user):
        return Notification.objects.filter(recipient=user, is_read=False).count()

    @classmethod
    def create_from_template(cls, template_type, recipient, variables, **options):
        template = TEMPLATES.get(template_type)
        if template is None:
            raise ValidationError(f"Notification template not found: {template_type}")

        return cls.create(
            recipient,
            template_type,
            title_ar=_fill(template['title_ar'], variables),
            title_en=_fill(template['title_en'], variables),
            message_ar=_fill(template['message_ar'], variables),
            message_en=_fill(template['message_en'], variables),
            **options
        )
