from datetime import timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from notifications.models import Notification
from notifications.services import NotificationService
from trainings.models import TrainingSession


class Command(BaseCommand):
    help = 'Notifies enrolled trainees of training sessions starting soon'

    def add_arguments(self, parser):
        parser.add_argument('--hours', type=int, default=24, help='Look-ahead window in hours')

    def handle(self, *args, **options):
        now = timezone.now()
        upcoming = TrainingSession.objects.filter(
            starts_at__gte=now,
            starts_at__lte=now + timedelta(hours=options['hours']),
        ).select_related('course')

        sent = 0
        for session in upcoming:
            for enrollment in session.course.enrollments.select_related('user'):
                # One reminder per session and trainee
                already_sent = Notification.objects.filter(
                    recipient=enrollment.user,
                    type=Notification.Type.SESSION_REMINDER,
                    metadata__sessionId=session.id,
                ).exists()
                if already_sent:
                    continue
                NotificationService.create_from_template(
                    Notification.Type.SESSION_REMINDER,
                    enrollment.user,
                    {
                        'sessionTime': timezone.localtime(session.starts_at).strftime('%Y-%m-%d %H:%M'),
                        'courseTitle': session.course.title_en,
                    },
                    metadata={'sessionId': session.id},
                )
                sent += 1

        self.stdout.write(self.style.SUCCESS(f"Sent {sent} session reminders"))
