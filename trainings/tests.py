from datetime import timedelta
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from cores.models import AuditLog
from courses.models import Course, Enrollment
from notifications.models import Notification

from .models import Attendance, TrainingSession

User = get_user_model()


def make_user(email, role='trainee'):
    return User.objects.create_user(
        username=email, email=email, password='password123',
        first_name='Test', last_name='User', role=role,
    )


class TrainingSessionTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.instructor = make_user('inst@tsf.test', 'instructor')
        self.trainee = make_user('trainee@tsf.test')
        self.course = Course.objects.create(code='RANGE-1', title_ar='الميدان', title_en='Range Day')
        self.starts_at = timezone.now() + timedelta(days=2)

    def session_payload(self, **fields):
        payload = {
            'course': self.course.id,
            'title_ar': 'جلسة',
            'title_en': 'Live Fire',
            'starts_at': self.starts_at.isoformat(),
            'ends_at': (self.starts_at + timedelta(hours=3)).isoformat(),
            'instructor': self.instructor.id,
            'mode': 'FIELD',
        }
        payload.update(fields)
        return payload

    def test_create_session(self):
        self.client.force_authenticate(self.instructor)
        response = self.client.post('/api/sessions/', self.session_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        session = TrainingSession.objects.get()
        self.assertEqual(session.mode, TrainingSession.Mode.FIELD)
        self.assertEqual(session.attendance_policy['lateCheckinMinutes'], 15)
        self.assertTrue(AuditLog.objects.filter(action='CREATE', entity='Session').exists())

    def test_end_before_start(self):
        self.client.force_authenticate(self.instructor)
        response = self.client.post('/api/sessions/', self.session_payload(
            ends_at=(self.starts_at - timedelta(hours=1)).isoformat(),
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_start_in_the_past(self):
        self.client.force_authenticate(self.instructor)
        past = timezone.now() - timedelta(days=1)
        response = self.client.post('/api/sessions/', self.session_payload(
            starts_at=past.isoformat(), ends_at=(past + timedelta(hours=1)).isoformat(),
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_instructor_must_have_instructor_role(self):
        self.client.force_authenticate(self.instructor)
        response = self.client.post('/api/sessions/', self.session_payload(instructor=self.trainee.id), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invalid_attendance_policy(self):
        self.client.force_authenticate(self.instructor)
        response = self.client.post('/api/sessions/', self.session_payload(
            attendance_policy={'lateCheckinMinutes': -5},
        ), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_trainee_reads_but_cannot_create(self):
        self.client.force_authenticate(self.trainee)
        self.assertEqual(self.client.get('/api/sessions/').status_code, status.HTTP_200_OK)
        response = self.client.post('/api/sessions/', self.session_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_status_filter(self):
        now = timezone.now()
        TrainingSession.objects.create(
            course=self.course, title_ar='أ', title_en='Past', starts_at=now - timedelta(days=3),
            ends_at=now - timedelta(days=3) + timedelta(hours=2), instructor=self.instructor,
        )
        TrainingSession.objects.create(
            course=self.course, title_ar='ب', title_en='Next', starts_at=self.starts_at,
            ends_at=self.starts_at + timedelta(hours=2), instructor=self.instructor,
        )
        self.client.force_authenticate(self.trainee)
        upcoming = self.client.get('/api/sessions/', {'status': 'upcoming'})
        completed = self.client.get('/api/sessions/', {'status': 'completed'})
        self.assertEqual([s['title_en'] for s in upcoming.data['results']], ['Next'])
        self.assertEqual([s['title_en'] for s in completed.data['results']], ['Past'])


class AttendanceTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.instructor = make_user('inst@tsf.test', 'instructor')
        self.trainees = [make_user(f'trainee{i}@tsf.test') for i in range(3)]
        course = Course.objects.create(code='RANGE-2', title_ar='الميدان', title_en='Range Day')
        starts_at = timezone.now() + timedelta(days=1)
        self.session = TrainingSession.objects.create(
            course=course, title_ar='جلسة', title_en='Qualification', starts_at=starts_at,
            ends_at=starts_at + timedelta(hours=2), instructor=self.instructor,
        )
        self.url = f'/api/sessions/{self.session.id}/attendance/'
        self.client.force_authenticate(self.instructor)

    def test_single_record(self):
        response = self.client.post(self.url, {'userId': self.trainees[0].id, 'status': 'PRESENT'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['attendance']['status'], 'present')
        self.assertEqual(response.data['attendance']['captured_by'], self.instructor.id)
        self.assertTrue(AuditLog.objects.filter(action='MARK_ATTENDANCE').exists())

    def test_single_record_unknown_user(self):
        response = self.client.post(self.url, {'userId': 99999, 'status': 'present'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(Attendance.objects.exists())

    def test_unknown_session(self):
        response = self.client.post(
            '/api/sessions/99999/attendance/', {'userId': self.trainees[0].id, 'status': 'present'}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error']['code'], 'NOT_FOUND_ERROR')
        self.assertFalse(Attendance.objects.exists())

    def test_marking_twice_overwrites(self):
        self.client.post(self.url, {'userId': self.trainees[0].id, 'status': 'absent'}, format='json')
        self.client.post(self.url, {'userId': self.trainees[0].id, 'status': 'late', 'notes': 'Traffic'}, format='json')

        attendance = Attendance.objects.get()
        self.assertEqual(attendance.status, Attendance.Status.LATE)
        self.assertEqual(attendance.notes, 'Traffic')

    def test_bulk_records_are_independent(self):
        records = [{'userId': t.id, 'status': 'present', 'method': 'qr'} for t in self.trainees]
        records.append({'userId': 99999, 'status': 'present'})

        response = self.client.post(self.url, records, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        results = response.data['results']
        self.assertEqual(len(results), 4)
        self.assertEqual(sum(1 for r in results if r['success']), 3)
        failed = [r for r in results if not r['success']]
        self.assertEqual(failed[0]['userId'], 99999)
        self.assertEqual(failed[0]['error'], 'User not found')
        self.assertEqual(Attendance.objects.filter(session=self.session).count(), 3)

        entry = AuditLog.objects.get(action='BULK_ATTENDANCE')
        self.assertEqual(entry.metadata, {'recordsProcessed': 4, 'successful': 3})

    def test_invalid_status(self):
        response = self.client.post(self.url, {'userId': self.trainees[0].id, 'status': 'asleep'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_attendance(self):
        self.client.post(self.url, {'userId': self.trainees[0].id, 'status': 'present'}, format='json')
        response = self.client.get(self.url)
        self.assertEqual(len(response.data['attendance']), 1)

    def test_trainee_cannot_mark(self):
        self.client.force_authenticate(self.trainees[0])
        self.assertEqual(self.client.get(self.url).status_code, status.HTTP_200_OK)
        response = self.client.post(self.url, {'userId': self.trainees[0].id, 'status': 'present'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_cannot_delete_session_with_attendance(self):
        admin = make_user('admin@tsf.test', 'admin')
        Attendance.objects.create(session=self.session, user=self.trainees[0], status='present')
        self.client.force_authenticate(admin)

        response = self.client.delete(f'/api/sessions/{self.session.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertTrue(TrainingSession.objects.filter(pk=self.session.pk).exists())


class SessionReminderCommandTests(TestCase):
    def setUp(self):
        self.trainee = make_user('trainee@tsf.test')
        course = Course.objects.create(code='RANGE-3', title_ar='الميدان', title_en='Range Day')
        Enrollment.objects.create(user=self.trainee, course=course)
        starts_at = timezone.now() + timedelta(hours=5)
        TrainingSession.objects.create(
            course=course, title_ar='جلسة', title_en='Soon', starts_at=starts_at,
            ends_at=starts_at + timedelta(hours=1),
        )

    def test_reminders_sent_once(self):
        call_command('send_session_reminders', stdout=StringIO())
        call_command('send_session_reminders', stdout=StringIO())

        reminders = Notification.objects.filter(recipient=self.trainee, type=Notification.Type.SESSION_REMINDER)
        self.assertEqual(reminders.count(), 1)
        self.assertIn('Range Day', reminders.get().message_en)

    def test_window(self):
        call_command('send_session_reminders', hours=2, stdout=StringIO())
        self.assertFalse(Notification.objects.exists())
