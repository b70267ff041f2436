from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from cores.errors import ValidationError

from .models import Notification
from .services import NotificationService

User = get_user_model()


def make_user(email, role='trainee'):
    return User.objects.create_user(
        username=email, email=email, password='password123',
        first_name='Test', last_name='User', role=role,
    )


class NotificationServiceTests(TestCase):
    def setUp(self):
        self.user = make_user('trainee@tsf.test')

    def test_template_variables_are_filled(self):
        notification = NotificationService.create_from_template(
            Notification.Type.EXAM_GRADED, self.user, {'courseTitle': 'Patrol', 'score': 87.5},
        )
        self.assertEqual(notification.title_en, 'Exam Graded')
        self.assertIn('Patrol', notification.message_en)
        self.assertIn('87.5%', notification.message_ar)
        self.assertEqual(notification.channels, ['in_app'])

    def test_unknown_template(self):
        with self.assertRaises(ValidationError):
            NotificationService.create_from_template(Notification.Type.CUSTOM_MESSAGE, self.user, {})

    def test_paging(self):
        for i in range(5):
            NotificationService.create(
                self.user, Notification.Type.CUSTOM_MESSAGE,
                title_ar='ع', title_en=f'N{i}', message_ar='م', message_en='m',
            )
        page = NotificationService.get_user_notifications(self.user, limit=2, offset=2)
        self.assertEqual(page['total'], 5)
        self.assertTrue(page['has_more'])
        self.assertEqual([n.title_en for n in page['notifications']], ['N2', 'N1'])

        last = NotificationService.get_user_notifications(self.user, limit=2, offset=4)
        self.assertFalse(last['has_more'])

    def test_mark_read_only_own(self):
        other = make_user('other@tsf.test')
        notification = NotificationService.create(
            self.user, Notification.Type.CUSTOM_MESSAGE,
            title_ar='ع', title_en='t', message_ar='م', message_en='m',
        )
        self.assertFalse(NotificationService.mark_as_read(notification.id, other))
        self.assertTrue(NotificationService.mark_as_read(notification.id, self.user))
        self.assertFalse(NotificationService.mark_as_read(notification.id, self.user))
        self.assertEqual(NotificationService.get_unread_count(self.user), 0)


class NotificationApiTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.admin = make_user('admin@tsf.test', 'admin')
        self.trainee = make_user('trainee@tsf.test')
        for course in ('Patrol', 'Traffic'):
            NotificationService.create_from_template(
                Notification.Type.COURSE_ENROLLMENT, self.trainee, {'courseTitle': course},
            )

    def test_list_and_unread_count(self):
        self.client.force_authenticate(self.trainee)
        response = self.client.get('/api/notifications/', {'limit': 1})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total'], 2)
        self.assertTrue(response.data['hasMore'])
        self.assertEqual(len(response.data['notifications']), 1)

        self.assertEqual(self.client.get('/api/notifications/unread-count/').data['count'], 2)

    def test_mark_one_read(self):
        notification = Notification.objects.filter(recipient=self.trainee).first()
        self.client.force_authenticate(self.trainee)

        response = self.client.patch(f'/api/notifications/{notification.id}/?action=mark_read')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])

        unread = self.client.get('/api/notifications/', {'unreadOnly': 'true'})
        self.assertEqual(unread.data['total'], 1)

    def test_mark_read_needs_action(self):
        notification = Notification.objects.filter(recipient=self.trainee).first()
        self.client.force_authenticate(self.trainee)
        response = self.client.patch(f'/api/notifications/{notification.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_touch_others_notification(self):
        notification = Notification.objects.filter(recipient=self.trainee).first()
        self.client.force_authenticate(self.admin)
        response = self.client.patch(f'/api/notifications/{notification.id}/?action=mark_read')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_mark_all_read(self):
        self.client.force_authenticate(self.trainee)
        response = self.client.post('/api/notifications/mark-all-read/')
        self.assertEqual(response.data, {'success': True, 'count': 2})
        self.assertEqual(Notification.objects.filter(recipient=self.trainee, is_read=False).count(), 0)

    def test_admin_sends_custom_message(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/notifications/', {
            'type': 'CUSTOM_MESSAGE',
            'recipientId': self.trainee.id,
            'titleAr': 'تنبيه',
            'titleEn': 'Heads up',
            'messageAr': 'رسالة',
            'messageEn': 'Range closed tomorrow',
            'priority': 'HIGH',
            'channels': ['in_app', 'email'],
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        notification = Notification.objects.get(title_en='Heads up')
        self.assertEqual(notification.sender, self.admin)
        self.assertEqual(notification.priority, Notification.Priority.HIGH)
        self.assertEqual(notification.channels, ['in_app', 'email'])

    def test_trainee_cannot_send(self):
        self.client.force_authenticate(self.trainee)
        response = self.client.post('/api/notifications/', {
            'type': 'CUSTOM_MESSAGE', 'recipientId': self.admin.id,
            'titleAr': 'ع', 'titleEn': 't', 'messageAr': 'م', 'messageEn': 'm',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
