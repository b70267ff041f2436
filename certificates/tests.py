from datetime import datetime, timedelta, timezone as dt_timezone

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from courses.models import Course, Enrollment
from notifications.models import Notification

from .models import Certificate
from .services import build_serial, issue_certificate

User = get_user_model()


def make_user(email, role='trainee'):
    return User.objects.create_user(
        username=email, email=email, password='password123',
        first_name='Test', last_name='User', role=role,
    )


class IssueCertificateServiceTests(TestCase):
    def setUp(self):
        self.trainee = make_user('trainee@tsf.test')
        self.course = Course.objects.create(code='K9-1', title_ar='الكلاب', title_en='K9 Handling')

    def test_serial_format(self):
        issued_at = datetime(2024, 1, 2, 3, 4, 5, tzinfo=dt_timezone.utc)
        self.assertEqual(build_serial(self.trainee, issued_at), f"CERT-{int(issued_at.timestamp() * 1000)}-{self.trainee.pk}")

    def test_second_issue_returns_existing(self):
        first, created = issue_certificate(self.trainee, self.course)
        second, created_again = issue_certificate(self.trainee, self.course)

        self.assertTrue(created)
        self.assertFalse(created_again)
        self.assertEqual(first.pk, second.pk)
        self.assertEqual(Certificate.objects.count(), 1)

    def test_serial_clash_with_other_course(self):
        issued_at = datetime(2024, 5, 6, 7, 8, 9, tzinfo=dt_timezone.utc)
        other = Course.objects.create(code='K9-2', title_ar='الكلاب ٢', title_en='K9 Advanced')
        first, _ = issue_certificate(self.trainee, self.course, issued_at=issued_at)

        second, created = issue_certificate(self.trainee, other, issued_at=issued_at)

        self.assertTrue(created)
        self.assertNotEqual(first.serial, second.serial)
        self.assertEqual(second.serial, build_serial(self.trainee, issued_at + timedelta(milliseconds=1)))
        self.assertEqual(Certificate.objects.filter(user=self.trainee).count(), 2)

    def test_default_expiry(self):
        certificate, _ = issue_certificate(self.trainee, self.course)
        self.assertEqual((certificate.expires_at - certificate.issued_at).days, 365)
        self.assertFalse(certificate.is_expired)


class CertificateApiTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.admin = make_user('admin@tsf.test', 'admin')
        self.trainee = make_user('trainee@tsf.test')
        self.other = make_user('other@tsf.test')
        self.course = Course.objects.create(code='DRIVE-1', title_ar='القيادة', title_en='Pursuit Driving')
        Enrollment.objects.create(user=self.trainee, course=self.course)

    def test_admin_issues_certificate(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/certificates/', {
            'userId': self.trainee.id, 'courseId': self.course.id,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        certificate = Certificate.objects.get()
        self.assertEqual(response.data['serial'], certificate.serial)
        self.assertEqual(certificate.issued_by, self.admin)
        self.assertTrue(Notification.objects.filter(
            recipient=self.trainee, type=Notification.Type.CERTIFICATE_ISSUED,
        ).exists())

    def test_requires_enrollment(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/certificates/', {
            'userId': self.other.id, 'courseId': self.course.id,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Certificate.objects.exists())

    def test_duplicate_certificate(self):
        issue_certificate(self.trainee, self.course)
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/certificates/', {
            'userId': self.trainee.id, 'courseId': self.course.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_course(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/certificates/', {'userId': self.trainee.id, 'courseId': 999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_trainee_cannot_issue(self):
        self.client.force_authenticate(self.trainee)
        response = self.client.post('/api/certificates/', {
            'userId': self.trainee.id, 'courseId': self.course.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_trainee_lists_only_own(self):
        other_course = Course.objects.create(code='DRIVE-2', title_ar='القيادة', title_en='Advanced Driving')
        issue_certificate(self.trainee, self.course)
        issue_certificate(self.other, other_course)

        self.client.force_authenticate(self.trainee)
        response = self.client.get('/api/certificates/')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['holder_email'], 'trainee@tsf.test')

        self.client.force_authenticate(self.admin)
        response = self.client.get('/api/certificates/', {'userId': self.other.id})
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['course_code'], 'DRIVE-2')


class VerifyCertificateTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.trainee = make_user('trainee@tsf.test')
        self.course = Course.objects.create(code='SWAT-1', title_ar='التدخل', title_en='Tactical Entry')

    def test_verify_without_login(self):
        certificate, _ = issue_certificate(self.trainee, self.course)
        response = self.client.get(f'/api/certificates/verify/{certificate.serial}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['valid'])
        self.assertEqual(response.data['course_title'], 'Tactical Entry')
        self.assertNotIn('holder_email', response.data)

    def test_expired_certificate(self):
        certificate, _ = issue_certificate(
            self.trainee, self.course, expires_at=timezone.now() - timedelta(days=1),
        )
        response = self.client.get(f'/api/certificates/verify/{certificate.serial}/')
        self.assertFalse(response.data['valid'])

    def test_unknown_serial(self):
        response = self.client.get('/api/certificates/verify/CERT-0-000000/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error']['code'], 'NOT_FOUND_ERROR')
