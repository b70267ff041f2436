import csv
import io
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from assessments.models import Attempt
from certificates.services import issue_certificate
from cores.models import AuditLog
from courses.models import Course, Enrollment
from exams.models import Exam

User = get_user_model()


def make_user(email, role='trainee', unit=None):
    return User.objects.create_user(
        username=email, email=email, password='password123',
        first_name='Test', last_name='User', role=role, unit=unit,
    )


class ReportTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.commander = make_user('cmd@tsf.test', 'commander')
        self.alpha = make_user('alpha@tsf.test', unit='Alpha')
        self.bravo = make_user('bravo@tsf.test', unit='Bravo')
        self.course = Course.objects.create(
            code='PATROL-9', title_ar='دورية', title_en='Night Patrol', status=Course.Status.PUBLISHED,
        )
        exam = Exam.objects.create(course=self.course, title_ar='اختبار', title_en='Patrol Exam', is_published=True)
        for user in (self.alpha, self.bravo):
            Enrollment.objects.create(user=user, course=self.course)
        Attempt.objects.create(user=self.alpha, exam=exam, submitted_at=timezone.now(), score=8, passed=True)
        Attempt.objects.create(user=self.bravo, exam=exam, submitted_at=timezone.now(), score=2, passed=False)
        issue_certificate(self.alpha, self.course, expires_at=timezone.now() + timedelta(days=20))

    def test_trainee_cannot_read_reports(self):
        self.client.force_authenticate(self.alpha)
        self.assertEqual(self.client.get('/api/dashboard/stats/').status_code, status.HTTP_403_FORBIDDEN)

    def test_dashboard_stats(self):
        self.client.force_authenticate(self.commander)
        response = self.client.get('/api/dashboard/stats/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        stats = response.data['stats']
        self.assertEqual(stats['activeTrainees'], 2)
        self.assertEqual(stats['completionRate'], 50.0)
        self.assertEqual(stats['examPassRate'], 50.0)
        self.assertEqual(stats['totalCourses'], 1)
        self.assertEqual(stats['overdueCerts'], 0)

    def test_certificate_expiries(self):
        self.client.force_authenticate(self.commander)
        response = self.client.get('/api/dashboard/certificate-expiries/')
        self.assertEqual(response.data['expiringIn30Days'], 1)
        self.assertEqual(response.data['expiringIn60Days'], 0)
        self.assertEqual(response.data['expiryDetails'][0]['user']['unit'], 'Alpha')

    def test_completion_trend(self):
        self.client.force_authenticate(self.commander)
        response = self.client.get('/api/dashboard/completion-trend/')
        monthly = response.data['monthlyTrend']
        self.assertEqual(len(monthly), 12)
        self.assertEqual(monthly[-1]['enrollments'], 2)
        self.assertEqual(monthly[-1]['completions'], 1)
        self.assertEqual(response.data['courseCompletions'][0]['completionRate'], 50.0)

    def test_unit_performance(self):
        self.client.force_authenticate(self.commander)
        rows = self.client.get('/api/dashboard/unit-performance/').data['unitPerformance']
        self.assertEqual([(r['unit'], r['passRate']) for r in rows], [('Alpha', 100), ('Bravo', 0)])

    def test_csv_export(self):
        self.client.force_authenticate(self.commander)
        response = self.client.get('/api/reports/export/', {'type': 'certificates'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response['Content-Type'].startswith('text/csv'))
        self.assertIn('attachment; filename="certificates_report_', response['Content-Disposition'])
        rows = list(csv.reader(io.StringIO(response.content.decode('utf-8'))))
        self.assertEqual(rows[0][0], 'Serial')
        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[1][2], 'alpha@tsf.test')
        self.assertTrue(AuditLog.objects.filter(action='EXPORT', entity='Report').exists())

    def test_export_date_range(self):
        self.client.force_authenticate(self.commander)
        response = self.client.get('/api/reports/export/', {
            'type': 'users', 'startDate': '2000-01-01', 'endDate': '2000-12-31',
        })
        rows = list(csv.reader(io.StringIO(response.content.decode('utf-8'))))
        self.assertEqual(len(rows), 1)

    def test_export_rejects_bad_input(self):
        self.client.force_authenticate(self.commander)
        self.assertEqual(self.client.get('/api/reports/export/', {'type': 'payroll'}).status_code, 400)
        self.assertEqual(self.client.get('/api/reports/export/', {'format': 'pdf'}).status_code, 400)
        self.assertEqual(self.client.get('/api/reports/export/', {'startDate': 'yesterday'}).status_code, 400)
        self.assertEqual(self.client.get('/api/reports/export/', {
            'startDate': '2024-02-01', 'endDate': '2024-01-01',
        }).status_code, 400)

    def test_export_accepts_csv_format(self):
        self.client.force_authenticate(self.commander)
        response = self.client.get('/api/reports/export/', {'type': 'users', 'format': 'csv'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response['Content-Type'].startswith('text/csv'))
        self.assertIn('attachment; filename="users_report_', response['Content-Disposition'])
