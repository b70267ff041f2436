from unittest import mock

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.db import DatabaseError, transaction
from django.test import TestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from courses.models import Course

from .audit import GENESIS_HASH, create_audit_log
from .models import Archive, AuditLog
from .permissions import has_permission, is_admin_role, normalize_role

User = get_user_model()


def make_user(email, role, password='password123'):
    return User.objects.create_user(
        username=email, email=email, password=password,
        first_name='Test', last_name=role.title(), role=role,
    )


class RolePermissionTests(TestCase):
    def test_super_admin_holds_every_permission(self):
        self.assertTrue(has_permission('super_admin', 'audit:read'))
        self.assertTrue(has_permission('super_admin', 'users:delete'))

    def test_admin_cannot_read_audit_log(self):
        self.assertTrue(has_permission('admin', 'users:write'))
        self.assertFalse(has_permission('admin', 'audit:read'))

    def test_trainee_is_read_mostly(self):
        self.assertTrue(has_permission('trainee', 'learning:write'))
        self.assertFalse(has_permission('trainee', 'courses:write'))
        self.assertFalse(has_permission('trainee', 'reports:read'))

    def test_commander_reads_reports_but_cannot_write(self):
        self.assertTrue(has_permission('commander', 'reports:read'))
        self.assertFalse(has_permission('commander', 'sessions:write'))

    def test_role_spellings_are_normalized(self):
        self.assertEqual(normalize_role('SUPER-ADMIN'), 'super_admin')
        self.assertEqual(normalize_role('Super.Admin'), 'super_admin')
        self.assertIsNone(normalize_role('janitor'))
        self.assertFalse(has_permission('janitor', 'courses:read'))

    def test_admin_roles(self):
        self.assertTrue(is_admin_role('ADMIN'))
        self.assertTrue(is_admin_role('super_admin'))
        self.assertFalse(is_admin_role('instructor'))


class AuditLogTests(TestCase):
    def setUp(self):
        self.admin = make_user('admin@tsf.test', 'admin')

    def test_entries_are_hash_chained(self):
        first = create_audit_log(self.admin, 'CREATE', 'Course', 1, {'code': 'C-1'})
        second = create_audit_log(self.admin, 'UPDATE', 'Course', 1, {'fields': ['title_en']})

        self.assertEqual(len(first.immutable_hash), 64)
        self.assertNotEqual(first.immutable_hash, GENESIS_HASH)
        self.assertNotEqual(first.immutable_hash, second.immutable_hash)
        self.assertEqual(second.entity_id, '1')

    def test_failure_is_swallowed(self):
        with mock.patch.object(AuditLog.objects, 'create', side_effect=DatabaseError("disk full")):
            entry = create_audit_log(self.admin, 'CREATE', 'Course', 1)
        self.assertIsNone(entry)

    def test_failure_does_not_break_outer_transaction(self):
        with transaction.atomic():
            with mock.patch.object(AuditLog.objects, 'create', side_effect=DatabaseError("disk full")):
                create_audit_log(self.admin, 'CREATE', 'Course', 1)
            Course.objects.create(code='AFTER-1', title_ar='دورة', title_en='Course')
        self.assertTrue(Course.objects.filter(code='AFTER-1').exists())


class ErrorEnvelopeTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.trainee = make_user('trainee@tsf.test', 'trainee')

    def test_unauthenticated_request(self):
        response = self.client.get('/api/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error']['code'], 'AUTHENTICATION_ERROR')
        self.assertIn('timestamp', response.data['error'])

    def test_missing_permission(self):
        self.client.force_authenticate(self.trainee)
        response = self.client.get('/api/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error']['code'], 'AUTHORIZATION_ERROR')

    def test_validation_details(self):
        admin = make_user('admin@tsf.test', 'admin')
        self.client.force_authenticate(admin)
        response = self.client.post('/api/archive/', {'entityType': 'course'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'VALIDATION_ERROR')
        self.assertIn('version', response.data['error']['details'])


class RateLimitTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.client.force_authenticate(make_user('trainee@tsf.test', 'trainee'))

    @override_settings(RATE_LIMIT_MAX=2, RATE_LIMIT_WINDOW=60)
    def test_limit_per_path(self):
        for _ in range(2):
            self.assertEqual(self.client.get('/api/notifications/unread-count/').status_code, 200)

        response = self.client.get('/api/notifications/unread-count/')
        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertEqual(response.data['error']['code'], 'RATE_LIMITED')

        # Other paths keep their own window
        self.assertEqual(self.client.get('/api/notifications/').status_code, 200)

    @override_settings(RATE_LIMIT_ENABLED=False, RATE_LIMIT_MAX=1)
    def test_disabled(self):
        for _ in range(3):
            self.assertEqual(self.client.get('/api/notifications/unread-count/').status_code, 200)


class AuditLogViewTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.super_admin = make_user('root@tsf.test', 'super_admin')
        create_audit_log(self.super_admin, 'LOGIN', 'User', self.super_admin.id)
        create_audit_log(self.super_admin, 'ENROLL', 'Course', 3, {'userId': 9})

    def test_filter_by_action(self):
        self.client.force_authenticate(self.super_admin)
        response = self.client.get('/api/audit-logs/', {'action': 'ENROLL'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['count'], 1)
        entry = response.data['results'][0]
        self.assertEqual(entry['entity'], 'Course')
        self.assertEqual(entry['actor_email'], 'root@tsf.test')

    def test_admin_is_refused(self):
        self.client.force_authenticate(make_user('admin@tsf.test', 'admin'))
        self.assertEqual(self.client.get('/api/audit-logs/').status_code, 403)


class ArchiveTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.admin = make_user('admin@tsf.test', 'admin')
        self.course = Course.objects.create(code='FIRE-101', title_ar='الرماية', title_en='Firearms')
        self.course.modules.create(title_ar='السلامة', title_en='Safety', order=1)

    def test_archive_course_snapshot(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/archive/', {
            'entityType': 'course',
            'entityId': str(self.course.id),
            'version': '2024.1',
            'reason': 'Curriculum refresh',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['success'])
        archive = Archive.objects.get()
        self.assertEqual(archive.snapshot['code'], 'FIRE-101')
        self.assertEqual(len(archive.snapshot['modules']), 1)
        self.assertTrue(AuditLog.objects.filter(action='ARCHIVE', entity='Course').exists())

    def test_unknown_entity(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/archive/', {
            'entityType': 'exam', 'entityId': '999', 'version': '1',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(Archive.objects.exists())

    def test_instructor_cannot_archive(self):
        self.client.force_authenticate(make_user('inst@tsf.test', 'instructor'))
        response = self.client.post('/api/archive/', {
            'entityType': 'course', 'entityId': str(self.course.id), 'version': '1',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
