from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework import status
from rest_framework.test import APITestCase

from cores.models import AuditLog
from notifications.models import Notification

from .models import Course, Enrollment, Module, ModuleVersion, ProgramEnrollment, Tag, TrainingProgram
from .services import mark_enrollment_completed

User = get_user_model()


def make_user(email, role='trainee'):
    return User.objects.create_user(
        username=email, email=email, password='password123',
        first_name='Test', last_name='User', role=role,
    )


class CourseCatalogTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.instructor = make_user('inst@tsf.test', 'instructor')
        self.trainee = make_user('trainee@tsf.test')
        self.published = Course.objects.create(
            code='PATROL-1', title_ar='دورية', title_en='Patrol Basics', status=Course.Status.PUBLISHED,
        )
        self.draft = Course.objects.create(code='DRAFT-1', title_ar='مسودة', title_en='Draft Course')

    def test_trainee_sees_only_published(self):
        self.client.force_authenticate(self.trainee)
        response = self.client.get('/api/courses/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([c['code'] for c in response.data['results']], ['PATROL-1'])

    def test_instructor_sees_drafts(self):
        self.client.force_authenticate(self.instructor)
        response = self.client.get('/api/courses/', {'status': 'draft'})
        self.assertEqual([c['code'] for c in response.data['results']], ['DRAFT-1'])

    def test_trainee_cannot_create(self):
        self.client.force_authenticate(self.trainee)
        response = self.client.post('/api/courses/', {'code': 'X', 'title_ar': 'س', 'title_en': 'X'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_instructor_creates_course(self):
        self.client.force_authenticate(self.instructor)
        response = self.client.post('/api/courses/', {
            'code': 'TRAFFIC-2',
            'title_ar': 'المرور',
            'title_en': 'Traffic Control',
            'modality': 'blended',
            'duration_mins': 120,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        course = Course.objects.get(code='TRAFFIC-2')
        self.assertEqual(course.created_by, self.instructor)
        self.assertEqual(course.status, Course.Status.DRAFT)
        self.assertTrue(AuditLog.objects.filter(action='CREATE', entity='Course', entity_id=str(course.id)).exists())

    def test_instructor_cannot_delete(self):
        self.client.force_authenticate(self.instructor)
        response = self.client.delete(f'/api/courses/{self.draft.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_modules_are_appended_in_order(self):
        self.client.force_authenticate(self.instructor)
        url = f'/api/courses/{self.published.id}/modules/'
        self.client.post(url, {'title_ar': 'أ', 'title_en': 'Intro', 'kind': 'video'}, format='json')
        response = self.client.post(url, {'title_ar': 'ب', 'title_en': 'Radio', 'kind': 'pdf'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['order'], 2)
        listing = self.client.get(url)
        self.assertEqual([m['title_en'] for m in listing.data], ['Intro', 'Radio'])

    def test_single_module_read_update_delete(self):
        module = Module.objects.create(course=self.published, title_ar='أ', title_en='Intro', order=1)
        other = Course.objects.create(code='OTHER-1', title_ar='آخر', title_en='Other')
        url = f'/api/courses/{self.published.id}/modules/{module.id}/'

        self.client.force_authenticate(self.trainee)
        self.assertEqual(self.client.get(url).data['module']['title_en'], 'Intro')
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.instructor)
        response = self.client.put(url, {
            'title_ar': 'أ', 'title_en': 'Introduction', 'kind': 'video', 'uri': 'videos/intro.mp4', 'duration_mins': 15,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        module.refresh_from_db()
        self.assertEqual((module.title_en, module.kind, module.duration_mins), ('Introduction', 'video', 15))
        self.assertTrue(AuditLog.objects.filter(action='UPDATE', entity='Module', entity_id=str(module.id)).exists())

        # A module is only reachable through its own course
        self.assertEqual(
            self.client.get(f'/api/courses/{other.id}/modules/{module.id}/').status_code, status.HTTP_404_NOT_FOUND,
        )

        self.assertEqual(self.client.delete(url).data, {'success': True})
        self.assertFalse(Module.objects.filter(pk=module.pk).exists())
        self.assertEqual(self.client.get(url).status_code, status.HTTP_404_NOT_FOUND)

    def test_replace_course_tags(self):
        night = Tag.objects.create(name='Night ops')
        firearms = Tag.objects.create(name='Firearms')
        self.published.tags.add(night)
        url = f'/api/courses/{self.published.id}/tags/'

        self.client.force_authenticate(self.instructor)
        response = self.client.put(url, {'tagIds': [firearms.id]}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([t['name'] for t in response.data['course']['tags']], ['Firearms'])
        self.assertEqual([t['name'] for t in self.client.get(url).data['tags']], ['Firearms'])

        self.assertEqual(self.client.put(url, {'tagIds': []}, format='json').status_code, status.HTTP_200_OK)
        self.assertFalse(self.published.tags.exists())

    def test_course_tags_must_exist(self):
        tag = Tag.objects.create(name='Traffic')
        self.client.force_authenticate(self.instructor)
        response = self.client.put(
            f'/api/courses/{self.published.id}/tags/', {'tagIds': [tag.id, 9999]}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('tagIds', response.data['error']['details'])
        self.assertFalse(self.published.tags.exists())

    def test_trainee_cannot_set_tags(self):
        tag = Tag.objects.create(name='Traffic')
        self.client.force_authenticate(self.trainee)
        response = self.client.put(f'/api/courses/{self.published.id}/tags/', {'tagIds': [tag.id]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ModuleVersionTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.instructor = make_user('inst@tsf.test', 'instructor')
        course = Course.objects.create(code='SCENE-1', title_ar='مسرح', title_en='Crime Scene')
        self.module = Module.objects.create(course=course, title_ar='أ', title_en='Cordon', uri='docs/cordon-v1.pdf')
        self.url = f'/api/modules/{self.module.id}/versions/'

    def test_publish_new_version(self):
        self.client.force_authenticate(self.instructor)
        response = self.client.post(self.url, {
            'version': '2.0', 'uri': 'docs/cordon-v2.pdf', 'change_log': 'Updated perimeter distances',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['created_by_email'], 'inst@tsf.test')
        self.module.refresh_from_db()
        self.assertEqual(self.module.uri, 'docs/cordon-v2.pdf')
        self.assertEqual(self.module.version, 2)
        self.assertTrue(AuditLog.objects.filter(action='CREATE', entity='ModuleVersion').exists())

    def test_history_newest_first(self):
        self.client.force_authenticate(self.instructor)
        for label in ('1.1', '1.2'):
            self.client.post(self.url, {'version': label, 'uri': f'docs/cordon-{label}.pdf'}, format='json')

        response = self.client.get(self.url)
        self.assertEqual([v['version'] for v in response.data], ['1.2', '1.1'])

    def test_trainee_cannot_publish(self):
        self.client.force_authenticate(make_user('trainee@tsf.test'))
        response = self.client.post(self.url, {'version': '2.0', 'uri': 'docs/x.pdf'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(ModuleVersion.objects.exists())

    def test_unknown_module(self):
        self.client.force_authenticate(self.instructor)
        self.assertEqual(self.client.get('/api/modules/9999/versions/').status_code, status.HTTP_404_NOT_FOUND)

    def test_version_needs_uri(self):
        self.client.force_authenticate(self.instructor)
        response = self.client.post(self.url, {'version': '2.0'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('uri', response.data['error']['details'])


class TrainingProgramTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.admin = make_user('admin@tsf.test', 'admin')
        self.commander = make_user('cmd@tsf.test', 'commander')
        self.trainee = make_user('trainee@tsf.test')
        self.patrol = Course.objects.create(code='PATROL-1', title_ar='دورية', title_en='Patrol Basics')
        self.traffic = Course.objects.create(code='TRAFFIC-1', title_ar='المرور', title_en='Traffic Control')

    def create_program(self):
        self.client.force_authenticate(self.admin)
        return self.client.post('/api/training-programs/', {
            'name': 'Recruit Foundation',
            'description': 'First month on the force',
            'courseIds': [self.traffic.id, self.patrol.id],
        }, format='json')

    def test_admin_creates_program_in_order(self):
        response = self.create_program()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual([(c['code'], c['order']) for c in response.data['courses']], [('TRAFFIC-1', 1), ('PATROL-1', 2)])
        self.assertTrue(all(c['is_required'] for c in response.data['courses']))
        self.assertTrue(AuditLog.objects.filter(action='CREATE', entity='TrainingProgram').exists())

    def test_unknown_course_rejected(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/training-programs/', {
            'name': 'Broken', 'courseIds': [self.patrol.id, 9999],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('courseIds', response.data['error']['details'])
        self.assertFalse(TrainingProgram.objects.exists())

    def test_only_admins_create(self):
        self.client.force_authenticate(self.commander)
        response = self.client.post('/api/training-programs/', {'name': 'X', 'courseIds': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_hides_inactive(self):
        self.create_program()
        TrainingProgram.objects.create(name='Retired', is_active=False)

        self.client.force_authenticate(self.trainee)
        response = self.client.get('/api/training-programs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['name'] for p in response.data['results']], ['Recruit Foundation'])

    def test_enroll_covers_every_course(self):
        program_id = self.create_program().data['id']
        Enrollment.objects.create(user=self.trainee, course=self.patrol, status=Enrollment.Status.COMPLETED)

        self.client.force_authenticate(self.commander)
        response = self.client.post(f'/api/training-programs/{program_id}/enroll/', {'userId': self.trainee.id}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual([e['course_code'] for e in response.data['courseEnrollments']], ['TRAFFIC-1'])
        # An earlier completion is kept
        self.assertEqual(
            Enrollment.objects.get(user=self.trainee, course=self.patrol).status, Enrollment.Status.COMPLETED,
        )
        self.assertTrue(Enrollment.objects.filter(user=self.trainee, course=self.traffic).exists())
        self.assertEqual(Notification.objects.filter(recipient=self.trainee).count(), 1)
        self.assertTrue(AuditLog.objects.filter(action='ENROLL', entity='TrainingProgram').exists())

        listing = self.client.get(f'/api/training-programs/{program_id}/enroll/')
        self.assertEqual([e['user_email'] for e in listing.data['enrollments']], ['trainee@tsf.test'])

    def test_enroll_twice(self):
        program_id = self.create_program().data['id']
        url = f'/api/training-programs/{program_id}/enroll/'
        self.client.post(url, {'userId': self.trainee.id}, format='json')

        response = self.client.post(url, {'userId': self.trainee.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(ProgramEnrollment.objects.count(), 1)

    def test_enroll_unknown_user_or_program(self):
        program_id = self.create_program().data['id']
        response = self.client.post(f'/api/training-programs/{program_id}/enroll/', {'userId': 9999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = self.client.post('/api/training-programs/9999/enroll/', {'userId': self.trainee.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(ProgramEnrollment.objects.exists())

    def test_trainee_cannot_enroll_others(self):
        program_id = self.create_program().data['id']
        self.client.force_authenticate(self.trainee)
        response = self.client.post(f'/api/training-programs/{program_id}/enroll/', {'userId': self.trainee.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)



class EnrollmentTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.admin = make_user('admin@tsf.test', 'admin')
        self.trainee = make_user('trainee@tsf.test')
        self.course = Course.objects.create(
            code='FIRST-AID', title_ar='إسعافات', title_en='First Aid', status=Course.Status.PUBLISHED,
        )
        self.url = f'/api/courses/{self.course.id}/enroll/'

    def test_enroll_notifies_trainee(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(self.url, {'userId': self.trainee.id}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['enrollment']['status'], Enrollment.Status.ASSIGNED)
        notification = Notification.objects.get(recipient=self.trainee)
        self.assertEqual(notification.type, Notification.Type.COURSE_ENROLLMENT)
        self.assertIn('First Aid', notification.message_en)
        self.assertTrue(AuditLog.objects.filter(action='ENROLL', entity_id=str(self.course.id)).exists())

    def test_duplicate_enrollment(self):
        Enrollment.objects.create(user=self.trainee, course=self.course)
        self.client.force_authenticate(self.admin)
        response = self.client.post(self.url, {'userId': self.trainee.id}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Enrollment.objects.filter(user=self.trainee, course=self.course).count(), 1)

    def test_unknown_user(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(self.url, {'userId': 9999}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_mark_completed_once(self):
        Enrollment.objects.create(user=self.trainee, course=self.course)
        self.assertTrue(mark_enrollment_completed(self.trainee, self.course))
        self.assertFalse(mark_enrollment_completed(self.trainee, self.course))
        enrollment = Enrollment.objects.get(user=self.trainee, course=self.course)
        self.assertEqual(enrollment.status, Enrollment.Status.COMPLETED)
        self.assertIsNotNone(enrollment.completed_at)
