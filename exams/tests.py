from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from rest_framework import status
from rest_framework.test import APITestCase

from courses.models import Course, Enrollment
from notifications.models import Notification

from .models import Exam, Question

User = get_user_model()


def make_user(email, role='trainee'):
    return User.objects.create_user(
        username=email, email=email, password='password123',
        first_name='Test', last_name='User', role=role,
    )


class ExamTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.instructor = make_user('inst@tsf.test', 'instructor')
        self.trainee = make_user('trainee@tsf.test')
        self.course = Course.objects.create(
            code='LAW-1', title_ar='القانون', title_en='Criminal Law', status=Course.Status.PUBLISHED,
        )
        self.exam = Exam.objects.create(course=self.course, title_ar='اختبار', title_en='Law Final')

    def add_question(self, **fields):
        defaults = {
            'exam': self.exam,
            'type': Question.QuestionType.MULTIPLE_CHOICE,
            'stem_en': 'Which article applies?',
            'options': ['A', 'B', 'C'],
            'answer': 'B',
            'marks': 2,
        }
        defaults.update(fields)
        return Question.objects.create(**defaults)

    def test_publish_requires_questions(self):
        self.client.force_authenticate(self.instructor)
        response = self.client.post(f'/api/exams/{self.exam.id}/publish/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.exam.refresh_from_db()
        self.assertFalse(self.exam.is_published)

    def test_publish_notifies_enrolled_trainees(self):
        self.add_question()
        Enrollment.objects.create(user=self.trainee, course=self.course)
        self.client.force_authenticate(self.instructor)

        response = self.client.post(f'/api/exams/{self.exam.id}/publish/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_published'])
        notification = Notification.objects.get(recipient=self.trainee)
        self.assertEqual(notification.type, Notification.Type.EXAM_AVAILABLE)
        self.assertEqual(notification.metadata['examId'], self.exam.id)

    def test_trainee_sees_published_exam_without_answer_key(self):
        self.add_question()
        self.exam.is_published = True
        self.exam.save()
        self.client.force_authenticate(self.trainee)

        response = self.client.get(f'/api/exams/{self.exam.id}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['questions']), 1)
        self.assertNotIn('answer', response.data['questions'][0])
        self.assertEqual(response.data['total_marks'], 2)

    def test_trainee_cannot_see_draft_exam(self):
        self.client.force_authenticate(self.trainee)
        response = self.client.get(f'/api/exams/{self.exam.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_trainee_cannot_browse_question_bank(self):
        self.client.force_authenticate(self.trainee)
        response = self.client.get('/api/questions/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class QuestionValidationTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.client.force_authenticate(make_user('inst@tsf.test', 'instructor'))
        course = Course.objects.create(code='LAW-2', title_ar='القانون', title_en='Law')
        self.exam = Exam.objects.create(course=course, title_ar='اختبار', title_en='Quiz')

    def post_question(self, **fields):
        payload = {'exam': self.exam.id, 'stem_en': 'Question?', 'marks': 1}
        payload.update(fields)
        return self.client.post('/api/questions/', payload, format='json')

    def test_choice_answer_must_be_an_option(self):
        response = self.post_question(type='multiple_choice', options=['A', 'B'], answer='C')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('answer', response.data['error']['details'])

    def test_choice_needs_two_options(self):
        response = self.post_question(type='multiple_choice', options=['A'], answer='A')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_true_false_answer_is_lowercased(self):
        response = self.post_question(type='true_false', answer='TRUE')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Question.objects.get().answer, 'true')

    def test_multiple_select(self):
        response = self.post_question(type='multiple_select', options=['A', 'B', 'C'], answer=['A', 'C'])
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_numeric_answer(self):
        self.assertEqual(self.post_question(type='numeric', answer='abc').status_code, 400)
        self.assertEqual(self.post_question(type='numeric', answer=12.5).status_code, 201)
        self.assertEqual(Question.objects.get().answer, '12.5')

    def test_bulk_upload(self):
        rows = (
            "exam,type,stem_en,stem_ar,options,answer,marks,bank_tag\n"
            f"{self.exam.id},multiple_choice,Speed limit?,,50|80|120,80,2,traffic\n"
            f"{self.exam.id},multiple_select,Which are felonies?,,Theft|Arson|Parking,Theft|Arson,3,law\n"
        )
        upload = SimpleUploadedFile('questions.csv', rows.encode('utf-8'), content_type='text/csv')
        response = self.client.post('/api/questions/bulk-upload/', {'file': upload}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(self.exam.questions.count(), 2)
        self.assertEqual(self.exam.questions.get(type='multiple_select').answer, ['Theft', 'Arson'])

    def test_bulk_upload_is_all_or_nothing(self):
        rows = (
            "exam,type,stem_en,stem_ar,options,answer,marks,bank_tag\n"
            f"{self.exam.id},multiple_choice,Good?,,A|B,A,1,\n"
            f"{self.exam.id},multiple_choice,Bad?,,A|B,Z,1,\n"
        )
        upload = SimpleUploadedFile('questions.csv', rows.encode('utf-8'), content_type='text/csv')
        response = self.client.post('/api/questions/bulk-upload/', {'file': upload}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(self.exam.questions.exists())
