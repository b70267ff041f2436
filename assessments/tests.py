from datetime import timedelta
from types import SimpleNamespace

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import SimpleTestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from certificates.models import Certificate
from cores.models import AuditLog
from courses.models import Course, Enrollment
from exams.models import Exam, Question
from notifications.models import Notification

from .models import Attempt
from .scoring import answers_match, score_submission

User = get_user_model()


def question(id, type='multiple_choice', answer='A', marks=1):
    return SimpleNamespace(id=id, type=type, answer=answer, marks=marks)


def answer(question_id, value, time_spent=0):
    return {'questionId': str(question_id), 'answer': value, 'timeSpent': time_spent}


class ScoringTests(SimpleTestCase):
    def test_all_correct(self):
        questions = [question(1, answer='A', marks=2), question(2, answer='B', marks=3)]
        summary = score_submission(questions, [answer(1, 'A', 10), answer(2, 'B', 20)])

        self.assertEqual(summary.total_score, 5)
        self.assertEqual(summary.max_score, 5)
        self.assertEqual(summary.percentage, 100)
        self.assertTrue(summary.passed)
        self.assertEqual(summary.time_spent, 30)

    def test_unanswered_questions_count_towards_max(self):
        questions = [question(1, marks=1), question(2, marks=1)]
        summary = score_submission(questions, [answer(1, 'A')])
        self.assertEqual(summary.max_score, 2)
        self.assertEqual(summary.percentage, 50)
        self.assertFalse(summary.passed)

    def test_just_below_threshold_fails(self):
        questions = [question(1, answer='A', marks=5999), question(2, answer='A', marks=4001)]
        summary = score_submission(questions, [answer(1, 'A'), answer(2, 'B')])
        self.assertAlmostEqual(summary.percentage, 59.99)
        self.assertFalse(summary.passed)

    def test_exact_threshold_passes(self):
        questions = [question(1, answer='A', marks=3), question(2, answer='A', marks=2)]
        summary = score_submission(questions, [answer(1, 'A'), answer(2, 'B')])
        self.assertEqual(summary.percentage, 60)
        self.assertTrue(summary.passed)

    @override_settings(EXAM_PASS_PERCENTAGE=75)
    def test_threshold_is_configurable(self):
        questions = [question(i) for i in range(1, 11)]
        summary = score_submission(questions, [answer(i, 'A') for i in range(1, 8)])
        self.assertEqual(summary.percentage, 70)
        self.assertFalse(summary.passed)

    def test_empty_exam_scores_zero(self):
        summary = score_submission([], [])
        self.assertEqual(summary.max_score, 0)
        self.assertEqual(summary.percentage, 0)
        self.assertFalse(summary.passed)

    def test_negative_marking(self):
        questions = [question(i, marks=4) for i in range(1, 4)]
        submitted = [answer(1, 'A'), answer(2, 'B'), answer(3, 'C')]

        plain = score_submission(questions, submitted)
        penalized = score_submission(questions, submitted, negative_marking=True)

        self.assertEqual(plain.total_score, 4)
        self.assertEqual(penalized.total_score, 2)
        self.assertEqual(penalized.graded[1].marks, -1)

    def test_total_never_negative(self):
        questions = [question(1, marks=4), question(2, marks=4)]
        summary = score_submission(questions, [answer(1, 'X'), answer(2, 'Y')], negative_marking=True)
        self.assertEqual(summary.total_score, 0)
        self.assertEqual(summary.percentage, 0)

    def test_short_answer_needs_review(self):
        questions = [question(1, type='short_answer', answer=None, marks=5)]
        summary = score_submission(questions, [answer(1, 'Arrest the suspect')], negative_marking=True)
        self.assertEqual(summary.total_score, 0)
        self.assertTrue(summary.needs_review)
        self.assertTrue(summary.as_detail()['needsReview'])

    def test_answer_matching(self):
        self.assertTrue(answers_match('multiple_select', ['B', 'A'], ['A', 'B']))
        self.assertFalse(answers_match('multiple_select', ['A'], ['A', 'B']))
        self.assertTrue(answers_match('true_false', 'TRUE', 'true'))
        self.assertTrue(answers_match('numeric', '12.50', '12.5'))
        self.assertFalse(answers_match('numeric', 'twelve', '12'))
        self.assertFalse(answers_match('multiple_choice', ['A'], 'A'))
        self.assertTrue(answers_match('multiple_choice', ' A ', 'A'))


def make_user(email, role='trainee'):
    return User.objects.create_user(
        username=email, email=email, password='password123',
        first_name='Test', last_name='User', role=role,
    )


class SubmitExamTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.trainee = make_user('trainee@tsf.test')
        self.course = Course.objects.create(
            code='ARREST-1', title_ar='القبض', title_en='Arrest Procedure', status=Course.Status.PUBLISHED,
        )
        Enrollment.objects.create(user=self.trainee, course=self.course)
        self.exam = Exam.objects.create(
            course=self.course, title_ar='اختبار', title_en='Arrest Final', is_published=True,
        )
        self.q1 = Question.objects.create(
            exam=self.exam, type='multiple_choice', stem_en='First?', options=['A', 'B'], answer='A', marks=3,
        )
        self.q2 = Question.objects.create(
            exam=self.exam, type='true_false', stem_en='Second?', answer='true', marks=2,
        )
        self.url = f'/api/exams/{self.exam.id}/submit/'
        self.client.force_authenticate(self.trainee)

    def submit(self, answers, **extra):
        payload = {'answers': answers}
        payload.update(extra)
        return self.client.post(self.url, payload, format='json')

    def passing_answers(self):
        return [
            {'questionId': str(self.q1.id), 'answer': 'A', 'timeSpent': 12},
            {'questionId': str(self.q2.id), 'answer': 'TRUE', 'timeSpent': 8},
        ]

    def test_passing_submission_issues_certificate(self):
        response = self.submit(self.passing_answers())

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        attempt = response.data['attempt']
        self.assertEqual(attempt['score'], 5)
        self.assertEqual(attempt['maxScore'], 5)
        self.assertTrue(attempt['passed'])
        self.assertEqual(attempt['timeSpent'], 20)

        certificate = Certificate.objects.get(user=self.trainee, course=self.course)
        self.assertEqual(attempt['certificate'], certificate.serial)
        self.assertEqual(certificate.exam, self.exam)
        self.assertTrue(certificate.serial.startswith('CERT-'))
        self.assertEqual(
            Enrollment.objects.get(user=self.trainee, course=self.course).status,
            Enrollment.Status.COMPLETED,
        )
        self.assertTrue(AuditLog.objects.filter(action='SUBMIT', entity='Exam').exists())
        types = set(Notification.objects.filter(recipient=self.trainee).values_list('type', flat=True))
        self.assertEqual(types, {Notification.Type.EXAM_GRADED, Notification.Type.CERTIFICATE_ISSUED})

    def test_resubmission_keeps_single_certificate(self):
        self.submit(self.passing_answers())
        response = self.submit(self.passing_answers())

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Attempt.objects.filter(user=self.trainee, exam=self.exam).count(), 2)
        self.assertEqual(Certificate.objects.filter(user=self.trainee, course=self.course).count(), 1)
        self.assertEqual(
            Notification.objects.filter(recipient=self.trainee, type=Notification.Type.CERTIFICATE_ISSUED).count(),
            1,
        )

    def test_failing_submission(self):
        response = self.submit([{'questionId': str(self.q1.id), 'answer': 'B'}])

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(response.data['attempt']['passed'])
        self.assertIsNone(response.data['attempt']['certificate'])
        self.assertFalse(Certificate.objects.exists())

    def test_unpublished_exam(self):
        self.exam.is_published = False
        self.exam.save()

        response = self.submit(self.passing_answers())

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Attempt.objects.exists())

    def test_unknown_exam(self):
        response = self.client.post('/api/exams/9999/submit/', {'answers': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_anonymous_submission_refused(self):
        self.client.force_authenticate(None)
        response = self.submit(self.passing_answers())

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error']['code'], 'AUTHENTICATION_ERROR')
        self.assertFalse(Attempt.objects.exists())

    def test_only_trainees_submit(self):
        self.client.force_authenticate(make_user('inst@tsf.test', 'instructor'))
        response = self.submit(self.passing_answers())

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Attempt.objects.exists())

    def test_unknown_question(self):
        response = self.submit([{'questionId': '999999', 'answer': 'A'}])

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('answers', response.data['error']['details'])
        self.assertFalse(Attempt.objects.exists())

    def test_duplicate_question(self):
        answers = [
            {'questionId': str(self.q1.id), 'answer': 'A'},
            {'questionId': str(self.q1.id), 'answer': 'B'},
        ]
        self.assertEqual(self.submit(answers).status_code, status.HTTP_400_BAD_REQUEST)

    def test_boolean_answer_rejected(self):
        response = self.submit([{'questionId': str(self.q2.id), 'answer': True}])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_auto_submit_is_recorded(self):
        self.submit([], autoSubmit=True)
        attempt = Attempt.objects.get()
        self.assertTrue(attempt.detail['autoSubmitted'])
        self.assertEqual(attempt.score, 0)

    def test_results_and_history(self):
        self.assertEqual(self.client.get(f'/api/exams/{self.exam.id}/results/').status_code, 404)

        self.submit(self.passing_answers())
        results = self.client.get(f'/api/exams/{self.exam.id}/results/')
        self.assertEqual(results.status_code, status.HTTP_200_OK)
        self.assertEqual(len(results.data['answers']), 2)
        self.assertTrue(all(a['isCorrect'] for a in results.data['answers']))

        history = self.client.get('/api/exams/attempts/')
        self.assertEqual(history.data['count'], 1)
        self.assertEqual(history.data['results'][0]['exam_title'], 'Arrest Final')


class TwoQuestionExamTests(APITestCase):
    """Two multiple choice questions worth 10 marks each, no negative marking."""

    def setUp(self):
        cache.clear()
        self.trainee = make_user('trainee@tsf.test')
        self.course = Course.objects.create(code='COMMS-1', title_ar='الاتصالات', title_en='Radio Comms')
        self.exam = Exam.objects.create(course=self.course, title_ar='اختبار', title_en='Comms', is_published=True)
        self.questions = [
            Question.objects.create(
                exam=self.exam, stem_en=f'Q{i}?', options=['A', 'B'], answer='A', marks=10,
            )
            for i in (1, 2)
        ]
        self.client.force_authenticate(self.trainee)

    def submit(self, first, second):
        return self.client.post(f'/api/exams/{self.exam.id}/submit/', {'answers': [
            {'questionId': str(self.questions[0].id), 'answer': first},
            {'questionId': str(self.questions[1].id), 'answer': second},
        ]}, format='json')

    def test_half_right(self):
        attempt = self.submit('A', 'B').data['attempt']
        self.assertEqual((attempt['score'], attempt['maxScore'], attempt['percentage']), (10, 20, 50))
        self.assertFalse(attempt['passed'])
        self.assertFalse(Certificate.objects.exists())

    def test_all_right(self):
        attempt = self.submit('A', 'A').data['attempt']
        self.assertEqual((attempt['score'], attempt['percentage']), (20, 100))
        self.assertTrue(attempt['passed'])
        certificate = Certificate.objects.get(user=self.trainee, course=self.course)
        self.assertEqual(certificate.expires_at - certificate.issued_at, timedelta(days=365))
