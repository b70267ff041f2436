from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from cores.models import AuditLog

User = get_user_model()


def make_user(email, role='trainee', password='password123', **extra):
    return User.objects.create_user(
        username=email, email=email, password=password,
        first_name='Test', last_name='User', role=role, **extra
    )


class AuthenticationTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.user = make_user('trainee@tsf.test', badge_no='B-1001')
        self.login_url = reverse('login')

    def test_login_sets_access_cookie(self):
        response = self.client.post(self.login_url, {
            'email': 'trainee@tsf.test',
            'password': 'password123',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertEqual(response.data['user']['email'], 'trainee@tsf.test')
        cookie = response.cookies[settings.AUTH_COOKIE_NAME]
        self.assertTrue(cookie['httponly'])
        self.assertTrue(AuditLog.objects.filter(action='LOGIN', actor=self.user).exists())

    def test_session_resolves_from_cookie(self):
        self.client.post(self.login_url, {'email': 'trainee@tsf.test', 'password': 'password123'}, format='json')

        response = self.client.get(reverse('auth-session'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['id'], self.user.id)

    def test_session_from_bearer_header(self):
        login = self.client.post(self.login_url, {'email': 'trainee@tsf.test', 'password': 'password123'}, format='json')
        self.client.cookies.clear()

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {login.data['access']}")
        response = self.client.get(reverse('auth-session'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_session_without_token(self):
        response = self.client.get(reverse('auth-session'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_wrong_password(self):
        response = self.client.post(self.login_url, {'email': 'trainee@tsf.test', 'password': 'nope-nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error']['code'], 'AUTHENTICATION_ERROR')

    def test_inactive_user_cannot_login(self):
        self.user.status = User.Status.SUSPENDED
        self.user.save()
        response = self.client.post(self.login_url, {'email': 'trainee@tsf.test', 'password': 'password123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_login_attempts_are_throttled_per_email(self):
        for _ in range(5):
            self.client.post(self.login_url, {'email': 'trainee@tsf.test', 'password': 'wrong-pass'}, format='json')

        response = self.client.post(self.login_url, {'email': 'trainee@tsf.test', 'password': 'password123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)

    def test_logout_clears_cookie(self):
        self.client.post(self.login_url, {'email': 'trainee@tsf.test', 'password': 'password123'}, format='json')
        response = self.client.post(reverse('logout'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.cookies[settings.AUTH_COOKIE_NAME].value, '')


class UserManagementTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.admin = make_user('admin@tsf.test', role='admin')
        self.trainee = make_user('trainee@tsf.test')

    def test_trainee_cannot_list_users(self):
        self.client.force_authenticate(self.trainee)
        response = self.client.get('/api/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_creates_user(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/users/', {
            'email': 'new@tsf.test',
            'first_name': 'New',
            'last_name': 'Officer',
            'password': 'password123',
            'role': 'instructor',
            'unit': 'Traffic',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        created = User.objects.get(email='new@tsf.test')
        self.assertEqual(created.role, User.Role.INSTRUCTOR)
        self.assertTrue(created.check_password('password123'))
        self.assertTrue(AuditLog.objects.filter(action='CREATE', entity='User', entity_id=str(created.id)).exists())

    def test_filter_by_role(self):
        self.client.force_authenticate(self.admin)
        response = self.client.get('/api/users/', {'role': 'trainee'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([u['email'] for u in response.data['results']], ['trainee@tsf.test'])

    def test_profile_cannot_change_role(self):
        self.client.force_authenticate(self.trainee)
        response = self.client.patch(reverse('user-profile'), {'role': 'admin', 'rank': 'Sergeant'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.trainee.refresh_from_db()
        self.assertEqual(self.trainee.role, User.Role.TRAINEE)
        self.assertEqual(self.trainee.rank, 'Sergeant')

    def test_csv_import(self):
        rows = (
            "email,first_name,last_name,role,badge_no,rank,unit,qid,password\n"
            "one@tsf.test,Ali,Hassan,trainee,B-1,Corporal,Patrol,,password123\n"
            "not-an-email,Bad,Row,trainee,,,,,password123\n"
            "admin@tsf.test,Dup,Row,trainee,,,,,password123\n"
        )
        upload = SimpleUploadedFile('users.csv', rows.encode('utf-8'), content_type='text/csv')

        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/users/import/', {'file': upload}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['created'], 1)
        self.assertEqual([e['line'] for e in response.data['errors']], [3, 4])
        self.assertEqual(User.objects.get(email='one@tsf.test').unit, 'Patrol')

    def test_import_without_file(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/users/import/', {}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
