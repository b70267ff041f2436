import json
import shutil
import tempfile

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase, override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from cores.models import AuditLog
from courses.models import Course, Enrollment

from .models import FileObject
from .storage import (
    MB,
    FileValidationError,
    LocalStorageDriver,
    format_file_size,
    generate_file_key,
    get_storage,
    sanitize_filename,
    validate_file,
)

User = get_user_model()

PDF_BYTES = b'%PDF-1.4\n1 0 obj\n<<>>\nendobj\n'


class StorageHelperTests(SimpleTestCase):
    def test_validate_pdf(self):
        self.assertEqual(validate_file('manual.pdf', 'application/pdf', PDF_BYTES), 'PDF')

    def test_executables_are_blocked(self):
        for payload in (b'MZ\x90\x00', b'\x7fELF\x02', b'#!/bin/sh\n'):
            with self.assertRaises(FileValidationError):
                validate_file('manual.pdf', 'application/pdf', payload)

    def test_extension_and_mime_must_agree(self):
        with self.assertRaises(FileValidationError):
            validate_file('manual.pdf', 'image/png', PDF_BYTES)
        with self.assertRaises(FileValidationError):
            validate_file('notes.txt', 'text/plain', b'hello')

    def test_size_cap(self):
        with self.assertRaisesMessage(FileValidationError, '10 MB'):
            validate_file('photo.png', 'image/png', b'\x89PNG' + b'0' * (10 * MB))

    def test_sanitize_filename(self):
        self.assertEqual(sanitize_filename('my report (final).pdf'), 'my_report_final_.pdf')
        self.assertEqual(sanitize_filename('###'), 'file')

    def test_format_file_size(self):
        self.assertEqual(format_file_size(0), '0 Bytes')
        self.assertEqual(format_file_size(1536), '1.5 KB')
        self.assertEqual(format_file_size(50 * MB), '50 MB')

    def test_generate_key(self):
        key = generate_file_key('Range Rules.pdf', 7, course_id=3)
        self.assertTrue(key.startswith('uploads/courses/3/uploads/7/'))
        self.assertTrue(key.endswith('_Range_Rules.pdf'))

    def test_local_driver_round_trip_and_escape(self):
        root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, root, True)
        driver = LocalStorageDriver(root)

        self.assertTrue(driver.upload('a/b.pdf', PDF_BYTES, 'application/pdf').success)
        self.assertEqual(driver.download('a/b.pdf').data, PDF_BYTES)
        self.assertTrue(driver.delete('a/b.pdf'))
        self.assertFalse(driver.download('a/b.pdf').success)
        self.assertFalse(driver.upload('../outside.pdf', PDF_BYTES, 'application/pdf').success)

    @override_settings(STORAGE_DRIVER='r2', STORAGE_BUCKET='', STORAGE_ACCESS_KEY='', STORAGE_SECRET_KEY='')
    def test_object_driver_without_credentials_falls_back(self):
        self.assertIsInstance(get_storage(), LocalStorageDriver)


def make_user(email, role='trainee'):
    return User.objects.create_user(
        username=email, email=email, password='password123',
        first_name='Test', last_name='User', role=role,
    )


class FileApiTests(APITestCase):
    def setUp(self):
        cache.clear()
        upload_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, upload_dir, True)
        storage_settings = override_settings(STORAGE_DRIVER='local', LOCAL_UPLOAD_DIR=upload_dir)
        storage_settings.enable()
        self.addCleanup(storage_settings.disable)

        self.instructor = make_user('inst@tsf.test', 'instructor')
        self.trainee = make_user('trainee@tsf.test')
        self.outsider = make_user('outsider@tsf.test')
        self.course = Course.objects.create(code='EVID-1', title_ar='الأدلة', title_en='Evidence Handling')
        Enrollment.objects.create(user=self.trainee, course=self.course)

    def upload(self, name='manual.pdf', data=PDF_BYTES, content_type='application/pdf', metadata=None):
        self.client.force_authenticate(self.instructor)
        payload = {'file': SimpleUploadedFile(name, data, content_type=content_type)}
        if metadata is not None:
            payload['metadata'] = json.dumps(metadata)
        return self.client.post('/api/files/upload/', payload, format='multipart')

    def test_upload(self):
        response = self.upload(metadata={'courseId': self.course.id})

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.data['file']
        self.assertEqual(data['size'], len(PDF_BYTES))
        self.assertEqual(data['course'], self.course.id)
        self.assertEqual(data['url'], f"/api/files/{data['key']}/")
        self.assertEqual(len(data['checksum']), 64)
        self.assertTrue(AuditLog.objects.filter(action='UPLOAD', entity='FileObject').exists())

    def test_blocked_upload(self):
        response = self.upload(data=b'MZ\x90\x00\x03')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['message'], 'File type not allowed')
        self.assertFalse(FileObject.objects.exists())

    def test_bad_metadata(self):
        self.client.force_authenticate(self.instructor)
        response = self.client.post('/api/files/upload/', {
            'file': SimpleUploadedFile('manual.pdf', PDF_BYTES, content_type='application/pdf'),
            'metadata': '{not json',
        }, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_trainee_cannot_upload(self):
        self.client.force_authenticate(self.trainee)
        response = self.client.post('/api/files/upload/', {
            'file': SimpleUploadedFile('manual.pdf', PDF_BYTES, content_type='application/pdf'),
        }, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_private_file_access(self):
        key = self.upload(metadata={'courseId': self.course.id}).data['file']['key']
        url = f'/api/files/{key}/'

        self.client.force_authenticate(None)
        self.assertEqual(self.client.get(url).status_code, status.HTTP_401_UNAUTHORIZED)

        self.client.force_authenticate(self.outsider)
        self.assertEqual(self.client.get(url).status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.trainee)
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.content, PDF_BYTES)
        self.assertTrue(response['Content-Disposition'].startswith('attachment;'))
        self.assertEqual(FileObject.objects.get(key=key).download_count, 1)

    def test_public_preview(self):
        key = self.upload(metadata={'isPublic': True}).data['file']['key']
        self.client.force_authenticate(None)
        response = self.client.get(f'/api/files/{key}/preview/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response['Content-Disposition'].startswith('inline;'))

    def test_list_visibility(self):
        self.upload(metadata={'courseId': self.course.id})
        self.upload(name='public.pdf', metadata={'isPublic': True})

        self.client.force_authenticate(self.outsider)
        response = self.client.get('/api/files/')
        self.assertEqual([f['filename'] for f in response.data['results']], ['public.pdf'])

        self.client.force_authenticate(self.trainee)
        self.assertEqual(self.client.get('/api/files/').data['count'], 2)

    def test_delete(self):
        key = self.upload().data['file']['key']
        url = f'/api/files/{key}/'

        self.client.force_authenticate(self.outsider)
        self.assertEqual(self.client.delete(url).status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.instructor)
        response = self.client.delete(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(FileObject.objects.get(key=key).status, FileObject.Status.DELETED)
        self.assertEqual(self.client.get(url).status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_requires_login(self):
        key = self.upload().data['file']['key']
        self.client.force_authenticate(None)
        self.assertEqual(self.client.delete(f'/api/files/{key}/').status_code, status.HTTP_401_UNAUTHORIZED)
