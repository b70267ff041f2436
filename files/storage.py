"""
Blob storage behind a small driver interface.

`get_storage()` picks the driver from settings.STORAGE_DRIVER:
  - "local"               files under settings.LOCAL_UPLOAD_DIR
  - "s3" / "minio" / "r2" any S3-compatible endpoint through boto3

An object driver without a bucket or credentials falls back to local storage
with a warning.
"""
import hashlib
import logging
import os
import re
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from django.conf import settings

logger = logging.getLogger(__name__)

MB = 1024 * 1024

# Family -> accepted extensions, mime types and size cap
SUPPORTED_FILE_TYPES = {
    'PDF': {
        'extensions': ['.pdf'],
        'mime_types': ['application/pdf'],
        'max_size': 50 * MB,
    },
    'PPT': {
        'extensions': ['.ppt', '.pptx'],
        'mime_types': [
            'application/vnd.ms-powerpoint',
            'application/vnd.openxmlformats-officedocument.presentationml.presentation',
        ],
        'max_size': 100 * MB,
    },
    'DOC': {
        'extensions': ['.doc', '.docx'],
        'mime_types': [
            'application/msword',
            'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
        ],
        'max_size': 50 * MB,
    },
    'XLS': {
        'extensions': ['.xls', '.xlsx'],
        'mime_types': [
            'application/vnd.ms-excel',
            'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        ],
        'max_size': 50 * MB,
    },
    'MP3': {
        'extensions': ['.mp3'],
        'mime_types': ['audio/mpeg'],
        'max_size': 100 * MB,
    },
    'MP4': {
        'extensions': ['.mp4'],
        'mime_types': ['video/mp4'],
        'max_size': 500 * MB,
    },
    'IMAGE': {
        'extensions': ['.jpg', '.jpeg', '.png', '.gif', '.webp'],
        'mime_types': ['image/jpeg', 'image/png', 'image/gif', 'image/webp'],
        'max_size': 10 * MB,
    },
}

BLOCKED_SIGNATURES = (
    b'MZ',          # Windows executable
    b'\x7fELF',     # Linux executable
    b'#!',          # script
)


class FileValidationError(Exception):
    pass


@dataclass
class UploadResult:
    success: bool
    url: Optional[str] = None
    error: Optional[str] = None


@dataclass
class DownloadResult:
    success: bool
    data: Optional[bytes] = None
    error: Optional[str] = None


def format_file_size(size):
    if size == 0:
        return '0 Bytes'
    units = ['Bytes', 'KB', 'MB', 'GB']
    index = 0
    value = float(size)
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f'{value:.2f}'.rstrip('0').rstrip('.') + f' {units[index]}'


def detect_file_type(filename, content_type):
    extension = os.path.splitext(filename)[1].lower()
    for family, config in SUPPORTED_FILE_TYPES.items():
        if extension in config['extensions'] and content_type in config['mime_types']:
            return family
    return None


def validate_file(filename, content_type, data):
    """
    Returns the file family ("PDF", "IMAGE", ...) or raises FileValidationError.
    """
    for signature in BLOCKED_SIGNATURES:
        if data.startswith(signature):
            raise FileValidationError('File type not allowed')

    family = detect_file_type(filename, content_type)
    if family is None:
        raise FileValidationError(
            'Unsupported file type. Supported formats: PDF, PPT, DOC, XLS, MP3, MP4, and common image formats.'
        )

    max_size = SUPPORTED_FILE_TYPES[family]['max_size']
    if len(data) > max_size:
        raise FileValidationError(f'File size exceeds maximum allowed size of {format_file_size(max_size)}')
    return family


def sanitize_filename(filename):
    name = re.sub(r'[^a-zA-Z0-9._-]', '_', filename)
    name = re.sub(r'_{2,}', '_', name)
    return name.strip('_') or 'file'


def generate_file_key(filename, uploader_id, course_id=None, module_id=None):
    stem, extension = os.path.splitext(filename)
    stem = re.sub(r'[^a-zA-Z0-9]', '_', stem)
    key = f'uploads/{uploader_id}/{int(time.time() * 1000)}_{secrets.token_hex(3)}_{stem}{extension}'
    if course_id:
        key = f'uploads/courses/{course_id}/{key}'
    if module_id:
        key = f'uploads/modules/{module_id}/{key}'
    return key


def calculate_checksum(data):
    return hashlib.sha256(data).hexdigest()


class StorageDriver:
    name = 'base'

    def upload(self, key, data, content_type):
        raise NotImplementedError

    def download(self, key):
        raise NotImplementedError

    def delete(self, key):
        raise NotImplementedError

    def resolve_url(self, key):
        raise NotImplementedError


class LocalStorageDriver(StorageDriver):
    name = 'local'

    def __init__(self, root=None):
        self.root = Path(root or settings.LOCAL_UPLOAD_DIR).resolve()

    def _path(self, key):
        path = (self.root / key).resolve()
        if path != self.root and self.root not in path.parents:
            raise ValueError(f'Key escapes the upload directory: {key}')
        return path

    def upload(self, key, data, content_type):
        try:
            path = self._path(key)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except (OSError, ValueError) as exc:
            logger.error('Local upload failed for %s: %s', key, exc)
            return UploadResult(success=False, error=str(exc))
        logger.info('File saved locally: %s (%s bytes)', key, len(data))
        return UploadResult(success=True, url=self.resolve_url(key))

    def download(self, key):
        try:
            return DownloadResult(success=True, data=self._path(key).read_bytes())
        except (OSError, ValueError) as exc:
            logger.warning('Local download failed for %s: %s', key, exc)
            return DownloadResult(success=False, error=str(exc))

    def delete(self, key):
        try:
            self._path(key).unlink()
        except (OSError, ValueError) as exc:
            logger.warning('Local delete failed for %s: %s', key, exc)
            return False
        logger.info('File deleted locally: %s', key)
        return True

    def resolve_url(self, key):
        return f'/api/files/{key}/'


class S3StorageDriver(StorageDriver):
    """S3, MinIO and Cloudflare R2 share the same client; only the endpoint differs."""
    name = 's3'

    def __init__(self, bucket, access_key, secret_key, endpoint_url=None,
                 region=None, public_domain=None):
        self.bucket = bucket
        self.endpoint_url = endpoint_url
        self.public_domain = public_domain
        self.client = boto3.client(
            's3',
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region or 'auto',
        )

    def upload(self, key, data, content_type):
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type or 'application/octet-stream',
                Metadata={'checksum': calculate_checksum(data)},
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error('Object upload failed for %s/%s: %s', self.bucket, key, exc)
            return UploadResult(success=False, error=str(exc))
        logger.info('File uploaded to %s: %s (%s bytes)', self.bucket, key, len(data))
        return UploadResult(success=True, url=self.resolve_url(key))

    def download(self, key):
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            return DownloadResult(success=True, data=response['Body'].read())
        except (BotoCoreError, ClientError) as exc:
            logger.warning('Object download failed for %s/%s: %s', self.bucket, key, exc)
            return DownloadResult(success=False, error=str(exc))

    def delete(self, key):
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            logger.warning('Object delete failed for %s/%s: %s', self.bucket, key, exc)
            return False
        logger.info('File deleted from %s: %s', self.bucket, key)
        return True

    def resolve_url(self, key):
        if self.public_domain:
            return f'https://{self.public_domain}/{key}'
        if self.endpoint_url:
            return f'{self.endpoint_url.rstrip("/")}/{self.bucket}/{key}'
        return f'https://{self.bucket}.s3.amazonaws.com/{key}'


OBJECT_DRIVERS = ('s3', 'minio', 'r2')


def get_storage():
    driver = (getattr(settings, 'STORAGE_DRIVER', 'local') or 'local').lower()
    if driver not in OBJECT_DRIVERS:
        return LocalStorageDriver()

    bucket = getattr(settings, 'STORAGE_BUCKET', '')
    access_key = getattr(settings, 'STORAGE_ACCESS_KEY', '')
    secret_key = getattr(settings, 'STORAGE_SECRET_KEY', '')
    if not (bucket and access_key and secret_key):
        logger.warning('STORAGE_DRIVER=%s is missing bucket or credentials; using local storage', driver)
        return LocalStorageDriver()

    return S3StorageDriver(
        bucket=bucket,
        access_key=access_key,
        secret_key=secret_key,
        endpoint_url=getattr(settings, 'STORAGE_ENDPOINT_URL', None) or None,
        region=getattr(settings, 'STORAGE_REGION', None),
        public_domain=getattr(settings, 'STORAGE_PUBLIC_DOMAIN', None) or None,
    )
