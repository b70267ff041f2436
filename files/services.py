import logging

from django.db.models import F

from cores.errors import (
    AuthenticationError,
    AuthorizationError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from cores.permissions import is_admin_role
from courses.models import Enrollment

from .models import FileObject
from .storage import (
    FileValidationError,
    calculate_checksum,
    generate_file_key,
    get_storage,
    sanitize_filename,
    validate_file,
)

logger = logging.getLogger(__name__)


def store_upload(uploaded_file, uploader, course=None, module=None, is_public=False):
    """Validate, push to storage, and record a FileObject for a Django UploadedFile."""
    data = uploaded_file.read()
    filename = sanitize_filename(uploaded_file.name)
    content_type = uploaded_file.content_type or "application/octet-stream"

    try:
        family = validate_file(filename, content_type, data)
    except FileValidationError as exc:
        raise ValidationError(str(exc), details={'file': [str(exc)]})

    storage = get_storage()
    key = generate_file_key(
        filename, uploader.pk,
        course_id=getattr(course, 'pk', None),
        module_id=getattr(module, 'pk', None),
    )
    result = storage.upload(key, data, content_type)
    if not result.success:
        raise ExternalServiceError("Storage", result.error or "Upload failed")

    file_object = FileObject.objects.create(
        bucket=getattr(storage, 'bucket', storage.name),
        key=key,
        filename=filename,
        size=len(data),
        checksum=calculate_checksum(data),
        content_type=content_type,
        uploader=uploader,
        course=course,
        module=module,
        is_public=is_public,
    )
    logger.info("File %s uploaded by %s (%s, %s bytes)", key, uploader.pk, family, len(data))
    return file_object, storage


def get_active_file(key):
    file_object = FileObject.objects.filter(key=key, status=FileObject.Status.ACTIVE).first()
    if file_object is None:
        raise NotFoundError("File", context={'key': key})
    return file_object


def check_file_access(file_object, user):
    """Public files are open; private ones need the uploader, an admin, or an enrollment in the file's course."""
    if file_object.is_public:
        return
    if user is None or not user.is_authenticated:
        raise AuthenticationError()
    if file_object.uploader_id == user.pk or is_admin_role(user.role):
        return
    if file_object.course_id and Enrollment.objects.filter(user=user, course_id=file_object.course_id).exists():
        return
    raise AuthorizationError("Access denied")


def read_file(file_object):
    result = get_storage().download(file_object.key)
    if not result.success:
        raise ExternalServiceError("Storage", result.error or "Download failed")
    FileObject.objects.filter(pk=file_object.pk).update(download_count=F('download_count') + 1)
    return result.data


def delete_file(file_object, user):
    if file_object.uploader_id != user.pk and not is_admin_role(user.role):
        raise AuthorizationError("Insufficient permissions")

    if not get_storage().delete(file_object.key):
        raise ExternalServiceError("Storage", "Failed to delete file from storage")

    file_object.status = FileObject.Status.DELETED
    file_object.save(update_fields=['status'])
    logger.info("File %s deleted by %s", file_object.key, user.pk)
    return file_object
