import hashlib
import json
import logging

from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction
from django.utils import timezone

from .models import AuditLog

logger = logging.getLogger(__name__)

GENESIS_HASH = "genesis"


def client_ip(request):
    if request is None:
        return None
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def chain_hash(previous_hash, payload):
    return hashlib.sha256((previous_hash + payload).encode('utf-8')).hexdigest()


def create_audit_log(actor, action, entity, entity_id=None, metadata=None, request=None):
    """
    Append an entry to the hash-chained audit log.

    Failures are logged and never raised to the caller.
    """
    metadata = json.loads(json.dumps(metadata or {}, cls=DjangoJSONEncoder))
    entity_id = str(entity_id) if entity_id is not None else None
    try:
        with transaction.atomic():
            last = AuditLog.objects.order_by('-ts', '-id').values_list('immutable_hash', flat=True).first()
            payload = json.dumps({
                'actorId': str(actor.pk) if actor is not None else None,
                'action': action,
                'entity': entity,
                'entityId': entity_id,
                'metadata': metadata,
                'ts': timezone.now().isoformat(),
            }, sort_keys=True)

            entry = AuditLog.objects.create(
                actor=actor,
                action=action,
                entity=entity,
                entity_id=entity_id,
                metadata=metadata,
                ip=client_ip(request),
                immutable_hash=chain_hash(last or GENESIS_HASH, payload),
            )
    except Exception:
        logger.exception("Failed to create audit log: %s %s %s", action, entity, entity_id)
        return None

    logger.info("Audit log created: %s %s %s by %s", action, entity, entity_id, getattr(actor, 'pk', None))
    return entry
