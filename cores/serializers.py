from rest_framework import serializers
from .models import Archive, AuditLog


class LowercaseChoiceField(serializers.ChoiceField):
    """Accepts 'PRESENT' as well as 'present'."""

    def to_internal_value(self, data):
        if isinstance(data, str):
            data = data.lower()
        return super().to_internal_value(data)


class AuditLogSerializer(serializers.ModelSerializer):
    # This field fetches the email from the related User model
    actor_email = serializers.CharField(source='actor.email', read_only=True, default=None)
    actor_role = serializers.CharField(source='actor.role', read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = ['id', 'actor', 'actor_email', 'actor_role', 'action', 'entity', 'entity_id',
                  'metadata', 'ip', 'ts', 'immutable_hash']


class ArchiveSerializer(serializers.ModelSerializer):
    archived_by_email = serializers.CharField(source='archived_by.email', read_only=True, default=None)

    class Meta:
        model = Archive
        fields = ['id', 'entity_type', 'entity_id', 'version', 'reason', 'snapshot',
                  'archived_by', 'archived_by_email', 'created_at']


class ArchiveRequestSerializer(serializers.Serializer):
    entityType = serializers.ChoiceField(choices=Archive.EntityType.choices)
    entityId = serializers.CharField()
    version = serializers.CharField(max_length=50)
    reason = serializers.CharField(allow_blank=True, default='')
