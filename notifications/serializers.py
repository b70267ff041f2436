from django.contrib.auth import get_user_model
from rest_framework import serializers

from cores.serializers import LowercaseChoiceField

from .models import Notification

User = get_user_model()


class NotificationSerializer(serializers.ModelSerializer):
    sender_name = serializers.CharField(source='sender.display_name', read_only=True, default=None)

    class Meta:
        model = Notification
        fields = [
            'id', 'type', 'recipient', 'sender', 'sender_name',
            'title_ar', 'title_en', 'message_ar', 'message_en',
            'priority', 'channels', 'metadata', 'is_read', 'read_at',
            'sent_at', 'scheduled_at', 'expires_at',
        ]
        read_only_fields = fields


class NotificationCreateSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=Notification.Type.choices)
    recipientId = serializers.PrimaryKeyRelatedField(queryset=User.objects.all())
    titleAr = serializers.CharField(min_length=1)
    titleEn = serializers.CharField(min_length=1)
    messageAr = serializers.CharField(min_length=1)
    messageEn = serializers.CharField(min_length=1)
    priority = LowercaseChoiceField(choices=Notification.Priority.choices, default=Notification.Priority.MEDIUM)
    channels = serializers.ListField(
        child=LowercaseChoiceField(choices=Notification.Channel.choices),
        default=list,
    )
    metadata = serializers.DictField(default=dict)
    scheduledAt = serializers.DateTimeField(required=False, allow_null=True)
    expiresAt = serializers.DateTimeField(required=False, allow_null=True)
