import django_filters

from .models import Archive, AuditLog


class AuditLogFilter(django_filters.FilterSet):
    actorId = django_filters.NumberFilter(field_name="actor_id")
    date_from = django_filters.IsoDateTimeFilter(field_name="ts", lookup_expr="gte")
    date_to = django_filters.IsoDateTimeFilter(field_name="ts", lookup_expr="lte")

    class Meta:
        model = AuditLog
        fields = ["action", "entity", "entity_id", "actorId", "date_from", "date_to"]


class ArchiveFilter(django_filters.FilterSet):
    entityType = django_filters.CharFilter(field_name="entity_type")

    class Meta:
        model = Archive
        fields = ["entityType", "entity_id"]
