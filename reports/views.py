import csv
import logging
from datetime import datetime, timedelta

from django.http import HttpResponse
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime
from rest_framework import views
from rest_framework.response import Response

from cores.audit import create_audit_log
from cores.errors import ValidationError
from cores.permissions import HasPermission

from . import selectors

logger = logging.getLogger(__name__)


class ReportsPermissionMixin:
    permission_classes = [HasPermission]
    required_permissions = ['reports:read']


class DashboardStatsView(ReportsPermissionMixin, views.APIView):
    def get(self, request):
        return Response(selectors.dashboard_stats())


class CertificateExpiriesView(ReportsPermissionMixin, views.APIView):
    def get(self, request):
        return Response(selectors.certificate_expiries())


class CompletionTrendView(ReportsPermissionMixin, views.APIView):
    def get(self, request):
        return Response(selectors.completion_trend())


class UnitPerformanceView(ReportsPermissionMixin, views.APIView):
    def get(self, request):
        return Response(selectors.unit_performance())


def _parse_moment(value, field, end_of_day=False):
    """A bare date means midnight, or the last instant of that day for end_of_day."""
    if not value:
        return None
    try:
        day = parse_date(value)
        moment = parse_datetime(value) if day is None else None
    except ValueError:
        day = moment = None
    if day is not None:
        moment = datetime(day.year, day.month, day.day)
        if end_of_day:
            moment += timedelta(days=1, microseconds=-1)
    elif moment is None:
        raise ValidationError(f"Invalid {field}", details={field: ["Expected an ISO date."]})
    if timezone.is_naive(moment):
        moment = timezone.make_aware(moment)
    return moment


class ReportExportView(ReportsPermissionMixin, views.APIView):
    """
    CSV download.
    Query: ?type=users|courses|exams|attendance|certificates&startDate=YYYY-MM-DD&endDate=YYYY-MM-DD
    Defaults to the last 30 days.
    """

    def get(self, request):
        report_type = request.query_params.get('type', 'users')
        if report_type not in selectors.EXPORTS:
            raise ValidationError(
                f"Invalid report type. Supported types: {', '.join(selectors.EXPORTS)}"
            )
        export_format = request.query_params.get('format', 'csv')
        if export_format != 'csv':
            raise ValidationError("Invalid format. Supported formats: csv")

        end = _parse_moment(request.query_params.get('endDate'), 'endDate', end_of_day=True) or timezone.now()
        start = _parse_moment(request.query_params.get('startDate'), 'startDate') or end - timedelta(days=30)
        if start > end:
            raise ValidationError("startDate must be before endDate")

        headers, rows = selectors.export_rows(report_type, start, end)

        filename = f"{report_type}_report_{start.date().isoformat()}_{end.date().isoformat()}.csv"
        response = HttpResponse(content_type='text/csv; charset=utf-8')
        response['Content-Disposition'] = f'attachment; filename="{filename}"'
        writer = csv.writer(response)
        writer.writerow(headers)
        writer.writerows(rows)

        create_audit_log(
            request.user, 'EXPORT', 'Report', None,
            {'type': report_type, 'rows': len(rows), 'startDate': start.isoformat(), 'endDate': end.isoformat()},
            request=request,
        )
        logger.info("Report %s exported by %s (%s rows)", report_type, request.user.pk, len(rows))
        return response
