"""
Read-only aggregations behind the dashboard and report exports.
"""
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.db.models import Count, Q
from django.db.models.functions import TruncMonth
from django.utils import timezone

from assessments.models import Attempt
from certificates.models import Certificate
from cores.models import AuditLog
from courses.models import Course, Enrollment
from exams.models import Exam
from trainings.models import Attendance, TrainingSession

User = get_user_model()


def _rate(part, whole):
    return round(part * 100 / whole, 1) if whole else 0


def dashboard_stats(now=None):
    now = timezone.localtime(now or timezone.now())
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)

    total_enrollments = Enrollment.objects.count()
    certificates = Certificate.objects.count()
    attempts = Attempt.objects.aggregate(
        total=Count('id'),
        passed=Count('id', filter=Q(passed=True)),
    )

    stats = {
        'activeTrainees': User.objects.filter(role=User.Role.TRAINEE, status=User.Status.ACTIVE).count(),
        'completionRate': _rate(certificates, total_enrollments),
        'overdueCerts': Certificate.objects.filter(expires_at__lt=now).count(),
        'sessionsToday': TrainingSession.objects.filter(
            starts_at__gte=day_start, starts_at__lt=day_start + timedelta(days=1)
        ).count(),
        'examPassRate': _rate(attempts['passed'], attempts['total']),
        'totalUsers': User.objects.count(),
        'totalCourses': Course.objects.filter(status=Course.Status.PUBLISHED).count(),
        'totalExams': Exam.objects.count(),
    }

    recent_activity = [
        {
            'id': entry.id,
            'action': entry.action,
            'user': entry.actor.display_name if entry.actor else None,
            'details': entry.metadata,
            'time': entry.ts.isoformat(),
        }
        for entry in AuditLog.objects.select_related('actor')[:10]
    ]
    return {'stats': stats, 'recentActivity': recent_activity}


def certificate_expiries(now=None):
    """Counts of certificates expiring in the next 30, 31-60 and 61-90 days."""
    now = now or timezone.now()
    in_30 = now + timedelta(days=30)
    in_60 = now + timedelta(days=60)
    in_90 = now + timedelta(days=90)

    upcoming = Certificate.objects.filter(expires_at__gte=now, expires_at__lte=in_90)
    counts = upcoming.aggregate(
        in_30=Count('id', filter=Q(expires_at__lte=in_30)),
        in_60=Count('id', filter=Q(expires_at__gt=in_30, expires_at__lte=in_60)),
        in_90=Count('id', filter=Q(expires_at__gt=in_60)),
    )

    details = [
        {
            'id': cert.id,
            'serial': cert.serial,
            'expiresAt': cert.expires_at.isoformat(),
            'user': {
                'name': cert.user.display_name,
                'email': cert.user.email,
                'unit': cert.user.unit,
            },
            'course': {'titleEn': cert.course.title_en, 'titleAr': cert.course.title_ar},
        }
        for cert in upcoming.select_related('user', 'course').order_by('expires_at')
    ]
    return {
        'expiringIn30Days': counts['in_30'],
        'expiringIn60Days': counts['in_60'],
        'expiringIn90Days': counts['in_90'],
        'expiryDetails': details,
    }


def _month_starts(now, months):
    first = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    starts = []
    year, month = first.year, first.month
    for _ in range(months):
        starts.append(first.replace(year=year, month=month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(starts))


def completion_trend(now=None, months=12):
    """Monthly certificates vs enrollments, plus per-course completion rates."""
    now = timezone.localtime(now or timezone.now())
    starts = _month_starts(now, months)
    since = starts[0]

    def by_month(queryset, field):
        rows = (
            queryset.filter(**{f'{field}__gte': since})
            .annotate(month=TruncMonth(field))
            .values('month')
            .annotate(count=Count('id'))
        )
        return {(row['month'].year, row['month'].month): row['count'] for row in rows}

    completions = by_month(Certificate.objects.all(), 'issued_at')
    enrollments = by_month(Enrollment.objects.all(), 'assigned_at')

    monthly = []
    for start in starts:
        key = (start.year, start.month)
        done = completions.get(key, 0)
        enrolled = enrollments.get(key, 0)
        monthly.append({
            'month': f"{start.year}-{start.month:02d}",
            'monthName': start.strftime('%b %Y'),
            'completions': done,
            'enrollments': enrolled,
            'completionRate': _rate(done, enrolled),
        })

    courses = Course.objects.annotate(
        total_enrollments=Count('enrollments', distinct=True),
        total_completions=Count('certificates', distinct=True),
    )
    course_rows = [
        {
            'courseId': course.id,
            'titleEn': course.title_en,
            'titleAr': course.title_ar,
            'totalEnrollments': course.total_enrollments,
            'totalCompletions': course.total_completions,
            'completionRate': _rate(course.total_completions, course.total_enrollments),
        }
        for course in courses
    ]
    course_rows.sort(key=lambda row: row['completionRate'], reverse=True)
    return {'monthlyTrend': monthly, 'courseCompletions': course_rows}


def unit_performance():
    """Trainee count and exam pass rate per unit, best unit first."""
    trainees = (
        User.objects.filter(role=User.Role.TRAINEE)
        .exclude(unit__isnull=True).exclude(unit='')
        .values('unit')
        .annotate(count=Count('id'))
    )
    attempts = (
        Attempt.objects.filter(user__role=User.Role.TRAINEE)
        .exclude(user__unit__isnull=True).exclude(user__unit='')
        .values('user__unit')
        .annotate(total=Count('id'), passed=Count('id', filter=Q(passed=True)))
    )
    attempts_by_unit = {row['user__unit']: row for row in attempts}

    rows = []
    for row in trainees:
        unit_attempts = attempts_by_unit.get(row['unit'], {'total': 0, 'passed': 0})
        rows.append({
            'unit': row['unit'],
            'traineeCount': row['count'],
            'passRate': round(_rate(unit_attempts['passed'], unit_attempts['total'])),
            'totalAttempts': unit_attempts['total'],
        })
    rows.sort(key=lambda r: r['passRate'], reverse=True)
    return {'unitPerformance': rows}


def _user_rows(start, end):
    headers = ['ID', 'First Name', 'Last Name', 'Email', 'Role', 'Unit', 'Rank', 'Status',
               'Badge Number', 'QID', 'Created Date']
    users = User.objects.filter(date_joined__range=(start, end)).order_by('-date_joined')
    rows = [
        [u.id, u.first_name, u.last_name, u.email, u.role, u.unit or '', u.rank or '',
         u.status, u.badge_no or '', u.qid or '', u.date_joined.date().isoformat()]
        for u in users
    ]
    return headers, rows


def _course_rows(start, end):
    headers = ['Code', 'Title (Arabic)', 'Title (English)', 'Status', 'Modality',
               'Duration (mins)', 'Enrollments', 'Created Date']
    courses = (
        Course.objects.filter(created_at__range=(start, end))
        .annotate(enrollment_count=Count('enrollments'))
        .order_by('-created_at')
    )
    rows = [
        [c.code, c.title_ar, c.title_en, c.status, c.modality, c.duration_mins,
         c.enrollment_count, c.created_at.date().isoformat()]
        for c in courses
    ]
    return headers, rows


def _exam_rows(start, end):
    headers = ['Title (Arabic)', 'Title (English)', 'Course', 'Time Limit (mins)', 'Total Marks',
               'Published', 'Attempts', 'Created Date']
    exams = (
        Exam.objects.filter(created_at__range=(start, end))
        .select_related('course')
        .prefetch_related('questions')
        .annotate(attempt_count=Count('attempts', distinct=True))
        .order_by('-created_at')
    )
    rows = [
        [e.title_ar, e.title_en, e.course.title_en, e.time_limit_mins, e.total_marks,
         'Yes' if e.is_published else 'No', e.attempt_count, e.created_at.date().isoformat()]
        for e in exams
    ]
    return headers, rows


def _attendance_rows(start, end):
    headers = ['Trainee', 'Badge Number', 'Unit', 'Rank', 'Session', 'Session Start',
               'Status', 'Method', 'Captured By', 'Captured At']
    records = (
        Attendance.objects.filter(captured_at__range=(start, end))
        .select_related('user', 'session', 'captured_by')
    )
    rows = [
        [a.user.display_name, a.user.badge_no or '', a.user.unit or '', a.user.rank or '',
         a.session.title_en, a.session.starts_at.isoformat(), a.status, a.method,
         a.captured_by.display_name if a.captured_by else '', a.captured_at.isoformat()]
        for a in records
    ]
    return headers, rows


def _certificate_rows(start, end):
    headers = ['Serial', 'Trainee', 'Email', 'Unit', 'Course', 'Issued Date', 'Expiry Date']
    certificates = (
        Certificate.objects.filter(issued_at__range=(start, end))
        .select_related('user', 'course')
    )
    rows = [
        [c.serial, c.user.display_name, c.user.email, c.user.unit or '', c.course.title_en,
         c.issued_at.date().isoformat(), c.expires_at.date().isoformat() if c.expires_at else '']
        for c in certificates
    ]
    return headers, rows


# Report type -> builder returning (headers, rows) for a date range
EXPORTS = {
    'users': _user_rows,
    'courses': _course_rows,
    'exams': _exam_rows,
    'attendance': _attendance_rows,
    'certificates': _certificate_rows,
}


def export_rows(report_type, start, end):
    return EXPORTS[report_type](start, end)
