from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),

    # --- Authentication, Profile & User Management ---
    path('api/', include('users.urls')),

    # --- Catalog ---
    path('api/', include('courses.urls')),

    # --- Exam taking (must precede the exams router: "attempts" is not an exam id) ---
    path('api/', include('assessments.urls')),
    path('api/', include('exams.urls')),

    # --- Certificates, Sessions & Attendance ---
    path('api/', include('certificates.urls')),
    path('api/', include('trainings.urls')),

    # --- Files & Notifications ---
    path('api/', include('files.urls')),
    path('api/', include('notifications.urls')),

    # --- Dashboards, Reports, Audit & Archive ---
    path('api/', include('reports.urls')),
    path('api/', include('cores.urls')),
]
