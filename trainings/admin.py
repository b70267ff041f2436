from django.contrib import admin

from .models import Attendance, TrainingSession

admin.site.register(TrainingSession)
admin.site.register(Attendance)
