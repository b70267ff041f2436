from django.contrib import admin

# Register your models here.
from .models import Exam, Question


class QuestionInline(admin.TabularInline):
    model = Question
    extra = 0


@admin.register(Exam)
class ExamAdmin(admin.ModelAdmin):
    list_display = ('title_en', 'course', 'is_published', 'negative_marking')
    list_filter = ('is_published', 'negative_marking')
    inlines = [QuestionInline]


admin.site.register(Question)
