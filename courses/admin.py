from django.contrib import admin

from .models import Course, Enrollment, Module, ModuleVersion, ProgramCourse, ProgramEnrollment, Tag, TrainingProgram


class ModuleInline(admin.TabularInline):
    model = Module
    extra = 0


@admin.register(Course)
class CourseAdmin(admin.ModelAdmin):
    list_display = ('code', 'title_en', 'modality', 'status', 'created_at')
    list_filter = ('status', 'modality')
    search_fields = ('code', 'title_en', 'title_ar')
    inlines = [ModuleInline]


@admin.register(Enrollment)
class EnrollmentAdmin(admin.ModelAdmin):
    list_display = ('user', 'course', 'status', 'assigned_at', 'completed_at')
    list_filter = ('status',)


class ProgramCourseInline(admin.TabularInline):
    model = ProgramCourse
    extra = 0


@admin.register(TrainingProgram)
class TrainingProgramAdmin(admin.ModelAdmin):
    list_display = ('name', 'is_active', 'created_at')
    list_filter = ('is_active',)
    inlines = [ProgramCourseInline]


@admin.register(ModuleVersion)
class ModuleVersionAdmin(admin.ModelAdmin):
    list_display = ('module', 'version', 'created_by', 'created_at')


admin.site.register(Tag)
admin.site.register(ProgramEnrollment)
