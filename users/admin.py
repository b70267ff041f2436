from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ('email', 'first_name', 'last_name', 'role', 'status', 'unit', 'badge_no')
    list_filter = ('role', 'status', 'unit')
    search_fields = ('email', 'first_name', 'last_name', 'badge_no', 'qid')
    ordering = ('-date_joined',)
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Service record', {'fields': ('role', 'status', 'qid', 'badge_no', 'rank', 'unit', 'locale', 'phone_number')}),
    )
