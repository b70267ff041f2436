from django.contrib import admin

from .models import Certificate


@admin.register(Certificate)
class CertificateAdmin(admin.ModelAdmin):
    list_display = ('serial', 'user', 'course', 'issued_at', 'expires_at')
    search_fields = ('serial', 'user__email')
    readonly_fields = ('serial', 'qr_code')
