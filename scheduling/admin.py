"""
Django admin registrations for the scheduling models.

Superusers can inspect and correct appointments and the audit trail via
the ``/admin/`` URL.
"""

from django.contrib import admin

from .models import User, Appointment, AuditEvent


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'first_name', 'last_name', 'role', 'is_staff', 'is_superuser')
    list_filter = ('role',)
    search_fields = ('username', 'first_name', 'last_name', 'email')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient_name', 'doctor_name', 'date', 'end_time', 'status', 'version')
    list_filter = ('status', 'type')
    search_fields = ('patient_name', 'doctor_name', 'notes')
    date_hierarchy = 'date'
    readonly_fields = ('version', 'created_at', 'updated_at')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'object_type', 'object_id', 'user', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('object_id', 'user__username')
