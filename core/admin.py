"""
Django admin registrations for the core models.

Lets superusers inspect patients, screenings, appointments and
notifications via the ``/admin/`` URL during support work.
"""

from django.contrib import admin

from .models import (
    User,
    Patient,
    Screening,
    Appointment,
    AppointmentTransition,
    Notification,
    AuditEvent,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('email', 'name', 'role', 'phone_number', 'is_staff', 'is_superuser')
    list_filter = ('role', 'is_staff')
    search_fields = ('email', 'name', 'phone_number')


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('patient_code', 'name', 'age', 'phone_number', 'registered_by', 'created_at')
    search_fields = ('patient_code', 'name', 'phone_number', 'email')


@admin.register(Screening)
class ScreeningAdmin(admin.ModelAdmin):
    list_display = ('id', 'patient', 'healthcare_worker', 'doctor', 'status', 'review_status', 'created_at')
    list_filter = ('status', 'review_status')
    search_fields = ('patient__name', 'patient__patient_code')


class AppointmentTransitionInline(admin.TabularInline):
    model = AppointmentTransition
    extra = 0
    readonly_fields = ('from_status', 'to_status', 'operator', 'reason', 'timestamp')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'type', 'patient', 'healthcare_worker', 'doctor', 'requested_date', 'status')
    list_filter = ('type', 'status')
    search_fields = ('patient__name', 'patient__patient_code')
    inlines = [AppointmentTransitionInline]


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('id', 'recipient', 'type', 'title', 'read', 'created_at')
    list_filter = ('type', 'read')
    search_fields = ('title', 'recipient__email')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'user', 'action', 'object_type', 'object_id')
    list_filter = ('action', 'object_type')
    readonly_fields = ('created_at', 'user', 'action', 'object_type', 'object_id', 'detail')
