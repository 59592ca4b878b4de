"""
URL mappings for the CerviHealth API.

This module registers all API endpoints with their corresponding view
functions.  Trailing slashes are deliberately omitted to match the
paths used by the mobile client.
"""
from django.urls import path, include
from .views import appointments
from .views import health
from .views import notifications
from .views import patients
from .views import screenings
from .views import users

# Import auth views from auth_views to avoid circular imports.  The
# TokenAuthentication class resides in core.authentication.
from .auth_views import (
    check_email_view,
    jwt_refresh_view,
    login_view,
    logout_view,
    otp_send_view,
    otp_verify_view,
    password_reset_confirm_view,
    password_reset_view,
    register_view,
)
from .views.dashboard import dashboard


urlpatterns = [
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz),
    # Authentication
    path('api/auth/register', register_view, name='register_view'),
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/logout', logout_view, name='logout_view'),
    path('api/auth/refresh', jwt_refresh_view),
    path('api/auth/otp/send', otp_send_view),
    path('api/auth/otp/verify', otp_verify_view),
    path('api/auth/password-reset', password_reset_view),
    path('api/auth/password-reset/confirm', password_reset_confirm_view),
    path('api/auth/check-email', check_email_view),
    # User profile and provider directories
    path('api/user/profile', users.user_profile),
    path('api/user/profile/update', users.user_profile_update),
    path('api/doctors', users.available_doctors),
    path('api/healthcare-workers', users.available_healthcare_workers),
    # Dashboard
    path('api/dashboard', dashboard),
    # Patients
    path('api/patients', patients.list_patients),
    path('api/patients/options', patients.patient_options),
    path('api/patients/create', patients.create_patient),
    path('api/patients/me', patients.my_patient_record),
    path('api/patients/<int:pk>', patients.patient_detail),
    path('api/patients/<int:pk>/update', patients.update_patient),
    # Screenings
    path('api/screenings', screenings.list_screenings),
    path('api/screenings/upload', screenings.screening_upload),
    path('api/screenings/pending', screenings.pending_screenings),
    path('api/screenings/reviewed', screenings.reviewed_screenings),
    path('api/screenings/<int:pk>', screenings.screening_detail),
    path('api/screenings/<int:pk>/enhance', screenings.screening_enhance),
    path('api/screenings/<int:pk>/review', screenings.screening_review),
    path('api/screenings/<int:pk>/review/update', screenings.screening_review_update),
    # Appointments
    path('api/appointments', appointments.list_appointments),
    path('api/appointments/request', appointments.appointment_request),
    path('api/appointments/doctor-request', appointments.doctor_appointment_request),
    path('api/appointments/<int:pk>', appointments.appointment_detail),
    path('api/appointments/<int:pk>/accept', appointments.appointment_accept),
    path('api/appointments/<int:pk>/reschedule', appointments.appointment_reschedule),
    path('api/appointments/<int:pk>/respond', appointments.appointment_respond),
    path('api/appointments/<int:pk>/complete', appointments.appointment_complete),
    path('api/appointments/<int:pk>/decline', appointments.appointment_decline),
    path('api/appointments/<int:pk>/cancel', appointments.appointment_cancel),
    # Notifications
    path('api/notifications', notifications.list_notifications),
    path('api/notifications/read-all', notifications.notification_read_all),
    path('api/notifications/<int:pk>/read', notifications.notification_read),
]
