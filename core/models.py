"""
Database models for the CerviHealth backend.

These models capture the records shared by patients, healthcare workers
and doctors: user accounts, patient records, cervical screening records,
appointments and in-app notifications.  Field names on the wire are the
camelCase spellings used by the mobile client; see the ``format_*``
helpers in :mod:`core.services`.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Custom user model with a workflow role.

    Users sign in with their email address; ``username`` mirrors the
    email so Django's admin and auth backends keep working.  Patients
    additionally carry the human readable ``patient_code`` of their
    patient record.
    """
    ROLE_PATIENT = 'patient'
    ROLE_HCW = 'healthcare_worker'
    ROLE_DOCTOR = 'doctor'
    ROLE_CHOICES = [
        (ROLE_PATIENT, 'Patient'),
        (ROLE_HCW, 'Healthcare Worker'),
        (ROLE_DOCTOR, 'Doctor'),
    ]
    email = models.EmailField(unique=True)
    name = models.CharField(max_length=255, blank=True)
    phone_number = models.CharField(max_length=32, blank=True)
    photo_url = models.URLField(max_length=1024, blank=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_PATIENT, db_index=True)
    patient_code = models.CharField(max_length=20, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.name or self.email} ({self.role})"

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.username


class Patient(models.Model):
    """A patient record.

    Records are created either when a user registers with the Patient
    role (and are then linked through ``user``) or by a healthcare worker
    registering a patient in the field.  Most medical fields are
    optional and filled in later.
    """
    patient_code = models.CharField(max_length=20, unique=True)
    user = models.OneToOneField(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='patient_record'
    )
    name = models.CharField(max_length=255)
    age = models.PositiveIntegerField(null=True, blank=True)
    phone_number = models.CharField(max_length=32, blank=True)
    email = models.EmailField(blank=True)
    address = models.TextField(blank=True)
    blood_group = models.CharField(max_length=8, blank=True)
    menstrual_status = models.CharField(max_length=64, blank=True)
    symptoms = models.JSONField(default=list, blank=True)
    medical_history = models.TextField(blank=True)
    registered_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='registered_patients'
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.name} ({self.patient_code})"


class Screening(models.Model):
    STATUS_PENDING = 'Pending'
    STATUS_UPLOADED = 'Uploaded'
    STATUS_REVIEWED = 'Reviewed'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_UPLOADED, 'Uploaded'),
        (STATUS_REVIEWED, 'Reviewed'),
    ]

    REVIEW_NORMAL = 'Normal'
    REVIEW_ABNORMAL = 'Abnormal'
    REVIEW_PENDING = 'Pending'
    REVIEW_CHOICES = [
        (REVIEW_NORMAL, 'Normal'),
        (REVIEW_ABNORMAL, 'Abnormal'),
        (REVIEW_PENDING, 'Pending'),
    ]

    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='screenings')
    healthcare_worker = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='uploaded_screenings'
    )
    doctor = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='reviewed_screenings'
    )
    image_url = models.URLField(max_length=1024)
    adjusted_image_url = models.URLField(max_length=1024, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_UPLOADED, db_index=True)
    review_status = models.CharField(max_length=16, choices=REVIEW_CHOICES, default=REVIEW_PENDING)
    doctor_comments = models.TextField(blank=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['patient', 'created_at'], name='screening_patient_created'),
            models.Index(fields=['doctor', 'status', 'updated_at'], name='screening_doctor_status'),
            models.Index(fields=['healthcare_worker', 'created_at'], name='screening_hcw_created'),
        ]

    def __str__(self) -> str:
        return f"screening {self.id} p={self.patient_id} ({self.status})"


class Appointment(models.Model):
    TYPE_SCREENING = 'screening'
    TYPE_DOCTOR = 'doctor'
    TYPE_CHOICES = ((TYPE_SCREENING, 'screening'), (TYPE_DOCTOR, 'doctor'))

    STATUS_PENDING = 'Pending'
    STATUS_ACCEPTED = 'Accepted'
    STATUS_RESCHEDULED = 'Rescheduled'
    STATUS_COMPLETED = 'Completed'
    STATUS_CANCELLED = 'Cancelled'
    STATUS_DECLINED = 'Declined'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_RESCHEDULED, 'Rescheduled'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_DECLINED, 'Declined'),
    ]

    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='appointments')
    patient_name = models.CharField(max_length=255, blank=True)
    healthcare_worker = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='hcw_appointments'
    )
    doctor = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='doctor_appointments'
    )
    type = models.CharField(max_length=16, choices=TYPE_CHOICES, default=TYPE_SCREENING)
    requested_date = models.DateTimeField()
    appointment_time = models.CharField(max_length=32, blank=True)
    rescheduled_date = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    notes = models.TextField(blank=True)
    doctor_message = models.TextField(blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['healthcare_worker', 'status', 'requested_date'], name='appt_hcw_status_date'),
            models.Index(fields=['doctor', 'type', 'status', 'requested_date'], name='appt_doctor_status_date'),
            models.Index(fields=['patient', 'requested_date'], name='appt_patient_date'),
        ]

    def __str__(self) -> str:
        return f"appointment {self.id} p={self.patient_id} {self.type} ({self.status})"

    @property
    def provider_name(self) -> str:
        if self.type == self.TYPE_DOCTOR:
            return self.doctor.display_name if self.doctor_id else 'Unknown Doctor'
        return self.healthcare_worker.display_name if self.healthcare_worker_id else 'Unknown HCW'


class AppointmentTransition(models.Model):
    """Records a status transition for an appointment."""
    appointment = models.ForeignKey(Appointment, related_name='transitions', on_delete=models.CASCADE)
    from_status = models.CharField(max_length=16, null=True, blank=True)
    to_status = models.CharField(max_length=16)
    operator = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='appointment_transitions'
    )
    timestamp = models.DateTimeField(auto_now_add=True)
    reason = models.CharField(max_length=255, blank=True)

    def __str__(self) -> str:
        return f"{self.appointment_id}: {self.from_status} → {self.to_status}"


class Notification(models.Model):
    TYPE_APPOINTMENT = 'appointment'
    TYPE_SCREENING = 'screening'
    TYPE_SYSTEM = 'system'
    TYPE_APPOINTMENT_REQUEST = 'APPOINTMENT_REQUEST'
    TYPE_APPOINTMENT_UPDATE = 'APPOINTMENT_UPDATE'
    TYPE_SCREENING_UPLOADED = 'SCREENING_UPLOADED'
    TYPE_SCREENING_UPDATE = 'SCREENING_UPDATE'
    TYPE_SCREENING_REVIEWED = 'SCREENING_REVIEWED'
    TYPE_CHOICES = [
        (TYPE_APPOINTMENT, 'appointment'),
        (TYPE_SCREENING, 'screening'),
        (TYPE_SYSTEM, 'system'),
        (TYPE_APPOINTMENT_REQUEST, 'APPOINTMENT_REQUEST'),
        (TYPE_APPOINTMENT_UPDATE, 'APPOINTMENT_UPDATE'),
        (TYPE_SCREENING_UPLOADED, 'SCREENING_UPLOADED'),
        (TYPE_SCREENING_UPDATE, 'SCREENING_UPDATE'),
        (TYPE_SCREENING_REVIEWED, 'SCREENING_REVIEWED'),
    ]

    recipient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='notifications')
    type = models.CharField(max_length=32, choices=TYPE_CHOICES, default=TYPE_SYSTEM)
    title = models.CharField(max_length=255)
    message = models.TextField()
    data = models.JSONField(default=dict, blank=True)
    read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['recipient', 'created_at'], name='notif_recipient_created'),
            models.Index(fields=['recipient', 'read'], name='notif_recipient_read'),
        ]

    def __str__(self) -> str:
        return f"notif {self.id} to={self.recipient_id} {self.type}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.IntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_created'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_created'),
        ]
