"""
Appointment requests and their status workflow.

Two kinds of appointment share one table: screening appointments booked
with a healthcare worker and consultations booked with a doctor.  Every
status change goes through :func:`update_appointment_status`, which checks
the transition table and writes an :class:`AppointmentTransition` row.
"""
from typing import Optional, Any, Dict, List, Iterable, Union

import structlog
from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from core.exceptions import InvalidTransition
from core.models import Appointment, AppointmentTransition, Notification, Patient
from core.services.audit import log_action
from core.services.notifications import create_notification

User = get_user_model()
logger = structlog.get_logger(__name__)

A = Appointment
TRANSITIONS = {
    A.STATUS_PENDING: [A.STATUS_ACCEPTED, A.STATUS_RESCHEDULED, A.STATUS_DECLINED, A.STATUS_CANCELLED],
    A.STATUS_ACCEPTED: [A.STATUS_RESCHEDULED, A.STATUS_COMPLETED, A.STATUS_CANCELLED],
    A.STATUS_RESCHEDULED: [A.STATUS_ACCEPTED, A.STATUS_COMPLETED, A.STATUS_CANCELLED],
    A.STATUS_COMPLETED: [],
    A.STATUS_DECLINED: [],
    A.STATUS_CANCELLED: [],
}

DOCTOR_RESPONSES = {
    A.STATUS_ACCEPTED: ('Appointment Accepted', 'Your appointment request has been accepted.'),
    A.STATUS_DECLINED: ('Appointment Declined', 'Your appointment request has been declined.'),
    A.STATUS_COMPLETED: ('Appointment Completed', 'Your appointment has been marked as completed.'),
}


def can_transition(current: str, new: str) -> bool:
    """Return True if an appointment may move from ``current`` to ``new``."""
    return new in TRANSITIONS.get(current, [])


def _local(dt):
    return timezone.localtime(dt) if timezone.is_aware(dt) else dt


def long_date(dt) -> str:
    dt = _local(dt)
    return f"{dt:%A}, {dt:%B} {dt.day}, {dt.year}"


def short_date(dt) -> str:
    dt = _local(dt)
    return f"{dt:%b} {dt.day}, {dt.year}"


def numeric_date(dt) -> str:
    dt = _local(dt)
    return f"{dt.month}/{dt.day}/{dt.year}"


def format_appointment(a: Appointment) -> Dict[str, Any]:
    return {
        'id': a.id,
        'type': a.type,
        'patientId': a.patient_id,
        'patientName': a.patient_name or (a.patient.name if a.patient_id else ''),
        'healthcareWorkerId': a.healthcare_worker_id,
        'doctorId': a.doctor_id,
        'providerName': a.provider_name,
        'requestedDate': a.requested_date.isoformat() if a.requested_date else None,
        'appointmentTime': a.appointment_time,
        'rescheduledDate': a.rescheduled_date.isoformat() if a.rescheduled_date else None,
        'status': a.status,
        'notes': a.notes,
        'doctorMessage': a.doctor_message,
        'completedAt': a.completed_at.isoformat() if a.completed_at else None,
        'createdAt': a.created_at.isoformat() if a.created_at else None,
        'updatedAt': a.updated_at.isoformat() if a.updated_at else None,
    }


def format_transition(t: AppointmentTransition) -> Dict[str, Any]:
    return {
        'from': t.from_status,
        'to': t.to_status,
        'operator': t.operator.display_name if t.operator_id else '',
        'timestamp': t.timestamp.isoformat(),
        'reason': t.reason,
    }


def _base_qs():
    return Appointment.objects.select_related('patient', 'healthcare_worker', 'doctor')


def _audit(user, action: str, appointment: Appointment, **detail) -> None:
    try:
        log_action(user=user, action=action, object_type='appointment', object_id=appointment.id, detail=detail)
    except Exception as e:
        logger.warning('audit_failed', action=action, error=str(e))


def create_appointment_notification(recipient: Optional[User], title: str, message: str,
                                    appointment: Appointment) -> Optional[Notification]:
    return create_notification(
        recipient, type=Notification.TYPE_APPOINTMENT, title=title, message=message,
        data={'appointmentId': appointment.id},
    )


def _notify_patient(appointment: Appointment, *, type: str, title: str, message: str) -> None:
    patient = appointment.patient
    if not patient.user_id:
        logger.warning('appointment_patient_not_linked', appointment_id=appointment.id, patient_id=patient.id)
        return
    create_notification(patient.user, type=type, title=title, message=message,
                        data={'appointmentId': appointment.id})


@transaction.atomic
def create_appointment(*, patient: Patient, healthcare_worker: User, requested_date, appointment_time: str = '',
                       notes: str = '', requested_by: Optional[User] = None) -> Appointment:
    """Book a screening appointment with a healthcare worker."""
    if healthcare_worker.role != User.ROLE_HCW:
        raise ValueError('Selected provider is not a healthcare worker')
    appointment = Appointment.objects.create(
        patient=patient, patient_name=patient.name, healthcare_worker=healthcare_worker,
        type=Appointment.TYPE_SCREENING, requested_date=requested_date,
        appointment_time=appointment_time or '', notes=notes or '', status=Appointment.STATUS_PENDING,
    )
    AppointmentTransition.objects.create(
        appointment=appointment, from_status=None, to_status=appointment.status,
        operator=requested_by, reason='requested',
    )
    logger.info('appointment_created', appointment_id=appointment.id, type=appointment.type,
                patient_id=patient.id, hcw_id=healthcare_worker.id)
    create_appointment_notification(
        healthcare_worker,
        'New Appointment Request',
        f'{patient.name or "A patient"} has requested an appointment on '
        f'{long_date(requested_date)} at {appointment_time}',
        appointment,
    )
    _audit(requested_by, 'appointment_request', appointment, type=appointment.type)
    return appointment


@transaction.atomic
def create_doctor_appointment(*, patient: Patient, doctor: User, requested_date, appointment_time: str = '',
                              notes: str = '', requested_by: Optional[User] = None) -> Appointment:
    """Book a consultation with a doctor."""
    if doctor.role != User.ROLE_DOCTOR:
        raise ValueError('Selected provider is not a doctor')
    appointment = Appointment.objects.create(
        patient=patient, patient_name=patient.name, doctor=doctor,
        type=Appointment.TYPE_DOCTOR, requested_date=requested_date,
        appointment_time=appointment_time or '', notes=notes or '', status=Appointment.STATUS_PENDING,
    )
    AppointmentTransition.objects.create(
        appointment=appointment, from_status=None, to_status=appointment.status,
        operator=requested_by, reason='requested',
    )
    logger.info('appointment_created', appointment_id=appointment.id, type=appointment.type,
                patient_id=patient.id, doctor_id=doctor.id)
    create_notification(
        doctor,
        type=Notification.TYPE_APPOINTMENT_REQUEST,
        title='New Appointment Request',
        message=f'Patient {patient.name} has requested an appointment.',
        data={'appointmentId': appointment.id},
    )
    _notify_patient(
        appointment,
        type=Notification.TYPE_APPOINTMENT_UPDATE,
        title='Appointment Requested',
        message='Your appointment request with a doctor has been submitted.',
    )
    _audit(requested_by, 'appointment_request', appointment, type=appointment.type)
    return appointment


def get_appointment(appointment_id: int) -> Appointment:
    return _base_qs().get(id=appointment_id)


def _status_filter(qs, status: Union[str, Iterable[str], None]):
    if not status:
        return qs
    if isinstance(status, str):
        return qs.filter(status=status)
    return qs.filter(status__in=list(status))


def get_healthcare_worker_appointments(hcw: User, status: Union[str, Iterable[str], None] = None,
                                       limit: Optional[int] = None) -> List[Appointment]:
    qs = _status_filter(_base_qs().filter(healthcare_worker=hcw), status).order_by('-requested_date', '-id')
    if limit:
        qs = qs[:limit]
    return list(qs)


def get_doctor_appointments(doctor: User, status: Union[str, Iterable[str], None] = None) -> List[Appointment]:
    qs = _base_qs().filter(doctor=doctor, type=Appointment.TYPE_DOCTOR)
    return list(_status_filter(qs, status).order_by('-requested_date', '-id'))


def get_patient_appointments(patient: Patient) -> List[Appointment]:
    return list(_base_qs().filter(patient=patient).order_by('-requested_date', '-id'))


def list_appointments_for(user: User, status: Union[str, Iterable[str], None] = None,
                          limit: Optional[int] = None) -> List[Appointment]:
    if user.role == User.ROLE_HCW:
        return get_healthcare_worker_appointments(user, status, limit)
    if user.role == User.ROLE_DOCTOR:
        items = get_doctor_appointments(user, status)
    else:
        qs = _base_qs().filter(patient__user=user)
        items = list(_status_filter(qs, status).order_by('-requested_date', '-id'))
    return items[:limit] if limit else items


def check_appointment_access(user: User, appointment: Appointment) -> None:
    if appointment.healthcare_worker_id == user.id or appointment.doctor_id == user.id:
        return
    if appointment.patient.user_id and appointment.patient.user_id == user.id:
        return
    raise PermissionError('You do not have access to this appointment')


def check_provider(user: User, appointment: Appointment) -> None:
    """Only the booked provider may accept, reschedule, decline or complete."""
    if appointment.type == Appointment.TYPE_DOCTOR:
        allowed = appointment.doctor_id == user.id
    else:
        allowed = appointment.healthcare_worker_id == user.id
    if not allowed:
        raise PermissionError('Only the assigned provider can update this appointment')


@transaction.atomic
def update_appointment_status(appointment: Appointment, status: str, operator: Optional[User],
                              reason: str = '', **extra) -> Appointment:
    """Move ``appointment`` to ``status`` and record the transition.

    ``extra`` holds model fields to store alongside the status, e.g.
    ``rescheduled_date`` or ``doctor_message``.
    """
    locked = Appointment.objects.select_for_update().get(id=appointment.id)
    if not can_transition(locked.status, status):
        raise InvalidTransition(locked.status, status)
    old_status = locked.status
    locked.status = status
    for field, value in extra.items():
        setattr(locked, field, value)
    if status == Appointment.STATUS_COMPLETED:
        locked.completed_at = timezone.now()
    locked.save()
    AppointmentTransition.objects.create(
        appointment=locked, from_status=old_status, to_status=status,
        operator=operator, reason=reason or 'status update',
    )
    logger.info('appointment_status_changed', appointment_id=locked.id, from_status=old_status,
                to_status=status, operator_id=getattr(operator, 'id', None))
    _audit(operator, 'appointment_status', locked, **{'from': old_status, 'to': status})
    # callers keep using the instance they passed in
    appointment.refresh_from_db()
    return appointment


def accept_appointment(appointment: Appointment, operator: User) -> Appointment:
    check_provider(operator, appointment)
    appointment = update_appointment_status(appointment, Appointment.STATUS_ACCEPTED, operator, reason='accepted')
    when = short_date(appointment.requested_date) if appointment.requested_date else 'your scheduled date'
    _notify_patient(
        appointment,
        type=Notification.TYPE_APPOINTMENT_UPDATE,
        title='Appointment Accepted',
        message=f'Your appointment for {when} with {operator.display_name} has been accepted.',
    )
    return appointment


def reschedule_appointment(appointment: Appointment, operator: User, rescheduled_date,
                           appointment_time: str) -> Appointment:
    check_provider(operator, appointment)
    appointment = update_appointment_status(
        appointment, Appointment.STATUS_RESCHEDULED, operator, reason='rescheduled',
        rescheduled_date=rescheduled_date, appointment_time=appointment_time or '',
    )
    _notify_patient(
        appointment,
        type=Notification.TYPE_APPOINTMENT_UPDATE,
        title='Appointment Rescheduled',
        message=(
            f'Your appointment with {operator.display_name} has been rescheduled to '
            f'{numeric_date(rescheduled_date)} at {appointment_time}.'
        ),
    )
    return appointment


def respond_to_doctor_appointment(appointment: Appointment, operator: User, status: str,
                                  message: str = '') -> Appointment:
    """Doctor accepts, declines or completes a consultation with an optional note."""
    if status not in DOCTOR_RESPONSES:
        raise ValueError(f'Invalid response status: {status}')
    check_provider(operator, appointment)
    message = (message or '').strip()
    appointment = update_appointment_status(
        appointment, status, operator, reason=status.lower(), doctor_message=message,
    )
    title, text = DOCTOR_RESPONSES[status]
    if message:
        text = f'{text} Message: {message}'
    if appointment.patient.user_id:
        create_appointment_notification(appointment.patient.user, title, text, appointment)
    else:
        logger.warning('appointment_patient_not_linked', appointment_id=appointment.id,
                       patient_id=appointment.patient_id)
    return appointment


def complete_appointment(appointment: Appointment, operator: User, message: str = '') -> Appointment:
    return respond_to_doctor_appointment(appointment, operator, Appointment.STATUS_COMPLETED, message)


def decline_appointment(appointment: Appointment, operator: User, message: str = '') -> Appointment:
    return respond_to_doctor_appointment(appointment, operator, Appointment.STATUS_DECLINED, message)


def cancel_appointment(appointment: Appointment, user: User, reason: str = '') -> Appointment:
    """Patients may cancel their own appointments while still open."""
    if appointment.patient.user_id != user.id:
        raise PermissionError('Only the patient can cancel this appointment')
    appointment = update_appointment_status(
        appointment, Appointment.STATUS_CANCELLED, user, reason=reason or 'cancelled by patient',
    )
    provider = appointment.doctor if appointment.type == Appointment.TYPE_DOCTOR else appointment.healthcare_worker
    if provider is not None:
        create_appointment_notification(
            provider,
            'Appointment Cancelled',
            f'{appointment.patient_name or "A patient"} has cancelled the appointment on '
            f'{short_date(appointment.requested_date)}.',
            appointment,
        )
    return appointment
