from datetime import datetime, timedelta, timezone as dt_timezone

import pytest
from django.utils import timezone

from core.exceptions import InvalidTransition
from core.models import Appointment, AppointmentTransition, Notification, User
from core.services import appointments as svc

pytestmark = pytest.mark.django_db


def _when(days=3):
    return timezone.now() + timedelta(days=days)


@pytest.fixture
def screening_appt(patient, hcw):
    return svc.create_appointment(
        patient=patient, healthcare_worker=hcw, requested_date=_when(),
        appointment_time='10:30 AM', notes='First visit', requested_by=patient.user,
    )


@pytest.fixture
def doctor_appt(patient, doctor):
    return svc.create_doctor_appointment(
        patient=patient, doctor=doctor, requested_date=_when(), appointment_time='02:00 PM',
        requested_by=patient.user,
    )


def test_transition_table():
    A = Appointment
    assert svc.can_transition(A.STATUS_PENDING, A.STATUS_ACCEPTED)
    assert svc.can_transition(A.STATUS_ACCEPTED, A.STATUS_COMPLETED)
    assert svc.can_transition(A.STATUS_RESCHEDULED, A.STATUS_ACCEPTED)
    assert not svc.can_transition(A.STATUS_PENDING, A.STATUS_COMPLETED)
    for terminal in (A.STATUS_COMPLETED, A.STATUS_DECLINED, A.STATUS_CANCELLED):
        assert not svc.can_transition(terminal, A.STATUS_ACCEPTED)
        assert not svc.can_transition(terminal, A.STATUS_PENDING)


def test_date_formats():
    dt = datetime(2026, 1, 5, 10, 0)
    assert svc.long_date(dt) == 'Monday, January 5, 2026'
    assert svc.short_date(dt) == 'Jan 5, 2026'
    assert svc.numeric_date(dt) == '1/5/2026'


def test_request_notifies_healthcare_worker(screening_appt, hcw):
    assert screening_appt.status == Appointment.STATUS_PENDING
    assert screening_appt.patient_name == 'Asha Devi'
    first = screening_appt.transitions.get()
    assert first.from_status is None and first.to_status == Appointment.STATUS_PENDING

    n = Notification.objects.get(recipient=hcw)
    assert n.type == Notification.TYPE_APPOINTMENT
    assert n.title == 'New Appointment Request'
    assert svc.long_date(screening_appt.requested_date) in n.message
    assert n.message.endswith('at 10:30 AM')
    assert n.data == {'appointmentId': screening_appt.id}


def test_request_requires_healthcare_worker(patient, doctor):
    with pytest.raises(ValueError):
        svc.create_appointment(patient=patient, healthcare_worker=doctor, requested_date=_when())


def test_accept_then_complete(screening_appt, hcw, patient_user):
    svc.accept_appointment(screening_appt, hcw)
    assert screening_appt.status == Appointment.STATUS_ACCEPTED
    accepted = Notification.objects.get(recipient=patient_user, title='Appointment Accepted')
    assert accepted.type == Notification.TYPE_APPOINTMENT_UPDATE
    assert 'Sunita Kale' in accepted.message

    svc.complete_appointment(screening_appt, hcw)
    screening_appt.refresh_from_db()
    assert screening_appt.status == Appointment.STATUS_COMPLETED
    assert screening_appt.completed_at is not None
    history = list(screening_appt.transitions.order_by('id').values_list('to_status', flat=True))
    assert history == ['Pending', 'Accepted', 'Completed']


def test_only_assigned_provider_may_act(screening_appt, make_user):
    stranger = make_user('other-hcw@example.com', User.ROLE_HCW)
    with pytest.raises(PermissionError):
        svc.accept_appointment(screening_appt, stranger)
    screening_appt.refresh_from_db()
    assert screening_appt.status == Appointment.STATUS_PENDING


def test_invalid_transition_leaves_status_unchanged(screening_appt, hcw):
    with pytest.raises(InvalidTransition) as exc:
        svc.complete_appointment(screening_appt, hcw)
    assert exc.value.current == Appointment.STATUS_PENDING
    screening_appt.refresh_from_db()
    assert screening_appt.status == Appointment.STATUS_PENDING
    assert screening_appt.transitions.count() == 1


def test_reschedule_stores_new_date(screening_appt, hcw, patient_user):
    new_date = datetime(2026, 3, 5, 6, 0, tzinfo=dt_timezone.utc)
    svc.reschedule_appointment(screening_appt, hcw, new_date, '11:00 AM')
    screening_appt.refresh_from_db()
    assert screening_appt.status == Appointment.STATUS_RESCHEDULED
    assert screening_appt.rescheduled_date == new_date
    assert screening_appt.appointment_time == '11:00 AM'
    n = Notification.objects.get(recipient=patient_user, title='Appointment Rescheduled')
    assert f'rescheduled to {svc.numeric_date(new_date)} at 11:00 AM' in n.message


def test_doctor_request_notifies_both_sides(doctor_appt, doctor, patient_user):
    assert doctor_appt.type == Appointment.TYPE_DOCTOR
    req = Notification.objects.get(recipient=doctor)
    assert req.type == Notification.TYPE_APPOINTMENT_REQUEST
    assert req.message == 'Patient Asha Devi has requested an appointment.'
    ack = Notification.objects.get(recipient=patient_user)
    assert ack.type == Notification.TYPE_APPOINTMENT_UPDATE


def test_doctor_response_carries_message(doctor_appt, doctor, patient_user):
    svc.respond_to_doctor_appointment(doctor_appt, doctor, Appointment.STATUS_ACCEPTED, ' Bring old reports ')
    assert doctor_appt.doctor_message == 'Bring old reports'
    n = Notification.objects.get(recipient=patient_user, title='Appointment Accepted')
    assert n.message == 'Your appointment request has been accepted. Message: Bring old reports'


def test_doctor_response_rejects_unknown_status(doctor_appt, doctor):
    with pytest.raises(ValueError):
        svc.respond_to_doctor_appointment(doctor_appt, doctor, Appointment.STATUS_RESCHEDULED)


def test_patient_cancel_notifies_provider(screening_appt, hcw, patient_user):
    svc.cancel_appointment(screening_appt, patient_user, reason='Travelling')
    assert screening_appt.status == Appointment.STATUS_CANCELLED
    last = AppointmentTransition.objects.filter(appointment=screening_appt).order_by('-id').first()
    assert last.reason == 'Travelling'
    assert last.operator == patient_user
    assert Notification.objects.filter(recipient=hcw, title='Appointment Cancelled').exists()
    # cancelled is terminal
    with pytest.raises(InvalidTransition):
        svc.accept_appointment(screening_appt, hcw)


def test_provider_cannot_cancel(screening_appt, hcw):
    with pytest.raises(PermissionError):
        svc.cancel_appointment(screening_appt, hcw)


def test_listing_by_role_and_status(screening_appt, doctor_appt, hcw, doctor, patient_user):
    svc.accept_appointment(screening_appt, hcw)
    assert [a.id for a in svc.list_appointments_for(hcw)] == [screening_appt.id]
    assert [a.id for a in svc.list_appointments_for(doctor)] == [doctor_appt.id]
    assert len(svc.list_appointments_for(patient_user)) == 2
    assert svc.get_healthcare_worker_appointments(hcw, Appointment.STATUS_PENDING) == []
    accepted = svc.get_healthcare_worker_appointments(hcw, [Appointment.STATUS_ACCEPTED, Appointment.STATUS_PENDING])
    assert [a.id for a in accepted] == [screening_appt.id]
    assert len(svc.list_appointments_for(patient_user, limit=1)) == 1
    assert len(svc.get_patient_appointments(patient_user.patient_record)) == 2


class TestAppointmentEndpoints:
    def test_patient_books_and_provider_accepts(self, patient_user, hcw, client_for):
        r = client_for(patient_user).post('/api/appointments/request', {
            'healthcareWorkerId': hcw.id,
            'requestedDate': _when().isoformat(),
            'appointmentTime': '09:00 AM',
            'notes': 'Follow-up',
        }, format='json')
        assert r.status_code == 201
        appt_id = r.data['id']

        provider = client_for(hcw)
        r = provider.post(f'/api/appointments/{appt_id}/accept')
        assert r.status_code == 200
        assert r.data['newStatus'] == 'Accepted'

        # accepting twice is not a valid transition
        r = provider.post(f'/api/appointments/{appt_id}/accept')
        assert r.status_code == 400
        assert 'Cannot change appointment status' in r.data['detail']

        r = client_for(patient_user).get(f'/api/appointments/{appt_id}')
        assert r.status_code == 200
        assert [t['to'] for t in r.data['appointment']['transitionHistory']] == ['Pending', 'Accepted']
        assert r.data['appointment']['providerName'] == 'Sunita Kale'

    def test_request_without_provider_is_rejected(self, patient_user, client_for):
        r = client_for(patient_user).post('/api/appointments/request', {
            'requestedDate': _when().isoformat(),
        }, format='json')
        assert r.status_code == 400

    def test_doctor_request_and_respond(self, patient_user, doctor, client_for):
        r = client_for(patient_user).post('/api/appointments/doctor-request', {
            'doctorId': doctor.id, 'requestedDate': _when().isoformat(), 'appointmentTime': '03:00 PM',
        }, format='json')
        assert r.status_code == 201
        appt_id = r.data['id']

        r = client_for(doctor).post(f'/api/appointments/{appt_id}/respond',
                                    {'status': 'Declined', 'message': 'On leave'}, format='json')
        assert r.status_code == 200
        assert r.data['appointment']['doctorMessage'] == 'On leave'

        r = client_for(doctor).post(f'/api/appointments/{appt_id}/respond', {'status': 'Pending'}, format='json')
        assert r.status_code == 400

    def test_status_filter_accepts_comma_list(self, screening_appt, hcw, client_for):
        client = client_for(hcw)
        r = client.get('/api/appointments', {'status': 'Pending,Accepted'})
        assert r.status_code == 200
        assert [a['id'] for a in r.data['data']] == [screening_appt.id]
        r = client.get('/api/appointments', {'status': 'Accepted'})
        assert r.data['data'] == []
        r = client.get('/api/appointments', {'status': 'Bogus'})
        assert r.status_code == 400

    def test_reschedule_and_cancel_endpoints(self, screening_appt, hcw, patient_user, client_for):
        r = client_for(hcw).post(f'/api/appointments/{screening_appt.id}/reschedule', {
            'rescheduledDate': _when(7).isoformat(), 'appointmentTime': '04:00 PM',
        }, format='json')
        assert r.status_code == 200
        assert r.data['newStatus'] == 'Rescheduled'

        r = client_for(hcw).post(f'/api/appointments/{screening_appt.id}/cancel')
        assert r.status_code == 403

        r = client_for(patient_user).post(f'/api/appointments/{screening_appt.id}/cancel',
                                          {'reason': 'Feeling better'}, format='json')
        assert r.status_code == 200
        assert r.data['newStatus'] == 'Cancelled'

    def test_cancel_reason_is_sanitised(self, screening_appt, patient_user, client_for):
        r = client_for(patient_user).post(f'/api/appointments/{screening_appt.id}/cancel',
                                          {'reason': '<b>Travelling</b>'}, format='json')
        assert r.status_code == 200
        last = screening_appt.transitions.order_by('-id').first()
        assert last.reason == 'Travelling'
