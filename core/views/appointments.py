"""
Appointment endpoints.

Patients request screening appointments with a healthcare worker or
consultations with a doctor.  The booked provider accepts, reschedules,
declines or completes them; the patient may cancel.  Invalid status
changes (e.g. accepting a cancelled appointment) are rejected with 400.
"""
from __future__ import annotations

from django.contrib.auth import get_user_model
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status

from core.models import Appointment, Patient
from core.serializers.appointment import (
    AppointmentListQuerySerializer,
    AppointmentRequestSerializer,
    MessageSerializer,
    RescheduleSerializer,
    RespondSerializer,
)
from core.services import appointments as svc
from core.services.patients import get_patient_by_user
from ..permissions import IsPatientRole

User = get_user_model()


def _resolve_patient(request, patient_id):
    """Patients book for themselves; staff must name the patient."""
    user = request.user
    if user.role == User.ROLE_PATIENT:
        return get_patient_by_user(user)
    if patient_id:
        return Patient.objects.filter(id=patient_id).first()
    return None


def _load(request, pk):
    try:
        appointment = svc.get_appointment(pk)
    except Appointment.DoesNotExist:
        return None, Response({'ok': False, 'detail': 'Appointment not found'}, status=status.HTTP_404_NOT_FOUND)
    try:
        svc.check_appointment_access(request.user, appointment)
    except PermissionError as e:
        return None, Response({'ok': False, 'detail': str(e)}, status=403)
    return appointment, None


def _run(fn, *args, **kwargs):
    """Call a transition helper and map its errors to responses."""
    try:
        appointment = fn(*args, **kwargs)
    except PermissionError as e:
        return Response({'ok': False, 'detail': str(e)}, status=403)
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)
    return Response({'ok': True, 'newStatus': appointment.status, 'appointment': svc.format_appointment(appointment)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def appointment_request(request):
    """Request a screening appointment with a healthcare worker."""
    s = AppointmentRequestSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    patient = _resolve_patient(request, vd.get('patientId'))
    if not patient:
        return Response({'ok': False, 'detail': 'Patient not found'}, status=404)
    hcw = User.objects.filter(id=vd.get('healthcareWorkerId'), role=User.ROLE_HCW).first()
    if not hcw:
        return Response({'ok': False, 'detail': 'Please select a healthcare worker'}, status=400)
    appointment = svc.create_appointment(
        patient=patient, healthcare_worker=hcw, requested_date=vd['requestedDate'],
        appointment_time=vd['appointmentTime'], notes=vd['notes'], requested_by=request.user,
    )
    return Response({'ok': True, 'id': appointment.id, 'appointment': svc.format_appointment(appointment)}, status=201)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def doctor_appointment_request(request):
    """Request a consultation with a doctor."""
    s = AppointmentRequestSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    patient = _resolve_patient(request, vd.get('patientId'))
    if not patient:
        return Response({'ok': False, 'detail': 'Patient not found'}, status=404)
    doctor = User.objects.filter(id=vd.get('doctorId'), role=User.ROLE_DOCTOR).first()
    if not doctor:
        return Response({'ok': False, 'detail': 'Please select a doctor'}, status=400)
    appointment = svc.create_doctor_appointment(
        patient=patient, doctor=doctor, requested_date=vd['requestedDate'],
        appointment_time=vd['appointmentTime'], notes=vd['notes'], requested_by=request.user,
    )
    return Response({'ok': True, 'id': appointment.id, 'appointment': svc.format_appointment(appointment)}, status=201)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def list_appointments(request):
    """Appointments of the signed-in user.  ``status`` may be comma separated."""
    q = AppointmentListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    items = svc.list_appointments_for(request.user, q.validated_data.get('status'), q.validated_data.get('limit'))
    return Response({'ok': True, 'data': [svc.format_appointment(a) for a in items]})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def appointment_detail(request, pk: int):
    appointment, err = _load(request, pk)
    if err:
        return err
    data = svc.format_appointment(appointment)
    data['transitionHistory'] = [
        svc.format_transition(t)
        for t in appointment.transitions.select_related('operator').order_by('timestamp', 'id')
    ]
    return Response({'ok': True, 'appointment': data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def appointment_accept(request, pk: int):
    appointment, err = _load(request, pk)
    if err:
        return err
    return _run(svc.accept_appointment, appointment, request.user)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def appointment_reschedule(request, pk: int):
    appointment, err = _load(request, pk)
    if err:
        return err
    s = RescheduleSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return _run(svc.reschedule_appointment, appointment, request.user,
                s.validated_data['rescheduledDate'], s.validated_data['appointmentTime'])


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def appointment_respond(request, pk: int):
    """Provider response with an optional message to the patient."""
    appointment, err = _load(request, pk)
    if err:
        return err
    s = RespondSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return _run(svc.respond_to_doctor_appointment, appointment, request.user,
                s.validated_data['status'], s.validated_data['message'])


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def appointment_complete(request, pk: int):
    appointment, err = _load(request, pk)
    if err:
        return err
    s = MessageSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return _run(svc.complete_appointment, appointment, request.user, s.validated_data['message'])


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def appointment_decline(request, pk: int):
    appointment, err = _load(request, pk)
    if err:
        return err
    s = MessageSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return _run(svc.decline_appointment, appointment, request.user, s.validated_data['message'])


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPatientRole])
def appointment_cancel(request, pk: int):
    appointment, err = _load(request, pk)
    if err:
        return err
    s = MessageSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return _run(svc.cancel_appointment, appointment, request.user, s.validated_data['reason'])
