"""
Patient record endpoints.

Healthcare workers register patients in the field and, like doctors,
can list and open every record.  Patients can only see and edit their
own record.
"""
from __future__ import annotations

import structlog
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status

from core.models import Patient
from core.serializers.patient import PatientSerializer, PatientUpdateSerializer
from core.services import patients as svc
from core.services.audit import log_action
from ..permissions import IsHealthcareWorkerRole, IsStaffRole

logger = structlog.get_logger(__name__)


def _get_patient_or_404(pk):
    try:
        return svc.get_patient(pk)
    except Patient.DoesNotExist:
        return None


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def list_patients(request):
    """All patient records, newest first."""
    return Response({'ok': True, 'data': [svc.format_patient(p) for p in svc.get_all_patients()]})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def patient_options(request):
    """``{label, value}`` pairs for the patient picker."""
    return Response({'ok': True, 'data': svc.get_all_patient_ids()})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsHealthcareWorkerRole])
def create_patient(request):
    """Register a new patient record (healthcare worker)."""
    s = PatientSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    patient = svc.save_patient(s.to_model_fields(), registered_by=request.user)
    try:
        log_action(user=request.user, action='patient_create', object_type='patient', object_id=patient.id,
                   detail={'patientCode': patient.patient_code})
    except Exception as e:
        logger.warning('audit_failed', action='patient_create', error=str(e))
    return Response({'ok': True, 'id': patient.id, 'patientId': patient.patient_code,
                     'patient': svc.format_patient(patient)}, status=201)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def patient_detail(request, pk: int):
    """One patient record with display fallbacks for empty fields."""
    patient = _get_patient_or_404(pk)
    if not patient:
        return Response({'ok': False, 'detail': 'Patient not found'}, status=status.HTTP_404_NOT_FOUND)
    try:
        svc.check_patient_access(request.user, patient)
    except PermissionError as e:
        return Response({'ok': False, 'detail': str(e)}, status=403)
    if request.query_params.get('raw') in ('1', 'true'):
        return Response({'ok': True, 'patient': svc.format_patient(patient)})
    return Response({'ok': True, 'patient': svc.get_patient_with_defaults(patient)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def update_patient(request, pk: int):
    patient = _get_patient_or_404(pk)
    if not patient:
        return Response({'ok': False, 'detail': 'Patient not found'}, status=status.HTTP_404_NOT_FOUND)
    try:
        svc.check_patient_access(request.user, patient)
    except PermissionError as e:
        return Response({'ok': False, 'detail': str(e)}, status=403)
    s = PatientUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    patient = svc.update_patient(patient, s.to_model_fields())
    try:
        log_action(user=request.user, action='patient_update', object_type='patient', object_id=patient.id,
                   detail={'fields': sorted(s.validated_data.keys())})
    except Exception as e:
        logger.warning('audit_failed', action='patient_update', error=str(e))
    return Response({'ok': True, 'patient': svc.format_patient(patient)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_patient_record(request):
    """The patient record linked to the signed-in account."""
    patient = svc.get_patient_by_user(request.user)
    if not patient:
        return Response({'ok': False, 'detail': 'No patient record for this account'}, status=404)
    return Response({'ok': True, 'patient': svc.get_patient_with_defaults(patient)})
