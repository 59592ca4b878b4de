"""
Screening endpoints: upload, enhancement, doctor review and listings.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status

from core.exceptions import ImageUploadError
from core.models import Patient, Screening
from core.serializers.screening import (
    EnhanceSerializer,
    ReviewSerializer,
    ScreeningListQuerySerializer,
    ScreeningUploadSerializer,
)
from core.services import cloudinary
from core.services import screenings as svc
from core.services.patients import check_patient_access
from core.throttling import ScreeningUploadThrottle
from ..permissions import IsDoctorRole, IsHealthcareWorkerRole


def _load(request, pk):
    """Return ``(screening, error_response)`` after the access check."""
    try:
        screening = svc.get_screening_record(pk)
    except Screening.DoesNotExist:
        return None, Response({'ok': False, 'detail': 'Screening not found'}, status=status.HTTP_404_NOT_FOUND)
    try:
        svc.check_screening_access(request.user, screening)
    except PermissionError as e:
        return None, Response({'ok': False, 'detail': str(e)}, status=403)
    return screening, None


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsHealthcareWorkerRole])
@throttle_classes([ScreeningUploadThrottle])
def screening_upload(request):
    """Create a screening from an uploaded image file or an existing image URL.

    Multipart requests carry the photo in ``image``; it is sent to the
    image CDN first and the returned URL is stored.
    """
    s = ScreeningUploadSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    patient = Patient.objects.filter(id=vd['patientId']).select_related('user').first()
    if not patient:
        return Response({'ok': False, 'detail': 'Patient not found'}, status=404)

    image = request.FILES.get('image')
    image_url = vd.get('imageUrl')
    if image is not None:
        try:
            image_url = cloudinary.upload_image(image)
        except ValueError as e:
            return Response({'ok': False, 'detail': str(e)}, status=400)
        except ImageUploadError as e:
            return Response({'ok': False, 'detail': str(e)}, status=502)
    if not image_url:
        return Response({'ok': False, 'detail': 'An image file or imageUrl is required'}, status=400)

    screening = svc.create_screening_record(
        patient, image_url, request.user, status=vd.get('status') or Screening.STATUS_UPLOADED,
    )
    return Response({'ok': True, 'id': screening.id, 'screening': svc.format_screening(screening)}, status=201)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def list_screenings(request):
    q = ScreeningListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    patient_id = q.validated_data.get('patientId')
    if patient_id:
        patient = Patient.objects.filter(id=patient_id).first()
        if not patient:
            return Response({'ok': False, 'detail': 'Patient not found'}, status=404)
        try:
            check_patient_access(request.user, patient)
        except PermissionError as e:
            return Response({'ok': False, 'detail': str(e)}, status=403)
        items = svc.get_patient_screenings(patient)
        if q.validated_data.get('status'):
            items = [x for x in items if x.status == q.validated_data['status']]
    else:
        items = svc.list_screenings_for(request.user, status=q.validated_data.get('status'))
    return Response({'ok': True, 'data': [svc.format_screening(x) for x in items]})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def screening_detail(request, pk: int):
    screening, err = _load(request, pk)
    if err:
        return err
    return Response({'ok': True, 'screening': svc.format_screening(screening)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsHealthcareWorkerRole])
def screening_enhance(request, pk: int):
    """Apply brightness/contrast/saturation/sharpness through the CDN URL.

    With ``preview=true`` the adjusted URL is only returned.  Otherwise it
    is saved as the screening's adjusted image; with no adjustments the
    original URL is saved.
    """
    screening, err = _load(request, pk)
    if err:
        return err
    s = EnhanceSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = dict(s.validated_data)
    preview = vd.pop('preview')
    try:
        url = cloudinary.apply_transformations(screening.image_url, **vd)
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)
    if preview:
        return Response({'ok': True, 'previewUrl': url, 'originalUrl': screening.image_url})
    screening = svc.update_screening_image(screening, url)
    return Response({'ok': True, 'adjustedImageUrl': url, 'screening': svc.format_screening(screening)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def screening_review(request, pk: int):
    screening, err = _load(request, pk)
    if err:
        return err
    s = ReviewSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        screening = svc.update_screening_review(
            screening, s.validated_data['reviewStatus'], s.validated_data['doctorComments'], request.user,
        )
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)
    return Response({'ok': True, 'screening': svc.format_screening(screening)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def screening_review_update(request, pk: int):
    screening, err = _load(request, pk)
    if err:
        return err
    s = ReviewSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        screening = svc.update_doctor_screening_review_details(
            screening, s.validated_data['reviewStatus'], s.validated_data['doctorComments'], request.user,
        )
    except PermissionError as e:
        return Response({'ok': False, 'detail': str(e)}, status=403)
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)
    return Response({'ok': True, 'screening': svc.format_screening(screening)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def pending_screenings(request):
    """Uploaded screenings waiting for a doctor, newest first."""
    return Response({'ok': True, 'data': [svc.format_screening(x) for x in svc.get_pending_screenings()]})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def reviewed_screenings(request):
    items = svc.get_screenings_reviewed_by_doctor(request.user)
    return Response({'ok': True, 'data': [svc.format_screening(x) for x in items]})
