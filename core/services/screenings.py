from typing import Optional, Any, Dict, List

import structlog
from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from core.models import Notification, Patient, Screening
from core.services.audit import log_action
from core.services.notifications import create_notification, notify_role

User = get_user_model()
logger = structlog.get_logger(__name__)

REVIEW_RESULTS = (Screening.REVIEW_NORMAL, Screening.REVIEW_ABNORMAL, Screening.REVIEW_PENDING)


def _name(user: Optional[User], fallback: str) -> str:
    return user.display_name if user else fallback


def format_screening(s: Screening) -> Dict[str, Any]:
    patient = s.patient
    if s.healthcare_worker_id:
        hcw_name = _name(s.healthcare_worker, 'Unknown HCW')
    else:
        hcw_name = 'N/A'
    return {
        'id': s.id,
        'patientId': s.patient_id,
        'patientCode': patient.patient_code if patient else None,
        'patientName': patient.name if patient and patient.name else 'Unknown Patient',
        'healthcareWorkerId': s.healthcare_worker_id,
        'healthcareWorkerName': hcw_name,
        'doctorId': s.doctor_id,
        'doctorName': s.doctor.display_name if s.doctor_id else None,
        'imageUrl': s.image_url,
        'adjustedImageUrl': s.adjusted_image_url or None,
        'status': s.status,
        'reviewStatus': s.review_status,
        'doctorComments': s.doctor_comments,
        'reviewedAt': s.reviewed_at.isoformat() if s.reviewed_at else None,
        'createdAt': s.created_at.isoformat() if s.created_at else None,
        'updatedAt': s.updated_at.isoformat() if s.updated_at else None,
    }


def _base_qs():
    return Screening.objects.select_related('patient', 'healthcare_worker', 'doctor')


@transaction.atomic
def create_screening_record(patient: Patient, image_url: str, healthcare_worker: Optional[User],
                            status: str = Screening.STATUS_UPLOADED) -> Screening:
    """Store a new screening and tell the patient and every doctor about it."""
    screening = Screening.objects.create(
        patient=patient, image_url=image_url, healthcare_worker=healthcare_worker, status=status,
    )
    logger.info('screening_created', screening_id=screening.id, patient_id=patient.id,
                hcw_id=getattr(healthcare_worker, 'id', None))
    data = {'screeningId': screening.id, 'patientId': patient.id}
    if patient.user_id:
        create_notification(
            patient.user,
            type=Notification.TYPE_SCREENING_UPLOADED,
            title='New Screening Added',
            message='A new screening image has been uploaded for you and is pending review.',
            data=data,
        )
    else:
        logger.warning('screening_patient_not_linked', screening_id=screening.id, patient_id=patient.id)
    if status == Screening.STATUS_UPLOADED:
        hcw_name = _name(healthcare_worker, 'A Healthcare Worker')
        notify_role(
            User.ROLE_DOCTOR,
            type=Notification.TYPE_SCREENING_UPLOADED,
            title='New Screening Ready for Review',
            message=f'A new screening for {patient.name} has been uploaded by {hcw_name} and is ready for review.',
            data=data,
        )
    try:
        log_action(user=healthcare_worker, action='screening_upload', object_type='screening',
                   object_id=screening.id, detail={'patientId': patient.id})
    except Exception as e:
        logger.warning('audit_failed', action='screening_upload', error=str(e))
    return screening


def get_screening_record(screening_id: int) -> Screening:
    return _base_qs().get(id=screening_id)


def check_screening_access(user: User, screening: Screening) -> None:
    if user.role in (User.ROLE_HCW, User.ROLE_DOCTOR):
        return
    if screening.patient.user_id == user.id:
        return
    raise PermissionError('You do not have access to this screening')


def get_patient_screenings(patient: Patient) -> List[Screening]:
    return list(_base_qs().filter(patient=patient).order_by('-created_at', '-id'))


def get_healthcare_worker_screenings(hcw: User) -> List[Screening]:
    return list(_base_qs().filter(healthcare_worker=hcw).order_by('-created_at', '-id'))


def list_screenings_for(user: User, *, status: Optional[str] = None) -> List[Screening]:
    """Screenings visible to ``user``: own uploads, own records, or everything for doctors."""
    qs = _base_qs()
    if user.role == User.ROLE_HCW:
        qs = qs.filter(healthcare_worker=user)
    elif user.role == User.ROLE_PATIENT:
        qs = qs.filter(patient__user=user)
    if status:
        qs = qs.filter(status=status)
    return list(qs.order_by('-created_at', '-id'))


def update_screening_image(screening: Screening, adjusted_image_url: str) -> Screening:
    screening.adjusted_image_url = adjusted_image_url
    screening.save(update_fields=['adjusted_image_url', 'updated_at'])
    logger.info('screening_image_adjusted', screening_id=screening.id)
    return screening


def _check_result(review_status: str) -> None:
    if review_status not in REVIEW_RESULTS:
        raise ValueError(f'Invalid review status: {review_status}')


def _lock(screening: Screening) -> Screening:
    return Screening.objects.select_for_update().get(id=screening.id)


@transaction.atomic
def update_screening_review(screening: Screening, review_status: str, doctor_comments: str,
                            doctor: User) -> Screening:
    """Record the doctor's review, mark the screening Reviewed and notify."""
    _check_result(review_status)
    screening = _lock(screening)
    if screening.status == Screening.STATUS_REVIEWED:
        raise ValueError('Screening has already been reviewed')
    if screening.status != Screening.STATUS_UPLOADED:
        raise ValueError('Screening is not ready for review')
    screening.review_status = review_status
    screening.doctor_comments = doctor_comments or ''
    screening.doctor = doctor
    screening.status = Screening.STATUS_REVIEWED
    screening.reviewed_at = timezone.now()
    screening.save()
    logger.info('screening_reviewed', screening_id=screening.id, doctor_id=doctor.id, result=review_status)

    patient = screening.patient
    patient_name = patient.name if patient and patient.name else 'the patient'
    data = {'screeningId': screening.id}
    if screening.healthcare_worker_id:
        create_notification(
            screening.healthcare_worker,
            type=Notification.TYPE_SCREENING_REVIEWED,
            title='Review Completed',
            message=f'The screening report for {patient_name} has been reviewed.',
            data=data,
        )
    if patient.user_id:
        create_notification(
            patient.user,
            type=Notification.TYPE_SCREENING_REVIEWED,
            title='Review Completed',
            message='Your screening report has been reviewed by the doctor.',
            data=data,
        )
    try:
        log_action(user=doctor, action='screening_review', object_type='screening',
                   object_id=screening.id, detail={'reviewStatus': review_status})
    except Exception as e:
        logger.warning('audit_failed', action='screening_review', error=str(e))
    return screening


def get_pending_screenings() -> List[Screening]:
    return list(_base_qs().filter(status=Screening.STATUS_UPLOADED).order_by('-created_at', '-id'))


def get_screenings_reviewed_by_doctor(doctor: User) -> List[Screening]:
    return list(
        _base_qs().filter(doctor=doctor, status=Screening.STATUS_REVIEWED).order_by('-updated_at', '-id')
    )


@transaction.atomic
def update_doctor_screening_review_details(screening: Screening, review_status: str,
                                           doctor_comments: str, doctor: User) -> Screening:
    """Revise an existing review.  Only the reviewing doctor may do this."""
    _check_result(review_status)
    screening = _lock(screening)
    if screening.status != Screening.STATUS_REVIEWED:
        raise ValueError('Screening has not been reviewed yet')
    if screening.doctor_id != doctor.id:
        raise PermissionError('Only the reviewing doctor can update this review')
    screening.review_status = review_status
    screening.doctor_comments = doctor_comments or ''
    screening.save(update_fields=['review_status', 'doctor_comments', 'updated_at'])
    logger.info('screening_review_updated', screening_id=screening.id, result=review_status)

    if screening.healthcare_worker_id:
        patient_name = screening.patient.name or 'the patient'
        create_notification(
            screening.healthcare_worker,
            type=Notification.TYPE_SCREENING_UPDATE,
            title='Screening Review Updated',
            message=(
                f'Dr. {doctor.name or "The Doctor"} has updated the review for {patient_name}. '
                f'New status: {review_status}.'
            ),
            data={'screeningId': screening.id},
        )
    return screening
