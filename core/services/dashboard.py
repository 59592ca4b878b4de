from typing import Any, Dict

from django.contrib.auth import get_user_model
from django.db.models import Count, Q
from django.db.models.functions import ExtractMonth
from django.utils import timezone

from core.models import Appointment, Screening
from core.services.appointments import format_appointment, get_healthcare_worker_appointments
from core.services.notifications import count_unread
from core.services.patients import get_patient_by_user
from core.services.screenings import format_screening, get_pending_screenings

User = get_user_model()

PENDING_PREVIEW = 5
UPCOMING_PREVIEW = 3


def doctor_dashboard(user: User) -> Dict[str, Any]:
    pending = get_pending_screenings()
    totals = Screening.objects.aggregate(
        total=Count('id'),
        normal=Count('id', filter=Q(review_status=Screening.REVIEW_NORMAL)),
        abnormal=Count('id', filter=Q(review_status=Screening.REVIEW_ABNORMAL)),
    )
    year = timezone.localdate().year
    monthly = [0] * 12
    rows = (
        Screening.objects.filter(created_at__year=year)
        .annotate(month=ExtractMonth('created_at'))
        .values('month')
        .annotate(n=Count('id'))
    )
    for row in rows:
        monthly[row['month'] - 1] = row['n']
    return {
        'role': user.role,
        'pendingCount': len(pending),
        'pendingScreenings': [format_screening(s) for s in pending[:PENDING_PREVIEW]],
        'casesOverview': {
            'total': totals['total'],
            'normal': totals['normal'],
            'abnormal': totals['abnormal'],
        },
        'monthlyScreenings': {'year': year, 'counts': monthly},
        'unreadNotifications': count_unread(user),
    }


def healthcare_worker_dashboard(user: User) -> Dict[str, Any]:
    stats = Screening.objects.filter(healthcare_worker=user).aggregate(
        total=Count('id'),
        completed=Count('id', filter=Q(status__in=[Screening.STATUS_UPLOADED, Screening.STATUS_REVIEWED])),
        pending=Count('id', filter=Q(status=Screening.STATUS_PENDING)),
    )
    upcoming = get_healthcare_worker_appointments(user, Appointment.STATUS_PENDING, UPCOMING_PREVIEW)
    return {
        'role': user.role,
        'stats': stats,
        'pendingAppointments': [format_appointment(a) for a in upcoming],
        'unreadNotifications': count_unread(user),
    }


def patient_dashboard(user: User) -> Dict[str, Any]:
    patient = get_patient_by_user(user)
    reports, last_screening, next_appointment = [], None, None
    if patient is not None:
        screenings = Screening.objects.filter(patient=patient).order_by('-created_at', '-id')
        reports = [
            {
                'id': s.id,
                'date': s.created_at.isoformat(),
                'status': s.review_status or Screening.REVIEW_PENDING,
            }
            for s in screenings
        ]
        if reports:
            last_screening = reports[0]['date']
        upcoming = (
            Appointment.objects.select_related('healthcare_worker', 'doctor')
            .filter(patient=patient, status=Appointment.STATUS_ACCEPTED, requested_date__gte=timezone.now())
            .order_by('requested_date', 'id')
            .first()
        )
        if upcoming is not None:
            next_appointment = format_appointment(upcoming)
    return {
        'role': user.role,
        'patientId': patient.id if patient else None,
        'patientCode': patient.patient_code if patient else None,
        'reports': reports,
        'lastScreeningDate': last_screening,
        'nextAppointment': next_appointment,
        'unreadNotifications': count_unread(user),
    }


def dashboard_for(user: User) -> Dict[str, Any]:
    if user.role == User.ROLE_DOCTOR:
        return doctor_dashboard(user)
    if user.role == User.ROLE_HCW:
        return healthcare_worker_dashboard(user)
    return patient_dashboard(user)
