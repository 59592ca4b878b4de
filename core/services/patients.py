from typing import Optional, Any, Dict, List

import structlog
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone

from core.models import Patient

User = get_user_model()
logger = structlog.get_logger(__name__)

CODE_ATTEMPTS = 5

# model field -> camelCase key used by the mobile client
FIELD_KEYS = {
    'name': 'name',
    'age': 'age',
    'phone_number': 'phoneNumber',
    'email': 'email',
    'address': 'address',
    'blood_group': 'bloodGroup',
    'menstrual_status': 'menstrualStatus',
    'symptoms': 'symptoms',
    'medical_history': 'medicalHistory',
}

DISPLAY_DEFAULTS = {
    'name': 'Unknown',
    'age': 0,
    'phone_number': 'Not provided',
    'email': 'Not provided',
    'address': 'Not provided',
    'blood_group': 'Not specified',
    'menstrual_status': 'Not specified',
    'symptoms': [],
    'medical_history': 'No history provided',
}

BACKFILL_DEFAULTS = {
    'email': 'patient@example.com',
    'address': '123 Main Street, City',
    'blood_group': 'O+',
    'menstrual_status': 'Pre-Menopausal',
    'symptoms': ['None'],
    'medical_history': 'No significant medical history',
}


def generate_patient_code() -> str:
    """Return the next free code of the form ``PT-<year>-<5 digits>``."""
    prefix = f"PT-{timezone.now().year}-"
    last = (
        Patient.objects.filter(patient_code__startswith=prefix)
        .order_by('-patient_code')
        .values_list('patient_code', flat=True)
        .first()
    )
    seq = int(last[len(prefix):]) + 1 if last else 1
    return f"{prefix}{seq:05d}"


def format_patient(p: Patient) -> Dict[str, Any]:
    return {
        'id': p.id,
        'patientId': p.patient_code,
        'userId': p.user_id,
        'name': p.name,
        'age': p.age,
        'phoneNumber': p.phone_number,
        'email': p.email,
        'address': p.address,
        'bloodGroup': p.blood_group,
        'menstrualStatus': p.menstrual_status,
        'symptoms': list(p.symptoms or []),
        'medicalHistory': p.medical_history,
        'registeredBy': p.registered_by_id,
        'createdAt': p.created_at.isoformat() if p.created_at else None,
        'updatedAt': p.updated_at.isoformat() if p.updated_at else None,
    }


def save_patient(data: Dict[str, Any], *, user: Optional[User] = None,
                 registered_by: Optional[User] = None) -> Patient:
    """Create a patient record with a freshly generated patient code.

    ``data`` uses model field names.  A clash on the unique code (two
    registrations racing for the same sequence number) is retried.
    """
    fields = {k: v for k, v in data.items() if k in FIELD_KEYS and v is not None}
    if user is not None and Patient.objects.filter(user=user).exists():
        raise ValueError('This account already has a patient record')
    for attempt in range(CODE_ATTEMPTS):
        code = generate_patient_code()
        try:
            with transaction.atomic():
                patient = Patient.objects.create(
                    patient_code=code, user=user, registered_by=registered_by, **fields
                )
        except IntegrityError:
            if not Patient.objects.filter(patient_code=code).exists():
                raise
            logger.warning('patient_code_clash', patient_code=code, attempt=attempt + 1)
            continue
        logger.info('patient_created', patient_id=patient.id, patient_code=code,
                    registered_by=getattr(registered_by, 'id', None))
        return patient
    raise RuntimeError('Could not allocate a patient code')


def get_patient(patient_id: int) -> Patient:
    return Patient.objects.select_related('user').get(id=patient_id)


def get_all_patients() -> List[Patient]:
    return list(Patient.objects.order_by('-created_at', '-id'))


def get_all_patient_ids() -> List[Dict[str, Any]]:
    """Options for the patient picker: ``{label, value}`` ordered by name."""
    options = []
    for pid, name, code in Patient.objects.order_by('name').values_list('id', 'name', 'patient_code'):
        if not name:
            continue
        options.append({'label': f"{name} - {code or 'No ID'}", 'value': pid})
    return options


def get_patient_by_user(user: User) -> Optional[Patient]:
    if not user or not user.is_authenticated:
        return None
    return Patient.objects.filter(user=user).first()


def check_patient_access(user: User, patient: Patient) -> None:
    if getattr(user, 'role', '') in (User.ROLE_HCW, User.ROLE_DOCTOR):
        return
    if patient.user_id and patient.user_id == user.id:
        return
    raise PermissionError('You do not have access to this patient')


def update_patient(patient: Patient, data: Dict[str, Any]) -> Patient:
    """Apply ``data`` (model field names) to ``patient``.

    Empty values never replace data already on the record.
    """
    changed = []
    for field, value in data.items():
        if field not in FIELD_KEYS:
            continue
        if value in (None, '', []):
            continue
        setattr(patient, field, value)
        changed.append(field)
    patient.save()
    logger.info('patient_updated', patient_id=patient.id, fields=sorted(set(changed)))
    return patient


def get_patient_with_defaults(patient: Patient) -> Dict[str, Any]:
    data = format_patient(patient)
    for field, fallback in DISPLAY_DEFAULTS.items():
        key = FIELD_KEYS[field]
        if not data.get(key):
            data[key] = fallback
    return data


def _missing_fields(patient: Patient) -> List[str]:
    return [f for f in BACKFILL_DEFAULTS if not getattr(patient, f)]


def update_patient_with_missing_fields(patient: Patient, data: Optional[Dict[str, Any]] = None) -> Patient:
    """Fill blank medical fields with placeholder values.

    Values passed in ``data`` win over the placeholders; fields that
    already hold a value are left alone.
    """
    data = dict(data or {})
    update = {}
    for field in _missing_fields(patient):
        update[field] = data.pop(field, None) or BACKFILL_DEFAULTS[field]
    update.update({k: v for k, v in data.items() if v not in (None, '')})
    return update_patient(patient, update)


def update_all_patients_with_missing_fields() -> int:
    updated = 0
    for patient in Patient.objects.order_by('id').iterator():
        if _missing_fields(patient):
            update_patient_with_missing_fields(patient)
            updated += 1
    logger.info('patients_backfilled', updated=updated)
    return updated
