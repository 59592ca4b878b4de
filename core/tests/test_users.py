import pytest
from django.core.management import call_command

from core.models import Patient, User
from core.services import users as svc
from core.services.patients import save_patient

pytestmark = pytest.mark.django_db


def test_role_labels_and_values_are_accepted():
    assert svc.parse_role('Healthcare Worker') == User.ROLE_HCW
    assert svc.parse_role('doctor') == User.ROLE_DOCTOR
    with pytest.raises(ValueError):
        svc.parse_role('Nurse')


def test_register_patient_links_record():
    user = svc.register_user(name='Lata', email=' Lata@Example.com ', password='secret123',
                             phone_number='+919800000009', role='Patient')
    assert user.email == 'lata@example.com'
    record = Patient.objects.get(user=user)
    assert record.patient_code == user.patient_code
    assert svc.get_user_data(user.id)['patientId'] == user.patient_code
    assert svc.get_user_data(999999) is None


def test_update_user_profile(patient_user):
    svc.update_user_profile(patient_user, 'Asha K', 'https://example.com/p.png')
    patient_user.refresh_from_db()
    assert patient_user.name == 'Asha K'
    assert patient_user.photo_url == 'https://example.com/p.png'
    assert patient_user.patient_record.name == 'Asha K'


def test_ensure_test_users_is_idempotent():
    call_command('ensure_test_users')
    call_command('ensure_test_users')
    assert User.objects.filter(email__endswith='@cervihealth.test').count() == 3
    patient = User.objects.get(role=User.ROLE_PATIENT)
    assert Patient.objects.filter(user=patient).count() == 1
    assert patient.check_password('123456')


def test_backfill_command():
    save_patient({'name': 'Lata'})
    call_command('backfill_patients')
    assert Patient.objects.get().address == '123 Main Street, City'
