import pytest
from django.utils import timezone

from core.models import Patient, User
from core.services import patients as svc

pytestmark = pytest.mark.django_db


def _complete_record(name):
    return svc.save_patient({
        'name': name, 'age': 41, 'email': 'k@example.com', 'address': 'Ward 4',
        'blood_group': 'B+', 'menstrual_status': 'Post-Menopausal',
        'symptoms': ['Pelvic pain'], 'medical_history': 'Hypertension',
    })


def test_patient_codes_are_sequential_per_year():
    prefix = f"PT-{timezone.now().year}-"
    assert svc.generate_patient_code() == f"{prefix}00001"
    first = svc.save_patient({'name': 'Lata'})
    second = svc.save_patient({'name': 'Kamala'})
    assert first.patient_code == f"{prefix}00001"
    assert second.patient_code == f"{prefix}00002"
    assert svc.generate_patient_code() == f"{prefix}00003"


def test_codes_continue_after_gaps():
    prefix = f"PT-{timezone.now().year}-"
    Patient.objects.create(patient_code=f"{prefix}00007", name='Imported')
    assert svc.save_patient({'name': 'Next'}).patient_code == f"{prefix}00008"


def test_account_links_to_one_record_only(patient_user):
    with pytest.raises(ValueError, match='already has a patient record'):
        svc.save_patient({'name': 'Duplicate'}, user=patient_user)
    assert Patient.objects.filter(user=patient_user).count() == 1


def test_save_patient_ignores_unknown_fields(make_user):
    hcw = make_user('hcw@example.com', User.ROLE_HCW)
    p = svc.save_patient({'name': 'Lata', 'age': 35, 'favourite_colour': 'blue'}, registered_by=hcw)
    assert p.age == 35
    assert p.registered_by == hcw
    assert svc.format_patient(p)['registeredBy'] == hcw.id


def test_defaults_fill_empty_fields_for_display():
    p = svc.save_patient({'name': 'Lata'})
    data = svc.get_patient_with_defaults(p)
    assert data['name'] == 'Lata'
    assert data['phoneNumber'] == 'Not provided'
    assert data['email'] == 'Not provided'
    assert data['bloodGroup'] == 'Not specified'
    assert data['medicalHistory'] == 'No history provided'
    assert data['age'] == 0
    assert data['symptoms'] == []
    # stored record is untouched
    p.refresh_from_db()
    assert p.email == ''


def test_update_patient_keeps_values_not_supplied():
    p = svc.save_patient({'name': 'Lata', 'address': 'Ward 2', 'blood_group': 'A+'})
    svc.update_patient(p, {'age': 30, 'address': None})
    p.refresh_from_db()
    assert p.age == 30
    assert p.address == 'Ward 2'
    assert p.blood_group == 'A+'
    assert p.name == 'Lata'


def test_update_patient_ignores_blank_values():
    p = svc.save_patient({'name': 'Lata', 'address': '12 Lake Road', 'email': 'lata@example.com',
                          'symptoms': ['Pain']})
    svc.update_patient(p, {'address': '', 'email': None, 'symptoms': [], 'blood_group': 'B+'})
    p.refresh_from_db()
    assert p.address == '12 Lake Road'
    assert p.email == 'lata@example.com'
    assert p.symptoms == ['Pain']
    assert p.blood_group == 'B+'


def test_missing_fields_are_backfilled_without_overwriting():
    p = svc.save_patient({'name': 'Lata', 'blood_group': 'AB-'})
    svc.update_patient_with_missing_fields(p, {'address': 'Ward 9'})
    p.refresh_from_db()
    assert p.blood_group == 'AB-'
    assert p.address == 'Ward 9'
    assert p.email == 'patient@example.com'
    assert p.symptoms == ['None']
    assert p.medical_history == 'No significant medical history'


def test_backfill_all_counts_only_incomplete_records():
    svc.save_patient({'name': 'Lata'})
    svc.save_patient({'name': 'Kamala'})
    _complete_record('Rekha')
    assert svc.update_all_patients_with_missing_fields() == 2
    assert svc.update_all_patients_with_missing_fields() == 0


def test_patient_options_sorted_by_name_and_skip_nameless():
    b = svc.save_patient({'name': 'Bina'})
    a = svc.save_patient({'name': 'Anita'})
    svc.save_patient({'name': ''})
    options = svc.get_all_patient_ids()
    assert [o['value'] for o in options] == [a.id, b.id]
    assert options[0]['label'] == f"Anita - {a.patient_code}"


def test_access_rules(patient, make_user):
    other = make_user('other@example.com', User.ROLE_PATIENT)
    staff = make_user('hcw@example.com', User.ROLE_HCW)
    svc.check_patient_access(patient.user, patient)
    svc.check_patient_access(staff, patient)
    with pytest.raises(PermissionError):
        svc.check_patient_access(other, patient)


def test_create_and_fetch_over_api(hcw, client_for):
    client = client_for(hcw)
    r = client.post('/api/patients/create', {
        'name': 'Kamala Bai', 'age': 38, 'phoneNumber': '+919800000001',
        'bloodGroup': 'O+', 'symptoms': ['<b>Discharge</b>'],
    }, format='json')
    assert r.status_code == 201
    assert r.data['patientId'].startswith('PT-')
    assert r.data['patient']['symptoms'] == ['Discharge']

    r = client.get(f"/api/patients/{r.data['id']}")
    assert r.status_code == 200
    assert r.data['patient']['address'] == 'Not provided'


def test_create_rejects_short_names(hcw, client_for):
    r = client_for(hcw).post('/api/patients/create', {'name': 'A'}, format='json')
    assert r.status_code == 400
    assert r.data['ok'] is False


def test_patient_reads_own_record(patient_user, client_for):
    r = client_for(patient_user).get('/api/patients/me')
    assert r.status_code == 200
    assert r.data['patient']['patientId'] == patient_user.patient_code


def test_patient_updates_own_record(patient, client_for):
    r = client_for(patient.user).post(
        f'/api/patients/{patient.id}/update', {'address': 'Ward 12', 'age': 44}, format='json',
    )
    assert r.status_code == 200
    patient.refresh_from_db()
    assert patient.address == 'Ward 12'
    assert patient.age == 44
    assert patient.name == 'Asha Devi'


def test_blank_update_keeps_stored_address(patient, client_for):
    svc.update_patient(patient, {'address': '12 Lake Road'})
    r = client_for(patient.user).post(
        f'/api/patients/{patient.id}/update', {'address': ''}, format='json',
    )
    assert r.status_code == 200
    patient.refresh_from_db()
    assert patient.address == '12 Lake Road'
