import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from core.models import User
from core.services.patients import save_patient


@pytest.fixture(autouse=True)
def _clear_cache():
    # throttle counters and OTP challenges live in the cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def make_user(db):
    def _make(email, role, name='', password='P@ssw0rd1', phone_number=''):
        return User.objects.create_user(
            username=email, email=email, password=password,
            role=role, name=name, phone_number=phone_number,
        )
    return _make


@pytest.fixture
def doctor(make_user):
    return make_user('doctor@example.com', User.ROLE_DOCTOR, name='Meera Rao')


@pytest.fixture
def hcw(make_user):
    return make_user('hcw@example.com', User.ROLE_HCW, name='Sunita Kale')


@pytest.fixture
def patient_user(make_user):
    user = make_user('asha@example.com', User.ROLE_PATIENT, name='Asha Devi', phone_number='+919876543210')
    record = save_patient({'name': 'Asha Devi', 'email': user.email, 'phone_number': user.phone_number}, user=user)
    user.patient_code = record.patient_code
    user.save(update_fields=['patient_code'])
    return user


@pytest.fixture
def patient(patient_user):
    return patient_user.patient_record


@pytest.fixture
def client_for():
    def _client(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client
    return _client
