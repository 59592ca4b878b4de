import re

import pytest
from django.urls import reverse
from django.conf import settings
from rest_framework.test import APIClient
from core.auth_views import login_view, otp_send_view
from core.models import AuditEvent, User
from core.services.patients import save_patient
from core.throttling import LoginRateThrottle, OtpRateThrottle, ScreeningUploadThrottle
from core.views.screenings import screening_upload

pytestmark = pytest.mark.django_db


def login(client, email, password):
    r = client.post(reverse('login_view'), {'email': email, 'password': password}, format='json')
    assert r.status_code in (200, 400, 401)
    return r


def test_no_role_bypass_in_login(make_user):
    client = APIClient()
    u = make_user('u1@example.com', User.ROLE_PATIENT)
    # extra role field is ignored
    r = client.post(reverse('login_view'), {'email': 'u1@example.com', 'password': 'P@ssw0rd1', 'role': 'doctor'}, format='json')
    assert r.status_code == 200
    assert r.data['role'] == User.ROLE_PATIENT
    u.refresh_from_db()
    assert u.role == User.ROLE_PATIENT


def test_login_returns_jwt_and_legacy_token(make_user):
    make_user('u_jwt@example.com', User.ROLE_DOCTOR)
    r = login(APIClient(), 'u_jwt@example.com', 'P@ssw0rd1')
    assert r.status_code == 200
    assert 'jwt_access' in r.data and r.data['jwt_access']
    assert 'jwt_refresh' in r.data and r.data['jwt_refresh']
    assert 'token' in r.data and r.data['token']


def test_jwt_access_token_authenticates(make_user):
    make_user('jwt@example.com', User.ROLE_HCW)
    access = login(APIClient(), 'jwt@example.com', 'P@ssw0rd1').data['jwt_access']
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {access}')
    r = client.get('/api/user/profile')
    assert r.status_code == 200
    assert r.data['user']['email'] == 'jwt@example.com'


def test_failed_login_is_audited(make_user):
    make_user('audit@example.com', User.ROLE_PATIENT)
    r = login(APIClient(), 'audit@example.com', 'wrong-password')
    assert r.status_code == 400
    event = AuditEvent.objects.get(action='login')
    assert event.user is None
    assert event.detail['result'] == 'fail'


def test_logout_blacklists_refresh_token(make_user):
    make_user('out@example.com', User.ROLE_PATIENT)
    data = login(APIClient(), 'out@example.com', 'P@ssw0rd1').data
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Token {data['token']}")
    r = client.post(reverse('logout_view'), {'refresh': data['jwt_refresh']}, format='json')
    assert r.status_code == 200
    assert r.data['blacklisted'] == 1

    r = APIClient().post('/api/auth/refresh', {'refresh': data['jwt_refresh']}, format='json')
    assert r.status_code == 401


def test_refresh_returns_new_access_token(make_user):
    make_user('refresh@example.com', User.ROLE_PATIENT)
    data = login(APIClient(), 'refresh@example.com', 'P@ssw0rd1').data
    r = APIClient().post('/api/auth/refresh', {'refresh': data['jwt_refresh']}, format='json')
    assert r.status_code == 200
    assert r.data['jwt_access']


def test_anonymous_requests_are_rejected():
    client = APIClient()
    for path in ('/api/user/profile', '/api/patients', '/api/screenings', '/api/appointments',
                 '/api/notifications', '/api/dashboard'):
        assert client.get(path).status_code == 401
    r = client.get('/api/dashboard')
    assert r.data['ok'] is False


def test_patient_cannot_list_or_create_patients(patient_user, client_for):
    client = client_for(patient_user)
    assert client.get('/api/patients').status_code == 403
    assert client.get('/api/patients/options').status_code == 403
    assert client.post('/api/patients/create', {'name': 'Someone'}, format='json').status_code == 403


def test_patient_cannot_open_another_record(patient_user, make_user, client_for):
    other = save_patient({'name': 'Other Patient'})
    r = client_for(patient_user).get(f'/api/patients/{other.id}')
    assert r.status_code == 403
    r = client_for(patient_user).post(f'/api/patients/{other.id}/update', {'address': 'x'}, format='json')
    assert r.status_code == 403


def test_only_healthcare_workers_upload(patient, patient_user, doctor, client_for):
    body = {'patientId': patient.id, 'imageUrl': 'https://res.cloudinary.com/demo/image/upload/v1/x.jpg'}
    assert client_for(patient_user).post('/api/screenings/upload', body, format='json').status_code == 403
    assert client_for(doctor).post('/api/screenings/upload', body, format='json').status_code == 403


def test_only_doctors_review(patient, hcw, client_for):
    from core.services.screenings import create_screening_record
    s = create_screening_record(patient, 'https://res.cloudinary.com/demo/image/upload/v1/x.jpg', hcw)
    r = client_for(hcw).post(f'/api/screenings/{s.id}/review', {'reviewStatus': 'Normal'}, format='json')
    assert r.status_code == 403
    assert client_for(hcw).get('/api/screenings/pending').status_code == 403


def test_appointment_limited_to_participants(patient, hcw, make_user, client_for):
    from django.utils import timezone
    from core.services.appointments import create_appointment
    appt = create_appointment(patient=patient, healthcare_worker=hcw, requested_date=timezone.now())
    outsider = make_user('outsider@example.com', User.ROLE_HCW)
    r = client_for(outsider).get(f'/api/appointments/{appt.id}')
    assert r.status_code == 403
    r = client_for(outsider).post(f'/api/appointments/{appt.id}/accept')
    assert r.status_code == 403


def test_password_reset_flow(make_user, mailoutbox):
    make_user('reset@example.com', User.ROLE_PATIENT)
    client = APIClient()
    r = client.post('/api/auth/password-reset', {'email': 'reset@example.com'}, format='json')
    assert r.status_code == 200
    assert len(mailoutbox) == 1
    m = re.search(r'uid=([^&\s]+)&token=(\S+)', mailoutbox[0].body)
    assert m

    r = client.post('/api/auth/password-reset/confirm',
                    {'uid': m.group(1), 'token': 'bad-token', 'newPassword': 'Str0ng-Passphrase!'}, format='json')
    assert r.status_code == 400
    r = client.post('/api/auth/password-reset/confirm',
                    {'uid': m.group(1), 'token': m.group(2), 'newPassword': 'Str0ng-Passphrase!'}, format='json')
    assert r.status_code == 200
    assert login(client, 'reset@example.com', 'Str0ng-Passphrase!').status_code == 200
    assert login(client, 'reset@example.com', 'P@ssw0rd1').status_code == 400


def test_password_reset_unknown_email_is_silent(mailoutbox):
    r = APIClient().post('/api/auth/password-reset', {'email': 'ghost@example.com'}, format='json')
    assert r.status_code == 200
    assert mailoutbox == []


def test_request_id_is_echoed():
    r = APIClient().get('/healthz', HTTP_X_REQUEST_ID='req-123')
    assert r.status_code == 200
    assert r['X-Request-ID'] == 'req-123'


def test_sensitive_endpoints_use_named_throttle_scopes():
    rates = settings.REST_FRAMEWORK['DEFAULT_THROTTLE_RATES']
    for view, throttle in ((login_view, LoginRateThrottle), (otp_send_view, OtpRateThrottle),
                           (screening_upload, ScreeningUploadThrottle)):
        assert throttle in view.cls.throttle_classes
        assert rates[throttle.scope]
