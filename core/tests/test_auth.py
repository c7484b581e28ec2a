import pytest
from django.urls import reverse
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient

from core.models import AuditEvent, User

PASSWORD = 'Str0ng!Passw0rd'

pytestmark = pytest.mark.django_db


def login(client, email, password=PASSWORD):
    return client.post(reverse('auth-login'), {'email': email, 'password': password}, format='json')


def test_login_returns_jwt_legacy_token_and_permissions(doctor):
    r = login(APIClient(), doctor.email)
    assert r.status_code == 200
    assert r.data['ok'] is True
    assert r.data['token'] and r.data['jwt_access'] and r.data['jwt_refresh']
    assert r.data['role'] == 'DOCTOR'
    assert 'patients.write' in r.data['permissions']
    assert r.data['user']['email'] == doctor.email
    assert r.data['user']['hospitalId'] == doctor.hospital_id
    assert AuditEvent.objects.filter(action='LOGIN', user=doctor, success=True).exists()


def test_login_is_case_insensitive_on_email(doctor):
    r = login(APIClient(), doctor.email.upper())
    assert r.status_code == 200


def test_bad_password_is_401_and_audited(doctor):
    r = login(APIClient(), doctor.email, 'wrong-password')
    assert r.status_code == 401
    assert r.data['ok'] is False
    row = AuditEvent.objects.get(action='LOGIN', success=False)
    assert row.error_message == 'bad password'


def test_unknown_user_is_401_and_audited():
    r = login(APIClient(), 'nobody@ems.test')
    assert r.status_code == 401
    assert AuditEvent.objects.filter(action='LOGIN', success=False, error_message='unknown user').exists()


def test_inactive_account_cannot_login(make_user, hospital):
    u = make_user('NURSE', hospital=hospital, is_active=False)
    r = login(APIClient(), u.email)
    assert r.status_code == 401
    assert AuditEvent.objects.filter(action='LOGIN', success=False, error_message='inactive').exists()


def test_login_requires_identifier():
    r = APIClient().post(reverse('auth-login'), {'password': 'x'}, format='json')
    assert r.status_code == 400
    assert r.data['error']['code'] == 'validation_error'


def test_login_is_throttled(doctor):
    client = APIClient()
    for _ in range(10):
        login(client, doctor.email, 'wrong-password')
    r = login(client, doctor.email)
    assert r.status_code == 429


def test_token_header_authenticates(doctor):
    client = APIClient()
    token = login(client, doctor.email).data['token']
    client.credentials(HTTP_AUTHORIZATION=f'Token {token}')
    r = client.get(reverse('auth-me'))
    assert r.status_code == 200
    assert r.data['data']['role'] == 'DOCTOR'
    assert r.data['data']['hospitalName'] == doctor.hospital.name


def test_bearer_header_authenticates(doctor):
    client = APIClient()
    access = login(client, doctor.email).data['jwt_access']
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {access}')
    assert client.get(reverse('auth-me')).status_code == 200


def test_me_requires_authentication():
    r = APIClient().get(reverse('auth-me'))
    assert r.status_code == 401
    assert r.data['ok'] is False


def test_refresh_issues_new_access_token(doctor):
    client = APIClient()
    refresh = login(client, doctor.email).data['jwt_refresh']
    r = client.post(reverse('auth-refresh'), {'refresh': refresh}, format='json')
    assert r.status_code == 200
    assert r.data['jwt_access']


def test_refresh_with_garbage_is_401():
    r = APIClient().post(reverse('auth-refresh'), {'refresh': 'not-a-token'}, format='json')
    assert r.status_code == 401


def test_logout_blacklists_refresh_and_drops_token(doctor):
    client = APIClient()
    data = login(client, doctor.email).data
    client.credentials(HTTP_AUTHORIZATION=f'Token {data["token"]}')
    r = client.post(reverse('auth-logout'), {'refresh': data['jwt_refresh']}, format='json')
    assert r.status_code == 200
    assert r.data['blacklisted'] == 1
    assert not Token.objects.filter(user=doctor).exists()
    assert AuditEvent.objects.filter(action='LOGOUT', user=doctor).exists()

    again = APIClient().post(reverse('auth-refresh'), {'refresh': data['jwt_refresh']}, format='json')
    assert again.status_code == 401


def test_logout_without_refresh_blacklists_all_outstanding(doctor):
    client = APIClient()
    login(client, doctor.email)
    data = login(client, doctor.email).data
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {data["jwt_access"]}')
    r = client.post(reverse('auth-logout'), {}, format='json')
    assert r.status_code == 200
    assert r.data['blacklisted'] == 2


def test_register_creates_inactive_account(hospital):
    r = APIClient().post(reverse('auth-register'), {
        'firstName': 'Amina', 'lastName': 'Mohamed', 'email': 'Amina@Example.org',
        'password': 'Sup3rSecret!', 'role': 'NURSE', 'hospitalId': hospital.id,
    }, format='json')
    assert r.status_code == 201
    u = User.objects.get(email='amina@example.org')
    assert u.is_active is False
    assert u.hospital == hospital and u.county_id == hospital.county_id
    assert u.staff_number.startswith('STF-')
    assert login(APIClient(), 'amina@example.org', 'Sup3rSecret!').status_code == 401


def test_register_rejects_duplicate_email(doctor):
    r = APIClient().post(reverse('auth-register'), {
        'firstName': 'X', 'lastName': 'Y', 'email': doctor.email, 'password': 'Sup3rSecret!',
    }, format='json')
    assert r.status_code == 409
    assert r.data['error']['code'] == 'conflict'


def test_register_cannot_request_super_admin():
    r = APIClient().post(reverse('auth-register'), {
        'firstName': 'X', 'lastName': 'Y', 'email': 'x@ems.test', 'password': 'Sup3rSecret!',
        'role': 'SUPER_ADMIN',
    }, format='json')
    assert r.status_code == 400
