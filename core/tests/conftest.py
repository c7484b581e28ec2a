import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from core.models import County, Hospital, Department, Patient, User, Ambulance, Resource

PASSWORD = 'Str0ng!Passw0rd'


@pytest.fixture(autouse=True)
def _clear_cache():
    # throttle counters and dashboard snapshots live in the cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def county(db):
    return County.objects.create(name='Nairobi', code='047')


@pytest.fixture
def other_county(db):
    return County.objects.create(name='Mombasa', code='001')


@pytest.fixture
def hospital(county):
    return Hospital.objects.create(
        name='Kenyatta National Hospital', code='KNH-001', county=county, level='LEVEL_6',
        latitude=-1.3011, longitude=36.8073,
        total_beds=100, available_beds=40, icu_beds=10, available_icu_beds=2,
        emergency_beds=20, available_emergency_beds=5,
    )


@pytest.fixture
def second_hospital(county):
    return Hospital.objects.create(
        name='Mbagathi County Hospital', code='MBG-001', county=county, level='LEVEL_4',
        latitude=-1.3077, longitude=36.8020, total_beds=50, available_beds=20,
    )


@pytest.fixture
def other_hospital(other_county):
    return Hospital.objects.create(
        name='Coast General', code='CPGH-001', county=other_county, level='LEVEL_5',
        latitude=-4.0547, longitude=39.6636, total_beds=80, available_beds=10,
    )


@pytest.fixture
def department(hospital):
    return Department.objects.create(hospital=hospital, name='Accident & Emergency', type='EMERGENCY',
                                     total_beds=20, available_beds=5)


@pytest.fixture
def make_user(db):
    counter = {'n': 0}

    def _make(role, hospital=None, county=None, **extra):
        counter['n'] += 1
        email = extra.pop('email', f'{role.lower()}{counter["n"]}@ems.test')
        if county is None and hospital is not None:
            county = hospital.county
        return User.objects.create_user(
            username=email, email=email, password=extra.pop('password', PASSWORD), role=role,
            first_name=extra.pop('first_name', role.title()), last_name=extra.pop('last_name', 'Tester'),
            hospital=hospital, county=county, **extra,
        )
    return _make


@pytest.fixture
def super_admin(make_user):
    return make_user('SUPER_ADMIN')


@pytest.fixture
def county_admin(make_user, county):
    return make_user('COUNTY_ADMIN', county=county)


@pytest.fixture
def hospital_admin(make_user, hospital):
    return make_user('HOSPITAL_ADMIN', hospital=hospital)


@pytest.fixture
def doctor(make_user, hospital):
    return make_user('DOCTOR', hospital=hospital, specialization='Emergency Medicine')


@pytest.fixture
def nurse(make_user, hospital):
    return make_user('NURSE', hospital=hospital)


@pytest.fixture
def dispatcher(make_user, hospital):
    return make_user('DISPATCHER', hospital=hospital)


@pytest.fixture
def client_for():
    def _client(user=None):
        c = APIClient()
        if user is not None:
            c.force_authenticate(user=user)
        return c
    return _client


@pytest.fixture
def patient(hospital, county):
    return Patient.objects.create(
        patient_number='PAT-000001', first_name='Wanjiru', last_name='Kamau', gender='FEMALE',
        phone='0712345678', national_id='12345678', sha_number='SHA123456789', sha_status='REGISTERED',
        contribution_status='UP_TO_DATE', current_hospital=hospital, county=county,
    )


@pytest.fixture
def ambulance(hospital):
    return Ambulance.objects.create(
        registration_number='KCA 123A', hospital=hospital, county=hospital.county, type='ALS',
        equipment_level='ADVANCED', latitude=-1.2921, longitude=36.8219, fuel_level=80,
    )


@pytest.fixture
def bed_resource(hospital, department):
    return Resource.objects.create(
        name='Emergency Beds', type='EMERGENCY_BED', category='Beds', unit='beds', hospital=hospital,
        department=department, total_capacity=20, available_capacity=5, in_use_capacity=15, critical_level=2,
    )
