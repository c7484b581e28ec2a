import pytest
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied

from core.models import Hospital, TriageEntry
from core.permissions import (
    has_permission, can_access_module, scope_queryset, can_access_hospital, ensure_county_access,
    permissions_for,
)

pytestmark = pytest.mark.django_db


def test_super_admin_holds_every_permission(super_admin):
    assert has_permission(super_admin, 'audit.read')
    assert has_permission(super_admin, 'anything.write')
    assert permissions_for(super_admin) == ['*']


def test_role_table_grants(nurse, dispatcher, make_user, hospital):
    assert has_permission(nurse, 'triage.write')
    assert not has_permission(nurse, 'dispatch.read')
    assert has_permission(dispatcher, 'ambulances.write')
    driver = make_user('AMBULANCE_DRIVER', hospital=hospital)
    assert can_access_module(driver, 'dispatch')
    assert not has_permission(driver, 'dispatch.write')
    finance = make_user('FINANCE_OFFICER', hospital=hospital)
    assert can_access_module(finance, 'claims')
    assert not can_access_module(finance, 'patients')


def test_inactive_user_has_no_permissions(make_user, hospital):
    u = make_user('HOSPITAL_ADMIN', hospital=hospital, is_active=False)
    assert not has_permission(u, 'patients.read')


def test_hospital_scoping(hospital, second_hospital, other_hospital, super_admin, county_admin, nurse):
    qs = Hospital.objects.all()
    assert set(scope_queryset(qs, super_admin, hospital_field='self')) == {hospital, second_hospital, other_hospital}
    assert set(scope_queryset(qs, county_admin, hospital_field='self')) == {hospital, second_hospital}
    assert list(scope_queryset(qs, nurse, hospital_field='self')) == [hospital]


def test_related_row_scoping(patient, hospital, other_hospital, nurse, county_admin, make_user, other_county):
    TriageEntry.objects.create(triage_number='TRI-1', patient=patient, hospital=hospital,
                               chief_complaint='Chest pain', triage_level='URGENT', arrival_time=timezone.now())
    TriageEntry.objects.create(triage_number='TRI-2', patient=patient, hospital=other_hospital,
                               chief_complaint='Fever', triage_level='NON_URGENT', arrival_time=timezone.now())
    assert [e.triage_number for e in scope_queryset(TriageEntry.objects.all(), nurse)] == ['TRI-1']
    assert [e.triage_number for e in scope_queryset(TriageEntry.objects.all(), county_admin)] == ['TRI-1']
    unbound = make_user('COUNTY_ADMIN')
    assert not scope_queryset(TriageEntry.objects.all(), unbound).exists()


def test_can_access_hospital(hospital, other_hospital, county_admin, nurse):
    assert can_access_hospital(county_admin, hospital)
    assert not can_access_hospital(county_admin, other_hospital)
    assert can_access_hospital(nurse, hospital)
    assert not can_access_hospital(nurse, other_hospital)
    assert not can_access_hospital(nurse, None)


def test_ensure_county_access(county, other_county, nurse, county_admin):
    ensure_county_access(nurse, county.id)
    ensure_county_access(county_admin, county.id)
    with pytest.raises(PermissionDenied):
        ensure_county_access(nurse, other_county.id)


def test_module_access_guards_views(client_for, nurse, dispatcher):
    assert client_for(nurse).get('/api/dispatch').status_code == 403
    assert client_for(dispatcher).get('/api/triage').status_code == 403
    r = client_for(nurse).get('/api/triage')
    assert r.status_code == 200
    assert r.data['ok'] is True


def test_forbidden_uses_error_envelope(client_for, nurse):
    r = client_for(nurse).get('/api/audit')
    assert r.status_code == 403
    assert r.data['ok'] is False
    assert r.data['error']['code'] == 'permission_denied'
