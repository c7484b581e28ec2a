"""
Patient registry views.

List, search and export run through the caller's scope (see
``core.services.patients.scoped_patients``); object level access is
enforced by ``get_patient`` which answers 403 for out-of-scope rows.
"""
from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from core.permissions import ModuleAccess, require
from core.serializers.patients import PatientSerializer, MedicalRecordSerializer, VerifyShaSerializer
from core.services import patients as svc
from core.services.audit import log_action
from core.views.common import ok, paged, validated, csv_response

SEARCH_LIMIT = 20


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess.of('patients')])
def patient_list(request):
    if request.method == 'GET':
        qs = svc.list_patients(request.user, request.query_params)
        return paged(qs, request.query_params, svc.format_patient)
    data = validated(PatientSerializer, request.data)
    p = svc.create_patient(data, user=request.user, request=request)
    return ok(svc.format_patient(p, detail=True), status=201)


@api_view(['GET'])
@permission_classes([IsAuthenticated, ModuleAccess.of('patients')])
def patient_search(request):
    q = (request.query_params.get('q') or '').strip()
    if not q:
        return ok([])
    qs = svc.search_filter(svc.scoped_patients(request.user), q).order_by('last_name', 'first_name')
    return ok([svc.format_patient(p) for p in qs[:SEARCH_LIMIT]])


@api_view(['GET'])
@permission_classes([IsAuthenticated, ModuleAccess.of('patients')])
def patient_export(request):
    qs = svc.list_patients(request.user, request.query_params)
    log_action(user=request.user, action='READ', entity_type='Patient',
               description=f'Exported {qs.count()} patients', request=request)
    return csv_response(svc.patients_csv(qs), f'patients-{timezone.now():%Y%m%d}.csv')


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, ModuleAccess.of('patients')])
def patient_detail(request, pk: int):
    p = svc.get_patient(request.user, pk)
    if request.method == 'GET':
        return ok(svc.format_patient(p, detail=True))
    if request.method == 'DELETE':
        svc.delete_patient(p, user=request.user, request=request)
        return ok({'id': pk, 'deleted': True})
    data = validated(PatientSerializer, request.data, partial=True)
    p = svc.update_patient(p, data, user=request.user, request=request)
    return ok(svc.format_patient(p, detail=True))


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess.of('patients')])
def patient_history(request, pk: int):
    p = svc.get_patient(request.user, pk)
    if request.method == 'GET':
        return ok(svc.medical_history(p))
    data = validated(MedicalRecordSerializer, request.data)
    record = svc.add_medical_record(p, data, user=request.user, request=request)
    return ok(svc.format_record(record), status=201)


@api_view(['GET'])
@permission_classes([IsAuthenticated, ModuleAccess.of('patients')])
def patient_history_export(request, pk: int):
    p = svc.get_patient(request.user, pk)
    log_action(user=request.user, action='READ', entity_type='Patient', entity_id=p.id,
               description=f'Exported history of {p.patient_number}', request=request)
    return csv_response(svc.history_csv(p), f'{p.patient_number}-history.csv')


@api_view(['POST'])
@permission_classes([IsAuthenticated, require('patients.read', 'claims.read')])
def verify_sha(request):
    identifiers = validated(VerifyShaSerializer, request.data)
    return ok(svc.verify_sha(identifiers, user=request.user, request=request))
