"""Triage intake, live queue and statistics views."""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated

from core.permissions import ModuleAccess
from core.serializers.triage import TriageCreateSerializer, TriageUpdateSerializer, TriageStatsQuerySerializer
from core.services import triage as svc
from core.views.common import ok, paged, validated


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, ModuleAccess.of('triage')])
def triage_list(request):
    if request.method == 'GET':
        return paged(svc.list_entries(request.user, request.query_params), request.query_params, svc.format_entry)
    data = validated(TriageCreateSerializer, request.data)
    entry = svc.create_entry(data, user=request.user, request=request)
    return ok(svc.format_entry(entry), status=201)


@api_view(['GET'])
@permission_classes([IsAuthenticated, ModuleAccess.of('triage')])
def triage_queue(request):
    hospital_id = request.query_params.get('hospitalId')
    return ok(svc.queue(request.user, int(hospital_id) if hospital_id and hospital_id.isdigit() else None))


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, ModuleAccess.of('triage')])
def triage_detail(request, pk: int):
    if request.method == 'GET':
        return ok(svc.format_entry(svc.get_entry(request.user, pk)))
    data = validated(TriageUpdateSerializer, request.data, partial=True)
    entry = svc.update_entry(pk, data, user=request.user, request=request)
    return ok(svc.format_entry(entry))


@api_view(['GET'])
@permission_classes([IsAuthenticated, ModuleAccess.of('triage')])
def triage_stats(request):
    q = validated(TriageStatsQuerySerializer, request.query_params)
    return ok(svc.statistics(request.user, q.get('period') or 'today', q.get('from'), q.get('to'),
                             hospital_id=q.get('hospitalId')))
