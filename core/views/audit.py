"""Audit trail browsing, statistics and CSV export."""
from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated

from core.permissions import require
from core.services import audit
from core.views.common import ok, paged, csv_response


@api_view(['GET'])
@permission_classes([IsAuthenticated, require('audit.read')])
def audit_list(request):
    qs = audit.filter_events(audit.scoped_events(request.user), request.query_params)
    return paged(qs.select_related('user'), request.query_params, audit.format_event)


@api_view(['GET'])
@permission_classes([IsAuthenticated, require('audit.read')])
def audit_stats(request):
    period = request.query_params.get('period') or '24h'
    if period not in audit.STATS_PERIODS:
        raise ValidationError({'period': f'Use one of {", ".join(audit.STATS_PERIODS)}'})
    return ok(audit.audit_statistics(audit.scoped_events(request.user), period))


@api_view(['GET'])
@permission_classes([IsAuthenticated, require('audit.read')])
def audit_export(request):
    qs = audit.filter_events(audit.scoped_events(request.user), request.query_params)
    audit.log_action(user=request.user, action='READ', entity_type='AuditEvent',
                     description='Exported audit trail', request=request)
    return csv_response(audit.export_csv(qs), f'audit-{timezone.now():%Y%m%d-%H%M%S}.csv')
