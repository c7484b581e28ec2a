"""Audit trail writes and queries."""
import csv
import io
import logging
from datetime import timedelta
from typing import Optional, Any, Dict

from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from django.contrib.auth import get_user_model

from core.middleware import ClientIPMiddleware, valid_ip
from core.models import AuditEvent
from core.permissions import is_super, COUNTY_ROLES

User = get_user_model()
logger = logging.getLogger(__name__)

CSV_HEADERS = [
    'Timestamp', 'User ID', 'User Role', 'User Name', 'Action', 'Entity Type',
    'Entity ID', 'Description', 'Success', 'IP Address', 'Facility ID',
]

STATS_PERIODS = {'24h': timedelta(hours=24), '7d': timedelta(days=7), '30d': timedelta(days=30)}


def client_ip(request) -> Optional[str]:
    if request is None:
        return None
    return valid_ip(getattr(request, 'client_ip', None)) or ClientIPMiddleware.resolve(request.META)


def log_action(*, user: Optional[User], action: str, entity_type: str, entity_id: Any = None,
               description: str = '', changes: Optional[Dict[str, Any]] = None, request=None,
               hospital_id: Optional[int] = None, success: bool = True,
               error_message: str = '') -> Optional[AuditEvent]:
    """Append an audit row.  The insert runs in its own savepoint; failures are
    logged and swallowed so the audited operation is never rolled back by the trail."""
    actor = user if getattr(user, 'pk', None) else None
    try:
        with transaction.atomic():
            return AuditEvent.objects.create(
                user=actor,
                user_role=getattr(actor, 'role', '') or '',
                user_name=(actor.full_name if actor else '')[:200],
                action=action,
                entity_type=entity_type,
                entity_id='' if entity_id is None else str(entity_id),
                description=(description or '')[:500],
                changes=changes or {},
                ip_address=client_ip(request),
                user_agent=(request.META.get('HTTP_USER_AGENT', '') if request is not None else '')[:300],
                hospital_id=hospital_id if hospital_id is not None else getattr(actor, 'hospital_id', None),
                success=success,
                error_message=(error_message or '')[:500],
            )
    except Exception:
        logger.exception("Failed to write audit row %s %s:%s", action, entity_type, entity_id)
        return None


def diff(before: Dict[str, Any], after: Dict[str, Any]) -> Dict[str, Any]:
    """``{field: {'from': old, 'to': new}}`` for changed keys only."""
    return {k: {'from': before.get(k), 'to': v} for k, v in after.items() if before.get(k) != v}


def scoped_events(user):
    qs = AuditEvent.objects.all()
    if is_super(user):
        return qs
    if user.role in COUNTY_ROLES:
        return qs.filter(hospital__county_id=user.county_id) if user.county_id else qs.none()
    return qs.filter(hospital_id=user.hospital_id) if user.hospital_id else qs.filter(user=user)


def filter_events(qs, params):
    if params.get('userId'):
        qs = qs.filter(user_id=params['userId'])
    if params.get('action'):
        qs = qs.filter(action=params['action'])
    if params.get('entityType'):
        qs = qs.filter(entity_type=params['entityType'])
    if params.get('entityId'):
        qs = qs.filter(entity_id=params['entityId'])
    if params.get('hospitalId'):
        qs = qs.filter(hospital_id=params['hospitalId'])
    if params.get('success') in ('true', 'false', '1', '0'):
        qs = qs.filter(success=params['success'] in ('true', '1'))
    start = parse_datetime(params['from']) if params.get('from') else None
    end = parse_datetime(params['to']) if params.get('to') else None
    if start:
        qs = qs.filter(created_at__gte=start)
    if end:
        qs = qs.filter(created_at__lte=end)
    q = (params.get('q') or '').strip()
    if q:
        qs = qs.filter(
            Q(description__icontains=q) | Q(user_name__icontains=q)
            | Q(entity_type__icontains=q) | Q(user_role__icontains=q)
        )
    return qs


def format_event(e: AuditEvent) -> dict:
    return {
        'id': e.id,
        'timestamp': e.created_at.isoformat(),
        'userId': e.user_id,
        'userRole': e.user_role,
        'userName': e.user_name,
        'action': e.action,
        'entityType': e.entity_type,
        'entityId': e.entity_id,
        'description': e.description,
        'changes': e.changes,
        'ipAddress': e.ip_address,
        'userAgent': e.user_agent,
        'facilityId': e.hospital_id,
        'success': e.success,
        'errorMessage': e.error_message,
    }


def audit_statistics(qs, period: str = '24h', now=None) -> dict:
    now = now or timezone.now()
    window = STATS_PERIODS.get(period, STATS_PERIODS['24h'])
    qs = qs.filter(created_at__gte=now - window)
    total = qs.count()
    successful = qs.filter(success=True).count()
    by_action = {r['action']: r['n'] for r in qs.values('action').annotate(n=Count('id'))}
    by_entity = {r['entity_type']: r['n'] for r in qs.values('entity_type').annotate(n=Count('id'))}
    top_users = [
        {'userId': r['user_id'], 'userName': r['user_name'], 'count': r['n']}
        for r in qs.exclude(user_id=None).values('user_id', 'user_name').annotate(n=Count('id')).order_by('-n')[:10]
    ]
    success_rate = round(successful / total * 100, 2) if total else 100.0
    return {
        'period': period if period in STATS_PERIODS else '24h',
        'total': total,
        'byAction': by_action,
        'byEntity': by_entity,
        'topUsers': top_users,
        'successRate': success_rate,
    }


def export_csv(qs) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(CSV_HEADERS)
    for e in qs.iterator():
        writer.writerow([
            e.created_at.isoformat(), e.user_id or '', e.user_role, e.user_name, e.action,
            e.entity_type, e.entity_id, e.description, 'true' if e.success else 'false',
            e.ip_address or '', e.hospital_id or '',
        ])
    return buf.getvalue()


def cleanup(retention_days: int = 365, *, user=None, now=None) -> int:
    """Delete rows older than ``retention_days`` and record the purge."""
    now = now or timezone.now()
    cutoff = now - timedelta(days=retention_days)
    deleted, _ = AuditEvent.objects.filter(created_at__lt=cutoff).delete()
    log_action(
        user=user, action='DELETE', entity_type='AuditLog',
        description=f'Purged {deleted} audit rows older than {retention_days} days',
        changes={'retentionDays': retention_days, 'deleted': deleted, 'cutoff': cutoff.isoformat()},
    )
    logger.info("Audit cleanup removed %s rows (cutoff %s)", deleted, cutoff.isoformat())
    return deleted
