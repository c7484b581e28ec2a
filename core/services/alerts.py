from typing import Any, Dict, Optional

from django.utils import timezone

from core.exceptions import InvalidTransition
from core.models import SystemAlert
from core.permissions import is_super, COUNTY_ROLES
from core.realtime.broadcast import broadcast_update
from core.services.audit import log_action
from core.services.common import next_number, yearly_prefix, iso


def raise_alert(*, alert_type: str, severity: str, title: str, message: str, source_type: str = '',
                source_id: Any = None, hospital=None, county=None, user=None,
                status: str = 'ACTIVE') -> SystemAlert:
    now = timezone.now()
    alert = SystemAlert.objects.create(
        alert_number=next_number(SystemAlert, 'alert_number', yearly_prefix('ALT')),
        alert_type=alert_type,
        severity=severity,
        title=title,
        message=message,
        source_type=source_type,
        source_id='' if source_id is None else str(source_id),
        hospital=hospital,
        county=county or (hospital.county if hospital is not None else None),
        status=status,
        created_by=user if getattr(user, 'pk', None) else None,
        acknowledged_by=user if status == 'ACKNOWLEDGED' and getattr(user, 'pk', None) else None,
        acknowledged_at=now if status == 'ACKNOWLEDGED' else None,
    )
    broadcast_update('alerts', 'created', alert.id, severity=severity)
    return alert


def scoped_alerts(user):
    qs = SystemAlert.objects.select_related('hospital')
    if is_super(user):
        return qs
    if user.role in COUNTY_ROLES or not user.hospital_id:
        return qs.filter(county_id=user.county_id) if user.county_id else qs.none()
    return qs.filter(hospital_id=user.hospital_id)


def format_alert(a: SystemAlert) -> Dict[str, Any]:
    return {
        'id': a.id,
        'alertNumber': a.alert_number,
        'alertType': a.alert_type,
        'severity': a.severity,
        'title': a.title,
        'message': a.message,
        'sourceType': a.source_type,
        'sourceId': a.source_id,
        'hospitalId': a.hospital_id,
        'countyId': a.county_id,
        'status': a.status,
        'acknowledgedBy': a.acknowledged_by_id,
        'acknowledgedAt': iso(a.acknowledged_at),
        'resolvedAt': iso(a.resolved_at),
        'createdAt': iso(a.created_at),
    }


def acknowledge(alert: SystemAlert, user, request=None) -> SystemAlert:
    if alert.status != 'ACTIVE':
        raise InvalidTransition(f'Alert is already {alert.status}')
    alert.status = 'ACKNOWLEDGED'
    alert.acknowledged_by = user
    alert.acknowledged_at = timezone.now()
    alert.save(update_fields=['status', 'acknowledged_by', 'acknowledged_at'])
    log_action(user=user, action='UPDATE', entity_type='SystemAlert', entity_id=alert.id,
               description=f'Acknowledged alert {alert.alert_number}', request=request,
               hospital_id=alert.hospital_id)
    broadcast_update('alerts', 'acknowledged', alert.id)
    return alert


def resolve(alert: SystemAlert, user: Optional[Any] = None, request=None) -> SystemAlert:
    if alert.status == 'RESOLVED':
        raise InvalidTransition('Alert is already resolved')
    now = timezone.now()
    if not alert.acknowledged_at:
        alert.acknowledged_by = user
        alert.acknowledged_at = now
    alert.status = 'RESOLVED'
    alert.resolved_at = now
    alert.save(update_fields=['status', 'acknowledged_by', 'acknowledged_at', 'resolved_at'])
    log_action(user=user, action='UPDATE', entity_type='SystemAlert', entity_id=alert.id,
               description=f'Resolved alert {alert.alert_number}', request=request,
               hospital_id=alert.hospital_id)
    broadcast_update('alerts', 'resolved', alert.id)
    return alert
