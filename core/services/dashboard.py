from typing import Any, Dict

from django.conf import settings
from django.core.cache import cache
from django.db.models import Sum
from django.utils import timezone

from core.models import (
    Hospital, TriageEntry, Ambulance, Transfer, SystemAlert, SupplyRequest,
)
from core.permissions import scope_queryset, is_super, COUNTY_ROLES
from core.services import emergencies as emergency_service
from core.services.common import percent


def scope_key(user) -> str:
    if is_super(user):
        return 'all'
    if user.role in COUNTY_ROLES or not user.hospital_id:
        return f'county:{user.county_id or 0}'
    return f'hospital:{user.hospital_id}'


def cache_key(scope: str) -> str:
    return f'dashboard:{scope}'


def compute(user) -> Dict[str, Any]:
    hospitals = scope_queryset(Hospital.objects.filter(is_active=True), user, hospital_field='self')
    beds = hospitals.aggregate(total=Sum('total_beds'), available=Sum('available_beds'),
                               icu=Sum('icu_beds'), icu_available=Sum('available_icu_beds'))
    total_beds, available_beds = beds['total'] or 0, beds['available'] or 0

    triage = scope_queryset(TriageEntry.objects.all(), user)
    waiting = triage.filter(status='WAITING')
    ambulances = scope_queryset(Ambulance.objects.all(), user, county_field='county')
    transfers = scope_queryset(Transfer.objects.all(), user, hospital_field='destination_hospital')
    alerts = SystemAlert.objects.filter(status='ACTIVE')
    if not is_super(user):
        if user.role in COUNTY_ROLES or not user.hospital_id:
            alerts = alerts.filter(county_id=user.county_id)
        else:
            alerts = alerts.filter(hospital_id=user.hospital_id)

    return {
        'scope': scope_key(user),
        'activeEmergencies': emergency_service.scoped_emergencies(user)
        .exclude(status__in=emergency_service.CLOSED_STATUSES).count(),
        'waitingTriage': waiting.count(),
        'immediateCases': waiting.filter(triage_level='IMMEDIATE').count(),
        'availableAmbulances': ambulances.filter(status='AVAILABLE', is_operational=True).count(),
        'beds': {
            'total': total_beds,
            'available': available_beds,
            'icuTotal': beds['icu'] or 0,
            'icuAvailable': beds['icu_available'] or 0,
            'occupancyRate': percent(total_beds - available_beds, total_beds),
        },
        'hospitals': hospitals.count(),
        'pendingTransfers': transfers.filter(status='REQUESTED').count(),
        'activeAlerts': alerts.count(),
        'criticalAlerts': alerts.filter(severity='CRITICAL').count(),
        'pendingSupplyRequests': scope_queryset(SupplyRequest.objects.filter(status='PENDING'), user).count(),
        'generatedAt': timezone.now().isoformat(),
    }


def summary(user, *, refresh: bool = False) -> Dict[str, Any]:
    """Counters for the caller's scope, cached for ``DASHBOARD_CACHE_TTL`` seconds."""
    key = cache_key(scope_key(user))
    if not refresh:
        cached = cache.get(key)
        if cached is not None:
            return cached
    data = compute(user)
    cache.set(key, data, int(getattr(settings, 'DASHBOARD_CACHE_TTL', 60)))
    return data


def warm(users) -> list[str]:
    """Recompute the cache for each distinct scope among ``users``."""
    refreshed = []
    seen = set()
    for u in users:
        scope = scope_key(u)
        if scope in seen:
            continue
        seen.add(scope)
        summary(u, refresh=True)
        refreshed.append(cache_key(scope))
    return refreshed
