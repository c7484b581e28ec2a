"""
Server-rendered boards for wall displays.

Each page is session authenticated, reuses the API services for its data
and reloads itself every ``PAGE_REFRESH_SECONDS``.
"""
from django.conf import settings
from django.contrib.auth.decorators import login_required
from django.core.exceptions import PermissionDenied
from django.shortcuts import render

from core.permissions import can_access_module
from core.services import dashboard, triage, dispatch, resources


def _refresh() -> int:
    return int(getattr(settings, 'PAGE_REFRESH_SECONDS', 30))


def _require_module(request, module: str) -> None:
    if not can_access_module(request.user, module):
        raise PermissionDenied


@login_required
def dashboard_page(request):
    _require_module(request, 'dashboard')
    return render(request, 'core/dashboard.html', {
        'summary': dashboard.summary(request.user),
        'refresh': _refresh(),
    })


@login_required
def triage_page(request):
    _require_module(request, 'triage')
    return render(request, 'core/triage.html', {
        'board': triage.queue(request.user),
        'refresh': _refresh(),
    })


@login_required
def dispatch_page(request):
    _require_module(request, 'dispatch')
    return render(request, 'core/dispatch.html', {
        'board': dispatch.overview(request.user),
        'refresh': _refresh(),
    })


@login_required
def beds_page(request):
    if not (can_access_module(request.user, 'resources') or can_access_module(request.user, 'triage')):
        raise PermissionDenied
    return render(request, 'core/beds.html', {
        'beds': resources.bed_availability(request.user),
        'refresh': _refresh(),
    })
