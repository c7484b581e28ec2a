"""
URL mappings for the emergency management API.

Every endpoint is registered flat here.  Trailing slashes are omitted
(``APPEND_SLASH = False``) and literal segments are listed before the
``<int:pk>`` routes that would otherwise shadow them.
"""
from django.urls import path, include

from .auth_views import login_view, jwt_refresh_view, jwt_logout_view, me_view, register_view
from .views import (
    alerts, audit, claims, dashboard, dispatch, emergencies, health, hospitals, pages, patients,
    procurement, resources, staff, telemedicine, transfers, triage,
)

urlpatterns = [
    path('', include('django_prometheus.urls')),  # serves /metrics
    path('healthz', health.healthz, name='healthz'),

    # Server-rendered boards
    path('', pages.dashboard_page, name='page-dashboard'),
    path('triage', pages.triage_page, name='page-triage'),
    path('dispatch', pages.dispatch_page, name='page-dispatch'),
    path('beds', pages.beds_page, name='page-beds'),

    # Auth
    path('api/auth/login', login_view, name='auth-login'),
    path('api/auth/refresh', jwt_refresh_view, name='auth-refresh'),
    path('api/auth/logout', jwt_logout_view, name='auth-logout'),
    path('api/auth/me', me_view, name='auth-me'),
    path('api/auth/register', register_view, name='auth-register'),

    # Audit
    path('api/audit', audit.audit_list, name='audit-list'),
    path('api/audit/stats', audit.audit_stats, name='audit-stats'),
    path('api/audit/export', audit.audit_export, name='audit-export'),

    # Hospitals & departments
    path('api/hospitals', hospitals.hospital_list, name='hospital-list'),
    path('api/hospitals/<int:pk>', hospitals.hospital_detail, name='hospital-detail'),
    path('api/hospitals/<int:pk>/capacity', hospitals.hospital_capacity, name='hospital-capacity'),
    path('api/hospitals/<int:pk>/status', hospitals.hospital_status, name='hospital-status'),
    path('api/departments', hospitals.department_list, name='department-list'),

    # Patients
    path('api/patients', patients.patient_list, name='patient-list'),
    path('api/patients/search', patients.patient_search, name='patient-search'),
    path('api/patients/export', patients.patient_export, name='patient-export'),
    path('api/patients/verify-sha', patients.verify_sha, name='patient-verify-sha'),
    path('api/patients/<int:pk>', patients.patient_detail, name='patient-detail'),
    path('api/patients/<int:pk>/medical-history', patients.patient_history, name='patient-history'),
    path('api/patients/<int:pk>/history/export', patients.patient_history_export,
         name='patient-history-export'),

    # SHA claims
    path('api/claims', claims.claim_list, name='claim-list'),
    path('api/claims/<int:pk>', claims.claim_detail, name='claim-detail'),
    path('api/claims/<int:pk>/transition', claims.claim_transition, name='claim-transition'),

    # Triage
    path('api/triage', triage.triage_list, name='triage-list'),
    path('api/triage/queue', triage.triage_queue, name='triage-queue'),
    path('api/triage/stats', triage.triage_stats, name='triage-stats'),
    path('api/triage/<int:pk>', triage.triage_detail, name='triage-detail'),

    # Resources, beds & shortages
    path('api/resources', resources.resource_list, name='resource-list'),
    path('api/resources/beds/availability', resources.bed_availability, name='bed-availability'),
    path('api/resources/critical-shortages', resources.critical_shortages, name='critical-shortages'),
    path('api/resources/<int:pk>', resources.resource_detail, name='resource-detail'),

    # Alerts
    path('api/alerts', alerts.alert_list, name='alert-list'),
    path('api/alerts/<int:pk>/acknowledge', alerts.alert_acknowledge, name='alert-acknowledge'),
    path('api/alerts/<int:pk>/resolve', alerts.alert_resolve, name='alert-resolve'),

    # Procurement
    path('api/procurement/requests', procurement.supply_request_list, name='supply-request-list'),
    path('api/procurement/requests/<int:pk>', procurement.supply_request_detail, name='supply-request-detail'),
    path('api/procurement/requests/<int:pk>/<str:action>', procurement.supply_request_action,
         name='supply-request-action'),
    path('api/procurement', procurement.procurement_list, name='procurement-list'),
    path('api/procurement/<int:pk>', procurement.procurement_detail, name='procurement-detail'),

    # Staff
    path('api/staff', staff.staff_list, name='staff-list'),
    path('api/staff/<int:pk>', staff.staff_detail, name='staff-detail'),
    path('api/staff/<int:pk>/schedule', staff.staff_schedule, name='staff-schedule'),
    path('api/staff/<int:pk>/schedule/<int:schedule_id>', staff.staff_schedule_detail,
         name='staff-schedule-detail'),

    # Emergencies
    path('api/emergencies', emergencies.emergency_list, name='emergency-list'),
    path('api/emergencies/<int:pk>', emergencies.emergency_detail, name='emergency-detail'),
    path('api/emergencies/<int:pk>/response', emergencies.response_list, name='emergency-response-list'),
    path('api/emergencies/<int:pk>/response/<int:response_id>', emergencies.response_detail,
         name='emergency-response-detail'),

    # Dispatch & fleet
    path('api/dispatch', dispatch.dispatch_list, name='dispatch-list'),
    path('api/dispatch/nearest', dispatch.dispatch_nearest, name='dispatch-nearest'),
    path('api/dispatch/ambulances', dispatch.ambulance_list, name='ambulance-list'),
    path('api/dispatch/ambulances/<int:pk>', dispatch.ambulance_detail, name='ambulance-detail'),
    path('api/dispatch/ambulances/<int:pk>/location', dispatch.ambulance_location, name='ambulance-location'),
    path('api/dispatch/ambulances/<int:pk>/maintenance', dispatch.ambulance_maintenance,
         name='ambulance-maintenance'),
    path('api/dispatch/<int:pk>', dispatch.dispatch_detail, name='dispatch-detail'),

    # Transfers
    path('api/transfers', transfers.transfer_list, name='transfer-list'),
    path('api/transfers/available-beds', transfers.transfer_available_beds, name='transfer-available-beds'),
    path('api/transfers/<int:pk>', transfers.transfer_detail, name='transfer-detail'),
    path('api/transfers/<int:pk>/approve', transfers.transfer_approve, name='transfer-approve'),
    path('api/transfers/<int:pk>/reject', transfers.transfer_reject, name='transfer-reject'),

    # Telemedicine
    path('api/telemedicine', telemedicine.session_list, name='telemedicine-list'),
    path('api/telemedicine/token', telemedicine.session_token, name='telemedicine-token'),
    path('api/telemedicine/<int:pk>', telemedicine.session_detail, name='telemedicine-detail'),

    # Dashboard
    path('api/dashboard', dashboard.dashboard_summary, name='dashboard'),
]
