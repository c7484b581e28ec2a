"""
Django admin registrations for the core models.

Superusers use ``/admin/`` to inspect facilities, fleets and queues and to
activate staff accounts that arrived through self-registration.  Audit
rows are read-only here as well.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import (
    County,
    Hospital,
    Department,
    User,
    StaffSchedule,
    Patient,
    MedicalRecord,
    TriageEntry,
    TriageTransition,
    Resource,
    SystemAlert,
    SupplyRequest,
    Procurement,
    ShaClaim,
    Ambulance,
    AmbulanceMaintenance,
    Emergency,
    EmergencyResponse,
    DispatchLog,
    Transfer,
    TelemedicineSession,
    AuditEvent,
)


@admin.register(County)
class CountyAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'code')
    search_fields = ('name', 'code')


@admin.register(Hospital)
class HospitalAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'code', 'county', 'level', 'operational_status', 'available_beds',
                    'total_beds', 'accepting_patients')
    list_filter = ('county', 'level', 'type', 'operational_status', 'is_active')
    search_fields = ('name', 'code')


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'hospital', 'type', 'available_beds', 'total_beds', 'is_active')
    list_filter = ('type', 'is_active')
    search_fields = ('name', 'hospital__name')


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ('email', 'first_name', 'last_name', 'role', 'hospital', 'county', 'is_active')
    list_filter = ('role', 'is_active', 'hospital', 'county')
    search_fields = ('email', 'username', 'first_name', 'last_name', 'staff_number')
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Placement', {'fields': ('role', 'staff_number', 'phone', 'specialization', 'license_number',
                                  'hospital', 'department', 'county', 'employment_type', 'contract_type',
                                  'facility_type', 'hire_date', 'is_on_duty')}),
    )


@admin.register(StaffSchedule)
class StaffScheduleAdmin(admin.ModelAdmin):
    list_display = ('staff', 'hospital', 'shift_type', 'start_time', 'end_time', 'is_active')
    list_filter = ('shift_type', 'is_active')
    search_fields = ('staff__email', 'staff__last_name')


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('patient_number', 'first_name', 'last_name', 'gender', 'sha_status', 'current_status',
                    'current_hospital')
    list_filter = ('gender', 'sha_status', 'current_status', 'county')
    search_fields = ('patient_number', 'first_name', 'last_name', 'national_id', 'sha_number', 'phone')


@admin.register(MedicalRecord)
class MedicalRecordAdmin(admin.ModelAdmin):
    list_display = ('patient', 'record_type', 'title', 'hospital', 'recorded_at')
    list_filter = ('record_type',)
    search_fields = ('patient__patient_number', 'title', 'diagnosis')


@admin.register(TriageEntry)
class TriageEntryAdmin(admin.ModelAdmin):
    list_display = ('triage_number', 'patient', 'hospital', 'triage_level', 'status', 'arrival_time')
    list_filter = ('triage_level', 'status', 'hospital')
    search_fields = ('triage_number', 'patient__patient_number', 'chief_complaint')


@admin.register(TriageTransition)
class TriageTransitionAdmin(admin.ModelAdmin):
    list_display = ('entry', 'from_status', 'to_status', 'operator', 'timestamp')
    list_filter = ('to_status',)
    search_fields = ('entry__triage_number', 'operator__email')


@admin.register(Resource)
class ResourceAdmin(admin.ModelAdmin):
    list_display = ('name', 'type', 'hospital', 'available_capacity', 'total_capacity', 'status', 'is_critical')
    list_filter = ('type', 'status', 'is_critical')
    search_fields = ('name', 'category', 'hospital__name')


@admin.register(SystemAlert)
class SystemAlertAdmin(admin.ModelAdmin):
    list_display = ('alert_number', 'alert_type', 'severity', 'title', 'hospital', 'status', 'created_at')
    list_filter = ('severity', 'status', 'alert_type')
    search_fields = ('alert_number', 'title')


@admin.register(SupplyRequest)
class SupplyRequestAdmin(admin.ModelAdmin):
    list_display = ('request_number', 'hospital', 'priority', 'status', 'total_estimated_cost', 'created_at')
    list_filter = ('status', 'priority')
    search_fields = ('request_number', 'hospital__name')


@admin.register(Procurement)
class ProcurementAdmin(admin.ModelAdmin):
    list_display = ('procurement_number', 'hospital', 'procurement_type', 'status', 'delivery_status',
                    'payment_status', 'total_value')
    list_filter = ('procurement_type', 'status', 'delivery_status', 'payment_status')
    search_fields = ('procurement_number', 'supplier_name', 'tender_number')


@admin.register(ShaClaim)
class ShaClaimAdmin(admin.ModelAdmin):
    list_display = ('claim_number', 'patient', 'hospital', 'status', 'total_amount', 'sha_approved_amount')
    list_filter = ('status', 'visit_type')
    search_fields = ('claim_number', 'patient__patient_number', 'diagnosis')


@admin.register(Ambulance)
class AmbulanceAdmin(admin.ModelAdmin):
    list_display = ('registration_number', 'hospital', 'type', 'status', 'is_operational', 'fuel_level')
    list_filter = ('type', 'status', 'equipment_level', 'is_operational')
    search_fields = ('registration_number', 'driver_name')


@admin.register(AmbulanceMaintenance)
class AmbulanceMaintenanceAdmin(admin.ModelAdmin):
    list_display = ('ambulance', 'type', 'date', 'cost', 'performed_by')
    search_fields = ('ambulance__registration_number', 'type')


@admin.register(Emergency)
class EmergencyAdmin(admin.ModelAdmin):
    list_display = ('emergency_number', 'type', 'severity', 'county', 'status', 'reported_at')
    list_filter = ('type', 'severity', 'status')
    search_fields = ('emergency_number', 'location', 'description')


@admin.register(EmergencyResponse)
class EmergencyResponseAdmin(admin.ModelAdmin):
    list_display = ('emergency', 'hospital', 'ambulance', 'status', 'dispatched_at')
    list_filter = ('status',)
    search_fields = ('emergency__emergency_number', 'hospital__name')


@admin.register(DispatchLog)
class DispatchLogAdmin(admin.ModelAdmin):
    list_display = ('dispatch_number', 'emergency_type', 'severity', 'status', 'ambulance', 'call_received')
    list_filter = ('status', 'severity', 'emergency_type')
    search_fields = ('dispatch_number', 'caller_phone', 'caller_location')


@admin.register(Transfer)
class TransferAdmin(admin.ModelAdmin):
    list_display = ('transfer_number', 'patient', 'origin_hospital', 'destination_hospital', 'urgency', 'status')
    list_filter = ('status', 'urgency', 'transport_mode')
    search_fields = ('transfer_number', 'patient__patient_number')


@admin.register(TelemedicineSession)
class TelemedicineSessionAdmin(admin.ModelAdmin):
    list_display = ('session_number', 'patient', 'specialist', 'consultation_type', 'status', 'scheduled_time')
    list_filter = ('status', 'consultation_type')
    search_fields = ('session_number', 'patient__patient_number', 'specialist__email')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'user_name', 'user_role', 'action', 'entity_type', 'entity_id', 'success')
    list_filter = ('action', 'entity_type', 'success')
    search_fields = ('user_name', 'description', 'entity_id')

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
