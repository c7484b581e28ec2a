"""
Database models for the emergency healthcare backend.

The schema covers counties and their hospitals, staff accounts, patients,
triage, resources, procurement, SHA claims, ambulances and dispatch,
emergencies, transfers and telemedicine.  Status fields are plain enum
columns; the services in :mod:`core.services` guard their transitions.
"""
from __future__ import annotations

from decimal import Decimal

from django.contrib.auth.models import AbstractUser
from django.db import models


def _choices(*values: str) -> list[tuple[str, str]]:
    return [(v, v.replace('_', ' ').title()) for v in values]


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------
ROLE_CHOICES = _choices(
    'SUPER_ADMIN', 'COUNTY_ADMIN', 'HOSPITAL_ADMIN', 'DOCTOR', 'NURSE',
    'TRIAGE_OFFICER', 'DISPATCHER', 'AMBULANCE_DRIVER', 'FINANCE_OFFICER',
    'LAB_TECHNICIAN', 'PHARMACIST',
)
EMPLOYMENT_TYPES = _choices('PERMANENT', 'CONTRACT', 'LOCUM', 'INTERN', 'VOLUNTEER')
CONTRACT_TYPES = _choices('FULL_TIME', 'PART_TIME', 'SESSIONAL')
FACILITY_TYPES = _choices('HOSPITAL', 'HEALTH_CENTER', 'DISPENSARY', 'COUNTY_OFFICE')
SHIFT_TYPES = _choices('MORNING', 'EVENING', 'NIGHT', 'CUSTOM')

HOSPITAL_LEVELS = _choices('LEVEL_2', 'LEVEL_3', 'LEVEL_4', 'LEVEL_5', 'LEVEL_6')
HOSPITAL_TYPES = _choices('PUBLIC', 'PRIVATE', 'FAITH_BASED', 'NGO')
OPERATIONAL_STATUSES = _choices(
    'OPERATIONAL', 'LIMITED_CAPACITY', 'OVERWHELMED', 'CLOSED', 'EMERGENCY_ONLY', 'MAINTENANCE',
)
POWER_STATUSES = _choices('GRID', 'GENERATOR', 'SOLAR', 'HYBRID', 'NONE', 'UNSTABLE')
WATER_STATUSES = _choices('AVAILABLE', 'LIMITED', 'UNAVAILABLE', 'RATIONED')
OXYGEN_STATUSES = _choices('AVAILABLE', 'LIMITED', 'CRITICAL', 'UNAVAILABLE')
INTERNET_STATUSES = _choices('AVAILABLE', 'INTERMITTENT', 'UNAVAILABLE', 'SLOW')
DEPARTMENT_TYPES = _choices(
    'EMERGENCY', 'OUTPATIENT', 'INPATIENT', 'ICU', 'MATERNITY', 'PEDIATRICS',
    'SURGERY', 'LABORATORY', 'PHARMACY', 'RADIOLOGY', 'OTHER',
)

GENDERS = _choices('MALE', 'FEMALE', 'OTHER')
SHA_STATUSES = _choices('NOT_REGISTERED', 'PENDING', 'REGISTERED', 'SUSPENDED')
CONTRIBUTION_STATUSES = _choices('UP_TO_DATE', 'IN_ARREARS', 'NOT_APPLICABLE')
PATIENT_STATUSES = _choices('ACTIVE', 'ADMITTED', 'IN_TRANSFER', 'DISCHARGED', 'DECEASED')
RECORD_TYPES = _choices('CONSULTATION', 'DIAGNOSIS', 'PRESCRIPTION', 'LAB_RESULT', 'PROCEDURE', 'NOTE')

TRIAGE_LEVELS = _choices('IMMEDIATE', 'URGENT', 'LESS_URGENT', 'NON_URGENT')
ARRIVAL_MODES = _choices('WALK_IN', 'AMBULANCE', 'REFERRAL', 'POLICE', 'PRIVATE_VEHICLE', 'OTHER')
TRIAGE_STATUSES = _choices(
    'WAITING', 'IN_ASSESSMENT', 'IN_TREATMENT', 'ADMITTED', 'DISCHARGED',
    'TRANSFERRED', 'LEFT_WITHOUT_BEING_SEEN',
)

RESOURCE_TYPES = _choices(
    'BED', 'ICU_BED', 'EMERGENCY_BED', 'EQUIPMENT', 'VENTILATOR', 'OXYGEN',
    'MEDICATION', 'SUPPLY', 'BLOOD', 'PPE',
)
BED_RESOURCE_TYPES = ('BED', 'ICU_BED', 'EMERGENCY_BED')
RESOURCE_STATUSES = _choices('AVAILABLE', 'IN_USE', 'RESERVED', 'MAINTENANCE', 'OUT_OF_ORDER')
ALERT_SEVERITIES = _choices('LOW', 'MEDIUM', 'HIGH', 'CRITICAL')
ALERT_STATUSES = _choices('ACTIVE', 'ACKNOWLEDGED', 'RESOLVED')

PRIORITIES = _choices('CRITICAL', 'HIGH', 'MEDIUM', 'LOW')
SUPPLY_REQUEST_STATUSES = _choices('PENDING', 'APPROVED', 'REJECTED', 'ORDERED', 'DELIVERED', 'CANCELLED')
PROCUREMENT_TYPES = _choices('DIRECT', 'TENDER', 'FRAMEWORK', 'EMERGENCY', 'DONATION')
PROCUREMENT_STATUSES = _choices(
    'INITIATED', 'TENDER_ISSUED', 'EVALUATION', 'AWARDED', 'CONTRACTED', 'COMPLETED', 'CANCELLED',
)
DELIVERY_STATUSES = _choices('PENDING', 'IN_TRANSIT', 'DELIVERED', 'PARTIAL_DELIVERY', 'DELAYED')
PAYMENT_STATUSES = _choices('PENDING', 'PARTIAL', 'PAID')

VISIT_TYPES = _choices('OUTPATIENT', 'INPATIENT', 'EMERGENCY', 'MATERNITY', 'DAY_CASE')
CLAIM_STATUSES = _choices('DRAFT', 'SUBMITTED', 'IN_REVIEW', 'APPROVED', 'REJECTED', 'RESUBMITTED', 'PAID')

AMBULANCE_TYPES = _choices('BLS', 'ALS', 'PATIENT_TRANSPORT', 'NEONATAL', 'AIR')
EQUIPMENT_LEVELS = _choices('BASIC', 'INTERMEDIATE', 'ADVANCED', 'CRITICAL_CARE')
AMBULANCE_STATUSES = _choices(
    'AVAILABLE', 'DISPATCHED', 'EN_ROUTE', 'ON_SCENE', 'TRANSPORTING', 'AT_HOSPITAL',
    'MAINTENANCE', 'OUT_OF_SERVICE',
)
DISPATCH_SEVERITIES = _choices('LOW', 'MEDIUM', 'HIGH', 'CRITICAL')
DISPATCH_STATUSES = _choices(
    'RECEIVED', 'DISPATCHED', 'EN_ROUTE', 'ON_SCENE', 'TRANSPORTING', 'AT_HOSPITAL',
    'COMPLETED', 'CANCELLED',
)

EMERGENCY_TYPES = _choices(
    'MEDICAL', 'TRAUMA', 'OBSTETRIC', 'PEDIATRIC', 'CARDIAC', 'STROKE', 'RESPIRATORY',
    'MASS_CASUALTY', 'NATURAL_DISASTER', 'TRAFFIC_ACCIDENT', 'FIRE', 'DROWNING',
    'POISONING', 'ASSAULT', 'OTHER',
)
EMERGENCY_SEVERITIES = _choices('MINOR', 'MODERATE', 'SEVERE', 'MAJOR', 'CATASTROPHIC')
EMERGENCY_STATUSES = _choices(
    'REPORTED', 'CONFIRMED', 'RESPONDING', 'ON_SCENE', 'UNDER_CONTROL', 'RESOLVED', 'ARCHIVED',
)
RESPONSE_STATUSES = _choices(
    'DISPATCHED', 'EN_ROUTE', 'ON_SCENE', 'TREATING', 'TRANSPORTING', 'COMPLETED', 'CANCELLED',
)

TRANSFER_URGENCIES = _choices('IMMEDIATE', 'URGENT', 'SCHEDULED', 'ROUTINE')
TRANSPORT_MODES = _choices(
    'AMBULANCE', 'AIR_AMBULANCE', 'PRIVATE_VEHICLE', 'INTER_FACILITY_TRANSPORT', 'PUBLIC_TRANSPORT',
)
TRANSFER_STATUSES = _choices('REQUESTED', 'APPROVED', 'REJECTED', 'IN_TRANSIT', 'COMPLETED', 'CANCELLED')

REQUESTING_FACILITY_TYPES = _choices('HOSPITAL', 'HEALTH_CENTER', 'DISPENSARY')
CONSULTATION_TYPES = _choices('EMERGENCY', 'SPECIALIST', 'SECOND_OPINION', 'FOLLOW_UP', 'DIAGNOSTIC_REVIEW')
SESSION_STATUSES = _choices('SCHEDULED', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED', 'NO_SHOW', 'TECHNICAL_FAILURE')
CONNECTION_QUALITIES = _choices('EXCELLENT', 'GOOD', 'FAIR', 'POOR', 'FAILED')

AUDIT_ACTIONS = _choices(
    'CREATE', 'READ', 'UPDATE', 'DELETE', 'LOGIN', 'LOGOUT', 'APPROVE', 'REJECT',
    'TRANSFER', 'DISCHARGE', 'PRESCRIBE', 'SUBMIT_CLAIM', 'CANCEL', 'OVERRIDE',
)


# ---------------------------------------------------------------------------
# Facilities
# ---------------------------------------------------------------------------
class County(models.Model):
    """One of Kenya's 47 counties; the unit of regional administration."""
    name = models.CharField(max_length=100, unique=True)
    code = models.CharField(max_length=10, unique=True)

    class Meta:
        verbose_name_plural = 'counties'
        ordering = ['name']

    def __str__(self) -> str:
        return self.name


class Hospital(models.Model):
    """A health facility with its live capacity and utility status.

    Bed counts are kept both as totals and as currently-available values so
    the capacity endpoints can compute occupancy without scanning resources.
    """
    name = models.CharField(max_length=255)
    code = models.CharField(max_length=30, unique=True)
    county = models.ForeignKey(County, on_delete=models.PROTECT, related_name='hospitals')
    level = models.CharField(max_length=10, choices=HOSPITAL_LEVELS, default='LEVEL_4')
    type = models.CharField(max_length=20, choices=HOSPITAL_TYPES, default='PUBLIC')
    address = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=30, blank=True)
    email = models.EmailField(blank=True)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)

    total_beds = models.PositiveIntegerField(default=0)
    available_beds = models.PositiveIntegerField(default=0)
    icu_beds = models.PositiveIntegerField(default=0)
    available_icu_beds = models.PositiveIntegerField(default=0)
    emergency_beds = models.PositiveIntegerField(default=0)
    available_emergency_beds = models.PositiveIntegerField(default=0)
    maternity_beds = models.PositiveIntegerField(default=0)
    available_maternity_beds = models.PositiveIntegerField(default=0)
    pediatric_beds = models.PositiveIntegerField(default=0)
    available_pediatric_beds = models.PositiveIntegerField(default=0)

    operational_status = models.CharField(
        max_length=20, choices=OPERATIONAL_STATUSES, default='OPERATIONAL', db_index=True
    )
    accepting_patients = models.BooleanField(default=True, db_index=True)
    emergency_only_mode = models.BooleanField(default=False)
    power_status = models.CharField(max_length=12, choices=POWER_STATUSES, default='GRID')
    water_status = models.CharField(max_length=12, choices=WATER_STATUSES, default='AVAILABLE')
    oxygen_status = models.CharField(max_length=12, choices=OXYGEN_STATUSES, default='AVAILABLE')
    internet_status = models.CharField(max_length=12, choices=INTERNET_STATUSES, default='AVAILABLE')
    status_notes = models.TextField(blank=True)
    sha_contracted = models.BooleanField(default=True)
    is_active = models.BooleanField(default=True)
    last_capacity_update = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        indexes = [models.Index(fields=['county', 'operational_status'])]

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"


class Department(models.Model):
    hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='departments')
    name = models.CharField(max_length=120)
    type = models.CharField(max_length=20, choices=DEPARTMENT_TYPES, default='OTHER')
    total_beds = models.PositiveIntegerField(default=0)
    available_beds = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        unique_together = [('hospital', 'name')]
        ordering = ['hospital_id', 'name']

    def __str__(self) -> str:
        return f"{self.name} @ {self.hospital_id}"


# ---------------------------------------------------------------------------
# Staff accounts
# ---------------------------------------------------------------------------
class User(AbstractUser):
    """Staff account.  Every login belongs to a role and, below county
    level, to a single hospital which scopes what the user can see."""
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='NURSE', db_index=True)
    staff_number = models.CharField(max_length=20, unique=True, null=True, blank=True)
    phone = models.CharField(max_length=30, blank=True)
    specialization = models.CharField(max_length=120, blank=True)
    license_number = models.CharField(max_length=60, blank=True)
    hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='staff'
    )
    department = models.ForeignKey(
        Department, null=True, blank=True, on_delete=models.SET_NULL, related_name='staff'
    )
    county = models.ForeignKey(County, null=True, blank=True, on_delete=models.SET_NULL, related_name='staff')
    employment_type = models.CharField(max_length=12, choices=EMPLOYMENT_TYPES, default='PERMANENT')
    contract_type = models.CharField(max_length=12, choices=CONTRACT_TYPES, default='FULL_TIME')
    facility_type = models.CharField(max_length=15, choices=FACILITY_TYPES, default='HOSPITAL')
    hire_date = models.DateField(null=True, blank=True)
    is_on_duty = models.BooleanField(default=False)

    @property
    def full_name(self) -> str:
        return self.get_full_name() or self.username

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class StaffSchedule(models.Model):
    """A shift interval for one staff member."""
    staff = models.ForeignKey(User, on_delete=models.CASCADE, related_name='schedules')
    hospital = models.ForeignKey(Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='schedules')
    department = models.ForeignKey(Department, null=True, blank=True, on_delete=models.SET_NULL)
    shift_type = models.CharField(max_length=10, choices=SHIFT_TYPES)
    start_time = models.DateTimeField()
    end_time = models.DateTimeField()
    notes = models.CharField(max_length=255, blank=True)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='created_schedules'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['start_time']
        indexes = [models.Index(fields=['staff', 'start_time', 'end_time'])]

    def __str__(self):
        return f"Shift(s={self.staff_id}, {self.start_time:%F %T}~{self.end_time:%F %T})"


# ---------------------------------------------------------------------------
# Patients
# ---------------------------------------------------------------------------
class Patient(models.Model):
    patient_number = models.CharField(max_length=20, unique=True)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    other_names = models.CharField(max_length=100, blank=True)
    date_of_birth = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=10, choices=GENDERS, blank=True)
    phone = models.CharField(max_length=30, blank=True, db_index=True)
    email = models.EmailField(blank=True)
    address = models.CharField(max_length=255, blank=True)
    national_id = models.CharField(max_length=20, unique=True, null=True, blank=True)
    sha_number = models.CharField(max_length=30, unique=True, null=True, blank=True)
    sha_status = models.CharField(max_length=15, choices=SHA_STATUSES, default='NOT_REGISTERED')
    contribution_status = models.CharField(max_length=15, choices=CONTRIBUTION_STATUSES, default='NOT_APPLICABLE')
    sha_registration_date = models.DateField(null=True, blank=True)
    blood_type = models.CharField(max_length=5, blank=True)
    allergies = models.JSONField(default=list, blank=True)
    chronic_conditions = models.JSONField(default=list, blank=True)
    current_status = models.CharField(max_length=12, choices=PATIENT_STATUSES, default='ACTIVE', db_index=True)
    current_hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='current_patients'
    )
    county = models.ForeignKey(County, null=True, blank=True, on_delete=models.SET_NULL, related_name='patients')
    next_of_kin_name = models.CharField(max_length=200, blank=True)
    next_of_kin_phone = models.CharField(max_length=30, blank=True)
    next_of_kin_relationship = models.CharField(max_length=50, blank=True)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    @property
    def full_name(self) -> str:
        return ' '.join(p for p in [self.first_name, self.other_names, self.last_name] if p)

    def __str__(self) -> str:
        return f"{self.full_name} ({self.patient_number})"


class MedicalRecord(models.Model):
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='medical_records')
    hospital = models.ForeignKey(Hospital, null=True, blank=True, on_delete=models.SET_NULL)
    record_type = models.CharField(max_length=15, choices=RECORD_TYPES, default='NOTE')
    title = models.CharField(max_length=200)
    diagnosis = models.CharField(max_length=255, blank=True)
    icd10_codes = models.JSONField(default=list, blank=True)
    details = models.TextField(blank=True)
    prescriptions = models.JSONField(default=list, blank=True)
    recorded_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    recorded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-recorded_at']


# ---------------------------------------------------------------------------
# Triage
# ---------------------------------------------------------------------------
class TriageEntry(models.Model):
    triage_number = models.CharField(max_length=20, unique=True)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='triage_entries')
    hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='triage_entries')
    department = models.ForeignKey(
        Department, null=True, blank=True, on_delete=models.SET_NULL, related_name='triage_entries'
    )
    chief_complaint = models.CharField(max_length=500)
    triage_level = models.CharField(max_length=12, choices=TRIAGE_LEVELS, db_index=True)
    arrival_mode = models.CharField(max_length=16, choices=ARRIVAL_MODES, default='WALK_IN')
    vital_signs = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=25, choices=TRIAGE_STATUSES, default='WAITING', db_index=True)
    arrival_time = models.DateTimeField(db_index=True)
    assessed_at = models.DateTimeField(null=True, blank=True)
    assessed_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    completed_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)
    disposition = models.CharField(max_length=255, blank=True)
    diagnosis = models.CharField(max_length=255, blank=True)
    treatment_given = models.TextField(blank=True)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = 'triage entries'
        indexes = [models.Index(fields=['hospital', 'status', 'arrival_time'])]

    def __str__(self) -> str:
        return f"{self.triage_number} [{self.triage_level}/{self.status}]"


class TriageTransition(models.Model):
    """Records a status transition for a triage entry."""
    entry = models.ForeignKey(TriageEntry, related_name='transitions', on_delete=models.CASCADE)
    from_status = models.CharField(max_length=25, null=True, blank=True)
    to_status = models.CharField(max_length=25)
    operator = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='triage_transitions')
    timestamp = models.DateTimeField(auto_now_add=True)
    reason = models.CharField(max_length=255, blank=True)

    def __str__(self) -> str:
        return f"{self.entry_id}: {self.from_status} → {self.to_status}"


# ---------------------------------------------------------------------------
# Resources & alerts
# ---------------------------------------------------------------------------
class Resource(models.Model):
    """A countable hospital resource: beds, equipment, stock.

    ``available + reserved + in_use`` never exceeds ``total_capacity``.
    """
    name = models.CharField(max_length=200)
    type = models.CharField(max_length=15, choices=RESOURCE_TYPES, db_index=True)
    category = models.CharField(max_length=100)
    hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='resources')
    department = models.ForeignKey(
        Department, null=True, blank=True, on_delete=models.SET_NULL, related_name='resources'
    )
    total_capacity = models.PositiveIntegerField()
    available_capacity = models.PositiveIntegerField(default=0)
    reserved_capacity = models.PositiveIntegerField(default=0)
    in_use_capacity = models.PositiveIntegerField(default=0)
    unit = models.CharField(max_length=30)
    minimum_level = models.PositiveIntegerField(default=0)
    critical_level = models.PositiveIntegerField(default=0)
    reorder_level = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=15, choices=RESOURCE_STATUSES, default='AVAILABLE')
    is_critical = models.BooleanField(default=False)
    is_operational = models.BooleanField(default=True)
    last_maintenance = models.DateTimeField(null=True, blank=True)
    next_maintenance = models.DateTimeField(null=True, blank=True)
    expiry_date = models.DateTimeField(null=True, blank=True)
    last_restock = models.DateTimeField(null=True, blank=True)
    supplier = models.CharField(max_length=200, blank=True)
    unit_cost = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['hospital_id', 'name']
        indexes = [models.Index(fields=['hospital', 'type', 'status'])]

    def __str__(self) -> str:
        return f"{self.name} ({self.available_capacity}/{self.total_capacity} {self.unit})"


class SystemAlert(models.Model):
    alert_number = models.CharField(max_length=30, unique=True)
    alert_type = models.CharField(max_length=40, db_index=True)
    severity = models.CharField(max_length=10, choices=ALERT_SEVERITIES, default='MEDIUM')
    title = models.CharField(max_length=200)
    message = models.TextField()
    source_type = models.CharField(max_length=40, blank=True)
    source_id = models.CharField(max_length=40, blank=True)
    hospital = models.ForeignKey(Hospital, null=True, blank=True, on_delete=models.CASCADE, related_name='alerts')
    county = models.ForeignKey(County, null=True, blank=True, on_delete=models.CASCADE, related_name='alerts')
    status = models.CharField(max_length=15, choices=ALERT_STATUSES, default='ACTIVE', db_index=True)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    acknowledged_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    acknowledged_at = models.DateTimeField(null=True, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']


# ---------------------------------------------------------------------------
# Procurement
# ---------------------------------------------------------------------------
class SupplyRequest(models.Model):
    request_number = models.CharField(max_length=20, unique=True)
    hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='supply_requests')
    department = models.ForeignKey(Department, null=True, blank=True, on_delete=models.SET_NULL)
    resource = models.ForeignKey(
        Resource, null=True, blank=True, on_delete=models.SET_NULL, related_name='supply_requests'
    )
    items = models.JSONField(default=list)
    total_estimated_cost = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    justification = models.TextField()
    priority = models.CharField(max_length=10, choices=PRIORITIES, default='MEDIUM')
    requested_by = models.ForeignKey(User, null=True, on_delete=models.SET_NULL, related_name='supply_requests')
    approved_by_hod = models.BooleanField(default=False)
    approved_by_admin = models.BooleanField(default=False)
    approved_by_county = models.BooleanField(default=False)
    status = models.CharField(max_length=10, choices=SUPPLY_REQUEST_STATUSES, default='PENDING', db_index=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)
    ordered_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    purchase_order_number = models.CharField(max_length=40, blank=True)
    supplier_selected = models.CharField(max_length=200, blank=True)
    actual_cost = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']


class Procurement(models.Model):
    procurement_number = models.CharField(max_length=20, unique=True)
    hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='procurements')
    supply_request = models.ForeignKey(
        SupplyRequest, null=True, blank=True, on_delete=models.SET_NULL, related_name='procurements'
    )
    procurement_type = models.CharField(max_length=10, choices=PROCUREMENT_TYPES)
    items = models.JSONField(default=list)
    total_value = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0'))
    supplier_name = models.CharField(max_length=200, blank=True)
    supplier_contact = models.CharField(max_length=200, blank=True)
    tender_number = models.CharField(max_length=40, blank=True)
    contract_number = models.CharField(max_length=40, blank=True)
    status = models.CharField(max_length=15, choices=PROCUREMENT_STATUSES, default='INITIATED', db_index=True)
    delivery_status = models.CharField(max_length=16, choices=DELIVERY_STATUSES, default='PENDING')
    payment_status = models.CharField(max_length=10, choices=PAYMENT_STATUSES, default='PENDING')
    payment_amount = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    expected_delivery_date = models.DateField(null=True, blank=True)
    actual_delivery_date = models.DateField(null=True, blank=True)
    approved_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']


# ---------------------------------------------------------------------------
# SHA claims
# ---------------------------------------------------------------------------
class ShaClaim(models.Model):
    claim_number = models.CharField(max_length=20, unique=True)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='sha_claims')
    hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='sha_claims')
    service_date = models.DateField()
    service_type = models.CharField(max_length=100)
    visit_type = models.CharField(max_length=12, choices=VISIT_TYPES, default='OUTPATIENT')
    diagnosis = models.CharField(max_length=255)
    icd10_codes = models.JSONField(default=list, blank=True)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    sha_approved_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    patient_copay = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    patient_paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    outstanding_balance = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    status = models.CharField(max_length=12, choices=CLAIM_STATUSES, default='DRAFT', db_index=True)
    submitted_at = models.DateTimeField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def save(self, *args, **kwargs):
        balance = self.total_amount - self.sha_approved_amount - self.patient_paid_amount
        self.outstanding_balance = max(balance, Decimal('0'))
        super().save(*args, **kwargs)


# ---------------------------------------------------------------------------
# Ambulances & dispatch
# ---------------------------------------------------------------------------
class Ambulance(models.Model):
    registration_number = models.CharField(max_length=20, unique=True)
    hospital = models.ForeignKey(Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='ambulances')
    county = models.ForeignKey(County, null=True, blank=True, on_delete=models.SET_NULL, related_name='ambulances')
    type = models.CharField(max_length=20, choices=AMBULANCE_TYPES, default='BLS')
    equipment_level = models.CharField(max_length=15, choices=EQUIPMENT_LEVELS, default='BASIC')
    status = models.CharField(max_length=15, choices=AMBULANCE_STATUSES, default='AVAILABLE', db_index=True)
    is_operational = models.BooleanField(default=True)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)
    last_location_update = models.DateTimeField(null=True, blank=True)
    driver_name = models.CharField(max_length=120, blank=True)
    driver_phone = models.CharField(max_length=30, blank=True)
    paramedic_name = models.CharField(max_length=120, blank=True)
    fuel_level = models.PositiveIntegerField(default=100)
    mileage = models.PositiveIntegerField(default=0)
    last_service_date = models.DateField(null=True, blank=True)
    next_service_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['registration_number']

    def __str__(self) -> str:
        return f"{self.registration_number} [{self.status}]"


class AmbulanceMaintenance(models.Model):
    ambulance = models.ForeignKey(Ambulance, on_delete=models.CASCADE, related_name='maintenance_records')
    type = models.CharField(max_length=100)
    description = models.TextField()
    cost = models.DecimalField(max_digits=12, decimal_places=2)
    performed_by = models.CharField(max_length=200)
    date = models.DateField()
    next_service_date = models.DateField(null=True, blank=True)
    recorded_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-date']


class Emergency(models.Model):
    emergency_number = models.CharField(max_length=40, unique=True)
    type = models.CharField(max_length=20, choices=EMERGENCY_TYPES)
    severity = models.CharField(max_length=15, choices=EMERGENCY_SEVERITIES)
    county = models.ForeignKey(County, on_delete=models.PROTECT, related_name='emergencies')
    location = models.CharField(max_length=255)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)
    description = models.TextField()
    estimated_casualties = models.PositiveIntegerField(default=0)
    reported_by = models.CharField(max_length=120, blank=True)
    reporter_phone = models.CharField(max_length=30, blank=True)
    status = models.CharField(max_length=15, choices=EMERGENCY_STATUSES, default='REPORTED', db_index=True)
    reported_at = models.DateTimeField(auto_now_add=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = 'emergencies'
        ordering = ['-reported_at']

    def __str__(self) -> str:
        return f"{self.emergency_number} [{self.type}/{self.severity}]"


class EmergencyResponse(models.Model):
    emergency = models.ForeignKey(Emergency, on_delete=models.CASCADE, related_name='responses')
    hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='emergency_responses')
    ambulance = models.ForeignKey(
        Ambulance, null=True, blank=True, on_delete=models.SET_NULL, related_name='emergency_responses'
    )
    staff_deployed = models.ManyToManyField(User, blank=True, related_name='emergency_deployments')
    equipment_deployed = models.JSONField(default=list, blank=True)
    supplies_deployed = models.JSONField(default=list, blank=True)
    status = models.CharField(max_length=15, choices=RESPONSE_STATUSES, default='DISPATCHED')
    dispatched_at = models.DateTimeField(auto_now_add=True)
    arrived_at = models.DateTimeField(null=True, blank=True)
    departed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    patients_treated = models.PositiveIntegerField(default=0)
    patients_transported = models.PositiveIntegerField(default=0)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')

    class Meta:
        ordering = ['-dispatched_at']


class DispatchLog(models.Model):
    dispatch_number = models.CharField(max_length=20, unique=True)
    caller_phone = models.CharField(max_length=30)
    caller_name = models.CharField(max_length=120, blank=True)
    caller_location = models.CharField(max_length=255)
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)
    landmark = models.CharField(max_length=255, blank=True)
    emergency_type = models.CharField(max_length=20, choices=EMERGENCY_TYPES)
    severity = models.CharField(max_length=10, choices=DISPATCH_SEVERITIES)
    description = models.TextField()
    patient_count = models.PositiveIntegerField(default=1)
    status = models.CharField(max_length=15, choices=DISPATCH_STATUSES, default='RECEIVED', db_index=True)
    call_received = models.DateTimeField(auto_now_add=True)
    dispatched = models.DateTimeField(null=True, blank=True)
    arrived_on_scene = models.DateTimeField(null=True, blank=True)
    departed_scene = models.DateTimeField(null=True, blank=True)
    arrived_hospital = models.DateTimeField(null=True, blank=True)
    cleared = models.DateTimeField(null=True, blank=True)
    response_time = models.PositiveIntegerField(null=True, blank=True, help_text="Seconds from dispatch to scene")
    transport_time = models.PositiveIntegerField(null=True, blank=True, help_text="Seconds from scene to hospital")
    ambulance = models.ForeignKey(Ambulance, null=True, blank=True, on_delete=models.SET_NULL, related_name='dispatches')
    destination_hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='incoming_dispatches'
    )
    county = models.ForeignKey(County, null=True, blank=True, on_delete=models.SET_NULL, related_name='dispatches')
    emergency = models.ForeignKey(Emergency, null=True, blank=True, on_delete=models.SET_NULL, related_name='dispatches')
    dispatcher = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='dispatches')
    instructions_given = models.TextField(blank=True)
    outcome = models.CharField(max_length=255, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ['-call_received']

    def __str__(self) -> str:
        return f"{self.dispatch_number} [{self.status}]"


# ---------------------------------------------------------------------------
# Transfers
# ---------------------------------------------------------------------------
class Transfer(models.Model):
    transfer_number = models.CharField(max_length=20, unique=True)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='transfers')
    origin_hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='outgoing_transfers')
    destination_hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='incoming_transfers')
    reason = models.TextField()
    urgency = models.CharField(max_length=10, choices=TRANSFER_URGENCIES)
    diagnosis = models.CharField(max_length=255)
    vital_signs = models.JSONField(default=dict, blank=True)
    transport_mode = models.CharField(max_length=25, choices=TRANSPORT_MODES)
    ambulance = models.ForeignKey(Ambulance, null=True, blank=True, on_delete=models.SET_NULL, related_name='transfers')
    required_resources = models.JSONField(default=list, blank=True)
    special_needs = models.TextField(blank=True)
    status = models.CharField(max_length=12, choices=TRANSFER_STATUSES, default='REQUESTED', db_index=True)
    requested_at = models.DateTimeField(auto_now_add=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    departed_at = models.DateTimeField(null=True, blank=True)
    arrived_at = models.DateTimeField(null=True, blank=True)
    bed_reserved = models.BooleanField(default=False)
    bed_number = models.CharField(max_length=30, blank=True)
    accepted_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    rejection_reason = models.TextField(blank=True)
    requested_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    notes = models.TextField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-requested_at']

    def __str__(self) -> str:
        return f"{self.transfer_number} [{self.status}]"


# ---------------------------------------------------------------------------
# Telemedicine
# ---------------------------------------------------------------------------
class TelemedicineSession(models.Model):
    session_number = models.CharField(max_length=20, unique=True)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='telemedicine_sessions')
    specialist = models.ForeignKey(User, on_delete=models.CASCADE, related_name='telemedicine_sessions')
    provider_hospital = models.ForeignKey(Hospital, on_delete=models.CASCADE, related_name='provided_sessions')
    requesting_hospital = models.ForeignKey(
        Hospital, null=True, blank=True, on_delete=models.SET_NULL, related_name='requested_sessions'
    )
    requesting_facility_type = models.CharField(max_length=15, choices=REQUESTING_FACILITY_TYPES)
    consultation_type = models.CharField(max_length=20, choices=CONSULTATION_TYPES)
    chief_complaint = models.CharField(max_length=500)
    clinical_summary = models.TextField(blank=True)
    scheduled_time = models.DateTimeField(db_index=True)
    status = models.CharField(max_length=20, choices=SESSION_STATUSES, default='SCHEDULED', db_index=True)
    start_time = models.DateTimeField(null=True, blank=True)
    end_time = models.DateTimeField(null=True, blank=True)
    duration = models.PositiveIntegerField(null=True, blank=True, help_text="Minutes")
    diagnosis = models.CharField(max_length=255, blank=True)
    recommendations = models.TextField(blank=True)
    prescriptions = models.JSONField(default=list, blank=True)
    requires_in_person_visit = models.BooleanField(default=False)
    requires_referral = models.BooleanField(default=False)
    connection_quality = models.CharField(max_length=10, choices=CONNECTION_QUALITIES, blank=True)
    audio_quality = models.PositiveSmallIntegerField(null=True, blank=True)
    video_quality = models.PositiveSmallIntegerField(null=True, blank=True)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name='+')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-scheduled_time']


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------
class AuditEvent(models.Model):
    """Append-only audit trail row."""
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    user_role = models.CharField(max_length=20, blank=True)
    user_name = models.CharField(max_length=200, blank=True)
    action = models.CharField(max_length=20, choices=AUDIT_ACTIONS)
    entity_type = models.CharField(max_length=64)
    entity_id = models.CharField(max_length=64, blank=True)
    description = models.CharField(max_length=500, blank=True)
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=300, blank=True)
    hospital = models.ForeignKey(Hospital, on_delete=models.SET_NULL, null=True, blank=True, related_name='+')
    success = models.BooleanField(default=True)
    error_message = models.CharField(max_length=500, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['action', 'created_at']),
            models.Index(fields=['entity_type', 'entity_id', 'created_at']),
        ]

    def __str__(self) -> str:
        return f"{self.action} {self.entity_type}:{self.entity_id} by {self.user_name or '-'}"
