"""
Role based access control.

Each role maps to a list of ``module.read`` / ``module.write`` grants.
Views combine :class:`ModuleAccess` (or :func:`require`) with the scoping
helpers below, which restrict rows to the caller's hospital or county.
"""
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import BasePermission, SAFE_METHODS

SUPER_ROLES = {"SUPER_ADMIN"}
COUNTY_ROLES = {"COUNTY_ADMIN"}

ROLE_PERMISSIONS: dict[str, tuple[str, ...]] = {
    "SUPER_ADMIN": ("*",),
    "COUNTY_ADMIN": (
        "dashboard.read", "triage.read", "patients.read", "transfers.read", "transfers.write",
        "dispatch.read", "referrals.read", "resources.read", "procurement.read", "procurement.write",
        "claims.read", "telemedicine.read", "emergencies.read", "emergencies.write",
        "analytics.read", "staff.read", "hospitals.read", "settings.read", "audit.read",
    ),
    "HOSPITAL_ADMIN": (
        "dashboard.read", "triage.read", "triage.write", "patients.read", "patients.write",
        "transfers.read", "transfers.write", "dispatch.read", "referrals.read", "referrals.write",
        "resources.read", "resources.write", "procurement.read", "procurement.write",
        "claims.read", "claims.write", "telemedicine.read", "telemedicine.write",
        "emergencies.read", "emergencies.write", "analytics.read", "staff.read", "staff.write",
        "hospitals.read", "settings.read", "audit.read",
    ),
    "DOCTOR": (
        "dashboard.read", "triage.read", "patients.read", "patients.write", "transfers.read",
        "referrals.read", "referrals.write", "telemedicine.read", "telemedicine.write",
        "emergencies.read",
    ),
    "NURSE": (
        "dashboard.read", "triage.read", "triage.write", "patients.read", "patients.write",
        "referrals.read",
    ),
    "TRIAGE_OFFICER": (
        "dashboard.read", "triage.read", "triage.write", "patients.read", "patients.write",
    ),
    "DISPATCHER": (
        "dashboard.read", "dispatch.read", "dispatch.write", "ambulances.read", "ambulances.write",
        "emergencies.read", "emergencies.write",
    ),
    "AMBULANCE_DRIVER": ("dashboard.read", "dispatch.read", "ambulances.read"),
    "FINANCE_OFFICER": ("dashboard.read", "claims.read", "claims.write", "analytics.read"),
    "LAB_TECHNICIAN": ("dashboard.read", "patients.read"),
    "PHARMACIST": ("dashboard.read", "patients.read", "resources.read"),
}


def permissions_for(user) -> list[str]:
    return list(ROLE_PERMISSIONS.get(getattr(user, "role", None) or "", ()))


def has_permission(user, perm: str) -> bool:
    if not (user and user.is_authenticated and user.is_active):
        return False
    if user.role in SUPER_ROLES:
        return True
    granted = ROLE_PERMISSIONS.get(user.role, ())
    return "*" in granted or perm in granted


def can_access_module(user, module: str) -> bool:
    return has_permission(user, f"{module}.read") or has_permission(user, f"{module}.write")


def is_super(user) -> bool:
    return bool(user and user.is_authenticated and user.role in SUPER_ROLES)


class ModuleAccess(BasePermission):
    """Read methods need ``<module>.read`` or write; the rest need ``<module>.write``.

    Use as ``ModuleAccess.of('triage')`` inside ``@permission_classes``.
    """
    module = ""

    @classmethod
    def of(cls, module: str):
        return type(f"{module.title()}Access", (cls,), {"module": module})

    def has_permission(self, request, view) -> bool:
        user = getattr(request, "user", None)
        if request.method in SAFE_METHODS:
            return can_access_module(user, self.module)
        return has_permission(user, f"{self.module}.write")


def require(*perms: str):
    """Permission class granting access when the user holds any of ``perms``."""
    class _Require(BasePermission):
        def has_permission(self, request, view) -> bool:
            user = getattr(request, "user", None)
            return any(has_permission(user, p) for p in perms)

    _Require.__name__ = "Require_" + "_".join(p.replace(".", "_") for p in perms)
    return _Require


# ---------------------------------------------------------------------------
# Row scoping
# ---------------------------------------------------------------------------
def scope_queryset(qs, user, *, hospital_field: str = "hospital", county_field: str | None = None):
    """Restrict ``qs`` to rows visible to ``user``.

    ``hospital_field="self"`` scopes a Hospital queryset.  ``county_field``
    defaults to ``<hospital_field>__county`` and is used for county
    administrators and for users without a hospital binding.
    """
    if is_super(user):
        return qs
    if hospital_field == "self":
        hospital_lookup, county_field = "pk", county_field or "county"
    else:
        hospital_lookup = f"{hospital_field}_id"
        county_field = county_field or f"{hospital_field}__county"
    if user.role in COUNTY_ROLES or not user.hospital_id:
        if not user.county_id:
            return qs.none()
        return qs.filter(**{f"{county_field}_id": user.county_id})
    return qs.filter(**{hospital_lookup: user.hospital_id})


def can_access_hospital(user, hospital) -> bool:
    if hospital is None:
        return False
    if is_super(user):
        return True
    if user.role in COUNTY_ROLES or not user.hospital_id:
        return bool(user.county_id) and hospital.county_id == user.county_id
    return hospital.id == user.hospital_id


def ensure_hospital_access(user, hospital) -> None:
    if not can_access_hospital(user, hospital):
        raise PermissionDenied("You do not have access to this facility")


def ensure_county_access(user, county_id) -> None:
    if is_super(user):
        return
    if user.county_id and user.county_id == county_id:
        return
    if user.hospital_id and user.hospital and user.hospital.county_id == county_id:
        return
    raise PermissionDenied("You do not have access to this county")
