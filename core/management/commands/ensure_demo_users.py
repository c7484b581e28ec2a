from django.core.management.base import BaseCommand
from django.contrib.auth.hashers import make_password

from core.models import User, County, Hospital, ROLE_CHOICES

DEMO_PASSWORD = "Demo@2024!"
DEMO_DOMAIN = "demo.ems.local"


def demo_placement():
    county, _ = County.objects.get_or_create(code="047", defaults={"name": "Nairobi"})
    hospital, _ = Hospital.objects.get_or_create(
        code="KNH-001",
        defaults={"name": "Kenyatta National Hospital", "county": county, "level": "LEVEL_6",
                  "latitude": -1.3011, "longitude": 36.8073},
    )
    return county, hospital


class Command(BaseCommand):
    help = "Ensure one active demo account per role exists with the demo password (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("--password", default=DEMO_PASSWORD)

    def handle(self, *args, **opts):
        county, hospital = demo_placement()
        password = make_password(opts["password"])
        for role, _ in ROLE_CHOICES:
            email = f"{role.lower()}@{DEMO_DOMAIN}"
            placement = {}
            if role == "COUNTY_ADMIN":
                placement = {"county": county}
            elif role != "SUPER_ADMIN":
                placement = {"hospital": hospital, "county": county}
            u, created = User.objects.get_or_create(
                email=email,
                defaults={
                    "username": email,
                    "role": role,
                    "password": password,
                    "first_name": "Demo",
                    "last_name": role.replace("_", " ").title(),
                    "staff_number": f"DEMO-{role[:12]}",
                    "is_active": True,
                    "is_staff": role == "SUPER_ADMIN",
                    "is_superuser": role == "SUPER_ADMIN",
                    **placement,
                },
            )
            if not created:
                # reset password, activation and role
                u.password = password
                u.role = role
                u.is_active = True
                u.save(update_fields=["password", "role", "is_active"])
            self.stdout.write(self.style.SUCCESS(f"ok: {email} ({role})"))
        self.stdout.write(self.style.SUCCESS("All demo users ensured."))
