"""
Management command to populate the database with demo data.
"""
import random
from datetime import date, timedelta

from django.core.management import call_command
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from core.models import County, Hospital, Department, Patient, Ambulance, Resource
from core.services.common import next_number

COUNTIES = [
    ("047", "Nairobi"), ("001", "Mombasa"), ("042", "Kisumu"), ("032", "Nakuru"), ("027", "Uasin Gishu"),
]

HOSPITALS = [
    # code, name, county code, level, lat, lng
    ("KNH-001", "Kenyatta National Hospital", "047", "LEVEL_6", -1.3011, 36.8073),
    ("MBG-001", "Mbagathi County Hospital", "047", "LEVEL_4", -1.3077, 36.8020),
    ("CPGH-001", "Coast General Teaching and Referral Hospital", "001", "LEVEL_5", -4.0547, 39.6636),
    ("JOOTRH-001", "Jaramogi Oginga Odinga Teaching and Referral Hospital", "042", "LEVEL_5", -0.0886, 34.7686),
    ("NKR-001", "Nakuru Level 5 Hospital", "032", "LEVEL_5", -0.2827, 36.0722),
    ("MTRH-001", "Moi Teaching and Referral Hospital", "027", "LEVEL_6", 0.5143, 35.2698),
]

DEPARTMENTS = [
    # name, type, beds
    ("Accident & Emergency", "EMERGENCY", 20),
    ("Intensive Care Unit", "ICU", 8),
    ("Maternity", "MATERNITY", 30),
    ("Paediatrics", "PEDIATRICS", 25),
    ("General Ward", "INPATIENT", 60),
    ("Outpatient", "OUTPATIENT", 0),
]

RESOURCES = [
    # name, type, category, unit, total, critical level
    ("General Ward Beds", "BED", "Beds", "beds", 60, 5),
    ("ICU Beds", "ICU_BED", "Beds", "beds", 8, 1),
    ("Emergency Beds", "EMERGENCY_BED", "Beds", "beds", 20, 2),
    ("Ventilators", "VENTILATOR", "Equipment", "units", 6, 1),
    ("Oxygen Cylinders", "OXYGEN", "Medical gases", "cylinders", 80, 10),
    ("O-negative Blood", "BLOOD", "Blood bank", "units", 40, 5),
    ("Surgical Gloves", "PPE", "Consumables", "boxes", 200, 20),
]

FIRST_NAMES = ["Wanjiru", "Otieno", "Achieng", "Kamau", "Mwangi", "Njeri", "Kiprono", "Chebet", "Mutua", "Atieno"]
LAST_NAMES = ["Kariuki", "Odhiambo", "Wekesa", "Kiptoo", "Mohamed", "Onyango", "Njoroge", "Mutiso", "Barasa"]


class Command(BaseCommand):
    help = 'Populate the database with demo counties, hospitals, staff, patients, fleet and stock'

    def add_arguments(self, parser):
        parser.add_argument('--patients', type=int, default=30)
        parser.add_argument('--seed', type=int, default=47)

    @transaction.atomic
    def handle(self, *args, **options):
        random.seed(options['seed'])
        self.stdout.write('Creating demo data...')

        counties = self.create_counties()
        hospitals = self.create_hospitals(counties)
        self.create_departments(hospitals)
        self.create_resources(hospitals)
        self.create_ambulances(hospitals)
        self.create_patients(hospitals, options['patients'])
        call_command('ensure_demo_users', stdout=self.stdout)

        self.stdout.write(self.style.SUCCESS('Demo data created.'))

    def create_counties(self):
        counties = {}
        for code, name in COUNTIES:
            counties[code], _ = County.objects.get_or_create(code=code, defaults={'name': name})
        self.stdout.write(f'  counties: {len(counties)}')
        return counties

    def create_hospitals(self, counties):
        hospitals = []
        for code, name, county_code, level, lat, lng in HOSPITALS:
            total = sum(beds for _, _, beds in DEPARTMENTS)
            h, _ = Hospital.objects.get_or_create(
                code=code,
                defaults={
                    'name': name, 'county': counties[county_code], 'level': level,
                    'latitude': lat, 'longitude': lng,
                    'total_beds': total, 'available_beds': random.randint(total // 4, total),
                    'icu_beds': 8, 'available_icu_beds': random.randint(0, 8),
                    'emergency_beds': 20, 'available_emergency_beds': random.randint(0, 20),
                    'maternity_beds': 30, 'available_maternity_beds': random.randint(0, 30),
                    'pediatric_beds': 25, 'available_pediatric_beds': random.randint(0, 25),
                    'last_capacity_update': timezone.now(),
                },
            )
            hospitals.append(h)
        self.stdout.write(f'  hospitals: {len(hospitals)}')
        return hospitals

    def create_departments(self, hospitals):
        for h in hospitals:
            for name, dtype, beds in DEPARTMENTS:
                Department.objects.get_or_create(
                    hospital=h, name=name,
                    defaults={'type': dtype, 'total_beds': beds, 'available_beds': random.randint(0, beds)},
                )

    def create_resources(self, hospitals):
        for h in hospitals:
            for name, rtype, category, unit, total, critical in RESOURCES:
                if Resource.objects.filter(hospital=h, name=name).exists():
                    continue
                in_use = random.randint(0, total)
                Resource.objects.create(
                    hospital=h, name=name, type=rtype, category=category, unit=unit,
                    total_capacity=total, available_capacity=total - in_use, in_use_capacity=in_use,
                    critical_level=critical, minimum_level=critical * 2, reorder_level=critical * 3,
                    is_critical=rtype in ('ICU_BED', 'VENTILATOR', 'OXYGEN', 'BLOOD'),
                    expiry_date=timezone.now() + timedelta(days=random.randint(3, 365))
                    if rtype in ('BLOOD', 'OXYGEN') else None,
                )

    def create_ambulances(self, hospitals):
        for i, h in enumerate(hospitals, start=1):
            for j in range(2):
                reg = f'KC{chr(65 + i)} {100 + i * 10 + j}{chr(65 + j)}'
                Ambulance.objects.get_or_create(
                    registration_number=reg,
                    defaults={
                        'hospital': h, 'county': h.county,
                        'type': 'ALS' if j == 0 else 'BLS',
                        'equipment_level': 'ADVANCED' if j == 0 else 'BASIC',
                        'latitude': h.latitude + random.uniform(-0.02, 0.02),
                        'longitude': h.longitude + random.uniform(-0.02, 0.02),
                        'last_location_update': timezone.now(),
                        'fuel_level': random.randint(30, 100),
                        'driver_name': f'{random.choice(FIRST_NAMES)} {random.choice(LAST_NAMES)}',
                        'driver_phone': f'07{random.randint(10000000, 99999999)}',
                    },
                )

    def create_patients(self, hospitals, count):
        created = 0
        for _ in range(count):
            h = random.choice(hospitals)
            registered = random.random() < 0.7
            Patient.objects.create(
                patient_number=next_number(Patient, 'patient_number', 'PAT-'),
                first_name=random.choice(FIRST_NAMES),
                last_name=random.choice(LAST_NAMES),
                gender=random.choice(['MALE', 'FEMALE']),
                date_of_birth=date(random.randint(1950, 2020), random.randint(1, 12), random.randint(1, 28)),
                phone=f'07{random.randint(10000000, 99999999)}',
                sha_number=f'SHA{random.randint(10 ** 8, 10 ** 9 - 1)}' if registered else None,
                sha_status='REGISTERED' if registered else 'NOT_REGISTERED',
                contribution_status='UP_TO_DATE' if registered else 'NOT_APPLICABLE',
                current_hospital=h,
                county=h.county,
            )
            created += 1
        self.stdout.write(f'  patients: {created}')
