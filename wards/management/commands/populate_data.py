"""
Management command to populate the database with demo ward data.
"""
import random

from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand
from django.db import transaction

from wards.models import Bed, Department, DoctorProfile, PatientProfile, User
from wards.services import occupancy as occupancy_service
from wards.services.access import grant_ward_access

DEPARTMENTS = ['Cardiology', 'General Surgery', 'Pediatrics', 'Maternity', 'Emergency']
WARDS = ['North', 'South', 'East']
EQUIPMENT = ['oxygen', 'monitor', 'ventilator', 'iv-pump', 'suction']


class Command(BaseCommand):
    help = 'Populate database with demo departments, staff, patients, beds and admissions'

    def add_arguments(self, parser):
        parser.add_argument('--beds', type=int, default=20)
        parser.add_argument('--patients', type=int, default=12)
        parser.add_argument('--admit', type=int, default=6, help='number of patients to admit')
        parser.add_argument('--password', default='P@ssw0rd1')

    def handle(self, *args, **options):
        random.seed(42)
        with transaction.atomic():
            departments = self.create_departments()
            admin = self.create_user('admin1', 'admin', options['password'])
            doctors = self.create_doctors(departments, options['password'])
            patients = self.create_patients(options['patients'], options['password'])
            beds = self.create_beds(departments, options['beds'])
        admitted = self.admit_patients(admin, beds, patients, doctors, options['admit'])
        self.stdout.write(self.style.SUCCESS(
            f'Created {len(departments)} departments, {len(beds)} beds, '
            f'{len(patients)} patients; admitted {admitted}.'
        ))

    def create_user(self, username, role, password, first_name=''):
        user, created = User.objects.get_or_create(
            username=username,
            defaults={'role': role, 'first_name': first_name, 'password': make_password(password)},
        )
        if not created and user.role != role:
            user.role = role
            user.save(update_fields=['role'])
        return user

    def create_departments(self):
        return [Department.objects.get_or_create(name=name)[0] for name in DEPARTMENTS]

    def create_doctors(self, departments, password):
        doctors = []
        for i, dept in enumerate(departments, start=1):
            user = self.create_user(f'doctor{i}', 'doctor', password, first_name=f'Doctor {i}')
            doctor, _ = DoctorProfile.objects.get_or_create(
                user=user,
                defaults={'license_number': f'LIC-{1000 + i}', 'specialty': dept.name, 'department': dept},
            )
            doctors.append(doctor)
        return doctors

    def create_patients(self, count, password):
        patients = []
        for i in range(1, count + 1):
            user = self.create_user(f'patient{i}', 'patient', password, first_name=f'Patient {i}')
            profile, _ = PatientProfile.objects.get_or_create(
                user=user, defaults={'gender': random.choice(['male', 'female'])}
            )
            patients.append(profile)
        return patients

    def create_beds(self, departments, count):
        beds = []
        for i in range(count):
            dept = departments[i % len(departments)]
            bed, _ = Bed.objects.get_or_create(
                room_number=str(100 + i // 2 + 1),
                bed_number='AB'[i % 2],
                defaults={
                    'department': dept,
                    'ward': WARDS[i % len(WARDS)],
                    'floor': 1 + i // 10,
                    'bed_type': random.choice([k for k, _ in Bed.TYPE_CHOICES]),
                    'equipment': random.sample(EQUIPMENT, k=2),
                },
            )
            beds.append(bed)
        return beds

    def admit_patients(self, admin, beds, patients, doctors, count):
        ctx = grant_ward_access(admin)
        free_beds = [b for b in beds if b.is_allocatable]
        admitted = 0
        for bed, patient in zip(free_beds, patients[:count]):
            if patient.occupancies.filter(status='active').exists():
                continue
            occupancy_service.allocate(
                ctx,
                bed_id=bed.id,
                patient_id=patient.id,
                doctor_id=random.choice(doctors).id,
                admission_reason='Observation',
                priority=random.choice(['low', 'normal', 'high', 'urgent']),
            )
            admitted += 1
        return admitted
