"""
Database models for the bed occupancy backend.

Beds and their occupancy ledger are owned by this app.  Departments,
patients and doctors are kept as thin rows so that allocations can
reference them; their full lifecycle is handled elsewhere (the Django
admin is enough to maintain them here).
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import Q


class User(AbstractUser):
    """Custom user model with a hospital role.

    Roles mirror the front-end roles: 'admin', 'doctor', 'patient' and
    'staff'.
    """
    ROLE_CHOICES = [
        ('admin', 'Administrator'),
        ('doctor', 'Doctor'),
        ('patient', 'Patient'),
        ('staff', 'Staff'),
    ]
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default='patient', db_index=True)

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Department(models.Model):
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return self.name


class PatientProfile(models.Model):
    """Patient specific information kept beside the User row."""
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='patient_profile')
    date_of_birth = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=20, blank=True)
    phone = models.CharField(max_length=20, blank=True)
    blood_type = models.CharField(max_length=10, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    @property
    def name(self) -> str:
        return self.user.get_full_name() or self.user.username

    def __str__(self) -> str:
        return self.name


class DoctorProfile(models.Model):
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='doctor_profile')
    license_number = models.CharField(max_length=50)
    specialty = models.CharField(max_length=100)
    department = models.ForeignKey(
        Department, null=True, blank=True, on_delete=models.SET_NULL, related_name='doctors'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    @property
    def name(self) -> str:
        return self.user.get_full_name() or self.user.username

    def __str__(self) -> str:
        return f"Dr. {self.name} ({self.specialty})"


class Bed(models.Model):
    """A physical bed that patients can be admitted to.

    ``status`` is only ever set to ``occupied`` by the occupancy services,
    together with the creation of an active :class:`BedOccupancy`.
    """
    TYPE_GENERAL = 'general'
    TYPE_CHOICES = [
        ('general', 'General'),
        ('icu', 'ICU'),
        ('ccu', 'CCU'),
        ('emergency', 'Emergency'),
        ('maternity', 'Maternity'),
        ('pediatric', 'Pediatric'),
        ('surgical', 'Surgical'),
    ]

    STATUS_AVAILABLE = 'available'
    STATUS_OCCUPIED = 'occupied'
    STATUS_MAINTENANCE = 'maintenance'
    STATUS_RESERVED = 'reserved'
    STATUS_CHOICES = [
        (STATUS_AVAILABLE, 'Available'),
        (STATUS_OCCUPIED, 'Occupied'),
        (STATUS_MAINTENANCE, 'Maintenance'),
        (STATUS_RESERVED, 'Reserved'),
    ]

    room_number = models.CharField(max_length=20)
    bed_number = models.CharField(max_length=20)
    department = models.ForeignKey(
        Department, null=True, blank=True, on_delete=models.SET_NULL, related_name='beds'
    )
    ward = models.CharField(max_length=100, null=True, blank=True, db_index=True)
    floor = models.IntegerField(null=True, blank=True)
    bed_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_GENERAL)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_AVAILABLE, db_index=True)
    description = models.TextField(blank=True)
    # ordered, de-duplicated list of equipment names
    equipment = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'beds'
        constraints = [
            models.UniqueConstraint(fields=['room_number', 'bed_number'], name='uniq_bed_room_number'),
        ]
        indexes = [
            models.Index(fields=['status', 'is_active'], name='beds_status_active_idx'),
        ]

    @property
    def label(self) -> str:
        return f"{self.room_number}-{self.bed_number}"

    @property
    def is_allocatable(self) -> bool:
        return self.is_active and self.status == self.STATUS_AVAILABLE

    def __str__(self) -> str:
        return f"Bed {self.label} ({self.status})"


class BedOccupancy(models.Model):
    """One admission episode binding a patient to a bed."""
    STATUS_ACTIVE = 'active'
    STATUS_DISCHARGED = 'discharged'
    STATUS_TRANSFERRED = 'transferred'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_DISCHARGED, 'Discharged'),
        (STATUS_TRANSFERRED, 'Transferred'),
    ]

    PRIORITY_NORMAL = 'normal'
    PRIORITY_CHOICES = [
        ('low', 'Low'),
        ('normal', 'Normal'),
        ('high', 'High'),
        ('urgent', 'Urgent'),
    ]

    bed = models.ForeignKey(Bed, on_delete=models.PROTECT, related_name='occupancies')
    patient = models.ForeignKey(PatientProfile, on_delete=models.PROTECT, related_name='occupancies')
    doctor = models.ForeignKey(
        DoctorProfile, null=True, blank=True, on_delete=models.SET_NULL, related_name='occupancies'
    )
    admission_date = models.DateTimeField()
    expected_discharge_date = models.DateTimeField(null=True, blank=True)
    actual_discharge_date = models.DateTimeField(null=True, blank=True)
    admission_reason = models.TextField()
    diagnosis = models.TextField(blank=True)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default=PRIORITY_NORMAL)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    notes = models.TextField(blank=True)
    transferred_from = models.ForeignKey(
        'self', null=True, blank=True, on_delete=models.SET_NULL, related_name='+'
    )
    transferred_to = models.ForeignKey(
        'self', null=True, blank=True, on_delete=models.SET_NULL, related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'occupancy_records'
        constraints = [
            models.UniqueConstraint(
                fields=['bed'], condition=Q(status='active'), name='uniq_active_occupancy_per_bed'
            ),
            models.UniqueConstraint(
                fields=['patient'], condition=Q(status='active'), name='uniq_active_occupancy_per_patient'
            ),
        ]
        indexes = [
            models.Index(fields=['bed', 'status'], name='occupancy_bed_status_idx'),
            models.Index(fields=['patient', 'admission_date'], name='occupancy_patient_adm_idx'),
        ]

    @property
    def is_active(self) -> bool:
        return self.status == self.STATUS_ACTIVE

    def __str__(self) -> str:
        return f"Occupancy #{self.pk} bed={self.bed_id} patient={self.patient_id} ({self.status})"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.IntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_created_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.object_type}#{self.object_id}"
