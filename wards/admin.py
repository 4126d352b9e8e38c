"""
Django admin registrations.

Departments, patients and doctors have no API of their own in this
service; the admin site is where they are maintained.  Beds and
admissions are shown read-mostly: status changes that involve an
admission must go through the API so that bed and ledger stay in step.
"""

from django.contrib import admin

from .models import (
    AuditEvent,
    Bed,
    BedOccupancy,
    Department,
    DoctorProfile,
    PatientProfile,
    User,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'first_name', 'last_name', 'role', 'is_staff', 'is_active')
    list_filter = ('role', 'is_active')
    search_fields = ('username', 'first_name', 'last_name', 'email')


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'created_at')
    search_fields = ('name',)


@admin.register(PatientProfile)
class PatientProfileAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'gender', 'date_of_birth', 'phone', 'blood_type')
    search_fields = ('user__username', 'user__first_name', 'user__last_name', 'phone')


@admin.register(DoctorProfile)
class DoctorProfileAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'specialty', 'license_number', 'department')
    list_filter = ('department', 'specialty')
    search_fields = ('user__username', 'user__first_name', 'license_number')


@admin.register(Bed)
class BedAdmin(admin.ModelAdmin):
    list_display = ('id', 'room_number', 'bed_number', 'ward', 'floor', 'bed_type', 'status', 'is_active')
    list_filter = ('status', 'bed_type', 'is_active', 'department')
    search_fields = ('room_number', 'bed_number', 'ward')
    readonly_fields = ('status', 'created_at', 'updated_at')


@admin.register(BedOccupancy)
class BedOccupancyAdmin(admin.ModelAdmin):
    list_display = ('id', 'bed', 'patient', 'doctor', 'status', 'priority', 'admission_date', 'actual_discharge_date')
    list_filter = ('status', 'priority')
    search_fields = ('patient__user__username', 'bed__room_number', 'diagnosis')
    readonly_fields = ('bed', 'patient', 'status', 'admission_date', 'actual_discharge_date',
                       'transferred_from', 'transferred_to', 'created_at', 'updated_at')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'object_type', 'object_id', 'user', 'created_at')
    list_filter = ('action', 'object_type')
