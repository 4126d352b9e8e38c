"""
Occupancy ledger: allocation, discharge and transfer of patients.

Each mutating operation runs as one ``transaction.atomic()`` unit.  Rows
are locked with ``select_for_update`` (occupancy record first, then beds
in primary key order) and availability is re-checked under the lock, so
two callers racing for the same bed end with one admission and one
:class:`~wards.exceptions.BedNoLongerAvailable`.  The partial unique
constraints on ``BedOccupancy`` back this up at the database level.
"""
from __future__ import annotations

import logging
from typing import Mapping, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from wards.exceptions import BedNoLongerAvailable, ConflictError, NotFoundError, ValidationError
from wards.models import Bed, BedOccupancy, DoctorProfile, PatientProfile
from wards.services.access import require_access
from wards.services.audit import log_action
from wards.services.beds import set_status
from wards.services.notify import beds_changed
from wards.services.paging import page_window
from wards.services.text import append_note, clean_text

logger = logging.getLogger(__name__)

PRIORITIES = {k for k, _ in BedOccupancy.PRIORITY_CHOICES}

# patchable field -> may it be cleared with None
UPDATABLE_FIELDS = {
    'doctor_id': True,
    'admission_reason': False,
    'diagnosis': True,
    'expected_discharge_date': True,
    'priority': False,
    'notes': True,
}


def _get_occupancy_or_404(occupancy_id, *, lock: bool = False) -> BedOccupancy:
    qs = BedOccupancy.objects.select_for_update() if lock else BedOccupancy.objects.select_related(
        'bed', 'patient__user', 'doctor__user'
    )
    occupancy = qs.filter(pk=occupancy_id).first()
    if not occupancy:
        raise NotFoundError('Bed occupancy record not found')
    return occupancy


def _get_doctor_or_404(doctor_id) -> Optional[DoctorProfile]:
    if doctor_id is None:
        return None
    doctor = DoctorProfile.objects.filter(pk=doctor_id).first()
    if not doctor:
        raise NotFoundError('Doctor not found')
    return doctor


def _patient_is_admitted(patient_id) -> bool:
    return BedOccupancy.objects.filter(patient_id=patient_id, status=BedOccupancy.STATUS_ACTIVE).exists()


def _bed_has_active_occupancy(bed_id) -> bool:
    return BedOccupancy.objects.filter(bed_id=bed_id, status=BedOccupancy.STATUS_ACTIVE).exists()


def allocate(ctx, *, bed_id, patient_id, admission_reason: str, doctor_id=None,
             diagnosis: Optional[str] = None, expected_discharge_date=None,
             priority: str = BedOccupancy.PRIORITY_NORMAL, notes: Optional[str] = None) -> BedOccupancy:
    """Admit a patient to an available bed and mark the bed occupied."""
    ctx = require_access(ctx)
    admission_reason = clean_text(admission_reason)
    if not admission_reason:
        raise ValidationError({'admissionReason': ['Admission reason is required']})
    priority = priority or BedOccupancy.PRIORITY_NORMAL
    if priority not in PRIORITIES:
        raise ValidationError({'priority': [f'Unknown priority: {priority}']})

    bed = Bed.objects.filter(pk=bed_id).first()
    if not bed:
        raise NotFoundError('Bed space not found')
    if not bed.is_allocatable:
        raise ConflictError('Bed space is not available for allocation')
    patient = PatientProfile.objects.filter(pk=patient_id).first()
    if not patient:
        raise NotFoundError('Patient not found')
    doctor = _get_doctor_or_404(doctor_id)
    if _patient_is_admitted(patient.pk):
        raise ConflictError('Patient is already allocated to another bed')

    try:
        with transaction.atomic():
            bed = Bed.objects.select_for_update().get(pk=bed.pk)
            if not bed.is_allocatable or _bed_has_active_occupancy(bed.pk):
                raise BedNoLongerAvailable()
            occupancy = BedOccupancy.objects.create(
                bed=bed,
                patient=patient,
                doctor=doctor,
                admission_date=timezone.now(),
                expected_discharge_date=expected_discharge_date,
                admission_reason=admission_reason,
                diagnosis=clean_text(diagnosis),
                priority=priority,
                notes=clean_text(notes),
            )
            set_status(bed, Bed.STATUS_OCCUPIED)
            log_action(user=ctx.user, action='bed_allocate', object_type='occupancy', object_id=occupancy.id,
                       detail={'bedId': bed.id, 'patientId': patient.id})
            beds_changed('allocate', bed_ids=[bed.id], occupancy_id=occupancy.id)
    except IntegrityError as exc:
        # a concurrent allocation committed first
        if _patient_is_admitted(patient.pk) and not _bed_has_active_occupancy(bed.pk):
            raise ConflictError('Patient is already allocated to another bed') from exc
        raise BedNoLongerAvailable() from exc
    except BedNoLongerAvailable:
        logger.warning('Allocation of bed %s to patient %s lost a race', bed.pk, patient.pk)
        raise

    logger.info('Patient %s admitted to bed %s (occupancy %s)', patient.pk, bed.label, occupancy.pk)
    return occupancy


def discharge(ctx, occupancy_id, notes: Optional[str] = None) -> BedOccupancy:
    """Close an active admission and free its bed.  Not idempotent."""
    ctx = require_access(ctx)
    with transaction.atomic():
        occupancy = _get_occupancy_or_404(occupancy_id, lock=True)
        if not occupancy.is_active:
            raise ConflictError('Patient is not currently admitted to this bed')
        bed = Bed.objects.select_for_update().get(pk=occupancy.bed_id)

        occupancy.status = BedOccupancy.STATUS_DISCHARGED
        occupancy.actual_discharge_date = timezone.now()
        occupancy.notes = append_note(occupancy.notes, 'Discharge Notes', notes)
        occupancy.save(update_fields=['status', 'actual_discharge_date', 'notes', 'updated_at'])
        set_status(bed, Bed.STATUS_AVAILABLE)

        log_action(user=ctx.user, action='bed_discharge', object_type='occupancy', object_id=occupancy.id,
                   detail={'bedId': bed.id, 'patientId': occupancy.patient_id})
        beds_changed('discharge', bed_ids=[bed.id], occupancy_id=occupancy.id)

    logger.info('Occupancy %s discharged, bed %s available', occupancy.pk, bed.label)
    return occupancy


def transfer(ctx, occupancy_id, new_bed_id, reason: Optional[str] = None) -> BedOccupancy:
    """Move an admitted patient to another bed.

    The source record is closed as ``transferred`` and a new active record
    is opened on the destination, carrying over patient, doctor, diagnosis,
    priority and expected discharge date.  All four writes commit together
    or not at all.
    """
    ctx = require_access(ctx)
    reason = clean_text(reason)
    try:
        new_bed_id = int(new_bed_id)
    except (TypeError, ValueError):
        raise ValidationError({'newBedId': ['A valid integer is required']})
    try:
        with transaction.atomic():
            source = _get_occupancy_or_404(occupancy_id, lock=True)
            if not source.is_active:
                raise ConflictError('Patient is not currently admitted to this bed')
            if source.bed_id == new_bed_id:
                raise ValidationError({'newBedId': ['Patient is already in this bed']})

            locked = {
                b.pk: b
                for b in Bed.objects.select_for_update().filter(pk__in=[source.bed_id, new_bed_id]).order_by('pk')
            }
            source_bed = locked[source.bed_id]
            destination = locked.get(new_bed_id)
            if destination is None:
                raise NotFoundError('New bed space not found')
            if not destination.is_allocatable or _bed_has_active_occupancy(destination.pk):
                raise BedNoLongerAvailable('New bed space is not available')

            now = timezone.now()
            source.status = BedOccupancy.STATUS_TRANSFERRED
            source.actual_discharge_date = now
            source.notes = append_note(source.notes, 'Transfer Reason', reason)
            source.save(update_fields=['status', 'actual_discharge_date', 'notes', 'updated_at'])
            set_status(source_bed, Bed.STATUS_AVAILABLE)

            moved = BedOccupancy.objects.create(
                bed=destination,
                patient_id=source.patient_id,
                doctor_id=source.doctor_id,
                admission_date=now,
                expected_discharge_date=source.expected_discharge_date,
                admission_reason=f'Transferred from Bed {source_bed.label}',
                diagnosis=source.diagnosis,
                priority=source.priority,
                notes=reason,
                transferred_from=source,
            )
            set_status(destination, Bed.STATUS_OCCUPIED)

            source.transferred_to = moved
            source.save(update_fields=['transferred_to', 'updated_at'])

            log_action(user=ctx.user, action='bed_transfer', object_type='occupancy', object_id=moved.id,
                       detail={'fromOccupancyId': source.id, 'fromBedId': source_bed.id, 'toBedId': destination.id})
            beds_changed('transfer', bed_ids=[source_bed.id, destination.id], occupancy_id=moved.id)
    except IntegrityError as exc:
        raise BedNoLongerAvailable('New bed space is not available') from exc

    logger.info('Patient %s transferred from bed %s to bed %s', moved.patient_id, source_bed.label, destination.label)
    return moved


def update_occupancy(ctx, occupancy_id, patch: Mapping) -> BedOccupancy:
    """Partially update the clinical details of an active admission.

    Missing keys are left alone, ``None`` clears a nullable field.
    """
    ctx = require_access(ctx)
    unknown = set(patch) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError({k: ['Field cannot be updated'] for k in sorted(unknown)})
    cleared = [k for k, v in patch.items() if v is None and not UPDATABLE_FIELDS[k]]
    if cleared:
        raise ValidationError({k: ['This field may not be null'] for k in cleared})

    with transaction.atomic():
        occupancy = _get_occupancy_or_404(occupancy_id, lock=True)
        if not occupancy.is_active:
            raise ConflictError('Cannot update discharged or transferred occupancy records')
        changed: list[str] = []
        if 'doctor_id' in patch:
            occupancy.doctor = _get_doctor_or_404(patch['doctor_id'])
            changed.append('doctor')
        if 'admission_reason' in patch:
            reason = clean_text(patch['admission_reason'])
            if not reason:
                raise ValidationError({'admissionReason': ['Admission reason is required']})
            occupancy.admission_reason = reason
            changed.append('admission_reason')
        if 'diagnosis' in patch:
            occupancy.diagnosis = clean_text(patch['diagnosis'])
            changed.append('diagnosis')
        if 'expected_discharge_date' in patch:
            occupancy.expected_discharge_date = patch['expected_discharge_date']
            changed.append('expected_discharge_date')
        if 'priority' in patch:
            if patch['priority'] not in PRIORITIES:
                raise ValidationError({'priority': [f"Unknown priority: {patch['priority']}"]})
            occupancy.priority = patch['priority']
            changed.append('priority')
        if 'notes' in patch:
            occupancy.notes = clean_text(patch['notes'])
            changed.append('notes')
        if changed:
            occupancy.save(update_fields=changed + ['updated_at'])
            log_action(user=ctx.user, action='occupancy_update', object_type='occupancy',
                       object_id=occupancy.id, detail={'fields': changed})
            beds_changed('occupancy_update', bed_ids=[occupancy.bed_id], occupancy_id=occupancy.id)
    return occupancy


def occupancy_history(ctx, *, patient_id=None, bed_id=None, status=None, page=1,
                      page_size=10) -> tuple[list[BedOccupancy], int, int, int]:
    """Return ``(records, total, page, page_size)``, newest admission first."""
    require_access(ctx)
    qs = BedOccupancy.objects.select_related('bed', 'patient__user', 'doctor__user')
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if bed_id:
        qs = qs.filter(bed_id=bed_id)
    if status:
        qs = qs.filter(status=status)
    total = qs.count()
    page, page_size, start, end = page_window(page, page_size)
    return list(qs.order_by('-admission_date', '-id')[start:end]), total, page, page_size


def _iso(value):
    return value.isoformat() if value else None


def format_occupancy(o: BedOccupancy) -> dict:
    return {
        'id': o.id,
        'bedId': o.bed_id,
        'bedLabel': o.bed.label,
        'roomNumber': o.bed.room_number,
        'bedNumber': o.bed.bed_number,
        'patientId': o.patient_id,
        'patientName': o.patient.name,
        'doctorId': o.doctor_id,
        'doctorName': o.doctor.name if o.doctor_id else None,
        'admissionDate': _iso(o.admission_date),
        'expectedDischargeDate': _iso(o.expected_discharge_date),
        'actualDischargeDate': _iso(o.actual_discharge_date),
        'admissionReason': o.admission_reason,
        'diagnosis': o.diagnosis,
        'priority': o.priority,
        'status': o.status,
        'notes': o.notes,
        'transferredFromId': o.transferred_from_id,
        'transferredToId': o.transferred_to_id,
    }
