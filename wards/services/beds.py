"""
Bed registry.

Create, list, update and (soft) delete beds.  A bed's status may be
edited freely between ``available``, ``maintenance`` and ``reserved``;
``occupied`` is reserved for the occupancy services, which flip it via
:func:`set_status` in the same transaction that opens or closes an
admission.
"""
from __future__ import annotations

import logging
from typing import Iterable, Mapping, Optional

from django.db import IntegrityError, transaction
from django.db.models import Q

from wards.exceptions import ConflictError, NotFoundError, ValidationError
from wards.models import Bed, BedOccupancy, Department
from wards.services.access import require_access
from wards.services.audit import log_action
from wards.services.notify import beds_changed
from wards.services.paging import page_window
from wards.services.text import clean_optional, clean_text

logger = logging.getLogger(__name__)

BED_TYPES = {k for k, _ in Bed.TYPE_CHOICES}
BED_STATUSES = {k for k, _ in Bed.STATUS_CHOICES}

# patchable field -> may it be cleared with None
UPDATABLE_FIELDS = {
    'room_number': False,
    'bed_number': False,
    'department_id': True,
    'ward': True,
    'floor': True,
    'bed_type': False,
    'status': False,
    'description': True,
    'equipment': True,
    'is_active': False,
}

DUPLICATE_MESSAGE = 'Bed with this room and bed number already exists'


def normalize_equipment(items: Optional[Iterable]) -> list[str]:
    """Return equipment names stripped and de-duplicated, keeping first-seen order."""
    seen: dict[str, None] = {}
    for item in items or []:
        name = clean_text(item)
        if name and name not in seen:
            seen[name] = None
    return list(seen)


def set_status(bed: Bed, status: str) -> None:
    bed.status = status
    bed.save(update_fields=['status', 'updated_at'])


def get_bed_or_404(bed_id, *, lock: bool = False) -> Bed:
    qs = Bed.objects.select_for_update() if lock else Bed.objects.select_related('department')
    bed = qs.filter(pk=bed_id).first()
    if not bed:
        raise NotFoundError('Bed space not found')
    return bed


def active_occupancy_for(bed_id) -> Optional[BedOccupancy]:
    return (
        BedOccupancy.objects.select_related('patient__user', 'doctor__user')
        .filter(bed_id=bed_id, status=BedOccupancy.STATUS_ACTIVE)
        .first()
    )


def _resolve_department(department_id) -> Optional[Department]:
    if department_id in (None, ''):
        return None
    department = Department.objects.filter(pk=department_id).first()
    if not department:
        raise ValidationError({'departmentId': ['Department not found']})
    return department


def _duplicate_exists(room_number: str, bed_number: str, exclude_id=None) -> bool:
    qs = Bed.objects.filter(room_number=room_number, bed_number=bed_number)
    if exclude_id is not None:
        qs = qs.exclude(pk=exclude_id)
    return qs.exists()


def create_bed(ctx, *, room_number: str, bed_number: str, department_id=None, ward=None,
               floor=None, bed_type: str = Bed.TYPE_GENERAL, description: str = '',
               equipment=None) -> Bed:
    ctx = require_access(ctx)
    room_number = clean_text(room_number)
    bed_number = clean_text(bed_number)
    errors = {}
    if not room_number:
        errors['roomNumber'] = ['Room number is required']
    if not bed_number:
        errors['bedNumber'] = ['Bed number is required']
    if bed_type not in BED_TYPES:
        errors['type'] = [f'Unknown bed type: {bed_type}']
    if errors:
        raise ValidationError(errors)
    department = _resolve_department(department_id)

    if _duplicate_exists(room_number, bed_number):
        raise ConflictError(DUPLICATE_MESSAGE)
    try:
        with transaction.atomic():
            bed = Bed.objects.create(
                room_number=room_number,
                bed_number=bed_number,
                department=department,
                ward=clean_optional(ward),
                floor=floor,
                bed_type=bed_type,
                description=clean_text(description),
                equipment=normalize_equipment(equipment),
            )
            log_action(user=ctx.user, action='bed_create', object_type='bed', object_id=bed.id,
                       detail={'label': bed.label})
            beds_changed('create', bed_ids=[bed.id])
    except IntegrityError as exc:
        raise ConflictError(DUPLICATE_MESSAGE) from exc
    logger.info('Bed %s created by user %s', bed.label, ctx.user_id)
    return bed


def update_bed(ctx, bed_id, patch: Mapping) -> Bed:
    """Apply a partial update to a bed.

    Keys missing from ``patch`` are left untouched; a key explicitly set
    to ``None`` clears the field, which is only allowed for nullable
    fields (department, ward, floor, description, equipment).
    """
    ctx = require_access(ctx)
    unknown = set(patch) - set(UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError({k: ['Field cannot be updated'] for k in sorted(unknown)})
    cleared = [k for k, v in patch.items() if v is None and not UPDATABLE_FIELDS[k]]
    if cleared:
        raise ValidationError({k: ['This field may not be null'] for k in cleared})

    try:
        with transaction.atomic():
            bed = get_bed_or_404(bed_id, lock=True)
            changed: list[str] = []

            if 'room_number' in patch or 'bed_number' in patch:
                room_number = clean_text(patch.get('room_number', bed.room_number))
                bed_number = clean_text(patch.get('bed_number', bed.bed_number))
                if not room_number or not bed_number:
                    raise ValidationError({'roomNumber': ['Room and bed number are required']})
                if (room_number, bed_number) != (bed.room_number, bed.bed_number):
                    if _duplicate_exists(room_number, bed_number, exclude_id=bed.pk):
                        raise ConflictError(DUPLICATE_MESSAGE)
                    bed.room_number, bed.bed_number = room_number, bed_number
                    changed += ['room_number', 'bed_number']

            if 'department_id' in patch:
                bed.department = _resolve_department(patch['department_id'])
                changed.append('department')
            if 'ward' in patch:
                bed.ward = clean_optional(patch['ward'])
                changed.append('ward')
            if 'floor' in patch:
                bed.floor = patch['floor']
                changed.append('floor')
            if 'bed_type' in patch:
                if patch['bed_type'] not in BED_TYPES:
                    raise ValidationError({'type': [f"Unknown bed type: {patch['bed_type']}"]})
                bed.bed_type = patch['bed_type']
                changed.append('bed_type')
            if 'description' in patch:
                bed.description = clean_text(patch['description'])
                changed.append('description')
            if 'equipment' in patch:
                bed.equipment = normalize_equipment(patch['equipment'])
                changed.append('equipment')

            new_status = patch.get('status', bed.status)
            new_active = patch.get('is_active', bed.is_active)
            if new_status not in BED_STATUSES:
                raise ValidationError({'status': [f'Unknown bed status: {new_status}']})
            if new_status != bed.status or new_active != bed.is_active:
                if BedOccupancy.objects.filter(bed=bed, status=BedOccupancy.STATUS_ACTIVE).exists():
                    raise ConflictError('Bed is occupied. Please discharge the patient first.')
                if new_status == Bed.STATUS_OCCUPIED and bed.status != Bed.STATUS_OCCUPIED:
                    raise ValidationError({'status': ['Use allocation to mark a bed occupied']})
                bed.status, bed.is_active = new_status, new_active
                changed += ['status', 'is_active']

            if changed:
                bed.save(update_fields=changed + ['updated_at'])
                log_action(user=ctx.user, action='bed_update', object_type='bed', object_id=bed.id,
                           detail={'fields': changed})
                beds_changed('update', bed_ids=[bed.id])
    except IntegrityError as exc:
        raise ConflictError(DUPLICATE_MESSAGE) from exc
    return bed


def delete_bed(ctx, bed_id) -> None:
    ctx = require_access(ctx)
    with transaction.atomic():
        bed = get_bed_or_404(bed_id, lock=True)
        if BedOccupancy.objects.filter(bed=bed, status=BedOccupancy.STATUS_ACTIVE).exists():
            raise ConflictError('Cannot delete occupied bed space. Please discharge the patient first.')
        bed.is_active = False
        bed.save(update_fields=['is_active', 'updated_at'])
        log_action(user=ctx.user, action='bed_delete', object_type='bed', object_id=bed.id)
        beds_changed('delete', bed_ids=[bed.id])
    logger.info('Bed %s deactivated by user %s', bed.label, ctx.user_id)


def get_bed(ctx, bed_id) -> tuple[Bed, Optional[BedOccupancy]]:
    require_access(ctx)
    bed = get_bed_or_404(bed_id)
    return bed, active_occupancy_for(bed.pk)


def _filtered(qs, *, department_id=None, bed_type=None, ward=None, status=None):
    if department_id:
        qs = qs.filter(department_id=department_id)
    if bed_type:
        qs = qs.filter(bed_type=bed_type)
    if ward:
        qs = qs.filter(ward=ward)
    if status:
        qs = qs.filter(status=status)
    return qs


def list_beds(ctx, *, page=1, page_size=10, search: Optional[str] = None, department_id=None,
              bed_type=None, status=None, ward=None) -> tuple[list[Bed], int, int, int]:
    """Return ``(beds, total, page, page_size)`` for active beds."""
    require_access(ctx)
    qs = _filtered(
        Bed.objects.filter(is_active=True).select_related('department'),
        department_id=department_id, bed_type=bed_type, ward=ward, status=status,
    )
    if search:
        qs = qs.filter(
            Q(room_number__icontains=search) | Q(bed_number__icontains=search) | Q(ward__icontains=search)
        )
    total = qs.count()
    page, page_size, start, end = page_window(page, page_size)
    return list(qs.order_by('created_at', 'id')[start:end]), total, page, page_size


def list_available_beds(ctx, *, department_id=None, bed_type=None, ward=None) -> list[Bed]:
    require_access(ctx)
    qs = _filtered(
        Bed.objects.filter(status=Bed.STATUS_AVAILABLE, is_active=True).select_related('department'),
        department_id=department_id, bed_type=bed_type, ward=ward,
    )
    return list(qs.order_by('room_number', 'bed_number'))


def list_wards(ctx) -> list[str]:
    require_access(ctx)
    wards = (
        Bed.objects.exclude(ward__isnull=True).exclude(ward='')
        .order_by('ward').values_list('ward', flat=True).distinct()
    )
    return list(wards)


def list_departments(ctx) -> list[Department]:
    require_access(ctx)
    return list(Department.objects.order_by('name'))


def format_bed(bed: Bed) -> dict:
    return {
        'id': bed.id,
        'label': bed.label,
        'roomNumber': bed.room_number,
        'bedNumber': bed.bed_number,
        'departmentId': bed.department_id,
        'departmentName': bed.department.name if bed.department_id else None,
        'ward': bed.ward,
        'floor': bed.floor,
        'type': bed.bed_type,
        'status': bed.status,
        'description': bed.description,
        'equipment': list(bed.equipment or []),
        'isActive': bed.is_active,
        'createdAt': bed.created_at.isoformat(),
        'updatedAt': bed.updated_at.isoformat(),
    }
