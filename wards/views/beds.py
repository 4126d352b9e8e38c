"""
Bed registry endpoints.

Listing, detail, create, partial update and soft delete of beds plus the
lookup lists (available beds, wards, departments) that the allocation
form needs.  Every endpoint requires a ward management role.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from wards.permissions import IsWardStaff
from wards.serializers.beds import (
    AvailableBedsQuerySerializer,
    BedCreateSerializer,
    BedIdSerializer,
    BedListQuerySerializer,
    BedUpdateSerializer,
)
from wards.services import beds as bed_service
from wards.services.access import grant_ward_access
from wards.services.occupancy import format_occupancy
from wards.services.paging import pagination_meta


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsWardStaff])
def list_beds(request):
    q = BedListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    beds, total, page, page_size = bed_service.list_beds(
        grant_ward_access(request.user),
        page=vd.get('page', 1),
        page_size=vd.get('pageSize', 10),
        search=(vd.get('search') or '').strip() or None,
        department_id=vd.get('departmentId'),
        bed_type=vd.get('type'),
        status=vd.get('status'),
        ward=vd.get('ward') or None,
    )
    return Response({
        'ok': True,
        'data': [bed_service.format_bed(b) for b in beds],
        'pagination': pagination_meta(page, page_size, total),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsWardStaff])
def available_beds(request):
    q = AvailableBedsQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    beds = bed_service.list_available_beds(
        grant_ward_access(request.user),
        department_id=q.validated_data.get('departmentId'),
        bed_type=q.validated_data.get('type'),
        ward=q.validated_data.get('ward') or None,
    )
    return Response({'ok': True, 'data': [bed_service.format_bed(b) for b in beds]})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsWardStaff])
def bed_detail(request, pk: int):
    """Return a bed together with its current admission, if any."""
    bed, occupancy = bed_service.get_bed(grant_ward_access(request.user), pk)
    data = bed_service.format_bed(bed)
    data['currentOccupancy'] = format_occupancy(occupancy) if occupancy else None
    return Response({'ok': True, 'data': data})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsWardStaff])
def create_bed(request):
    s = BedCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    bed = bed_service.create_bed(grant_ward_access(request.user), **s.validated_data)
    return Response({'ok': True, 'bedId': bed.id, 'data': bed_service.format_bed(bed)}, status=201)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsWardStaff])
def update_bed(request):
    """Partially update a bed.

    Only the keys sent are changed.  Sending ``null`` clears a nullable
    field (``departmentId``, ``ward``, ``floor``, ``description``,
    ``equipment``).
    """
    s = BedUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    bed = bed_service.update_bed(grant_ward_access(request.user), s.validated_data['id'], s.to_patch())
    return Response({'ok': True, 'data': bed_service.format_bed(bed)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsWardStaff])
def delete_bed(request):
    s = BedIdSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    bed_service.delete_bed(grant_ward_access(request.user), s.validated_data['id'])
    return Response({'ok': True})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsWardStaff])
def wards(request):
    return Response({'ok': True, 'data': bed_service.list_wards(grant_ward_access(request.user))})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsWardStaff])
def departments(request):
    data = [
        {'id': d.id, 'name': d.name}
        for d in bed_service.list_departments(grant_ward_access(request.user))
    ]
    return Response({'ok': True, 'data': data})
