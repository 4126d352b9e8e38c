"""
Admission endpoints: allocate, discharge, transfer, update, history and
the dashboard stats.
"""
from __future__ import annotations

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from wards.permissions import IsWardStaff
from wards.serializers.occupancy import (
    AllocateSerializer,
    DischargeSerializer,
    HistoryQuerySerializer,
    OccupancyUpdateSerializer,
    TransferSerializer,
)
from wards.services import occupancy as occupancy_service
from wards.services.access import grant_ward_access
from wards.services.paging import pagination_meta
from wards.services.stats import get_occupancy_stats


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsWardStaff])
def occupancy_stats(request):
    return Response({'ok': True, 'data': get_occupancy_stats(grant_ward_access(request.user))})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsWardStaff])
def occupancy_history(request):
    q = HistoryQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    records, total, page, page_size = occupancy_service.occupancy_history(
        grant_ward_access(request.user),
        patient_id=vd.get('patientId'),
        bed_id=vd.get('bedId'),
        status=vd.get('status'),
        page=vd.get('page', 1),
        page_size=vd.get('pageSize', 10),
    )
    return Response({
        'ok': True,
        'data': [occupancy_service.format_occupancy(r) for r in records],
        'pagination': pagination_meta(page, page_size, total),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsWardStaff])
def allocate(request):
    """Admit a patient to an available bed.

    Returns 409 with code ``bed_no_longer_available`` when another
    allocation took the bed first; the client should pick another bed.
    """
    s = AllocateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    occupancy = occupancy_service.allocate(
        grant_ward_access(request.user),
        bed_id=vd['bedId'],
        patient_id=vd['patientId'],
        doctor_id=vd.get('doctorId'),
        admission_reason=vd['admissionReason'],
        diagnosis=vd.get('diagnosis'),
        expected_discharge_date=vd.get('expectedDischargeDate'),
        priority=vd['priority'],
        notes=vd.get('notes'),
    )
    return Response({
        'ok': True,
        'occupancyId': occupancy.id,
        'data': occupancy_service.format_occupancy(occupancy),
    }, status=201)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsWardStaff])
def discharge(request):
    s = DischargeSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    occupancy = occupancy_service.discharge(
        grant_ward_access(request.user),
        s.validated_data['occupancyId'],
        notes=s.validated_data.get('notes'),
    )
    return Response({'ok': True, 'data': occupancy_service.format_occupancy(occupancy)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsWardStaff])
def transfer(request):
    s = TransferSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    moved = occupancy_service.transfer(
        grant_ward_access(request.user),
        s.validated_data['occupancyId'],
        s.validated_data['newBedId'],
        reason=s.validated_data.get('reason'),
    )
    return Response({
        'ok': True,
        'occupancyId': moved.id,
        'data': occupancy_service.format_occupancy(moved),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsWardStaff])
def update_occupancy(request):
    s = OccupancyUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    occupancy = occupancy_service.update_occupancy(
        grant_ward_access(request.user), s.validated_data['occupancyId'], s.to_patch()
    )
    return Response({'ok': True, 'data': occupancy_service.format_occupancy(occupancy)})
