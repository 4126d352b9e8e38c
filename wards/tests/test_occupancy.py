"""Service level tests for the occupancy ledger."""
import pytest
from django.core.cache import cache
from django.db.models import Count

from wards.exceptions import BedNoLongerAvailable, ConflictError, NotFoundError, ValidationError
from wards.models import Bed, BedOccupancy, PatientProfile, User
from wards.services import beds as bed_service
from wards.services import notify
from wards.services import occupancy as occupancy_service
from wards.services.access import grant_ward_access
from wards.services.stats import compute_occupancy_stats, get_occupancy_stats

pytestmark = pytest.mark.django_db


@pytest.fixture
def ctx():
    user = User.objects.create_user(username='ward-admin', password='x', role='admin')
    return grant_ward_access(user)


def make_patient(username, pk=None):
    user = User.objects.create_user(username=username, password='x', role='patient')
    if pk is not None:
        return PatientProfile.objects.create(id=pk, user=user)
    return PatientProfile.objects.create(user=user)


def make_bed(room, bed, **kw):
    return Bed.objects.create(room_number=room, bed_number=bed, **kw)


def assert_ledger_consistent():
    """A bed is occupied exactly when it has one active admission."""
    active = dict(
        BedOccupancy.objects.filter(status='active').values('bed').annotate(n=Count('id')).values_list('bed', 'n')
    )
    for bed in Bed.objects.all():
        if bed.status == Bed.STATUS_OCCUPIED:
            assert active.get(bed.id) == 1, bed
        else:
            assert bed.id not in active, bed


def test_admission_scenario_for_bed_101a(ctx):
    bed = make_bed('101', 'A', ward='North')
    p55 = make_patient('p55', pk=55)
    p77 = make_patient('p77', pk=77)

    occ = occupancy_service.allocate(ctx, bed_id=bed.id, patient_id=55, admission_reason='chest pain',
                                     priority='urgent')
    bed.refresh_from_db()
    assert occ.status == 'active'
    assert occ.patient_id == p55.id
    assert occ.priority == 'urgent'
    assert bed.status == Bed.STATUS_OCCUPIED
    assert_ledger_consistent()

    with pytest.raises(ConflictError):
        occupancy_service.allocate(ctx, bed_id=bed.id, patient_id=p77.id, admission_reason='fever')
    assert not BedOccupancy.objects.filter(patient=p77).exists()

    occupancy_service.discharge(ctx, occ.id)
    bed.refresh_from_db()
    occ.refresh_from_db()
    assert bed.status == Bed.STATUS_AVAILABLE
    assert occ.status == 'discharged'
    assert occ.actual_discharge_date is not None
    assert_ledger_consistent()


def test_allocation_losing_the_race_gets_bed_no_longer_available(ctx):
    bed = make_bed('102', 'A')
    winner = make_patient('winner')
    loser = make_patient('loser')
    # the winner's admission has been written but the bed row we read
    # before locking still says available
    BedOccupancy.objects.create(bed=bed, patient=winner, admission_reason='x', admission_date=bed.created_at)

    with pytest.raises(BedNoLongerAvailable) as exc:
        occupancy_service.allocate(ctx, bed_id=bed.id, patient_id=loser.id, admission_reason='y')
    assert isinstance(exc.value, ConflictError)
    assert exc.value.status_code == 409
    assert BedOccupancy.objects.filter(bed=bed, status='active').count() == 1
    assert not BedOccupancy.objects.filter(patient=loser).exists()


def test_unique_active_bed_constraint_backs_up_allocation(ctx, monkeypatch):
    bed = make_bed('102', 'B')
    winner = make_patient('winner')
    loser = make_patient('loser')
    BedOccupancy.objects.create(bed=bed, patient=winner, admission_reason='x', admission_date=bed.created_at)
    # the locked re-check misses the winner, so only the database can refuse
    monkeypatch.setattr(occupancy_service, '_bed_has_active_occupancy', lambda bed_id: False)

    with pytest.raises(BedNoLongerAvailable):
        occupancy_service.allocate(ctx, bed_id=bed.id, patient_id=loser.id, admission_reason='y')
    bed.refresh_from_db()
    assert bed.status == Bed.STATUS_AVAILABLE
    assert not BedOccupancy.objects.filter(patient=loser).exists()
    assert BedOccupancy.objects.filter(bed=bed).count() == 1


def test_unique_active_patient_constraint_backs_up_allocation(ctx, monkeypatch):
    first_bed = make_bed('103', 'A')
    second_bed = make_bed('103', 'B')
    patient = make_patient('p1')
    occupancy_service.allocate(ctx, bed_id=first_bed.id, patient_id=patient.id, admission_reason='x')

    real_is_admitted = occupancy_service._patient_is_admitted
    calls = []

    def admitted_elsewhere_meanwhile(patient_id):
        calls.append(patient_id)
        # the pre-check runs before the concurrent admission commits
        return False if len(calls) == 1 else real_is_admitted(patient_id)

    monkeypatch.setattr(occupancy_service, '_patient_is_admitted', admitted_elsewhere_meanwhile)
    with pytest.raises(ConflictError) as exc:
        occupancy_service.allocate(ctx, bed_id=second_bed.id, patient_id=patient.id, admission_reason='y')
    assert not isinstance(exc.value, BedNoLongerAvailable)
    assert 'already allocated' in str(exc.value.detail)
    second_bed.refresh_from_db()
    assert second_bed.status == Bed.STATUS_AVAILABLE
    assert list(BedOccupancy.objects.filter(patient=patient).values_list('bed_id', flat=True)) == [first_bed.id]
    assert_ledger_consistent()


def test_unique_active_bed_constraint_backs_up_transfer(ctx, monkeypatch):
    src = make_bed('104', 'A')
    dst = make_bed('104', 'B')
    patient = make_patient('p1')
    squatter = make_patient('p2')
    occ = occupancy_service.allocate(ctx, bed_id=src.id, patient_id=patient.id, admission_reason='x')
    # destination row still says available while another admission holds it
    BedOccupancy.objects.create(bed=dst, patient=squatter, admission_reason='y', admission_date=dst.created_at)
    monkeypatch.setattr(occupancy_service, '_bed_has_active_occupancy', lambda bed_id: False)

    with pytest.raises(BedNoLongerAvailable):
        occupancy_service.transfer(ctx, occ.id, dst.id, reason='move')

    src.refresh_from_db()
    dst.refresh_from_db()
    occ.refresh_from_db()
    assert src.status == Bed.STATUS_OCCUPIED
    assert dst.status == Bed.STATUS_AVAILABLE
    assert occ.status == 'active'
    assert occ.transferred_to_id is None
    assert list(BedOccupancy.objects.filter(patient=patient).values_list('id', flat=True)) == [occ.id]


def test_allocate_rejects_blank_reason_and_unknown_doctor(ctx):
    bed = make_bed('103', 'A')
    patient = make_patient('p1')
    with pytest.raises(ValidationError):
        occupancy_service.allocate(ctx, bed_id=bed.id, patient_id=patient.id, admission_reason='   ')
    with pytest.raises(NotFoundError):
        occupancy_service.allocate(ctx, bed_id=bed.id, patient_id=patient.id, admission_reason='x', doctor_id=999)
    with pytest.raises(NotFoundError):
        occupancy_service.allocate(ctx, bed_id=999, patient_id=patient.id, admission_reason='x')
    bed.refresh_from_db()
    assert bed.status == Bed.STATUS_AVAILABLE
    assert not BedOccupancy.objects.exists()


def test_free_text_is_stripped_of_markup(ctx):
    bed = make_bed('104', 'A')
    patient = make_patient('p1')
    occ = occupancy_service.allocate(ctx, bed_id=bed.id, patient_id=patient.id,
                                     admission_reason='<script>alert(1)</script>fall')
    assert '<script>' not in occ.admission_reason
    assert occ.admission_reason.endswith('fall')


def test_transfer_closes_source_and_opens_destination(ctx):
    src = make_bed('201', 'A')
    dst = make_bed('305', 'B', bed_type='icu')
    patient = make_patient('p1')
    occ = occupancy_service.allocate(ctx, bed_id=src.id, patient_id=patient.id, admission_reason='sepsis',
                                     diagnosis='sepsis', priority='high')

    moved = occupancy_service.transfer(ctx, occ.id, dst.id, reason='needs ICU')

    src.refresh_from_db()
    dst.refresh_from_db()
    occ.refresh_from_db()
    assert src.status == Bed.STATUS_AVAILABLE
    assert dst.status == Bed.STATUS_OCCUPIED
    assert occ.status == 'transferred'
    assert occ.transferred_to_id == moved.id
    assert 'Transfer Reason: needs ICU' in occ.notes
    assert moved.transferred_from_id == occ.id
    assert moved.patient_id == patient.id
    assert moved.priority == 'high'
    assert moved.diagnosis == 'sepsis'
    assert moved.admission_reason == 'Transferred from Bed 201-A'
    assert list(BedOccupancy.objects.filter(bed=dst, status='active')) == [moved]
    assert_ledger_consistent()


def test_transfer_rolls_back_when_destination_update_fails(ctx, monkeypatch):
    src = make_bed('201', 'A')
    dst = make_bed('202', 'A')
    patient = make_patient('p1')
    occ = occupancy_service.allocate(ctx, bed_id=src.id, patient_id=patient.id, admission_reason='x')

    real_set_status = occupancy_service.set_status

    def failing_set_status(bed, status):
        if bed.pk == dst.pk:
            raise RuntimeError('storage unavailable')
        real_set_status(bed, status)

    monkeypatch.setattr(occupancy_service, 'set_status', failing_set_status)
    with pytest.raises(RuntimeError):
        occupancy_service.transfer(ctx, occ.id, dst.id, reason='move')

    src.refresh_from_db()
    dst.refresh_from_db()
    occ.refresh_from_db()
    assert src.status == Bed.STATUS_OCCUPIED
    assert dst.status == Bed.STATUS_AVAILABLE
    assert occ.status == 'active'
    assert occ.transferred_to_id is None
    assert not BedOccupancy.objects.filter(bed=dst).exists()
    assert_ledger_consistent()


def test_transfer_edge_cases(ctx):
    src = make_bed('201', 'A')
    busy = make_bed('201', 'B')
    patient = make_patient('p1')
    other = make_patient('p2')
    occ = occupancy_service.allocate(ctx, bed_id=src.id, patient_id=patient.id, admission_reason='x')
    occupancy_service.allocate(ctx, bed_id=busy.id, patient_id=other.id, admission_reason='y')

    with pytest.raises(ValidationError):
        occupancy_service.transfer(ctx, occ.id, src.id)
    with pytest.raises(ValidationError):
        occupancy_service.transfer(ctx, occ.id, 'not-a-bed')
    with pytest.raises(NotFoundError):
        occupancy_service.transfer(ctx, occ.id, 99999)
    with pytest.raises(NotFoundError):
        occupancy_service.transfer(ctx, 99999, busy.id)
    with pytest.raises(BedNoLongerAvailable):
        occupancy_service.transfer(ctx, occ.id, busy.id)

    occupancy_service.discharge(ctx, occ.id)
    free = make_bed('201', 'C')
    with pytest.raises(ConflictError):
        occupancy_service.transfer(ctx, occ.id, free.id)
    assert_ledger_consistent()


def test_discharge_is_not_idempotent(ctx):
    bed = make_bed('301', 'A')
    patient = make_patient('p1')
    occ = occupancy_service.allocate(ctx, bed_id=bed.id, patient_id=patient.id, admission_reason='x')
    occupancy_service.discharge(ctx, occ.id, notes='home')
    with pytest.raises(ConflictError):
        occupancy_service.discharge(ctx, occ.id, notes='again')
    occ.refresh_from_db()
    bed.refresh_from_db()
    assert occ.notes.count('Discharge Notes') == 1
    assert bed.status == Bed.STATUS_AVAILABLE
    with pytest.raises(NotFoundError):
        occupancy_service.discharge(ctx, 99999)


def test_discharged_patient_can_be_admitted_again(ctx):
    bed = make_bed('301', 'A')
    patient = make_patient('p1')
    first = occupancy_service.allocate(ctx, bed_id=bed.id, patient_id=patient.id, admission_reason='x')
    occupancy_service.discharge(ctx, first.id)
    second = occupancy_service.allocate(ctx, bed_id=bed.id, patient_id=patient.id, admission_reason='again')
    assert second.id != first.id
    records, total, page, page_size = occupancy_service.occupancy_history(ctx, patient_id=patient.id)
    assert total == 2
    assert [r.id for r in records] == [second.id, first.id]


def test_stats_match_the_ledger(ctx):
    beds = [make_bed('400', str(i)) for i in range(5)]
    patients = [make_patient(f'p{i}') for i in range(3)]
    bed_service.update_bed(ctx, beds[4].id, {'status': 'maintenance'})
    bed_service.delete_bed(ctx, beds[3].id)
    occs = [
        occupancy_service.allocate(ctx, bed_id=b.id, patient_id=p.id, admission_reason='x')
        for b, p in zip(beds, patients)
    ]
    occupancy_service.discharge(ctx, occs[0].id)

    stats = get_occupancy_stats(ctx)
    assert stats == compute_occupancy_stats()
    assert stats['totalBeds'] == 4
    assert stats['occupiedBeds'] == Bed.objects.filter(is_active=True, status='occupied').count() == 2
    assert stats['currentAdmissions'] == BedOccupancy.objects.filter(status='active').count() == 2
    assert stats['availableBeds'] == 1
    assert stats['maintenanceBeds'] == 1
    assert stats['totalPatients'] == 2


def test_stats_are_cached_until_a_mutation(ctx):
    bed = make_bed('500', 'A')
    patient = make_patient('p1')
    assert get_occupancy_stats(ctx)['occupiedBeds'] == 0
    assert cache.get(notify.STATS_CACHE_KEY) is not None

    # a write behind the services' back is not seen while cached
    Bed.objects.filter(pk=bed.pk).update(status='maintenance')
    assert get_occupancy_stats(ctx)['maintenanceBeds'] == 0

    Bed.objects.filter(pk=bed.pk).update(status='available')
    occupancy_service.allocate(ctx, bed_id=bed.id, patient_id=patient.id, admission_reason='x')
    assert get_occupancy_stats(ctx)['occupiedBeds'] == 1


def test_changes_are_broadcast_after_commit(ctx, monkeypatch, django_capture_on_commit_callbacks):
    sent = []
    monkeypatch.setattr(notify, '_broadcast', sent.append)
    bed = make_bed('600', 'A')
    patient = make_patient('p1')

    with django_capture_on_commit_callbacks(execute=True):
        occ = occupancy_service.allocate(ctx, bed_id=bed.id, patient_id=patient.id, admission_reason='x')
    assert len(sent) == 1
    assert sent[0]['type'] == 'beds.changed'
    assert sent[0]['action'] == 'allocate'
    assert sent[0]['bedIds'] == [bed.id]
    assert sent[0]['occupancyId'] == occ.id


def test_failed_operation_broadcasts_nothing(ctx, monkeypatch, django_capture_on_commit_callbacks):
    sent = []
    monkeypatch.setattr(notify, '_broadcast', sent.append)
    bed = make_bed('600', 'A', status='maintenance')
    patient = make_patient('p1')

    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        with pytest.raises(ConflictError):
            occupancy_service.allocate(ctx, bed_id=bed.id, patient_id=patient.id, admission_reason='x')
    assert callbacks == []
    assert sent == []


def test_update_occupancy_patch_semantics(ctx):
    bed = make_bed('700', 'A')
    patient = make_patient('p1')
    occ = occupancy_service.allocate(ctx, bed_id=bed.id, patient_id=patient.id, admission_reason='x',
                                     diagnosis='flu', notes='n1')
    occupancy_service.update_occupancy(ctx, occ.id, {'diagnosis': None})
    occ.refresh_from_db()
    assert occ.diagnosis == ''
    assert occ.notes == 'n1'

    with pytest.raises(ValidationError):
        occupancy_service.update_occupancy(ctx, occ.id, {'admission_reason': None})
    with pytest.raises(ValidationError):
        occupancy_service.update_occupancy(ctx, occ.id, {'bed_id': 3})
    with pytest.raises(ValidationError):
        occupancy_service.update_occupancy(ctx, occ.id, {'priority': 'whenever'})


def test_bed_patch_semantics_and_equipment(ctx):
    bed = bed_service.create_bed(ctx, room_number=' 800 ', bed_number='A', ward='East', floor=3,
                                 equipment=['oxygen', 'oxygen', ' monitor'])
    assert bed.room_number == '800'
    assert bed.equipment == ['oxygen', 'monitor']

    bed = bed_service.update_bed(ctx, bed.id, {'floor': None, 'ward': '  '})
    assert bed.floor is None
    assert bed.ward is None
    assert bed.equipment == ['oxygen', 'monitor']

    bed = bed_service.update_bed(ctx, bed.id, {'equipment': None})
    assert bed.equipment == []

    with pytest.raises(ValidationError):
        bed_service.update_bed(ctx, bed.id, {'bed_type': None})
    with pytest.raises(ValidationError):
        bed_service.update_bed(ctx, bed.id, {'bed_type': 'hammock'})
    with pytest.raises(NotFoundError):
        bed_service.update_bed(ctx, 99999, {'ward': 'x'})
