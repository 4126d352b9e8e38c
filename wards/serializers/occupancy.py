from rest_framework import serializers

from wards.models import BedOccupancy

PRIORITY_CHOICES = [k for k, _ in BedOccupancy.PRIORITY_CHOICES]
STATUS_CHOICES = [k for k, _ in BedOccupancy.STATUS_CHOICES]


class AllocateSerializer(serializers.Serializer):
    bedId = serializers.IntegerField(min_value=1)
    patientId = serializers.IntegerField(min_value=1)
    doctorId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    admissionReason = serializers.CharField(max_length=2000)
    diagnosis = serializers.CharField(max_length=2000, required=False, allow_blank=True, allow_null=True)
    expectedDischargeDate = serializers.DateTimeField(required=False, allow_null=True)
    priority = serializers.ChoiceField(choices=PRIORITY_CHOICES, default=BedOccupancy.PRIORITY_NORMAL)
    notes = serializers.CharField(max_length=4000, required=False, allow_blank=True, allow_null=True)


class DischargeSerializer(serializers.Serializer):
    occupancyId = serializers.IntegerField(min_value=1)
    notes = serializers.CharField(max_length=4000, required=False, allow_blank=True, allow_null=True)


class TransferSerializer(serializers.Serializer):
    occupancyId = serializers.IntegerField(min_value=1)
    newBedId = serializers.IntegerField(min_value=1)
    reason = serializers.CharField(max_length=2000, required=False, allow_blank=True, allow_null=True)


class OccupancyUpdateSerializer(serializers.Serializer):
    """Partial update of an active admission; absent keys are not changed."""
    occupancyId = serializers.IntegerField(min_value=1, write_only=True)
    doctorId = serializers.IntegerField(min_value=1, required=False, allow_null=True, source='doctor_id')
    admissionReason = serializers.CharField(max_length=2000, required=False, source='admission_reason')
    diagnosis = serializers.CharField(max_length=2000, required=False, allow_blank=True, allow_null=True)
    expectedDischargeDate = serializers.DateTimeField(
        required=False, allow_null=True, source='expected_discharge_date'
    )
    priority = serializers.ChoiceField(choices=PRIORITY_CHOICES, required=False)
    notes = serializers.CharField(max_length=4000, required=False, allow_blank=True, allow_null=True)

    def to_patch(self) -> dict:
        patch = dict(self.validated_data)
        patch.pop('occupancyId', None)
        return patch


class HistoryQuerySerializer(serializers.Serializer):
    patientId = serializers.IntegerField(min_value=1, required=False)
    bedId = serializers.IntegerField(min_value=1, required=False)
    status = serializers.ChoiceField(choices=STATUS_CHOICES, required=False)
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, max_value=100, required=False)
