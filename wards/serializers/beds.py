from rest_framework import serializers

from wards.models import Bed

BED_TYPE_CHOICES = [k for k, _ in Bed.TYPE_CHOICES]
BED_STATUS_CHOICES = [k for k, _ in Bed.STATUS_CHOICES]


class BedCreateSerializer(serializers.Serializer):
    roomNumber = serializers.CharField(max_length=20, source='room_number')
    bedNumber = serializers.CharField(max_length=20, source='bed_number')
    departmentId = serializers.IntegerField(min_value=1, required=False, allow_null=True, source='department_id')
    ward = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    floor = serializers.IntegerField(required=False, allow_null=True)
    type = serializers.ChoiceField(choices=BED_TYPE_CHOICES, default=Bed.TYPE_GENERAL, source='bed_type')
    description = serializers.CharField(required=False, allow_blank=True)
    equipment = serializers.ListField(child=serializers.CharField(max_length=100), required=False)


class BedUpdateSerializer(serializers.Serializer):
    """Partial update: only keys present in the request end up in ``validated_data``."""
    id = serializers.IntegerField(min_value=1, write_only=True)
    roomNumber = serializers.CharField(max_length=20, required=False, source='room_number')
    bedNumber = serializers.CharField(max_length=20, required=False, source='bed_number')
    departmentId = serializers.IntegerField(min_value=1, required=False, allow_null=True, source='department_id')
    ward = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    floor = serializers.IntegerField(required=False, allow_null=True)
    type = serializers.ChoiceField(choices=BED_TYPE_CHOICES, required=False, source='bed_type')
    status = serializers.ChoiceField(choices=BED_STATUS_CHOICES, required=False)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    equipment = serializers.ListField(
        child=serializers.CharField(max_length=100), required=False, allow_null=True
    )
    isActive = serializers.BooleanField(required=False, source='is_active')

    def to_patch(self) -> dict:
        patch = dict(self.validated_data)
        patch.pop('id', None)
        return patch


class BedIdSerializer(serializers.Serializer):
    id = serializers.IntegerField(min_value=1)


class BedListQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, max_value=100, required=False)
    search = serializers.CharField(max_length=64, required=False, allow_blank=True)
    departmentId = serializers.IntegerField(min_value=1, required=False)
    type = serializers.ChoiceField(choices=BED_TYPE_CHOICES, required=False)
    status = serializers.ChoiceField(choices=BED_STATUS_CHOICES, required=False)
    ward = serializers.CharField(max_length=100, required=False, allow_blank=True)


class AvailableBedsQuerySerializer(serializers.Serializer):
    departmentId = serializers.IntegerField(min_value=1, required=False)
    type = serializers.ChoiceField(choices=BED_TYPE_CHOICES, required=False)
    ward = serializers.CharField(max_length=100, required=False, allow_blank=True)
