import bleach
from rest_framework import serializers

from core.models import Screening


class ScreeningUploadSerializer(serializers.Serializer):
    patientId = serializers.IntegerField()
    imageUrl = serializers.URLField(required=False, max_length=1024)
    status = serializers.ChoiceField(
        choices=[Screening.STATUS_PENDING, Screening.STATUS_UPLOADED], required=False,
    )


class ScreeningListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c[0] for c in Screening.STATUS_CHOICES], required=False)
    patientId = serializers.IntegerField(required=False)


class EnhanceSerializer(serializers.Serializer):
    brightness = serializers.IntegerField(min_value=-100, max_value=100, default=0)
    contrast = serializers.IntegerField(min_value=-100, max_value=100, default=0)
    saturation = serializers.IntegerField(min_value=-100, max_value=100, default=0)
    sharpness = serializers.IntegerField(min_value=0, max_value=100, default=0)
    preview = serializers.BooleanField(default=False)


class ReviewSerializer(serializers.Serializer):
    reviewStatus = serializers.ChoiceField(choices=[c[0] for c in Screening.REVIEW_CHOICES])
    doctorComments = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_doctorComments(self, v):
        return bleach.clean((v or '').strip(), strip=True)
