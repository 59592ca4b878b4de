import bleach
from rest_framework import serializers

from core.models import Appointment

STATUS_VALUES = [c[0] for c in Appointment.STATUS_CHOICES]


def _clean(v):
    return bleach.clean((v or '').strip(), strip=True)


class AppointmentRequestSerializer(serializers.Serializer):
    healthcareWorkerId = serializers.IntegerField(required=False)
    doctorId = serializers.IntegerField(required=False)
    patientId = serializers.IntegerField(required=False)
    requestedDate = serializers.DateTimeField()
    appointmentTime = serializers.CharField(required=False, allow_blank=True, max_length=32, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_notes(self, v):
        return _clean(v)


class AppointmentListQuerySerializer(serializers.Serializer):
    status = serializers.CharField(required=False)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=200)

    def validate_status(self, v):
        values = [s.strip() for s in v.split(',') if s.strip()]
        bad = [s for s in values if s not in STATUS_VALUES]
        if bad:
            raise serializers.ValidationError(f'Unknown status: {", ".join(bad)}')
        return values


class RescheduleSerializer(serializers.Serializer):
    rescheduledDate = serializers.DateTimeField()
    appointmentTime = serializers.CharField(max_length=32)


class RespondSerializer(serializers.Serializer):
    status = serializers.ChoiceField(
        choices=[Appointment.STATUS_ACCEPTED, Appointment.STATUS_DECLINED, Appointment.STATUS_COMPLETED],
    )
    message = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_message(self, v):
        return _clean(v)


class MessageSerializer(serializers.Serializer):
    message = serializers.CharField(required=False, allow_blank=True, default='')
    reason = serializers.CharField(required=False, allow_blank=True, default='', max_length=255)

    def validate_message(self, v):
        return _clean(v)

    def validate_reason(self, v):
        return _clean(v)
