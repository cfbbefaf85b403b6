import bleach
from rest_framework import serializers

from scheduling.services.derived import FILTER_ALL, VIEW_MODES
from scheduling.services.records import STATUSES
from scheduling.services.workflow import ACTIONS


def _clean_text(v):
    return bleach.clean((v or '').strip(), strip=True)


class AppointmentWriteSerializer(serializers.Serializer):
    """Body of create/update requests.  Every field is optional on update."""
    patientId = serializers.IntegerField(required=False, allow_null=True)
    patientName = serializers.CharField(required=False, allow_blank=True, max_length=255)
    doctorId = serializers.IntegerField(required=False, allow_null=True)
    doctorName = serializers.CharField(required=False, allow_blank=True, max_length=255)
    date = serializers.DateTimeField(required=False)
    appointmentDate = serializers.DateTimeField(required=False)
    endTime = serializers.DateTimeField(required=False, allow_null=True)
    status = serializers.ChoiceField(choices=list(STATUSES), required=False)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=2000)
    type = serializers.CharField(required=False, allow_blank=True, max_length=64)

    def validate_patientName(self, v):
        return _clean_text(v)

    def validate_doctorName(self, v):
        return _clean_text(v)

    def validate_notes(self, v):
        return _clean_text(v)

    def validate(self, attrs):
        if 'appointmentDate' in attrs:
            attrs.setdefault('date', attrs.pop('appointmentDate'))
        if self.context.get('creating') and not attrs.get('date'):
            raise serializers.ValidationError({'date': 'Appointment date is required'})
        start, end = attrs.get('date'), attrs.get('endTime')
        if start and end and end <= start:
            raise serializers.ValidationError({'endTime': 'End time must be after the start time'})
        return attrs


class DashboardQuerySerializer(serializers.Serializer):
    q = serializers.CharField(required=False, allow_blank=True, max_length=128)
    status = serializers.ChoiceField(choices=[FILTER_ALL, *STATUSES], required=False)
    viewMode = serializers.ChoiceField(choices=list(VIEW_MODES), required=False)


class ScheduleQuerySerializer(serializers.Serializer):
    start = serializers.DateTimeField()
    end = serializers.DateTimeField()

    def validate(self, attrs):
        if attrs['end'] < attrs['start']:
            raise serializers.ValidationError({'end': 'end must not be before start'})
        return attrs


class ActionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=list(ACTIONS))


class RescheduleSerializer(serializers.Serializer):
    start = serializers.DateTimeField()
    end = serializers.DateTimeField(required=False)
