from decimal import Decimal

from rest_framework import serializers

from accounts.serializers import UserBasicSerializer
from common.serializers import LocationSerializer
from .models import Ride, PoolSuggestion


class RideSerializer(serializers.ModelSerializer):
    """Serializer for Rides"""
    rider = UserBasicSerializer(read_only=True)
    driver = UserBasicSerializer(read_only=True, allow_null=True)
    pickup = LocationSerializer(read_only=True)
    drop = LocationSerializer(read_only=True)
    vehicle = serializers.SerializerMethodField()

    class Meta:
        model = Ride
        fields = ['id', 'rider', 'driver', 'vehicle', 'pickup', 'drop', 'ride_type', 'status',
                  'fare', 'estimated_duration', 'actual_duration', 'distance',
                  'pool_group_id', 'pool_passengers', 'payment_status', 'rating', 'feedback',
                  'cancelled_by', 'cancellation_reason',
                  'created_at', 'accepted_at', 'started_at', 'completed_at', 'cancelled_at']
        read_only_fields = fields

    def get_vehicle(self, obj):
        """Assigned driver's vehicle, so the rider knows what to look for."""
        if obj.driver_id is None:
            return None
        profile = getattr(obj.driver, 'driver_profile', None)
        return profile.vehicle.as_dict() if profile else None


class RideCreateSerializer(serializers.Serializer):
    """Serializer for creating ride requests"""
    pickup = LocationSerializer()
    drop = LocationSerializer()
    ride_type = serializers.ChoiceField(choices=Ride.TYPE_CHOICES, default=Ride.TYPE_SOLO)
    fare = serializers.DecimalField(max_digits=8, decimal_places=2, min_value=Decimal('0.01'))
    estimated_duration = serializers.IntegerField(min_value=0, max_value=Ride.MAX_DURATION_MINUTES, required=False, allow_null=True)
    distance = serializers.DecimalField(max_digits=7, decimal_places=2, min_value=0, required=False, allow_null=True)


class RideCancelSerializer(serializers.Serializer):
    """Serializer for ride cancellation"""
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class RideCompleteSerializer(serializers.Serializer):
    actual_duration = serializers.IntegerField(min_value=0, max_value=Ride.MAX_DURATION_MINUTES, required=False, allow_null=True)


class RideUpdateSerializer(serializers.Serializer):
    """
    Partial ride update. Only the fields sent are passed on, and the
    lifecycle engine decides whether the change is allowed.
    """
    status = serializers.ChoiceField(
        choices=[Ride.STATUS_IN_PROGRESS, Ride.STATUS_COMPLETED, Ride.STATUS_CANCELLED],
        required=False
    )
    payment_status = serializers.ChoiceField(choices=Ride.PAYMENT_CHOICES, required=False)
    rating = serializers.IntegerField(min_value=1, max_value=5, required=False)
    feedback = serializers.CharField(required=False, allow_blank=True)
    cancellation_reason = serializers.CharField(required=False, allow_blank=True)
    actual_duration = serializers.IntegerField(min_value=0, max_value=Ride.MAX_DURATION_MINUTES, required=False)

    def validate(self, data):
        unknown = set(self.initial_data) - set(self.fields)
        if unknown:
            raise serializers.ValidationError(
                f"Fields cannot be updated: {', '.join(sorted(unknown))}"
            )
        if not data:
            raise serializers.ValidationError("Nothing to update")
        return data


class PoolSuggestionSerializer(serializers.ModelSerializer):
    suggested_ride = RideSerializer(read_only=True)

    class Meta:
        model = PoolSuggestion
        fields = ['id', 'suggested_ride', 'savings', 'compatibility_score', 'created_at']
        read_only_fields = fields
