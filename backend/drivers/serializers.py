from rest_framework import serializers

from accounts.serializers import UserSerializer
from common.serializers import LocationSerializer, VehicleSerializer
from drivers.models import DriverProfile


class DriverProfileSerializer(serializers.ModelSerializer):
    """
    Full driver profile serializer
    """
    user = UserSerializer(read_only=True)
    vehicle = serializers.SerializerMethodField()

    class Meta:
        model = DriverProfile
        fields = ["id", "user", "vehicle"]
        read_only_fields = fields

    def get_vehicle(self, obj):
        return obj.vehicle.as_dict()


class OnlineDriverSerializer(serializers.Serializer):
    """
    Lite driver info for the online drivers list.
    """
    id = serializers.IntegerField()
    username = serializers.CharField()
    name = serializers.CharField(source="display_name")
    rating = serializers.DecimalField(max_digits=3, decimal_places=2)
    location = LocationSerializer(allow_null=True)
    last_location_update = serializers.DateTimeField(allow_null=True)
    vehicle = serializers.SerializerMethodField()

    def get_vehicle(self, obj):
        profile = getattr(obj, "driver_profile", None)
        return profile.vehicle.as_dict() if profile else None


class DriverStatusSerializer(serializers.Serializer):
    """
    Serializer for updating driver availability (online/offline).
    """
    online = serializers.BooleanField()


class DriverVehicleSerializer(serializers.Serializer):
    vehicle = VehicleSerializer()


class LocationUpdateSerializer(serializers.Serializer):
    """
    Serializer for updating driver GPS location.
    """
    location = LocationSerializer()
