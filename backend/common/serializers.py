from rest_framework import serializers

from .payloads import Location, VehicleInfo


class LocationSerializer(serializers.Serializer):
    """
    {lat, lng, address} triple.
    Validated data comes back as a Location instance.
    """
    lat = serializers.FloatField(min_value=-90, max_value=90)
    lng = serializers.FloatField(min_value=-180, max_value=180)
    address = serializers.CharField(required=False, allow_blank=True, default="")

    def to_internal_value(self, data):
        validated = super().to_internal_value(data)
        return Location(
            lat=validated["lat"],
            lng=validated["lng"],
            address=validated.get("address", ""),
        )


class VehicleSerializer(serializers.Serializer):
    """Vehicle descriptor for drivers. Validated data is a VehicleInfo."""
    make = serializers.CharField(max_length=50)
    model = serializers.CharField(max_length=50)
    plate = serializers.CharField(max_length=20)
    color = serializers.CharField(max_length=30, required=False, allow_blank=True, default="")

    def to_internal_value(self, data):
        validated = super().to_internal_value(data)
        return VehicleInfo(**validated)
