from django.db import IntegrityError, transaction
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from accounts.permissions import IsDriver
from common.serializers import LocationSerializer
from drivers.models import DriverProfile
from drivers.serializers import (
    DriverProfileSerializer,
    DriverStatusSerializer,
    DriverVehicleSerializer,
    LocationUpdateSerializer,
    OnlineDriverSerializer,
)
from drivers import services


def _error(error, message, http_status, details=None):
    body = {"success": False, "error": error, "message": message}
    if details is not None:
        body["details"] = details
    return Response(body, status=http_status)


def _invalid(serializer):
    return _error("validation_error", "Invalid request data", status.HTTP_400_BAD_REQUEST, serializer.errors)


def _profile_of(user):
    try:
        return user.driver_profile
    except DriverProfile.DoesNotExist:
        return None


class DriverView(APIView):
    """Endpoints only drivers may call."""
    permission_classes = [IsAuthenticated, IsDriver]


class DriverProfileView(DriverView):

    def get(self, request):
        profile = _profile_of(request.user)
        if profile is None:
            return _error("not_found", "Driver profile not found", status.HTTP_404_NOT_FOUND)
        return Response(DriverProfileSerializer(profile).data)

    def post(self, request):
        """Register or replace the vehicle descriptor."""
        serializer = DriverVehicleSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)
        vehicle = serializer.validated_data["vehicle"]

        profile = _profile_of(request.user)
        try:
            with transaction.atomic():
                if profile is None:
                    profile = DriverProfile.create_for(request.user, vehicle)
                else:
                    profile.set_vehicle(vehicle)
                    profile.save()
        except IntegrityError:
            return _error("conflict", "Vehicle plate already registered", status.HTTP_409_CONFLICT)

        return Response(DriverProfileSerializer(profile).data)


class DriverStatusView(DriverView):

    def get(self, request):
        return Response({"online": request.user.is_online})

    def put(self, request):
        serializer = DriverStatusSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)
        online = serializer.validated_data["online"]

        services.set_user_availability(request.user, online)
        return Response({
            "online": online,
            "message": "You are now online" if online else "You are now offline",
        })


class DriverLocationUpdateView(DriverView):

    def get(self, request):
        location = request.user.location
        return Response({
            "location": LocationSerializer(location).data if location else None,
            "last_updated": request.user.last_location_update,
        })

    def post(self, request):
        serializer = LocationUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return _invalid(serializer)
        location = serializer.validated_data["location"]

        services.update_driver_location(request.user, location)
        return Response({"message": "Location updated", "location": location.as_dict()})


class OnlineDriversView(APIView):
    """Online drivers with their vehicles and last known position (any signed-in user)."""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        data = OnlineDriverSerializer(services.get_online_drivers(), many=True).data
        return Response({"count": len(data), "drivers": data})
