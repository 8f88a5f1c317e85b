from rest_framework import serializers
from django.contrib.auth import authenticate
from django.db import transaction

from common.serializers import LocationSerializer, VehicleSerializer
from .models import User
from drivers.models import DriverProfile


class UserSerializer(serializers.ModelSerializer):
    name = serializers.CharField(source="display_name", read_only=True)
    location = LocationSerializer(read_only=True, allow_null=True)
    vehicle = serializers.SerializerMethodField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "name",
            "email",
            "role",
            "phone_number",
            "is_online",
            "location",
            "rating",
            "rating_count",
            "completed_rides",
            "earnings",
            "vehicle",
        ]
        read_only_fields = fields

    def get_vehicle(self, obj):
        """Vehicle descriptor for drivers, None for everyone else."""
        if not obj.is_driver:
            return None
        profile = getattr(obj, "driver_profile", None)
        return profile.vehicle.as_dict() if profile else None


class UserBasicSerializer(serializers.ModelSerializer):
    """Lite user info embedded in rides and events."""
    name = serializers.CharField(source="display_name", read_only=True)

    class Meta:
        model = User
        fields = ["id", "username", "name", "phone_number", "rating"]


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(write_only=True)

    def validate(self, data):
        user = authenticate(username=data["username"], password=data["password"])
        if not user:
            raise serializers.ValidationError("Invalid username or password")
        return user


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, min_length=8)
    role = serializers.ChoiceField(choices=[User.ROLE_STUDENT, User.ROLE_DRIVER])
    vehicle = VehicleSerializer(required=False)

    class Meta:
        model = User
        fields = ['username', 'password', 'email', 'first_name', 'last_name', 'role', 'phone_number', 'vehicle']
    
    def validate_email(self, value):
        if value and User.objects.filter(email=value).exists():
            raise serializers.ValidationError("Email already exists")
        return value
    
    def validate(self, data):
        # If registering as driver, vehicle details are required
        if data['role'] == User.ROLE_DRIVER and not data.get('vehicle'):
            raise serializers.ValidationError({
                'vehicle': 'Vehicle details are required for drivers'
            })
        return data
    
    @transaction.atomic
    def create(self, validated_data):
        vehicle = validated_data.pop('vehicle', None)
        password = validated_data.pop('password')
        
        user = User.objects.create_user(password=password, **validated_data)
        
        # Create driver profile if role is driver
        if user.is_driver and vehicle:
            DriverProfile.create_for(user, vehicle)
        
        return user
