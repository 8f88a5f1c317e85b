from django.db import models
from django.conf import settings

from common.payloads import VehicleInfo

User = settings.AUTH_USER_MODEL

class DriverProfile(models.Model):
    """Driver-specific vehicle details"""
    
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='driver_profile')
    
    # Vehicle details
    vehicle_make = models.CharField(max_length=50)
    vehicle_model = models.CharField(max_length=50)
    vehicle_plate = models.CharField(max_length=20, unique=True)
    vehicle_color = models.CharField(max_length=30, blank=True, default='')
    
    class Meta:
        db_table = 'driver_profiles'

    @classmethod
    def create_for(cls, user, vehicle: VehicleInfo) -> "DriverProfile":
        return cls.objects.create(
            user=user,
            vehicle_make=vehicle.make,
            vehicle_model=vehicle.model,
            vehicle_plate=vehicle.plate,
            vehicle_color=vehicle.color,
        )

    @property
    def vehicle(self) -> VehicleInfo:
        return VehicleInfo(
            make=self.vehicle_make,
            model=self.vehicle_model,
            plate=self.vehicle_plate,
            color=self.vehicle_color,
        )

    def set_vehicle(self, vehicle: VehicleInfo):
        self.vehicle_make = vehicle.make
        self.vehicle_model = vehicle.model
        self.vehicle_plate = vehicle.plate
        self.vehicle_color = vehicle.color
        
    def __str__(self):
        return f"{self.user.username} - {self.vehicle_plate}"
