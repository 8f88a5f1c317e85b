from decimal import Decimal

from django.db import models
from django.contrib.auth.models import AbstractUser

from common.payloads import location_or_none


class User(AbstractUser):
    """Extended user model with role, availability and ride stats"""
    ROLE_STUDENT = 'student'
    ROLE_DRIVER = 'driver'
    ROLE_ADMIN = 'admin'

    ROLE_CHOICES = [
        (ROLE_STUDENT, 'Student'),
        (ROLE_DRIVER, 'Driver'),
        (ROLE_ADMIN, 'Transport Admin'),
    ]
    
    # Role & basic info
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_STUDENT)
    phone_number = models.CharField(max_length=20, blank=True)

    # Availability & last known location
    is_online = models.BooleanField(default=False)
    current_latitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    current_longitude = models.DecimalField(max_digits=9, decimal_places=6, null=True, blank=True)
    current_address = models.TextField(blank=True, default='')
    last_location_update = models.DateTimeField(null=True, blank=True)

    # Ride stats
    rating = models.DecimalField(max_digits=3, decimal_places=2, default=Decimal('0.00'))
    rating_count = models.IntegerField(default=0)
    completed_rides = models.IntegerField(default=0)
    earnings = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    
    class Meta:
        db_table = 'users'
        indexes = [
            models.Index(fields=['role', 'is_online'], name='users_role_online_idx'),
        ]

    @property
    def is_driver(self):
        return self.role == self.ROLE_DRIVER

    @property
    def location(self):
        return location_or_none(self.current_latitude, self.current_longitude, self.current_address)

    @property
    def display_name(self):
        return self.get_full_name() or self.username
        
    def __str__(self):
        return f"{self.username} ({self.get_role_display()})"
