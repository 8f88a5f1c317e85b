"""Tells what to show in the Django admin interface for rides app"""

from django.contrib import admin
from .models import Ride, PoolSuggestion

@admin.register(Ride)
class RideAdmin(admin.ModelAdmin):
    """Ride admin"""
    list_display = ['id', 'rider', 'driver', 'ride_type', 'status', 'fare', 'created_at', 'completed_at']
    list_filter = ['status', 'ride_type', 'payment_status']
    search_fields = ['rider__username', 'driver__username', 'pickup_address', 'drop_address']
    readonly_fields = ['created_at', 'accepted_at', 'started_at', 'completed_at', 'cancelled_at']
    date_hierarchy = 'created_at'


@admin.register(PoolSuggestion)
class PoolSuggestionAdmin(admin.ModelAdmin):
    list_display = ("ride", "suggested_ride", "savings", "compatibility_score", "created_at")
    search_fields = ("ride__id",)
