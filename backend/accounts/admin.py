from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from accounts.models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin panel for custom User model"""

    list_display = [
        "username",
        "email",
        "role",
        "is_online",
        "rating",
        "completed_rides",
        "earnings",
        "is_active",
    ]

    list_filter = [
        "role",
        "is_online",
        "is_active",
        "date_joined",
    ]

    search_fields = [
        "username",
        "email",
        "phone_number",
    ]

    ordering = ("username",)

    readonly_fields = ["rating", "rating_count", "completed_rides", "earnings", "last_location_update"]

    # Extend default Django UserAdmin fieldsets
    fieldsets = BaseUserAdmin.fieldsets + (
        (
            "Rider / Driver Info",
            {
                "fields": (
                    "role",
                    "phone_number",
                    "is_online",
                    "current_latitude",
                    "current_longitude",
                    "current_address",
                    "last_location_update",
                )
            },
        ),
        (
            "Ride Stats",
            {
                "fields": (
                    "rating",
                    "rating_count",
                    "completed_rides",
                    "earnings",
                )
            },
        ),
    )

    # For create user page in admin
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        (
            "Additional Info",
            {
                "fields": (
                    "role",
                    "phone_number",
                )
            },
        ),
    )
