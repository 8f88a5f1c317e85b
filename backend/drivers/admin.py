from django.contrib import admin
from drivers.models import DriverProfile


@admin.register(DriverProfile)
class DriverProfileAdmin(admin.ModelAdmin):
    """Vehicles registered by drivers"""

    list_display = ["user", "vehicle_plate", "vehicle_make", "vehicle_model", "vehicle_color", "driver_online"]
    list_select_related = ["user"]
    list_filter = ["user__is_online", "vehicle_make"]
    search_fields = ["user__username", "vehicle_plate"]
    ordering = ("user__username",)

    @admin.display(boolean=True, description="Online")
    def driver_online(self, obj):
        return obj.user.is_online
