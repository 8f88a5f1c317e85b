from django.contrib import admin
from .models import DailyAnalytics


@admin.register(DailyAnalytics)
class DailyAnalyticsAdmin(admin.ModelAdmin):
    list_display = ("date", "total_rides", "total_revenue", "active_drivers", "avg_wait_time", "avg_rating")
    ordering = ("-date",)
