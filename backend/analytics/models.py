from decimal import Decimal

from django.db import models


class DailyAnalytics(models.Model):
    """Running totals for one calendar date, updated as rides complete."""

    date = models.DateField(unique=True)

    total_rides = models.IntegerField(default=0)
    total_revenue = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    active_drivers = models.IntegerField(default=0)

    # Running averages
    avg_wait_time = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))  # minutes
    avg_rating = models.DecimalField(max_digits=3, decimal_places=2, default=Decimal('0.00'))
    rated_rides = models.IntegerField(default=0)

    # Hour of request ("HH") -> completed rides
    peak_hours = models.JSONField(default=dict, blank=True)

    pool_rides = models.IntegerField(default=0)
    pool_ride_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0.00'))

    class Meta:
        db_table = 'daily_analytics'
        ordering = ['-date']
        verbose_name_plural = 'daily analytics'

    def __str__(self):
        return f"Analytics {self.date} - {self.total_rides} rides"
