from django.db import models
from django.db.models import Q
from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator

from common.payloads import Location


class Ride(models.Model):
    """A rider's trip from request to completion or cancellation."""

    STATUS_WAITING = 'waiting'
    STATUS_ACCEPTED = 'accepted'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'

    STATUS_CHOICES = [
        (STATUS_WAITING, 'Waiting for Driver'),
        (STATUS_ACCEPTED, 'Accepted'),
        (STATUS_IN_PROGRESS, 'In Progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    ACTIVE_STATUSES = (STATUS_WAITING, STATUS_ACCEPTED, STATUS_IN_PROGRESS)
    DRIVER_ASSIGNED_STATUSES = (STATUS_ACCEPTED, STATUS_IN_PROGRESS, STATUS_COMPLETED)
    TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED)

    TYPE_SOLO = 'solo'
    TYPE_POOL = 'pool'
    TYPE_CHOICES = [
        (TYPE_SOLO, 'Solo'),
        (TYPE_POOL, 'Pool'),
    ]

    PAYMENT_CHOICES = [
        ('pending', 'Pending'),
        ('completed', 'Completed'),
        ('failed', 'Failed'),
    ]

    CANCELLED_BY_CHOICES = [
        ('rider', 'Rider'),
        ('driver', 'Driver'),
    ]

    # Largest value a PositiveIntegerField column holds on every backend
    MAX_DURATION_MINUTES = 2147483647

    # Foreign keys
    rider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='rides_requested'
    )

    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='rides_driven'
    )

    # Pickup location
    pickup_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_address = models.TextField(blank=True, default='')

    # Drop location
    drop_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    drop_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    drop_address = models.TextField(blank=True, default='')

    ride_type = models.CharField(max_length=10, choices=TYPE_CHOICES, default=TYPE_SOLO)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_WAITING)

    # Fare is fixed at creation
    fare = models.DecimalField(max_digits=8, decimal_places=2)
    estimated_duration = models.PositiveIntegerField(null=True, blank=True)  # minutes
    actual_duration = models.PositiveIntegerField(null=True, blank=True)  # minutes
    distance = models.DecimalField(max_digits=7, decimal_places=2, null=True, blank=True)  # km

    # Pool linkage
    pool_group_id = models.CharField(max_length=64, null=True, blank=True)
    pool_passengers = models.JSONField(null=True, blank=True)

    payment_status = models.CharField(max_length=10, choices=PAYMENT_CHOICES, default='pending')

    # Post-ride feedback
    rating = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1), MaxValueValidator(5)]
    )
    feedback = models.TextField(null=True, blank=True)

    cancelled_by = models.CharField(max_length=10, choices=CANCELLED_BY_CHOICES, null=True, blank=True)
    cancellation_reason = models.TextField(null=True, blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'rides'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['status', '-created_at'], name='rides_status_created_idx'),
        ]
        constraints = [
            # driver is set exactly while the ride is (or was) being driven
            models.CheckConstraint(
                condition=(
                    Q(driver__isnull=False, status__in=['accepted', 'in_progress', 'completed'])
                    | Q(driver__isnull=True, status__in=['waiting', 'cancelled'])
                ),
                name='ride_driver_matches_status',
            ),
            models.UniqueConstraint(
                fields=['rider'],
                condition=Q(status__in=['waiting', 'accepted', 'in_progress']),
                name='one_active_ride_per_rider',
            ),
            models.UniqueConstraint(
                fields=['driver'],
                condition=Q(status__in=['accepted', 'in_progress']),
                name='one_active_ride_per_driver',
            ),
        ]

    @property
    def pickup(self) -> Location:
        return Location(float(self.pickup_latitude), float(self.pickup_longitude), self.pickup_address)

    @property
    def drop(self) -> Location:
        return Location(float(self.drop_latitude), float(self.drop_longitude), self.drop_address)

    @property
    def is_active(self):
        return self.status in self.ACTIVE_STATUSES

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def __str__(self):
        return f"Ride #{self.id} - {self.rider} - {self.status}"


class PoolSuggestion(models.Model):
    """Suggested companion ride for a pool request (produced by the stub matcher)."""

    ride = models.ForeignKey(
        Ride,
        on_delete=models.CASCADE,
        related_name='pool_suggestions'
    )

    suggested_ride = models.ForeignKey(
        Ride,
        on_delete=models.CASCADE,
        related_name='+'
    )

    savings = models.DecimalField(max_digits=8, decimal_places=2)
    compatibility_score = models.DecimalField(
        max_digits=3,
        decimal_places=2,
        validators=[MinValueValidator(0), MaxValueValidator(1)]
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'pool_suggestions'
        ordering = ['-compatibility_score', '-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['ride', 'suggested_ride'],
                name='unique_pool_pair'
            )
        ]

    def __str__(self):
        return f"Pool #{self.id} - Ride {self.ride_id} + Ride {self.suggested_ride_id}"
