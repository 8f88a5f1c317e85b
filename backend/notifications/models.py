from django.db import models
from django.conf import settings


class Notification(models.Model):
    """Per-user ledger entry written as a side effect of a ride transition."""

    RIDE_REQUEST = 'ride_request'
    RIDE_ACCEPTED = 'ride_accepted'
    RIDE_STARTED = 'ride_started'
    RIDE_COMPLETED = 'ride_completed'
    RIDE_CANCELLED = 'ride_cancelled'
    DRIVER_ONLINE = 'driver_online'

    # null user = broadcast entry
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='notifications'
    )

    # Tag set is open-ended; the constants above are the ones written today
    notification_type = models.CharField(max_length=32)
    title = models.CharField(max_length=120)
    message = models.TextField()
    data = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['user', '-created_at'], name='notif_user_created_idx'),
        ]

    def __str__(self):
        return f"Notification #{self.id} - {self.notification_type} -> {self.user_id}"
