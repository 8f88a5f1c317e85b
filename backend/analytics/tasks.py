"""Celery tasks for analytics background processing."""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def snapshot_active_drivers_task():
    """
    Store how many drivers are online right now in today's rollup.

    Scheduled by celery beat (see CELERY_BEAT_SCHEDULE).
    """
    from django.contrib.auth import get_user_model
    from services import analytics

    User = get_user_model()
    count = User.objects.filter(role=User.ROLE_DRIVER, is_online=True).count()
    analytics.record_active_drivers(count)
    logger.info("Active drivers snapshot: %d", count)
    return count
