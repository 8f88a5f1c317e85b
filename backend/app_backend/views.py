import logging

import redis
from django.conf import settings
from django.utils import timezone
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework import status
from channels.layers import get_channel_layer

from rides.models import Ride
from analytics.tasks import snapshot_active_drivers_task

logger = logging.getLogger(__name__)


def _check_database():
    Ride.objects.exists()
    return "healthy"


def _check_redis():
    redis.Redis.from_url(settings.REDIS_URL, socket_timeout=3).ping()
    return "healthy"


def _check_channels():
    if get_channel_layer() is None:
        raise RuntimeError("no channel layer configured")
    return "healthy"


def _check_event_bus():
    from realtime.bus import get_event_bus
    return f"healthy ({len(get_event_bus().connected_users())} live connections)"


def _check_celery():
    if snapshot_active_drivers_task.name not in snapshot_active_drivers_task.app.tasks:
        raise RuntimeError("analytics tasks not registered")
    return "healthy"


CHECKS = {
    "database": _check_database,
    "redis": _check_redis,
    "channels": _check_channels,
    "event_bus": _check_event_bus,
    "celery": _check_celery,
}


@api_view(["GET"])
@permission_classes([AllowAny])
def health_check(request):
    """Run every dependency check. 503 if any of them fails."""
    services = {}
    healthy = True
    for name, check in CHECKS.items():
        try:
            services[name] = check()
        except Exception as e:
            logger.warning("Health check %s failed: %s", name, e)
            services[name] = f"unhealthy: {e}"
            healthy = False

    body = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": timezone.now().isoformat(),
        "services": services,
    }
    return Response(body, status=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE)
