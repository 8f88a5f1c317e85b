"""
Append-only notification ledger.

Entries are written once by the ride services and never edited again,
except for the read flag, which only ever goes from False to True.
"""

import logging
from typing import Any, Dict, Optional

from django.db.models import QuerySet

from notifications.models import Notification
from services.ride_management.exceptions import NotFoundError

logger = logging.getLogger(__name__)


def record(
    user,
    notification_type: str,
    title: str,
    message: str,
    data: Optional[Dict[str, Any]] = None,
) -> Notification:
    """Append one entry to ``user``'s ledger (``user=None`` for a broadcast entry)."""
    notification = Notification.objects.create(
        user=user,
        notification_type=notification_type,
        title=title,
        message=message,
        data=data or {},
    )
    logger.debug(
        "Ledger entry %s (%s) for user %s",
        notification.id, notification_type, getattr(user, "id", None)
    )
    return notification


def list_for_user(user) -> QuerySet:
    """All entries addressed to ``user``, newest first."""
    return Notification.objects.filter(user=user).order_by('-created_at', '-id')


def unread_count(user) -> int:
    return Notification.objects.filter(user=user, is_read=False).count()


def mark_read(notification_id: int, user=None) -> Notification:
    """
    Flip the read flag on one entry.
    
    Args:
        notification_id: Ledger entry id
        user: When given, the entry must belong to this user
    
    Returns:
        The (now read) Notification
    
    Raises:
        NotFoundError: Unknown id, or the entry belongs to someone else
    """
    try:
        notification = Notification.objects.get(id=notification_id)
    except Notification.DoesNotExist:
        raise NotFoundError("Notification not found")

    if user is not None and notification.user_id != user.id:
        raise NotFoundError("Notification not found")

    if not notification.is_read:
        # Conditional update keeps the flag monotonic under concurrent calls
        Notification.objects.filter(id=notification.id, is_read=False).update(is_read=True)
        notification.is_read = True

    return notification
