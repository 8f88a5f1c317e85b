"""
Notification ledger service.

Durable per-user notification history:
    - Recording entries as side effects of ride transitions
    - Listing a user's entries (newest first)
    - Marking entries as read
"""

from .ledger import record, list_for_user, mark_read, unread_count

__all__ = [
    "record",
    "list_for_user",
    "mark_read",
    "unread_count",
]
