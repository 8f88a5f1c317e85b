"""
Realtime app for WebSocket event delivery.

This app provides:
- The event fan-out bus mapping users to their live connection
- The WebSocket consumer clients connect to (ws/events/)
- Notification helpers that pair a ledger write with a live event
- JWT query-token authentication for WebSocket connections

Key Components:
    - bus.py: EventBus registry + targeted/broadcast delivery
    - consumers/: WebSocket consumers (base + event consumer)
    - notifications.py: ledger + after-commit event helpers
    - middleware.py: JWTAuthMiddleware

Usage:
    from realtime.bus import get_event_bus
    from realtime.consumers import EventConsumer
    from realtime.notifications import notify_user_event, broadcast_event
"""
