"""WebSocket URL routing for the realtime app."""

from django.urls import re_path

from .consumers.event_consumer import EventConsumer

websocket_urlpatterns = [
    # Event channel shared by riders, drivers and the dashboard
    # URL: ws://localhost:8000/ws/events/?token=<jwt>
    re_path(
        r"ws/events/$",
        EventConsumer.as_asgi(),
        name="events-ws"
    ),
]
