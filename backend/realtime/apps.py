from django.apps import AppConfig


class RealtimeConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'realtime'

    def ready(self):
        from .bus import EventBus

        # One bus per process; the channel layer is resolved lazily on first send
        self.event_bus = EventBus()
