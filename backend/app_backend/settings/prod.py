"""Production overlay: Redis-backed channels, locked-down hosts and CORS."""

from .settings import *  # noqa: F401,F403

DEBUG = False

if SECRET_KEY == "dev-insecure-change-me":
    raise RuntimeError("DJANGO_SECRET_KEY must be set in production")

ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1").split(',')

CORS_ALLOW_ALL_ORIGINS = False
CORS_ALLOWED_ORIGINS = os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:5173").split(',')

SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True

# Short-lived connections under ASGI
DATABASES["default"]["CONN_MAX_AGE"] = int(os.getenv("DB_CONN_MAX_AGE", 0))

# capacity bounds the backlog of one slow socket
CHANNEL_LAYERS = {
    "default": {
        "BACKEND": "channels_redis.core.RedisChannelLayer",
        "CONFIG": {
            "hosts": [REDIS_URL],
            "capacity": int(os.getenv("CHANNEL_CAPACITY", 200)),
            "expiry": 30,
        },
    }
}
