from django.contrib import admin
from django.urls import path, include

from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check), # Health check endpoint

    # Authentication endpoints (at /api/auth/)
    path('api/auth/', include('accounts.urls')),  # register, login, refresh, me

    # Driver APIs (profile, availability, location, online list)
    path('api/driver/', include('drivers.urls')),

    # Rides endpoints (at /api/rides/)
    path('api/rides/', include('rides.urls')),

    # Notification ledger
    path('api/notifications/', include('notifications.urls')),

    # Operations dashboard
    path('api/analytics/', include('analytics.urls')),
]
