from django.urls import path
from . import views

app_name = 'rides'

urlpatterns = [
    # Rider APIs
    path('request/', views.create_ride_request, name='create-ride'),
    path('active/', views.active_ride, name='active-ride'),
    path('mine/', views.my_rides, name='my-rides'),
    path('<int:ride_id>/', views.update_ride, name='update-ride'),
    path('<int:ride_id>/cancel/', views.cancel_ride, name='cancel-ride'),
    path('<int:ride_id>/pool-suggestions/', views.pool_suggestions, name='pool-suggestions'),

    # Driver Ride Actions
    path('available/', views.available_rides, name='available-rides'),
    path('<int:ride_id>/accept/', views.accept_ride, name='accept-ride'),
    path('<int:ride_id>/start/', views.start_ride, name='start-ride'),
    path('<int:ride_id>/complete/', views.complete_ride, name='complete-ride'),
]
