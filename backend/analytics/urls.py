from django.urls import path
from . import views

app_name = 'analytics'

urlpatterns = [
    path('today/', views.today_analytics, name='today'),
    path('demand-prediction/', views.demand_prediction, name='demand-prediction'),
    path('revenue/', views.revenue_trend, name='revenue'),
]
