from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from accounts.permissions import IsAdminRole
from services import analytics
from .serializers import (
    DailyAnalyticsSerializer,
    DemandSeriesSerializer,
    RevenueSeriesSerializer,
)


@api_view(['GET'])
@permission_classes([IsAdminRole])
def today_analytics(request):
    """Today's rollup (zero-valued when nothing has happened yet)."""
    return Response(DailyAnalyticsSerializer(analytics.today_snapshot()).data)


@api_view(['GET'])
@permission_classes([IsAdminRole])
def demand_prediction(request):
    return Response(DemandSeriesSerializer(analytics.demand_prediction()).data)


@api_view(['GET'])
@permission_classes([IsAdminRole])
def revenue_trend(request):
    return Response(RevenueSeriesSerializer(analytics.revenue_trend()).data)
