from rest_framework import serializers

from .models import DailyAnalytics


class DailyAnalyticsSerializer(serializers.ModelSerializer):
    class Meta:
        model = DailyAnalytics
        fields = [
            'date',
            'total_rides',
            'total_revenue',
            'active_drivers',
            'avg_wait_time',
            'avg_rating',
            'peak_hours',
            'pool_ride_percentage',
        ]
        read_only_fields = fields


class DemandSeriesSerializer(serializers.Serializer):
    labels = serializers.ListField(child=serializers.CharField())
    predicted = serializers.ListField(child=serializers.IntegerField())
    actual = serializers.ListField(child=serializers.IntegerField())


class RevenueSeriesSerializer(serializers.Serializer):
    labels = serializers.ListField(child=serializers.CharField())
    data = serializers.ListField(child=serializers.FloatField())
