from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from services import analytics
from .models import DailyAnalytics
from .tasks import snapshot_active_drivers_task
from .views import today_analytics, demand_prediction, revenue_trend


def completed_ride(fare, wait_minutes=0, ride_type='solo'):
	created = timezone.now() - timedelta(minutes=wait_minutes + 10)
	return SimpleNamespace(
		fare=Decimal(fare),
		ride_type=ride_type,
		created_at=created,
		accepted_at=created + timedelta(minutes=wait_minutes),
	)


class AggregatorTests(TestCase):
	def test_snapshot_defaults_to_zero_without_writing(self):
		row = analytics.today_snapshot()

		self.assertEqual(row.total_rides, 0)
		self.assertEqual(row.total_revenue, Decimal('0.00'))
		self.assertIsNone(row.pk)
		self.assertFalse(DailyAnalytics.objects.exists())

	def test_record_completion_accumulates(self):
		analytics.record_completion(completed_ride('45.00', wait_minutes=4))
		row = analytics.record_completion(completed_ride('55.50', wait_minutes=8, ride_type='pool'))

		self.assertEqual(row.total_rides, 2)
		self.assertEqual(row.total_revenue, Decimal('100.50'))
		self.assertEqual(row.avg_wait_time, Decimal('6.00'))
		self.assertEqual(row.pool_rides, 1)
		self.assertEqual(row.pool_ride_percentage, Decimal('50.00'))
		self.assertEqual(sum(row.peak_hours.values()), 2)
		self.assertEqual(DailyAnalytics.objects.count(), 1)

	def test_long_waits_fit_the_rollup(self):
		analytics.record_completion(completed_ride('45.00', wait_minutes=8 * 24 * 60))

		row = DailyAnalytics.objects.get(date=timezone.localdate())
		self.assertEqual(row.avg_wait_time, Decimal('11520.00'))
		self.assertEqual(analytics.today_snapshot().total_rides, 1)

	def test_wait_sample_is_capped_at_a_year(self):
		row = analytics.record_completion(completed_ride('45.00', wait_minutes=5 * 365 * 24 * 60))

		row.refresh_from_db()
		self.assertEqual(row.avg_wait_time, Decimal('525600.00'))
		self.assertEqual(row.total_rides, 1)

	def test_record_rating_running_average(self):
		analytics.record_rating(5)
		row = analytics.record_rating(4)

		self.assertEqual(row.avg_rating, Decimal('4.50'))
		self.assertEqual(row.rated_rides, 2)

	def test_demand_prediction_is_well_formed(self):
		series = analytics.demand_prediction()

		self.assertEqual(len(series['labels']), 7)
		self.assertEqual(len(series['predicted']), 7)
		self.assertEqual(len(series['actual']), 7)
		self.assertEqual(series['predicted'], [12, 45, 25, 35, 67, 89, 23])

	def test_revenue_trend_covers_last_week(self):
		today = timezone.localdate()
		DailyAnalytics.objects.create(date=today - timedelta(days=2), total_revenue=Decimal('120.00'))
		DailyAnalytics.objects.create(date=today - timedelta(days=30), total_revenue=Decimal('999.00'))

		series = analytics.revenue_trend()

		self.assertEqual(len(series['labels']), 7)
		self.assertEqual(series['data'][4], 120.0)
		self.assertEqual(sum(series['data']), 120.0)
		self.assertEqual(series['labels'][-1], today.strftime('%a'))

	def test_active_driver_snapshot_task(self):
		User.objects.create_user(username='d1', password='driver1234', role='driver', is_online=True)
		User.objects.create_user(username='d2', password='driver1234', role='driver', is_online=False)

		result = snapshot_active_drivers_task.delay()

		self.assertEqual(result.get(), 1)
		self.assertEqual(analytics.today_snapshot().active_drivers, 1)


class AnalyticsApiTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.admin = User.objects.create_user(username='ops', password='admin1234', role='admin')
		self.student = User.objects.create_user(username='riya', password='student1234')

	def call(self, view, user):
		request = self.factory.get('/api/analytics/')
		force_authenticate(request, user=user)
		return view(request)

	def test_admin_reads_dashboard(self):
		analytics.record_completion(completed_ride('45.00'))

		response = self.call(today_analytics, self.admin)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['total_rides'], 1)
		self.assertEqual(response.data['total_revenue'], '45.00')

		self.assertEqual(self.call(demand_prediction, self.admin).status_code, 200)
		self.assertEqual(len(self.call(revenue_trend, self.admin).data['data']), 7)

	def test_dashboard_is_admin_only(self):
		self.assertEqual(self.call(today_analytics, self.student).status_code, 403)
