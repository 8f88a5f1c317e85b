import threading
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.db import IntegrityError, OperationalError, connection, transaction
from django.test import TestCase, TransactionTestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from analytics.models import DailyAnalytics
from common.payloads import Location, VehicleInfo
from drivers.models import DriverProfile
from notifications.models import Notification
from realtime.bus import EventBus
from testsupport.channel_layers import RecordingChannelLayer
from services import ledger
from services.matching import suggest_pool_companions, get_pool_suggestions
from services.ride_management import (
	create_ride_request,
	accept_ride,
	start_ride,
	complete_ride,
	cancel_ride,
	rate_ride,
	update_ride,
	get_active_ride,
	get_available_rides,
	get_rides_for_user,
	ValidationError,
	NotFoundError,
	ConflictError,
	TransientStoreError,
)
from services.ride_management.ride_lifecycle import _transition
from .models import Ride
from . import views


PICKUP = Location(12.9716, 77.5946, 'Main Gate')
DROP = Location(12.9352, 77.6245, 'Central Library')


def make_student(username):
	return User.objects.create_user(
		username=username,
		password='student1234',
		role=User.ROLE_STUDENT,
		first_name=username.title(),
	)


def make_driver(username, plate, online=True):
	driver = User.objects.create_user(
		username=username,
		password='driver1234',
		role=User.ROLE_DRIVER,
		first_name=username.title(),
		is_online=online,
	)
	DriverProfile.create_for(driver, VehicleInfo(make='Bajaj', model='RE', plate=plate, color='Green'))
	return driver


class RideTestMixin:
	def setUp(self):
		self.layer = RecordingChannelLayer()
		self.bus = EventBus(channel_layer=self.layer)
		self.rider = make_student('riya')
		self.other_rider = make_student('arjun')
		self.driver_one = make_driver('driver_one', 'KA-01-1001')
		self.driver_two = make_driver('driver_two', 'KA-01-1002')

	def request_ride(self, rider=None, fare='45.00', ride_type=Ride.TYPE_SOLO):
		result = create_ride_request(
			rider or self.rider,
			PICKUP,
			DROP,
			ride_type=ride_type,
			fare=fare,
			estimated_duration=12,
			bus=self.bus,
		)
		return result.ride

	def assert_invariants(self):
		for ride in Ride.objects.all():
			self.assertEqual(
				ride.driver_id is not None,
				ride.status in Ride.DRIVER_ASSIGNED_STATUSES,
				'ride %s is %s with driver %s' % (ride.id, ride.status, ride.driver_id)
			)
		for user in User.objects.all():
			self.assertLessEqual(Ride.objects.filter(rider=user, status__in=Ride.ACTIVE_STATUSES).count(), 1)
			self.assertLessEqual(Ride.objects.filter(driver=user, status__in=Ride.ACTIVE_STATUSES).count(), 1)


class RideLifecycleTests(RideTestMixin, TestCase):
	def test_create_then_get_active_returns_waiting_ride(self):
		ride = self.request_ride()

		active = get_active_ride(self.rider)
		self.assertEqual(active.id, ride.id)
		self.assertEqual(active.status, Ride.STATUS_WAITING)
		self.assertIsNone(active.driver_id)
		self.assertIsNone(active.accepted_at)
		self.assertIsNone(active.completed_at)
		self.assertIsNotNone(active.created_at)
		self.assertEqual(active.fare, Decimal('45.00'))

	def test_create_fills_in_distance_when_missing(self):
		ride = self.request_ride()
		self.assertGreater(ride.distance, Decimal('0'))

	def test_create_rejects_missing_locations_and_bad_fares(self):
		with self.assertRaises(ValidationError):
			create_ride_request(self.rider, None, DROP, fare='45', bus=self.bus)
		with self.assertRaises(ValidationError):
			create_ride_request(self.rider, PICKUP, None, fare='45', bus=self.bus)
		with self.assertRaises(ValidationError):
			create_ride_request(self.rider, PICKUP, DROP, fare='0', bus=self.bus)
		with self.assertRaises(ValidationError):
			create_ride_request(self.rider, PICKUP, DROP, fare='-10', bus=self.bus)
		with self.assertRaises(ValidationError):
			create_ride_request(self.rider, PICKUP, DROP, ride_type='limo', fare='45', bus=self.bus)
		with self.assertRaises(ValidationError):
			create_ride_request(self.rider, {'lat': 123, 'lng': 0}, DROP, fare='45', bus=self.bus)

		self.assertFalse(Ride.objects.exists())

	def test_create_conflicts_when_rider_has_active_ride(self):
		self.request_ride()

		with self.assertRaises(ConflictError) as ctx:
			self.request_ride()

		self.assertEqual(ctx.exception.error_code, 'active_ride_exists')
		self.assertEqual(Ride.objects.filter(rider=self.rider).count(), 1)

	def test_database_rejects_second_active_ride_for_rider(self):
		self.request_ride()

		with self.assertRaises(IntegrityError):
			with transaction.atomic():
				Ride.objects.create(
					rider=self.rider,
					pickup_latitude=PICKUP.lat,
					pickup_longitude=PICKUP.lng,
					drop_latitude=DROP.lat,
					drop_longitude=DROP.lng,
					fare=Decimal('10.00'),
				)

	def test_two_drivers_accept_same_ride_only_one_wins(self):
		ride = self.request_ride(fare='45.00')

		result = accept_ride(self.driver_one, ride.id, bus=self.bus)
		self.assertTrue(result.success)

		with self.assertRaises(ConflictError) as ctx:
			accept_ride(self.driver_two, ride.id, bus=self.bus)
		self.assertEqual(ctx.exception.status_code, 409)

		ride.refresh_from_db()
		self.assertEqual(ride.status, Ride.STATUS_ACCEPTED)
		self.assertEqual(ride.driver_id, self.driver_one.id)
		self.assertIsNotNone(ride.accepted_at)

		complete_ride(ride.id, actual_duration=15, driver=self.driver_one, bus=self.bus)

		ride.refresh_from_db()
		self.assertEqual(ride.status, Ride.STATUS_COMPLETED)
		self.assertEqual(ride.actual_duration, 15)

		today = DailyAnalytics.objects.get(date=timezone.localdate())
		self.assertEqual(today.total_rides, 1)
		self.assertEqual(today.total_revenue, Decimal('45.00'))
		self.assert_invariants()

	def test_stale_compare_and_set_loses(self):
		ride = self.request_ride()
		stale = Ride.objects.get(id=ride.id)

		Ride.objects.filter(id=ride.id).update(
			status=Ride.STATUS_ACCEPTED,
			driver=self.driver_one,
			accepted_at=timezone.now(),
		)

		with self.assertRaises(ConflictError):
			_transition(stale, [Ride.STATUS_WAITING], status=Ride.STATUS_ACCEPTED, driver=self.driver_two)

		ride.refresh_from_db()
		self.assertEqual(ride.driver_id, self.driver_one.id)

	def test_driver_with_active_ride_cannot_accept_another(self):
		first = self.request_ride()
		second = self.request_ride(rider=self.other_rider)
		accept_ride(self.driver_one, first.id, bus=self.bus)

		with self.assertRaises(ConflictError) as ctx:
			accept_ride(self.driver_one, second.id, bus=self.bus)

		self.assertEqual(ctx.exception.error_code, 'active_ride_exists')
		second.refresh_from_db()
		self.assertEqual(second.status, Ride.STATUS_WAITING)
		self.assert_invariants()

	def test_accept_checks_ride_and_driver(self):
		ride = self.request_ride()

		with self.assertRaises(NotFoundError):
			accept_ride(self.driver_one, 999999, bus=self.bus)
		with self.assertRaises(ValidationError):
			accept_ride(self.other_rider, ride.id, bus=self.bus)

	def test_second_complete_is_conflict_and_not_double_counted(self):
		ride = self.request_ride(fare='80.50')
		accept_ride(self.driver_one, ride.id, bus=self.bus)
		complete_ride(ride.id, actual_duration=20, bus=self.bus)

		with self.assertRaises(ConflictError):
			complete_ride(ride.id, actual_duration=20, bus=self.bus)

		today = DailyAnalytics.objects.get(date=timezone.localdate())
		self.assertEqual(today.total_rides, 1)
		self.assertEqual(today.total_revenue, Decimal('80.50'))

		self.driver_one.refresh_from_db()
		self.rider.refresh_from_db()
		self.assertEqual(self.driver_one.completed_rides, 1)
		self.assertEqual(self.driver_one.earnings, Decimal('80.50'))
		self.assertEqual(self.rider.completed_rides, 1)

	def test_complete_requires_active_ride(self):
		ride = self.request_ride()

		with self.assertRaises(ConflictError):
			complete_ride(ride.id, actual_duration=5, bus=self.bus)
		with self.assertRaises(NotFoundError):
			complete_ride(999999, bus=self.bus)

		accept_ride(self.driver_one, ride.id, bus=self.bus)
		with self.assertRaises(NotFoundError):
			complete_ride(ride.id, driver=self.driver_two, bus=self.bus)

	def test_start_is_optional_step_before_complete(self):
		ride = self.request_ride()
		accept_ride(self.driver_one, ride.id, bus=self.bus)

		start_ride(ride.id, driver=self.driver_one, bus=self.bus)
		ride.refresh_from_db()
		self.assertEqual(ride.status, Ride.STATUS_IN_PROGRESS)
		self.assertIsNotNone(ride.started_at)

		with self.assertRaises(ConflictError):
			start_ride(ride.id, driver=self.driver_one, bus=self.bus)

		complete_ride(ride.id, actual_duration=9, driver=self.driver_one, bus=self.bus)
		ride.refresh_from_db()
		self.assertEqual(ride.status, Ride.STATUS_COMPLETED)
		self.assertIsNone(get_active_ride(self.rider))
		self.assertIsNone(get_active_ride(self.driver_one))
		self.assert_invariants()

	def test_rider_cancels_waiting_ride_and_late_accept_conflicts(self):
		ride = self.request_ride()

		cancel_ride(ride.id, self.rider, 'Plans changed', bus=self.bus)

		self.assertIsNone(get_active_ride(self.rider))
		with self.assertRaises(ConflictError):
			accept_ride(self.driver_one, ride.id, bus=self.bus)

		ride.refresh_from_db()
		self.assertEqual(ride.status, Ride.STATUS_CANCELLED)
		self.assertEqual(ride.cancelled_by, 'rider')
		self.assertIsNone(ride.driver_id)
		self.assertFalse(DailyAnalytics.objects.exists())
		self.assert_invariants()

	def test_rider_cancels_accepted_ride_clears_driver_and_notifies_driver(self):
		ride = self.request_ride()
		accept_ride(self.driver_one, ride.id, bus=self.bus)

		result = cancel_ride(ride.id, self.rider, bus=self.bus)

		self.assertTrue(result.extra['was_assigned'])
		ride.refresh_from_db()
		self.assertIsNone(ride.driver_id)
		self.assertTrue(
			ledger.list_for_user(self.driver_one).filter(notification_type=Notification.RIDE_CANCELLED).exists()
		)
		self.assertIsNone(get_active_ride(self.driver_one))
		self.assert_invariants()

	def test_driver_cancels_accepted_ride(self):
		ride = self.request_ride()
		accept_ride(self.driver_one, ride.id, bus=self.bus)

		cancel_ride(ride.id, self.driver_one, 'Vehicle trouble', bus=self.bus)

		ride.refresh_from_db()
		self.assertEqual(ride.status, Ride.STATUS_CANCELLED)
		self.assertEqual(ride.cancelled_by, 'driver')
		self.assertTrue(
			ledger.list_for_user(self.rider).filter(notification_type=Notification.RIDE_CANCELLED).exists()
		)

	def test_cancel_rules(self):
		ride = self.request_ride()

		# Only participants can cancel
		with self.assertRaises(NotFoundError):
			cancel_ride(ride.id, self.driver_one, bus=self.bus)

		accept_ride(self.driver_one, ride.id, bus=self.bus)
		start_ride(ride.id, bus=self.bus)

		with self.assertRaises(ConflictError):
			cancel_ride(ride.id, self.rider, bus=self.bus)

		complete_ride(ride.id, actual_duration=4, bus=self.bus)
		with self.assertRaises(ConflictError):
			cancel_ride(ride.id, self.rider, bus=self.bus)

	def test_read_paths_are_newest_first(self):
		first = self.request_ride()
		cancel_ride(first.id, self.rider, bus=self.bus)
		second = self.request_ride()
		third = self.request_ride(rider=self.other_rider)

		self.assertEqual([r.id for r in get_rides_for_user(self.rider)], [second.id, first.id])
		self.assertEqual([r.id for r in get_available_rides()], [third.id, second.id])

	def test_rate_ride_updates_driver_rating_once(self):
		ride = self.request_ride()
		accept_ride(self.driver_one, ride.id, bus=self.bus)

		with self.assertRaises(ConflictError):
			rate_ride(ride.id, self.rider, 5, bus=self.bus)

		complete_ride(ride.id, actual_duration=10, bus=self.bus)
		rate_ride(ride.id, self.rider, 4, 'Smooth ride', bus=self.bus)

		ride.refresh_from_db()
		self.driver_one.refresh_from_db()
		self.assertEqual(ride.rating, 4)
		self.assertEqual(ride.feedback, 'Smooth ride')
		self.assertEqual(self.driver_one.rating, Decimal('4.00'))
		self.assertEqual(self.driver_one.rating_count, 1)

		with self.assertRaises(ConflictError):
			rate_ride(ride.id, self.rider, 1, bus=self.bus)
		with self.assertRaises(ValidationError):
			rate_ride(ride.id, self.rider, 6, bus=self.bus)

		today = DailyAnalytics.objects.get(date=timezone.localdate())
		self.assertEqual(today.avg_rating, Decimal('4.00'))

	def test_update_ride_routes_status_changes(self):
		ride = self.request_ride()

		result = update_ride(ride.id, {'status': 'cancelled', 'cancellation_reason': 'Found a friend'}, self.rider, bus=self.bus)

		self.assertEqual(result.ride.status, Ride.STATUS_CANCELLED)
		self.assertEqual(result.ride.cancellation_reason, 'Found a friend')

	def test_update_ride_rejects_bad_patches(self):
		ride = self.request_ride()

		with self.assertRaises(ValidationError):
			update_ride(ride.id, {'fare': '1.00'}, self.rider, bus=self.bus)
		with self.assertRaises(ValidationError):
			update_ride(ride.id, {'status': 'waiting'}, self.rider, bus=self.bus)
		with self.assertRaises(ValidationError):
			update_ride(ride.id, {}, self.rider, bus=self.bus)
		with self.assertRaises(NotFoundError):
			update_ride(999999, {'status': 'cancelled'}, self.rider, bus=self.bus)

	def test_update_ride_names_the_field_missing_its_companion(self):
		ride = self.request_ride()

		with self.assertRaises(ValidationError) as ctx:
			update_ride(ride.id, {'cancellation_reason': 'Changed plans'}, self.rider, bus=self.bus)
		self.assertIn('cancellation_reason', ctx.exception.message)
		self.assertNotIn('feedback', ctx.exception.message)

		with self.assertRaises(ValidationError) as ctx:
			update_ride(ride.id, {'actual_duration': 12}, self.rider, bus=self.bus)
		self.assertIn('actual_duration', ctx.exception.message)

		ride.refresh_from_db()
		self.assertEqual(ride.status, Ride.STATUS_WAITING)

	def test_durations_beyond_column_range_are_rejected(self):
		with self.assertRaises(ValidationError):
			create_ride_request(self.rider, PICKUP, DROP, fare='45', estimated_duration=10 ** 20, bus=self.bus)
		self.assertFalse(Ride.objects.exists())

		ride = self.request_ride()
		accept_ride(self.driver_one, ride.id, bus=self.bus)

		with self.assertRaises(ValidationError):
			complete_ride(ride.id, actual_duration=10 ** 20, driver=self.driver_one, bus=self.bus)

		ride.refresh_from_db()
		self.assertEqual(ride.status, Ride.STATUS_ACCEPTED)
		complete_ride(ride.id, actual_duration=Ride.MAX_DURATION_MINUTES, driver=self.driver_one, bus=self.bus)

	def test_week_long_wait_is_folded_into_analytics(self):
		ride = self.request_ride(fare='45.00')
		Ride.objects.filter(id=ride.id).update(created_at=timezone.now() - timedelta(days=8))
		accept_ride(self.driver_one, ride.id, bus=self.bus)

		complete_ride(ride.id, actual_duration=15, driver=self.driver_one, bus=self.bus)

		today = DailyAnalytics.objects.get(date=timezone.localdate())
		self.assertEqual(today.total_rides, 1)
		self.assertGreater(today.avg_wait_time, Decimal('11519'))
		self.assertEqual(today.total_revenue, Decimal('45.00'))

	def test_update_ride_settles_payment_on_completed_ride(self):
		ride = self.request_ride()
		accept_ride(self.driver_one, ride.id, bus=self.bus)

		with self.assertRaises(ConflictError):
			update_ride(ride.id, {'payment_status': 'completed'}, self.rider, bus=self.bus)

		complete_ride(ride.id, actual_duration=3, bus=self.bus)
		result = update_ride(ride.id, {'payment_status': 'completed'}, self.rider, bus=self.bus)
		self.assertEqual(result.ride.payment_status, 'completed')

	def test_store_outage_surfaces_as_transient_error(self):
		ride = self.request_ride()

		with patch.object(Ride.objects, 'select_for_update', side_effect=OperationalError('database is locked')):
			with self.assertRaises(TransientStoreError) as ctx:
				accept_ride(self.driver_one, ride.id, bus=self.bus)

		self.assertEqual(ctx.exception.status_code, 503)
		ride.refresh_from_db()
		self.assertEqual(ride.status, Ride.STATUS_WAITING)


class RideSideEffectTests(RideTestMixin, TestCase):
	def register(self, user):
		channel = 'test.channel.%s' % user.id
		self.bus.register(user.id, channel)
		return channel

	def test_accept_notifies_rider_after_commit(self):
		rider_channel = self.register(self.rider)
		ride = self.request_ride()

		with self.captureOnCommitCallbacks(execute=True):
			accept_ride(self.driver_one, ride.id, bus=self.bus)

		messages = self.layer.messages_for(rider_channel)
		self.assertEqual([m['event'] for m in messages], ['ride_accepted'])
		self.assertEqual(messages[0]['data']['driver_id'], self.driver_one.id)
		self.assertEqual(messages[0]['data']['status'], Ride.STATUS_ACCEPTED)
		self.assertTrue(
			ledger.list_for_user(self.rider).filter(notification_type=Notification.RIDE_ACCEPTED).exists()
		)

	def test_events_wait_for_commit(self):
		rider_channel = self.register(self.rider)
		ride = self.request_ride()

		with self.captureOnCommitCallbacks() as callbacks:
			accept_ride(self.driver_one, ride.id, bus=self.bus)

		self.assertEqual(self.layer.events_for(rider_channel), [])
		self.assertTrue(callbacks)

	def test_failed_transition_sends_nothing(self):
		rider_channel = self.register(self.rider)
		ride = self.request_ride()
		cancel_ride(ride.id, self.rider, bus=self.bus)

		with self.captureOnCommitCallbacks(execute=True) as callbacks:
			with self.assertRaises(ConflictError):
				accept_ride(self.driver_one, ride.id, bus=self.bus)

		self.assertEqual(callbacks, [])
		self.assertNotIn('ride_accepted', self.layer.events_for(rider_channel))

	def test_create_announces_to_online_drivers_only(self):
		offline_driver = make_driver('driver_off', 'KA-01-1003', online=False)
		channels = {user.id: self.register(user) for user in (self.driver_one, self.driver_two, offline_driver)}

		with self.captureOnCommitCallbacks(execute=True):
			result = create_ride_request(self.rider, PICKUP, DROP, fare='45', bus=self.bus)

		self.assertEqual(result.extra['drivers_notified'], 2)
		self.assertEqual(self.layer.events_for(channels[self.driver_one.id]), ['ride_request'])
		self.assertEqual(self.layer.events_for(channels[self.driver_two.id]), ['ride_request'])
		self.assertEqual(self.layer.events_for(channels[offline_driver.id]), [])
		self.assertTrue(
			ledger.list_for_user(self.rider).filter(notification_type=Notification.RIDE_REQUEST).exists()
		)

	def test_complete_notifies_both_parties(self):
		rider_channel = self.register(self.rider)
		driver_channel = self.register(self.driver_one)
		ride = self.request_ride()
		accept_ride(self.driver_one, ride.id, bus=self.bus)

		with self.captureOnCommitCallbacks(execute=True):
			complete_ride(ride.id, actual_duration=15, bus=self.bus)

		self.assertIn('ride_completed', self.layer.events_for(rider_channel))
		self.assertIn('ride_completed', self.layer.events_for(driver_channel))

	def test_offline_rider_still_gets_ledger_entry(self):
		ride = self.request_ride()

		with self.captureOnCommitCallbacks(execute=True):
			accept_ride(self.driver_one, ride.id, bus=self.bus)

		self.assertEqual(self.layer.sent, [])
		self.assertFalse(self.bus.send_to(self.rider.id, 'notification', {}))
		types = list(ledger.list_for_user(self.rider).values_list('notification_type', flat=True))
		self.assertIn(Notification.RIDE_ACCEPTED, types)

	def test_ledger_failure_does_not_roll_back_accept(self):
		rider_channel = self.register(self.rider)
		ride = self.request_ride()

		with patch('services.ledger.record', side_effect=IntegrityError('ledger down')):
			with self.captureOnCommitCallbacks(execute=True):
				result = accept_ride(self.driver_one, ride.id, bus=self.bus)

		self.assertTrue(result.success)
		ride.refresh_from_db()
		self.assertEqual(ride.status, Ride.STATUS_ACCEPTED)
		self.assertEqual(self.layer.events_for(rider_channel), ['ride_accepted'])

	def test_analytics_failure_does_not_roll_back_complete(self):
		ride = self.request_ride()
		accept_ride(self.driver_one, ride.id, bus=self.bus)

		with patch('services.analytics.record_completion', side_effect=RuntimeError('boom')):
			complete_ride(ride.id, actual_duration=15, bus=self.bus)

		ride.refresh_from_db()
		self.assertEqual(ride.status, Ride.STATUS_COMPLETED)


class PoolSuggestionTests(RideTestMixin, TestCase):
	def test_pool_ride_gets_fixed_score_suggestions(self):
		companion = self.request_ride(rider=self.other_rider, fare='40.00', ride_type=Ride.TYPE_POOL)
		ride = self.request_ride(fare='60.00', ride_type=Ride.TYPE_POOL)

		suggestions = list(get_pool_suggestions(ride))

		self.assertEqual(len(suggestions), 1)
		self.assertEqual(suggestions[0].suggested_ride_id, companion.id)
		self.assertEqual(suggestions[0].compatibility_score, Decimal('0.85'))
		self.assertEqual(suggestions[0].savings, Decimal('12.00'))

	def test_solo_rides_get_no_suggestions(self):
		self.request_ride(rider=self.other_rider, ride_type=Ride.TYPE_POOL)
		ride = self.request_ride(ride_type=Ride.TYPE_SOLO)

		self.assertEqual(suggest_pool_companions(ride), [])

	def test_savings_on_large_fares_fit_the_column(self):
		self.request_ride(rider=self.other_rider, fare='50000.00', ride_type=Ride.TYPE_POOL)
		ride = self.request_ride(fare='50000.00', ride_type=Ride.TYPE_POOL)

		suggestion = get_pool_suggestions(ride).get()

		self.assertEqual(suggestion.savings, Decimal('15000.00'))


class RideApiTests(RideTestMixin, TestCase):
	def setUp(self):
		super().setUp()
		self.factory = APIRequestFactory()

	def post(self, view, user, data=None, **kwargs):
		request = self.factory.post('/api/rides/', data or {}, format='json')
		force_authenticate(request, user=user)
		return view(request, **kwargs)

	def get(self, view, user, **kwargs):
		request = self.factory.get('/api/rides/')
		force_authenticate(request, user=user)
		return view(request, **kwargs)

	def patch(self, view, user, data, **kwargs):
		request = self.factory.patch('/api/rides/', data, format='json')
		force_authenticate(request, user=user)
		return view(request, **kwargs)

	def ride_payload(self, fare='45.00'):
		return {
			'pickup': PICKUP.as_dict(),
			'drop': DROP.as_dict(),
			'ride_type': 'solo',
			'fare': fare,
			'estimated_duration': 12,
		}

	def test_create_ride_request(self):
		response = self.post(views.create_ride_request, self.rider, self.ride_payload())

		self.assertEqual(response.status_code, 201)
		self.assertTrue(response.data['success'])
		self.assertEqual(response.data['ride']['status'], 'waiting')
		self.assertEqual(response.data['ride']['pickup']['address'], 'Main Gate')
		self.assertEqual(response.data['drivers_notified'], 2)

		response = self.post(views.create_ride_request, self.rider, self.ride_payload())
		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['error'], 'active_ride_exists')

	def test_create_ride_validation_error(self):
		response = self.post(views.create_ride_request, self.rider, self.ride_payload(fare='0'))

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'validation_error')

	def test_only_students_request_rides(self):
		response = self.post(views.create_ride_request, self.driver_one, self.ride_payload())
		self.assertEqual(response.status_code, 403)

	def test_accept_race_maps_to_conflict(self):
		ride = self.request_ride()

		response = self.post(views.accept_ride, self.driver_one, ride_id=ride.id)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['ride']['driver']['id'], self.driver_one.id)
		self.assertEqual(response.data['ride']['vehicle']['plate'], 'KA-01-1001')

		response = self.post(views.accept_ride, self.driver_two, ride_id=ride.id)
		self.assertEqual(response.status_code, 409)
		self.assertFalse(response.data['success'])
		self.assertEqual(response.data['error'], 'ride_not_available')

	def test_accept_unknown_ride_is_not_found(self):
		response = self.post(views.accept_ride, self.driver_one, ride_id=999999)

		self.assertEqual(response.status_code, 404)
		self.assertEqual(response.data['error'], 'not_found')

	def test_active_ride_polling(self):
		response = self.get(views.active_ride, self.rider)
		self.assertFalse(response.data['has_active_ride'])

		ride = self.request_ride()
		accept_ride(self.driver_one, ride.id, bus=self.bus)

		response = self.get(views.active_ride, self.driver_one)
		self.assertTrue(response.data['has_active_ride'])
		self.assertEqual(response.data['ride']['id'], ride.id)
		self.assertEqual(response.data['status'], 'accepted')

	def test_full_flow_over_http(self):
		ride = self.request_ride()
		self.post(views.accept_ride, self.driver_one, ride_id=ride.id)

		response = self.post(views.start_ride, self.driver_one, ride_id=ride.id)
		self.assertEqual(response.data['ride']['status'], 'in_progress')

		response = self.post(views.complete_ride, self.driver_one, {'actual_duration': 15}, ride_id=ride.id)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['ride']['status'], 'completed')

		response = self.post(views.complete_ride, self.driver_one, {'actual_duration': 15}, ride_id=ride.id)
		self.assertEqual(response.status_code, 409)

		response = self.patch(views.update_ride, self.rider, {'rating': 5, 'feedback': 'Great'}, ride_id=ride.id)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['ride']['rating'], 5)

		response = self.get(views.my_rides, self.rider)
		self.assertEqual(response.data['count'], 1)

	def test_patch_cancel_and_unknown_fields(self):
		ride = self.request_ride()

		response = self.patch(views.update_ride, self.rider, {'fare': '5.00'}, ride_id=ride.id)
		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'validation_error')

		response = self.patch(views.update_ride, self.rider, {'status': 'cancelled'}, ride_id=ride.id)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['ride']['status'], 'cancelled')

		response = self.patch(views.update_ride, self.rider, {'status': 'cancelled'}, ride_id=ride.id)
		self.assertEqual(response.status_code, 409)

	def test_cancel_endpoint(self):
		ride = self.request_ride()

		response = self.post(views.cancel_ride, self.other_rider, ride_id=ride.id)
		self.assertEqual(response.status_code, 404)

		response = self.post(views.cancel_ride, self.rider, {'reason': 'Late'}, ride_id=ride.id)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['ride']['cancellation_reason'], 'Late')

	def test_available_rides_for_drivers(self):
		self.request_ride()

		response = self.get(views.available_rides, self.driver_one)
		self.assertEqual(response.data['count'], 1)

		response = self.get(views.available_rides, self.rider)
		self.assertEqual(response.status_code, 403)

	def test_pool_suggestions_endpoint(self):
		self.request_ride(rider=self.other_rider, ride_type=Ride.TYPE_POOL)
		ride = self.request_ride(ride_type=Ride.TYPE_POOL)

		response = self.get(views.pool_suggestions, self.rider, ride_id=ride.id)
		self.assertEqual(response.data['count'], 1)
		self.assertEqual(response.data['suggestions'][0]['compatibility_score'], '0.85')

		response = self.get(views.pool_suggestions, self.driver_one, ride_id=ride.id)
		self.assertEqual(response.status_code, 404)

	def test_pool_suggestions_endpoint_with_large_fares(self):
		self.request_ride(rider=self.other_rider, fare='50000.00', ride_type=Ride.TYPE_POOL)
		ride = self.request_ride(fare='50000.00', ride_type=Ride.TYPE_POOL)

		response = self.get(views.pool_suggestions, self.rider, ride_id=ride.id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['suggestions'][0]['savings'], '15000.00')

	def test_oversized_duration_is_a_validation_error(self):
		ride = self.request_ride()
		accept_ride(self.driver_one, ride.id, bus=self.bus)

		response = self.post(views.complete_ride, self.driver_one, {'actual_duration': 10 ** 20}, ride_id=ride.id)
		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error'], 'validation_error')

		response = self.post(views.create_ride_request, self.other_rider, dict(self.ride_payload(), estimated_duration=10 ** 20))
		self.assertEqual(response.status_code, 400)

		ride.refresh_from_db()
		self.assertEqual(ride.status, Ride.STATUS_ACCEPTED)

	def test_store_outage_maps_to_503(self):
		ride = self.request_ride()

		with patch.object(Ride.objects, 'select_for_update', side_effect=OperationalError('database is locked')):
			response = self.post(views.accept_ride, self.driver_one, ride_id=ride.id)

		self.assertEqual(response.status_code, 503)
		self.assertEqual(response.data['error'], 'transient_store_error')


class ConcurrentAcceptTests(RideTestMixin, TransactionTestCase):
	"""Drivers accepting from separate threads, each on its own connection."""

	def accept_from_thread(self, driver, ride_id, barrier, outcomes):
		try:
			barrier.wait()
			accept_ride(driver, ride_id, bus=self.bus)
			outcomes.append('accepted')
		except ConflictError as e:
			outcomes.append(e.error_code)
		except Exception as e:
			outcomes.append(repr(e))
		finally:
			connection.close()

	def test_simultaneous_accepts_have_exactly_one_winner(self):
		for _ in range(5):
			ride = self.request_ride()
			barrier = threading.Barrier(2)
			outcomes = []
			threads = [
				threading.Thread(target=self.accept_from_thread, args=(driver, ride.id, barrier, outcomes))
				for driver in (self.driver_one, self.driver_two)
			]
			for thread in threads:
				thread.start()
			for thread in threads:
				thread.join()

			self.assertEqual(sorted(outcomes), ['accepted', 'ride_not_available'])
			ride.refresh_from_db()
			self.assertEqual(ride.status, Ride.STATUS_ACCEPTED)
			self.assertIn(ride.driver_id, (self.driver_one.id, self.driver_two.id))

			complete_ride(ride.id, actual_duration=5, bus=self.bus)

		self.assertEqual(Ride.objects.filter(status=Ride.STATUS_COMPLETED).count(), 5)
		self.assert_invariants()
