from decimal import Decimal

from django.test import TestCase
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from common.payloads import Location, VehicleInfo
from notifications.models import Notification
from realtime.bus import EventBus
from testsupport.channel_layers import RecordingChannelLayer
from services import ledger
from drivers import services
from drivers.models import DriverProfile
from drivers.views import DriverStatusView, DriverLocationUpdateView, DriverProfileView, OnlineDriversView


class DriverServiceTests(TestCase):
	def setUp(self):
		self.layer = RecordingChannelLayer()
		self.bus = EventBus(channel_layer=self.layer)
		self.driver = User.objects.create_user(username='ravi', password='driver1234', role='driver')
		DriverProfile.create_for(self.driver, VehicleInfo(make='Bajaj', model='RE', plate='KA-01-2001'))
		self.rider = User.objects.create_user(username='riya', password='student1234')

	def test_going_online_writes_ledger_entry_once(self):
		with self.captureOnCommitCallbacks(execute=True):
			services.set_user_availability(self.driver, True, bus=self.bus)
			services.set_user_availability(self.driver, True, bus=self.bus)

		self.driver.refresh_from_db()
		self.assertTrue(self.driver.is_online)
		self.assertEqual(
			ledger.list_for_user(self.driver).filter(notification_type=Notification.DRIVER_ONLINE).count(),
			1
		)

		services.set_user_availability(self.driver, False, bus=self.bus)
		self.driver.refresh_from_db()
		self.assertFalse(self.driver.is_online)

	def test_students_going_online_get_no_driver_entry(self):
		services.set_user_availability(self.rider, True, bus=self.bus)

		self.assertFalse(ledger.list_for_user(self.rider).exists())

	def test_location_update_is_stored_and_broadcast(self):
		self.bus.register(self.rider.id, 'chan.rider')
		location = Location(12.97, 77.59, 'Main Gate')

		with self.captureOnCommitCallbacks(execute=True):
			services.update_driver_location(self.driver, location, bus=self.bus)

		self.driver.refresh_from_db()
		self.assertEqual(self.driver.current_latitude, Decimal('12.970000'))
		self.assertEqual(self.driver.location.address, 'Main Gate')
		self.assertIsNotNone(self.driver.last_location_update)

		messages = self.layer.messages_for('chan.rider')
		self.assertEqual(len(messages), 1)
		self.assertEqual(messages[0]['event'], 'driver_location')
		self.assertEqual(messages[0]['data'], {'driver_id': self.driver.id, 'location': location.as_dict()})

	def test_online_drivers(self):
		services.set_user_availability(self.driver, True, bus=self.bus)

		self.assertEqual(list(services.get_online_drivers()), [self.driver])


class DriverApiTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.driver = User.objects.create_user(username='ravi', password='driver1234', role='driver')
		DriverProfile.create_for(self.driver, VehicleInfo(make='Bajaj', model='RE', plate='KA-01-2001'))
		self.rider = User.objects.create_user(username='riya', password='student1234')

	def call(self, method, view, user, data=None):
		request = getattr(self.factory, method)('/api/driver/', data, format='json')
		force_authenticate(request, user=user)
		return view.as_view()(request)

	def test_status_toggle(self):
		response = self.call('put', DriverStatusView, self.driver, {'online': True})

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['online'])

		response = self.call('get', DriverStatusView, self.driver)
		self.assertTrue(response.data['online'])

	def test_status_is_driver_only(self):
		response = self.call('put', DriverStatusView, self.rider, {'online': True})
		self.assertEqual(response.status_code, 403)

	def test_location_update(self):
		response = self.call('post', DriverLocationUpdateView, self.driver, {
			'location': {'lat': 12.97, 'lng': 77.59, 'address': 'Main Gate'},
		})

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['location']['address'], 'Main Gate')

		response = self.call('post', DriverLocationUpdateView, self.driver, {'location': {'lat': 200, 'lng': 0}})
		self.assertEqual(response.status_code, 400)

	def test_profile_vehicle_update(self):
		response = self.call('post', DriverProfileView, self.driver, {
			'vehicle': {'make': 'Piaggio', 'model': 'Ape', 'plate': 'KA-01-3001', 'color': 'Yellow'},
		})

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['vehicle']['plate'], 'KA-01-3001')

	def test_online_drivers_list(self):
		self.driver.is_online = True
		self.driver.save()

		response = self.call('get', OnlineDriversView, self.rider)

		self.assertEqual(response.data['count'], 1)
		self.assertEqual(response.data['drivers'][0]['vehicle']['plate'], 'KA-01-2001')
