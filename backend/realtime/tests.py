from types import SimpleNamespace

from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser
from django.test import SimpleTestCase

from .bus import EventBus
from .consumers.event_consumer import EventConsumer
from testsupport.channel_layers import RecordingChannelLayer


def socket_user(user_id, role='student'):
	return SimpleNamespace(id=user_id, role=role, is_anonymous=False)


def events_app(bus, user):
	"""EventConsumer with a fixed scope user, skipping the auth middleware."""
	consumer = EventConsumer.as_asgi(bus=bus)

	async def app(scope, receive, send):
		return await consumer(dict(scope, user=user), receive, send)

	return app


class EventBusTests(SimpleTestCase):
	def setUp(self):
		self.layer = RecordingChannelLayer()
		self.bus = EventBus(channel_layer=self.layer)

	def test_send_to_offline_user_is_a_silent_no_op(self):
		self.assertFalse(self.bus.send_to(42, 'ride_accepted', {'ride_id': 1}))
		self.assertEqual(self.layer.sent, [])

	def test_send_to_registered_user(self):
		self.bus.register(42, 'chan.a')

		self.assertTrue(self.bus.send_to('42', 'ride_accepted', {'ride_id': 1}))
		self.assertEqual(self.layer.sent, [
			('chan.a', {'type': 'bus.event', 'event': 'ride_accepted', 'data': {'ride_id': 1}}),
		])

	def test_one_connection_per_user(self):
		self.bus.register(42, 'chan.a')
		self.bus.register(42, 'chan.b')

		self.assertEqual(self.bus.connection_for(42), 'chan.b')

		# Closing the replaced connection must not drop the new one
		self.assertIsNone(self.bus.unregister_connection('chan.a'))
		self.assertEqual(self.bus.connection_for(42), 'chan.b')

		self.assertEqual(self.bus.unregister_connection('chan.b'), '42')
		self.assertIsNone(self.bus.connection_for(42))

	def test_channel_reused_by_another_user(self):
		self.bus.register(1, 'chan.a')
		self.bus.register(2, 'chan.a')

		self.assertIsNone(self.bus.connection_for(1))
		self.assertEqual(self.bus.connection_for(2), 'chan.a')
		self.assertEqual(self.bus.connected_users(), ['2'])

	def test_broadcast_reaches_everyone_and_survives_full_channels(self):
		layer = RecordingChannelLayer(full_channels={'chan.full'})
		bus = EventBus(channel_layer=layer)
		bus.register(1, 'chan.a')
		bus.register(2, 'chan.full')
		bus.register(3, 'chan.c')

		delivered = bus.broadcast('driver_location', {'driver_id': 9})

		self.assertEqual(delivered, 2)
		self.assertEqual(sorted(channel for channel, _ in layer.sent), ['chan.a', 'chan.c'])
		self.assertFalse(bus.send_to(2, 'notification', {}))

	def test_instances_are_isolated(self):
		other = EventBus(channel_layer=RecordingChannelLayer())
		self.bus.register(1, 'chan.a')

		self.assertIsNone(other.connection_for(1))


class EventConsumerTests(SimpleTestCase):
	def setUp(self):
		self.bus = EventBus(channel_layer=get_channel_layer())

	async def connect(self, user):
		communicator = WebsocketCommunicator(events_app(self.bus, user), '/ws/events/')
		connected, _ = await communicator.connect()
		self.assertTrue(connected)
		hello = await communicator.receive_json_from()
		self.assertEqual(hello['type'], 'connection_established')
		return communicator

	async def register(self, communicator, user_id):
		await communicator.send_json_to({'type': 'hello', 'userId': user_id})
		reply = await communicator.receive_json_from()
		self.assertEqual(reply, {'type': 'registered', 'data': {'user_id': user_id}})

	async def test_anonymous_connection_is_rejected(self):
		communicator = WebsocketCommunicator(events_app(self.bus, AnonymousUser()), '/ws/events/')
		connected, _ = await communicator.connect()
		self.assertFalse(connected)

	async def test_registration_is_lazy(self):
		communicator = await self.connect(socket_user(7))
		self.assertIsNone(self.bus.connection_for(7))

		await self.register(communicator, 7)
		self.assertIsNotNone(self.bus.connection_for(7))

		await communicator.disconnect()

	async def test_registration_requires_matching_user(self):
		communicator = await self.connect(socket_user(7))

		await communicator.send_json_to({'type': 'hello', 'userId': 8})
		reply = await communicator.receive_json_from()

		self.assertEqual(reply['type'], 'error')
		self.assertIsNone(self.bus.connection_for(8))
		self.assertIsNone(self.bus.connection_for(7))
		await communicator.disconnect()

	async def test_targeted_event_is_forwarded(self):
		communicator = await self.connect(socket_user(7))
		await self.register(communicator, 7)

		delivered = await self.bus.send_to_async(7, 'ride_accepted', {'ride_id': 3})

		self.assertTrue(delivered)
		self.assertEqual(
			await communicator.receive_json_from(),
			{'type': 'ride_accepted', 'data': {'ride_id': 3}}
		)
		await communicator.disconnect()

	async def test_disconnect_drops_mapping(self):
		communicator = await self.connect(socket_user(7))
		await self.register(communicator, 7)

		await communicator.disconnect()

		self.assertIsNone(self.bus.connection_for(7))
		self.assertFalse(await self.bus.send_to_async(7, 'notification', {}))

	async def test_driver_location_is_rebroadcast(self):
		driver = await self.connect(socket_user(1, role='driver'))
		rider = await self.connect(socket_user(2))
		await self.register(driver, 1)
		await self.register(rider, 2)

		await driver.send_json_to({
			'type': 'driver_location',
			'userId': 1,
			'data': {'lat': 12.97, 'lng': 77.59, 'address': 'Main Gate'},
		})

		expected = {
			'type': 'driver_location',
			'data': {'driver_id': 1, 'location': {'lat': 12.97, 'lng': 77.59, 'address': 'Main Gate'}},
		}
		self.assertEqual(await rider.receive_json_from(), expected)
		self.assertEqual(await driver.receive_json_from(), expected)

		await driver.disconnect()
		await rider.disconnect()

	async def test_bad_driver_location_is_rejected(self):
		driver = await self.connect(socket_user(1, role='driver'))
		await self.register(driver, 1)

		await driver.send_json_to({'type': 'driver_location', 'data': {'lat': 'north'}})

		reply = await driver.receive_json_from()
		self.assertEqual(reply['type'], 'error')
		await driver.disconnect()

	async def test_riders_cannot_share_driver_location(self):
		rider = await self.connect(socket_user(2))
		await self.register(rider, 2)

		await rider.send_json_to({'type': 'driver_location', 'data': {'lat': 1, 'lng': 2}})

		reply = await rider.receive_json_from()
		self.assertEqual(reply['type'], 'error')
		await rider.disconnect()

	async def test_other_inbound_types_are_ignored(self):
		communicator = await self.connect(socket_user(7))
		await self.register(communicator, 7)

		await communicator.send_json_to({'type': 'ride_request', 'data': {'fare': 10}})

		self.assertTrue(await communicator.receive_nothing())
		await communicator.disconnect()
