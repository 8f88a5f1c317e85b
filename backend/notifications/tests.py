from django.test import TestCase
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from services import ledger
from services.ride_management.exceptions import NotFoundError
from .models import Notification
from .views import list_notifications, mark_notification_read


class LedgerTests(TestCase):
	def setUp(self):
		self.user = User.objects.create_user(username='riya', password='student1234')
		self.other = User.objects.create_user(username='arjun', password='student1234')

	def test_list_is_newest_first_and_per_user(self):
		first = ledger.record(self.user, Notification.RIDE_REQUEST, 'Ride Requested', 'Searching...')
		second = ledger.record(self.user, Notification.RIDE_ACCEPTED, 'Driver Found!', 'On the way', {'ride_id': 1})
		ledger.record(self.other, Notification.RIDE_REQUEST, 'Ride Requested', 'Searching...')

		entries = list(ledger.list_for_user(self.user))

		self.assertEqual([n.id for n in entries], [second.id, first.id])
		self.assertEqual(entries[0].data, {'ride_id': 1})
		self.assertEqual(ledger.unread_count(self.user), 2)

	def test_mark_read_never_unreads(self):
		entry = ledger.record(self.user, Notification.RIDE_REQUEST, 'Ride Requested', 'Searching...')

		ledger.mark_read(entry.id, user=self.user)
		ledger.mark_read(entry.id, user=self.user)

		entry.refresh_from_db()
		self.assertTrue(entry.is_read)
		self.assertEqual(ledger.unread_count(self.user), 0)

	def test_mark_read_checks_owner(self):
		entry = ledger.record(self.user, Notification.RIDE_REQUEST, 'Ride Requested', 'Searching...')

		with self.assertRaises(NotFoundError):
			ledger.mark_read(entry.id, user=self.other)
		with self.assertRaises(NotFoundError):
			ledger.mark_read(999999)

		entry.refresh_from_db()
		self.assertFalse(entry.is_read)


class NotificationApiTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.user = User.objects.create_user(username='riya', password='student1234')
		self.other = User.objects.create_user(username='arjun', password='student1234')
		self.entry = ledger.record(self.user, Notification.RIDE_COMPLETED, 'Ride Completed', 'Thanks!')

	def test_list_notifications(self):
		request = self.factory.get('/api/notifications/')
		force_authenticate(request, user=self.user)
		response = list_notifications(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['unread_count'], 1)
		self.assertEqual(response.data['notifications'][0]['type'], 'ride_completed')

	def test_mark_read(self):
		request = self.factory.patch('/api/notifications/%d/read/' % self.entry.id)
		force_authenticate(request, user=self.user)
		response = mark_notification_read(request, notification_id=self.entry.id)

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['notification']['is_read'])

	def test_mark_read_of_someone_elses_entry_is_404(self):
		request = self.factory.patch('/api/notifications/%d/read/' % self.entry.id)
		force_authenticate(request, user=self.other)
		response = mark_notification_read(request, notification_id=self.entry.id)

		self.assertEqual(response.status_code, 404)
		self.assertEqual(response.data['error'], 'not_found')
