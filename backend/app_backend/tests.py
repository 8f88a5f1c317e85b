from unittest.mock import patch

from django.test import TestCase
from rest_framework.test import APIRequestFactory

from . import views


class HealthCheckTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()

	def call(self):
		return views.health_check(self.factory.get('/health/'))

	@patch('app_backend.views.redis.Redis.from_url')
	def test_healthy_when_every_check_passes(self, from_url):
		response = self.call()

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['status'], 'healthy')
		self.assertEqual(set(response.data['services']), set(views.CHECKS))
		from_url.return_value.ping.assert_called_once()

	@patch('app_backend.views.redis.Redis.from_url')
	def test_redis_outage_is_503(self, from_url):
		from_url.return_value.ping.side_effect = ConnectionError('refused')

		response = self.call()

		self.assertEqual(response.status_code, 503)
		self.assertEqual(response.data['status'], 'unhealthy')
		self.assertEqual(response.data['services']['redis'], 'unhealthy: refused')
		self.assertEqual(response.data['services']['database'], 'healthy')
