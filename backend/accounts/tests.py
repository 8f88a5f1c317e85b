from django.test import TestCase
from rest_framework.test import APIRequestFactory, force_authenticate

from drivers.models import DriverProfile
from .models import User
from .views import RegisterView, LoginView, LogoutView, RefreshTokenView, MeView


class AuthApiTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()

	def post(self, view, data):
		request = self.factory.post('/api/auth/', data, format='json')
		return view.as_view()(request)

	def test_register_student(self):
		response = self.post(RegisterView, {
			'username': 'priya.sharma',
			'password': 'password123',
			'email': 'priya@example.edu',
			'role': 'student',
		})

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['user']['role'], 'student')
		self.assertIn('access', response.data['tokens'])

	def test_driver_registration_requires_vehicle(self):
		response = self.post(RegisterView, {
			'username': 'ravi',
			'password': 'password123',
			'role': 'driver',
		})
		self.assertEqual(response.status_code, 400)

		response = self.post(RegisterView, {
			'username': 'ravi',
			'password': 'password123',
			'role': 'driver',
			'vehicle': {'make': 'Bajaj', 'model': 'RE', 'plate': 'KA-01-1001'},
		})
		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['user']['vehicle']['plate'], 'KA-01-1001')
		self.assertTrue(DriverProfile.objects.filter(user__username='ravi').exists())

	def test_admin_role_cannot_self_register(self):
		response = self.post(RegisterView, {
			'username': 'boss',
			'password': 'password123',
			'role': 'admin',
		})
		self.assertEqual(response.status_code, 400)

	def test_login_marks_user_online(self):
		User.objects.create_user(username='riya', password='password123')

		response = self.post(LoginView, {'username': 'riya', 'password': 'password123'})

		self.assertEqual(response.status_code, 200)
		self.assertTrue(User.objects.get(username='riya').is_online)

		response = self.post(RefreshTokenView, {'refresh': response.data['tokens']['refresh']})
		self.assertEqual(response.status_code, 200)
		self.assertIn('access', response.data)

	def test_bad_credentials(self):
		User.objects.create_user(username='riya', password='password123')

		response = self.post(LoginView, {'username': 'riya', 'password': 'wrong'})
		self.assertEqual(response.status_code, 400)

		response = self.post(RefreshTokenView, {'refresh': 'not-a-token'})
		self.assertEqual(response.status_code, 401)

	def test_me(self):
		user = User.objects.create_user(username='riya', password='password123', first_name='Riya')
		request = self.factory.get('/api/auth/me/')
		force_authenticate(request, user=user)

		response = MeView.as_view()(request)

		self.assertEqual(response.data['name'], 'Riya')
		self.assertIsNone(response.data['location'])

	def test_logout_takes_user_offline(self):
		user = User.objects.create_user(username='riya', password='password123', is_online=True)
		request = self.factory.post('/api/auth/logout/')
		force_authenticate(request, user=user)

		response = LogoutView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		user.refresh_from_db()
		self.assertFalse(user.is_online)

	def test_errors_use_the_common_body(self):
		response = self.post(RegisterView, {'username': 'x', 'password': 'short', 'role': 'student'})

		self.assertEqual(response.status_code, 400)
		self.assertFalse(response.data['success'])
		self.assertEqual(response.data['error'], 'validation_error')
		self.assertIn('password', response.data['details'])
