import logging

from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from drivers import services as availability
from .serializers import RegisterSerializer, LoginSerializer, UserSerializer

logger = logging.getLogger(__name__)


def _session_body(user, message):
    refresh = RefreshToken.for_user(user)
    return {
        'success': True,
        'message': message,
        'user': UserSerializer(user).data,
        'tokens': {
            'refresh': str(refresh),
            'access': str(refresh.access_token),
        },
    }


def _rejected(error, message, http_status, details=None):
    body = {'success': False, 'error': error, 'message': message}
    if details is not None:
        body['details'] = details
    return Response(body, status=http_status)


class RegisterView(APIView):
    """
    Sign up as a student or a driver. Admin accounts are created through the
    Django admin only.

    POST Body:
    {
        "username": "priya.sharma",
        "password": "password123",
        "role": "student",  // or "driver"
        "vehicle": {"make": "Bajaj", "model": "RE", "plate": "KA-01-1001"}  // drivers only
    }
    """
    permission_classes = (AllowAny,)
    authentication_classes = []

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        if not serializer.is_valid():
            return _rejected('validation_error', 'Invalid registration data',
                             status.HTTP_400_BAD_REQUEST, serializer.errors)

        user = serializer.save()
        logger.info("Registered %s %s", user.role, user.id)
        return Response(_session_body(user, 'User registered successfully'), status=status.HTTP_201_CREATED)


class LoginView(APIView):
    """Exchange username/password for a JWT pair. Logging in marks the user online."""
    permission_classes = (AllowAny,)
    authentication_classes = []

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        if not serializer.is_valid():
            return _rejected('invalid_credentials', 'Invalid username or password',
                             status.HTTP_400_BAD_REQUEST)

        user = serializer.validated_data
        availability.set_user_availability(user, True)
        return Response(_session_body(user, 'Login successful'))


class LogoutView(APIView):
    """Go offline. Drivers stop receiving new ride requests."""
    permission_classes = [IsAuthenticated]

    def post(self, request):
        availability.set_user_availability(request.user, False)
        return Response({'success': True, 'message': 'Logged out'})


class RefreshTokenView(APIView):
    """POST {"refresh": "<token>"} for a new access token."""
    permission_classes = (AllowAny,)
    authentication_classes = []

    def post(self, request):
        refresh_token = request.data.get('refresh')
        if not refresh_token:
            return _rejected('validation_error', 'Refresh token is required',
                             status.HTTP_400_BAD_REQUEST)

        try:
            refresh = RefreshToken(refresh_token)
        except TokenError:
            return _rejected('invalid_token', 'Invalid or expired refresh token',
                             status.HTTP_401_UNAUTHORIZED)
        return Response({'access': str(refresh.access_token)})


class MeView(APIView):
    """Current user's profile, used by clients to refresh state after reconnecting."""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(UserSerializer(request.user).data)
