from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from accounts.permissions import IsStudent, IsDriver
from .serializers import (
    RideSerializer,
    RideCreateSerializer,
    RideCancelSerializer,
    RideCompleteSerializer,
    RideUpdateSerializer,
    PoolSuggestionSerializer,
)

# Import from services layer
from services.matching import request_acceptance, get_pool_suggestions
from services.ride_management import (
    RideServiceError,
    create_ride_request as create_ride,
    start_ride as start,
    complete_ride as complete,
    cancel_ride as cancel,
    update_ride as update,
    get_active_ride,
    get_available_rides,
    get_rides_for_user,
    get_ride,
)


def _error_response(exc: RideServiceError):
    return Response(exc.as_dict(), status=exc.status_code)


def _invalid_response(serializer):
    return Response(
        {
            'success': False,
            'error': 'validation_error',
            'message': 'Invalid request data',
            'details': serializer.errors,
        },
        status=status.HTTP_400_BAD_REQUEST
    )


def _result_response(result, status_code=status.HTTP_200_OK):
    return Response({
        'success': True,
        'ride': RideSerializer(result.ride).data,
        'message': result.message,
        **(result.extra or {}),
    }, status=status_code)


# ==================== Rider APIs ====================

@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStudent])
def create_ride_request(request):
    """Create a new ride request and announce it to online drivers."""
    serializer = RideCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid_response(serializer)

    data = serializer.validated_data
    try:
        result = create_ride(
            request.user,
            data['pickup'],
            data['drop'],
            ride_type=data['ride_type'],
            fare=data['fare'],
            estimated_duration=data.get('estimated_duration'),
            distance=data.get('distance'),
        )
    except RideServiceError as e:
        return _error_response(e)

    return _result_response(result, status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def active_ride(request):
    """
    Current user's active ride (POLLING ENDPOINT)

    Works for riders and drivers. Clients poll this and re-fetch it after
    every reconnect; it is the source of truth for ride state.
    """
    ride = get_active_ride(request.user)
    if not ride:
        return Response({
            'has_active_ride': False,
            'ride': None,
            'message': 'No active ride found'
        })

    return Response({
        'has_active_ride': True,
        'ride': RideSerializer(ride).data,
        'status': ride.status,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_rides(request):
    """Ride history for the current user (as rider or driver), newest first."""
    rides = get_rides_for_user(request.user)
    data = RideSerializer(rides, many=True).data
    return Response({'count': len(data), 'rides': data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def cancel_ride(request, ride_id):
    """Cancel by the rider (waiting/accepted) or the assigned driver (accepted)."""
    serializer = RideCancelSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid_response(serializer)

    try:
        result = cancel(ride_id, request.user, serializer.validated_data['reason'])
    except RideServiceError as e:
        return _error_response(e)

    return _result_response(result)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def update_ride(request, ride_id):
    """Generic partial update (status change, rating, payment status)."""
    serializer = RideUpdateSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid_response(serializer)

    try:
        result = update(ride_id, dict(serializer.validated_data), request.user)
    except RideServiceError as e:
        return _error_response(e)

    return _result_response(result)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def pool_suggestions(request, ride_id):
    try:
        ride = get_ride(ride_id, user=request.user)
    except RideServiceError as e:
        return _error_response(e)

    suggestions = get_pool_suggestions(ride)
    data = PoolSuggestionSerializer(suggestions, many=True).data
    return Response({'count': len(data), 'suggestions': data})


# ==================== Driver APIs ====================

@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDriver])
def available_rides(request):
    """Waiting rides, newest first."""
    data = RideSerializer(get_available_rides(), many=True).data
    return Response({'count': len(data), 'rides': data})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDriver])
def accept_ride(request, ride_id):
    """Accept a waiting ride. Losing a race answers 409."""
    try:
        result = request_acceptance(ride_id, request.user)
    except RideServiceError as e:
        return _error_response(e)

    return _result_response(result)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDriver])
def start_ride(request, ride_id):
    try:
        result = start(ride_id, driver=request.user)
    except RideServiceError as e:
        return _error_response(e)

    return _result_response(result)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDriver])
def complete_ride(request, ride_id):
    serializer = RideCompleteSerializer(data=request.data)
    if not serializer.is_valid():
        return _invalid_response(serializer)

    try:
        result = complete(
            ride_id,
            serializer.validated_data.get('actual_duration'),
            driver=request.user,
        )
    except RideServiceError as e:
        return _error_response(e)

    return _result_response(result)
