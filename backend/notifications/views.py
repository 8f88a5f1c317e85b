from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from services import ledger
from services.ride_management.exceptions import NotFoundError
from .serializers import NotificationSerializer


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def list_notifications(request):
    """
    Current user's notification history, newest first.

    Clients poll this (and re-fetch it after every reconnect) since live
    events are not queued for offline users.
    """
    notifications = ledger.list_for_user(request.user)
    return Response({
        'notifications': NotificationSerializer(notifications, many=True).data,
        'unread_count': ledger.unread_count(request.user),
    })


@api_view(['PATCH', 'POST'])
@permission_classes([IsAuthenticated])
def mark_notification_read(request, notification_id):
    try:
        notification = ledger.mark_read(notification_id, user=request.user)
    except NotFoundError as e:
        return Response(e.as_dict(), status=e.status_code)

    return Response({
        'success': True,
        'notification': NotificationSerializer(notification).data,
    })
