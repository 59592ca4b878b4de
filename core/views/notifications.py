from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.models import Notification
from core.serializers.notification import NotificationListQuerySerializer
from core.services import notifications as svc


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def list_notifications(request):
    q = NotificationListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    items = svc.get_user_notifications(
        request.user, unread_only=q.validated_data['unread'], limit=q.validated_data.get('limit'),
    )
    return Response({
        'ok': True,
        'data': [svc.format_notification(n) for n in items],
        'unreadCount': svc.count_unread(request.user),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def notification_read(request, pk: int):
    n = Notification.objects.filter(id=pk).first()
    if not n:
        return Response({'ok': False, 'detail': 'Notification not found'}, status=404)
    try:
        svc.mark_notification_as_read(request.user, n)
    except PermissionError as e:
        return Response({'ok': False, 'detail': str(e)}, status=403)
    return Response({'ok': True, 'notification': svc.format_notification(n)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def notification_read_all(request):
    return Response({'ok': True, 'updated': svc.mark_all_as_read(request.user)})
