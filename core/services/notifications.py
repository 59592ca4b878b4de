from typing import Optional, Any, Dict, List

import structlog
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.contrib.auth import get_user_model
from django.utils import timezone

from core.models import Notification

User = get_user_model()
logger = structlog.get_logger(__name__)


def user_group(user_id: int) -> str:
    return f"notifications.{user_id}"


def format_notification(n: Notification) -> Dict[str, Any]:
    return {
        'id': n.id,
        'userId': n.recipient_id,
        'type': n.type,
        'title': n.title,
        'message': n.message,
        'data': n.data or {},
        'read': n.read,
        'readAt': n.read_at.isoformat() if n.read_at else None,
        'createdAt': n.created_at.isoformat(),
    }


def _push(n: Notification) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    payload = {'type': 'notification.created', 'notification': format_notification(n)}
    try:
        async_to_sync(channel_layer.group_send)(user_group(n.recipient_id), payload)
    except Exception as e:
        logger.warning('notification_push_failed', notification_id=n.id, error=str(e))


def create_notification(recipient: Optional[User], *, type: str, title: str, message: str,
                        data: Optional[Dict[str, Any]] = None) -> Optional[Notification]:
    """Store an unread notification for ``recipient`` and push it to live sockets.

    Returns ``None`` when there is nobody to notify, e.g. a patient record
    that was never linked to an account.
    """
    if recipient is None:
        logger.warning('notification_skipped', reason='no_recipient', type=type, title=title)
        return None
    n = Notification.objects.create(
        recipient=recipient, type=type, title=title, message=message, data=data or {},
    )
    logger.info('notification_created', notification_id=n.id, recipient_id=recipient.id, type=type)
    _push(n)
    return n


def notify_role(role: str, **kwargs) -> List[Notification]:
    created = []
    for user in User.objects.filter(role=role, is_active=True):
        n = create_notification(user, **kwargs)
        if n:
            created.append(n)
    return created


def get_user_notifications(user: User, *, unread_only: bool = False, limit: Optional[int] = None):
    qs = Notification.objects.filter(recipient=user).order_by('-created_at', '-id')
    if unread_only:
        qs = qs.filter(read=False)
    if limit:
        qs = qs[:limit]
    return list(qs)


def count_unread(user: User) -> int:
    return Notification.objects.filter(recipient=user, read=False).count()


def mark_notification_as_read(user: User, n: Notification) -> Notification:
    if n.recipient_id != user.id:
        raise PermissionError('Not your notification')
    if not n.read:
        n.read = True
        n.read_at = timezone.now()
        n.save(update_fields=['read', 'read_at'])
    return n


def mark_all_as_read(user: User) -> int:
    return Notification.objects.filter(recipient=user, read=False).update(read=True, read_at=timezone.now())
