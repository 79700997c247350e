import logging

from .models import Notification

logger = logging.getLogger(__name__)


def notify(tenant, user, title, message, type=Notification.TYPE_SYSTEM, link=''):
    """Create an in-app notification. Does nothing without a recipient."""
    if user is None:
        return None

    notification = Notification.objects.create(
        tenant=tenant,
        user=user,
        title=title,
        message=message,
        type=type,
        link=link,
    )
    logger.debug(f"Notification '{title}' created for user {user.pk}", extra={'tenant_id': str(tenant.pk)})
    return notification
