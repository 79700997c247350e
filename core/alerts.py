"""
Operator alerts pushed to the external notification webhook (Markdown)
"""
import logging

import httpx
from django.conf import settings

logger = logging.getLogger(__name__)


def send_alert(title, body, notify_type='info', silent=False):
    """POST a Markdown alert. Returns True when the webhook accepted it."""
    config = settings.ALERTS
    if not config.get('WEBHOOK_URL'):
        logger.debug("Alert webhook not configured, skipping alert")
        return False

    headers = {}
    if config.get('WEBHOOK_TOKEN'):
        headers['Authorization'] = f"Bearer {config['WEBHOOK_TOKEN']}"

    try:
        response = httpx.post(
            config['WEBHOOK_URL'],
            json={
                'channel': config.get('CHANNEL', 'telegram'),
                'title': title,
                'body': body,
                'format': 'markdown',
                'notify_type': notify_type,
                'silent': silent,
            },
            headers=headers,
            timeout=config.get('TIMEOUT', 10),
        )
    except httpx.HTTPError as e:
        logger.error(f"Error sending alert: {str(e)}")
        return False

    if response.status_code >= 400:
        logger.error(f"Failed to send alert: {response.status_code} {response.text}")
        return False

    logger.info(f"Alert sent: {title}")
    return True
