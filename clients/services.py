import logging

from django.db import transaction
from rest_framework import serializers

from accounts.provisioning import provision_client_account
from core.limits import enforce_plan_limit
from core.tasks import dispatch
from core.utils import generate_pin
from notifications.models import Notification
from notifications.services import notify

from .models import Client

logger = logging.getLogger(__name__)


def create_client(ctx, name, phone_number, email='', status=Client.STATUS_ACTIVE, create_login=True):
    """
    Create a client and, optionally, its portal login in one transaction.
    Returns (client, pin); pin is None when no login was created.
    """
    tenant = ctx.tenant

    with transaction.atomic():
        enforce_plan_limit(tenant, 'clients')

        if Client.objects.for_tenant(tenant).filter(phone_number=phone_number).exists():
            raise serializers.ValidationError(
                {'phone_number': "A client with this phone number already exists."}
            )

        client = Client.objects.create(
            tenant=tenant,
            name=name,
            phone_number=phone_number,
            email=email,
            status=status,
        )

        pin = None
        if create_login:
            pin = generate_pin()
            account = provision_client_account(
                tenant,
                phone_number,
                pin,
                metadata={'client_id': client.pk},
                full_name=name,
            )
            client.user = account.user
            client.save(update_fields=['user', 'updated_at'])

    logger.info(
        f"Client {client.pk} created{' with login' if pin else ''}",
        extra={'tenant_id': str(tenant.pk)}
    )
    dispatch(
        notify,
        tenant,
        ctx.user,
        "New Client Added",
        f"{name} has been added as a client",
        Notification.TYPE_CLIENT,
        f"/clients/{client.pk}",
    )
    return client, pin
