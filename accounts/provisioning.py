"""
Client login provisioning.

Three steps: identity, profile, role. Each step either creates or updates,
so repeating a call with the same phone and tenant converges on the same
rows. When the profile or role step fails, everything created earlier in
the same call is removed again (newest first) and the error is re-raised.
"""
import logging
from dataclasses import dataclass

from django.contrib.auth import get_user_model
from django.db import DatabaseError, transaction

from core.alerts import send_alert
from core.exceptions import ProvisioningError
from core.sms import SmsGateway, credentials_message
from core.tasks import dispatch

from .identity import client_login_email
from .models import Profile, UserRole

logger = logging.getLogger(__name__)


@dataclass
class ProvisionedAccount:
    user: object
    email: str
    created: bool


def _create_or_fetch_identity(email, pin, undo):
    User = get_user_model()
    user = User.objects.filter(username=email).first()

    if user is None:
        user = User(username=email, email=email)
        user.set_password(pin)
        user.save()
        undo.append(('identity', user.delete))
        return user, True

    previous_password = user.password
    user.set_password(pin)
    user.is_active = True
    user.save(update_fields=['password', 'is_active'])

    def restore_password():
        user.password = previous_password
        user.save(update_fields=['password'])

    undo.append(('password', restore_password))
    return user, False


def _create_or_update_profile(user, tenant, phone_number, full_name, metadata, undo):
    profile, created = Profile.all_objects.get_or_create(
        user=user,
        tenant=tenant,
        defaults={
            'full_name': full_name,
            'phone_number': phone_number,
            'metadata': metadata,
        }
    )
    if created:
        undo.append(('profile', profile.delete))
        return profile

    profile.full_name = full_name
    profile.phone_number = phone_number
    profile.metadata = {**profile.metadata, **metadata}
    profile.save(update_fields=['full_name', 'phone_number', 'metadata', 'updated_at'])
    return profile


def _create_or_update_role(user, undo):
    role, created = UserRole.objects.get_or_create(user=user, role=UserRole.ROLE_CLIENT)
    if created:
        undo.append(('role', role.delete))
    return role


def _compensate(undo, phone_number):
    for name, action in reversed(undo):
        try:
            with transaction.atomic():
                action()
            logger.info(f"Rolled back {name} for {phone_number}")
        except DatabaseError as e:
            logger.error(f"Rollback of {name} failed for {phone_number}: {str(e)}")


def provision_client_account(tenant, phone_number, pin, metadata=None, full_name=None, notify=True):
    """
    Create (or refresh) the login for a client of `tenant`.

    Returns a ProvisionedAccount. Raises ProvisioningError naming the step
    that failed.
    """
    metadata = dict(metadata or {})
    full_name = full_name or metadata.get('full_name') or phone_number
    email = client_login_email(phone_number, tenant.pk)
    undo = []
    step = 'identity'

    try:
        with transaction.atomic():
            user, created = _create_or_fetch_identity(email, pin, undo)
        logger.info(
            f"{'Created' if created else 'Updated'} identity {email}",
            extra={'tenant_id': str(tenant.pk)}
        )

        step = 'profile'
        with transaction.atomic():
            _create_or_update_profile(user, tenant, phone_number, full_name, metadata, undo)

        step = 'role'
        with transaction.atomic():
            _create_or_update_role(user, undo)

    except DatabaseError as e:
        logger.error(
            f"Client provisioning failed at {step} step for {phone_number}: {str(e)}",
            extra={'tenant_id': str(tenant.pk)}
        )
        if step != 'identity':
            _compensate(undo, phone_number)
        raise ProvisioningError(
            f"Failed to create client user ({step} step).",
            step=step
        ) from e

    logger.info(
        f"Client account ready for {phone_number} in {tenant.name}",
        extra={'tenant_id': str(tenant.pk)}
    )

    if notify:
        dispatch(
            send_alert,
            "New Client Created",
            f"**Business:** {tenant.business_name}\n"
            f"**Client:** {full_name}\n"
            f"**Phone:** {phone_number}\n"
            f"**Login:** `{email}`",
            'success',
        )
        dispatch(
            SmsGateway().send,
            phone_number,
            credentials_message(tenant.business_name, phone_number, pin),
        )

    return ProvisionedAccount(user=user, email=email, created=created)
