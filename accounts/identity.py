"""
Synthetic login emails.

Clients and owners log in with a phone number; the identity's email is
derived from it. The tenant id in the client format lets the same phone
number hold one account per tenant.
"""
import re

CLIENT_DOMAIN = 'client.internal'
OWNER_DOMAIN = 'owner.internal'


def client_login_email(phone_number, tenant_id):
    return f"{phone_number}-{tenant_id}@{CLIENT_DOMAIN}"


def legacy_client_login_email(phone_number):
    return f"{phone_number}@{CLIENT_DOMAIN}"


def owner_login_email(phone_number):
    return f"{phone_number}@{OWNER_DOMAIN}"


def login_email_regex(phone_number):
    """Regex matching every synthetic email format for a phone number"""
    phone = re.escape(phone_number)
    return (
        rf"^{phone}-[^@]+@{re.escape(CLIENT_DOMAIN)}$"
        rf"|^{phone}@{re.escape(CLIENT_DOMAIN)}$"
        rf"|^{phone}@{re.escape(OWNER_DOMAIN)}$"
    )


def matches_phone(email, phone_number):
    return bool(re.match(login_email_regex(phone_number), email or ''))
