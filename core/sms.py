"""
SMS delivery through the Africa's Talking bulk messaging API
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

import httpx
from django.conf import settings

from .utils import to_international, to_local

logger = logging.getLogger(__name__)


@dataclass
class SmsResult:
    sent: bool
    reason: str = ''
    response: Optional[Any] = None


def format_amount(amount):
    """1000 -> '1,000', 1000.5 -> '1,000.50'"""
    value = Decimal(str(amount))
    if value == value.to_integral_value():
        return f"{value:,.0f}"
    return f"{value:,.2f}"


def sale_message(business_name, client_name, amount, product_name=None, invoice_number=None):
    message = (
        f"{business_name}: Dear {client_name}, a new invoice of KSH {format_amount(amount)} "
        f"has been added to your account"
    )
    if product_name:
        message += f" for {product_name}"
    if invoice_number:
        message += f" (Invoice: {invoice_number})"
    return message + ". Please pay at your convenience."


def payment_message(business_name, client_name, amount, invoice_number=None, new_balance=None):
    message = (
        f"{business_name}: Dear {client_name}, we have received your payment of "
        f"KSH {format_amount(amount)}"
    )
    if invoice_number:
        message += f" for Invoice {invoice_number}"
    message += ". Thank you for your payment!"
    if new_balance is not None:
        message += f" Your remaining balance is KSH {format_amount(new_balance)}."
    return message


def credentials_message(business_name, phone_number, pin):
    return (
        f"{business_name}: Your account has been created. "
        f"Log in with phone {phone_number} and PIN {pin}."
    )


def pin_reset_message(pin):
    return f"Your new login PIN is {pin}. Do not share it with anyone."


class SmsGateway:
    """Thin client around the SMS provider; never raises on delivery problems"""

    def __init__(self, config=None):
        self.config = config if config is not None else settings.SMS

    @property
    def country_code(self):
        return self.config.get('COUNTRY_CODE', '254')

    @property
    def is_configured(self):
        return bool(self.config.get('API_KEY') and self.config.get('USERNAME'))

    def is_allowed(self, phone_number):
        """Check the allowlist: empty sends nothing, '*' sends to everyone"""
        allowlist = (self.config.get('ALLOWLIST') or '').strip()
        if not allowlist:
            logger.info("SMS allowlist not configured, skipping SMS")
            return False
        if allowlist == '*':
            return True

        allowed_numbers = {n.strip() for n in allowlist.split(',') if n.strip()}
        variants = {
            phone_number,
            to_international(phone_number, self.country_code),
            to_local(phone_number, self.country_code),
        }
        is_allowed = bool(variants & allowed_numbers)
        logger.debug(f"Phone {phone_number} allowlist check: {'ALLOWED' if is_allowed else 'NOT ALLOWED'}")
        return is_allowed

    def send(self, phone_number, message):
        if not self.is_configured:
            logger.info("SMS not configured (missing API key or username)")
            return SmsResult(sent=False, reason="SMS not configured")

        if not self.is_allowed(phone_number):
            logger.info(f"SMS skipped: {phone_number} not in allowlist")
            return SmsResult(sent=False, reason="Phone not in allowlist")

        payload = {
            'username': self.config['USERNAME'],
            'message': message,
            'phoneNumbers': [to_international(phone_number, self.country_code)],
        }
        if self.config.get('SENDER_ID'):
            payload['senderId'] = self.config['SENDER_ID']

        try:
            response = httpx.post(
                self.config['URL'],
                json=payload,
                headers={
                    'Accept': 'application/json',
                    'apiKey': self.config['API_KEY'],
                },
                timeout=self.config.get('TIMEOUT', 10),
            )
        except httpx.HTTPError as e:
            logger.error(f"SMS API request failed: {str(e)}")
            return SmsResult(sent=False, reason=f"SMS API error: {e.__class__.__name__}")

        if response.status_code >= 400:
            logger.error(f"SMS API error: {response.status_code} {response.text}")
            return SmsResult(sent=False, reason=f"SMS API error: {response.status_code}")

        try:
            body = response.json()
        except ValueError:
            body = response.text

        logger.info(f"SMS sent to {phone_number}")
        return SmsResult(sent=True, response=body)


def send_transaction_sms(client, sms_type, amount, invoice_number=None,
                         product_name=None, new_balance=None, gateway=None):
    """Build the sale/payment message for `client` and send it"""
    business_name = client.tenant.business_name or settings.SMS.get('DEFAULT_BUSINESS_NAME', '')
    client_name = client.name or "Customer"

    if sms_type == 'sale':
        message = sale_message(business_name, client_name, amount, product_name, invoice_number)
    else:
        message = payment_message(business_name, client_name, amount, invoice_number, new_balance)

    return (gateway or SmsGateway()).send(client.phone_number, message)
