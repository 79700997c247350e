# core/utils.py
import re
import secrets
import threading

# Thread-local storage for the logging context (tenant + request)
# MUST be defined here and imported everywhere to avoid circular imports
_thread_locals = threading.local()

PHONE_NUMBER_RE = re.compile(r'^0\d{9}$')


def get_current_tenant():
    """Get the current tenant from thread-local storage"""
    return getattr(_thread_locals, 'tenant', None)


def set_current_tenant(tenant):
    """Set the current tenant in thread-local storage"""
    _thread_locals.tenant = tenant


def get_current_request():
    """Get the current request from thread-local storage (optional)"""
    return getattr(_thread_locals, 'request', None)


def set_current_request(request):
    """Set the current request in thread-local storage (optional)"""
    _thread_locals.request = request


def clear_thread_locals():
    """Clear all thread-local data (for cleanup)"""
    if hasattr(_thread_locals, 'tenant'):
        del _thread_locals.tenant
    if hasattr(_thread_locals, 'request'):
        del _thread_locals.request


def get_client_ip(request):
    """Extract client IP from request"""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('HTTP_CF_CONNECTING_IP') or request.META.get('REMOTE_ADDR')
    return ip or 'unknown'


def is_valid_phone_number(phone_number):
    return bool(phone_number) and bool(PHONE_NUMBER_RE.match(phone_number))


def generate_pin():
    """Six-digit numeric PIN from a CSPRNG (100000-999999)"""
    return str(secrets.randbelow(900000) + 100000)


def to_international(phone_number, country_code='254'):
    """0712345678 -> +254712345678; anything else is returned unchanged"""
    if phone_number.startswith('0'):
        return f'+{country_code}{phone_number[1:]}'
    return phone_number


def to_local(phone_number, country_code='254'):
    """+254712345678 -> 0712345678; anything else is returned unchanged"""
    prefix = f'+{country_code}'
    if phone_number.startswith(prefix):
        return f'0{phone_number[len(prefix):]}'
    return phone_number
