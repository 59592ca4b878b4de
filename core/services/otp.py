"""
Phone verification codes.

No SMS gateway is wired up: every challenge is answered by the static
code from ``settings.OTP_STATIC_CODE``.  A challenge still has to be
requested first and expires after ``OTP_TTL_SECONDS``, so the client
flow is the same one a real provider would need.
"""
import structlog
from django.conf import settings
from django.core.cache import cache

logger = structlog.get_logger(__name__)


def normalize_phone(phone_number: str) -> str:
    phone_number = (phone_number or '').strip().replace(' ', '')
    if not phone_number:
        raise ValueError('Phone number is required')
    if not phone_number.startswith('+'):
        phone_number = f'+{phone_number}'
    return phone_number


def _key(phone_number: str) -> str:
    return f'otp:{phone_number}'


def send_otp(phone_number: str) -> dict:
    phone_number = normalize_phone(phone_number)
    cache.set(_key(phone_number), settings.OTP_STATIC_CODE, settings.OTP_TTL_SECONDS)
    logger.info('otp_sent', phone_number=phone_number[:-4] + '****')
    return {'phoneNumber': phone_number, 'expiresIn': settings.OTP_TTL_SECONDS}


def verify_otp(phone_number: str, code: str) -> str:
    """Consume the challenge for ``phone_number``; return the normalized number."""
    phone_number = normalize_phone(phone_number)
    expected = cache.get(_key(phone_number))
    if expected is None or str(code or '').strip() != expected:
        logger.info('otp_rejected', phone_number=phone_number[:-4] + '****')
        raise ValueError('Invalid verification code')
    cache.delete(_key(phone_number))
    logger.info('otp_verified', phone_number=phone_number[:-4] + '****')
    return phone_number
