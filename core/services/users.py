from typing import Optional, Any, Dict, List

import structlog
from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.contrib.auth.tokens import default_token_generator
from django.core.exceptions import ValidationError
from django.core.mail import send_mail
from django.db import transaction
from django.utils.encoding import force_bytes, force_str
from django.utils.http import urlsafe_base64_decode, urlsafe_base64_encode
from rest_framework.authtoken.models import Token
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken

from core.services.patients import save_patient

User = get_user_model()
logger = structlog.get_logger(__name__)

# display label used by the mobile client -> stored role
ROLE_LABELS = dict((label, value) for value, label in User.ROLE_CHOICES)


def parse_role(value: str) -> str:
    value = (value or '').strip()
    if value in ROLE_LABELS:
        return ROLE_LABELS[value]
    if value in ROLE_LABELS.values():
        return value
    raise ValueError(f'Unknown role: {value}')


def format_user(user: User) -> Dict[str, Any]:
    return {
        'id': user.id,
        'name': user.display_name,
        'email': user.email,
        'phoneNumber': user.phone_number,
        'photoURL': user.photo_url or None,
        'role': user.role,
        'roleLabel': user.get_role_display(),
        'patientId': user.patient_code,
        'createdAt': user.created_at.isoformat() if user.created_at else None,
    }


def check_user_exists(email: str) -> bool:
    return User.objects.filter(email__iexact=(email or '').strip()).exists()


@transaction.atomic
def register_user(*, name: str, email: str, password: str, phone_number: str, role: str) -> User:
    """Create an account; patients also get a linked patient record."""
    email = email.strip().lower()
    if check_user_exists(email):
        raise ValueError('An account with this email already exists')
    role = parse_role(role)
    user = User.objects.create_user(
        username=email, email=email, password=password,
        name=name, phone_number=phone_number, role=role,
    )
    if role == User.ROLE_PATIENT:
        patient = save_patient({'name': name, 'phone_number': phone_number, 'email': email}, user=user)
        user.patient_code = patient.patient_code
        user.save(update_fields=['patient_code'])
    logger.info('user_registered', user_id=user.id, role=role)
    return user


def auth_payload(user: User) -> Dict[str, Any]:
    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)
    return {
        'ok': True,
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
        'role': user.role,
        'user': format_user(user),
    }


def sign_out(user: User, refresh: Optional[str] = None) -> int:
    """Drop the legacy token and blacklist refresh tokens; return how many."""
    Token.objects.filter(user=user).delete()
    count = 0
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
            count = 1
        except TokenError as e:
            logger.info('refresh_blacklist_skipped', user_id=user.id, error=str(e))
    else:
        for token in OutstandingToken.objects.filter(user=user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    logger.info('user_signed_out', user_id=user.id, blacklisted=count)
    return count


def get_user_data(user_id: int) -> Optional[Dict[str, Any]]:
    user = User.objects.filter(id=user_id).first()
    return format_user(user) if user else None


def get_user_phone_number(user: User) -> Optional[str]:
    return user.phone_number or None


def update_user_data(user: User, data: Dict[str, Any]) -> User:
    fields = [f for f in ('name', 'phone_number', 'photo_url') if f in data]
    for f in fields:
        setattr(user, f, data[f] or '')
    if fields:
        user.save(update_fields=fields + ['updated_at'])
    # keep the linked patient record in step with the account
    if user.role == User.ROLE_PATIENT and ({'name', 'phone_number'} & set(fields)):
        record = getattr(user, 'patient_record', None)
        if record is not None:
            record.name = user.name or record.name
            record.phone_number = user.phone_number
            record.save(update_fields=['name', 'phone_number', 'updated_at'])
    logger.info('user_updated', user_id=user.id, fields=fields)
    return user


def update_user_profile(user: User, name: str, photo_url: Optional[str] = None) -> User:
    return update_user_data(user, {'name': name, 'photo_url': photo_url})


def _staff(role: str) -> List[Dict[str, Any]]:
    qs = User.objects.filter(role=role, is_active=True).order_by('name', 'id')
    return [{'id': u.id, 'name': u.display_name, 'email': u.email} for u in qs]


def get_available_doctors() -> List[Dict[str, Any]]:
    return _staff(User.ROLE_DOCTOR)


def get_available_healthcare_workers() -> List[Dict[str, Any]]:
    return _staff(User.ROLE_HCW)


def request_password_reset(email: str) -> None:
    """Email a reset link.  Unknown addresses are ignored silently."""
    user = User.objects.filter(email__iexact=(email or '').strip(), is_active=True).first()
    if not user:
        logger.info('password_reset_unknown_email')
        return
    uid = urlsafe_base64_encode(force_bytes(user.pk))
    token = default_token_generator.make_token(user)
    link = f"{settings.PASSWORD_RESET_URL}?uid={uid}&token={token}"
    send_mail(
        'Reset your CerviHealth password',
        f'Use the link below to choose a new password:\n\n{link}\n',
        settings.DEFAULT_FROM_EMAIL,
        [user.email],
    )
    logger.info('password_reset_sent', user_id=user.id)


def confirm_password_reset(uid: str, token: str, new_password: str) -> User:
    try:
        user = User.objects.get(pk=force_str(urlsafe_base64_decode(uid)))
    except (TypeError, ValueError, OverflowError, User.DoesNotExist):
        raise ValueError('Invalid reset link')
    if not default_token_generator.check_token(user, token):
        raise ValueError('Invalid or expired reset link')
    try:
        validate_password(new_password, user)
    except ValidationError as e:
        raise ValueError(' '.join(e.messages))
    user.set_password(new_password)
    user.save(update_fields=['password'])
    Token.objects.filter(user=user).delete()
    logger.info('password_reset_done', user_id=user.id)
    return user
