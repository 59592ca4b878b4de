"""
Authentication views and helper functions.

This module defines registration, email/password login, the phone
verification (OTP) step, password reset and token refresh/logout used by
the mobile client.  Keeping these views apart from the authentication
class (see ``core.authentication``) prevents circular imports when
Django REST framework initialises authentication classes.
"""
from __future__ import annotations

import structlog
from django.contrib.auth import authenticate
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.views import TokenRefreshView

from core.serializers.auth import (
    LoginSerializer,
    OtpSendSerializer,
    OtpVerifySerializer,
    PasswordResetConfirmSerializer,
    PasswordResetSerializer,
    RegisterSerializer,
)
from core.services import otp, users
from core.services.audit import log_action
from core.throttling import LoginRateThrottle, OtpRateThrottle

from .models import User

logger = structlog.get_logger(__name__)


def get_user_for_request(request) -> User | None:
    """Return the authenticated user from the request if available."""
    user = getattr(request, 'user', None)
    if user and getattr(user, 'is_authenticated', False):
        return user  # type: ignore
    return None


# ---------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([LoginRateThrottle])
def register_view(request):
    """Create an account (Patient, Healthcare Worker or Doctor) and sign in."""
    s = RegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    try:
        user = users.register_user(
            name=vd['name'],
            email=vd['email'],
            password=vd['password'],
            phone_number=vd['phoneNumber'],
            role=vd['role'],
        )
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)
    try:
        log_action(user=user, action='register', object_type='user', object_id=user.id,
                   detail={'role': user.role, 'ip': request.META.get('REMOTE_ADDR')})
    except Exception as e:
        logger.warning('audit_failed', action='register', error=str(e))
    return Response(users.auth_payload(user), status=201)


# ---------------------------------------------------------------------
# Email/password login
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([LoginRateThrottle])
def login_view(request):
    """
    Sign in with email and password.

    The response carries the API tokens and the user's phone number so
    the client can continue with the OTP step (``/api/auth/otp/send``).
    """
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    email = s.validated_data['email']
    password = s.validated_data['password']

    user = authenticate(request, username=email, password=password)
    if not user:
        try:
            log_action(user=None, action='login', object_type='user', object_id=None,
                       detail={'result': 'fail', 'email': email, 'ip': request.META.get('REMOTE_ADDR')})
        except Exception as e:
            logger.warning('audit_failed', action='login', error=str(e))
        return Response({'ok': False, 'detail': 'Invalid email or password'}, status=400)

    try:
        log_action(user=user, action='login', object_type='user', object_id=user.id,
                   detail={'result': 'ok', 'ip': request.META.get('REMOTE_ADDR')})
    except Exception as e:
        logger.warning('audit_failed', action='login', error=str(e))

    payload = users.auth_payload(user)
    payload['phoneNumber'] = users.get_user_phone_number(user)
    payload['otpRequired'] = bool(payload['phoneNumber'])
    return Response(payload, status=200)


# ---------------------------------------------------------------------
# Phone verification
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([OtpRateThrottle])
def otp_send_view(request):
    """Start a phone verification.  Signed-in users may omit the number."""
    s = OtpSendSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    phone = s.validated_data.get('phoneNumber')
    user = get_user_for_request(request)
    if not phone and user is not None:
        phone = users.get_user_phone_number(user)
    if not phone:
        return Response({'ok': False, 'detail': 'Phone number not found for this account'}, status=400)
    try:
        challenge = otp.send_otp(phone)
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)
    return Response({'ok': True, **challenge})


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([OtpRateThrottle])
def otp_verify_view(request):
    s = OtpVerifySerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        phone = otp.verify_otp(s.validated_data['phoneNumber'], s.validated_data['code'])
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)
    user = get_user_for_request(request)
    return Response({
        'ok': True,
        'verified': True,
        'phoneNumber': phone,
        'user': users.format_user(user) if user else None,
    })


# ---------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([LoginRateThrottle])
def password_reset_view(request):
    s = PasswordResetSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    users.request_password_reset(s.validated_data['email'])
    # same answer for known and unknown addresses
    return Response({'ok': True})


@api_view(['POST'])
@permission_classes([AllowAny])
def password_reset_confirm_view(request):
    s = PasswordResetConfirmSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    try:
        user = users.confirm_password_reset(vd['uid'], vd['token'], vd['newPassword'])
    except ValueError as e:
        return Response({'ok': False, 'detail': str(e)}, status=400)
    try:
        log_action(user=user, action='password_reset', object_type='user', object_id=user.id)
    except Exception as e:
        logger.warning('audit_failed', action='password_reset', error=str(e))
    return Response({'ok': True})


@api_view(['GET'])
@permission_classes([AllowAny])
def check_email_view(request):
    email = (request.query_params.get('email') or '').strip()
    if not email:
        return Response({'ok': False, 'detail': 'missing email'}, status=400)
    return Response({'ok': True, 'exists': users.check_user_exists(email)})


# ---------------------------------------------------------------------
# JWT: refresh & logout
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from refresh token."""
    view = TokenRefreshView.as_view()
    resp = view(request._request)
    if isinstance(resp, Response):
        data = dict(resp.data)
        if 'access' in data and 'jwt_access' not in data:
            data['jwt_access'] = data.pop('access')
        return Response(data, status=resp.status_code)
    return resp


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout_view(request):
    """Revoke the API token and blacklist refresh tokens (all or a given one)."""
    count = users.sign_out(request.user, request.data.get('refresh'))
    return Response({'ok': True, 'blacklisted': count})
