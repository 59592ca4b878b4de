"""
Per-endpoint rate limits.  Rates live in ``REST_FRAMEWORK['DEFAULT_THROTTLE_RATES']``.
"""
from rest_framework.throttling import AnonRateThrottle, UserRateThrottle


class LoginRateThrottle(AnonRateThrottle):
    scope = 'login'


class OtpRateThrottle(AnonRateThrottle):
    scope = 'otp'


class ScreeningUploadThrottle(UserRateThrottle):
    scope = 'screening_upload'
