"""
Token authentication for the mobile client.

The mobile app sends ``Authorization: Token <key>`` on every request.
Keeping the class in its own module gives settings a stable import path
and avoids circular imports when Django REST framework loads the
authentication classes during start-up.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    """Token authentication using the ``Token`` keyword."""

    keyword = 'Token'
