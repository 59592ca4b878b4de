"""
Token authentication for WebSocket connections.

Mobile clients cannot set headers on the WebSocket handshake, so the DRF
token is passed as ``?token=<key>`` on the connection URL.  The resolved
user (or ``AnonymousUser``) is placed on ``scope['user']``.
"""
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser
from rest_framework.authtoken.models import Token


@database_sync_to_async
def get_user_for_token(key):
    if not key:
        return AnonymousUser()
    token = Token.objects.select_related('user').filter(key=key).first()
    if not token or not token.user.is_active:
        return AnonymousUser()
    return token.user


class TokenAuthMiddleware(BaseMiddleware):
    async def __call__(self, scope, receive, send):
        query = parse_qs(scope.get('query_string', b'').decode())
        key = (query.get('token') or [''])[0]
        scope = dict(scope)
        scope['user'] = await get_user_for_token(key)
        return await super().__call__(scope, receive, send)
