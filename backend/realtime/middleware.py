"""
Socket authentication.

Mobile clients pass their access token as ``?token=<jwt>``; browsers fall
back to the session user resolved by AuthMiddlewareStack underneath.
"""

import logging
from typing import Optional
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken

logger = logging.getLogger(__name__)


def _query_token(scope) -> Optional[str]:
    params = parse_qs(scope.get("query_string", b"").decode())
    tokens = params.get("token")
    return tokens[0] if tokens else None


@database_sync_to_async
def _active_user(user_id):
    User = get_user_model()
    return User.objects.filter(id=user_id, is_active=True).first() or AnonymousUser()


class JWTAuthMiddleware(BaseMiddleware):
    """Put the token's user (or AnonymousUser for a bad token) into scope["user"]."""

    async def __call__(self, scope, receive, send):
        token = _query_token(scope)
        if token is not None:
            scope = dict(scope, user=await self._user_for(token))
        elif "user" not in scope:
            scope = dict(scope, user=AnonymousUser())
        return await super().__call__(scope, receive, send)

    async def _user_for(self, token: str):
        try:
            user_id = AccessToken(token)["user_id"]
        except (TokenError, KeyError) as e:
            logger.debug("Rejected socket token: %s", e)
            return AnonymousUser()
        return await _active_user(user_id)
