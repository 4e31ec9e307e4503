"""Identity verification against tokens issued by the auth service."""

from __future__ import annotations

import logging

from jose import JWTError, jwt

from config.settings import get_settings
from db.repository import UserRepository
from signaling.errors import AuthError
from signaling.gateways import Identity

LOGGER = logging.getLogger(__name__)


class JWTIdentityGateway:
    """Resolves HS256 access tokens (claim `userId`) to registered users."""

    def __init__(self, users: UserRepository | None = None) -> None:
        settings = get_settings()
        self._secret = settings.jwt_secret
        self._algorithm = settings.jwt_algorithm
        self._users = users or UserRepository()

    async def verify_credential(self, token: str) -> Identity:
        try:
            claims = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except JWTError as exc:
            LOGGER.info("Token rejected: %s", exc)
            raise AuthError("Authentication failed") from exc

        try:
            user_id = int(claims["userId"])
        except (KeyError, TypeError, ValueError) as exc:
            raise AuthError("Authentication failed") from exc

        user = await self._users.get_by_id(user_id)
        if user is None:
            raise AuthError("User not found")
        return Identity(uid=user.uid, display_name=user.display_name)

    async def lookup(self, uid: str) -> Identity | None:
        user = await self._users.get_by_uid(uid)
        if user is None:
            return None
        return Identity(uid=user.uid, display_name=user.display_name, last_seen=user.last_seen)

    async def touch(self, uid: str) -> None:
        await self._users.touch_last_seen(uid)
