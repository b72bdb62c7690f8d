from datetime import datetime, timedelta, timezone
from typing import Iterable

import jwt

from config import JWT_ALGORITHM
from exceptions import Exceptions
from users import Actor, ANONYMOUS_ACTOR_ID


class SecurityManager:
    """Reads the identity the host platform puts into a bearer token.

    Tokens carry ``sub`` (actor id), ``name`` and ``roles``. Issuing them is the
    host's business; :meth:`create_access_token` exists for tooling and tests.
    """

    def __init__(self, secret_key: str):
        self.secret_key = secret_key
        self.algorithm = JWT_ALGORITHM
        self.access_token_expire_minutes = 30

    def create_access_token(self, actor_id: int, name: str, roles: Iterable[str] = ()) -> str:
        """Create JWT access token"""
        expire = datetime.now(timezone.utc) + timedelta(minutes=self.access_token_expire_minutes)
        to_encode = {"sub": str(actor_id), "name": name, "roles": sorted(roles), "exp": expire}
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> dict:
        """Verify and decode JWT token"""
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.InvalidTokenError:
            raise Exceptions.UNAUTHORIZED

    def actor_from_token(self, token: str, client_ip: str) -> Actor:
        payload = self.verify_token(token)
        try:
            actor_id = int(payload.get("sub", ANONYMOUS_ACTOR_ID))
        except (TypeError, ValueError):
            raise Exceptions.UNAUTHORIZED
        if actor_id == ANONYMOUS_ACTOR_ID:
            raise Exceptions.UNAUTHORIZED
        roles = payload.get("roles") or []
        return Actor(actor_id, str(payload.get("name", actor_id)), client_ip, frozenset(roles))
