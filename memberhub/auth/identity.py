"""Bearer token verification against the external identity provider"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from ..errors import Forbidden, Unauthorized

logger = logging.getLogger(__name__)

# Missing credentials are reported by get_identity, not by FastAPI
security = HTTPBearer(auto_error=False)


@dataclass
class Identity:
    """Verified caller"""
    subject: str
    claims: dict = field(default_factory=dict)
    is_admin: bool = False

    def can_act_for(self, uid: str) -> bool:
        return self.is_admin or self.subject == uid


class JWTIdentityProvider:
    """Verifies identity-provider tokens signed with a shared secret"""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        audience: Optional[str] = None,
        admin_uids: Iterable[str] = (),
        expire_minutes: int = 60 * 24,
    ):
        self.secret = secret
        self.algorithm = algorithm
        self.audience = audience
        self.admin_uids = set(admin_uids)
        self.expire_minutes = expire_minutes

    def verify(self, token: str) -> Identity:
        """Return the verified subject or raise Forbidden"""
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                options={"verify_aud": self.audience is not None},
            )
        except JWTError as e:
            logger.warning(f"Token verification failed: {e}")
            raise Forbidden("Invalid token")

        subject = payload.get("sub")
        if not subject:
            raise Forbidden("Token has no subject")

        return Identity(
            subject=subject,
            claims=payload,
            is_admin=self._is_admin(subject, payload),
        )

    def _is_admin(self, subject: str, payload: dict) -> bool:
        if subject in self.admin_uids:
            return True
        if payload.get("admin") is True:
            return True
        return "admin" in (payload.get("roles") or [])

    def create_access_token(
        self,
        subject: str,
        claims: Optional[dict] = None,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        """Issue a token the provider accepts (development and tests)"""
        to_encode = dict(claims or {})
        to_encode["sub"] = subject
        expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=self.expire_minutes))
        to_encode["exp"] = expire
        if self.audience and "aud" not in to_encode:
            to_encode["aud"] = self.audience
        return jwt.encode(to_encode, self.secret, algorithm=self.algorithm)


def get_identity_provider(request: Request) -> JWTIdentityProvider:
    return request.app.state.identity_provider


async def get_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    provider: JWTIdentityProvider = Depends(get_identity_provider),
) -> Identity:
    """Current caller; 401 without a bearer token, 403 with a bad one"""
    if credentials is None:
        raise Unauthorized()
    return provider.verify(credentials.credentials)


async def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    if not identity.is_admin:
        raise Forbidden("Administrator access required")
    return identity
