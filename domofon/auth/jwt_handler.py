"""
JWT token handler.

Signs and parses the access/refresh token pair. Access tokens are short
lived and carry an audience; refresh tokens are long lived and signed with
a separate secret. Both share a ``jti`` so a refresh token can be tied back
to the access token it was issued with.
"""

import uuid
import logging
from typing import Callable, Literal, Optional, Tuple
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta, timezone

from jose import jwt, JWTError

from ..errors import InvalidTokenError

logger = logging.getLogger(__name__)

# Token configuration
DEFAULT_ACCESS_SECRET = "domofon-access-secret-change-in-production"
DEFAULT_REFRESH_SECRET = "domofon-refresh-secret-change-in-production"
ALGORITHM = "HS256"
DEFAULT_ISSUER = "domofon"
ACCESS_TOKEN_EXPIRE_SECONDS = 900  # 15 minutes
REFRESH_TOKEN_EXPIRE_SECONDS = 86400 * 7  # 7 days

TokenType = Literal["access", "refresh"]


@dataclass
class TokenClaims:
    """Decoded token claims."""
    user_id: int
    jti: str
    token_type: TokenType
    issued_at: datetime
    expires_at: datetime

    def to_dict(self) -> dict:
        data = asdict(self)
        data["issued_at"] = self.issued_at.isoformat()
        data["expires_at"] = self.expires_at.isoformat()
        return data

    @classmethod
    def from_payload(cls, data: dict) -> "TokenClaims":
        sub = data.get("sub")
        if not isinstance(sub, str) or not sub.isdigit():
            raise InvalidTokenError("Token subject is not a user id")
        if not data.get("jti"):
            raise InvalidTokenError("Token has no jti")
        return cls(
            user_id=int(sub),
            jti=data["jti"],
            token_type=data.get("type", "access"),
            issued_at=datetime.fromtimestamp(data["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(data["exp"], tz=timezone.utc),
        )


class JWTHandler:
    """
    Handles JWT token generation and validation.

    Supports:
    - Access tokens (short-lived, audience-bound)
    - Refresh tokens (long-lived, separate secret)
    """

    def __init__(
        self,
        access_secret: Optional[str] = None,
        refresh_secret: Optional[str] = None,
        issuer: str = DEFAULT_ISSUER,
        audience: str = DEFAULT_ISSUER,
        access_ttl: timedelta = timedelta(seconds=ACCESS_TOKEN_EXPIRE_SECONDS),
        refresh_ttl: timedelta = timedelta(seconds=REFRESH_TOKEN_EXPIRE_SECONDS),
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize JWT handler.

        Args:
            access_secret: Key for access tokens (falls back to a dev default)
            refresh_secret: Key for refresh tokens (falls back to a dev default)
            issuer: ``iss`` claim written and required on parse
            audience: ``aud`` claim for access tokens
            access_ttl: Access token lifetime
            refresh_ttl: Refresh token lifetime
            clock: Source of "now" for ``iat``/``exp``
        """
        self.access_secret = access_secret or DEFAULT_ACCESS_SECRET
        self.refresh_secret = refresh_secret or DEFAULT_REFRESH_SECRET
        self.issuer = issuer
        self.audience = audience
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        if self.access_secret == DEFAULT_ACCESS_SECRET or self.refresh_secret == DEFAULT_REFRESH_SECRET:
            logger.warning(
                "Using default JWT secret key. "
                "Set JWT_TOKEN and REFRESH_JWT_TOKEN environment variables in production!"
            )

    def sign_access(self, user_id: int) -> Tuple[str, str]:
        """
        Create an access token with a fresh jti.

        Returns:
            Tuple of (token, jti)
        """
        jti = str(uuid.uuid4())
        now = self._clock()
        payload = {
            "sub": str(user_id),
            "iss": self.issuer,
            "aud": self.audience,
            "iat": int(now.timestamp()),
            "exp": int((now + self.access_ttl).timestamp()),
            "jti": jti,
            "type": "access",
        }
        token = jwt.encode(payload, self.access_secret, algorithm=ALGORITHM)
        logger.debug(f"Created access token for user {user_id}, jti={jti}")
        return token, jti

    def sign_refresh(self, user_id: int, jti: str) -> str:
        """Create a refresh token bound to the access token's jti."""
        now = self._clock()
        payload = {
            "sub": str(user_id),
            "iss": self.issuer,
            "iat": int(now.timestamp()),
            "exp": int((now + self.refresh_ttl).timestamp()),
            "jti": jti,
            "type": "refresh",
        }
        token = jwt.encode(payload, self.refresh_secret, algorithm=ALGORITHM)
        logger.debug(f"Created refresh token for user {user_id}, jti={jti}")
        return token

    def parse_access(self, token: str) -> TokenClaims:
        """
        Verify and decode an access token.

        Raises:
            InvalidTokenError: bad signature, expired, wrong issuer/audience or type
        """
        return self._parse(token, self.access_secret, "access", audience=self.audience)

    def parse_refresh(self, token: str) -> TokenClaims:
        """
        Verify and decode a refresh token.

        Raises:
            InvalidTokenError: bad signature, expired, wrong issuer or type
        """
        return self._parse(token, self.refresh_secret, "refresh")

    def _parse(
        self,
        token: str,
        secret: str,
        expected_type: TokenType,
        audience: Optional[str] = None,
    ) -> TokenClaims:
        if not token:
            raise InvalidTokenError("Empty token")

        # Expiry is checked against self._clock below, not the wall clock
        try:
            data = jwt.decode(
                token,
                secret,
                algorithms=[ALGORITHM],
                audience=audience,
                issuer=self.issuer,
                options={"verify_exp": False, "require_exp": True},
            )
        except JWTError as e:
            logger.debug(f"Token verification failed: {e}")
            raise InvalidTokenError(str(e)) from e

        exp = data.get("exp")
        if not isinstance(exp, int) or self._clock().timestamp() >= exp:
            logger.debug(f"Token expired (exp={exp})")
            raise InvalidTokenError("Signature has expired")

        if data.get("type") != expected_type:
            logger.warning(f"Expected {expected_type} token, got {data.get('type')!r}")
            raise InvalidTokenError("Wrong token type")

        return TokenClaims.from_payload(data)

    def refresh_expiry(self) -> datetime:
        """Expiry instant a refresh token signed right now would get."""
        return self._clock() + self.refresh_ttl
