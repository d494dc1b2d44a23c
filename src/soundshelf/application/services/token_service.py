"""Token Service - issues and verifies signed bearer tokens.

Hey future me - tokens are STATELESS (PyJWT, HS256 by default). Nothing is stored server-side:
- issue() signs {sub, iat, exp}
- verify() checks signature + expiry and returns the subject (user id)
- there is no revocation list, so logout is client-side and refresh just issues a NEW token
  while the old one stays valid until its own exp

verify() knows exactly two failure kinds: TokenExpiredError and TokenMalformedError. Everything
PyJWT can raise (bad signature, garbage input, missing claim, wrong algorithm) is collapsed into
"malformed" so the auth chain has a closed set to branch on.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import jwt

from soundshelf.config import AuthSettings
from soundshelf.domain.exceptions import (
    TokenExpiredError,
    TokenMalformedError,
    ValidationException,
)
from soundshelf.domain.value_objects import UserId

logger = logging.getLogger(__name__)


class TokenService:
    """Sign and verify session tokens."""

    def __init__(
        self,
        secret: str,
        lifetime: timedelta = timedelta(days=7),
        algorithm: str = "HS256",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._secret = secret
        self._lifetime = lifetime
        self._algorithm = algorithm
        self._clock = clock or (lambda: datetime.now(UTC))

    @classmethod
    def from_settings(cls, settings: AuthSettings) -> "TokenService":
        return cls(settings.secret, settings.expire, settings.algorithm)

    @property
    def lifetime(self) -> timedelta:
        return self._lifetime

    def issue(self, subject_id: UserId | str) -> str:
        """Sign a token for ``subject_id`` that expires after the configured lifetime."""
        now = self._clock()
        payload = {
            "sub": str(subject_id),
            "iat": int(now.timestamp()),
            "exp": int((now + self._lifetime).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> UserId:
        """Return the subject of a valid token.

        Raises:
            TokenExpiredError: Signature is valid but ``exp`` lies in the past
            TokenMalformedError: Anything else - bad signature, structure or subject
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "sub"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError() from e
        except jwt.InvalidTokenError as e:
            logger.debug(f"Rejected token: {e}")
            raise TokenMalformedError() from e

        try:
            return UserId.from_string(payload["sub"])
        except ValidationException as e:
            raise TokenMalformedError() from e
