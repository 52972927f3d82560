import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from app.errors import InvalidTokenError, TokenExpiredError


class TokenCodec:
    """Signs and verifies the JWTs carried in the session cookie."""

    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        self._secret = secret
        self._algorithm = algorithm

    def sign(self, claims: Dict[str, Any], ttl: timedelta, now: Optional[datetime] = None) -> str:
        """
        Issue a token valid for ttl.

        A random jti makes every token unique, so two logins within the
        same second still get distinct session rows.
        """
        issued_at = now or datetime.now(timezone.utc)
        if issued_at.tzinfo is None:
            issued_at = issued_at.replace(tzinfo=timezone.utc)
        payload = dict(claims)
        payload.update({
            "iat": issued_at,
            "exp": issued_at + ttl,
            "jti": secrets.token_hex(16),
        })
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> Dict[str, Any]:
        """
        Check signature, structure and exp. The signature is checked first,
        so TokenExpiredError is only raised for a genuine token.
        """
        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpiredError() from exc
        except jwt.PyJWTError as exc:
            raise InvalidTokenError() from exc
