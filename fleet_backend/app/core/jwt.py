"""
JWT session tokens.

Tokens carry `sub` (principal id), `iat`, `iat_ms` (issue time in epoch
milliseconds) and `exp`, signed with the server secret. There is no
revocation list: a token dies when it expires or when the principal's
credential changes after it was issued (Stale).
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from fleet_backend.app.core.clock import Clock, as_utc, system_clock
from fleet_backend.app.core.config import settings


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
MILLISECOND = timedelta(milliseconds=1)


def epoch_millis(moment: datetime) -> int:
    return (as_utc(moment) - EPOCH) // MILLISECOND


class TokenErrorKind:
    MALFORMED = "Malformed"
    EXPIRED = "Expired"
    BAD_SIGNATURE = "BadSignature"
    STALE = "Stale"


class TokenError(Exception):
    """Token rejected. `kind` is one of TokenErrorKind."""

    def __init__(self, kind: str, message: str = None):
        self.kind = kind
        super().__init__(message or f"Token rejected: {kind}")


@dataclass(frozen=True)
class TokenClaims:
    principal_id: int
    issued_at: datetime
    expires_at: datetime


class TokenService:
    """Issues and verifies session tokens against an injected clock."""

    def __init__(
        self,
        secret_key: str = None,
        algorithm: str = None,
        validity: timedelta = None,
        clock: Clock = None,
    ):
        self.secret_key = secret_key or settings.secret_key
        self.algorithm = algorithm or settings.algorithm
        self.validity = validity or timedelta(days=settings.access_token_expire_days)
        self.clock = clock or system_clock

    def issue(self, principal_id: int) -> str:
        """Create a signed token for the principal, valid from now."""
        now = self.clock.now()
        issued_at = int(now.timestamp())
        expires_at = issued_at + int(self.validity.total_seconds())
        payload = {
            "sub": str(principal_id),
            "iat": issued_at,
            "iat_ms": epoch_millis(now),
            "exp": expires_at,
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """
        Verify signature and expiry.

        Raises:
            TokenError: Malformed, BadSignature or Expired
        """
        try:
            unverified = jwt.get_unverified_claims(token)
        except JWTError:
            raise TokenError(TokenErrorKind.MALFORMED, "Token is malformed")

        if not isinstance(unverified, dict) or "sub" not in unverified or "iat" not in unverified:
            raise TokenError(TokenErrorKind.MALFORMED, "Token is missing required claims")

        try:
            # Expiry is checked below against the injected clock
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError:
            raise TokenError(TokenErrorKind.BAD_SIGNATURE, "Token signature is invalid")

        try:
            principal_id = int(payload["sub"])
            if "iat_ms" in payload:
                issued_at = EPOCH + int(payload["iat_ms"]) * MILLISECOND
            else:
                issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (KeyError, TypeError, ValueError):
            raise TokenError(TokenErrorKind.MALFORMED, "Token claims are invalid")

        if self.clock.now() >= expires_at:
            raise TokenError(TokenErrorKind.EXPIRED, "Token has expired")

        return TokenClaims(principal_id=principal_id, issued_at=issued_at, expires_at=expires_at)


def ensure_fresh(claims: TokenClaims, credential_changed_at: Optional[datetime]) -> TokenClaims:
    """
    Reject tokens issued before the principal's last credential change.

    Both sides have millisecond precision: credential_changed_at is stored
    truncated to the millisecond and issued_at comes from `iat_ms`.
    """
    changed_at = as_utc(credential_changed_at)
    if changed_at is not None and claims.issued_at < changed_at:
        raise TokenError(TokenErrorKind.STALE, "Credentials changed after token was issued")
    return claims
