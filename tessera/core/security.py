"""Password hashing and JWT access-token creation/verification."""

import secrets
import uuid
from dataclasses import dataclass
from functools import lru_cache
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import bcrypt
import jwt

if TYPE_CHECKING:
    from tessera.core.config import Settings

# bcrypt only looks at the first 72 bytes of input.
BCRYPT_MAX_BYTES = 72

# 32 bytes = 256 bits of entropy for opaque tokens.
OPAQUE_TOKEN_BYTES = 32


def generate_opaque_token() -> str:
    """Random 256-bit token, base64 URL-safe alphabet without padding (cookie and URL safe)."""
    return secrets.token_urlsafe(OPAQUE_TOKEN_BYTES)


@lru_cache(maxsize=4)
def _dummy_hash(rounds: int) -> str:
    """Hash of a throwaway password at the given cost, computed once per process."""
    pw_bytes = secrets.token_urlsafe(16).encode("ascii")
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


class PasswordHasher:
    """bcrypt hash/verify. The salt is random per call and embedded in the hash."""

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    def hash(self, plain_password: str) -> str:
        """Hash a plain-text password for storage. Do not store plain passwords."""
        pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
        return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, hashed: str, plain_password: str) -> bool:
        """Verify a plain password against a stored hash; a malformed hash never matches."""
        pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
        try:
            return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
        except (ValueError, TypeError, AttributeError):
            return False

    def verify_dummy(self, plain_password: str) -> bool:
        """Spend the same bcrypt work as verify() when there is no stored hash. Always False."""
        self.verify(_dummy_hash(self.rounds), plain_password)
        return False


@dataclass(frozen=True)
class AccessToken:
    token: str
    expires_at: datetime


class TokenSigner:
    """
    Issues and verifies HMAC-signed JWT access tokens.

    Holds only immutable configuration, so one instance can be shared across threads.
    """

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        issuer: str,
        audience: str,
        expire_minutes: int = 60,
    ) -> None:
        self._secret = secret
        self.algorithm = algorithm
        self.issuer = issuer
        self.audience = audience
        self.lifetime = timedelta(minutes=expire_minutes)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "TokenSigner":
        return cls(
            settings.JWT_SECRET.get_secret_value(),
            algorithm=settings.JWT_ALGORITHM,
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
            expire_minutes=settings.JWT_EXPIRE_MINUTES,
        )

    def issue(
        self,
        user_id: uuid.UUID | str,
        email: str,
        role: str,
        now: datetime | None = None,
    ) -> AccessToken:
        """Create an access token with sub, email, role, a unique jti, iat/exp, iss and aud."""
        now = now or datetime.now(UTC)
        expires_at = now + self.lifetime
        payload: dict[str, Any] = {
            "sub": str(user_id),
            "email": email,
            "role": role,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": expires_at,
            "iss": self.issuer,
            "aud": self.audience,
        }
        token = jwt.encode(payload, self._secret, algorithm=self.algorithm)
        return AccessToken(token=token, expires_at=expires_at)

    def decode(self, token: str) -> dict[str, Any]:
        """
        Decode and validate an access token; return its claims.
        Raises jwt.PyJWTError on bad signature, expiry, issuer or audience.
        """
        return jwt.decode(
            token,
            self._secret,
            algorithms=[self.algorithm],
            issuer=self.issuer,
            audience=self.audience,
            options={"require": ["sub", "exp", "iat", "jti"]},
        )
