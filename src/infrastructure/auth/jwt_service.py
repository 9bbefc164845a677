from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping
from uuid import UUID

from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTError

from src.application.errors import AuthError

ACCESS_TOKEN_TYPE = "access"


@dataclass(slots=True, frozen=True)
class VerifiedToken:
    subject: UUID
    claims: dict[str, Any] = field(default_factory=dict)


class JWTService:
    """Validates bearer tokens issued by the identity provider.

    Tokens are HMAC-signed with a secret shared with the provider. Minting is
    only used by operational tooling and the test suite.
    """

    def __init__(
        self,
        *,
        secret_key: str,
        algorithm: str,
        access_token_expires_minutes: int = 60,
        issuer: str | None = None,
        audience: str | None = None,
        leeway_seconds: int = 0,
    ) -> None:
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_token_ttl = timedelta(minutes=access_token_expires_minutes)
        self.issuer = issuer
        self.audience = audience
        self.leeway_seconds = leeway_seconds

    def create_access_token(
        self,
        *,
        subject: UUID,
        extra_claims: Mapping[str, Any] | None = None,
    ) -> str:
        issued_at = datetime.now(timezone.utc)
        claims: dict[str, Any] = dict(extra_claims or {})
        claims.update(
            sub=str(subject),
            iat=int(issued_at.timestamp()),
            exp=int((issued_at + self.access_token_ttl).timestamp()),
            typ=ACCESS_TOKEN_TYPE,
        )
        if self.issuer:
            claims["iss"] = self.issuer
        if self.audience:
            claims["aud"] = self.audience
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def decode(self, token: str) -> dict[str, Any]:
        options = {"leeway": self.leeway_seconds, "verify_aud": self.audience is not None}
        try:
            return jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                audience=self.audience,
                options=options,
            )
        except ExpiredSignatureError as exc:
            raise AuthError("Token expired") from exc
        except JWTError as exc:
            raise AuthError("Token validation failed") from exc

    def verify(self, token: str) -> VerifiedToken:
        """Decode `token` and resolve its subject to a user id."""
        claims = self.decode(token)
        token_type = claims.get("typ")
        if token_type is not None and token_type != ACCESS_TOKEN_TYPE:
            raise AuthError("Not an access token")
        subject = claims.get("sub")
        if not subject:
            raise AuthError("Token missing subject")
        try:
            user_id = UUID(str(subject))
        except ValueError as exc:
            raise AuthError("Token subject is not a valid UUID") from exc
        return VerifiedToken(subject=user_id, claims=claims)
