"""
Token verification for the hosted auth provider.

The provider issues HS256 JWTs whose `sub` claim is the account id. The
ledger never sees passwords; it only verifies the signature and resolves
the identity.
"""

from datetime import UTC, datetime, timedelta
from uuid import UUID

import jwt
from structlog import get_logger

from videarn.models.domain import AccountIdentity

logger = get_logger(__name__)


class TokenVerifier:
    """Verifies bearer tokens signed with the shared auth provider secret."""

    def __init__(self, jwt_secret: str, audience: str | None = None) -> None:
        self.jwt_secret = jwt_secret
        self.audience = audience

    def issue_token(
        self,
        account_id: UUID,
        email: str | None = None,
        expires_in: timedelta = timedelta(hours=1),
    ) -> str:
        """Create a token the way the auth provider does (local development and tests)."""
        now = datetime.now(UTC)
        payload: dict[str, str | datetime] = {
            "sub": str(account_id),
            "iat": now,
            "exp": now + expires_in,
        }
        if email:
            payload["email"] = email
        if self.audience:
            payload["aud"] = self.audience
        return jwt.encode(payload, self.jwt_secret, algorithm="HS256")

    def verify_token(self, token: str) -> AccountIdentity | None:
        """Verify JWT token and return the identity it names."""
        if not self.jwt_secret:
            logger.error("auth_jwt_secret_missing")
            return None

        try:
            payload = jwt.decode(
                token,
                self.jwt_secret,
                algorithms=["HS256"],
                audience=self.audience,
                options={"require": ["sub", "exp"], "verify_aud": self.audience is not None},
            )
        except jwt.ExpiredSignatureError:
            logger.warning("jwt_token_expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning("jwt_token_invalid", error=str(e))
            return None

        try:
            account_id = UUID(str(payload["sub"]))
        except ValueError as e:
            logger.warning("jwt_token_invalid_subject", error=str(e))
            return None

        email = payload.get("email")
        return AccountIdentity(account_id=account_id, email=str(email) if email else None)
