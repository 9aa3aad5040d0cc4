"""
FastAPI Dependencies - Authentication and authorization.

NO DICTIONARIES - All dependencies return typed objects.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from videarn.config import get_settings
from videarn.db.session import get_read_db
from videarn.exceptions import AccountNotFoundError
from videarn.models.api import AccountRole
from videarn.models.domain import AccountData, AccountIdentity
from videarn.services.accounts import AccountService
from videarn.services.auth import TokenVerifier

logger = get_logger(__name__)

# Bearer token scheme for JWT auth
bearer_scheme = HTTPBearer(auto_error=False)


def get_token_verifier() -> TokenVerifier:
    """Get token verifier configured with the auth provider secret."""
    settings = get_settings()
    return TokenVerifier(
        jwt_secret=settings.AUTH_JWT_SECRET,
        audience=settings.AUTH_JWT_AUDIENCE,
    )


async def get_token_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> AccountIdentity:
    """
    Resolve the caller's identity from `Authorization: Bearer {jwt}`.

    Raises:
        HTTPException(401): Missing, expired or invalid token
    """
    if credentials is None:
        logger.warning("auth_no_token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    identity = verifier.verify_token(credentials.credentials)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return identity


async def get_current_account(
    identity: AccountIdentity = Depends(get_token_identity),
    db: AsyncSession = Depends(get_read_db),
) -> AccountData:
    """
    Load the registered account for the caller.

    Raises:
        HTTPException(404): Token is valid but the account was never registered
        HTTPException(403): Account is banned
    """
    try:
        account = await AccountService(db).get_account(identity.account_id)
    except AccountNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Account not registered",
        ) from exc

    if account.is_banned:
        logger.warning("auth_account_banned", account_id=str(account.account_id))
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is banned",
        )

    return account


async def require_admin(
    account: AccountData = Depends(get_current_account),
) -> AccountData:
    """
    Require the admin role.

    Raises:
        HTTPException(403): If the account is not an admin
    """
    if account.role != AccountRole.ADMIN:
        logger.warning(
            "auth_insufficient_role",
            account_id=str(account.account_id),
            role=account.role.value,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )

    return account
