"""FastAPI dependencies for request validation and common operations.

This module provides reusable FastAPI dependencies for:
- Webhook signature validation
- Admin authorization
- Access to the services wired in the application lifespan
"""

from typing import Annotated, Any

from fastapi import Depends, Header, HTTPException, Request, status

from attendance_nft.core.config import Settings
from attendance_nft.services.admin_auth import (
    AuthenticationError,
    PermissionDeniedError,
    verify_admin_token,
)
from attendance_nft.services.checkin.orchestrator import CheckInOrchestrator
from attendance_nft.services.ledger import MintLedger
from attendance_nft.services.luma.signature import validate_luma_signature
from attendance_nft.uow import UnitOfWorkFactory


def get_settings(request: Request) -> Settings:
    """Get the settings instance the application was created with."""
    return request.app.state.settings


def get_uow_factory(request: Request) -> UnitOfWorkFactory:
    """Get UnitOfWork factory from app state.

    Example:
        >>> @router.get("/events")
        >>> async def endpoint(uow_factory=Depends(get_uow_factory)):
        ...     async with await uow_factory() as uow:
        ...         await uow.events.list_all()
    """
    return request.app.state.uow_factory


def get_orchestrator(request: Request) -> CheckInOrchestrator:
    return request.app.state.orchestrator


def get_ledger(request: Request) -> MintLedger:
    return request.app.state.ledger


async def validate_webhook_signature(
    request: Request,
    x_luma_signature: Annotated[str | None, Header()] = None,
    settings: Settings = Depends(get_settings),
) -> bytes:
    """Validate the Luma webhook signature before processing the request.

    Verification is enforced only when LUMA_WEBHOOK_SECRET is configured.

    Returns:
        Raw request body bytes (for further processing by the endpoint)

    Raises:
        HTTPException: 401 Unauthorized if signature is missing or invalid
    """
    raw_body = await request.body()

    if not settings.luma_webhook_secret:
        return raw_body

    if not x_luma_signature:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-Luma-Signature header"
        )

    if not validate_luma_signature(raw_body, x_luma_signature, settings.luma_webhook_secret):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook signature"
        )

    return raw_body


async def require_admin(
    authorization: Annotated[str | None, Header()] = None,
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Require an admin bearer token.

    Returns:
        Decoded token claims

    Raises:
        HTTPException: 401 when the token is missing or invalid, 403 for non-admin roles
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required"
        )

    token = authorization.split(" ", 1)[1].strip()
    try:
        return verify_admin_token(token, settings.jwt_secret, settings.jwt_algorithm)
    except AuthenticationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token"
        )
    except PermissionDeniedError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
