import asyncio
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from discount_scheduler.config import AppConfig, Settings, get_config, get_settings
from discount_scheduler.core.database import get_db
from discount_scheduler.core.errors import AuthError
from discount_scheduler.core.logging import get_logger
from discount_scheduler.core.security import BaseCredentialChecker
from discount_scheduler.services.price_store import BasePriceStore

logger = get_logger(__name__)

# Type aliases for dependency injection
DBSession = Annotated[AsyncSession, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_settings)]
Config = Annotated[AppConfig, Depends(get_config)]


def get_price_store(request: Request) -> BasePriceStore:
    """Price store built by the application lifespan."""
    price_store: BasePriceStore = request.app.state.price_store
    return price_store


def get_credential_checker(request: Request) -> BaseCredentialChecker:
    """Credential checker built by the application lifespan."""
    checker: BaseCredentialChecker = request.app.state.credential_checker
    return checker


def get_tick_lock(request: Request) -> asyncio.Lock:
    """Per-process lock that keeps ticks from overlapping."""
    lock: asyncio.Lock = request.app.state.tick_lock
    return lock


async def require_trigger_credentials(
    request: Request,
    checker: BaseCredentialChecker = Depends(get_credential_checker),
) -> None:
    """Reject trigger requests that fail the configured credential check."""
    if not checker.check(request):
        logger.bind(path=request.url.path, scheme=checker.scheme).warning("trigger_auth_rejected")
        raise AuthError()


PriceStore = Annotated[BasePriceStore, Depends(get_price_store)]
TickLock = Annotated[asyncio.Lock, Depends(get_tick_lock)]
TriggerAuth = Depends(require_trigger_credentials)
