"""Dependency providers used by FastAPI endpoints.

These helpers expose the verification store, the shared rate limiter and the
composed `VerificationService` through FastAPI's dependency injection system
so route handlers remain thin.
"""

from typing import AsyncGenerator

from fastapi import Depends, Request, Response

from email_verifier.core.errors import ErrorKind, ServiceError
from email_verifier.services.container import ServiceContainer
from email_verifier.services.rate_limit import RateLimiter
from email_verifier.services.store import VerificationStore
from email_verifier.services.verification import VerificationService

RATE_LIMIT_MESSAGE = "Too many verification requests. Please try again later."


def get_container(request: Request) -> ServiceContainer:
    """Return the container attached to the app by `create_application`."""
    return request.app.state.container


def get_rate_limiter(container: ServiceContainer = Depends(get_container)) -> RateLimiter:
    return container.rate_limiter


async def get_verification_store(
    container: ServiceContainer = Depends(get_container),
) -> AsyncGenerator[VerificationStore, None]:
    """Yield the configured store; database stores hold one session per request."""

    async with container.open_store() as store:
        yield store


async def get_verification_service(
    container: ServiceContainer = Depends(get_container),
    store: VerificationStore = Depends(get_verification_store),
) -> VerificationService:
    return container.build_service(store)


async def _extract_email(request: Request) -> str | None:
    try:
        body = await request.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    email = body.get("email")
    return email if isinstance(email, str) and email else None


async def enforce_rate_limit(
    request: Request,
    response: Response,
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> None:
    """Throttle issuance per email; requests without an email pass through.

    Runs before body validation, so malformed-but-present addresses still
    consume budget.
    """

    email = await _extract_email(request)
    if email is None:
        return

    decision = limiter.admit(email)
    if not decision.allowed:
        raise ServiceError(ErrorKind.RATE_LIMIT, RATE_LIMIT_MESSAGE, {"retryAfter": decision.retry_after})
    response.headers.update(decision.headers())
