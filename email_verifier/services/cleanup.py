"""Periodic purge of expired verification records."""

import asyncio
import logging
from typing import AsyncContextManager, Callable

from email_verifier.core.errors import ServiceError
from email_verifier.services.verification import VerificationService

logger = logging.getLogger(__name__)

ServiceProvider = Callable[[], AsyncContextManager[VerificationService]]


async def run_cleanup_once(provide_service: ServiceProvider) -> int:
    async with provide_service() as service:
        return await service.sweep()


async def run_cleanup_loop(provide_service: ServiceProvider, interval_ms: int) -> None:
    """Sweep every `interval_ms` until cancelled.

    A failed pass is logged and the loop keeps going; the next pass retries
    naturally.
    """

    interval = interval_ms / 1000
    logger.info("Expired-code cleanup scheduled every %.0f seconds", interval)
    while True:
        await asyncio.sleep(interval)
        try:
            await run_cleanup_once(provide_service)
        except ServiceError as exc:
            logger.error("Cleanup pass failed: %s", exc.message)
