"""Verification lifecycle: issuing, checking, reporting and sweeping codes."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator

from sqlalchemy.exc import SQLAlchemyError

from email_verifier.core.clock import Clock, now_ms
from email_verifier.core.config import settings
from email_verifier.core.errors import ErrorKind, ServiceError
from email_verifier.services.codes import generate_code
from email_verifier.services.email import Notifier
from email_verifier.services.store import VerificationRecord, VerificationStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationStatus:
    is_verified: bool
    has_pending_code: bool
    expires_at: int | None


@contextmanager
def _translate_errors(fallback_message: str) -> Iterator[None]:
    """Convert failures raised inside a service operation into `ServiceError`."""
    try:
        yield
    except ServiceError:
        raise
    except SQLAlchemyError as exc:
        code = getattr(exc, "code", None) or exc.__class__.__name__
        logger.exception("Storage failure: %s", fallback_message)
        raise ServiceError(ErrorKind.PERSISTENCE, f"Database error: {code}") from exc
    except Exception as exc:
        logger.exception("Unexpected failure: %s", fallback_message)
        raise ServiceError(ErrorKind.UNKNOWN, fallback_message) from exc


def _newest(records: list[VerificationRecord]) -> VerificationRecord:
    """Latest `created_at` wins; equal timestamps fall back to insertion order."""
    return max(records, key=lambda r: (r.created_at, r.id or 0))


class VerificationService:
    """Sole owner of verification-record invariants.

    Dependencies:
    - a `VerificationStore` (SQLAlchemy repository or the memory store)
    - a `Notifier` that delivers codes
    - a millisecond clock, replaceable in tests
    """

    def __init__(
        self,
        store: VerificationStore,
        notifier: Notifier,
        expiry_ms: int = settings.VERIFICATION_CODE_EXPIRY,
        code_factory: Callable[[], str] = generate_code,
        clock: Clock = now_ms,
    ):
        if expiry_ms <= 0:
            raise ValueError("expiry_ms must be positive")
        self.store = store
        self.notifier = notifier
        self.expiry_ms = expiry_ms
        self.code_factory = code_factory
        self.clock = clock

    async def issue(self, email: str) -> str:
        """Replace any existing records for `email` with a fresh code and send it.

        If delivery fails the new record stays persisted and the caller gets a
        `ServiceError(DELIVERY)`; the next issuance for the email removes it.
        """

        with _translate_errors("Failed to generate verification code"):
            logger.info("Generating verification code for %s", email)
            removed = await self.store.delete_all(email)
            if removed:
                logger.debug("Deleted %d existing record(s) for %s", removed, email)

            now = self.clock()
            code = self.code_factory()
            await self.store.insert(
                VerificationRecord(email=email, code=code, created_at=now, expires_at=now + self.expiry_ms)
            )

            await self.notifier.send_verification_code(email, code)
            return code

    async def verify(self, email: str, code: str) -> bool:
        """Return True when `code` is the live code for `email`.

        A mismatch and an expired code both return False; an expired match is
        deleted as a side effect.
        """

        with _translate_errors("Failed to verify code"):
            matches = await self.store.find_matching(email, code)
            if not matches:
                logger.info("No matching verification code for %s", email)
                return False

            record = _newest(matches)
            if record.is_expired(self.clock()):
                logger.info("Verification code for %s has expired", email)
                for match in matches:
                    await self.store.delete(match)
                return False

            if not record.is_verified:
                await self.store.update(record.mark_verified())
            logger.info("Verification code accepted for %s", email)
            return True

    async def status(self, email: str) -> VerificationStatus:
        """Summarize the newest record for `email`; older siblings are ignored."""

        with _translate_errors("Failed to check verification status"):
            records = await self.store.find_by_email(email)
            if not records:
                return VerificationStatus(is_verified=False, has_pending_code=False, expires_at=None)

            latest = _newest(records)
            return VerificationStatus(
                is_verified=latest.is_verified,
                has_pending_code=latest.expires_at > self.clock(),
                expires_at=latest.expires_at,
            )

    async def sweep(self) -> int:
        """Delete every record that expired before now, across all emails."""

        with _translate_errors("Failed to clean up expired codes"):
            expired = await self.store.find_expired_before(self.clock())
            for record in expired:
                await self.store.delete(record)
            logger.info("Cleaned up %d expired verification codes", len(expired))
            return len(expired)
