import os

os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("NOTIFIER", "console")
os.environ.setdefault("CLEANUP_INTERVAL_MS", "0")

import pytest

from email_verifier.core.errors import ErrorKind, ServiceError
from email_verifier.services.store import MemoryVerificationStore
from email_verifier.services.verification import VerificationService

EXPIRY_MS = 600_000
START_MS = 1_700_000_000_000


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class RecordingNotifier:
    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.fail = False

    async def send_verification_code(self, email: str, code: str) -> None:
        if self.fail:
            raise ServiceError(ErrorKind.DELIVERY, "Failed to send verification email")
        self.sent.append((email, code))


class SequentialCodes:
    """Deterministic code factory producing CODE01, CODE02, ..."""

    def __init__(self):
        self.issued = 0

    def __call__(self) -> str:
        self.issued += 1
        return f"CODE{self.issued:02d}"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def codes() -> SequentialCodes:
    return SequentialCodes()


@pytest.fixture
def store() -> MemoryVerificationStore:
    return MemoryVerificationStore()


@pytest.fixture
def service(store, notifier, codes, clock) -> VerificationService:
    return VerificationService(
        store=store,
        notifier=notifier,
        expiry_ms=EXPIRY_MS,
        code_factory=codes,
        clock=clock,
    )
