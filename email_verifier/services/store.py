"""Verification record model and the storage contract the service depends on."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, replace
from typing import Protocol


@dataclass(frozen=True)
class VerificationRecord:
    """A single issued code bound to an email; timestamps are epoch milliseconds."""

    email: str
    code: str
    created_at: int
    expires_at: int
    is_verified: bool = False
    id: int | None = None

    def is_expired(self, now: int) -> bool:
        return self.expires_at <= now

    def mark_verified(self) -> "VerificationRecord":
        return replace(self, is_verified=True)


class VerificationStore(Protocol):
    """Persistence operations consumed by `VerificationService`.

    Every write stands alone; callers must not assume that a sequence of calls
    is applied atomically.
    """

    async def find_by_email(self, email: str) -> list[VerificationRecord]:
        ...

    async def find_matching(self, email: str, code: str) -> list[VerificationRecord]:
        ...

    async def insert(self, record: VerificationRecord) -> VerificationRecord:
        """Persist `record` and return it with its store-assigned `id`."""

    async def delete_all(self, email: str) -> int:
        ...

    async def delete(self, record: VerificationRecord) -> None:
        ...

    async def update(self, record: VerificationRecord) -> None:
        """Write back `is_verified`; every other field is immutable."""

    async def find_expired_before(self, timestamp: int) -> list[VerificationRecord]:
        ...


class MemoryVerificationStore:
    """Process-local store used for development and tests."""

    def __init__(self) -> None:
        self._records: dict[int, VerificationRecord] = {}
        self._sequence = itertools.count(1)

    def __len__(self) -> int:
        return len(self._records)

    async def find_by_email(self, email: str) -> list[VerificationRecord]:
        return [r for r in self._records.values() if r.email == email]

    async def find_matching(self, email: str, code: str) -> list[VerificationRecord]:
        return [r for r in self._records.values() if r.email == email and r.code == code]

    async def insert(self, record: VerificationRecord) -> VerificationRecord:
        stored = replace(record, id=next(self._sequence))
        self._records[stored.id] = stored
        return stored

    async def delete_all(self, email: str) -> int:
        doomed = [key for key, r in self._records.items() if r.email == email]
        for key in doomed:
            del self._records[key]
        return len(doomed)

    async def delete(self, record: VerificationRecord) -> None:
        self._records.pop(record.id, None)

    async def update(self, record: VerificationRecord) -> None:
        current = self._records.get(record.id)
        if current is not None:
            self._records[record.id] = replace(current, is_verified=record.is_verified)

    async def find_expired_before(self, timestamp: int) -> list[VerificationRecord]:
        return [r for r in self._records.values() if r.expires_at < timestamp]
