import pytest
from sqlalchemy.exc import SQLAlchemyError

from email_verifier.core.errors import ErrorKind, ServiceError
from email_verifier.services.store import MemoryVerificationStore, VerificationRecord
from email_verifier.services.verification import VerificationService, VerificationStatus

from conftest import EXPIRY_MS, START_MS


@pytest.mark.asyncio
async def test_issue_persists_record_and_sends_code(service, store, notifier):
    code = await service.issue("a@x.com")

    assert code == "CODE01"
    assert notifier.sent == [("a@x.com", "CODE01")]
    [record] = await store.find_by_email("a@x.com")
    assert record.code == "CODE01"
    assert record.created_at == START_MS
    assert record.expires_at == START_MS + EXPIRY_MS
    assert record.is_verified is False


@pytest.mark.asyncio
async def test_second_issue_supersedes_first(service, store):
    first = await service.issue("a@x.com")
    second = await service.issue("a@x.com")

    records = await store.find_by_email("a@x.com")
    assert [r.code for r in records] == [second]
    assert await service.verify("a@x.com", first) is False
    assert await service.verify("a@x.com", second) is True


@pytest.mark.asyncio
async def test_issue_removes_verified_records_too(service, store):
    code = await service.issue("a@x.com")
    await service.verify("a@x.com", code)

    await service.issue("a@x.com")

    status = await service.status("a@x.com")
    assert status.is_verified is False
    assert status.has_pending_code is True
    assert len(await store.find_by_email("a@x.com")) == 1


@pytest.mark.asyncio
async def test_issue_does_not_touch_other_emails(service, store):
    await service.issue("a@x.com")
    await service.issue("b@x.com")

    assert len(await store.find_by_email("a@x.com")) == 1
    assert len(await store.find_by_email("b@x.com")) == 1


@pytest.mark.asyncio
async def test_verify_rejects_wrong_code_and_wrong_email(service):
    code = await service.issue("a@x.com")

    assert await service.verify("a@x.com", "WRONG1") is False
    assert await service.verify("b@x.com", code) is False
    assert await service.verify("A@x.com", code) is False


@pytest.mark.asyncio
async def test_verify_is_idempotent_until_expiry(service, store, clock):
    code = await service.issue("a@x.com")

    assert await service.verify("a@x.com", code) is True
    assert await service.verify("a@x.com", code) is True

    [record] = await store.find_by_email("a@x.com")
    assert record.is_verified is True
    assert record.code == code
    assert record.expires_at == START_MS + EXPIRY_MS

    clock.advance(EXPIRY_MS)
    assert await service.verify("a@x.com", code) is False
    assert await store.find_by_email("a@x.com") == []


@pytest.mark.asyncio
async def test_verify_does_not_rewrite_verified_record(service, store, monkeypatch):
    code = await service.issue("a@x.com")
    await service.verify("a@x.com", code)

    updates = []

    async def _capture(record):
        updates.append(record)

    monkeypatch.setattr(store, "update", _capture)
    assert await service.verify("a@x.com", code) is True
    assert updates == []


@pytest.mark.asyncio
async def test_verify_expired_code_deletes_record(service, store, clock):
    code = await service.issue("a@x.com")

    clock.advance(EXPIRY_MS + 1)
    assert await service.verify("a@x.com", code) is False

    assert await store.find_by_email("a@x.com") == []
    status = await service.status("a@x.com")
    assert status == VerificationStatus(is_verified=False, has_pending_code=False, expires_at=None)


@pytest.mark.asyncio
async def test_code_expires_exactly_at_expires_at(service, clock):
    code = await service.issue("a@x.com")

    clock.advance(EXPIRY_MS - 1)
    assert await service.verify("a@x.com", code) is True

    clock.advance(1)
    assert await service.verify("a@x.com", code) is False


@pytest.mark.asyncio
async def test_status_without_issuance(service):
    status = await service.status("nobody@x.com")

    assert status == VerificationStatus(is_verified=False, has_pending_code=False, expires_at=None)


@pytest.mark.asyncio
async def test_status_after_issue_and_verify(service, clock):
    code = await service.issue("a@x.com")

    status = await service.status("a@x.com")
    assert status == VerificationStatus(
        is_verified=False, has_pending_code=True, expires_at=START_MS + EXPIRY_MS
    )

    clock.advance(1_000)
    await service.verify("a@x.com", code)
    status = await service.status("a@x.com")
    assert status.is_verified is True
    assert status.has_pending_code is True


@pytest.mark.asyncio
async def test_status_reports_expired_record_without_deleting_it(service, store, clock):
    await service.issue("a@x.com")
    clock.advance(EXPIRY_MS)

    status = await service.status("a@x.com")

    assert status.has_pending_code is False
    assert status.expires_at == START_MS + EXPIRY_MS
    assert len(await store.find_by_email("a@x.com")) == 1


@pytest.mark.asyncio
async def test_status_picks_newest_record_and_breaks_ties_by_insertion(service, store):
    await store.insert(VerificationRecord("a@x.com", "OLDER1", START_MS - 10, START_MS + 10, is_verified=True))
    await store.insert(VerificationRecord("a@x.com", "FIRST1", START_MS, START_MS + 50))
    await store.insert(VerificationRecord("a@x.com", "SECND1", START_MS, START_MS + 99))

    status = await service.status("a@x.com")

    assert status.expires_at == START_MS + 99
    assert status.is_verified is False


@pytest.mark.asyncio
async def test_delivery_failure_keeps_record_until_next_issue(service, store, notifier):
    notifier.fail = True
    with pytest.raises(ServiceError) as excinfo:
        await service.issue("a@x.com")

    assert excinfo.value.kind is ErrorKind.DELIVERY
    assert excinfo.value.status_code == 500
    dangling = await store.find_by_email("a@x.com")
    assert len(dangling) == 1

    notifier.fail = False
    code = await service.issue("a@x.com")
    records = await store.find_by_email("a@x.com")
    assert [r.code for r in records] == [code]


@pytest.mark.asyncio
async def test_sweep_removes_only_expired_records(service, store, clock):
    await store.insert(VerificationRecord("a@x.com", "AAAAA1", START_MS - 900, START_MS - 1))
    await store.insert(VerificationRecord("b@x.com", "BBBBB1", START_MS - 900, START_MS - 500, is_verified=True))
    await store.insert(VerificationRecord("c@x.com", "CCCCC1", START_MS - 900, START_MS))
    await store.insert(VerificationRecord("d@x.com", "DDDDD1", START_MS, START_MS + EXPIRY_MS))

    removed = await service.sweep()

    assert removed == 2
    assert await store.find_by_email("a@x.com") == []
    assert await store.find_by_email("b@x.com") == []
    assert len(await store.find_by_email("c@x.com")) == 1
    assert len(await store.find_by_email("d@x.com")) == 1
    assert await service.sweep() == 0


@pytest.mark.asyncio
async def test_issue_verify_expire_walkthrough(store, notifier, clock):
    service = VerificationService(
        store=store, notifier=notifier, expiry_ms=EXPIRY_MS, code_factory=lambda: "AB12CD", clock=clock
    )

    assert await service.issue("a@x.com") == "AB12CD"
    assert await service.verify("a@x.com", "AB12CD") is True
    assert await service.verify("a@x.com", "WRONG1") is False

    clock.advance(EXPIRY_MS + 1)
    assert await service.verify("a@x.com", "AB12CD") is False
    assert await store.find_by_email("a@x.com") == []


class _BrokenStore(MemoryVerificationStore):
    def __init__(self, exc: Exception):
        super().__init__()
        self.exc = exc

    async def find_by_email(self, email):
        raise self.exc

    async def find_matching(self, email, code):
        raise self.exc

    async def delete_all(self, email):
        raise self.exc


@pytest.mark.asyncio
async def test_storage_failures_become_persistence_errors(notifier, clock):
    service = VerificationService(_BrokenStore(SQLAlchemyError("connection lost")), notifier, clock=clock)

    for call in (service.issue("a@x.com"), service.verify("a@x.com", "AB12CD"), service.status("a@x.com")):
        with pytest.raises(ServiceError) as excinfo:
            await call
        assert excinfo.value.kind is ErrorKind.PERSISTENCE
        assert excinfo.value.message.startswith("Database error: ")

    assert notifier.sent == []


@pytest.mark.asyncio
async def test_unexpected_failures_become_unknown_errors(notifier, clock):
    service = VerificationService(_BrokenStore(RuntimeError("boom")), notifier, clock=clock)

    with pytest.raises(ServiceError) as excinfo:
        await service.status("a@x.com")

    assert excinfo.value.kind is ErrorKind.UNKNOWN
    assert excinfo.value.message == "Failed to check verification status"
    assert "boom" not in excinfo.value.message


def test_non_positive_expiry_is_rejected(store, notifier):
    with pytest.raises(ValueError):
        VerificationService(store, notifier, expiry_ms=0)
