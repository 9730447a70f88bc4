from __future__ import annotations
import pytest

from app.services.reconcile import DeleteStep, Presence, StepStatus, check_absent, run_delete
from app.store.base import Err, ErrorKind, Ok


async def _value(v):
    return v


async def _raise():
    raise ConnectionError("socket closed")


@pytest.mark.asyncio
@pytest.mark.parametrize("result,presence", [
    (Ok(None), Presence.ABSENT),
    (Ok([]), Presence.ABSENT),
    (Ok({"id": "x"}), Presence.REMAINING),
    (Ok([{"id": "x"}]), Presence.REMAINING),
    (Err(ErrorKind.TABLE_NOT_FOUND, "relation missing"), Presence.ABSENT),
    (Err(ErrorKind.PERMISSION_DENIED, "denied"), Presence.ABSENT),
])
async def test_check_absent(result, presence):
    check = await check_absent("collections", _value(result))
    assert check.presence is presence


@pytest.mark.asyncio
async def test_check_absent_read_raises():
    check = await check_absent("collections", _raise())
    assert check.presence is Presence.ABSENT
    assert "socket closed" in check.message


class _ExplodingStore:
    async def delete_rows(self, table, filter):
        raise RuntimeError("driver crashed")


@pytest.mark.asyncio
async def test_run_delete_never_raises():
    outcome = await run_delete(_ExplodingStore(), DeleteStep("collection_photos", {"collection_id": "x"}))
    assert outcome.status is StepStatus.FAILED
    assert outcome.failed
    assert outcome.message == "driver crashed"


@pytest.mark.asyncio
async def test_failed_read_carries_its_error():
    check = await check_absent("wallet_update_queue", _value(Err(ErrorKind.PERMISSION_DENIED, "denied")))
    assert check.message == "verification read on wallet_update_queue failed: denied"
    clean = await check_absent("wallet_update_queue", _value(Ok([])))
    assert clean.message is None
