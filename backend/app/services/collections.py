from __future__ import annotations
import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Any

import structlog

from app.errors import InvalidInput, PartialFailure, ReconciliationError, UnexpectedError
from app.services.reconcile import (
    DeleteStep,
    Presence,
    SagaReport,
    StepOutcome,
    check_absent,
    settle,
)
from app.store.base import LedgerStore, Ok

log = structlog.get_logger()

COLLECTION_APPROVAL = "collection_approval"


@dataclass
class DeleteCollectionResult:
    collection_id: str
    via: str  # "rpc" | "fallback"
    outcomes: list[StepOutcome] = field(default_factory=list)


def parse_collection_id(raw: Any) -> str:
    if not raw or not isinstance(raw, str):
        raise InvalidInput("collectionId required")
    try:
        return str(uuid.UUID(raw.strip()))
    except ValueError:
        raise InvalidInput("collectionId must be a UUID")


def child_steps(cid: str) -> list[DeleteStep]:
    return [
        DeleteStep("collection_photos", {"collection_id": cid}),
        DeleteStep("collection_materials", {"collection_id": cid}),
        DeleteStep("wallet_update_queue", {"collection_id": cid}),
        DeleteStep("wallet_transactions", {"source_id": cid}),
        DeleteStep("wallet_transactions", {"source_id": cid, "source_type": COLLECTION_APPROVAL}),
        DeleteStep("transactions", {"source_id": cid}),
    ]


def parent_steps(cid: str) -> list[DeleteStep]:
    return [
        DeleteStep("unified_collections", {"id": cid}),
        DeleteStep("collections", {"id": cid}),
    ]


class CascadingDeletionEngine:
    """
    Removes a collection and everything hanging off it.

    Fast path: one server-side procedure that deletes the whole aggregate in a
    transaction. Fallback: best-effort deletes, children before parents, each
    batch issued concurrently. Either way the store is re-read afterwards and
    the call only succeeds when no trace of the collection is left.
    """

    def __init__(self, store: LedgerStore, procedure: str = "admin_delete_collection"):
        self.store = store
        self.procedure = procedure

    async def delete_collection(self, collection_id: Any) -> DeleteCollectionResult:
        cid = parse_collection_id(collection_id)
        try:
            return await self._delete(cid)
        except ReconciliationError:
            raise
        except Exception as e:
            log.exception("delete_collection_unexpected", collection_id=cid)
            raise UnexpectedError(str(e) or "Unexpected error") from e

    async def _delete(self, cid: str) -> DeleteCollectionResult:
        report = SagaReport()
        via = "rpc"
        if not await self._try_procedure(cid):
            via = "fallback"
            report.outcomes += await settle(self.store, child_steps(cid))
            report.outcomes += await settle(self.store, parent_steps(cid))

        # join point: every delete has settled before we look
        report.checks = await self.verify(cid)
        if report.unreadable:
            log.warning("delete_collection_verify_unreadable", collection_id=cid, errors=report.unreadable)
        if not report.verified:
            remaining = [c.table for c in report.checks if c.presence is Presence.REMAINING]
            log.warning(
                "delete_collection_remnants",
                collection_id=cid, via=via, remaining=remaining, details=report.failure_details(),
            )
            raise PartialFailure("not_deleted", report.failure_details())

        log.info("delete_collection_ok", collection_id=cid, via=via,
                 deleted=sum(o.affected for o in report.outcomes))
        return DeleteCollectionResult(collection_id=cid, via=via, outcomes=report.outcomes)

    async def _try_procedure(self, cid: str) -> bool:
        try:
            res = await self.store.call_procedure(self.procedure, {"_id": cid})
        except Exception as e:  # any failure here just means the fallback runs
            log.info("delete_collection_rpc_unavailable", collection_id=cid, error=str(e))
            return False
        if isinstance(res, Ok):
            log.info("delete_collection_rpc_ok", collection_id=cid)
            return True
        log.info("delete_collection_rpc_unavailable", collection_id=cid, kind=res.kind.value, error=res.message)
        return False

    async def verify(self, cid: str):
        return list(await asyncio.gather(
            check_absent("unified_collections", self.store.get_row("unified_collections", {"id": cid})),
            check_absent("collections", self.store.get_row("collections", {"id": cid})),
            check_absent("wallet_transactions", self.store.list_rows("wallet_transactions", {"source_id": cid}, limit=1)),
            check_absent("wallet_update_queue", self.store.list_rows("wallet_update_queue", {"collection_id": cid}, limit=1)),
        ))
