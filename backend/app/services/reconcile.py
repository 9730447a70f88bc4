"""
Saga building blocks shared by the reconciliation engines.

A step is one independent store operation. Steps never raise: each settles into
a typed outcome so a batch can be issued concurrently and collected in full
(not fail-fast). Whether the saga succeeded is decided afterwards by reading the
store again, never by trusting the outcomes alone.
"""
from __future__ import annotations
import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Mapping

import structlog

from app.store.base import Err, ErrorKind, LedgerStore, Ok

log = structlog.get_logger()


class StepStatus(str, Enum):
    DONE = "done"
    SKIPPED = "skipped"  # table not present in this deployment
    FAILED = "failed"


@dataclass(frozen=True)
class StepOutcome:
    table: str
    filter: Mapping[str, Any]
    status: StepStatus
    affected: int = 0
    message: str | None = None

    @property
    def failed(self) -> bool:
        return self.status is StepStatus.FAILED


@dataclass(frozen=True)
class DeleteStep:
    table: str
    filter: Mapping[str, Any]


async def run_delete(store: LedgerStore, step: DeleteStep) -> StepOutcome:
    try:
        res = await store.delete_rows(step.table, step.filter)
    except Exception as e:  # a step must settle; the exception becomes its outcome
        log.warning("delete_step_raised", table=step.table, error=str(e))
        return StepOutcome(step.table, step.filter, StepStatus.FAILED, message=str(e) or e.__class__.__name__)

    if isinstance(res, Ok):
        return StepOutcome(step.table, step.filter, StepStatus.DONE, affected=int(res.value or 0))
    if res.kind is ErrorKind.TABLE_NOT_FOUND:
        return StepOutcome(step.table, step.filter, StepStatus.SKIPPED, message=f"{step.table} not present: {res.message}")
    log.warning("delete_step_failed", table=step.table, kind=res.kind.value, error=res.message)
    return StepOutcome(step.table, step.filter, StepStatus.FAILED, message=res.message)


async def settle(store: LedgerStore, steps: list[DeleteStep]) -> list[StepOutcome]:
    """Issue all steps concurrently and wait for every one of them."""
    return list(await asyncio.gather(*(run_delete(store, s) for s in steps)))


class Presence(str, Enum):
    ABSENT = "absent"
    REMAINING = "remaining"


@dataclass(frozen=True)
class RemnantCheck:
    table: str
    presence: Presence
    message: str | None = None  # set when the read itself failed


async def check_absent(table: str, read: Awaitable[Any]) -> RemnantCheck:
    """
    Interpret a verification read. Only a row that was actually read counts as
    a remnant; a missing table or a failed read is taken as absent, the latter
    carrying its error so the caller can log it.
    """
    try:
        res = await read
    except Exception as e:  # treated like a failed read
        return RemnantCheck(table, Presence.ABSENT, f"verification read on {table} failed: {e}")

    match res:
        case Ok(value=None) | Ok(value=[]):
            return RemnantCheck(table, Presence.ABSENT)
        case Ok():
            return RemnantCheck(table, Presence.REMAINING)
        case Err(kind=ErrorKind.TABLE_NOT_FOUND):
            return RemnantCheck(table, Presence.ABSENT)
        case Err(message=message):
            return RemnantCheck(table, Presence.ABSENT, f"verification read on {table} failed: {message}")
    raise TypeError(f"unexpected store result {res!r}")


@dataclass
class SagaReport:
    outcomes: list[StepOutcome] = field(default_factory=list)
    checks: list[RemnantCheck] = field(default_factory=list)

    @property
    def verified(self) -> bool:
        return all(c.presence is Presence.ABSENT for c in self.checks)

    @property
    def unreadable(self) -> list[str]:
        return [c.message for c in self.checks if c.message]

    def failure_details(self) -> list[str]:
        return [o.message for o in self.outcomes if o.failed and o.message]
