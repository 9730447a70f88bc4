from __future__ import annotations
import copy
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Mapping, Optional

from app.store.base import Err, ErrorKind, Filter, Ok, Result, Row

Procedure = Callable[..., Awaitable[Any]]

DEFAULT_TABLES = (
    "withdrawal_requests",
    "wallets",
    "wallet_transactions",
    "collections",
    "unified_collections",
    "collection_photos",
    "collection_materials",
    "wallet_update_queue",
    "transactions",
)


def _norm(value: Any) -> Any:
    return str(value) if isinstance(value, uuid.UUID) else value


def _matches(row: Row, filter: Filter) -> bool:
    return all(_norm(row.get(k)) == _norm(v) for k, v in filter.items())


class InMemoryLedgerStore:
    """
    Dict-backed ledger store for tests and local runs.

    Tables must be declared before use; anything else answers
    ``table_not_found`` like a deployment missing that table would.
    Faults can be injected per (operation, table) to simulate store errors.
    """

    def __init__(self, tables: tuple[str, ...] | list[str] = DEFAULT_TABLES):
        self.tables: dict[str, list[Row]] = {name: [] for name in tables}
        self.procedures: dict[str, Procedure] = {}
        self.faults: dict[tuple[str, str], Err] = {}
        self.calls: list[tuple[str, str]] = []

    # ---------- test helpers ----------

    def seed(self, table: str, *rows: Mapping[str, Any]) -> list[Row]:
        out = []
        for r in rows:
            row = dict(r)
            row.setdefault("id", str(uuid.uuid4()))
            row.setdefault("created_at", datetime.now(timezone.utc))
            self.tables.setdefault(table, []).append(row)
            out.append(row)
        return out

    def drop_table(self, table: str) -> None:
        self.tables.pop(table, None)

    def rows(self, table: str) -> list[Row]:
        return list(self.tables.get(table, []))

    def fail(self, op: str, target: str, kind: ErrorKind = ErrorKind.STORE_ERROR, message: str | None = None) -> None:
        """Make every ``op`` ("get", "list", "insert", "update", "delete", "call") on ``target`` fail."""
        self.faults[(op, target)] = Err(kind, message or f"{op} on {target} failed")

    def register_procedure(self, name: str, fn: Procedure) -> None:
        self.procedures[name] = fn

    def calls_for(self, op: str) -> list[str]:
        return [t for (o, t) in self.calls if o == op]

    # ---------- LedgerStore ----------

    def _enter(self, op: str, table: str) -> Optional[Err]:
        self.calls.append((op, table))
        fault = self.faults.get((op, table))
        if fault is not None:
            return fault
        if op != "call" and table not in self.tables:
            return Err(ErrorKind.TABLE_NOT_FOUND, f'relation "{table}" does not exist')
        return None

    async def get_row(self, table: str, filter: Filter) -> Result[Optional[Row]]:
        e = self._enter("get", table)
        if e is not None:
            return e
        for row in self.tables[table]:
            if _matches(row, filter):
                return Ok(copy.deepcopy(row))
        return Ok(None)

    async def list_rows(
        self,
        table: str,
        filter: Filter,
        limit: int | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> Result[list[Row]]:
        e = self._enter("list", table)
        if e is not None:
            return e
        found = [copy.deepcopy(r) for r in self.tables[table] if _matches(r, filter)]
        if order_by:
            present = [r for r in found if r.get(order_by) is not None]
            missing = [r for r in found if r.get(order_by) is None]
            found = sorted(present, key=lambda r: r[order_by], reverse=descending) + missing
        if limit is not None:
            found = found[:limit]
        return Ok(found)

    async def insert_row(self, table: str, fields: Mapping[str, Any]) -> Result[Row]:
        e = self._enter("insert", table)
        if e is not None:
            return e
        row = dict(fields)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", datetime.now(timezone.utc))
        self.tables[table].append(row)
        return Ok(copy.deepcopy(row))

    async def update_row(self, table: str, filter: Filter, fields: Mapping[str, Any]) -> Result[Row]:
        e = self._enter("update", table)
        if e is not None:
            return e
        hits = [r for r in self.tables[table] if _matches(r, filter)]
        if not hits:
            return Err(ErrorKind.NOT_FOUND, f"no row in {table} matches {dict(filter)}")
        for r in hits:
            r.update(fields)
        return Ok(copy.deepcopy(hits[0]))

    async def delete_rows(self, table: str, filter: Filter) -> Result[int]:
        e = self._enter("delete", table)
        if e is not None:
            return e
        before = self.tables[table]
        kept = [r for r in before if not _matches(r, filter)]
        self.tables[table] = kept
        return Ok(len(before) - len(kept))

    async def call_procedure(self, name: str, args: Mapping[str, Any]) -> Result[Any]:
        e = self._enter("call", name)
        if e is not None:
            return e
        fn = self.procedures.get(name)
        if fn is None:
            return Err(ErrorKind.PROCEDURE_NOT_FOUND, f"function {name} does not exist")
        out = await fn(self, **dict(args))
        if isinstance(out, (Ok, Err)):
            return out
        return Ok(out)
