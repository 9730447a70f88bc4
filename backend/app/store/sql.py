from __future__ import annotations
import asyncio
import re
import uuid
from typing import Any, Mapping, Optional

import structlog
from sqlalchemy import MetaData, Table, delete, insert, select, text, update
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from app.db import Base
import app.models.collection  # noqa: F401  register tables on Base.metadata
import app.models.wallet  # noqa: F401
import app.models.withdrawal  # noqa: F401
from app.store.base import Err, ErrorKind, Filter, Ok, Result, Row

log = structlog.get_logger()

_IDENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Postgres SQLSTATE -> error kind
_SQLSTATE_KINDS = {
    "42P01": ErrorKind.TABLE_NOT_FOUND,      # undefined_table
    "42883": ErrorKind.PROCEDURE_NOT_FOUND,  # undefined_function
    "42501": ErrorKind.PERMISSION_DENIED,    # insufficient_privilege
    "22P02": ErrorKind.INVALID_VALUE,        # invalid_text_representation
}


class _InvalidValue(ValueError):
    pass


def classify_error(exc: BaseException) -> Err:
    """Map a driver/SQLAlchemy exception onto the store's error kinds."""
    if isinstance(exc, DBAPIError):
        orig = exc.orig
        code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        kind = _SQLSTATE_KINDS.get(code or "", ErrorKind.STORE_ERROR)
        return Err(kind, str(orig) if orig is not None else str(exc))
    if isinstance(exc, _InvalidValue):
        return Err(ErrorKind.INVALID_VALUE, str(exc))
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return Err(ErrorKind.STORE_ERROR, "store request timed out")
    return Err(ErrorKind.STORE_ERROR, str(exc) or exc.__class__.__name__)


def coerce_value(table: Table, column: str, value: Any) -> Any:
    if column not in table.c:
        raise _InvalidValue(f'column "{column}" does not exist on {table.name}')
    if isinstance(table.c[column].type, PG_UUID) and isinstance(value, str):
        try:
            return uuid.UUID(value)
        except ValueError:
            raise _InvalidValue(f'invalid input syntax for type uuid: "{value}"')
    return value


class SqlLedgerStore:
    """LedgerStore over SQLAlchemy Core; tables come from the ORM metadata."""

    def __init__(self, engine: AsyncEngine, metadata: MetaData | None = None):
        self.engine = engine
        self.metadata = metadata if metadata is not None else Base.metadata

    def _table(self, name: str) -> Optional[Table]:
        return self.metadata.tables.get(name)

    def _missing(self, name: str) -> Err:
        return Err(ErrorKind.TABLE_NOT_FOUND, f'relation "{name}" does not exist')

    def _where(self, t: Table, filter: Filter) -> list:
        return [t.c[k] == coerce_value(t, k, v) for k, v in filter.items()]

    def _values(self, t: Table, fields: Mapping[str, Any]) -> dict[str, Any]:
        return {k: coerce_value(t, k, v) for k, v in fields.items()}

    async def get_row(self, table: str, filter: Filter) -> Result[Optional[Row]]:
        t = self._table(table)
        if t is None:
            return self._missing(table)
        try:
            stmt = select(t).where(*self._where(t, filter)).limit(1)
            async with self.engine.connect() as conn:
                row = (await conn.execute(stmt)).mappings().first()
        except (SQLAlchemyError, _InvalidValue, OSError, asyncio.TimeoutError) as e:
            return classify_error(e)
        return Ok(dict(row) if row is not None else None)

    async def list_rows(
        self,
        table: str,
        filter: Filter,
        limit: int | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> Result[list[Row]]:
        t = self._table(table)
        if t is None:
            return self._missing(table)
        try:
            stmt = select(t).where(*self._where(t, filter))
            if order_by:
                if order_by not in t.c:
                    raise _InvalidValue(f'column "{order_by}" does not exist on {table}')
                col = t.c[order_by]
                stmt = stmt.order_by(col.desc() if descending else col.asc())
            if limit is not None:
                stmt = stmt.limit(limit)
            async with self.engine.connect() as conn:
                rows = (await conn.execute(stmt)).mappings().all()
        except (SQLAlchemyError, _InvalidValue, OSError, asyncio.TimeoutError) as e:
            return classify_error(e)
        return Ok([dict(r) for r in rows])

    async def insert_row(self, table: str, fields: Mapping[str, Any]) -> Result[Row]:
        t = self._table(table)
        if t is None:
            return self._missing(table)
        try:
            stmt = insert(t).values(**self._values(t, fields)).returning(t)
            async with self.engine.begin() as conn:
                row = (await conn.execute(stmt)).mappings().one()
        except (SQLAlchemyError, _InvalidValue, OSError, asyncio.TimeoutError) as e:
            return classify_error(e)
        return Ok(dict(row))

    async def update_row(self, table: str, filter: Filter, fields: Mapping[str, Any]) -> Result[Row]:
        t = self._table(table)
        if t is None:
            return self._missing(table)
        try:
            stmt = update(t).where(*self._where(t, filter)).values(**self._values(t, fields)).returning(t)
            async with self.engine.begin() as conn:
                row = (await conn.execute(stmt)).mappings().first()
        except (SQLAlchemyError, _InvalidValue, OSError, asyncio.TimeoutError) as e:
            return classify_error(e)
        if row is None:
            return Err(ErrorKind.NOT_FOUND, f"no row in {table} matches {dict(filter)}")
        return Ok(dict(row))

    async def delete_rows(self, table: str, filter: Filter) -> Result[int]:
        t = self._table(table)
        if t is None:
            return self._missing(table)
        try:
            stmt = delete(t).where(*self._where(t, filter))
            async with self.engine.begin() as conn:
                res = await conn.execute(stmt)
        except (SQLAlchemyError, _InvalidValue, OSError, asyncio.TimeoutError) as e:
            return classify_error(e)
        return Ok(int(res.rowcount or 0))

    async def call_procedure(self, name: str, args: Mapping[str, Any]) -> Result[Any]:
        if not _IDENT.match(name) or not all(_IDENT.match(k) for k in args):
            return Err(ErrorKind.INVALID_VALUE, f"invalid procedure call {name}")
        params = ", ".join(f"{k} => :{k}" for k in args)
        try:
            async with self.engine.begin() as conn:
                value = (await conn.execute(text(f"SELECT {name}({params})"), dict(args))).scalar()
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            return classify_error(e)
        log.debug("store_procedure_called", procedure=name)
        return Ok(value)
