"""
Narrow interface the reconciliation engines use to reach the ledger store.

Every operation returns a tagged result instead of raising for data errors:
``Ok(value)`` or ``Err(kind, message)``. Callers branch on the kind, which lets
"table does not exist" be told apart from real failures.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Mapping, Optional, Protocol, TypeVar, Union

T = TypeVar("T")

Row = dict[str, Any]
Filter = Mapping[str, Any]


class ErrorKind(str, Enum):
    TABLE_NOT_FOUND = "table_not_found"
    PROCEDURE_NOT_FOUND = "procedure_not_found"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    INVALID_VALUE = "invalid_value"
    STORE_ERROR = "store_error"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str


Result = Union[Ok[T], Err]


class LedgerStore(Protocol):
    async def get_row(self, table: str, filter: Filter) -> Result[Optional[Row]]:
        ...

    async def list_rows(
        self,
        table: str,
        filter: Filter,
        limit: int | None = None,
        order_by: str | None = None,
        descending: bool = False,
    ) -> Result[list[Row]]:
        ...

    async def insert_row(self, table: str, fields: Mapping[str, Any]) -> Result[Row]:
        ...

    async def update_row(self, table: str, filter: Filter, fields: Mapping[str, Any]) -> Result[Row]:
        ...

    async def delete_rows(self, table: str, filter: Filter) -> Result[int]:
        ...

    async def call_procedure(self, name: str, args: Mapping[str, Any]) -> Result[Any]:
        ...
