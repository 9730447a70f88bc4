from __future__ import annotations
from typing import Any
from pydantic import BaseModel

class DeleteCollectionRequest(BaseModel):
    collectionId: Any = None

class DeleteCollectionResponse(BaseModel):
    ok: bool
    via: str | None = None
