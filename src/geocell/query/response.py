"""Search results and the continuation token used by paginated searches."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field, ValidationError

from geocell.core.errors import TokenFormatError

T = TypeVar("T")


class ContinuationToken(BaseModel):
    """Where a paginated search stopped: the covering cell index and that cell's store cursor."""

    cell_index: int = Field(..., ge=0)
    cursor: Any = None

    def to_base64(self) -> str:
        return base64.urlsafe_b64encode(self.model_dump_json().encode("utf-8")).decode("ascii")

    @classmethod
    def from_base64(cls, value: str) -> ContinuationToken:
        try:
            raw = base64.urlsafe_b64decode(value.encode("ascii"))
            return cls.model_validate_json(raw)
        except (binascii.Error, UnicodeError, ValidationError, AttributeError) as e:
            raise TokenFormatError(
                "continuation_token", value, f"malformed continuation token: {value!r}"
            ) from e


@dataclass
class SpatialQueryResponse(Generic[T]):
    items: list[T] = field(default_factory=list)
    # Distance of each item from the search center, in the search's unit (None without a center).
    distances: list[float | None] = field(default_factory=list)
    continuation_token: ContinuationToken | None = None
    total_cells_queried: int = 0
    total_items_scanned: int = 0

    @property
    def has_more(self) -> bool:
        return self.continuation_token is not None
