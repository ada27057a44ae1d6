"""Import/export request and response schemas."""

from typing import Literal

from pydantic import BaseModel, Field

DuplicateHandling = Literal["skip", "update"]


class ImportSummary(BaseModel):
    """Count-based report returned by every import endpoint."""

    message: str
    imported: dict[str, int]
    skipped: dict[str, int] = Field(default_factory=dict)
    updated: dict[str, int] = Field(default_factory=dict)
    total: int
    errors: int = 0
