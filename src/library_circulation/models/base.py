"""Shared base for persisted circulation records."""

from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field


class CirculationRecord(BaseModel):
    """
    Fields and behaviour common to borrowings and reservations.

    Records are frozen: every lifecycle transition produces a new, fully
    re-validated instance through ``evolve`` so a failed transition never
    leaves a half-updated object behind.
    """

    id: str = Field(
        ...,
        description="System-generated identifier, immutable",
        min_length=1,
        max_length=64,
    )

    member_id: str = Field(
        ...,
        description="Reference to the member owning this record",
        min_length=1,
        max_length=64,
    )

    book_id: str = Field(
        ...,
        description="Reference to the book this record concerns",
        min_length=1,
        max_length=64,
    )

    version: int = Field(
        default=0,
        description="Optimistic concurrency token; 0 until first saved",
        ge=0,
    )

    model_config = ConfigDict(
        frozen=True,
        validate_default=True,
        str_strip_whitespace=True,
    )

    def evolve(self, **changes: Any) -> Self:
        """Return a copy with ``changes`` applied, running all validators again."""
        return type(self).model_validate({**self.model_dump(), **changes})
