"""
Human-readable record numbers.

Borrowings are numbered ``BR`` + four-digit year + four-digit sequence
(``BR20240001``) and reservations ``RS`` + year + sequence. Sequences are
allocated by the store per (entity type, year) and restart at 1 each year.
"""

import enum
import re
from typing import NamedTuple

from .exceptions import InvalidInputError, SequenceExhaustedError

MAX_SEQUENCE = 9999

NUMBER_PATTERN = re.compile(r"^(BR|RS)(\d{4})(\d{4})$")


class EntityType(str, enum.Enum):
    """Record kinds that own a yearly sequence, valued by their number prefix."""

    BORROWING = "BR"
    RESERVATION = "RS"

    @property
    def prefix(self) -> str:
        return self.value


class RecordNumber(NamedTuple):
    """Parsed form of a record number."""

    entity_type: EntityType
    year: int
    sequence: int


def format_number(entity_type: EntityType, year: int, sequence: int) -> str:
    """
    Render a record number.

    Args:
        entity_type: Kind of record being numbered
        year: Calendar year the sequence belongs to
        sequence: Value returned by the store's ``next_sequence``

    Returns:
        Number such as ``BR20240007``

    Raises:
        InvalidInputError: If the year or sequence is not positive
        SequenceExhaustedError: If the sequence exceeds 9999
    """
    if not 1 <= year <= 9999:
        raise InvalidInputError(f"Year {year} cannot be rendered with four digits")
    if sequence < 1:
        raise InvalidInputError(f"Sequence must be positive, got {sequence}")
    if sequence > MAX_SEQUENCE:
        raise SequenceExhaustedError(
            f"{entity_type.name.lower()} sequence for {year} exhausted at {MAX_SEQUENCE}"
        )
    return f"{entity_type.prefix}{year:04d}{sequence:04d}"


def parse_number(number: str) -> RecordNumber:
    """Split a record number into entity type, year and sequence."""
    match = NUMBER_PATTERN.match(number)
    if match is None:
        raise InvalidInputError(f"Malformed record number: {number!r}")
    prefix, year, sequence = match.groups()
    return RecordNumber(EntityType(prefix), int(year), int(sequence))
