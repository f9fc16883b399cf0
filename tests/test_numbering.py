"""Tests for BR/RS record numbers."""

import pytest

from library_circulation.exceptions import InvalidInputError, SequenceExhaustedError
from library_circulation.numbering import EntityType, format_number, parse_number


class TestFormatNumber:
    def test_zero_padding(self):
        assert format_number(EntityType.BORROWING, 2024, 1) == "BR20240001"
        assert format_number(EntityType.RESERVATION, 2024, 42) == "RS20240042"
        assert format_number(EntityType.BORROWING, 2025, 9999) == "BR20259999"

    def test_sequence_exhausted(self):
        with pytest.raises(SequenceExhaustedError):
            format_number(EntityType.BORROWING, 2024, 10000)

    def test_invalid_values(self):
        with pytest.raises(InvalidInputError):
            format_number(EntityType.BORROWING, 2024, 0)
        with pytest.raises(InvalidInputError):
            format_number(EntityType.BORROWING, 10000, 1)


class TestParseNumber:
    def test_parse(self):
        parsed = parse_number("RS20240042")
        assert parsed.entity_type is EntityType.RESERVATION
        assert parsed.year == 2024
        assert parsed.sequence == 42

    def test_parse_inverts_format(self):
        number = format_number(EntityType.BORROWING, 1999, 17)
        assert parse_number(number) == (EntityType.BORROWING, 1999, 17)

    @pytest.mark.parametrize("number", ["BR2024001", "XX20240001", "BR20240001 ", ""])
    def test_malformed(self, number):
        with pytest.raises(InvalidInputError):
            parse_number(number)
