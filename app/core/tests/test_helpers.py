"""
Tests for core helper functions.
"""

import uuid

import pytest

from core.helpers import (
    UPPERCASE_ALPHANUMERIC,
    calculate_pagination,
    generate_code,
    parse_uuid,
)


class TestGenerateCode:
    def test_default_length_and_alphabet(self):
        code = generate_code()

        assert len(code) == 10
        assert set(code) <= set(UPPERCASE_ALPHANUMERIC)

    def test_custom_alphabet(self):
        code = generate_code(6, alphabet="AB")

        assert len(code) == 6
        assert set(code) <= {"A", "B"}

    def test_codes_differ(self):
        assert len({generate_code(16) for _ in range(20)}) == 20


class TestParseUuid:
    def test_uuid_instance_returned_unchanged(self):
        value = uuid.uuid4()

        assert parse_uuid(value) is value

    def test_string_converted(self):
        value = uuid.uuid4()

        assert parse_uuid(str(value)) == value

    @pytest.mark.parametrize("value", [None, "", "not-a-uuid", 42, object()])
    def test_invalid_returns_none(self, value):
        assert parse_uuid(value) is None


class TestCalculatePagination:
    def test_middle_page(self):
        assert calculate_pagination(total=120, page=2, per_page=50) == {
            "total": 120,
            "page": 2,
            "per_page": 50,
            "offset": 50,
            "has_more": True,
        }

    def test_last_page(self):
        pagination = calculate_pagination(total=120, page=3, per_page=50)

        assert pagination["offset"] == 100
        assert pagination["has_more"] is False

    def test_exact_fit_has_no_more(self):
        assert calculate_pagination(total=100, page=2, per_page=50)["has_more"] is False
