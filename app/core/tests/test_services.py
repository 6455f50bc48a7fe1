"""
Tests for ServiceResult and BaseService.
"""

import logging

import pytest

from core.services import BaseService, ServiceResult
from ledger.exceptions import LedgerConflict, LedgerNotFound, LedgerValidationError


class SampleService(BaseService):
    pass


# =============================================================================
# ServiceResult
# =============================================================================


class TestServiceResult:
    def test_success(self):
        result = ServiceResult.success({"id": 1})

        assert result.success is True
        assert bool(result) is True
        assert result.data == {"id": 1}
        assert result.error is None

    def test_failure(self):
        result = ServiceResult.failure(
            "Amount must be positive",
            error_code="VALIDATION_ERROR",
            errors={"amount_cents": ["Amount must be positive"]},
        )

        assert result.success is False
        assert bool(result) is False
        assert result.data is None
        assert result.error_code == "VALIDATION_ERROR"

    def test_from_application_error_keeps_code_and_field(self):
        exc = LedgerValidationError("Bad currency", field="currency")

        result = ServiceResult.from_exception(exc)

        assert result.error == "Bad currency"
        assert result.error_code == "VALIDATION_ERROR"
        assert result.errors == {"currency": ["Bad currency"]}

    def test_from_application_error_without_field(self):
        result = ServiceResult.from_exception(LedgerNotFound("Gone"))

        assert result.error_code == "NOT_FOUND"
        assert result.errors is None

    def test_from_exception_code_override(self):
        result = ServiceResult.from_exception(
            LedgerConflict("Stale"), error_code="EXPENSE_VERSION_CONFLICT"
        )

        assert result.error_code == "EXPENSE_VERSION_CONFLICT"

    def test_from_plain_exception_uses_class_name(self):
        result = ServiceResult.from_exception(KeyError("x"))

        assert result.error_code == "KEYERROR"

    def test_to_response_success(self):
        assert ServiceResult.success([1, 2]).to_response() == {
            "success": True,
            "data": [1, 2],
        }

    def test_to_response_failure_omits_empty_keys(self):
        assert ServiceResult.failure("Nope").to_response() == {
            "success": False,
            "error": "Nope",
        }

    def test_to_response_failure_full(self):
        response = ServiceResult.failure(
            "Nope", error_code="CONFLICT", errors={"name": ["taken"]}
        ).to_response()

        assert response == {
            "success": False,
            "error": "Nope",
            "error_code": "CONFLICT",
            "errors": {"name": ["taken"]},
        }


# =============================================================================
# BaseService
# =============================================================================


class TestBaseService:
    def test_logger_named_after_service(self):
        logger = SampleService.get_logger()

        assert logger.name == f"{__name__}.SampleService"

    def test_handle_exception_logs_and_converts(self, caplog):
        exc = LedgerConflict("Category already exists", error_code="CATEGORY_EXISTS")

        with caplog.at_level(logging.WARNING):
            result = SampleService.handle_exception(exc, "create category", logging.WARNING)

        assert result.error_code == "CATEGORY_EXISTS"
        assert "create category: [CATEGORY_EXISTS] Category already exists" in caplog.text

    def test_atomic_rolls_back(self, db):
        from ledger.models import Couple
        from ledger.tests.factories import CoupleFactory

        with pytest.raises(RuntimeError):
            with SampleService.atomic():
                CoupleFactory()
                raise RuntimeError("boom")

        assert Couple.objects.count() == 0
