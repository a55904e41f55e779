"""
Unit tests for traceability reference derivation and the result envelope.
"""

import json

import pytest
from hypothesis import given
from hypothesis import strategies as st

from agritrace.core.errors import (
    ConflictError,
    CreationFailedError,
    InvalidTransitionError,
    LedgerUnavailableError,
    ValidationFailedError,
)
from agritrace.core.models import Product
from agritrace.engine import (
    HISTORY_PATH,
    OperationResult,
    derive_traceability_reference,
    encode_reference,
    run_operation,
)


@pytest.fixture
def product(product_input) -> Product:
    return Product.model_validate({**product_input, "id": "0b6c5f0e-5d1e"})


class TestDeriveTraceabilityReference:
    """Tests for derive_traceability_reference"""

    def test_fields(self, product):
        reference = derive_traceability_reference(product, "https://trace.example.org")

        assert reference.product_id == "0b6c5f0e-5d1e"
        assert reference.batch_number == "B1"
        assert reference.farmer_id == "F1"
        assert reference.name == "Rice"
        assert reference.history_url == "https://trace.example.org/api/v1/products/0b6c5f0e-5d1e/history"

    def test_trailing_slash_in_base(self, product):
        reference = derive_traceability_reference(product, "https://trace.example.org/")
        assert "//api" not in reference.history_url

    def test_history_path_template(self):
        assert HISTORY_PATH.format(product_id="X") == "/api/v1/products/X/history"

    def test_independent_of_mutable_state(self, product):
        """Test status and steps do not change the reference"""
        before = derive_traceability_reference(product, "https://t")
        later = product.model_copy(update={"status": "SOLD"})
        assert derive_traceability_reference(later, "https://t") == before

    @given(st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789-", min_size=1, max_size=40),
           st.text(min_size=1, max_size=40))
    def test_property_deterministic(self, product_id, batch_number):
        """Property test: identical input always yields an identical encoded payload"""
        location = {"latitude": 1.0, "longitude": 2.0, "address": "x"}
        product = Product(
            id=product_id, name="Rice", batch_number=batch_number, farmer_id="F1",
            farm_location=location, current_location=location,
            planting_date="2024-01-01", harvest_date="2024-04-01",
        )

        first = encode_reference(derive_traceability_reference(product, "https://t"))
        second = encode_reference(derive_traceability_reference(product.model_copy(), "https://t"))

        assert first == second
        assert json.loads(first)["batchNumber"] == batch_number


class TestOperationResult:
    """Tests for the result envelope"""

    @pytest.mark.asyncio
    async def test_success_wraps_model(self, product):
        async def op():
            return product

        result = await run_operation(op())

        assert result.success is True
        assert result.error is None
        assert result.data["batchNumber"] == "B1"

    @pytest.mark.asyncio
    async def test_list_of_models(self, product):
        async def op():
            return [product, product]

        result = await run_operation(op())

        assert [p["id"] for p in result.data] == [product.id, product.id]

    @pytest.mark.asyncio
    async def test_engine_error_becomes_failure(self):
        async def op():
            raise InvalidTransitionError("Cannot move from PLANTED to SOLD", product_id="P-1")

        result = await run_operation(op())

        assert result.success is False
        assert result.data is None
        assert result.error.kind == "InvalidTransition"
        assert result.error.context == {"product_id": "P-1"}

    @pytest.mark.asyncio
    async def test_validation_errors_listed(self):
        async def op():
            raise ValidationFailedError("Invalid product input", errors=["name missing", "bad date"])

        result = await run_operation(op())

        assert result.error.errors == ["name missing", "bad date"]

    @pytest.mark.asyncio
    async def test_programming_errors_propagate(self):
        async def op():
            raise KeyError("oops")

        with pytest.raises(KeyError):
            await run_operation(op())

    def test_serializes_to_json(self):
        result = OperationResult.failed(LedgerUnavailableError("peer down", operation="get_product"))
        data = json.loads(result.model_dump_json())
        assert data["error"]["kind"] == "LedgerUnavailable"


class TestErrorTaxonomy:
    """Tests for error kinds and structured forms"""

    def test_conflict_is_an_invalid_transition(self):
        error = ConflictError("stale", product_id="P-1")
        assert isinstance(error, InvalidTransitionError)
        assert error.kind == "Conflict"

    def test_none_context_values_dropped(self):
        error = LedgerUnavailableError("down", operation="get_product", entity_id=None)
        assert error.context == {"operation": "get_product"}

    def test_creation_failed_reports_cause_kind(self):
        cause = LedgerUnavailableError("down")
        data = CreationFailedError("create failed", cause=cause).to_dict()
        assert data["cause"] == "LedgerUnavailable"
