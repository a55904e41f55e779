"""
Unit tests for structured logging and Prometheus metrics helpers.
"""

import json

import pytest

from agritrace.core.errors import InvalidTransitionError
from agritrace.observability.logger import log_operation, setup_logger
from agritrace.observability.metrics import (
    REGISTRY,
    generate_metrics,
    observe_histogram,
    operation_duration_seconds,
    record_content_call,
    record_ledger_call,
    record_operation,
    track_duration,
)


def sample(name: str, **labels) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestLogger:
    """Tests for JSON log output"""

    def test_json_fields(self, capsys):
        logger = setup_logger("agritrace.test.json", level="INFO", format_type="json")

        logger.info("Product created", extra={"product_id": "P-1"})

        record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert record["message"] == "Product created"
        assert record["level"] == "INFO"
        assert record["logger"] == "agritrace.test.json"
        assert record["product_id"] == "P-1"

    def test_log_operation_success(self, capsys):
        logger = setup_logger("agritrace.test.op", level="INFO", format_type="json")

        with log_operation("get_product", logger=logger, product_id="P-1"):
            pass

        completed = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert completed["status"] == "success"
        assert completed["operation"] == "get_product"
        assert "duration_seconds" in completed

    def test_log_operation_failure_reraises(self, capsys):
        logger = setup_logger("agritrace.test.fail", level="INFO", format_type="json")

        with pytest.raises(InvalidTransitionError):
            with log_operation("update_product_status", logger=logger):
                raise InvalidTransitionError("Cannot move from PLANTED to SOLD")

        failed = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert failed["status"] == "error"
        assert failed["error_kind"] == "InvalidTransition"

    def test_text_format(self, capsys):
        logger = setup_logger("agritrace.test.text", level="DEBUG", format_type="text")
        logger.debug("plain line")
        assert "plain line" in capsys.readouterr().out


class TestMetrics:
    """Tests for counter helpers"""

    def test_record_operation_failure_counts_error_kind(self):
        before = sample("agritrace_errors_total", operation="add_step", error_kind="ProductClosed")

        record_operation("add_step", "ProductClosed")

        assert sample("agritrace_errors_total", operation="add_step", error_kind="ProductClosed") == before + 1
        assert sample("agritrace_operations_total", operation="add_step", status="failure") >= 1

    def test_adapter_calls(self):
        before = sample("agritrace_ledger_calls_total", transaction="GetProduct", mode="evaluate", status="success")

        record_ledger_call("GetProduct", "evaluate", True)
        record_content_call("pin", False)

        assert sample(
            "agritrace_ledger_calls_total", transaction="GetProduct", mode="evaluate", status="success"
        ) == before + 1
        assert sample("agritrace_content_store_calls_total", operation="pin", status="failure") >= 1

    def test_duration_histogram(self):
        labels = {"operation": "history_rebuild"}
        before = REGISTRY.get_sample_value("agritrace_operation_duration_seconds_count", labels) or 0.0

        observe_histogram(operation_duration_seconds, 0.25, **labels)
        with track_duration(operation_duration_seconds, **labels):
            pass

        assert REGISTRY.get_sample_value("agritrace_operation_duration_seconds_count", labels) == before + 2

    def test_exposition(self):
        record_operation("get_product")
        assert b"agritrace_operations_total" in generate_metrics()
