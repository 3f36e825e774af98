"""Unit tests for logging setup, request correlation and tracing decorators."""

import logging
from unittest.mock import patch

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from pythonjsonlogger import jsonlogger

from food_delivery_service.errors import OrderNotFoundError
from food_delivery_service.observability import configure_logging, traced
from food_delivery_service.observability.context import (
    RequestIdFilter,
    get_request_id,
    reset_request_id,
    set_request_id,
)


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    """Route spans from decorators created in the test into memory."""
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    with patch("food_delivery_service.observability.decorators.trace.get_tracer", provider.get_tracer):
        yield exporter


@pytest.mark.unit
class TestRequestId:
    def test_filter_copies_current_request_id(self) -> None:
        record = logging.LogRecord("test", logging.INFO, __file__, 1, "msg", None, None)
        token = set_request_id("req-1")
        try:
            RequestIdFilter().filter(record)
        finally:
            reset_request_id(token)

        assert record.request_id == "req-1"
        assert get_request_id() is None

    def test_filter_uses_placeholder_outside_request(self) -> None:
        record = logging.LogRecord("test", logging.INFO, __file__, 1, "msg", None, None)

        RequestIdFilter().filter(record)

        assert record.request_id == "-"


@pytest.mark.unit
class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    @patch.dict("os.environ", {"LOG_LEVEL": ""})
    def test_installs_single_json_handler(self) -> None:
        configure_logging("DEBUG")
        configure_logging("DEBUG")

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, jsonlogger.JsonFormatter)
        assert any(isinstance(f, RequestIdFilter) for f in root.handlers[0].filters)
        assert root.level == logging.DEBUG

    @patch.dict("os.environ", {"LOG_LEVEL": "warning"})
    def test_environment_overrides_level(self) -> None:
        configure_logging("DEBUG")

        assert logging.getLogger().level == logging.WARNING


@pytest.mark.unit
class TestTraced:
    @pytest.mark.asyncio
    async def test_async_function_span(self, span_exporter: InMemorySpanExporter) -> None:
        @traced("order.lookup")
        async def lookup(order_id: str) -> str:
            return order_id

        assert await lookup(order_id="ord_abc") == "ord_abc"

        (span,) = span_exporter.get_finished_spans()
        assert span.name == "order.lookup"
        assert span.attributes["success"] is True
        assert span.attributes["order_id"] == "ord_abc"

    def test_sync_function_failure_is_recorded(self, span_exporter: InMemorySpanExporter) -> None:
        @traced()
        def load(order_id: str) -> None:
            raise OrderNotFoundError(order_id)

        with pytest.raises(OrderNotFoundError):
            load("ord_missing")

        (span,) = span_exporter.get_finished_spans()
        assert span.name == "load"
        assert span.attributes["success"] is False
        assert span.attributes["error.kind"] == "NOT_FOUND"
        assert span.attributes["order_id"] == "ord_missing"
        assert span.events[0].name == "exception"

    @pytest.mark.asyncio
    async def test_positional_arguments_reach_span(
        self, span_exporter: InMemorySpanExporter
    ) -> None:
        """Test that ids passed positionally to a method are recorded like keyword ones."""

        class Catalog:
            @traced("catalog.update")
            async def update(self, food_item_id: str, changes: dict) -> None:
                return None

        await Catalog().update("food_pizza", {"price": 12})

        (span,) = span_exporter.get_finished_spans()
        assert span.attributes["food_item_id"] == "food_pizza"
        assert "order_id" not in span.attributes
