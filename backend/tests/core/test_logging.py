"""Tests for the structlog processors added by bitacora.core.logging."""
import pytest
from asgi_correlation_id.context import correlation_id

from bitacora.core.logging import add_request_id, service_context

pytestmark = pytest.mark.unit


def test_service_context_stamps_service_and_gateway():
    processor = service_context("Bitácora de Iniciativas", "memory")
    event = processor(None, "info", {"event": "startup_begin"})
    assert event["service"] == "Bitácora de Iniciativas"
    assert event["gateway"] == "memory"


def test_service_context_keeps_explicit_values():
    processor = service_context("bitacora")
    event = processor(None, "info", {"event": "x", "service": "worker"})
    assert event["service"] == "worker"
    assert "gateway" not in event


def test_request_id_added_inside_request():
    token = correlation_id.set("req-123")
    try:
        event = add_request_id(None, "info", {"event": "log_entry_created"})
    finally:
        correlation_id.reset(token)
    assert event["correlation_id"] == "req-123"


def test_request_id_absent_outside_request():
    assert "correlation_id" not in add_request_id(None, "info", {"event": "db_initialized"})
