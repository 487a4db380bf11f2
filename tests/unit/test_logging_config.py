import json
import logging
from unittest.mock import MagicMock

from cluster_catalog.common.logger import (
    ClusterContextFilter,
    JsonFormatter,
    cluster_context,
    configure_logging,
    current_cluster,
)
from cluster_catalog.common.resilience import ObservabilityListener, create_breaker


def _record(msg="hello", **extra):
    record = logging.LogRecord("cluster_catalog.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_cluster_and_extras():
    # Arrange
    record = _record(cluster="c1", source="orders", error_code="TRANSPORT_TIMEOUT")

    # Act
    payload = json.loads(JsonFormatter().format(record))

    # Assert
    assert payload["message"] == "hello"
    assert payload["level"] == "INFO"
    assert payload["cluster"] == "c1"
    assert payload["source"] == "orders"
    assert payload["error_code"] == "TRANSPORT_TIMEOUT"


def test_context_filter_tags_records_with_current_cluster():
    # Arrange
    log_filter = ClusterContextFilter()
    inside = _record()
    outside = _record()
    explicit = _record(cluster="other")

    # Act
    with cluster_context("c1"):
        log_filter.filter(inside)
        log_filter.filter(explicit)
        assert current_cluster() == "c1"
    log_filter.filter(outside)

    # Assert
    assert inside.cluster == "c1"
    assert explicit.cluster == "other"
    assert outside.cluster is None
    assert current_cluster() is None


def test_configure_logging_installs_single_handler():
    # Act
    configure_logging("DEBUG", json_format=True)
    configure_logging("WARNING", json_format=True)

    # Assert
    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, JsonFormatter)
    assert root.level == logging.WARNING
    assert logging.getLogger("httpx").level == logging.WARNING

    configure_logging("INFO")


def test_create_breaker_disabled_with_zero_fail_max():
    assert create_breaker("x", fail_max=0) is None


def test_breaker_listener_logs_state_changes(caplog):
    # Arrange
    listener = ObservabilityListener()
    cb = MagicMock()
    cb.name = "c1-transport"
    closed, opened = MagicMock(), MagicMock()
    closed.name, opened.name = "closed", "open"

    # Act
    with caplog.at_level(logging.WARNING, logger="resilience"):
        listener.state_change(cb, closed, opened)
        listener.state_change(cb, None, closed)

    # Assert
    assert "closed -> open" in caplog.text
    assert "None -> closed" in caplog.text
