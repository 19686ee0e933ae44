"""Unit tests for structured logging and correlation ids."""

import json
import logging

from observability.correlation import correlation_scope, get_correlation_id
from observability.logging_config import CorrelationIDFilter, JSONFormatter
from observability.health import ComponentHealth, HealthStatus, get_overall_health


def _record(message="Scan finished", **extra):
    record = logging.LogRecord("retention.scheduler", logging.INFO, __file__, 10, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestCorrelation:

    def test_scope_sets_and_restores(self):
        assert get_correlation_id() == "no-correlation-id"

        with correlation_scope("scan-1"):
            assert get_correlation_id() == "scan-1"
            with correlation_scope("scan-2"):
                assert get_correlation_id() == "scan-2"
            assert get_correlation_id() == "scan-1"

        assert get_correlation_id() == "no-correlation-id"


class TestJSONFormatter:

    def test_includes_correlation_id_and_extra_fields(self):
        record = _record(scan_id="scan-1", worklist_size=3, unrelated="dropped")

        with correlation_scope("scan-1"):
            CorrelationIDFilter().filter(record)

        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["message"] == "Scan finished"
        assert data["correlation_id"] == "scan-1"
        assert data["scan_id"] == "scan-1"
        assert data["worklist_size"] == 3
        assert "unrelated" not in data

    def test_non_json_values_are_stringified(self):
        from datetime import date

        record = _record(payload={"due_date": date(2025, 1, 1)})

        data = json.loads(JSONFormatter().format(record))

        assert data["payload"] == {"due_date": "2025-01-01"}


class TestOverallHealth:

    def test_broker_failure_is_degraded(self):
        components = {
            "database": ComponentHealth(status=HealthStatus.HEALTHY),
            "broker": ComponentHealth(status=HealthStatus.DEGRADED),
        }
        assert get_overall_health(components) == HealthStatus.DEGRADED

    def test_database_failure_is_unhealthy(self):
        components = {
            "database": ComponentHealth(status=HealthStatus.UNHEALTHY),
            "broker": ComponentHealth(status=HealthStatus.HEALTHY),
        }
        assert get_overall_health(components) == HealthStatus.UNHEALTHY
