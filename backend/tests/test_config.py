"""Tests for deadletter.config — settings defaults, env overrides, validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from deadletter.config import Settings


class TestDefaults:

    def test_dlq_defaults(self):
        s = Settings()
        assert s.dlq_alert_threshold == 10
        assert s.dlq_cleanup_interval_ms == 86_400_000
        assert s.dlq_cleanup_interval_seconds == 86_400
        assert s.dlq_retention_days == 30
        assert s.dlq_scan_limit == 1000
        assert s.dlq_retry_marker_ttl == 3600
        assert s.dlq_queue_name == "dead-letter-queue"

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("DLQ_ALERT_THRESHOLD", "25")
        monkeypatch.setenv("DLQ_CLEANUP_INTERVAL_MS", "3600000")
        s = Settings()
        assert s.dlq_alert_threshold == 25
        assert s.dlq_cleanup_interval_seconds == 3600


class TestValidation:

    def test_worker_queue_must_differ_from_dlq(self):
        with pytest.raises(ValidationError, match="arq_queue_name"):
            Settings(arq_queue_name="dead-letter-queue")

    def test_record_ttl_must_cover_retention(self):
        with pytest.raises(ValidationError, match="dlq_record_ttl_days"):
            Settings(dlq_retention_days=60, dlq_record_ttl_days=30)

    def test_interval_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(dlq_cleanup_interval_ms=0)


class TestRedisSettings:

    def test_default_url(self):
        rs = Settings(redis_url="redis://localhost:6379/0").redis_settings()
        assert rs.host == "localhost"
        assert rs.port == 6379
        assert rs.password is None
        assert rs.database == 0

    def test_custom_url(self):
        rs = Settings(redis_url="redis://:secret@myhost:6380/2").redis_settings()
        assert rs.host == "myhost"
        assert rs.port == 6380
        assert rs.password == "secret"
        assert rs.database == 2
