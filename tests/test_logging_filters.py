"""Tests for log redaction, identity hashing and limiter context fields."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from oplimit.core.config import LogSettings
from oplimit.core.logging import (
    JsonFormatter,
    RedactionFilter,
    RequestIdFilter,
    clear_request_id,
    configure_logging,
    hash_key,
    limiter_log_context,
    scrub_fields,
    set_request_id,
)


@pytest.fixture
def capture():
    """Return a (logger, stream) pair wired with the production filters."""

    logger = logging.getLogger("test_oplimit_logging")
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(RedactionFilter())
    handler.setFormatter(JsonFormatter(context={"bucket_mode": "epoch", "store_backend": "memory"}))
    logger.addHandler(handler)

    yield logger, stream
    logger.handlers.clear()
    clear_request_id()


def test_redacts_api_keys_and_redis_url(capture):
    logger, stream = capture

    logger.info(
        "store.configured",
        extra={
            "api_key": "sk-secret-123",
            "redis_url": "redis://:hunter2@cache:6379/0",
            "backend": "redis",
        },
    )

    record = json.loads(stream.getvalue())
    assert "sk-secret-123" not in stream.getvalue()
    assert "hunter2" not in stream.getvalue()
    assert record["api_key"] == "[REDACTED]"
    assert record["backend"] == "redis"


def test_redacts_nested_headers(capture):
    logger, stream = capture

    logger.info(
        "nested_event",
        extra={"headers": {"x-api-key": "secret-key", "user-agent": "pytest"}},
    )

    output = stream.getvalue()
    assert "secret-key" not in output
    assert "pytest" in output


def test_bucket_key_and_identity_are_replaced_by_hash(capture):
    logger, stream = capture
    bucket_key = "api_key:deadbeef:login_16667"

    logger.debug("rate_limit.window_exhausted", extra={"bucket_key": bucket_key, "identity": "10.0.0.7"})

    output = stream.getvalue()
    record = json.loads(output)
    assert "deadbeef" not in output
    assert "10.0.0.7" not in output
    assert "bucket_key" not in record
    assert "identity" not in record
    assert record["key_hash"] == hash_key(bucket_key)


def test_explicit_key_hash_is_kept(capture):
    logger, stream = capture

    logger.warning(
        "rate_limit.exceeded",
        extra={"key_hash": hash_key("api_key:abc:login"), "op_name": "api_key:abc:login", "limit": 3},
    )

    record = json.loads(stream.getvalue())
    assert record["event"] == "rate_limit.exceeded"
    assert record["level"] == "warning"
    assert record["key_hash"] == hash_key("api_key:abc:login")
    assert record["limit"] == 3
    assert "op_name" not in record


def test_limiter_context_is_stamped_on_every_record(capture):
    logger, stream = capture

    logger.info("http.request")

    record = json.loads(stream.getvalue())
    assert record["bucket_mode"] == "epoch"
    assert record["store_backend"] == "memory"


def test_request_id_is_attached_from_context(capture):
    logger, stream = capture
    set_request_id("req-42")

    logger.info("http.request")

    assert json.loads(stream.getvalue())["request_id"] == "req-42"


def test_scrub_fields_does_not_mutate_input():
    fields = {"key": "api_key:abc_5", "redis_url": "redis://:pw@h/0", "retry_after_s": 4}

    safe = scrub_fields(fields)

    assert fields["key"] == "api_key:abc_5"
    assert safe == {"key_hash": hash_key("api_key:abc_5"), "redis_url": "[REDACTED]", "retry_after_s": 4}


def test_limiter_log_context_reflects_settings(monkeypatch):
    from oplimit.core.config import settings

    monkeypatch.setattr(settings.app, "rate_limit_bucket_mode", "cyclic")
    monkeypatch.setattr(settings.store, "backend", "redis")

    context = limiter_log_context()

    assert context["bucket_mode"] == "cyclic"
    assert context["store_backend"] == "redis"


def test_configure_logging_installs_single_json_handler():
    root = logging.getLogger()
    previous_handlers, previous_level = root.handlers[:], root.level
    try:
        configure_logging(LogSettings(level="DEBUG"), context={"bucket_mode": "cyclic"})
        configure_logging(LogSettings(level="DEBUG"), context={"bucket_mode": "cyclic"})

        assert len(root.handlers) == 1
        handler = root.handlers[0]
        assert isinstance(handler.formatter, JsonFormatter)
        assert handler.formatter.context == {"bucket_mode": "cyclic"}
        assert any(isinstance(f, RedactionFilter) for f in handler.filters)
        assert root.level == logging.DEBUG
    finally:
        root.handlers[:] = previous_handlers
        root.setLevel(previous_level)


def test_hash_key_is_stable_and_opaque():
    assert hash_key("api_key:abc") == hash_key("api_key:abc")
    assert hash_key("api_key:abc") != hash_key("api_key:abd")
    assert len(hash_key("api_key:abc")) == 16
    assert "abc" not in hash_key("api_key:abc")
