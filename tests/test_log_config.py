"""Tests for structlog configuration."""
import json

import structlog

from utils.log_config import configure_logging


def test_json_logs(capsys):
    try:
        configure_logging("INFO", json_logs=True)
        structlog.get_logger().info("message_sent", message_id="m1")
        lines = [line for line in capsys.readouterr().out.splitlines() if line.strip()]
        record = json.loads(lines[-1])
        assert record["event"] == "message_sent"
        assert record["message_id"] == "m1"
        assert record["level"] == "info"
        assert "timestamp" in record
    finally:
        structlog.reset_defaults()


def test_level_filtering(capsys):
    try:
        configure_logging("WARNING", json_logs=True)
        structlog.get_logger().info("scheduler_tick")
        structlog.get_logger().warning("sent_cache_write_failed")
        out = capsys.readouterr().out
        assert "scheduler_tick" not in out
        assert "sent_cache_write_failed" in out
    finally:
        structlog.reset_defaults()
