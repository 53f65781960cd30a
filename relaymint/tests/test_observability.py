"""
Tests for structured logging and the metrics textfile.
"""

import json
import logging

from relaymint.core.logging_config import get_logger, setup_logging
from relaymint.core.metrics import REGISTRY, track_relay_attempt, track_step_outcome, write_metrics


def test_json_logs_carry_deployment(capsys):
    setup_logging(level="INFO", log_format="json")
    get_logger("relaymint.test", deployment="launch").info("Submitting create operation")

    line = capsys.readouterr().err.strip().splitlines()[-1]
    record = json.loads(line)
    assert record["message"] == "Submitting create operation"
    assert record["deployment"] == "launch"
    assert record["level"] == "INFO"
    logging.getLogger().handlers.clear()


def sample(name, **labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_write_metrics_textfile(tmp_path):
    """Counters move by one per event and land in the textfile."""
    attempts = sample("relaymint_relay_attempts_total", outcome="accepted")
    outcomes = sample("relaymint_step_outcomes_total", step="asset_created", status="applied")

    track_relay_attempt("accepted")
    track_step_outcome("asset_created", "applied")

    assert sample("relaymint_relay_attempts_total", outcome="accepted") == attempts + 1
    assert sample("relaymint_step_outcomes_total", step="asset_created", status="applied") == outcomes + 1

    text = write_metrics(tmp_path / "relaymint.prom").read_text()
    assert "relaymint_relay_attempts_total" in text
    assert "relaymint_step_outcomes_total" in text


def test_write_metrics_disabled_without_target(monkeypatch):
    monkeypatch.delenv("RELAYMINT_METRICS_FILE", raising=False)
    assert write_metrics() is None
