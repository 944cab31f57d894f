"""Tests for structured logging helpers."""

import json
import logging

from switchdex.logging_config import ScanJsonFormatter, get_logger


def test_adapter_merges_bound_context(caplog):
    log = get_logger("switchdex.test", category="game", trigger="manual").bind(entity="zelda")

    with caplog.at_level(logging.INFO, logger="switchdex.test"):
        log.info("checked")

    record = caplog.records[-1]
    assert record.category == "game"
    assert record.trigger == "manual"
    assert record.entity == "zelda"


def test_json_formatter_promotes_context_fields():
    record = logging.LogRecord("switchdex.test", logging.WARNING, __file__, 10, "rate limited", None, None)
    record.source = "github"

    line = json.loads(ScanJsonFormatter("%(message)s").format(record))

    assert line["message"] == "rate limited"
    assert line["level"] == "WARNING"
    assert line["source"] == "github"
    assert "category" not in line
