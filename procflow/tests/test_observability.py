"""
Tests for logging setup and metrics helpers.
"""

import json
import logging

from prometheus_client import REGISTRY

from procflow import metrics
from procflow.logging_config import ProcessIdFilter, get_logger, setup_logging


def test_get_logger_carries_process_id(caplog):
    logger = get_logger("procflow.test", process_id="order-7")
    with caplog.at_level(logging.INFO, logger="procflow.test"):
        logger.info("replaying")
    assert caplog.records[-1].process_id == "order-7"


def test_filter_adds_missing_process_id():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
    assert ProcessIdFilter().filter(record)
    assert record.process_id == "N/A"


def test_setup_logging_json(capsys):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging("INFO", "json")
        get_logger("procflow.test", process_id="order-8").warning("action failed")
        line = capsys.readouterr().err.strip().splitlines()[-1]
    finally:
        for handler in root.handlers[:]:
            root.removeHandler(handler)
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)

    data = json.loads(line)
    assert data["message"] == "action failed"
    assert data["level"] == "WARNING"
    assert data["process_id"] == "order-8"
    assert data["logger"] == "procflow.test"


def test_metrics_helpers_count_after_init():
    metrics.init_metrics()
    metrics.init_metrics()  # idempotent

    labels = {"action": "refund_payment"}
    before = REGISTRY.get_sample_value("procflow_forced_actions_total", labels) or 0.0
    metrics.track_forced_action("refund_payment")
    after = REGISTRY.get_sample_value("procflow_forced_actions_total", labels)
    assert after == before + 1

    with metrics.track_replay_duration():
        pass


def test_metrics_server_disabled_is_noop():
    metrics.start_metrics_server(enabled=False, port=0)
