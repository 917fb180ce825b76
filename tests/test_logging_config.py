import json
import logging

import pytest

from optimizer.config import LOG_LEVEL
from optimizer.logging_config import JsonFormatter, job_context, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_setup_logging_defaults_come_from_config(tmp_path, restore_root_logger):
    config = setup_logging(str(tmp_path / "missing.yaml"))
    assert config["root"]["level"] == LOG_LEVEL


def test_setup_logging_text_format(tmp_path, restore_root_logger):
    config = setup_logging(str(tmp_path / "missing.yaml"), log_format="text", log_level="WARNING")

    assert config["handlers"]["console"]["formatter"] == "text"
    assert logging.getLogger().level == logging.WARNING


def test_setup_logging_reads_yaml_file(tmp_path, restore_root_logger):
    path = tmp_path / "LOGGING.yaml"
    path.write_text("version: 1\ndisable_existing_loggers: false\nroot:\n  level: ERROR\n")

    config = setup_logging(str(path))

    assert config["root"]["level"] == "ERROR"
    assert logging.getLogger().level == logging.ERROR


def test_json_lines_carry_job_context():
    record = logging.LogRecord("optimizer.test", logging.INFO, __file__, 1, "Job %s started", ("job-1",), None)
    record.component = "orchestrator"
    record.item_id = "p1"

    with job_context("job-1", "shop-1"):
        line = json.loads(JsonFormatter().format(record))

    assert line["msg"] == "Job job-1 started"
    assert line["job_id"] == "job-1"
    assert line["tenant_id"] == "shop-1"
    assert line["component"] == "orchestrator"
    assert line["item_id"] == "p1"
