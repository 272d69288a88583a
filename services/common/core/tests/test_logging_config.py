import json
import logging

from services.common.core import logging_config, request_context


def _record(msg="Test message", **extra):
    record = logging.LogRecord(
        name="test_logger",
        level=logging.INFO,
        pathname="test_path.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_custom_json_formatter_includes_request_id():
    """Ensure the formatter includes RequestID from context."""
    request_context.clear_request_id()
    req_id_str = request_context.generate_request_id()

    log_json = json.loads(logging_config.CustomJsonFormatter().format(_record()))

    assert log_json["message"] == "Test message"
    assert log_json["level"] == "INFO"
    assert log_json["logger"] == "test_logger"
    assert log_json.get("request_id") == req_id_str

    request_context.clear_request_id()


def test_custom_json_formatter_includes_extra_fields():
    request_context.clear_request_id()

    log_json = json.loads(
        logging_config.CustomJsonFormatter().format(_record(status=504, path="/slow"))
    )

    assert log_json["status"] == 504
    assert log_json["path"] == "/slow"
    assert "request_id" not in log_json


def test_setup_logging_loads_yaml_with_env_substitution(tmp_path, monkeypatch):
    config_file = tmp_path / "log.yaml"
    config_file.write_text(
        """
version: 1
disable_existing_loggers: false
loggers:
  bridge.test_setup:
    level: ${LOG_LEVEL}
""",
        encoding="utf-8",
    )
    monkeypatch.setenv("LOG_LEVEL", "WARNING")

    logging_config.setup_logging(str(config_file))

    assert logging.getLogger("bridge.test_setup").level == logging.WARNING


def test_setup_logging_falls_back_when_file_missing(tmp_path):
    # Must not raise for a missing config file.
    logging_config.setup_logging(str(tmp_path / "missing.yaml"))
