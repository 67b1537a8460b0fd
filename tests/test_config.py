import json
import logging
from pathlib import Path

import pytest

import config
from logging_config import StructuredFormatter, request_id_var, set_request_id


def test_dev_falls_back_to_fixed_secrets(monkeypatch):
    monkeypatch.setattr(config, "ENV", "dev")
    monkeypatch.setattr(config, "MASTER_KEY", "")
    monkeypatch.setattr(config, "ISSUER_SECRET", "")

    settings = config.flask_config()
    assert settings["MASTER_KEY"] == config.DEV_MASTER_KEY
    assert settings["ISSUER_SECRET"] == config.DEV_ISSUER_SECRET
    assert settings["MAX_CONTENT_LENGTH"] == config.MAX_UPLOAD_BYTES


def test_prod_requires_secrets(monkeypatch):
    monkeypatch.setattr(config, "ENV", "prod")
    monkeypatch.setattr(config, "MASTER_KEY", "")
    monkeypatch.setattr(config, "ISSUER_SECRET", "set")

    with pytest.raises(RuntimeError, match="MASTER_KEY"):
        config.flask_config()


def test_structured_formatter_includes_request_id():
    token = request_id_var.set("")
    try:
        set_request_id("req-42")
        record = logging.LogRecord("certs", logging.INFO, __file__, 1, "issued %s", (7,), None)
        line = json.loads(StructuredFormatter().format(record))
    finally:
        request_id_var.reset(token)

    assert line["message"] == "issued 7"
    assert line["level"] == "INFO"
    assert line["request_id"] == "req-42"


def test_directly_imported_libraries_are_declared():
    pyproject = (Path(__file__).resolve().parent.parent / "pyproject.toml").read_text()
    for name in ("flask", "flask-cors", "werkzeug", "flask-sqlalchemy", "python-dotenv"):
        assert f'"{name}>=' in pyproject
