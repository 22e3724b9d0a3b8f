"""
Tests for environment-driven configuration and structured logging.

Run with: pytest test_config.py -v
"""

import json
import logging

import config as config_module
from config import ServerConfig, get_env_bool, get_env_int
from logging_config import (
    DevelopmentFormatter,
    JSONFormatter,
    connection_id_var,
    get_logger,
)


class TestEnvHelpers:

    def test_bool_values(self, monkeypatch):
        for raw in ["true", "1", "YES", "on"]:
            monkeypatch.setenv("FLAG", raw)
            assert get_env_bool("FLAG") is True
        for raw in ["false", "0", "no", "OFF"]:
            monkeypatch.setenv("FLAG", raw)
            assert get_env_bool("FLAG", True) is False

    def test_bool_garbage_uses_default(self, monkeypatch):
        monkeypatch.setenv("FLAG", "maybe")
        assert get_env_bool("FLAG", True) is True

    def test_int_garbage_uses_default(self, monkeypatch):
        monkeypatch.setenv("NUM", "lots")
        assert get_env_int("NUM", 9) == 9


class TestServerConfig:

    def test_defaults(self, monkeypatch):
        for key in ["PORT", "ROOM_PASSWORD", "ENVIRONMENT"]:
            monkeypatch.delenv(key, raising=False)
        cfg = ServerConfig.from_env()
        assert cfg.PORT == 3000
        assert cfg.ROOM_PASSWORD == "5Crown"
        assert cfg.ENVIRONMENT == "development"

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("ROOM_PASSWORD", "secret")
        monkeypatch.setenv("DEBUG", "true")
        cfg = ServerConfig.from_env()
        assert cfg.PORT == 8080
        assert cfg.ROOM_PASSWORD == "secret"
        assert cfg.DEBUG is True

    def test_reload_config(self, monkeypatch):
        original = config_module.config
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        try:
            assert config_module.reload_config().LOG_LEVEL == "DEBUG"
            assert config_module.config.LOG_LEVEL == "DEBUG"
        finally:
            config_module.config = original


def make_record(level=logging.INFO, msg="hello", **extra):
    record = logging.LogRecord("game", level, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters:

    def test_json_includes_context(self):
        token = connection_id_var.set("conn-1234")
        try:
            output = JSONFormatter().format(make_record(room_code="ABCD", player_id="p1"))
        finally:
            connection_id_var.reset(token)

        data = json.loads(output)
        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["connection_id"] == "conn-1234"
        assert data["room_code"] == "ABCD"
        assert data["player_id"] == "p1"
        assert "source" not in data

    def test_json_errors_carry_source(self):
        data = json.loads(JSONFormatter().format(make_record(level=logging.ERROR)))
        assert data["source"]["line"] == 10

    def test_development_format(self):
        output = DevelopmentFormatter().format(make_record(room_code="ABCD"))
        assert "room=ABCD" in output
        assert output.endswith("game [room=ABCD] - hello")

    def test_development_format_shortens_ids(self):
        token = connection_id_var.set("0123456789abcdef")
        try:
            output = DevelopmentFormatter().format(make_record(player_id="player-123456789"))
        finally:
            connection_id_var.reset(token)
        assert "[conn=01234567, player=player-1]" in output


class TestContextLogger:

    def test_with_context_merges(self):
        logger = get_logger("test").with_context(room_code="ABCD")
        child = logger.with_context(player_id="p1")
        assert child.extra == {"room_code": "ABCD", "player_id": "p1"}
        assert logger.extra == {"room_code": "ABCD"}

    def test_context_reaches_records(self, caplog):
        logger = get_logger("fivecrowns.test").with_context(room_code="WXYZ")
        with caplog.at_level(logging.INFO, logger="fivecrowns.test"):
            logger.info("round started")
        assert caplog.records[-1].room_code == "WXYZ"
