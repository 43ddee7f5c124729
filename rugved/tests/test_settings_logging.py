"""Tests for configuration and logging setup."""

import os
import json
import logging
import sys
import tempfile
import pytest
from pathlib import Path
from unittest.mock import patch

from rugved.config.settings import Settings
from rugved.utils.logging import JsonFormatter, redact_secrets, setup_logging


class TestSettings:
    """Test settings defaults, files and environment overrides."""

    def test_defaults(self):
        settings = Settings(load_env=False)

        assert settings.providers.gemini_model == "gemini-2.5-flash"
        assert settings.voice.voice_output is True
        assert settings.timeouts.ai_response_timeout == 30.0
        assert settings.credentials.env_var == "GOOGLE_API_KEY"
        assert settings.validate() == []

    def test_env_overrides(self):
        env = {
            "GEMINI_MODEL": "gemini-pro",
            "GEMINI_TEMPERATURE": "0.2",
            "VOICE_OUTPUT": "false",
            "AI_RESPONSE_TIMEOUT": "12.5",
            "RUGVED_CREDENTIALS_PATH": "/tmp/key.json",
            "LOG_LEVEL": "DEBUG",
        }
        with patch.dict(os.environ, env):
            settings = Settings(load_env=False)
            settings.load_from_env()

        assert settings.providers.gemini_model == "gemini-pro"
        assert settings.providers.gemini_temperature == 0.2
        assert settings.voice.voice_output is False
        assert settings.timeouts.ai_response_timeout == 12.5
        assert settings.credentials.path == "/tmp/key.json"
        assert settings.logging.level == "DEBUG"

    def test_invalid_env_value_is_ignored(self):
        with patch.dict(os.environ, {"AI_RESPONSE_TIMEOUT": "soon", "VOICE_OUTPUT": "yes"}):
            settings = Settings(load_env=False)
            settings.load_from_env()

        assert settings.timeouts.ai_response_timeout == 30.0
        assert settings.voice.voice_output is True

    def test_file_round_trip(self):
        with tempfile.TemporaryDirectory() as tmp_dir:
            config_path = Path(tmp_dir) / "config.json"

            settings = Settings(load_env=False)
            settings.providers.gemini_max_tokens = 512
            settings.voice.speech_provider = "none"
            settings.save_to_file(config_path)

            loaded = Settings(config_file=config_path, load_env=False)

        assert loaded.providers.gemini_max_tokens == 512
        assert loaded.voice.speech_provider == "none"

    def test_unknown_keys_are_ignored(self):
        with tempfile.TemporaryDirectory() as tmp_dir:
            config_path = Path(tmp_dir) / "config.json"
            config_path.write_text(
                json.dumps({"voice": {"voice_output": False, "bogus": 1}})
            )

            settings = Settings(config_file=config_path, load_env=False)

        assert settings.voice.voice_output is False
        assert not hasattr(settings.voice, "bogus")

    def test_invalid_file_keeps_defaults(self):
        with tempfile.TemporaryDirectory() as tmp_dir:
            config_path = Path(tmp_dir) / "config.json"
            config_path.write_text("{broken")

            settings = Settings(config_file=config_path, load_env=False)

        assert settings.providers.gemini_model == "gemini-2.5-flash"

    def test_save_requires_path(self):
        with pytest.raises(ValueError):
            Settings(load_env=False).save_to_file()

    def test_validate_reports_issues(self):
        settings = Settings(load_env=False)
        settings.voice.sample_rate = 44100
        settings.timeouts.ai_response_timeout = 0
        settings.providers.gemini_temperature = 3.0

        issues = settings.validate()

        assert len(issues) == 3
        assert any("sample rate" in issue for issue in issues)

    def test_provider_config(self):
        settings = Settings(load_env=False)
        settings.timeouts.ai_response_timeout = 10.0

        gemini = settings.get_provider_config("gemini")
        assert gemini["model_name"] == "gemini-2.5-flash"
        assert gemini["timeout"] == 10.0

        whisperkit = settings.get_provider_config("whisperkit")
        assert whisperkit["max_duration"] == settings.timeouts.capture_max_duration

        elevenlabs = settings.get_provider_config("elevenlabs")
        assert elevenlabs["voice_id"] == settings.providers.elevenlabs_voice_id

        with pytest.raises(ValueError, match="Unknown provider type"):
            settings.get_provider_config("claude")

    def test_to_dict_sections(self):
        data = Settings(load_env=False).to_dict()
        assert set(data) == {"providers", "voice", "timeouts", "credentials", "logging"}


class TestLogging:
    """Test logging configuration."""

    def teardown_method(self):
        """Clean up after tests."""
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
            handler.close()

    def test_setup_console_logging(self):
        setup_logging(debug=True)

        root_logger = logging.getLogger()
        assert root_logger.level == logging.DEBUG
        assert len(root_logger.handlers) == 1

    def test_quiet_console(self):
        setup_logging(log_level="INFO", quiet=True)

        handler = logging.getLogger().handlers[0]
        assert handler.level == logging.WARNING

    def test_file_logging(self):
        with tempfile.TemporaryDirectory() as tmp_dir:
            setup_logging(log_file=True, log_dir=tmp_dir)

            assert len(logging.getLogger().handlers) == 2
            assert list(Path(tmp_dir).glob("rugved_*.log"))
            self.teardown_method()

    def test_json_formatter(self):
        formatter = JsonFormatter()
        record = logging.LogRecord(
            name="rugved",
            level=logging.INFO,
            pathname="pipeline.py",
            lineno=10,
            msg="Turn succeeded",
            args=(),
            exc_info=None,
        )
        record.reply_length = 12

        data = json.loads(formatter.format(record))

        assert data["level"] == "INFO"
        assert data["message"] == "Turn succeeded"
        assert data["timestamp"].endswith("Z")
        assert data["attributes"] == {"reply_length": 12}

    def test_json_formatter_exception(self):
        formatter = JsonFormatter(include_extra=False)
        try:
            raise ValueError("bad reply")
        except ValueError:
            record = logging.LogRecord(
                "rugved", logging.ERROR, "x.py", 1, "failed", (), sys.exc_info()
            )

        data = json.loads(formatter.format(record))

        assert data["exception"]["type"] == "ValueError"
        assert "attributes" not in data

    def test_secrets_are_redacted(self):
        event = {"event": "Login", "api_key": "abc123", "Authorization": "Bearer x", "turns": 2}

        redacted = redact_secrets(None, "info", event)

        assert redacted["api_key"] == "***"
        assert redacted["Authorization"] == "***"
        assert redacted["turns"] == 2
        assert redacted["event"] == "Login"
