"""
Unit Tests for settings loading.
"""

import pytest
from pydantic import ValidationError

from termrelay.backend.config import Settings


class TestSettings:

    def test_defaults(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TERMRELAY_INSTANCE_PATH", str(tmp_path))
        monkeypatch.delenv("AUTH_TOKEN", raising=False)

        settings = Settings()

        assert settings.server_port == 3001
        assert settings.auth_token == ""
        assert settings.log_dir == tmp_path / "logs"
        assert settings.flow_low_water < settings.flow_high_water

    def test_reads_instance_config_toml(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TERMRELAY_INSTANCE_PATH", str(tmp_path))
        monkeypatch.delenv("AUTH_TOKEN", raising=False)
        (tmp_path / "config.toml").write_text('auth_token = "from-toml"\nsession_ttl_hours = 2\n')

        settings = Settings()

        assert settings.auth_token == "from-toml"
        assert settings.session_ttl_hours == 2

    def test_environment_overrides_toml(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TERMRELAY_INSTANCE_PATH", str(tmp_path))
        monkeypatch.setenv("AUTH_TOKEN", "from-env")
        (tmp_path / "config.toml").write_text('auth_token = "from-toml"\n')

        assert Settings().auth_token == "from-env"

    def test_water_marks_validated(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TERMRELAY_INSTANCE_PATH", str(tmp_path))

        with pytest.raises(ValidationError):
            Settings(flow_high_water=1000, flow_low_water=1000)
