"""
Unit Tests for configuration loading.

The YAML files shipped in config/settings/ must validate against their
strict schemas.
"""

import pytest
from pydantic import ValidationError

from crm.backend.core.config import get_app_config
from crm.backend.core.config_schema import FeaturesSchema, JwtSchema


class TestAppConfig:
    def test_shipped_yaml_validates(self):
        config = get_app_config()

        assert config.application.api_prefix == "/api"
        assert config.security.jwt.algorithm == "HS256"
        assert config.assistant.timezone == "Europe/Paris"

    def test_graph_reminder_window(self):
        graph = get_app_config().integrations.graph

        assert graph.reminder_minutes_before == 10
        assert graph.reminder_tolerance_minutes == 2

    def test_telegram_settings(self):
        telegram = get_app_config().application.telegram

        assert telegram.webhook_path.startswith("/")
        assert telegram.default_tenant_id >= 1


class TestStrictSchemas:
    def test_unknown_key_rejected(self):
        with pytest.raises(ValidationError):
            JwtSchema(algorithm="HS256", access_token_expire_minutes=5, audience="x", unknown=True)

    def test_missing_flag_rejected(self):
        with pytest.raises(ValidationError):
            FeaturesSchema(api_detailed_errors=True)
