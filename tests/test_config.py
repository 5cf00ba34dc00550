"""
Unit tests for configuration loading and validation.
"""

import os
import tempfile

import pytest
import yaml

from multi_ai_hub.config.loader import (
    DEFAULT_GATEWAY_URL,
    GatewayConfig,
    HubConfig,
    LimitsConfig,
    load_hub_config,
)
from multi_ai_hub.core.model_selector import DEFAULT_CATALOG, ModelCategory


class TestConfigLoading:
    """Test configuration loading and validation."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data, filename: str = "config.yaml") -> str:
        """Write configuration data to temporary file."""
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_valid_config_loads_correctly(self):
        config_path = self._write_config({
            "limits": {"free_daily_prompts": 5, "unmetered_prompts_limit": 1000},
            "admin_emails": ["admin@example.com"],
            "gateway": {
                "base_url": "https://gateway.test/v1",
                "api_key_env": "TEST_KEY",
                "timeout_seconds": 30
            },
            "catalog": [
                {"id": "fast-1", "name": "Fast One", "category": "fast", "latency_ms": 40, "health": 99},
                {"id": "long-1", "name": "Long One", "provider": "Acme", "category": "long-form",
                 "latency_ms": 120, "health": 95, "max_tokens": 8000},
            ]
        })
        config = load_hub_config(config_path)

        assert config.limits.free_daily_prompts == 5
        assert config.limits.unmetered_prompts_limit == 1000
        assert config.admin_emails == ("admin@example.com",)
        assert config.gateway.base_url == "https://gateway.test/v1"
        assert config.gateway.api_key_env == "TEST_KEY"
        assert config.gateway.timeout_seconds == 30
        assert [m.id for m in config.catalog.models] == ["fast-1", "long-1"]
        assert config.catalog.models[1].category == ModelCategory.LONG_FORM
        assert config.catalog.models[1].max_tokens == 8000

    def test_omitted_sections_use_defaults(self):
        config = load_hub_config(self._write_config({"admin_emails": []}))
        assert config.limits == LimitsConfig()
        assert config.gateway.base_url == DEFAULT_GATEWAY_URL
        assert config.catalog is DEFAULT_CATALOG

    def test_default_config(self):
        config = HubConfig.default()
        assert config.limits.free_daily_prompts == 10
        assert config.gateway.api_key_env == "LOVABLE_API_KEY"
        assert config.admin_emails == ()

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError):
            load_hub_config(os.path.join(self.temp_dir, "nope.yaml"))

    def test_empty_file(self):
        path = os.path.join(self.temp_dir, "empty.yaml")
        open(path, 'w').close()
        with pytest.raises(ValueError, match="empty"):
            load_hub_config(path)

    def test_invalid_yaml(self):
        path = os.path.join(self.temp_dir, "bad.yaml")
        with open(path, 'w') as f:
            f.write("limits: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_hub_config(path)

    def test_unknown_top_level_key(self):
        with pytest.raises(ValueError, match="Unknown configuration keys"):
            load_hub_config(self._write_config({"billing": {}}))

    def test_unknown_limits_key(self):
        with pytest.raises(ValueError, match="Unknown limits keys"):
            load_hub_config(self._write_config({"limits": {"weekly": 3}}))

    def test_non_positive_limit(self):
        with pytest.raises(ValueError, match="free_daily_prompts must be > 0"):
            load_hub_config(self._write_config({"limits": {"free_daily_prompts": 0}}))

    def test_wrong_limit_type(self):
        with pytest.raises(ValueError, match="invalid type"):
            load_hub_config(self._write_config({"limits": {"free_daily_prompts": "ten"}}))

    def test_bool_is_not_a_limit(self):
        with pytest.raises(ValueError, match="invalid type"):
            load_hub_config(self._write_config({"limits": {"free_daily_prompts": True}}))

    def test_admin_emails_must_be_strings(self):
        with pytest.raises(ValueError, match="admin_emails"):
            load_hub_config(self._write_config({"admin_emails": "admin@example.com"}))

    def test_empty_catalog_rejected(self):
        with pytest.raises(ValueError, match="at least one model"):
            load_hub_config(self._write_config({"catalog": []}))

    def test_catalog_entry_missing_keys(self):
        with pytest.raises(ValueError, match="Missing required keys"):
            load_hub_config(self._write_config({"catalog": [{"id": "x", "name": "X"}]}))

    def test_catalog_invalid_category(self):
        with pytest.raises(ValueError, match="must be one of"):
            load_hub_config(self._write_config({"catalog": [
                {"id": "x", "name": "X", "category": "tts", "latency_ms": 10, "health": 90}
            ]}))

    def test_catalog_health_out_of_range(self):
        with pytest.raises(ValueError, match="between 0 and 100"):
            load_hub_config(self._write_config({"catalog": [
                {"id": "x", "name": "X", "category": "fast", "latency_ms": 10, "health": 120}
            ]}))

    def test_catalog_duplicate_ids(self):
        entry = {"id": "x", "name": "X", "category": "fast", "latency_ms": 10, "health": 90}
        with pytest.raises(ValueError, match="Duplicate"):
            load_hub_config(self._write_config({"catalog": [entry, entry]}))


class TestConfigValidation:
    """Test dataclass-level validation."""

    def test_gateway_timeout_must_be_positive(self):
        with pytest.raises(ValueError, match="timeout_seconds"):
            GatewayConfig(timeout_seconds=0)

    def test_unmetered_limit_must_be_positive(self):
        with pytest.raises(ValueError, match="unmetered_prompts_limit"):
            LimitsConfig(unmetered_prompts_limit=-1)
