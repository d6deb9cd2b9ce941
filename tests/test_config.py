"""
Unit tests for configuration loading and validation.

Tests strict validation and error handling for client configs.
"""

import os
import tempfile

import pytest
import yaml

from token_costs.config.loader import ClientConfig, load_client_config
from token_costs.core.pricing import ModelPricing
from token_costs.sdk.client import DEFAULT_BASE_URL, PricingClient
from token_costs.storage.cache import JsonFileCache


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
        """Test that a valid configuration loads correctly."""
        config_path = self._write_config({
            "base_url": "https://pricing.example.com/v1",
            "time_offset_ms": 3600000,
            "suppress_deprecation_warnings": True,
            "cache_file": "/tmp/token-costs-cache.json",
            "custom_providers": {
                "my-company": {
                    "internal-llm": {"input": 0.5, "output": 1.0, "context": 32000},
                },
                "openai": {
                    "gpt-4o": {"input": 2.0, "output": 8.0, "cached": 1.0, "maxOutput": 16384},
                },
            },
        })

        config = load_client_config(config_path)

        assert config.offline is False
        assert config.base_url == "https://pricing.example.com/v1"
        assert config.time_offset_ms == 3600000
        assert config.suppress_deprecation_warnings is True
        assert config.cache_file == "/tmp/token-costs-cache.json"
        assert config.custom_providers["my-company"]["internal-llm"] == ModelPricing(
            input=0.5, output=1.0, context=32000
        )
        assert config.custom_providers["openai"]["gpt-4o"].max_output == 16384

    def test_defaults(self):
        """Test omitted keys fall back to defaults."""
        config = load_client_config(self._write_config({"time_offset_ms": 0}))

        assert config.base_url == DEFAULT_BASE_URL
        assert config.cache_file is None
        assert config.custom_providers == {}

    def test_offline_with_custom_providers(self):
        """Test offline mode with custom data is accepted."""
        config = load_client_config(self._write_config({
            "offline": True,
            "custom_providers": {"local": {"model": {"input": 0, "output": 0}}},
        }))
        assert config.offline is True

    def test_offline_requires_custom_providers(self):
        """Test offline mode without custom data is rejected."""
        config_path = self._write_config({"offline": True})
        with pytest.raises(ValueError, match="offline mode requires"):
            load_client_config(config_path)

    def test_missing_file(self):
        """Test missing files raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError, match="Client config file not found"):
            load_client_config(os.path.join(self.temp_dir, "missing.yaml"))

    def test_empty_file(self):
        """Test empty files are rejected."""
        config_path = os.path.join(self.temp_dir, "empty.yaml")
        with open(config_path, 'w', encoding='utf-8') as f:
            f.write("")
        with pytest.raises(ValueError, match="empty"):
            load_client_config(config_path)

    def test_invalid_yaml(self):
        """Test malformed YAML raises YAMLError."""
        config_path = os.path.join(self.temp_dir, "bad.yaml")
        with open(config_path, 'w', encoding='utf-8') as f:
            f.write("custom_providers: [unclosed")
        with pytest.raises(yaml.YAMLError, match="Invalid YAML"):
            load_client_config(config_path)

    def test_non_mapping_config(self):
        """Test a top-level list is rejected."""
        with pytest.raises(ValueError, match="must be a dictionary"):
            load_client_config(self._write_config(["offline"]))

    def test_unknown_top_level_key(self):
        """Test typos in top-level keys are caught."""
        with pytest.raises(ValueError, match="Unknown configuration keys"):
            load_client_config(self._write_config({"ofline": True}))

    def test_boolean_type_checked(self):
        """Test flags must be booleans."""
        with pytest.raises(ValueError, match="'offline' must be true or false"):
            load_client_config(self._write_config({"offline": "yes"}))

    def test_time_offset_type_checked(self):
        """Test time offset must be an integer."""
        with pytest.raises(ValueError, match="'time_offset_ms' must be an integer"):
            load_client_config(self._write_config({"time_offset_ms": 1.5}))
        with pytest.raises(ValueError, match="'time_offset_ms' must be an integer"):
            load_client_config(self._write_config({"time_offset_ms": True}))

    def test_base_url_cannot_be_empty(self):
        """Test an empty base url is rejected."""
        with pytest.raises(ValueError, match="base_url cannot be empty"):
            load_client_config(self._write_config({"base_url": ""}))

    def test_unknown_pricing_key(self):
        """Test typos in model pricing are caught."""
        with pytest.raises(ValueError, match="Unknown keys in custom_providers.acme.m1"):
            load_client_config(self._write_config({
                "custom_providers": {"acme": {"m1": {"input": 1, "ouput": 2}}}
            }))

    def test_negative_price(self):
        """Test negative prices are rejected."""
        with pytest.raises(ValueError, match="'input' in custom_providers.acme.m1 must be a number >= 0"):
            load_client_config(self._write_config({
                "custom_providers": {"acme": {"m1": {"input": -1, "output": 2}}}
            }))

    def test_boolean_price_rejected(self):
        """Test booleans don't pass as prices."""
        with pytest.raises(ValueError, match="must be a number"):
            load_client_config(self._write_config({
                "custom_providers": {"acme": {"m1": {"input": True, "output": 2}}}
            }))

    def test_context_must_be_positive_integer(self):
        """Test context windows are positive integers."""
        with pytest.raises(ValueError, match="'context' in custom_providers.acme.m1 must be a positive integer"):
            load_client_config(self._write_config({
                "custom_providers": {"acme": {"m1": {"input": 1, "output": 2, "context": 0}}}
            }))

    def test_model_needs_a_price(self):
        """Test entries without any pricing are rejected."""
        with pytest.raises(ValueError, match="must define at least one price"):
            load_client_config(self._write_config({
                "custom_providers": {"acme": {"m1": {}}}
            }))

    def test_media_pricing(self):
        """Test variant pricing is accepted for media models."""
        config = load_client_config(self._write_config({
            "custom_providers": {"acme": {"imagen": {"image": {"1024x1024": {"output": 0.04}}}}}
        }))
        pricing = config.custom_providers["acme"]["imagen"]
        assert pricing.image["1024x1024"].output == 0.04
        assert not pricing.has_token_pricing


class TestClientFromConfig:
    """Test building a pricing client from configuration."""

    def test_from_config(self):
        """Test config values reach the client."""
        with tempfile.TemporaryDirectory() as temp_dir:
            config = ClientConfig(
                base_url="https://pricing.example.com/v1/",
                time_offset_ms=1000,
                suppress_deprecation_warnings=True,
                cache_file=os.path.join(temp_dir, "cache.json"),
                custom_providers={"acme": {"m1": ModelPricing(input=1, output=2)}},
            )
            with PricingClient.from_config(config) as client:
                assert client.base_url == "https://pricing.example.com/v1"
                assert client.time_offset_ms == 1000
                assert client.suppress_deprecation_warnings is True
                assert isinstance(client.external_cache, JsonFileCache)
                assert client.list_models("acme") == ["m1"]

    def test_from_config_without_cache_file(self):
        """Test no external cache is set up by default."""
        with PricingClient.from_config(ClientConfig()) as client:
            assert client.external_cache is None
