"""
Configuration management and loading.

Loads pricing client settings from YAML.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from token_costs.core.pricing import ModelPricing
from token_costs.sdk.client import DEFAULT_BASE_URL

_NUMERIC_PRICE_KEYS = ('input', 'output', 'cached')
_INTEGER_KEYS = ('context', 'maxOutput')
_VARIANT_KEYS = ('image', 'audio', 'video')


@dataclass(frozen=True)
class ClientConfig:
    """Settings for a PricingClient."""
    offline: bool = False
    base_url: str = DEFAULT_BASE_URL
    time_offset_ms: int = 0
    suppress_deprecation_warnings: bool = False
    cache_file: Optional[str] = None
    custom_providers: Dict[str, Dict[str, ModelPricing]] = field(default_factory=dict)

    def __post_init__(self):
        """Validate settings are usable."""
        if self.offline and not self.custom_providers:
            raise ValueError("offline mode requires at least one custom provider")
        if not self.base_url:
            raise ValueError("base_url cannot be empty")


def load_client_config(path: str) -> ClientConfig:
    """Load and validate client configuration from YAML file.

    Strict validation rejects unknown keys so a typo can't silently fall
    back to remote pricing.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated ClientConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Client config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = {
        'offline', 'base_url', 'time_offset_ms',
        'suppress_deprecation_warnings', 'cache_file', 'custom_providers'
    }
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    for key in ('offline', 'suppress_deprecation_warnings'):
        if key in raw_config and not isinstance(raw_config[key], bool):
            raise ValueError(f"'{key}' must be true or false")

    time_offset = raw_config.get('time_offset_ms', 0)
    if isinstance(time_offset, bool) or not isinstance(time_offset, int):
        raise ValueError("'time_offset_ms' must be an integer")

    for key in ('base_url', 'cache_file'):
        if key in raw_config and not isinstance(raw_config[key], str):
            raise ValueError(f"'{key}' must be a string")

    providers_data = raw_config.get('custom_providers') or {}
    if not isinstance(providers_data, dict):
        raise ValueError("'custom_providers' must be a dictionary")

    custom_providers = {}
    for provider, models in providers_data.items():
        if not isinstance(models, dict):
            raise ValueError(f"Provider '{provider}' must be a dictionary of models")
        custom_providers[str(provider)] = {
            str(model_id): _parse_model_pricing(data, f"custom_providers.{provider}.{model_id}")
            for model_id, data in models.items()
        }

    return ClientConfig(
        offline=raw_config.get('offline', False),
        base_url=raw_config.get('base_url', DEFAULT_BASE_URL),
        time_offset_ms=time_offset,
        suppress_deprecation_warnings=raw_config.get('suppress_deprecation_warnings', False),
        cache_file=raw_config.get('cache_file'),
        custom_providers=custom_providers
    )


def _parse_model_pricing(data: Any, path: str) -> ModelPricing:
    """Parse and validate one custom model's pricing.

    Args:
        data: Model pricing data
        path: Path for error messages

    Returns:
        Validated ModelPricing

    Raises:
        ValueError: If pricing is invalid
    """
    if not isinstance(data, dict):
        raise ValueError(f"{path} must be a dictionary")

    allowed_keys = set(_NUMERIC_PRICE_KEYS) | set(_INTEGER_KEYS) | set(_VARIANT_KEYS)
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    for key in _NUMERIC_PRICE_KEYS:
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            raise ValueError(f"'{key}' in {path} must be a number >= 0")

    for key in _INTEGER_KEYS:
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValueError(f"'{key}' in {path} must be a positive integer")

    for key in _VARIANT_KEYS:
        variants = data.get(key)
        if variants is not None and not isinstance(variants, dict):
            raise ValueError(f"'{key}' in {path} must be a dictionary of variants")

    if not any(data.get(key) is not None for key in allowed_keys):
        raise ValueError(f"{path} must define at least one price")

    return ModelPricing.from_dict(data)
