"""
Configuration management and loading.

Handles quota defaults, admin accounts, gateway settings, and the model
catalog.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Tuple

import yaml

from multi_ai_hub.core.model_selector import (
    DEFAULT_CATALOG,
    ModelCatalog,
    ModelCategory,
    ModelDescriptor,
)
from multi_ai_hub.storage.models import FREE_DAILY_PROMPTS, UNMETERED_PROMPTS_LIMIT

DEFAULT_GATEWAY_URL = "https://ai.gateway.lovable.dev/v1"
DEFAULT_API_KEY_ENV = "LOVABLE_API_KEY"


@dataclass(frozen=True)
class LimitsConfig:
    """Per-tier prompt limits."""
    free_daily_prompts: int = FREE_DAILY_PROMPTS
    unmetered_prompts_limit: int = UNMETERED_PROMPTS_LIMIT

    def __post_init__(self):
        """Validate limits are positive."""
        if self.free_daily_prompts <= 0:
            raise ValueError("free_daily_prompts must be > 0")
        if self.unmetered_prompts_limit <= 0:
            raise ValueError("unmetered_prompts_limit must be > 0")


@dataclass(frozen=True)
class GatewayConfig:
    """Chat-completion gateway connection settings."""
    base_url: str = DEFAULT_GATEWAY_URL
    api_key_env: str = DEFAULT_API_KEY_ENV
    timeout_seconds: float = 60.0

    def __post_init__(self):
        """Validate gateway settings."""
        if not self.base_url:
            raise ValueError("gateway base_url cannot be empty")
        if not self.api_key_env:
            raise ValueError("gateway api_key_env cannot be empty")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")


@dataclass(frozen=True)
class HubConfig:
    """Complete application configuration."""
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    admin_emails: Tuple[str, ...] = ()
    catalog: ModelCatalog = DEFAULT_CATALOG

    @classmethod
    def default(cls) -> "HubConfig":
        """Configuration used when no file is given."""
        return cls()


def load_hub_config(path: str) -> HubConfig:
    """Load and validate configuration from a YAML file.

    Every section is optional; omitted sections take their defaults, but
    unknown keys and ill-typed values are rejected.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated HubConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    allowed_top_keys = {'limits', 'gateway', 'admin_emails', 'catalog'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    limits = LimitsConfig(**_section(raw_config, 'limits', {
        'free_daily_prompts': int,
        'unmetered_prompts_limit': int,
    }))
    gateway = GatewayConfig(**_section(raw_config, 'gateway', {
        'base_url': str,
        'api_key_env': str,
        'timeout_seconds': (int, float),
    }))

    admin_emails = raw_config.get('admin_emails', [])
    if not isinstance(admin_emails, list) or not all(isinstance(e, str) for e in admin_emails):
        raise ValueError("'admin_emails' must be a list of strings")

    catalog = DEFAULT_CATALOG
    if 'catalog' in raw_config:
        catalog = _parse_catalog(raw_config['catalog'])

    return HubConfig(
        limits=limits,
        gateway=gateway,
        admin_emails=tuple(admin_emails),
        catalog=catalog
    )


def _section(raw_config: Dict, name: str, schema: Dict[str, object]) -> Dict:
    """Extract an optional mapping section, checking keys and value types."""
    data = raw_config.get(name, {})
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")

    unknown_keys = set(data.keys()) - set(schema)
    if unknown_keys:
        raise ValueError(f"Unknown {name} keys: {unknown_keys}")

    for key, value in data.items():
        # bool is an int subclass but never a valid limit
        if isinstance(value, bool) or not isinstance(value, schema[key]):
            raise ValueError(f"'{key}' in {name} has invalid type {type(value).__name__}")
    return data


def _parse_catalog(data: object) -> ModelCatalog:
    """Parse and validate the model catalog list.

    Raises:
        ValueError: If the catalog is empty or any entry is invalid
    """
    if not isinstance(data, list):
        raise ValueError("'catalog' must be a list")
    if not data:
        raise ValueError("'catalog' must contain at least one model")

    required_keys = {'id', 'name', 'category', 'latency_ms', 'health'}
    allowed_keys = required_keys | {'provider', 'max_tokens'}

    models: List[ModelDescriptor] = []
    for index, entry in enumerate(data):
        path = f"catalog[{index}]"
        if not isinstance(entry, dict):
            raise ValueError(f"{path} must be a dictionary")

        unknown_keys = set(entry.keys()) - allowed_keys
        if unknown_keys:
            raise ValueError(f"Unknown keys in {path}: {unknown_keys}")
        missing_keys = required_keys - set(entry.keys())
        if missing_keys:
            raise ValueError(f"Missing required keys in {path}: {missing_keys}")

        try:
            category = ModelCategory(str(entry['category']).lower())
        except ValueError:
            valid = [c.value for c in ModelCategory]
            raise ValueError(f"'category' in {path} must be one of: {valid}")

        health = entry['health']
        if not isinstance(health, (int, float)) or not 0 <= health <= 100:
            raise ValueError(f"'health' in {path} must be between 0 and 100")
        latency = entry['latency_ms']
        if not isinstance(latency, (int, float)) or latency < 0:
            raise ValueError(f"'latency_ms' in {path} must be >= 0")

        models.append(ModelDescriptor(
            id=str(entry['id']),
            name=str(entry['name']),
            provider=str(entry.get('provider', '')),
            category=category,
            latency_ms=latency,
            health=health,
            max_tokens=int(entry.get('max_tokens', 0))
        ))

    ids = [m.id for m in models]
    if len(set(ids)) != len(ids):
        raise ValueError("Duplicate model ids in catalog")

    return ModelCatalog(tuple(models))
