"""Project configuration: ``.a11ycheck/config.yml`` loading with defaults."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import yaml

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

STATE_DIR = ".a11ycheck"
DB_NAME = "a11ycheck.db"
CONFIG_NAME = "config.yml"

DEFAULT_MAX_RESOURCES = 1000
DEFAULT_MAX_CONTENT_SIZE = 200_000
DEFAULT_MAX_ALT_LENGTH = 120

DEFAULT_CONFIG_YAML = """\
scan:
  max_resources: 1000
  max_content_size: 200000
rules:
  disabled: []
  max_alt_length: 120
# llm:
#   provider: anthropic
#   model: claude-sonnet-4-20250514
#   api_key_env: ANTHROPIC_API_KEY
"""


class ConfigError(Exception):
    """Raised when config.yml contains an invalid value."""


@dataclass(frozen=True)
class LLMConfig:
    """LLM provider configuration."""

    provider: str  # "anthropic" or "openai"
    model: str
    api_key_env: str
    max_tokens: int = 300


@dataclass(frozen=True)
class Config:
    """Effective project configuration."""

    max_resources: int = DEFAULT_MAX_RESOURCES
    max_content_size: int = DEFAULT_MAX_CONTENT_SIZE
    max_alt_length: int = DEFAULT_MAX_ALT_LENGTH
    disabled_rules: frozenset[str] = field(default_factory=frozenset)
    llm: LLMConfig | None = None


def state_dir(project_root: Path) -> Path:
    return project_root / STATE_DIR


def db_path(project_root: Path) -> Path:
    return project_root / STATE_DIR / DB_NAME


def parse_llm_config(raw: dict[str, Any]) -> LLMConfig:
    """Parse and validate LLM config from config.yml ``llm`` section.

    Raises
    ------
    ConfigError
        If required fields are missing or provider is unsupported.
    """
    provider = raw.get("provider", "")
    if provider not in ("anthropic", "openai"):
        msg = f"Unsupported LLM provider: {provider!r}. Use 'anthropic' or 'openai'."
        raise ConfigError(msg)

    model = raw.get("model", "")
    if not model:
        msg = "LLM config requires 'model' field."
        raise ConfigError(msg)

    api_key_env = raw.get("api_key_env", "")
    if not api_key_env:
        msg = "LLM config requires 'api_key_env' field."
        raise ConfigError(msg)

    max_tokens = int(raw.get("max_tokens", 300))

    return LLMConfig(
        provider=provider,
        model=model,
        api_key_env=api_key_env,
        max_tokens=max_tokens,
    )


def _positive_int(section: dict[str, Any], key: str, default: int) -> int:
    raw = section.get(key, default)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-integer %s=%r in config.yml", key, raw)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%r in config.yml", key, raw)
        return default
    return value


def load_config(project_root: Path) -> Config:
    """Load ``.a11ycheck/config.yml``.

    Falls back to defaults for missing keys or a missing file. A malformed
    file is logged and ignored; an invalid ``llm`` section raises
    :class:`ConfigError` since generation cannot work without it.
    """
    config_path = state_dir(project_root) / CONFIG_NAME
    if not config_path.is_file():
        return Config()

    try:
        with config_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError):
        logger.warning("Failed to read config.yml, using defaults")
        return Config()

    if not isinstance(data, dict):
        return Config()

    scan_section = data.get("scan")
    if not isinstance(scan_section, dict):
        scan_section = {}
    rules_section = data.get("rules")
    if not isinstance(rules_section, dict):
        rules_section = {}

    disabled_raw = rules_section.get("disabled", [])
    if not isinstance(disabled_raw, list):
        logger.warning("rules.disabled must be a list, ignoring")
        disabled_raw = []

    llm: LLMConfig | None = None
    llm_section = data.get("llm")
    if isinstance(llm_section, dict):
        llm = parse_llm_config(llm_section)

    return Config(
        max_resources=_positive_int(scan_section, "max_resources", DEFAULT_MAX_RESOURCES),
        max_content_size=_positive_int(
            scan_section, "max_content_size", DEFAULT_MAX_CONTENT_SIZE
        ),
        max_alt_length=_positive_int(rules_section, "max_alt_length", DEFAULT_MAX_ALT_LENGTH),
        disabled_rules=frozenset(str(r) for r in disabled_raw),
        llm=llm,
    )
