"""Configuration loader with Pydantic v2 validation.

Loads and validates a ``knight-policy.yaml`` file into a typed
:class:`KnightPolicyConfig` object. Unknown keys are allowed to support
future schema additions without breakage.

Example
-------
>>> loader = ConfigLoader()
>>> config = loader.load_string("policy_files: [policies.yaml]\\nlogging: {level: debug}")
>>> config.logging.level
'DEBUG'
"""
from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class LoggingConfig(BaseModel):
    """Logging settings applied by the CLI."""

    model_config = {"extra": "allow"}

    level: str = Field(default="WARNING")
    format: str = Field(default="%(asctime)s %(levelname)s %(name)s: %(message)s")

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        upper = value.upper()
        if upper not in _LEVELS:
            raise ValueError(f"Unknown log level '{value}'. Valid: {_LEVELS}")
        return upper

    def apply(self) -> None:
        """Configure the root logger from these settings."""
        logging.basicConfig(level=getattr(logging, self.level), format=self.format)


class KnightPolicyConfig(BaseModel):
    """Top-level configuration schema.

    All sections are optional and fall back to defaults.
    """

    model_config = {"extra": "allow"}

    version: str = Field(default="1")
    policy_files: list[Path] = Field(default_factory=list)
    include_system_policies: bool = Field(default=True)
    strict: bool = Field(default=False)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class ConfigLoader:
    """Loads and validates YAML configuration."""

    def load(self, config_path: Path) -> KnightPolicyConfig:
        """Load and validate a configuration file.

        Relative ``policy_files`` entries are resolved against the
        directory holding the configuration file.

        Raises
        ------
        FileNotFoundError:
            When the config file does not exist.
        ValueError:
            When the YAML content fails Pydantic validation.
        """
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration not found: {config_path}")

        with config_path.open("r", encoding="utf-8") as fh:
            raw: dict[str, object] = yaml.safe_load(fh) or {}

        config = KnightPolicyConfig.model_validate(raw)
        base = config_path.parent
        config.policy_files = [p if p.is_absolute() else base / p for p in config.policy_files]
        return config

    def load_string(self, yaml_content: str) -> KnightPolicyConfig:
        raw: dict[str, object] = yaml.safe_load(yaml_content) or {}
        return KnightPolicyConfig.model_validate(raw)

    def defaults(self) -> KnightPolicyConfig:
        """Return a configuration with all defaults applied."""
        return KnightPolicyConfig()
