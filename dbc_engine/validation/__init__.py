"""Validation — проверка конфигурации пула."""

from .config_validator import ConfigValidationResult, ConfigValidator, ConfigValidatorConfig

__all__ = [
    "ConfigValidator",
    "ConfigValidatorConfig",
    "ConfigValidationResult",
]
