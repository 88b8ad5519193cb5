"""Configuration package for the reflect service."""

from reflect.config.app_config import (
    AppConfig,
    AuditConfig,
    ReviewConfig,
    StorageConfig,
    TimerConfig,
    clear_config_cache,
    load_app_config,
)
from reflect.config.techniques import (
    Question,
    Technique,
    UnknownTechniqueError,
    get_technique,
    list_techniques,
    load_techniques,
    require_technique,
)

__all__ = [
    "AppConfig",
    "AuditConfig",
    "ReviewConfig",
    "StorageConfig",
    "TimerConfig",
    "clear_config_cache",
    "load_app_config",
    "Question",
    "Technique",
    "UnknownTechniqueError",
    "get_technique",
    "list_techniques",
    "load_techniques",
    "require_technique",
]
