from __future__ import annotations

from registry_migrator.config.loader import YamlConfigLoader, prepare_data_dirs
from registry_migrator.config.models import AppConfig, ConfigLoadRequest, MigrationPolicy

__all__ = ["AppConfig", "ConfigLoadRequest", "MigrationPolicy", "YamlConfigLoader", "prepare_data_dirs"]
