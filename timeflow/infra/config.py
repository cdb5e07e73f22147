"""
Configuration management using Pydantic Settings.

Sources, highest priority first:
1. Keyword arguments
2. Environment variables (``TIMEFLOW_*``) and ``.env``
3. ``settings.yaml`` in the config directory
4. Defaults

Building settings has no side effects. Directories are only created when a
database file or the preferences file is about to be written.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Type
import yaml

from pydantic import Field, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from timeflow.domain.models import PeriodKind, UserPreferences
from timeflow.infra.repository import DEFAULT_STORAGE_KEY

APP_DIR_NAME = "timeflow"
ENV_PREFIX = "TIMEFLOW_"
PREFERENCES_FILE = "settings.yaml"
PREFERENCE_FIELDS = ("tick_interval_seconds", "seed_default_tasks", "default_period", "storage_key")


def default_config_dir() -> Path:
    if os.name == 'nt':
        return Path(os.getenv('APPDATA', Path.home())) / APP_DIR_NAME
    return Path(os.getenv('XDG_CONFIG_HOME', Path.home() / '.config')) / APP_DIR_NAME


def default_data_dir() -> Path:
    if os.name == 'nt':
        return Path(os.getenv('APPDATA', Path.home())) / APP_DIR_NAME
    return Path(os.getenv('XDG_DATA_HOME', Path.home() / '.local' / 'share')) / APP_DIR_NAME


class YamlPreferencesSource(PydanticBaseSettingsSource):
    """
    Reads preference fields from ``settings.yaml``.

    The file lives in the config directory given as keyword argument, in
    ``TIMEFLOW_CONFIG_DIR``, or in the per-OS default.
    """

    def __init__(self, settings_cls: Type[BaseSettings], config_dir: Optional[Path]):
        super().__init__(settings_cls)
        self.path = Path(config_dir or default_config_dir()) / PREFERENCES_FILE
        self.data = self._read()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        with open(self.path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} must contain a mapping")
        return {k: v for k, v in data.items() if k in PREFERENCE_FIELDS}

    def get_field_value(self, field: FieldInfo, field_name: str) -> Tuple[Any, str, bool]:
        return self.data.get(field_name), field_name, False

    def __call__(self) -> Dict[str, Any]:
        return dict(self.data)


class Settings(BaseSettings):
    """Paths, database and tracker preferences"""
    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
        validate_assignment=True,
    )

    # Paths
    config_dir: Path = Field(default_factory=default_config_dir)
    data_dir: Path = Field(default_factory=default_data_dir)

    # Database
    database_url: Optional[str] = None

    # Preferences
    tick_interval_seconds: float = Field(default=1.0, gt=0, le=60)
    seed_default_tasks: bool = True
    default_period: PeriodKind = PeriodKind.DAY
    storage_key: str = Field(default=DEFAULT_STORAGE_KEY, min_length=1, max_length=255)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        config_dir = init_settings.init_kwargs.get("config_dir") or os.getenv(f"{ENV_PREFIX}CONFIG_DIR")
        yaml_settings = YamlPreferencesSource(settings_cls, config_dir)
        return init_settings, env_settings, dotenv_settings, yaml_settings, file_secret_settings

    @field_validator("storage_key")
    @classmethod
    def check_storage_key(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("storage_key must not be blank")
        return value

    @field_validator("database_url")
    @classmethod
    def check_database_url(cls, value: Optional[str]) -> Optional[str]:
        if value and "+" not in value.split("://", 1)[0]:
            raise ValueError("database_url must name an async driver, e.g. sqlite+aiosqlite://")
        return value or None

    @property
    def preferences(self) -> UserPreferences:
        """Runtime preferences handed to the tracker"""
        return UserPreferences(
            tick_interval_seconds=self.tick_interval_seconds,
            seed_default_tasks=self.seed_default_tasks,
            default_period=self.default_period,
        )

    @property
    def preferences_file(self) -> Path:
        return self.config_dir / PREFERENCES_FILE

    def save_preferences(self):
        """Write the preference fields to settings.yaml"""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        data = self.model_dump(mode="json", include=set(PREFERENCE_FIELDS))
        with open(self.preferences_file, 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f, default_flow_style=False)

    def get_db_url(self, create_dirs: bool = False) -> str:
        """
        Database URL, defaulting to a SQLite file in the data directory.

        Args:
            create_dirs: create the data directory for the default file
        """
        if self.database_url:
            return self.database_url

        if create_dirs:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        return f"sqlite+aiosqlite:///{self.data_dir / 'timeflow.db'}"


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Re-read environment and settings.yaml"""
    global _settings
    _settings = Settings()
    return _settings
