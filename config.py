import os
import logging
import yaml

from settings_schema import EngineSettings, validate_settings

APP_VERSION = "1.0.0"

ENV_OVERRIDES = {
    "WORKOUT_DB_PATH": "db_path",
    "ENGINE_LOG_LEVEL": "log_level",
}


class YamlConfig:
    """Load and save engine settings to a YAML file."""

    def __init__(self, path: str = "settings.yaml") -> None:
        self.path = path

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return data

    def save(self, data: dict) -> None:
        validate_settings(data)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(dict(data), f)


def load_settings(path: str = "settings.yaml") -> EngineSettings:
    """Return validated settings from ``path`` with environment overrides."""
    data = YamlConfig(path).load()
    for env, key in ENV_OVERRIDES.items():
        value = os.environ.get(env)
        if value:
            data[key] = value
    return validate_settings(data)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
