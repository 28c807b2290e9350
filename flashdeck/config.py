"""Configuration: data directory discovery and persisted review settings."""

import logging
import os
import pathlib

from pydantic import ValidationError

from .models import Settings

logger = logging.getLogger(__name__)

DATA_DIR_ENV = "FLASHDECK_DATA_DIR"

CARDS_FILE = "flashcards.csv"
PROGRESS_FILE = "progress.csv"
SETTINGS_FILE = "settings.json"


def get_data_dir() -> pathlib.Path:
    return pathlib.Path(os.getenv(DATA_DIR_ENV, "data"))


def load_settings(path: pathlib.Path) -> Settings:
    """Read settings from JSON, falling back to defaults if missing or invalid."""
    path = pathlib.Path(path)
    if not path.exists():
        return Settings()
    try:
        return Settings.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValidationError) as e:
        logger.error(f"Invalid settings file {path}, using defaults: {e}")
        return Settings()


def save_settings(path: pathlib.Path, settings: Settings):
    path = pathlib.Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(settings.model_dump_json(indent=2), encoding="utf-8")
