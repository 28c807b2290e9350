"""Tests for data directory discovery and persisted settings."""

import pathlib

from flashdeck.config import DATA_DIR_ENV, get_data_dir, load_settings, save_settings
from flashdeck.models import Settings


def test_data_dir_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv(DATA_DIR_ENV, str(tmp_path))
    assert get_data_dir() == tmp_path


def test_data_dir_default(monkeypatch):
    monkeypatch.delenv(DATA_DIR_ENV, raising=False)
    assert get_data_dir() == pathlib.Path("data")


def test_missing_settings_file_gives_defaults(tmp_path):
    assert load_settings(tmp_path / "settings.json") == Settings()


def test_settings_round_trip(tmp_path):
    path = tmp_path / "nested" / "settings.json"
    settings = Settings(daily_limit=12, new_cards_per_day=0, show_hints_by_default=True)
    save_settings(path, settings)
    assert load_settings(path) == settings


def test_invalid_settings_fall_back_to_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text('{"daily_limit": 0}', encoding="utf-8")
    assert load_settings(path) == Settings()
    path.write_text("not json", encoding="utf-8")
    assert load_settings(path) == Settings()
