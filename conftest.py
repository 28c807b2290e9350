"""Shared test fixtures."""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from flashdeck.errors import StoreError
from flashdeck.main import app, get_service
from flashdeck.models import Card, Progress, Settings
from flashdeck.services import FlashcardService
from flashdeck.stores import CsvProgressStore, CsvVaultSource

NOW = datetime(2025, 3, 10, 9, 0, 0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_card():
    def _make(card_id, deck="python", hint=None, **kwargs):
        return Card(id=card_id, deck=deck, question=f"Q {card_id}", answer=f"A {card_id}",
                    hint=hint, **kwargs)
    return _make


@pytest.fixture
def make_progress():
    """Progress reviewed ``interval + overdue_days`` days before NOW.

    A negative ``overdue_days`` puts the due date in the future.
    """
    def _make(card_id, repetitions=1, interval=1, ease_factor=2.5, lapses=0, overdue_days=0):
        last_reviewed = NOW - timedelta(days=interval + overdue_days)
        return Progress(card_id=card_id, ease_factor=ease_factor, interval=interval,
                        repetitions=repetitions, lapses=lapses,
                        due_date=last_reviewed + timedelta(days=interval),
                        last_reviewed=last_reviewed)
    return _make


class RecordingStore:
    """In-memory progress store that can be told to fail."""

    def __init__(self, fail=False):
        self.fail = fail
        self.saved = {}
        self.calls = 0

    def load(self):
        return dict(self.saved)

    def save(self, card_id, progress):
        self.calls += 1
        if self.fail:
            raise StoreError("disk full", card_id=card_id)
        self.saved[card_id] = progress

    def save_many(self, progress_by_id, replace=False):
        if self.fail:
            raise StoreError("disk full")
        if replace:
            self.saved = {}
        self.saved.update(progress_by_id)


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def failing_store():
    return RecordingStore(fail=True)


@pytest.fixture
def vault(tmp_path):
    return CsvVaultSource(str(tmp_path / "flashcards.csv"))


@pytest.fixture
def progress_store(tmp_path):
    return CsvProgressStore(str(tmp_path / "progress.csv"))


@pytest.fixture
def service(vault, progress_store):
    svc = FlashcardService(vault, progress_store, settings=Settings(), clock=lambda: NOW)
    svc.load_data()
    return svc


@pytest.fixture
def client(service):
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()
