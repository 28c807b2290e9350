"""CSV-backed collaborators: the card vault and the progress store."""

import logging
import os
import uuid
from typing import Dict, List

import pandas as pd
from pydantic import ValidationError

from .errors import StoreError, SyncError
from .models import Card, Progress, slugify_deck

logger = logging.getLogger(__name__)

CARD_COLUMNS = {
    'id': '',
    'deck': 'default',
    'kind': 'basic',
    'question': '',
    'answer': '',
    'hint': '',
    'image_url': '',
    'source_file': '',
    'source_line': 0,
    'created_at': '',
}

# Older exports used front/back and numbered chapters
LEGACY_CARD_COLUMNS = {'front': 'question', 'back': 'answer', 'chapter': 'deck'}

PROGRESS_COLUMNS = [
    'card_id', 'ease_factor', 'interval', 'repetitions', 'lapses',
    'due_date', 'last_reviewed', 'last_rating',
]

OPTIONAL_FIELDS = ('hint', 'image_url', 'source_file', 'created_at', 'last_reviewed', 'last_rating')


def _read_csv(file_path: str) -> pd.DataFrame:
    return pd.read_csv(file_path, dtype=str, keep_default_na=False, encoding='utf-8-sig')


def _row_to_record(row: dict) -> dict:
    """Blank optional cells mean 'not set'."""
    return {k: (None if k in OPTIONAL_FIELDS and v == '' else v) for k, v in row.items()}


class CsvVaultSource:
    """Cards kept in a CSV file, one row per card.

    Rows that do not validate are skipped and logged. While the last read was
    incomplete the file is never rewritten, so a bad row or an unreadable file
    cannot be replaced by a partial collection.
    """

    def __init__(self, file_path: str = "flashcards.csv"):
        self.file_path = file_path
        self.load_failed = False
        self.skipped_rows = 0

    @property
    def writable(self) -> bool:
        return not self.load_failed and self.skipped_rows == 0

    def _read_cards(self) -> List[Card]:
        df = _read_csv(self.file_path)
        df = self._ensure_columns(df)

        cards = []
        skipped = 0
        for line, row in enumerate(df.to_dict('records'), start=2):
            try:
                cards.append(Card.model_validate(_row_to_record(row)))
            except ValidationError as e:
                skipped += 1
                logger.warning(f"Skipping invalid card at {self.file_path}:{line}: {e}")
        self.skipped_rows = skipped
        return cards

    def _ensure_columns(self, df: pd.DataFrame) -> pd.DataFrame:
        for old, new in LEGACY_CARD_COLUMNS.items():
            if old in df.columns and new not in df.columns:
                df[new] = df[old]
        for col, default in CARD_COLUMNS.items():
            if col not in df.columns:
                df[col] = str(default)
        df['deck'] = df['deck'].map(slugify_deck)
        df['source_line'] = df['source_line'].replace('', '0')

        mask = df['id'] == ''
        if mask.any():
            df.loc[mask, 'id'] = [str(uuid.uuid4()) for _ in range(mask.sum())]
        return df[list(CARD_COLUMNS)]

    def load_cards(self) -> List[Card]:
        """Loads cards from CSV; an unreadable vault yields no cards."""
        if not os.path.exists(self.file_path):
            logger.warning(f"Card file not found: {self.file_path}")
            self.load_failed = False
            self.skipped_rows = 0
            return []
        try:
            cards = self._read_cards()
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            logger.error(f"Error loading cards from {self.file_path}: {e}")
            self.load_failed = True
            return []
        self.load_failed = False
        return cards

    def refresh(self) -> List[Card]:
        """Re-reads the vault, failing loudly."""
        if not os.path.exists(self.file_path):
            raise SyncError(f"Card file not found: {self.file_path}")
        try:
            cards = self._read_cards()
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            self.load_failed = True
            raise SyncError(f"Could not read cards from {self.file_path}: {e}") from e
        self.load_failed = False
        return cards

    def save_cards(self, cards: List[Card]):
        if not self.writable:
            raise SyncError(f"Not overwriting {self.file_path}: its last read was incomplete")
        df = pd.DataFrame([card.model_dump(mode='json') for card in cards], columns=list(CARD_COLUMNS))
        try:
            df.to_csv(self.file_path, index=False, encoding='utf-8-sig')
        except OSError as e:
            raise SyncError(f"Could not write cards to {self.file_path}: {e}") from e

    def append_card(self, card: Card):
        row = pd.DataFrame([card.model_dump(mode='json')], columns=list(CARD_COLUMNS))
        exists = os.path.exists(self.file_path)
        try:
            row.to_csv(self.file_path, mode='a', header=not exists, index=False,
                       encoding='utf-8' if exists else 'utf-8-sig')
        except OSError as e:
            raise SyncError(f"Could not append card {card.id}: {e}") from e


class CsvProgressStore:
    """Review progress kept in a CSV file keyed by card id.

    The whole file is rewritten on every save, which is fine for the size of a
    personal collection.
    """

    def __init__(self, file_path: str = "progress.csv"):
        self.file_path = file_path
        self._records: Dict[str, Progress] = {}

    def load(self) -> Dict[str, Progress]:
        if not os.path.exists(self.file_path):
            self._records = {}
            return {}
        try:
            df = _read_csv(self.file_path)
            records = [Progress.model_validate(_row_to_record(row)) for row in df.to_dict('records')]
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError, ValidationError) as e:
            raise StoreError(f"Could not load progress from {self.file_path}: {e}") from e
        self._records = {p.card_id: p for p in records}
        return dict(self._records)

    def save(self, card_id: str, progress: Progress):
        records = dict(self._records)
        records[card_id] = progress
        self._write(records)
        self._records = records

    def save_many(self, progress_by_id: Dict[str, Progress], replace: bool = False):
        records = {} if replace else dict(self._records)
        records.update(progress_by_id)
        self._write(records)
        self._records = records

    def _write(self, records: Dict[str, Progress]):
        df = pd.DataFrame([p.model_dump(mode='json') for p in records.values()], columns=PROGRESS_COLUMNS)
        try:
            df.to_csv(self.file_path, index=False, encoding='utf-8-sig')
        except OSError as e:
            raise StoreError(f"Could not write progress to {self.file_path}: {e}") from e
