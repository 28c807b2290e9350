import logging
import threading
import uuid
from datetime import datetime
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from .classifier import aggregate, summarize, unique_decks
from .errors import InvalidImportFormat, StoreError, SyncError
from .models import (Card, CardKind, DeckStats, ExportPayload, NewCardInput, Progress,
                     Rating, Settings, SettingsUpdate, slugify_deck, to_naive_utc)
from .queue_builder import reviewable_count
from .session import ReviewOutcome, SessionController, SessionSnapshot

logger = logging.getLogger(__name__)


class FlashcardService:
    """Cards, their progress and the active review session for one user.

    Every public method takes the service lock, so a rating's read-modify-write
    of a card's progress is never interleaved with another request.
    """

    def __init__(self, vault, store, settings: Optional[Settings] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 on_settings_change: Optional[Callable[[Settings], None]] = None):
        self.vault = vault
        self.store = store
        self.settings = settings or Settings()
        self.clock = lambda: to_naive_utc(clock())
        self.on_settings_change = on_settings_change
        self.cards: List[Card] = []
        self.progress: Dict[str, Progress] = {}
        self.controller = SessionController(store, clock=self.clock)
        self.last_sync: Optional[datetime] = None
        self._lock = threading.RLock()

    def load_data(self):
        """Loads cards from the vault and progress from the store."""
        with self._lock:
            self.controller.end_review()
            self.cards = self.vault.load_cards()
            self.progress = self.store.load()
            self.last_sync = self.clock()
            logger.info(f"Loaded {len(self.cards)} cards, {len(self.progress)} progress records")

    def refresh(self) -> int:
        with self._lock:
            cards = self.vault.refresh()
            self.cards = cards
            self.last_sync = self.clock()
            return len(cards)

    # --- Stats ---

    def get_deck_stats(self) -> List[DeckStats]:
        with self._lock:
            return aggregate(self.cards, self.progress, self.clock())

    def get_stats(self) -> dict:
        with self._lock:
            decks = self.get_deck_stats()
            return {"decks": decks, "totals": summarize(decks)}

    def get_decks(self) -> List[str]:
        with self._lock:
            return unique_decks(self.cards)

    def reviewable_count(self, deck: Optional[str] = None) -> int:
        with self._lock:
            return reviewable_count(self.cards, self.progress, deck, self.settings, self.clock())

    # --- Review session ---

    def start_review(self, deck: Optional[str] = None) -> SessionSnapshot:
        with self._lock:
            self.controller.start_review(self.cards, self.progress, self.settings, deck_filter=deck)
            return self.controller.snapshot()

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return self.controller.snapshot()

    def flip(self) -> SessionSnapshot:
        with self._lock:
            self.controller.flip()
            return self.controller.snapshot()

    def toggle_hint(self) -> SessionSnapshot:
        with self._lock:
            self.controller.toggle_hint()
            return self.controller.snapshot()

    def submit_review(self, rating: Rating) -> ReviewOutcome:
        with self._lock:
            return self.controller.submit_review(rating)

    def end_review(self) -> SessionSnapshot:
        with self._lock:
            self.controller.end_review()
            return self.controller.snapshot()

    def retry_unsaved(self) -> int:
        """Writes progress whose save failed during review. Returns how many are still pending."""
        with self._lock:
            pending = dict(self.controller.unsaved)
            if not pending:
                return 0
            self.store.save_many(pending)
            for card_id in pending:
                self.controller.unsaved.pop(card_id, None)
            logger.info(f"Re-saved progress for {len(pending)} card(s)")
            return len(self.controller.unsaved)

    # --- Cards & bulk data ---

    def add_card(self, data: NewCardInput) -> Card:
        now = self.clock()
        deck = slugify_deck(data.deck)
        card = Card(
            id=f"local-{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:6]}",
            deck=deck,
            kind=CardKind.CLOZE if data.hint else CardKind.BASIC,
            question=data.question,
            answer=data.answer,
            hint=data.hint,
            image_url=data.image_url,
            source_file=f"flashcards/{deck}.md",
            created_at=now,
        )
        with self._lock:
            try:
                self.vault.append_card(card)
            except SyncError as e:
                # kept in memory only
                logger.warning(f"Could not write card {card.id} to vault: {e}")
            self.cards.append(card)
        logger.info(f"Added card: {card.id}")
        return card

    def list_cards(self, deck: Optional[str] = None) -> List[Card]:
        with self._lock:
            if deck is None:
                return list(self.cards)
            return [card for card in self.cards if card.deck == deck]

    def export_data(self) -> ExportPayload:
        with self._lock:
            return ExportPayload(flashcards=list(self.cards), progress=dict(self.progress))

    def import_data(self, data: dict, replace: bool = False) -> dict:
        """Merges (or replaces) cards and progress from an export payload.

        The payload is validated as a whole before anything changes.
        """
        try:
            payload = data if isinstance(data, ExportPayload) else ExportPayload.model_validate(data)
        except ValidationError as e:
            raise InvalidImportFormat(str(e)) from e

        with self._lock:
            self.controller.end_review()

            if replace:
                cards = list(payload.flashcards)
                progress = dict(payload.progress)
            else:
                existing = {card.id for card in self.cards}
                cards = self.cards + [c for c in payload.flashcards if c.id not in existing]
                progress = {**self.progress, **payload.progress}

            try:
                self.store.save_many(payload.progress, replace=replace)
            except StoreError:
                logger.error("Import aborted: progress could not be saved")
                raise
            try:
                self.vault.save_cards(cards)
            except SyncError as e:
                logger.warning(f"Imported cards not written to vault: {e}")

            added = len(cards) - (0 if replace else len(self.cards))
            self.cards = cards
            self.progress = progress
            self.last_sync = self.clock()

        logger.info(f"Imported {len(payload.flashcards)} cards, {len(payload.progress)} progress records")
        return {"cards": len(self.cards), "added": added, "progress": len(payload.progress)}

    # --- Settings ---

    def update_settings(self, update: SettingsUpdate) -> Settings:
        with self._lock:
            changes = update.model_dump(exclude_none=True)
            self.settings = self.settings.model_copy(update=changes)
            if self.on_settings_change:
                self.on_settings_change(self.settings)
            return self.settings
