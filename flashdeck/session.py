"""Review session state machine.

    IDLE --start_review--> REVIEWING --submit_review (last card)--> IDLE
                           REVIEWING --end_review-->               IDLE

Inside REVIEWING a card is first shown question-only; ``flip`` reveals the
answer and only then can it be rated. The hint can be toggled while the card
is still unflipped.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from .errors import InvalidStateTransition, NoDueCards, StoreError
from .models import Card, Progress, Rating, Settings
from .preview import IntervalLabels, IntervalPreview, IntervalPreviewer
from .progress import apply_rating
from .queue_builder import build_queue

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    REVIEWING = "reviewing"


class SessionTally(BaseModel):
    reviewed: int = 0
    hard: int = 0
    good: int = 0
    easy: int = 0

    def record(self, rating: Rating):
        self.reviewed += 1
        setattr(self, rating.value, getattr(self, rating.value) + 1)


class ReviewSession(BaseModel):
    deck_filter: Optional[str] = None
    queue: List[str]
    index: int = 0
    flipped: bool = False
    hint_shown: bool = False
    tally: SessionTally = Field(default_factory=SessionTally)
    started_at: datetime


class SessionSnapshot(BaseModel):
    state: SessionState
    deck_filter: Optional[str] = None
    queue_length: int = 0
    position: int = 0
    flipped: bool = False
    hint_shown: bool = False
    card: Optional[Card] = None
    intervals: Optional[IntervalPreview] = None
    interval_labels: Optional[IntervalLabels] = None
    tally: Optional[SessionTally] = None


class ReviewOutcome(BaseModel):
    progress: Progress
    completed: bool


class SessionController:
    """Drives one review session over a shared card/progress collection.

    ``progress_by_id`` is the caller's mapping and is updated in place on each
    rating; ``store`` receives one ``save`` per rating.
    """

    def __init__(self, store, clock: Callable[[], datetime] = datetime.now,
                 previewer: Optional[IntervalPreviewer] = None):
        self.store = store
        self.clock = clock
        self.previewer = previewer or IntervalPreviewer()
        self.session: Optional[ReviewSession] = None
        self.last_tally: Optional[SessionTally] = None
        self.unsaved: Dict[str, Progress] = {}
        self._cards: Dict[str, Card] = {}
        self._progress: Dict[str, Progress] = {}

    @property
    def state(self) -> SessionState:
        return SessionState.IDLE if self.session is None else SessionState.REVIEWING

    def start_review(self, cards: List[Card], progress_by_id: Dict[str, Progress],
                     settings: Settings, deck_filter: Optional[str] = None) -> ReviewSession:
        now = self.clock()
        queue = build_queue(cards, progress_by_id, deck_filter, settings, now)
        if not queue:
            raise NoDueCards(deck_filter)

        self._cards = {card.id: card for card in cards}
        self._progress = progress_by_id
        self.session = ReviewSession(deck_filter=deck_filter, queue=queue, started_at=now)
        self._present()
        logger.info(f"Review started: {len(queue)} card(s), deck={deck_filter or 'all'}")
        return self.session

    def current_card(self) -> Optional[Card]:
        if self.session is None:
            return None
        return self._cards.get(self.session.queue[self.session.index])

    def flip(self):
        session = self._require("flip")
        # flipping twice is harmless
        session.flipped = True

    def toggle_hint(self):
        session = self._require("toggle hint")
        if session.flipped:
            raise InvalidStateTransition("toggle hint", "card is flipped")
        card = self.current_card()
        if card is None or not card.hint:
            raise InvalidStateTransition("toggle hint", "card has no hint")
        session.hint_shown = not session.hint_shown

    def submit_review(self, rating: Rating) -> ReviewOutcome:
        """Rate the current card and move on.

        If the store rejects the write the session still advances; the new
        progress is kept in memory and in ``unsaved`` and the StoreError is
        re-raised once the state machine is consistent.
        """
        session = self._require("submit review")
        if not session.flipped:
            raise InvalidStateTransition("submit review", "card is not flipped")

        card_id = session.queue[session.index]
        new_progress = apply_rating(self._progress.get(card_id), rating, self.clock(),
                                    card_id=card_id)
        self._progress[card_id] = new_progress

        failure = None
        try:
            self.store.save(card_id, new_progress)
            self.unsaved.pop(card_id, None)
        except StoreError as e:
            logger.error(f"Could not save progress for card {card_id}: {e}")
            self.unsaved[card_id] = new_progress
            failure = e

        session.tally.record(rating)
        session.index += 1
        completed = session.index >= len(session.queue)
        if completed:
            logger.info(f"Session complete! Reviewed: {session.tally.reviewed}")
            self.last_tally = session.tally
            self.session = None
        else:
            self._present()

        if failure is not None:
            raise failure
        return ReviewOutcome(progress=new_progress, completed=completed)

    def end_review(self):
        if self.session is None:
            return
        logger.info(f"Review ended after {self.session.tally.reviewed} card(s)")
        self.last_tally = self.session.tally
        self.session = None

    def snapshot(self) -> SessionSnapshot:
        session = self.session
        if session is None:
            return SessionSnapshot(state=SessionState.IDLE, tally=self.last_tally)

        card_id = session.queue[session.index]
        progress = self._progress.get(card_id)
        now = self.clock()
        return SessionSnapshot(
            state=SessionState.REVIEWING,
            deck_filter=session.deck_filter,
            queue_length=len(session.queue),
            position=session.index,
            flipped=session.flipped,
            hint_shown=session.hint_shown,
            card=self.current_card(),
            intervals=self.previewer.preview(progress, now, card_id=card_id),
            interval_labels=self.previewer.labels(progress, now, card_id=card_id),
            tally=session.tally,
        )

    def _present(self):
        """Reset per-card flags for the card at the current index."""
        self.session.flipped = False
        self.session.hint_shown = False

    def _require(self, operation: str) -> ReviewSession:
        if self.session is None:
            raise InvalidStateTransition(operation, "session is idle")
        return self.session
