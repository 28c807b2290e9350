import re
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, Field, model_validator

DEFAULT_EASE = 2.5
MIN_EASE = 1.3

DECK_PATTERN = r"^[a-z0-9_-]+$"


def slugify_deck(name: str) -> str:
    """'Machine Learning' -> 'machine-learning'."""
    slug = re.sub(r"[^a-z0-9_-]+", "-", name.strip().lower()).strip("-")
    return slug or "default"


def to_naive_utc(value: datetime) -> datetime:
    """Timestamps are compared naive; offset-aware input is converted to UTC first."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


Timestamp = Annotated[datetime, AfterValidator(to_naive_utc)]


class Rating(str, Enum):
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"


class CardKind(str, Enum):
    BASIC = "basic"
    CLOZE = "cloze"


class Card(BaseModel):
    id: str = Field(..., min_length=1)
    deck: str = Field(..., pattern=DECK_PATTERN)
    kind: CardKind = CardKind.BASIC
    question: str
    answer: str
    hint: Optional[str] = None
    image_url: Optional[str] = None
    source_file: Optional[str] = None
    source_line: int = 0
    created_at: Optional[Timestamp] = None

    model_config = {"frozen": True}


class Progress(BaseModel):
    """SM-2 style review state of one card.

    The numeric fields and the due date have no defaults so that a stored or
    imported record missing any of them fails validation instead of being
    silently reset; use :meth:`initial` for a card that was never reviewed.
    """

    card_id: str = Field(..., min_length=1)
    ease_factor: float = Field(..., ge=MIN_EASE)
    interval: int = Field(..., ge=0)
    repetitions: int = Field(..., ge=0)
    lapses: int = Field(..., ge=0)
    due_date: Timestamp
    last_reviewed: Optional[Timestamp] = None
    last_rating: Optional[Rating] = None

    @classmethod
    def initial(cls, card_id: str, now: datetime) -> "Progress":
        return cls(
            card_id=card_id,
            ease_factor=DEFAULT_EASE,
            interval=0,
            repetitions=0,
            lapses=0,
            due_date=now,
        )

    @model_validator(mode="after")
    def _check_due_date(self):
        if self.last_reviewed is not None:
            expected = self.last_reviewed + timedelta(days=self.interval)
            if self.due_date != expected:
                raise ValueError(
                    f"due_date {self.due_date.isoformat()} does not match "
                    f"last_reviewed + {self.interval} days"
                )
        return self


class Settings(BaseModel):
    daily_limit: int = Field(20, ge=1)
    new_cards_per_day: int = Field(5, ge=0)
    include_new_cards: bool = True
    enable_keyboard_shortcuts: bool = True
    show_hints_by_default: bool = False


class SettingsUpdate(BaseModel):
    daily_limit: Optional[int] = Field(None, ge=1)
    new_cards_per_day: Optional[int] = Field(None, ge=0)
    include_new_cards: Optional[bool] = None
    enable_keyboard_shortcuts: Optional[bool] = None
    show_hints_by_default: Optional[bool] = None


class DeckStats(BaseModel):
    deck: str
    total: int = 0
    due_today: int = 0
    new: int = 0
    mastered: int = 0


class StatsSummary(BaseModel):
    total: int = 0
    due_today: int = 0
    new: int = 0
    mastered: int = 0


class NewCardInput(BaseModel):
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)
    deck: str = Field(..., min_length=1)
    hint: Optional[str] = None
    image_url: Optional[str] = None


class ExportPayload(BaseModel):
    version: Literal[1] = 1
    flashcards: List[Card] = Field(default_factory=list)
    progress: Dict[str, Progress] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_progress_keys(self):
        for key, record in self.progress.items():
            if key != record.card_id:
                raise ValueError(f"progress key '{key}' does not match card_id '{record.card_id}'")
        ids = [card.id for card in self.flashcards]
        if len(ids) != len(set(ids)):
            raise ValueError("duplicate card ids in flashcards")
        return self


class ReviewRequest(BaseModel):
    rating: Rating


class StudyRequest(BaseModel):
    deck: Optional[str] = None
