from datetime import datetime
from typing import Dict, Iterable, List, NamedTuple, Optional

from .models import Card, DeckStats, Progress, StatsSummary

MASTERED_REPETITIONS = 8
MASTERED_INTERVAL = 21


class Classification(NamedTuple):
    new: bool
    due: bool
    mastered: bool


def is_new(progress: Optional[Progress]) -> bool:
    return progress is None or progress.repetitions == 0


def is_due(progress: Optional[Progress], now: datetime) -> bool:
    # a card that was never scheduled is always due
    return progress is None or progress.due_date <= now


def is_mastered(progress: Optional[Progress]) -> bool:
    return (progress is not None
            and progress.repetitions >= MASTERED_REPETITIONS
            and progress.interval >= MASTERED_INTERVAL)


def classify(progress: Optional[Progress], now: datetime) -> Classification:
    return Classification(
        new=is_new(progress),
        due=is_due(progress, now),
        mastered=is_mastered(progress),
    )


def unique_decks(cards: Iterable[Card]) -> List[str]:
    return sorted({card.deck for card in cards})


def aggregate(cards: Iterable[Card], progress_by_id: Dict[str, Progress],
              now: datetime) -> List[DeckStats]:
    """Per-deck total/due/new/mastered counts, ordered by deck name."""
    stats: Dict[str, DeckStats] = {}
    for card in cards:
        deck = stats.setdefault(card.deck, DeckStats(deck=card.deck))
        status = classify(progress_by_id.get(card.id), now)
        deck.total += 1
        if status.due:
            deck.due_today += 1
        if status.new:
            deck.new += 1
        if status.mastered:
            deck.mastered += 1
    return [stats[name] for name in sorted(stats)]


def summarize(deck_stats: Iterable[DeckStats]) -> StatsSummary:
    summary = StatsSummary()
    for deck in deck_stats:
        summary.total += deck.total
        summary.due_today += deck.due_today
        summary.new += deck.new
        summary.mastered += deck.mastered
    return summary
