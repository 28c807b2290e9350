"""Selection and ordering of the cards reviewed in one session.

Order of a queue:
    1. cards whose due date has passed, oldest first (ties by card id)
    2. unseen cards in collection order, at most ``new_cards_per_day`` of them
       and only when ``include_new_cards`` is set
The whole sequence is then cut from the tail to ``daily_limit``, so new cards
are dropped before any due card.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from .classifier import is_due
from .models import Card, Progress, Settings


def is_unseen(progress: Optional[Progress]) -> bool:
    """Never reviewed at all.

    Cards whose streak was reset by a "hard" rating are not unseen: they keep
    their own due date and compete with the other due cards.
    """
    return progress is None or (progress.repetitions == 0 and progress.last_reviewed is None)


def _candidates(cards: Iterable[Card], deck_filter: Optional[str]) -> List[Card]:
    if deck_filter is None:
        return list(cards)
    return [card for card in cards if card.deck == deck_filter]


def _partition(cards: List[Card], progress_by_id: Dict[str, Progress],
               now: datetime) -> Tuple[List[Tuple[datetime, str]], List[str]]:
    due: List[Tuple[datetime, str]] = []
    unseen: List[str] = []
    for card in cards:
        progress = progress_by_id.get(card.id)
        if is_unseen(progress):
            unseen.append(card.id)
        elif is_due(progress, now):
            due.append((progress.due_date, card.id))
    return due, unseen


def build_queue(cards: Iterable[Card], progress_by_id: Dict[str, Progress],
                deck_filter: Optional[str], settings: Settings,
                now: datetime) -> List[str]:
    """Ordered card ids for a review session."""
    due, unseen = _partition(_candidates(cards, deck_filter), progress_by_id, now)

    queue = [card_id for _, card_id in sorted(due)]
    if settings.include_new_cards:
        queue.extend(unseen[:settings.new_cards_per_day])

    return queue[:settings.daily_limit]


def reviewable_count(cards: Iterable[Card], progress_by_id: Dict[str, Progress],
                     deck_filter: Optional[str], settings: Settings,
                     now: datetime) -> int:
    """Length of the queue :func:`build_queue` would return."""
    due = 0
    unseen = 0
    for card in _candidates(cards, deck_filter):
        progress = progress_by_id.get(card.id)
        if is_unseen(progress):
            unseen += 1
        elif is_due(progress, now):
            due += 1

    new = min(unseen, settings.new_cards_per_day) if settings.include_new_cards else 0
    return min(due + new, settings.daily_limit)
