"""SM-2 family interval updates.

Three ratings drive the schedule:

* ``hard``: ease drops by 0.20 (floored at 1.3). On a card with prior
  successful repetitions this is a lapse: the interval is halved, the
  repetition streak resets and the lapse count goes up. On a card that never
  succeeded the interval is simply 1 day.
* ``good``: 1 day, then 6 days (or ``interval * ease`` if that is longer),
  then ``interval * ease``.
* ``easy``: 4 days on the first success, otherwise ``interval * ease * 1.3``;
  ease grows by 0.15.

Intervals are whole days, at least 1 and at most ``MAX_INTERVAL``.
"""

import math
from datetime import datetime, timedelta
from typing import Dict, Optional, assert_never

from .models import MIN_EASE, Progress, Rating

HARD_EASE_PENALTY = 0.20
EASY_EASE_BONUS = 0.15
EASY_BONUS = 1.3
LAPSE_FACTOR = 0.5
GOOD_SECOND_INTERVAL = 6
EASY_FIRST_INTERVAL = 4
MAX_INTERVAL = 3650


def round_half_up(value: float) -> int:
    # half-up, so 2.5 -> 3 rather than banker's rounding
    return int(math.floor(value + 0.5))


def _clamp_interval(days: int) -> int:
    return min(max(days, 1), MAX_INTERVAL)


def apply_rating(progress: Optional[Progress], rating: Rating, now: datetime,
                 card_id: Optional[str] = None) -> Progress:
    """Return the progress that results from rating a card at ``now``.

    ``progress`` may be None for a card that was never reviewed, in which case
    ``card_id`` must be given. The input is never modified.
    """
    if progress is None:
        progress = Progress.initial(card_id, now)

    ef = progress.ease_factor
    iv = progress.interval
    reps = progress.repetitions
    lapses = progress.lapses

    if rating is Rating.HARD:
        if reps > 0:
            iv = max(1, round_half_up(iv * LAPSE_FACTOR))
            lapses += 1
        else:
            iv = 1
        reps = 0
        ef = max(MIN_EASE, ef - HARD_EASE_PENALTY)
    elif rating is Rating.GOOD:
        if reps == 0:
            iv = 1
        elif reps == 1:
            # After a first "good" (1 day) this is the classic 6-day step. A card
            # already on a longer interval, such as 4 days after a first "easy",
            # gets interval * ease whenever that exceeds 6.
            iv = max(GOOD_SECOND_INTERVAL, round_half_up(iv * ef))
        else:
            iv = round_half_up(iv * ef)
        reps += 1
    elif rating is Rating.EASY:
        if reps == 0:
            iv = EASY_FIRST_INTERVAL
        else:
            iv = round_half_up(iv * ef * EASY_BONUS)
        reps += 1
        ef = ef + EASY_EASE_BONUS
    else:
        assert_never(rating)

    iv = _clamp_interval(iv)

    return Progress(
        card_id=progress.card_id,
        ease_factor=max(MIN_EASE, round(ef, 2)),
        interval=iv,
        repetitions=reps,
        lapses=lapses,
        due_date=now + timedelta(days=iv),
        last_reviewed=now,
        last_rating=rating,
    )


def preview_intervals(progress: Optional[Progress], now: datetime,
                      card_id: str = "preview") -> Dict[Rating, int]:
    """Interval in days each rating would produce, without committing anything."""
    if progress is not None:
        card_id = progress.card_id
    return {rating: apply_rating(progress, rating, now, card_id=card_id).interval
            for rating in Rating}
