from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from .models import Progress, Rating
from .progress import preview_intervals, round_half_up


class IntervalPreview(BaseModel):
    hard: int
    good: int
    easy: int


class IntervalLabels(BaseModel):
    hard: str
    good: str
    easy: str


def format_interval(days: int) -> str:
    """Human-readable interval, e.g. '3 days', '2 weeks', '1 year'."""
    if days == 0:
        return "Now"
    if days == 1:
        return "1 day"
    if days < 7:
        return f"{days} days"
    if days < 30:
        weeks = round_half_up(days / 7)
        return "1 week" if weeks == 1 else f"{weeks} weeks"
    if days < 365:
        months = round_half_up(days / 30)
        return "1 month" if months == 1 else f"{months} months"
    years = round_half_up(days / 365)
    return "1 year" if years == 1 else f"{years} years"


class IntervalPreviewer:
    """Read-only view of what each rating would schedule for a card."""

    def preview(self, progress: Optional[Progress], now: datetime,
                card_id: str = "preview") -> IntervalPreview:
        days = preview_intervals(progress, now, card_id=card_id)
        return IntervalPreview(
            hard=days[Rating.HARD],
            good=days[Rating.GOOD],
            easy=days[Rating.EASY],
        )

    def labels(self, progress: Optional[Progress], now: datetime,
               card_id: str = "preview") -> IntervalLabels:
        days = self.preview(progress, now, card_id=card_id)
        return IntervalLabels(
            hard=format_interval(days.hard),
            good=format_interval(days.good),
            easy=format_interval(days.easy),
        )
