"""Tests for the interval update rules."""

from datetime import timedelta, timezone

import pytest

from flashdeck.models import MIN_EASE, Progress, Rating
from flashdeck.progress import MAX_INTERVAL, apply_rating, preview_intervals, round_half_up


def test_first_review_intervals(now):
    for ef in (1.3, 2.0, 2.5, 3.1):
        p = Progress.initial("c1", now).model_copy(update={"ease_factor": ef})
        assert apply_rating(p, Rating.GOOD, now).interval == 1
        assert apply_rating(p, Rating.EASY, now).interval == 4


def test_no_progress_record_is_treated_as_initial(now):
    result = apply_rating(None, Rating.GOOD, now, card_id="c1")
    assert result.card_id == "c1"
    assert result.interval == 1
    assert result.repetitions == 1
    assert result.ease_factor == 2.5


def test_good_after_one_repetition(now, make_progress):
    # ef=2.5, iv=6, reps=1 -> round(6 * 2.5)
    p = make_progress("c1", repetitions=1, interval=6, ease_factor=2.5)
    result = apply_rating(p, Rating.GOOD, now)
    assert result.interval == 15
    assert result.repetitions == 2
    assert result.ease_factor == 2.5


def test_good_second_step_is_six_days(now):
    first = apply_rating(None, Rating.GOOD, now, card_id="c1")
    second = apply_rating(first, Rating.GOOD, now + timedelta(days=1))
    assert second.interval == 6
    assert second.repetitions == 2


def test_good_later_steps_multiply_by_ease(now, make_progress):
    p = make_progress("c1", repetitions=3, interval=10, ease_factor=2.3)
    assert apply_rating(p, Rating.GOOD, now).interval == 23


def test_hard_on_reviewed_card_is_lapse(now, make_progress):
    p = make_progress("c1", repetitions=1, interval=6, ease_factor=2.5, lapses=2)
    result = apply_rating(p, Rating.HARD, now)
    assert result.interval == 3
    assert result.repetitions == 0
    assert result.lapses == 3
    assert result.ease_factor == pytest.approx(2.3)


def test_hard_on_new_card_is_not_lapse(now):
    result = apply_rating(None, Rating.HARD, now, card_id="c1")
    assert result.interval == 1
    assert result.repetitions == 0
    assert result.lapses == 0
    assert result.ease_factor == pytest.approx(2.3)


def test_lapse_interval_floored_at_one_day(now, make_progress):
    p = make_progress("c1", repetitions=2, interval=1)
    assert apply_rating(p, Rating.HARD, now).interval == 1


def test_easy_grows_interval_and_ease(now, make_progress):
    p = make_progress("c1", repetitions=2, interval=6, ease_factor=2.5)
    result = apply_rating(p, Rating.EASY, now)
    assert result.interval == 20  # 6 * 2.5 * 1.3 = 19.5
    assert result.ease_factor == pytest.approx(2.65)
    assert result.repetitions == 3


@pytest.mark.parametrize("rating", list(Rating))
@pytest.mark.parametrize("ef", [1.3, 1.35, 1.5, 2.5])
def test_ease_never_below_minimum(now, make_progress, rating, ef):
    p = make_progress("c1", repetitions=4, interval=12, ease_factor=ef)
    assert apply_rating(p, rating, now).ease_factor >= MIN_EASE


def test_repeated_hard_keeps_ease_at_minimum(now):
    p = None
    for i in range(10):
        p = apply_rating(p, Rating.HARD, now + timedelta(days=i), card_id="c1")
    assert p.ease_factor == MIN_EASE


def test_due_date_and_last_reviewed(now):
    result = apply_rating(None, Rating.EASY, now, card_id="c1")
    assert result.last_reviewed == now
    assert result.due_date == now + timedelta(days=4)
    assert result.last_rating is Rating.EASY


def test_input_is_not_modified(now, make_progress):
    p = make_progress("c1", repetitions=3, interval=10)
    before = p.model_dump()
    apply_rating(p, Rating.HARD, now)
    assert p.model_dump() == before


def test_interval_never_decreases_on_good_and_easy(now):
    p = None
    last = 0
    day = now
    for rating in [Rating.EASY, Rating.GOOD, Rating.GOOD, Rating.EASY, Rating.GOOD, Rating.GOOD]:
        p = apply_rating(p, rating, day, card_id="c1")
        assert p.interval >= last
        last = p.interval
        day = p.due_date


def test_interval_capped(now, make_progress):
    p = make_progress("c1", repetitions=10, interval=3000, ease_factor=3.0)
    assert apply_rating(p, Rating.EASY, now).interval == MAX_INTERVAL


@pytest.mark.parametrize("reps,interval,ef", [(0, 0, 2.5), (1, 1, 2.5), (1, 6, 2.5), (5, 40, 1.7), (3, 9, 1.3)])
def test_preview_matches_applied_rating(now, make_progress, reps, interval, ef):
    p = make_progress("c1", repetitions=reps, interval=interval, ease_factor=ef)
    preview = preview_intervals(p, now)
    for rating in Rating:
        assert preview[rating] == apply_rating(p, rating, now).interval


def test_preview_for_card_without_progress(now):
    assert preview_intervals(None, now) == {Rating.HARD: 1, Rating.GOOD: 1, Rating.EASY: 4}


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.49) == 2


def test_good_after_first_easy_keeps_longer_interval(now):
    first = apply_rating(None, Rating.EASY, now, card_id="c1")
    assert (first.interval, first.repetitions, first.ease_factor) == (4, 1, 2.65)
    # round(4 * 2.65) is longer than the 6-day step
    assert apply_rating(first, Rating.GOOD, first.due_date).interval == 11


def test_aware_timestamps_are_stored_naive(now):
    p = apply_rating(None, Rating.GOOD, now.replace(tzinfo=timezone.utc), card_id="c1")
    assert p.last_reviewed == now
    assert p.due_date.tzinfo is None
