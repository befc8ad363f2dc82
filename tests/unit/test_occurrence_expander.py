"""Tests for occurrence expansion."""

from datetime import UTC, date, datetime, timedelta

import pytest

import recurrence_engine.occurrence_expander as expander_module
from recurrence_engine.exceptions import ExpansionError
from recurrence_engine.models import Frequency, RecurrenceSpec
from recurrence_engine.occurrence_expander import expand, generate_starts
from recurrence_engine.series_clamper import clamp_until

pytestmark = pytest.mark.unit


def _utc(*args):
    return datetime(*args, tzinfo=UTC)


def _starts(occurrences):
    return [occurrence.start for occurrence in occurrences]


@pytest.mark.critical_path
class TestWeekly:
    """Weekly expansion."""

    def test_mon_wed_first_two_weeks(self, make_series):
        occurrences = expand(make_series(), _utc(2024, 1, 1), _utc(2024, 1, 10, 23, 59))

        assert _starts(occurrences) == [
            _utc(2024, 1, 1, 9),
            _utc(2024, 1, 3, 9),
            _utc(2024, 1, 8, 9),
            _utc(2024, 1, 10, 9),
        ]

    def test_occurrences_keep_duration_and_series_id(self, make_series):
        occurrences = expand(make_series(), _utc(2024, 1, 1), _utc(2024, 1, 2))

        assert len(occurrences) == 1
        assert occurrences[0].end - occurrences[0].start == timedelta(hours=1)
        assert occurrences[0].series_id == "evt-1"
        assert occurrences[0].instance_id == "evt-1_20240101T090000"

    def test_count_limits_from_anchor(self, make_series):
        series = make_series("RRULE:FREQ=WEEKLY;INTERVAL=1;BYDAY=MO,WE;COUNT=3")

        occurrences = expand(series, _utc(2024, 1, 1), _utc(2024, 3, 1))

        assert _starts(occurrences) == [
            _utc(2024, 1, 1, 9),
            _utc(2024, 1, 3, 9),
            _utc(2024, 1, 8, 9),
        ]

    def test_count_independent_of_window(self, make_series):
        series = make_series("RRULE:FREQ=WEEKLY;INTERVAL=1;BYDAY=MO,WE;COUNT=3")

        occurrences = expand(series, _utc(2024, 1, 5), _utc(2024, 3, 1))

        assert _starts(occurrences) == [_utc(2024, 1, 8, 9)]

    def test_until_is_inclusive(self, make_series):
        series = make_series("RRULE:FREQ=WEEKLY;INTERVAL=1;BYDAY=MO,WE;UNTIL=20240103T090000Z")

        occurrences = expand(series, _utc(2024, 1, 1), _utc(2024, 3, 1))

        assert _starts(occurrences) == [_utc(2024, 1, 1, 9), _utc(2024, 1, 3, 9)]

    def test_until_one_second_before_excludes(self, make_series):
        series = make_series("RRULE:FREQ=WEEKLY;INTERVAL=1;BYDAY=MO,WE;UNTIL=20240103T085959Z")

        occurrences = expand(series, _utc(2024, 1, 1), _utc(2024, 3, 1))

        assert _starts(occurrences) == [_utc(2024, 1, 1, 9)]

    def test_interval_two(self, make_series):
        series = make_series("RRULE:FREQ=WEEKLY;INTERVAL=2;BYDAY=MO")

        occurrences = expand(series, _utc(2024, 1, 1), _utc(2024, 1, 31))

        assert _starts(occurrences) == [
            _utc(2024, 1, 1, 9),
            _utc(2024, 1, 15, 9),
            _utc(2024, 1, 29, 9),
        ]

    def test_no_days_uses_anchor_weekday(self, make_series):
        series = make_series(
            "RRULE:FREQ=WEEKLY;INTERVAL=1",
            anchor_start=_utc(2024, 1, 3, 9),
            anchor_end=_utc(2024, 1, 3, 10),
        )

        occurrences = expand(series, _utc(2024, 1, 1), _utc(2024, 1, 20))

        assert _starts(occurrences) == [
            _utc(2024, 1, 3, 9),
            _utc(2024, 1, 10, 9),
            _utc(2024, 1, 17, 9),
        ]


class TestDaily:
    """Daily expansion."""

    def test_every_other_day(self, make_series):
        series = make_series("RRULE:FREQ=DAILY;INTERVAL=2")

        occurrences = expand(series, _utc(2024, 1, 1), _utc(2024, 1, 6))

        assert _starts(occurrences) == [
            _utc(2024, 1, 1, 9),
            _utc(2024, 1, 3, 9),
            _utc(2024, 1, 5, 9),
        ]

    def test_nothing_before_anchor(self, make_series):
        series = make_series("RRULE:FREQ=DAILY")

        assert expand(series, _utc(2023, 12, 1), _utc(2023, 12, 31)) == []


class TestMonthly:
    """Monthly expansion, including skipped months."""

    def test_day_31_skips_short_months(self, make_series):
        series = make_series(
            "RRULE:FREQ=MONTHLY;INTERVAL=1;BYMONTHDAY=31",
            anchor_start=_utc(2024, 1, 31, 9),
            anchor_end=_utc(2024, 1, 31, 10),
        )

        occurrences = expand(series, _utc(2024, 1, 1), _utc(2024, 12, 31, 23, 59))

        assert [start.month for start in _starts(occurrences)] == [1, 3, 5, 7, 8, 10, 12]
        assert all(start.day == 31 for start in _starts(occurrences))

    def test_last_friday(self, make_series):
        series = make_series("RRULE:FREQ=MONTHLY;INTERVAL=1;BYDAY=FR;BYSETPOS=-1")

        occurrences = expand(series, _utc(2024, 1, 1), _utc(2024, 3, 31))

        assert _starts(occurrences) == [
            _utc(2024, 1, 26, 9),
            _utc(2024, 2, 23, 9),
            _utc(2024, 3, 29, 9),
        ]

    def test_second_tuesday(self, make_series):
        series = make_series("RRULE:FREQ=MONTHLY;INTERVAL=1;BYDAY=TU;BYSETPOS=2")

        occurrences = expand(series, _utc(2024, 1, 1), _utc(2024, 3, 31))

        assert _starts(occurrences) == [
            _utc(2024, 1, 9, 9),
            _utc(2024, 2, 13, 9),
            _utc(2024, 3, 12, 9),
        ]

    def test_inline_ordinal_last_friday(self, make_series):
        series = make_series("RRULE:FREQ=MONTHLY;BYDAY=-1FR")

        occurrences = expand(series, _utc(2024, 1, 1), _utc(2024, 1, 31))

        assert _starts(occurrences) == [_utc(2024, 1, 26, 9)]

    def test_no_mode_uses_anchor_day(self, make_series):
        series = make_series(
            "RRULE:FREQ=MONTHLY",
            anchor_start=_utc(2024, 1, 15, 9),
            anchor_end=_utc(2024, 1, 15, 10),
        )

        occurrences = expand(series, _utc(2024, 1, 1), _utc(2024, 3, 31))

        assert _starts(occurrences) == [
            _utc(2024, 1, 15, 9),
            _utc(2024, 2, 15, 9),
            _utc(2024, 3, 15, 9),
        ]


class TestYearly:
    """Yearly expansion."""

    def test_february_29_only_in_leap_years(self, make_series):
        series = make_series(
            "RRULE:FREQ=YEARLY;INTERVAL=1;BYMONTH=2;BYMONTHDAY=29",
            anchor_start=_utc(2024, 2, 29, 9),
            anchor_end=_utc(2024, 2, 29, 10),
        )

        occurrences = expand(series, _utc(2024, 1, 1), _utc(2032, 12, 31))

        assert _starts(occurrences) == [
            _utc(2024, 2, 29, 9),
            _utc(2028, 2, 29, 9),
            _utc(2032, 2, 29, 9),
        ]

    def test_fourth_thursday_of_november(self, make_series):
        series = make_series(
            "RRULE:FREQ=YEARLY;INTERVAL=1;BYMONTH=11;BYDAY=TH;BYSETPOS=4",
            anchor_start=_utc(2024, 11, 28, 17),
            anchor_end=_utc(2024, 11, 28, 20),
        )

        occurrences = expand(series, _utc(2024, 1, 1), _utc(2026, 12, 31))

        assert _starts(occurrences) == [
            _utc(2024, 11, 28, 17),
            _utc(2025, 11, 27, 17),
            _utc(2026, 11, 26, 17),
        ]


class TestWindowAndExceptions:
    """Window bounds, exceptions and failure handling."""

    def test_exception_removes_exact_instant(self, make_series):
        series = make_series(exceptions=frozenset({_utc(2024, 1, 3, 9)}))

        occurrences = expand(series, _utc(2024, 1, 1), _utc(2024, 1, 10, 23, 59))

        assert _utc(2024, 1, 3, 9) not in _starts(occurrences)
        assert len(occurrences) == 3

    def test_extra_exceptions_are_merged(self, make_series):
        series = make_series(exceptions=frozenset({_utc(2024, 1, 3, 9)}))

        occurrences = expand(
            series,
            _utc(2024, 1, 1),
            _utc(2024, 1, 10, 23, 59),
            exceptions=[datetime(2024, 1, 8, 9)],
        )

        assert _starts(occurrences) == [_utc(2024, 1, 1, 9), _utc(2024, 1, 10, 9)]

    def test_exception_must_match_exactly(self, make_series):
        series = make_series(exceptions=frozenset({_utc(2024, 1, 3, 9, 0, 1)}))

        occurrences = expand(series, _utc(2024, 1, 1), _utc(2024, 1, 10, 23, 59))

        assert len(occurrences) == 4

    def test_window_bounds_are_inclusive(self, make_series):
        occurrences = expand(make_series(), _utc(2024, 1, 3, 9), _utc(2024, 1, 8, 9))

        assert _starts(occurrences) == [_utc(2024, 1, 3, 9), _utc(2024, 1, 8, 9)]

    def test_date_window_covers_whole_days(self, make_series):
        occurrences = expand(make_series(), date(2024, 1, 3), date(2024, 1, 3))

        assert _starts(occurrences) == [_utc(2024, 1, 3, 9)]

    def test_naive_window_is_utc(self, make_series):
        occurrences = expand(make_series(), datetime(2024, 1, 3), datetime(2024, 1, 4))

        assert _starts(occurrences) == [_utc(2024, 1, 3, 9)]

    @pytest.mark.parametrize(
        ("window_start", "window_end"),
        [
            (_utc(2024, 1, 10), _utc(2024, 1, 1)),
            (_utc(2024, 1, 3, 9), _utc(2024, 1, 3, 9)),
        ],
    )
    def test_empty_or_inverted_window(self, make_series, window_start, window_end):
        assert expand(make_series(), window_start, window_end) == []

    def test_undecodable_rule_yields_nothing(self, make_series):
        assert expand(make_series("not a rule"), _utc(2024, 1, 1), _utc(2024, 2, 1)) == []

    def test_microsecond_anchor_is_preserved(self, make_series):
        series = make_series(
            "RRULE:FREQ=DAILY",
            anchor_start=_utc(2024, 1, 1, 9, 0, 0, 250000),
            anchor_end=_utc(2024, 1, 1, 10, 0, 0, 250000),
        )

        occurrences = expand(series, _utc(2024, 1, 2, 9, 0, 0, 250000), _utc(2024, 1, 3, 23))

        assert _starts(occurrences) == [
            _utc(2024, 1, 2, 9, 0, 0, 250000),
            _utc(2024, 1, 3, 9, 0, 0, 250000),
        ]

    def test_expansion_is_deterministic(self, make_series):
        first = expand(make_series(), _utc(2024, 1, 1), _utc(2024, 6, 30))
        second = expand(make_series(), _utc(2024, 1, 1), _utc(2024, 6, 30))

        assert first == second

    def test_expansion_failure_yields_nothing(self, make_series, monkeypatch):
        def _boom(spec, anchor_start):
            raise ValueError("calendar arithmetic failed")

        monkeypatch.setattr(expander_module, "build_rrule", _boom)

        assert expand(make_series(), _utc(2024, 1, 1), _utc(2024, 2, 1)) == []

    def test_generate_starts_wraps_failures(self, monkeypatch):
        def _boom(spec, anchor_start):
            raise OverflowError("year out of range")

        monkeypatch.setattr(expander_module, "build_rrule", _boom)

        with pytest.raises(ExpansionError):
            generate_starts(
                RecurrenceSpec(frequency=Frequency.DAILY),
                _utc(2024, 1, 1),
                _utc(2024, 1, 1),
                _utc(2024, 1, 2),
            )


@pytest.mark.critical_path
@pytest.mark.parametrize(
    "cutoff",
    [_utc(2024, 1, 8, 9), _utc(2024, 1, 3, 9), _utc(2024, 1, 9, 12, 30)],
)
def test_clamped_rule_never_reaches_cutoff(make_series, cutoff):
    series = make_series(clamp_until("RRULE:FREQ=WEEKLY;INTERVAL=1;BYDAY=MO,WE;COUNT=10", cutoff))

    occurrences = expand(series, _utc(2024, 1, 1), _utc(2024, 12, 31))

    assert occurrences
    assert all(start < cutoff for start in _starts(occurrences))
    assert _starts(occurrences)[-1] >= cutoff - timedelta(days=7)


def test_occurrences_ending_past_supported_range_are_dropped(make_series):
    series = make_series(
        "RRULE:FREQ=DAILY",
        anchor_start=_utc(9999, 12, 28, 9),
        anchor_end=_utc(9999, 12, 31, 9),
    )

    occurrences = expand(series, _utc(9999, 12, 1), _utc(9999, 12, 31, 23))

    assert _starts(occurrences) == [_utc(9999, 12, 28, 9)]
    assert occurrences[0].end == _utc(9999, 12, 31, 9)
