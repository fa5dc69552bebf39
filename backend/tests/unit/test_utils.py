from datetime import UTC, datetime, timedelta, timezone

from nskai.core.utils import percentage, previous_date_string, round_half_up, start_of_day, utc_date_string


def test_round_half_up_rounds_halves_away_from_banker_rounding() -> None:
    assert round_half_up(62.5) == 63
    assert round_half_up(2.5) == 3
    assert round_half_up(2.49) == 2


def test_percentage_is_zero_when_total_is_zero() -> None:
    assert percentage(0, 0) == 0
    assert percentage(3, 0) == 0


def test_percentage_rounds() -> None:
    assert percentage(1, 3) == 33
    assert percentage(2, 3) == 67
    assert percentage(7, 10) == 70


def test_previous_date_string_crosses_month_boundary() -> None:
    assert previous_date_string("2026-03-01") == "2026-02-28"
    assert previous_date_string("2026-01-01") == "2025-12-31"


def test_utc_date_string_converts_aware_datetimes_to_utc() -> None:
    lagos_late = datetime(2026, 5, 1, 0, 30, tzinfo=timezone(timedelta(hours=1)))
    assert utc_date_string(lagos_late) == "2026-04-30"


def test_start_of_day_is_midnight_utc() -> None:
    assert start_of_day("2026-05-01") == datetime(2026, 5, 1, tzinfo=UTC)
