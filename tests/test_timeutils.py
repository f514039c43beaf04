from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from flashdeck.timeutils import datetime_to_ms, ensure_utc, ms_to_datetime, now_ms


def test_naive_datetime_is_assumed_utc():
    naive = datetime(2024, 1, 1, 12, 0)
    assert ensure_utc(naive) == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_offset_datetime_is_converted():
    plus_two = datetime(2024, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    converted = ensure_utc(plus_two)
    assert converted.tzinfo == timezone.utc
    assert converted.hour == 12


def test_ms_conversions():
    ts = datetime(2023, 11, 14, 22, 13, 20, 123000, tzinfo=timezone.utc)
    assert datetime_to_ms(ts) == 1_700_000_000_123
    assert ms_to_datetime(1_700_000_000_123) == ts
    assert datetime_to_ms(datetime(1970, 1, 1)) == 0


def test_now_ms_reads_wall_clock():
    fixed = datetime(2024, 5, 1, tzinfo=timezone.utc)
    with patch("flashdeck.timeutils.datetime") as mock_datetime:
        mock_datetime.now.return_value = fixed
        assert now_ms() == datetime_to_ms(fixed)
