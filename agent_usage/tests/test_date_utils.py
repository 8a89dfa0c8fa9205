import unittest
from datetime import datetime, timedelta, timezone

from agent_usage.date_utils import epoch_to_iso, parse_timestamp, period_start, to_epoch, to_optional_epoch
from agent_usage.models import Period


class DateUtilsTests(unittest.TestCase):
    def test_parse_second_precision(self) -> None:
        self.assertEqual(
            parse_timestamp("2026-01-05T08:09:10Z"),
            datetime(2026, 1, 5, 8, 9, 10, tzinfo=timezone.utc),
        )

    def test_parse_nanosecond_precision_truncates(self) -> None:
        parsed = parse_timestamp("2026-01-05T08:09:10.987654321Z")
        self.assertEqual(parsed, datetime(2026, 1, 5, 8, 9, 10, 987654, tzinfo=timezone.utc))

    def test_parse_offset(self) -> None:
        parsed = parse_timestamp("2026-01-05T10:00:00+02:00")
        self.assertEqual(to_epoch(parsed), to_epoch(datetime(2026, 1, 5, 8, 0, 0, tzinfo=timezone.utc)))

    def test_parse_rejects_garbage(self) -> None:
        for value in (None, "", "2026-01-05", "2026-01-05 08:09:10", "soon", 12345):
            self.assertIsNone(parse_timestamp(value))

    def test_to_epoch_floors_fractions_and_maps_none_to_zero(self) -> None:
        dt = datetime(1970, 1, 1, 0, 0, 1, 999999, tzinfo=timezone.utc)
        self.assertEqual(to_epoch(dt), 1)
        self.assertEqual(to_epoch(None), 0)
        self.assertIsNone(to_optional_epoch(None))

    def test_period_start_uses_lookback_days(self) -> None:
        now = datetime(2026, 2, 1, 12, 0, 0, tzinfo=timezone.utc)
        self.assertEqual(period_start(Period.DAY, now), to_epoch(now - timedelta(days=1)))
        self.assertEqual(period_start(Period.WEEK, now), to_epoch(now - timedelta(days=7)))
        self.assertEqual(period_start(Period.MONTH, now), to_epoch(now - timedelta(days=30)))

    def test_epoch_to_iso(self) -> None:
        self.assertEqual(epoch_to_iso(0), "")
        self.assertEqual(epoch_to_iso(86400), "1970-01-02T00:00:00Z")


if __name__ == "__main__":
    unittest.main()
