"""Category J: Shard Key Tests

Which hourly and daily shards make up a window, for a fixed `now`.
"""

from datetime import datetime, timezone

import pytest

from metarollup.file_keys import (
    compute_start_date,
    daily_key,
    daily_keys_since,
    file_keys_to_load,
    hourly_keys_for_current_day,
    hourly_keys_for_day,
    hourly_keys_for_patch_day,
    iso_hour,
    shard_key,
)

PREFIX = "api/constructed/stats/decks/standard/legend"
NOW = datetime(2025, 1, 15, 14, 30, tzinfo=timezone.utc)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def hourly(ts):
    return f"{PREFIX}/hourly/{ts}-mage.gz.json"


def daily(ts):
    return f"{PREFIX}/daily/{ts}-mage.gz.json"


# ─── J1: key format ──────────────────────────────────────────────

class TestJ1_KeyFormat:

    def test_iso_hour_truncates(self):
        assert iso_hour(utc(2025, 1, 15, 14, 59, 59)) == "2025-01-15T14:00:00.000Z"

    def test_shard_key(self):
        assert shard_key("standard", "legend", "hourly", NOW, "mage") == hourly("2025-01-15T14:00:00.000Z")

    def test_shard_key_without_class(self):
        assert shard_key("wild", "all", "daily", NOW) == (
            "api/constructed/stats/decks/wild/all/daily/2025-01-15T14:00:00.000Z.gz.json"
        )

    def test_daily_key_is_start_of_day(self):
        assert daily_key("standard", "legend", NOW, "mage") == daily("2025-01-15T00:00:00.000Z")


# ─── J2: window start ────────────────────────────────────────────

class TestJ2_WindowStart:

    @pytest.mark.parametrize("period,expected", [
        ("past-3", utc(2025, 1, 12)),
        ("past-7", utc(2025, 1, 8)),
        ("past-20", utc(2024, 12, 26)),
        ("current-season", utc(2025, 1, 1)),
    ])
    def test_rolling_windows(self, period, expected):
        assert compute_start_date(period, NOW) == expected

    def test_last_patch_starts_day_after_release(self):
        assert compute_start_date("last-patch", NOW, utc(2025, 1, 10, 17, 45)) == utc(2025, 1, 11)

    def test_last_patch_without_date(self):
        with pytest.raises(ValueError):
            compute_start_date("last-patch", NOW)

    def test_unknown_period(self):
        with pytest.raises(ValueError):
            compute_start_date("past-9000", NOW)


# ─── J3: key ranges ──────────────────────────────────────────────

class TestJ3_KeyRanges:

    def test_current_day_hours(self):
        keys = hourly_keys_for_current_day("standard", "legend", NOW, "mage")
        assert len(keys) == 15
        assert keys[0] == hourly("2025-01-15T14:00:00.000Z")
        assert keys[-1] == hourly("2025-01-15T00:00:00.000Z")

    def test_just_after_midnight(self):
        keys = hourly_keys_for_current_day("standard", "legend", utc(2025, 1, 15, 0, 5), "mage")
        assert keys == [hourly("2025-01-15T00:00:00.000Z")]

    def test_daily_keys_stop_before_today(self):
        keys = daily_keys_since("standard", "legend", utc(2025, 1, 12), NOW, "mage")
        assert keys == [
            daily("2025-01-12T00:00:00.000Z"),
            daily("2025-01-13T00:00:00.000Z"),
            daily("2025-01-14T00:00:00.000Z"),
        ]

    def test_patch_day_hours_after_release(self):
        keys = hourly_keys_for_patch_day("standard", "legend", utc(2025, 1, 10, 17, 45), "mage")
        assert keys[0] == hourly("2025-01-10T18:00:00.000Z")
        assert keys[-1] == hourly("2025-01-10T23:00:00.000Z")
        assert len(keys) == 6

    def test_full_day(self):
        keys = hourly_keys_for_day("standard", "legend", NOW, "mage")
        assert len(keys) == 24
        assert keys[0] == hourly("2025-01-15T00:00:00.000Z")
        assert keys[-1] == hourly("2025-01-15T23:00:00.000Z")


# ─── J4: whole windows ───────────────────────────────────────────

class TestJ4_Windows:

    def test_past_3(self):
        keys = file_keys_to_load("standard", "legend", "past-3", NOW, "mage")
        assert len(keys) == 15 + 3
        assert len(set(keys)) == len(keys)

    def test_current_season(self):
        keys = file_keys_to_load("standard", "legend", "current-season", NOW, "mage")
        assert sum("/daily/" in k for k in keys) == 14

    def test_last_patch(self):
        keys = file_keys_to_load("standard", "legend", "last-patch", NOW, "mage",
                                 patch_date=utc(2025, 1, 10, 17, 45))
        assert sum("/daily/" in k for k in keys) == 4
        assert sum("2025-01-10T" in k for k in keys) == 6
        assert daily("2025-01-10T00:00:00.000Z") not in keys
        assert len(keys) == 15 + 4 + 6

    def test_patch_released_yesterday(self):
        keys = file_keys_to_load("standard", "legend", "last-patch", NOW, "mage",
                                 patch_date=utc(2025, 1, 14, 22, 10))
        assert not any("/daily/" in k for k in keys)
        assert hourly("2025-01-14T23:00:00.000Z") in keys
        assert len(keys) == 15 + 1

    def test_patch_released_today(self):
        """Only today's hours after the release, no day counted twice."""
        keys = file_keys_to_load("standard", "legend", "last-patch", NOW, "mage",
                                 patch_date=utc(2025, 1, 15, 9, 20))
        assert keys == [hourly(f"2025-01-15T{h:02d}:00:00.000Z") for h in (14, 13, 12, 11, 10)]
