"""Shard key layout — which hourly and daily shards cover a time window.

Keys look like
    {prefix}/decks/{format}/{rank}/{hourly|daily}/{ISO timestamp}-{class}.gz.json
with the timestamp truncated to the hour (hourly) or day (daily), in UTC.
Every function takes `now` explicitly so windows are reproducible.
"""

from datetime import datetime, timedelta, timezone

from metarollup.constants import DECK_STATS_KEY_PREFIX


def iso_hour(dt):
    """'2024-05-01T13:00:00.000Z' for any moment inside that hour."""
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:00:00.000Z")


def start_of_day(dt):
    dt = dt.astimezone(timezone.utc)
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def shard_key(format, rank_bracket, granularity, dt, player_class=None, prefix=DECK_STATS_KEY_PREFIX):
    suffix = f"-{player_class}" if player_class else ""
    return f"{prefix}/decks/{format}/{rank_bracket}/{granularity}/{iso_hour(dt)}{suffix}.gz.json"


def compute_start_date(time_period, now, patch_date=None):
    """First day whose daily shard belongs to the window."""
    today = start_of_day(now)
    if time_period == "past-3":
        return today - timedelta(days=3)
    if time_period == "past-7":
        return today - timedelta(days=7)
    if time_period == "past-20":
        return today - timedelta(days=20)
    if time_period == "current-season":
        return today.replace(day=1)
    if time_period == "last-patch":
        if patch_date is None:
            raise ValueError("last-patch window needs a patch date")
        return start_of_day(patch_date) + timedelta(days=1)
    raise ValueError(f"Unknown time period: {time_period}")


def hourly_keys_for_current_day(format, rank_bracket, now, player_class=None):
    """Hourly shards from the current hour back to midnight."""
    now = now.astimezone(timezone.utc)
    return [
        shard_key(format, rank_bracket, "hourly", now - timedelta(hours=i), player_class)
        for i in range(now.hour + 1)
    ]


def daily_keys_since(format, rank_bracket, start, now, player_class=None):
    """Daily shards from start up to and including yesterday."""
    keys = []
    day = start_of_day(start)
    today = start_of_day(now)
    while day < today:
        keys.append(shard_key(format, rank_bracket, "daily", day, player_class))
        day += timedelta(days=1)
    return keys


def hourly_keys_for_patch_day(format, rank_bracket, patch_date, player_class=None):
    """Hourly shards of the patch day, from the hour after the release to 23:00."""
    patch_date = patch_date.astimezone(timezone.utc)
    day = start_of_day(patch_date)
    return [
        shard_key(format, rank_bracket, "hourly", day + timedelta(hours=h), player_class)
        for h in range(patch_date.hour + 1, 24)
    ]


def hourly_keys_for_day(format, rank_bracket, day, player_class=None):
    """The 24 hourly shards rolled up into one daily shard."""
    day = start_of_day(day)
    return [
        shard_key(format, rank_bracket, "hourly", day + timedelta(hours=h), player_class)
        for h in range(24)
    ]


def daily_key(format, rank_bracket, day, player_class=None):
    return shard_key(format, rank_bracket, "daily", start_of_day(day), player_class)


def file_keys_to_load(format, rank_bracket, time_period, now, player_class=None, patch_date=None):
    """All shard keys for a rolling window: today's hours, previous days, patch day hours."""
    now = now or datetime.now(timezone.utc)
    current_day = hourly_keys_for_current_day(format, rank_bracket, now, player_class)
    start = compute_start_date(time_period, now, patch_date)
    if time_period == "last-patch" and start_of_day(patch_date) == start_of_day(now):
        # Patch released today: only the hours after the release count
        patch_hours = set(hourly_keys_for_patch_day(format, rank_bracket, patch_date, player_class))
        return [k for k in current_day if k in patch_hours]

    keys = current_day + daily_keys_since(format, rank_bracket, start, now, player_class)
    if time_period == "last-patch":
        keys += hourly_keys_for_patch_day(format, rank_bracket, patch_date, player_class)
    return keys
