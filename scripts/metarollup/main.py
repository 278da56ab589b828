"""Rollup orchestration — fan out over partitions and run each rollup."""

import argparse
import asyncio
from collections import defaultdict
from datetime import datetime, timezone

from metarollup.archetypes_directory import ArchetypeDirectory
from metarollup.constants import (
    ALL_CLASSES, ALL_FORMATS, CARDS_JSON, RANK_BRACKETS, SHARD_BATCH_SIZE, TIME_PERIODS,
)
from metarollup.coordinator import RollupCoordinator
from metarollup.decklists import DeckstringDecoder
from metarollup.file_keys import daily_key, file_keys_to_load, hourly_keys_for_day
from metarollup.models import RollupSelector
from metarollup.persistence import DeckStatsTable
from metarollup.snapshots import build_daily_shard, build_snapshot, write_snapshot
from metarollup.storage import ShardStore


def parse_datetime(value):
    """argparse type: ISO date or datetime, UTC when no offset is given."""
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def build_selectors(formats=None, rank_brackets=None, time_periods=None, player_classes=None):
    """Cartesian product of the requested partitions; None fans out over every value.

    player_classes may contain 'all', which selects the cross-class rollup.
    """
    selectors = []
    for format in formats or ALL_FORMATS:
        for rank_bracket in rank_brackets or RANK_BRACKETS:
            for time_period in time_periods or [None]:
                for player_class in player_classes or ALL_CLASSES:
                    selectors.append(RollupSelector(
                        format=format,
                        rank_bracket=rank_bracket,
                        time_period=time_period,
                        player_class=None if player_class == "all" else player_class,
                    ))
    return selectors


def shard_keys_for(selector, now, patch_date=None):
    """Per-class rollups read their own shards; cross-class reads every class."""
    classes = [selector.player_class] if selector.player_class else ALL_CLASSES
    keys = []
    for player_class in classes:
        keys += file_keys_to_load(
            selector.format, selector.rank_bracket, selector.time_period, now,
            player_class=player_class, patch_date=patch_date,
        )
    return keys


def summarize_skips(skip_log):
    if not skip_log:
        return
    print(f"  Skipped {len(skip_log)} units:")
    counts = defaultdict(int)
    for reason in skip_log:
        counts[reason] += 1
    for reason, count in sorted(counts.items(), key=lambda x: -x[1]):
        print(f"    {reason}: {count}")


async def rollup_window(selector, store, table, decoder, directory, now,
                        patch_date=None, batch_size=SHARD_BATCH_SIZE, dry_run=False):
    """Rolling-window rollup: shards -> decks -> archetypes -> snapshot."""
    keys = shard_keys_for(selector, now, patch_date)
    print(f"\n  {selector}: {len(keys)} shard keys")
    coordinator = RollupCoordinator(store, decoder=decoder, batch_size=batch_size)
    result = await coordinator.run(
        keys,
        player_class=selector.player_class,
        time_period=selector.time_period,
        archetype_names=directory.names() if directory else None,
    )
    summarize_skips(coordinator.skip_log)
    if result is None:
        return None

    snapshot = build_snapshot(result, selector)
    print(f"  {len(result.deck_stats)} decks, {len(result.archetype_stats)} archetypes, "
          f"{result.data_points} games")
    if dry_run:
        print(f"    (dry run) would upsert {len(snapshot.deck_rows)} decks, "
              f"write {len(snapshot.archetype_details) + len(snapshot.overviews)} documents")
    else:
        write_snapshot(snapshot, store, table)
    return result


async def rollup_day(selector, store, day, batch_size=SHARD_BATCH_SIZE, dry_run=False):
    """Hour -> day rollup: the 24 hourly shards of `day` become one daily shard.

    Daily shards are per class; cross-class windows read every class's shards.
    """
    if selector.player_class is None:
        raise ValueError("day rollups need a player class")
    keys = hourly_keys_for_day(selector.format, selector.rank_bracket, day, selector.player_class)
    print(f"\n  {selector} {day.date().isoformat()}: {len(keys)} hourly shards")
    coordinator = RollupCoordinator(store, batch_size=batch_size)
    deck_stats = await coordinator.collect(keys, player_class=selector.player_class)
    summarize_skips(coordinator.skip_log)
    if deck_stats is None:
        return None

    last_update = max((d.last_update for d in deck_stats if d.last_update is not None), default=day)
    key = daily_key(selector.format, selector.rank_bracket, day, selector.player_class)
    shard = build_daily_shard(deck_stats, selector, last_update)
    if dry_run:
        print(f"    (dry run) would write {len(deck_stats)} decks to {key}")
    else:
        size = store.write_json(key, shard)
        print(f"    Wrote {len(deck_stats)} decks to {key} ({size / 1024:.1f} KB)")
    return deck_stats


async def run_all(args):
    now = datetime.now(timezone.utc)
    store = ShardStore()

    if args.day:
        # Daily shards are per class, so 'all' means every class here
        day_classes = None if "all" in (args.player_class or []) else args.player_class
        selectors = build_selectors(args.format, args.rank_bracket, None, day_classes)
        print(f"\n[1/1] Rolling up {len(selectors)} partitions for {args.day.date().isoformat()}...")
        for selector in selectors:
            await rollup_day(selector, store, args.day, args.batch_size, args.dry_run)
        return

    time_periods = args.time_period or TIME_PERIODS
    if "last-patch" in time_periods and args.patch_date is None:
        print("  Warning: no --patch-date given, skipping last-patch")
        time_periods = [p for p in time_periods if p != "last-patch"]
        if not time_periods:
            return
    selectors = build_selectors(args.format, args.rank_bracket, time_periods, args.player_class)

    print("\n[1/2] Loading reference data...")
    decoder = DeckstringDecoder.from_cards_json(args.cards_json)
    directory = ArchetypeDirectory(store)
    directory.names()
    table = None if args.dry_run else DeckStatsTable()

    print(f"\n[2/2] Rolling up {len(selectors)} partitions...")
    for selector in selectors:
        await rollup_window(
            selector, store, table, decoder, directory, now,
            patch_date=args.patch_date, batch_size=args.batch_size, dry_run=args.dry_run,
        )


def main(argv=None):
    parser = argparse.ArgumentParser(description="Deck Meta Rollup")
    parser.add_argument("--format", action="append", choices=ALL_FORMATS,
                        help="Game format (repeatable, default: all)")
    parser.add_argument("--rank-bracket", action="append", choices=RANK_BRACKETS,
                        help="Rank bracket (repeatable, default: all)")
    parser.add_argument("--time-period", action="append", choices=TIME_PERIODS,
                        help="Time window (repeatable, default: all)")
    parser.add_argument("--player-class", action="append", choices=ALL_CLASSES + ["all"],
                        help="Player class, or 'all' for the cross-class rollup (default: every class)")
    parser.add_argument("--patch-date", type=parse_datetime,
                        help="Release time of the last patch, for the last-patch window")
    parser.add_argument("--day", type=parse_datetime,
                        help="Roll the hourly shards of this day into a daily shard instead")
    parser.add_argument("--batch-size", type=int, default=SHARD_BATCH_SIZE,
                        help="Shards fetched concurrently per batch")
    parser.add_argument("--cards-json", default=CARDS_JSON,
                        help="HearthstoneJSON card file used to decode decklists")
    parser.add_argument("--dry-run", action="store_true",
                        help="Compute and report, write nothing")
    args = parser.parse_args(argv)

    print("Deck Meta Rollup")
    print("=" * 50)
    asyncio.run(run_all(args))
    print("\nDone!")


if __name__ == "__main__":
    main()
