"""Streaming batch coordinator — fold shards into deck aggregates batch by batch.

Shards are fetched a few at a time; each fetched shard is parsed, filtered and
folded into a single accumulator keyed by decklist before the next batch is
requested, so only one batch of raw shard data is alive at any time. All
merging happens on the event loop thread; only the blocking S3 reads run in
worker threads.
"""

import asyncio
import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from metarollup.archetypes import build_archetype_stats, enhance_deck_stats
from metarollup.constants import LEGACY_TRUNCATED_DECKLIST_LENGTH, SHARD_BATCH_SIZE
from metarollup.decks import accept_deck_stat, combine_deck_stats, fold_deck_stat, merge_deck_stats
from metarollup.models import ArchetypeStat, DeckStat


class RollupState(enum.Enum):
    IDLE = "idle"
    FETCHING_BATCH = "fetching-batch"
    FOLDING = "folding"
    FINALIZING = "finalizing"
    ENRICHING = "enriching"
    DONE = "done"


@dataclass
class RollupResult:
    deck_stats: List[DeckStat]
    archetype_stats: List[ArchetypeStat] = field(default_factory=list)
    data_points: int = 0
    last_update: Optional[datetime] = None
    shards_loaded: int = 0


def batched(items, size):
    for i in range(0, len(items), size):
        yield items[i:i + size]


class RollupCoordinator:
    """Runs one rollup over a list of shard keys."""

    def __init__(self, store, decoder=None, batch_size=SHARD_BATCH_SIZE, renames=None):
        self.store = store
        self.decoder = decoder
        self.batch_size = batch_size
        self.renames = renames
        self.state = RollupState.IDLE
        self.skip_log = []
        self.shards_loaded = 0

    # ─── Fetching ───────────────────────────────────────────────

    async def fetch_shard(self, key):
        """Read one shard. A failing read is logged and treated as absent."""
        try:
            return await asyncio.to_thread(self.store.read_json, key)
        except (ClientError, BotoCoreError, OSError, ValueError) as e:
            self.skip_log.append("shard fetch failed")
            print(f"  Warning: could not read shard {key}: {e}")
            return None

    async def fetch_batch(self, keys):
        results = await asyncio.gather(*(self.fetch_shard(key) for key in keys))
        return [(key, data) for key, data in zip(keys, results) if data is not None]

    # ─── Folding ────────────────────────────────────────────────

    def parse_shard(self, key, data, player_class=None):
        """Deck aggregates of one shard that belong to the requested partition."""
        if not isinstance(data, dict):
            self.skip_log.append("malformed shard")
            print(f"  Warning: shard {key} is not a stats document, ignoring it")
            return []
        stats = []
        for raw in data.get("deckStats") or []:
            try:
                stat = self.parse_deck_entry(key, raw, player_class)
            except (AttributeError, TypeError, ValueError) as e:
                decklist = raw.get("decklist") if isinstance(raw, dict) else None
                self.skip_log.append("malformed deck entry")
                print(f"  Warning: malformed deck entry in {key} ({e}), skipping deck {decklist}")
                continue
            if stat is not None:
                stats.append(stat)
        return stats

    def parse_deck_entry(self, key, raw, player_class=None):
        """One deckStats entry as a DeckStat, or None if it is filtered out."""
        if player_class and raw.get("playerClass") != player_class:
            return None
        decklist = raw.get("decklist")
        if not decklist:
            return None
        if len(decklist) == LEGACY_TRUNCATED_DECKLIST_LENGTH:
            self.skip_log.append("legacy truncated decklist")
            print(f"  Warning: legacy truncated decklist in {key}, skipping deck {decklist}")
            return None
        stat = DeckStat.from_dict(raw)
        if raw.get("lastUpdate") and stat.last_update is None:
            self.skip_log.append("unparseable lastUpdate")
            print(f"  Warning: unparseable lastUpdate {raw.get('lastUpdate')!r} in {key}, deck {decklist}")
        return stat

    def fold(self, accumulator, stats, source=None):
        for stat in stats:
            if not accept_deck_stat(stat, self.skip_log, source):
                continue
            existing = accumulator.get(stat.decklist)
            if existing is None:
                accumulator[stat.decklist] = combine_deck_stats([stat], self.renames)
            else:
                accumulator[stat.decklist] = fold_deck_stat(existing, stat, self.renames)
        return accumulator

    async def collect(self, keys, player_class=None, time_period=None):
        """Fold every shard of `keys` into finalized deck aggregates.

        Returns None when no deck was found for the window.
        """
        accumulator = {}
        batches = list(batched(list(keys), self.batch_size))
        for i, batch in enumerate(batches):
            self.state = RollupState.FETCHING_BATCH
            print(f"  Batch {i + 1}/{len(batches)} ({len(batch)} shards)")
            fetched = await self.fetch_batch(batch)

            self.state = RollupState.FOLDING
            for key, data in fetched:
                self.fold(accumulator, self.parse_shard(key, data, player_class), source=key)
            self.shards_loaded += len(fetched)
            del fetched

        self.state = RollupState.FINALIZING
        if not accumulator:
            print(f"  No deck stats in {len(keys)} shard keys, nothing to write")
            self.state = RollupState.DONE
            return None

        print(f"  Folded {len(accumulator)} decklists from {self.shards_loaded} shards")
        return merge_deck_stats(accumulator.values(), time_period, self.renames)

    # ─── Full rollup ────────────────────────────────────────────

    async def run(self, keys, player_class=None, time_period=None, archetype_names=None):
        """Decks, then archetypes, then enrichment. None for an empty window."""
        deck_stats = await self.collect(keys, player_class, time_period)
        if deck_stats is None:
            return None

        archetype_stats = build_archetype_stats(deck_stats, archetype_names, self.renames, self.skip_log)
        print(f"  Built {len(archetype_stats)} archetypes")

        self.state = RollupState.ENRICHING
        if self.decoder is not None:
            deck_stats = enhance_deck_stats(deck_stats, archetype_stats, self.decoder, self.skip_log)

        self.state = RollupState.DONE
        return RollupResult(
            deck_stats=deck_stats,
            archetype_stats=archetype_stats,
            data_points=sum(d.total_games for d in deck_stats),
            last_update=max(
                (d.last_update for d in deck_stats if d.last_update is not None),
                default=datetime.now(timezone.utc),
            ),
            shards_loaded=self.shards_loaded,
        )
