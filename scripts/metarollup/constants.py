"""Rollup constants — paths, AWS config, enumerations, thresholds."""

import os
from pathlib import Path

from hearthstone.enums import CardClass

# ─── Paths ──────────────────────────────────────────────────────

SCRIPT_DIR = Path(__file__).resolve().parent.parent  # scripts/
PROJECT_DIR = SCRIPT_DIR.parent
DATA_DIR = PROJECT_DIR / "data"

# HearthstoneJSON card dump, used to map deckstring dbf ids to card ids
CARDS_JSON = Path(os.environ.get("CARDS_JSON", DATA_DIR / "cards.json"))

# ─── AWS / S3 / DynamoDB ────────────────────────────────────────

DECK_STATS_BUCKET = os.environ.get("DECK_STATS_BUCKET", "static.zerotoheroes.com")
DECK_STATS_KEY_PREFIX = "api/constructed/stats"
ARCHETYPES_KEY = os.environ.get("ARCHETYPES_KEY", f"{DECK_STATS_KEY_PREFIX}/archetypes/archetypes.gz.json")
DECK_STATS_TABLE = os.environ.get("DECK_STATS_TABLE", "constructed_deck_stats")
AWS_REGION = os.environ.get("AWS_DEFAULT_REGION", "us-west-2")

# ─── Enumerations ───────────────────────────────────────────────

ALL_FORMATS = ["standard", "wild", "twist"]

RANK_BRACKETS = [
    "top-2000-legend",
    "legend",
    "legend-diamond",
    "diamond",
    "platinum",
    "bronze-gold",
    "all",
]

TIME_PERIODS = ["last-patch", "past-20", "past-7", "past-3", "current-season"]

# Hero classes, lowercase, no separators
ALL_CLASSES = sorted(c.name.lower() for c in CardClass if c.is_playable)

COIN_PLAY = ["coin", "play"]

# ─── Normalization Maps ─────────────────────────────────────────

# Card id normalization map (reprint / format-specific ids → base id)
CARD_RENAMES = {
    "CORE_CS2_029": "CS2_029",
    "LEG_CS3_031": "CS3_031",
}

# ─── Thresholds & Configuration ─────────────────────────────────

# Average copies per deck for a card to count as part of an archetype skeleton
CORE_CARD_THRESHOLD = 0.9

# Decks and archetypes below this many games are left out of published snapshots
MIN_GAMES_FOR_OVERVIEW = 50

# Detailed deck documents keep cards present in more than 1/50th of the games
DETAILED_DECK_CARD_SHARE = 1 / 50

# Archetype card records must cover more than 1/1000th of the games
ARCHETYPE_CARD_SHARE = 1 / 1000

# Decklists stored by the legacy pipeline were cut at the column size
LEGACY_TRUNCATED_DECKLIST_LENGTH = 145

# Winrates are published with this many decimals
WINRATE_DECIMALS = 4

# Shards fetched concurrently per batch
SHARD_BATCH_SIZE = 5

# DynamoDB batch_write_item accepts at most 25 requests
UPSERT_CHUNK_SIZE = 25
UPSERT_MAX_RETRIES = 15
UPSERT_BACKOFF_SECONDS = 0.2
