"""Shared test factories and fakes for rollup tests.

Factories build deck aggregates whose card counters are consistent with their
game counts (every copy slot was in the starting deck of every game), so a
test only has to override what it is about. Fakes stand in for S3, DynamoDB
and the deckstring decoder.
"""

import copy
import sys
from datetime import datetime, timezone
from pathlib import Path

from botocore.exceptions import ClientError

# Add scripts/ to path so we can import metarollup
SCRIPTS_DIR = Path(__file__).resolve().parent.parent
if str(SCRIPTS_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPTS_DIR))

from metarollup.errors import UnparseableDecklistError  # noqa: E402
from metarollup.models import CardStat, CoinPlayInfo, DeckStat, DiscoverStat, MatchupInfo  # noqa: E402

DEFAULT_CARDS = ["A", "B", "C", "C"]
T0 = datetime(2025, 1, 15, 14, 0, tzinfo=timezone.utc)


# ─── Record Factories ────────────────────────────────────────────

def make_card(card_id, games=10, wins=5, **overrides):
    """One copy slot that was in the starting deck of every game."""
    fields = {
        "in_starting_deck": games,
        "wins": wins,
        "drawn_before_mulligan": games // 2,
        "kept_in_mulligan": games // 3,
        "in_hand_after_mulligan": games // 2,
        "in_hand_after_mulligan_then_win": wins // 2,
        "drawn": games // 2,
        "drawn_then_win": wins // 2,
    }
    fields.update(overrides)
    return CardStat(card_id=card_id, **fields)


def make_cards(card_ids=None, games=10, wins=5):
    """One record per copy: ['C', 'C'] gives two slots of C."""
    return [make_card(c, games, wins) for c in (DEFAULT_CARDS if card_ids is None else card_ids)]


def make_coin_play(coin_play, games=10, wins=5, card_ids=None):
    return CoinPlayInfo(
        coin_play=coin_play,
        total_games=games,
        wins=wins,
        losses=games - wins,
        cards_data=make_cards(card_ids, games, wins),
    )


def make_matchup(opponent_class="warrior", games=10, wins=5, opponent_archetype_id=None,
                 card_ids=None, discover=None, coin_play=None):
    return MatchupInfo(
        opponent_class=opponent_class,
        opponent_archetype_id=opponent_archetype_id,
        total_games=games,
        wins=wins,
        losses=games - wins,
        cards_data=make_cards(card_ids, games, wins),
        discover_data=discover or [],
        coin_play_info=coin_play or [],
    )


def make_discover(card_id, discovered=4, discovered_then_win=2):
    return DiscoverStat(card_id=card_id, discovered=discovered, discovered_then_win=discovered_then_win)


def make_deck_stat(decklist="AAECAf0EAA==", card_ids=None, games=10, wins=5, **overrides):
    """A partial deck aggregate as found in one shard.

    By default it carries one matchup (all games vs warrior), one discover
    record and a coin/play split, all consistent with games/wins.
    """
    coin_games = games // 2
    coin_wins = wins // 2
    stat = DeckStat(
        decklist=decklist,
        archetype_id=overrides.pop("archetype_id", 1),
        archetype_name=overrides.pop("archetype_name", "Big Spell Mage"),
        player_class=overrides.pop("player_class", "mage"),
        format=overrides.pop("format", "standard"),
        rank_bracket=overrides.pop("rank_bracket", "legend"),
        time_period=overrides.pop("time_period", None),
        total_games=games,
        total_wins=wins,
        last_update=overrides.pop("last_update", T0),
        hero_card_ids=overrides.pop("hero_card_ids", ["HERO_08"]),
        cards_data=make_cards(card_ids, games, wins),
        matchup_info=overrides.pop("matchup_info", [make_matchup("warrior", games, wins, card_ids=card_ids)]),
        discover_data=overrides.pop("discover_data", [make_discover("DISC_1")]),
        coin_play_info=overrides.pop("coin_play_info", [
            make_coin_play("coin", coin_games, coin_wins, card_ids),
            make_coin_play("play", games - coin_games, wins - coin_wins, card_ids),
        ]),
    )
    for key, value in overrides.items():
        setattr(stat, key, value)
    return stat


def make_shard(deck_stats, **overrides):
    """Shard document in the wire format, deck stats given as DeckStat objects."""
    shard = {
        "lastUpdated": "2025-01-15T14:00:00.000Z",
        "rankBracket": "legend",
        "timePeriod": None,
        "format": "standard",
        "dataPoints": sum(d.total_games for d in deck_stats),
        "deckStats": [d.to_dict() for d in deck_stats],
    }
    shard.update(overrides)
    return shard


def slots_of(cards_data, card_id):
    return [c for c in cards_data if c.card_id == card_id]


def client_error(code, operation="BatchWriteItem"):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


# ─── Fakes ───────────────────────────────────────────────────────

class FakeStore:
    """In-memory ShardStore. Keys listed in `failing` raise on read."""

    def __init__(self, documents=None, failing=None, events=None):
        self.documents = dict(documents or {})
        self.failing = set(failing or [])
        self.events = events if events is not None else []
        self.reads = []
        self.writes = []

    def read_json(self, key):
        self.reads.append(key)
        if key in self.failing:
            raise OSError(f"connection reset reading {key}")
        data = self.documents.get(key)
        return copy.deepcopy(data)

    def write_json(self, key, data):
        self.writes.append((key, data))
        self.events.append(("store", key))
        self.documents[key] = copy.deepcopy(data)
        return len(str(data))


class FakeTable:
    """Records upserted rows instead of talking to DynamoDB."""

    def __init__(self, events=None):
        self.events = events if events is not None else []
        self.rows = []

    def upsert(self, rows, last_update=None):
        rows = list(rows)
        self.rows.extend(rows)
        for key, _ in rows:
            self.events.append(("table", key["deckId"]))
        return len(rows)


class FakeDecoder:
    """Decodes from a fixed decklist -> card ids map; anything else is unparseable."""

    def __init__(self, decks=None):
        self.decks = dict(decks or {})
        self.calls = []

    def decode(self, decklist):
        self.calls.append(decklist)
        if decklist not in self.decks:
            raise UnparseableDecklistError(decklist, "(unknown to fake decoder)")
        return list(self.decks[decklist])


class FakeDynamoResource:
    """batch_write_item answers from a script: exceptions are raised, dicts returned.

    Once the script is exhausted every call succeeds.
    """

    def __init__(self, script=None):
        self.script = list(script or [])
        self.calls = []

    def batch_write_item(self, RequestItems):
        self.calls.append(copy.deepcopy(RequestItems))
        if self.script:
            outcome = self.script.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return {"UnprocessedItems": {}}


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds
