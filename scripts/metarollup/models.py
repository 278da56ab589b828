"""Aggregate records exchanged between shards, mergers and snapshots.

Field names follow Python conventions; ``from_dict``/``to_dict`` translate to
the camelCase JSON documents written by the upstream per-match stage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from metarollup.constants import WINRATE_DECIMALS

# attribute -> JSON key, for every additive counter of a card record
CARD_COUNTERS = {
    "in_starting_deck": "inStartingDeck",
    "wins": "wins",
    "drawn_before_mulligan": "drawnBeforeMulligan",
    "kept_in_mulligan": "keptInMulligan",
    "in_hand_after_mulligan": "inHandAfterMulligan",
    "in_hand_after_mulligan_then_win": "inHandAfterMulliganThenWin",
    "drawn": "drawn",
    "drawn_then_win": "drawnThenWin",
}


def compute_winrate(wins: int, total_games: int, decimals: int = WINRATE_DECIMALS) -> Optional[float]:
    """Winrate from raw counters. None when no game was played."""
    if not total_games:
        return None
    return round(wins / total_games, decimals)


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an ISO string, epoch milliseconds or datetime. None if unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            dt = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        try:
            dt = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_timestamp(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class CardStat:
    """One copy-slot of one card inside a decklist aggregate."""

    card_id: Optional[str]
    in_starting_deck: int = 0
    wins: int = 0
    drawn_before_mulligan: int = 0
    kept_in_mulligan: int = 0
    in_hand_after_mulligan: int = 0
    in_hand_after_mulligan_then_win: int = 0
    drawn: int = 0
    drawn_then_win: int = 0

    def add(self, other: "CardStat") -> None:
        for attr in CARD_COUNTERS:
            setattr(self, attr, getattr(self, attr) + getattr(other, attr))

    @classmethod
    def from_dict(cls, data: dict) -> "CardStat":
        data = data or {}
        kwargs = {attr: int(data.get(key) or 0) for attr, key in CARD_COUNTERS.items()}
        return cls(card_id=data.get("cardId") or None, **kwargs)

    def to_dict(self) -> dict:
        result = {"cardId": self.card_id}
        for attr, key in CARD_COUNTERS.items():
            result[key] = getattr(self, attr)
        return result


@dataclass
class DiscoverStat:
    card_id: Optional[str]
    discovered: int = 0
    discovered_then_win: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> "DiscoverStat":
        return cls(
            card_id=data.get("cardId") or None,
            discovered=int(data.get("discovered") or 0),
            discovered_then_win=int(data.get("discoveredThenWin") or 0),
        )

    def to_dict(self) -> dict:
        return {
            "cardId": self.card_id,
            "discovered": self.discovered,
            "discoveredThenWin": self.discovered_then_win,
        }


@dataclass
class CoinPlayInfo:
    coin_play: str
    total_games: int = 0
    wins: int = 0
    losses: int = 0
    winrate: Optional[float] = None
    cards_data: List[CardStat] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "CoinPlayInfo":
        return cls(
            coin_play=data.get("coinPlay"),
            total_games=int(data.get("totalGames") or 0),
            wins=int(data.get("wins") or 0),
            losses=int(data.get("losses") or 0),
            winrate=data.get("winrate"),
            cards_data=[CardStat.from_dict(c) for c in data.get("cardsData") or []],
        )

    def to_dict(self) -> dict:
        return {
            "coinPlay": self.coin_play,
            "totalGames": self.total_games,
            "wins": self.wins,
            "losses": self.losses,
            "winrate": self.winrate,
            "cardsData": [c.to_dict() for c in self.cards_data],
        }


@dataclass
class MatchupInfo:
    opponent_class: str
    opponent_archetype_id: Optional[int] = None
    total_games: int = 0
    wins: int = 0
    losses: int = 0
    winrate: Optional[float] = None
    cards_data: List[CardStat] = field(default_factory=list)
    discover_data: List[DiscoverStat] = field(default_factory=list)
    coin_play_info: List[CoinPlayInfo] = field(default_factory=list)

    @property
    def key(self):
        return (self.opponent_class, self.opponent_archetype_id)

    @classmethod
    def from_dict(cls, data: dict) -> "MatchupInfo":
        return cls(
            opponent_class=data.get("opponentClass"),
            opponent_archetype_id=data.get("opponentArchetypeId"),
            total_games=int(data.get("totalGames") or 0),
            wins=int(data.get("wins") or 0),
            losses=int(data.get("losses") or 0),
            winrate=data.get("winrate"),
            cards_data=[CardStat.from_dict(c) for c in data.get("cardsData") or []],
            discover_data=[DiscoverStat.from_dict(d) for d in data.get("discoverData") or []],
            coin_play_info=[CoinPlayInfo.from_dict(c) for c in data.get("coinPlayInfo") or []],
        )

    def to_dict(self) -> dict:
        return {
            "opponentClass": self.opponent_class,
            "opponentArchetypeId": self.opponent_archetype_id,
            "totalGames": self.total_games,
            "wins": self.wins,
            "losses": self.losses,
            "winrate": self.winrate,
            "cardsData": [c.to_dict() for c in self.cards_data],
            "discoverData": [d.to_dict() for d in self.discover_data],
            "coinPlayInfo": [c.to_dict() for c in self.coin_play_info],
        }


@dataclass
class DeckStat:
    """Aggregate for one exact decklist signature."""

    decklist: str
    archetype_id: Optional[int] = None
    archetype_name: Optional[str] = None
    player_class: Optional[str] = None
    format: Optional[str] = None
    rank_bracket: Optional[str] = None
    time_period: Optional[str] = None
    total_games: int = 0
    total_wins: int = 0
    winrate: Optional[float] = None
    last_update: Optional[datetime] = None
    hero_card_ids: List[str] = field(default_factory=list)
    cards_data: List[CardStat] = field(default_factory=list)
    matchup_info: List[MatchupInfo] = field(default_factory=list)
    discover_data: List[DiscoverStat] = field(default_factory=list)
    coin_play_info: List[CoinPlayInfo] = field(default_factory=list)
    # Set by enrichment only
    card_variations: Optional[Dict[str, List[str]]] = None
    archetype_core_cards: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, data: dict) -> "DeckStat":
        return cls(
            decklist=data.get("decklist"),
            archetype_id=data.get("archetypeId"),
            archetype_name=data.get("archetypeName"),
            player_class=data.get("playerClass"),
            format=data.get("format"),
            rank_bracket=data.get("rankBracket"),
            time_period=data.get("timePeriod"),
            total_games=int(data.get("totalGames") or 0),
            total_wins=int(data.get("totalWins") or 0),
            winrate=data.get("winrate"),
            last_update=parse_timestamp(data.get("lastUpdate")),
            hero_card_ids=list(data.get("heroCardIds") or []),
            cards_data=[CardStat.from_dict(c) for c in data.get("cardsData") or []],
            matchup_info=[MatchupInfo.from_dict(m) for m in data.get("matchupInfo") or []],
            discover_data=[DiscoverStat.from_dict(d) for d in data.get("discoverData") or []],
            coin_play_info=[CoinPlayInfo.from_dict(c) for c in data.get("coinPlayInfo") or []],
            card_variations=data.get("cardVariations"),
            archetype_core_cards=data.get("archetypeCoreCards"),
        )

    def to_dict(self) -> dict:
        return {
            "decklist": self.decklist,
            "archetypeId": self.archetype_id,
            "archetypeName": self.archetype_name,
            "playerClass": self.player_class,
            "heroCardIds": list(self.hero_card_ids),
            "format": self.format,
            "rankBracket": self.rank_bracket,
            "timePeriod": self.time_period,
            "totalGames": self.total_games,
            "totalWins": self.total_wins,
            "winrate": self.winrate,
            "lastUpdate": format_timestamp(self.last_update),
            "cardsData": [c.to_dict() for c in self.cards_data],
            "matchupInfo": [m.to_dict() for m in self.matchup_info],
            "discoverData": [d.to_dict() for d in self.discover_data],
            "coinPlayInfo": [c.to_dict() for c in self.coin_play_info],
            "cardVariations": self.card_variations,
            "archetypeCoreCards": self.archetype_core_cards,
        }


@dataclass
class ArchetypeStat:
    id: int
    name: Optional[str] = None
    format: Optional[str] = None
    hero_class: Optional[str] = None
    hero_card_ids: List[str] = field(default_factory=list)
    total_games: int = 0
    total_wins: int = 0
    winrate: Optional[float] = None
    core_cards: List[str] = field(default_factory=list)
    cards_data: List[CardStat] = field(default_factory=list)
    matchup_info: List[MatchupInfo] = field(default_factory=list)
    discover_data: List[DiscoverStat] = field(default_factory=list)
    coin_play_info: List[CoinPlayInfo] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "format": self.format,
            "heroCardClass": self.hero_class,
            "heroCardIds": list(self.hero_card_ids),
            "totalGames": self.total_games,
            "totalWins": self.total_wins,
            "winrate": self.winrate,
            "coreCards": list(self.core_cards),
            "cardsData": [c.to_dict() for c in self.cards_data],
            "matchupInfo": [m.to_dict() for m in self.matchup_info],
            "discoverData": [d.to_dict() for d in self.discover_data],
            "coinPlayInfo": [c.to_dict() for c in self.coin_play_info],
        }


@dataclass(frozen=True)
class RollupSelector:
    """One partition to recompute. player_class None means cross-class."""

    format: str
    rank_bracket: str
    time_period: Optional[str] = None
    player_class: Optional[str] = None

    @property
    def class_label(self) -> str:
        return self.player_class or "all"

    def __str__(self):
        period = self.time_period or "daily"
        return f"{self.format}/{self.rank_bracket}/{period}/{self.class_label}"


# ─── Overview views ─────────────────────────────────────────────

@dataclass(frozen=True)
class DeckSummary:
    """Lightweight listing view of a deck, without per-card or matchup detail."""

    decklist: str
    archetype_id: Optional[int]
    archetype_name: Optional[str]
    player_class: Optional[str]
    format: Optional[str]
    rank_bracket: Optional[str]
    time_period: Optional[str]
    total_games: int
    total_wins: int
    winrate: Optional[float]
    last_update: Optional[datetime]
    card_variations: Optional[Dict[str, List[str]]]
    archetype_core_cards: Optional[List[str]]

    def to_dict(self) -> dict:
        return {
            "decklist": self.decklist,
            "archetypeId": self.archetype_id,
            "archetypeName": self.archetype_name,
            "playerClass": self.player_class,
            "format": self.format,
            "rankBracket": self.rank_bracket,
            "timePeriod": self.time_period,
            "totalGames": self.total_games,
            "totalWins": self.total_wins,
            "winrate": self.winrate,
            "lastUpdate": format_timestamp(self.last_update),
            "cardVariations": self.card_variations,
            "archetypeCoreCards": self.archetype_core_cards,
        }


@dataclass(frozen=True)
class ArchetypeSummary:
    id: int
    name: Optional[str]
    format: Optional[str]
    hero_class: Optional[str]
    total_games: int
    total_wins: int
    winrate: Optional[float]
    core_cards: List[str]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "format": self.format,
            "heroCardClass": self.hero_class,
            "totalGames": self.total_games,
            "totalWins": self.total_wins,
            "winrate": self.winrate,
            "coreCards": list(self.core_cards),
        }
