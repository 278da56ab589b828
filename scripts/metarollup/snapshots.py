"""Output snapshots — overview documents, detailed documents, daily shards.

Everything is built in memory first (build_snapshot) and only then written
(write_snapshot): detailed documents go out before the overviews that link
to them, so readers never see an overview pointing at missing details.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from metarollup.constants import DECK_STATS_KEY_PREFIX, DETAILED_DECK_CARD_SHARE, MIN_GAMES_FOR_OVERVIEW
from metarollup.models import ArchetypeSummary, DeckSummary, format_timestamp


# ─── Projections ────────────────────────────────────────────────

def to_deck_summary(deck):
    return DeckSummary(
        decklist=deck.decklist,
        archetype_id=deck.archetype_id,
        archetype_name=deck.archetype_name,
        player_class=deck.player_class,
        format=deck.format,
        rank_bracket=deck.rank_bracket,
        time_period=deck.time_period,
        total_games=deck.total_games,
        total_wins=deck.total_wins,
        winrate=deck.winrate,
        last_update=deck.last_update,
        card_variations=deck.card_variations,
        archetype_core_cards=deck.archetype_core_cards,
    )


def to_archetype_summary(archetype):
    return ArchetypeSummary(
        id=archetype.id,
        name=archetype.name,
        format=archetype.format,
        hero_class=archetype.hero_class,
        total_games=archetype.total_games,
        total_wins=archetype.total_wins,
        winrate=archetype.winrate,
        core_cards=list(archetype.core_cards),
    )


def deck_id(decklist):
    """URL-safe identifier of a decklist."""
    return decklist.replace("/", "-")


# ─── Keys ───────────────────────────────────────────────────────

def overview_key(kind, selector, prefix=DECK_STATS_KEY_PREFIX):
    """kind is 'decks' or 'archetypes'."""
    return (f"{prefix}/{kind}/{selector.format}/{selector.rank_bracket}/{selector.time_period}/"
            f"overview-from-hourly-{selector.class_label}.gz.json")


def archetype_detail_key(selector, archetype_id, prefix=DECK_STATS_KEY_PREFIX):
    return (f"{prefix}/archetypes/{selector.format}/{selector.rank_bracket}/{selector.time_period}/"
            f"archetype/{archetype_id}.gz.json")


# ─── Documents ──────────────────────────────────────────────────

def envelope(selector, last_update, data_points, **stats):
    doc = {
        "lastUpdated": format_timestamp(last_update),
        "rankBracket": selector.rank_bracket,
        "timePeriod": selector.time_period,
        "format": selector.format,
        "dataPoints": data_points,
    }
    doc.update(stats)
    return doc


def build_deck_overview(deck_stats, selector, last_update, min_games=MIN_GAMES_FOR_OVERVIEW):
    return envelope(
        selector, last_update,
        sum(d.total_games for d in deck_stats),
        deckStats=[to_deck_summary(d).to_dict() for d in deck_stats if d.total_games >= min_games],
    )


def build_archetype_overview(archetype_stats, selector, last_update, min_games=MIN_GAMES_FOR_OVERVIEW):
    return envelope(
        selector, last_update,
        sum(a.total_games for a in archetype_stats),
        archetypeStats=[to_archetype_summary(a).to_dict() for a in archetype_stats if a.total_games >= min_games],
    )


def build_detailed_deck(deck, card_share=DETAILED_DECK_CARD_SHARE):
    """Full deck document, without cards seen in too few games to be meaningful."""
    doc = deck.to_dict()
    doc["cardsData"] = [
        c.to_dict() for c in deck.cards_data if c.in_starting_deck > deck.total_games * card_share
    ]
    return doc


def build_daily_shard(deck_stats, selector, last_update):
    """Hour->day rollup output, in the shard envelope so it can be rolled up again."""
    return envelope(
        selector, last_update,
        sum(d.total_games for d in deck_stats),
        deckStats=[d.to_dict() for d in deck_stats],
    )


# ─── Snapshot ───────────────────────────────────────────────────

@dataclass
class Snapshot:
    selector: object
    deck_rows: List[Tuple[dict, dict]] = field(default_factory=list)
    archetype_details: List[Tuple[str, dict]] = field(default_factory=list)
    overviews: List[Tuple[str, dict]] = field(default_factory=list)
    last_update: Optional[str] = None


def build_snapshot(result, selector, min_games=MIN_GAMES_FOR_OVERVIEW):
    """Build every document of a finished rollup without writing anything."""
    snapshot = Snapshot(selector=selector, last_update=format_timestamp(result.last_update))

    detailed = sorted(
        (d for d in result.deck_stats if d.total_games >= min_games),
        key=lambda d: -d.total_games,
    )
    for deck in detailed:
        key = {
            "format": selector.format,
            "rankBracket": selector.rank_bracket,
            "timePeriod": selector.time_period,
            "deckId": deck_id(deck.decklist),
        }
        snapshot.deck_rows.append((key, build_detailed_deck(deck)))

    for archetype in result.archetype_stats:
        if archetype.total_games >= min_games:
            snapshot.archetype_details.append(
                (archetype_detail_key(selector, archetype.id), archetype.to_dict())
            )

    snapshot.overviews = [
        (overview_key("archetypes", selector),
         build_archetype_overview(result.archetype_stats, selector, result.last_update, min_games)),
        (overview_key("decks", selector),
         build_deck_overview(result.deck_stats, selector, result.last_update, min_games)),
    ]
    return snapshot


def write_snapshot(snapshot, store, table):
    """Details first, overviews last."""
    written = table.upsert(snapshot.deck_rows, last_update=snapshot.last_update)
    print(f"    Upserted {written} detailed decks")
    for key, doc in snapshot.archetype_details:
        store.write_json(key, doc)
    print(f"    Wrote {len(snapshot.archetype_details)} detailed archetypes")
    for key, doc in snapshot.overviews:
        store.write_json(key, doc)
    print(f"    Wrote {len(snapshot.overviews)} overview documents")
