"""Archetype aggregate building, core card derivation and deck enrichment.

Archetypes are always rebuilt from finished deck aggregates: totals and card
slots are summed across member decks, and the core list is derived from the
average number of copies each member deck runs.
"""

import dataclasses
import re

from metarollup.cards import merge_cards_data
from metarollup.constants import ALL_CLASSES, ARCHETYPE_CARD_SHARE, CORE_CARD_THRESHOLD
from metarollup.errors import UnparseableDecklistError
from metarollup.matchups import merge_coin_play_info, merge_discover_data, merge_matchup_info
from metarollup.models import ArchetypeStat, compute_winrate


# ─── Core Cards ─────────────────────────────────────────────────

def is_generic_class_archetype(name):
    """True for catch-all buckets named after a class ('Mage', 'Mage-XL', 'Demon Hunter')."""
    if not name:
        return False
    normalized = re.sub(r"[\s_\-]+", "", name.lower())
    if normalized.endswith("xl"):
        normalized = normalized[:-2]
    return normalized in ALL_CLASSES


def build_core_cards(decks, threshold=CORE_CARD_THRESHOLD):
    """Cards played by (nearly) every deck of an archetype.

    For each card, average the copies per deck over all member decks: at least
    2 * threshold lists it twice, at least threshold once. Decks without games
    carry no copy information and are left out. Sorted by card id.
    """
    decks = [d for d in decks if d.total_games > 0]
    if not decks:
        return []

    copies = {}
    for deck in decks:
        for card in deck.cards_data:
            copies[card.card_id] = copies.get(card.card_id, 0) + card.in_starting_deck / deck.total_games

    core = []
    for card_id in sorted(copies):
        average = copies[card_id] / len(decks)
        if average >= 2 * threshold:
            core.extend([card_id, card_id])
        elif average >= threshold:
            core.append(card_id)
    return core


# ─── Archetype Aggregates ───────────────────────────────────────

def build_archetype_stat(archetype_id, decks, name=None, renames=None):
    """Fold the member decks of one archetype. Decks must be non-empty."""
    decks = sorted(decks, key=lambda d: d.decklist)
    first = decks[0]
    name = name or first.archetype_name
    total_games = sum(d.total_games for d in decks)
    total_wins = sum(d.total_wins for d in decks)

    cards_data = merge_cards_data([d.cards_data for d in decks], renames)
    cards_data = [c for c in cards_data if c.in_starting_deck > total_games * ARCHETYPE_CARD_SHARE]
    coin_play_rows = [c for d in decks for c in d.coin_play_info]

    return ArchetypeStat(
        id=archetype_id,
        name=name,
        format=first.format,
        hero_class=first.player_class,
        hero_card_ids=sorted({h for d in decks for h in d.hero_card_ids if h}),
        total_games=total_games,
        total_wins=total_wins,
        winrate=compute_winrate(total_wins, total_games),
        core_cards=[] if is_generic_class_archetype(name) else build_core_cards(decks),
        cards_data=cards_data,
        matchup_info=merge_matchup_info([m for d in decks for m in d.matchup_info], renames),
        discover_data=merge_discover_data([d.discover_data for d in decks], renames),
        coin_play_info=merge_coin_play_info(coin_play_rows, renames) if coin_play_rows else [],
    )


def build_archetype_stats(deck_stats, archetype_names=None, renames=None, skip_log=None):
    """Group finished deck aggregates by archetype id and fold each group.

    archetype_names maps archetype id -> display name; decks fall back to the
    name they carry. Archetypes without any game are dropped. Ordered by id.
    """
    archetype_names = archetype_names or {}
    groups = {}
    for deck in deck_stats:
        if deck.archetype_id is None:
            if skip_log is not None:
                skip_log.append("missing archetypeId")
            print(f"  Warning: deck {deck.decklist} has no archetype, left out of archetypes")
            continue
        groups.setdefault(deck.archetype_id, []).append(deck)

    result = []
    for archetype_id in sorted(groups):
        stat = build_archetype_stat(
            archetype_id, groups[archetype_id], name=archetype_names.get(archetype_id), renames=renames,
        )
        if stat.total_games > 0:
            result.append(stat)
    return result


# ─── Enrichment ─────────────────────────────────────────────────

def build_card_variations(deck_cards, core_cards):
    """One-for-one multiset difference between a deck's cards and a core list."""
    remaining = list(core_cards)
    added = []
    for card_id in deck_cards:
        if card_id in remaining:
            remaining.remove(card_id)
        else:
            added.append(card_id)
    return {"added": added, "removed": remaining}


def enhance_deck_stats(deck_stats, archetype_stats, decoder, skip_log=None):
    """Stamp archetype name, core cards and card variations on every deck.

    Returns new DeckStat objects. Running it again on its own output gives the
    same result. A deck whose decklist cannot be decoded gets empty variations.
    """
    archetypes = {a.id: a for a in archetype_stats}
    result = []
    for deck in deck_stats:
        archetype = archetypes.get(deck.archetype_id)
        core_cards = list(archetype.core_cards) if archetype else []
        try:
            deck_cards = decoder.decode(deck.decklist)
        except UnparseableDecklistError as e:
            if skip_log is not None:
                skip_log.append("unparseable decklist")
            print(f"  Warning: {e}")
            deck_cards = None
        if deck_cards:
            variations = build_card_variations(deck_cards, core_cards)
        else:
            variations = {"added": [], "removed": []}
        result.append(dataclasses.replace(
            deck,
            archetype_name=archetype.name if archetype and archetype.name else deck.archetype_name,
            card_variations=variations,
            archetype_core_cards=core_cards,
        ))
    return result
