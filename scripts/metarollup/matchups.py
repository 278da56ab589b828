"""Matchup, discover and coin/play merging.

Every function takes flat lists of already-parsed records (from any number of
decks or shards), groups them by key, sums the raw counters and recomputes
winrates last. Nested card lists go through the slot-aware card merger, one
contribution per source record.
"""

from metarollup.cards import merge_cards_data, normalize_card_id
from metarollup.constants import COIN_PLAY
from metarollup.models import CoinPlayInfo, DiscoverStat, MatchupInfo, compute_winrate


def merge_discover_data(contributions, renames=None):
    """Sum discover counters per discovered card id."""
    merged = {}
    for discover_data in contributions:
        for record in discover_data:
            card_id = normalize_card_id(record.card_id, renames)
            if not card_id:
                raise ValueError("discover record without cardId")
            if card_id not in merged:
                merged[card_id] = DiscoverStat(card_id=card_id)
            merged[card_id].discovered += record.discovered
            merged[card_id].discovered_then_win += record.discovered_then_win
    return [merged[card_id] for card_id in sorted(merged)]


def merge_coin_play_info(records, renames=None):
    """Fold coin/play records into exactly one 'coin' and one 'play' entry."""
    records = list(records)
    result = []
    for coin_play in COIN_PLAY:
        rows = [r for r in records if r.coin_play == coin_play]
        total_games = sum(r.total_games for r in rows)
        wins = sum(r.wins for r in rows)
        result.append(CoinPlayInfo(
            coin_play=coin_play,
            total_games=total_games,
            wins=wins,
            losses=sum(r.losses for r in rows),
            winrate=compute_winrate(wins, total_games),
            cards_data=merge_cards_data([r.cards_data for r in rows], renames),
        ))
    return result


def _matchup_sort_key(key):
    opponent_class, opponent_archetype_id = key
    return (opponent_class or "", -1 if opponent_archetype_id is None else opponent_archetype_id)


def merge_matchup_info(records, renames=None):
    """Merge matchup records per (opponent class, opponent archetype id)."""
    groups = {}
    for record in records:
        groups.setdefault(record.key, []).append(record)

    result = []
    for key in sorted(groups, key=_matchup_sort_key):
        group = groups[key]
        total_games = sum(m.total_games for m in group)
        wins = sum(m.wins for m in group)
        coin_play_rows = [c for m in group for c in m.coin_play_info]
        result.append(MatchupInfo(
            opponent_class=key[0],
            opponent_archetype_id=key[1],
            total_games=total_games,
            wins=wins,
            losses=sum(m.losses for m in group),
            winrate=compute_winrate(wins, total_games),
            cards_data=merge_cards_data([m.cards_data for m in group], renames),
            discover_data=merge_discover_data([m.discover_data for m in group], renames),
            coin_play_info=merge_coin_play_info(coin_play_rows, renames) if coin_play_rows else [],
        ))
    return result
