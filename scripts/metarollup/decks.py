"""Deck aggregate building — fold partial per-decklist aggregates.

Partial aggregates for the same decklist come from different shards (hours,
days, classes). They are grouped by exact decklist signature, their counters
summed, and derived fields recomputed once the group is complete.
"""

from metarollup.cards import has_missing_card_id, merge_cards_data
from metarollup.errors import InvalidDeckDataError
from metarollup.matchups import merge_coin_play_info, merge_discover_data, merge_matchup_info
from metarollup.models import DeckStat, compute_winrate


def find_invalid_card_data(stat):
    """Return a skip reason if any card or discover record lacks a card id, else None."""
    if has_missing_card_id(stat.cards_data):
        return "missing cardId in cardsData"
    for matchup in stat.matchup_info:
        if has_missing_card_id(matchup.cards_data) or has_missing_card_id(matchup.discover_data):
            return "missing cardId in matchupInfo"
        if any(has_missing_card_id(c.cards_data) for c in matchup.coin_play_info):
            return "missing cardId in matchupInfo"
    if has_missing_card_id(stat.discover_data):
        return "missing cardId in discoverData"
    if any(has_missing_card_id(c.cards_data) for c in stat.coin_play_info):
        return "missing cardId in coinPlayInfo"
    return None


def accept_deck_stat(stat, skip_log=None, source=None):
    """Gate a partial aggregate before folding. Returns False if it was dropped."""
    reason = find_invalid_card_data(stat)
    if reason is None:
        return True
    if skip_log is not None:
        skip_log.append(reason)
    where = f" in {source}" if source else ""
    print(f"  Warning: {reason}{where}, skipping deck {stat.decklist}")
    return False


def _latest(dates):
    dates = [d for d in dates if d is not None]
    return max(dates) if dates else None


def combine_deck_stats(stats, renames=None):
    """Sum a non-empty group of partial aggregates sharing one decklist.

    Identity fields come from the first member. Derived fields are left for
    finalize_deck_stat.
    """
    first = stats[0]
    coin_play_rows = [c for s in stats for c in s.coin_play_info]
    return DeckStat(
        decklist=first.decklist,
        archetype_id=first.archetype_id,
        archetype_name=first.archetype_name,
        player_class=first.player_class,
        format=first.format,
        rank_bracket=first.rank_bracket,
        time_period=first.time_period,
        total_games=sum(s.total_games for s in stats),
        total_wins=sum(s.total_wins for s in stats),
        last_update=_latest(s.last_update for s in stats),
        hero_card_ids=sorted({h for s in stats for h in s.hero_card_ids}),
        cards_data=merge_cards_data([s.cards_data for s in stats], renames),
        matchup_info=merge_matchup_info([m for s in stats for m in s.matchup_info], renames),
        discover_data=merge_discover_data([s.discover_data for s in stats], renames),
        coin_play_info=merge_coin_play_info(coin_play_rows, renames) if coin_play_rows else [],
    )


def fold_deck_stat(accumulator, stat, renames=None):
    """Pairwise fold used by the streaming accumulator."""
    if accumulator.decklist != stat.decklist:
        raise ValueError(f"Cannot fold {stat.decklist} into {accumulator.decklist}")
    return combine_deck_stats([accumulator, stat], renames)


def check_multiplicity(deck):
    """Every card slot must have been in the starting deck of every game.

    A slot's inStartingDeck is a non-zero multiple of totalGames and its wins a
    non-zero multiple of totalWins. Anything else means counters were lost or
    double counted while merging.
    """
    invalid = []
    reasons = []
    for card in deck.cards_data:
        if deck.total_games and (not card.in_starting_deck or card.in_starting_deck % deck.total_games):
            invalid.append(card.card_id)
            reasons.append(f"{card.card_id} inStartingDeck={card.in_starting_deck} totalGames={deck.total_games}")
        elif deck.total_wins and (not card.wins or card.wins % deck.total_wins):
            invalid.append(card.card_id)
            reasons.append(f"{card.card_id} wins={card.wins} totalWins={deck.total_wins}")
    if invalid:
        raise InvalidDeckDataError(deck.decklist, "; ".join(reasons), invalid_cards=invalid)


def finalize_deck_stat(deck, time_period=None):
    """Recompute derived fields and verify the multiplicity invariant."""
    deck.winrate = compute_winrate(deck.total_wins, deck.total_games)
    if time_period is not None:
        deck.time_period = time_period
    check_multiplicity(deck)
    return deck


def merge_deck_stats(stats, time_period=None, renames=None, skip_log=None):
    """Group partial aggregates by decklist and fold each group.

    Inputs with a record missing its card id are dropped (logged to skip_log).
    Returns one finalized DeckStat per decklist, ordered by decklist.
    """
    groups = {}
    for stat in stats:
        if not accept_deck_stat(stat, skip_log):
            continue
        groups.setdefault(stat.decklist, []).append(stat)

    result = []
    for decklist in sorted(groups):
        merged = combine_deck_stats(groups[decklist], renames)
        result.append(finalize_deck_stat(merged, time_period))
    return result
