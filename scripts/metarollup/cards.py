"""Card multiplicity merging — combine per-card slot records.

A deck running two copies of a card reports two records for it, one per copy
slot. Records are merged slot by slot: the n-th occurrence of a card id inside
one contribution is only ever added to the n-th slot of that card, so a deck
that plays one copy never inflates the second slot.

No I/O, no side effects on the inputs.
"""

from collections import defaultdict

from metarollup.constants import CARD_RENAMES
from metarollup.models import CardStat


def normalize_card_id(card_id, renames=None):
    """Apply card id fixes (reprints, format-specific ids)."""
    if not card_id:
        return card_id
    renames = CARD_RENAMES if renames is None else renames
    return renames.get(card_id, card_id)


def has_missing_card_id(cards_data):
    return any(not c.card_id for c in cards_data)


def assign_slots(cards_data, renames=None):
    """Yield (card_id, slot, record) for one contribution.

    Records are visited in card id order; slot counts from 0 for every
    distinct card id.
    """
    keyed = []
    for record in cards_data:
        card_id = normalize_card_id(record.card_id, renames)
        if not card_id:
            raise ValueError("card record without cardId")
        keyed.append((card_id, record))
    # Stable sort: copies of one card keep their relative order
    keyed.sort(key=lambda item: item[0])

    seen = defaultdict(int)
    for card_id, record in keyed:
        slot = seen[card_id]
        seen[card_id] += 1
        yield card_id, slot, record


def merge_cards_data(contributions, renames=None):
    """Merge card records coming from several contributions.

    Each contribution is the card list of one deck: one shard's record for a
    decklist, or one member deck of an archetype. Returns new records ordered
    by (card id, slot), so the result is itself a valid single contribution
    and can be merged again at the next rollup level.
    """
    slots = {}
    for cards_data in contributions:
        for card_id, slot, record in assign_slots(cards_data, renames):
            merged = slots.get((card_id, slot))
            if merged is None:
                merged = slots[(card_id, slot)] = CardStat(card_id=card_id)
            merged.add(record)
    return [slots[key] for key in sorted(slots)]

