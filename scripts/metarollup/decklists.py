"""Decklist decoding — deckstring signature to the card ids it contains."""

import json
from pathlib import Path

from hearthstone.deckstrings import parse_deckstring

from metarollup.cards import normalize_card_id
from metarollup.constants import CARDS_JSON, LEGACY_TRUNCATED_DECKLIST_LENGTH
from metarollup.errors import UnparseableDecklistError


def load_dbf_map(path=CARDS_JSON):
    """Map dbf id -> card id from a HearthstoneJSON card dump.

    A missing dump gives an empty map: every decklist is then unparseable and
    decks get empty card variations.
    """
    path = Path(path)
    if not path.exists():
        print(f"  Warning: {path} not found, decklists will not be decoded")
        return {}
    with open(path, "r", encoding="utf-8") as f:
        cards = json.load(f)
    return {c["dbfId"]: c["id"] for c in cards if c.get("dbfId") is not None and c.get("id")}


class DeckstringDecoder:
    """Decodes deckstrings into one (normalized) card id per copy."""

    def __init__(self, dbf_map, renames=None):
        self.dbf_map = dbf_map
        self.renames = renames

    @classmethod
    def from_cards_json(cls, path=CARDS_JSON, renames=None):
        dbf_map = load_dbf_map(path)
        print(f"  Loaded {len(dbf_map)} card definitions from {path}")
        return cls(dbf_map, renames)

    def decode(self, decklist):
        if not decklist:
            raise UnparseableDecklistError(decklist, "(empty)")
        if len(decklist) == LEGACY_TRUNCATED_DECKLIST_LENGTH:
            raise UnparseableDecklistError(decklist, "(legacy truncated decklist)")
        try:
            cards = parse_deckstring(decklist)[0]
        except (ValueError, EOFError) as e:
            raise UnparseableDecklistError(decklist, f"({e})") from e

        card_ids = []
        for dbf_id, count in cards:
            card_id = self.dbf_map.get(dbf_id)
            if card_id is None:
                raise UnparseableDecklistError(decklist, f"(unknown dbf id {dbf_id})")
            card_ids.extend([normalize_card_id(card_id, self.renames)] * count)
        return sorted(card_ids)
