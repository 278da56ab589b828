"""Exceptions raised by the rollup engine and its collaborators."""


class InvalidDeckDataError(Exception):
    """Merged card counters of a decklist no longer match its game counts."""

    def __init__(self, decklist, reason, invalid_cards=None):
        self.decklist = decklist
        self.reason = reason
        self.invalid_cards = invalid_cards or []
        super().__init__(f"Invalid cards data for deck {decklist}: {reason}")


class UnparseableDecklistError(ValueError):
    """A decklist signature could not be decoded into card ids."""

    def __init__(self, decklist, reason=""):
        self.decklist = decklist
        super().__init__(f"Could not decode decklist {decklist!r} {reason}".rstrip())


class TransientContentionError(Exception):
    """A write lost a race against another writer and can be retried."""
