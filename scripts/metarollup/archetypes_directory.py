"""Archetype id -> name reference data, read from the stats bucket."""

from metarollup.cache import TtlCache
from metarollup.constants import ARCHETYPES_KEY

ARCHETYPES_TTL_SECONDS = 3600


def parse_archetypes(data):
    """Accept a list of {id, archetype|name} rows. Rows without an id are ignored."""
    names = {}
    for row in data or []:
        archetype_id = row.get("id")
        if archetype_id is None:
            continue
        names[int(archetype_id)] = row.get("archetype") or row.get("name")
    return names


class ArchetypeDirectory:
    def __init__(self, store, key=ARCHETYPES_KEY, ttl_seconds=ARCHETYPES_TTL_SECONDS, clock=None):
        self.store = store
        self.key = key
        kwargs = {"clock": clock} if clock is not None else {}
        self.cache = TtlCache(self._load, ttl_seconds, **kwargs)

    def _load(self):
        data = self.store.read_json(self.key)
        if data is None:
            print(f"  Warning: {self.key} not found, archetype names fall back to deck data")
            return {}
        names = parse_archetypes(data)
        print(f"  Loaded {len(names)} archetype names")
        return names

    def names(self, now=None):
        return self.cache.get(now)
