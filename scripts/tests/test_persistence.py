"""Category H: Table Persistence Tests

Upserts are chunked to the batch_write_item limit; contention is retried
with a fixed backoff and a bounded count, everything else fails the batch.
"""

import gzip
import json

import pytest
from botocore.exceptions import ClientError
from helpers import FakeDynamoResource, client_error

from metarollup.errors import TransientContentionError
from metarollup.persistence import DeckStatsTable, partition_key


def make_rows(n):
    return [
        ({"format": "standard", "rankBracket": "legend", "timePeriod": "past-7", "deckId": f"deck-{i}"},
         {"decklist": f"deck/{i}", "totalGames": i})
        for i in range(n)
    ]


def make_table(script=None, **kwargs):
    sleeps = []
    resource = FakeDynamoResource(script)
    table = DeckStatsTable("deck_stats", resource=resource, sleep=sleeps.append, **kwargs)
    return table, resource, sleeps


# ─── H1: item layout ─────────────────────────────────────────────

class TestH1_ItemLayout:

    def test_keys_and_payload(self):
        table, resource, _ = make_table()
        table.upsert(make_rows(1), last_update="2025-01-15T14:00:00Z")
        item = resource.calls[0]["deck_stats"][0]["PutRequest"]["Item"]
        assert item["pk"] == "standard#legend#past-7"
        assert item["sk"] == "deck-0"
        assert item["deckId"] == "deck-0"
        assert item["lastUpdate"] == "2025-01-15T14:00:00Z"
        assert json.loads(gzip.decompress(item["payload"])) == {"decklist": "deck/0", "totalGames": 0}

    def test_partition_key(self):
        assert partition_key("wild", "all", "last-patch") == "wild#all#last-patch"


# ─── H2: chunking ────────────────────────────────────────────────

class TestH2_Chunking:

    def test_chunks_of_25(self):
        table, resource, _ = make_table()
        assert table.upsert(make_rows(60)) == 60
        assert [len(call["deck_stats"]) for call in resource.calls] == [25, 25, 10]

    def test_nothing_to_write(self):
        table, resource, _ = make_table()
        assert table.upsert([]) == 0
        assert resource.calls == []


# ─── H3: contention retry ────────────────────────────────────────

class TestH3_ContentionRetry:

    def test_transient_error_retried(self):
        table, resource, sleeps = make_table([
            client_error("ProvisionedThroughputExceededException"),
            client_error("TransactionConflictException"),
        ])
        table.upsert(make_rows(3))
        assert len(resource.calls) == 3
        assert sleeps == [0.2, 0.2]

    def test_unprocessed_items_retried(self):
        rows = make_rows(3)
        table, resource, sleeps = make_table()
        leftover = [{"PutRequest": {"Item": table.build_item(*rows[2])}}]
        resource.script = [{"UnprocessedItems": {"deck_stats": leftover}}]
        table.upsert(rows)
        assert [len(call["deck_stats"]) for call in resource.calls] == [3, 1]
        assert resource.calls[1]["deck_stats"][0]["PutRequest"]["Item"]["sk"] == "deck-2"
        assert sleeps == [0.2]

    def test_exhaustion_is_fatal(self):
        table, resource, sleeps = make_table(
            [client_error("ThrottlingException")] * 10, max_retries=3,
        )
        with pytest.raises(TransientContentionError):
            table.upsert(make_rows(2))
        assert len(resource.calls) == 4
        assert len(sleeps) == 3

    def test_other_errors_not_retried(self):
        table, resource, sleeps = make_table([client_error("ValidationException")])
        with pytest.raises(ClientError):
            table.upsert(make_rows(2))
        assert len(resource.calls) == 1
        assert sleeps == []

    def test_failure_stops_later_chunks(self):
        table, resource, _ = make_table([{}, client_error("AccessDeniedException")])
        with pytest.raises(ClientError):
            table.upsert(make_rows(60))
        assert len(resource.calls) == 2
