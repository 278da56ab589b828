"""DynamoDB persistence for detailed deck documents.

One item per (format, rank bracket, time period, deck id), upserted with
batch_write_item. Writes that lose a race against another writer (throttling,
transaction conflicts, unprocessed items) are retried a bounded number of
times with a fixed backoff; anything else fails the batch.
"""

import gzip
import json
import time

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from metarollup.constants import (
    AWS_REGION, DECK_STATS_TABLE,
    UPSERT_BACKOFF_SECONDS, UPSERT_CHUNK_SIZE, UPSERT_MAX_RETRIES,
)
from metarollup.errors import TransientContentionError

TRANSIENT_ERROR_CODES = (
    "ProvisionedThroughputExceededException",
    "ThrottlingException",
    "TransactionConflictException",
    "RequestLimitExceeded",
)


def get_dynamo_resource():
    """Create DynamoDB service resource with retry-friendly config."""
    config = Config(
        retries={"max_attempts": 10, "mode": "adaptive"},
        read_timeout=120,
        connect_timeout=10,
    )
    return boto3.resource("dynamodb", region_name=AWS_REGION, config=config)


def partition_key(format, rank_bracket, time_period):
    return f"{format}#{rank_bracket}#{time_period}"


class DeckStatsTable:
    """Upserts detailed deck documents, chunked to the batch_write_item limit."""

    def __init__(self, table_name=DECK_STATS_TABLE, resource=None,
                 chunk_size=UPSERT_CHUNK_SIZE, max_retries=UPSERT_MAX_RETRIES,
                 backoff_seconds=UPSERT_BACKOFF_SECONDS, sleep=time.sleep):
        self.table_name = table_name
        self.resource = resource or get_dynamo_resource()
        self.chunk_size = chunk_size
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.sleep = sleep

    def build_item(self, key, payload, last_update=None):
        """key: {format, rankBracket, timePeriod, deckId}."""
        body = gzip.compress(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
        return {
            "pk": partition_key(key["format"], key["rankBracket"], key["timePeriod"]),
            "sk": key["deckId"],
            "format": key["format"],
            "rankBracket": key["rankBracket"],
            "timePeriod": key["timePeriod"],
            "deckId": key["deckId"],
            "lastUpdate": last_update,
            "payload": body,
        }

    def upsert(self, rows, last_update=None):
        """Write (key, payload) rows. Returns the number of items written."""
        items = [self.build_item(key, payload, last_update) for key, payload in rows]
        for i in range(0, len(items), self.chunk_size):
            self._write_chunk(items[i:i + self.chunk_size])
        return len(items)

    def _write_chunk(self, items):
        pending = [{"PutRequest": {"Item": item}} for item in items]
        retries = 0
        while True:
            try:
                pending = self._batch_write(pending)
            except TransientContentionError as e:
                print(f"    Contention on {self.table_name} ({e}), retrying... {retries + 1}/{self.max_retries}")
            else:
                if not pending:
                    if retries:
                        print(f"    Retry successful after {retries} attempt(s)")
                    return
                print(f"    {len(pending)} unprocessed items, retrying... {retries + 1}/{self.max_retries}")
            retries += 1
            if retries > self.max_retries:
                raise TransientContentionError(
                    f"Max retries exceeded writing {len(pending)} items to {self.table_name}"
                )
            self.sleep(self.backoff_seconds)

    def _batch_write(self, requests):
        """One batch_write_item call. Returns the requests DynamoDB left unprocessed."""
        try:
            response = self.resource.batch_write_item(RequestItems={self.table_name: requests})
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in TRANSIENT_ERROR_CODES:
                raise TransientContentionError(code) from e
            raise
        return response.get("UnprocessedItems", {}).get(self.table_name, [])
