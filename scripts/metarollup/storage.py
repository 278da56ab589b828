"""S3 shard storage — gzip JSON documents in the stats bucket."""

import gzip
import json

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from metarollup.constants import AWS_REGION, DECK_STATS_BUCKET

GZIP_MAGIC = b"\x1f\x8b"
MISSING_KEY_CODES = ("NoSuchKey", "404", "NotFound")


def get_s3_client():
    """Create an S3 client with retry-friendly config."""
    config = Config(
        retries={"max_attempts": 10, "mode": "adaptive"},
        read_timeout=300,
        connect_timeout=10,
    )
    return boto3.client("s3", region_name=AWS_REGION, config=config)


class ShardStore:
    """Reads and writes gzip JSON documents under one bucket."""

    def __init__(self, bucket=DECK_STATS_BUCKET, client=None):
        self.bucket = bucket
        self.client = client or get_s3_client()

    def read_json(self, key):
        """Return the parsed document at key, or None if it does not exist."""
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in MISSING_KEY_CODES:
                return None
            raise
        body = response["Body"].read()
        if body[:2] == GZIP_MAGIC:
            body = gzip.decompress(body)
        if not body:
            return None
        return json.loads(body)

    def write_json(self, key, data):
        body = gzip.compress(json.dumps(data, separators=(",", ":")).encode("utf-8"))
        self.client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=body,
            ContentType="application/json",
            ContentEncoding="gzip",
        )
        return len(body)
