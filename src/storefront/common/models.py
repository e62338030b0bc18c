"""Models module for the storefront.

Shared helpers for record identity and timestamps, plus the single Tortoise
table used when records are kept in SQLite instead of JSON files. Each row
holds one JSON document, keyed by the collection it belongs to and the
record's own id, so any record type fits without its own schema."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from ksuid import Ksuid
from tortoise import fields, models


def generate_ksuid() -> str:
    """Generate a K-Sortable Unique IDentifier (KSUID).

    KSUIDs carry a timestamp prefix followed by random payload, so they sort
    chronologically and are safe to mint without coordination.

    Returns:
        str: A string representation of the generated KSUID.
    """
    return str(Ksuid())


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def next_timestamp(previous: Optional[str] = None) -> str:
    """ISO-8601 timestamp strictly later than ``previous``.

    Two mutations inside the same clock tick would otherwise share a stamp.
    """
    now = datetime.now(timezone.utc)
    if previous:
        try:
            # Python 3.10 does not parse the "Z" suffix.
            prev = datetime.fromisoformat(previous.replace("Z", "+00:00"))
        except ValueError:
            prev = None
        if prev is not None:
            if prev.tzinfo is None:
                prev = prev.replace(tzinfo=timezone.utc)
            if now <= prev:
                now = prev + timedelta(microseconds=1)
    return now.isoformat(timespec="microseconds")


class TimestampMixin(models.Model):
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        abstract = True


class StoredRecord(TimestampMixin):
    id = fields.IntField(primary_key=True)
    collection = fields.CharField(max_length=50, db_index=True)
    record_id = fields.CharField(max_length=100)
    data = fields.JSONField()

    def __str__(self):
        return f"{self.collection}/{self.record_id}"

    class Meta:
        table = "stored_records"
        unique_together = (("collection", "record_id"),)
