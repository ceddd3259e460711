"""Integrity hashing for audit records.

The digest is SHA-256 over the record's canonical JSON form: keys sorted at
every level, compact separators, UTF-8, with the ``integrity_hash`` field
itself removed. Sorting keys makes the digest independent of the order in
which a writer happened to build the object, so any implementation that
serialises the same data produces the same hash.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Union

from promptpanel_store.models import AuditRecord

HASH_FIELD = "integrity_hash"

NO_HASH = "NoHash"
HASH_MISMATCH = "HashMismatch"

RecordLike = Union[AuditRecord, dict]


@dataclass(frozen=True)
class Verification:
    valid: bool
    reason: str | None = None  # NO_HASH | HASH_MISMATCH when invalid


def canonical_json(record: RecordLike) -> str:
    """Serialise a record deterministically, excluding the hash field."""
    data = record.to_dict() if isinstance(record, AuditRecord) else dict(record)
    data.pop(HASH_FIELD, None)
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def compute_hash(record: RecordLike) -> str:
    return hashlib.sha256(canonical_json(record).encode("utf-8")).hexdigest()


def stamp_hash(record: RecordLike) -> RecordLike:
    """Set the integrity hash on a record (in place) and return it."""
    digest = compute_hash(record)
    if isinstance(record, AuditRecord):
        record.integrity_hash = digest
    else:
        record[HASH_FIELD] = digest
    return record


def verify(record: RecordLike) -> Verification:
    """Check a record's stored hash against its current contents."""
    stored = record.integrity_hash if isinstance(record, AuditRecord) else record.get(HASH_FIELD)
    if not stored:
        return Verification(valid=False, reason=NO_HASH)
    if compute_hash(record) != stored:
        return Verification(valid=False, reason=HASH_MISMATCH)
    return Verification(valid=True)
