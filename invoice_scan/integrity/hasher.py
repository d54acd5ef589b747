"""
Canonical Hasher and Integrity Verifier.

A record is sealed by hashing its canonical JSON form and storing the
digest next to the data. Verification recomputes the digest and
compares it with the stored one, so any later change to the record,
however deeply nested, is detected.

Canonical form:
    - keys sorted at every nesting level
    - compact separators, non-ASCII characters kept as-is
    - top-level ``dataHash`` and ``hashGeneratedAt`` excluded
    - ``datetime``/``date`` values as ISO-8601 strings

Digest: SHA-256, lowercase hex.
"""

import hashlib
import json
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional

from config import get_config
from invoice_scan.utils.logger import get_logger
from invoice_scan.utils.helpers import utc_now_iso
from invoice_scan.utils.exceptions import HashGenerationError, TamperedRecordError

# Initialize module logger
logger = get_logger(__name__)

HASH_FIELD = "dataHash"
HASH_TIMESTAMP_FIELD = "hashGeneratedAt"
HASH_FIELDS = (HASH_FIELD, HASH_TIMESTAMP_FIELD)

DEFAULT_GUARDED_OPERATIONS = ("edit", "send", "download", "delete")


@dataclass
class IntegrityStatus:
    """
    Outcome of verifying a record against its stored digest.

    Attributes:
        valid: True when the recomputed digest equals the stored one
        current_digest: Digest of the record as it is now ("" on failure)
        stored_digest: Digest saved when the record was last sealed
        message: Short human-readable explanation
    """
    valid: bool
    current_digest: str
    stored_digest: Optional[str] = None
    message: str = ""

    @property
    def tampered(self) -> bool:
        return not self.valid

    def to_dict(self) -> Dict[str, Any]:
        return {
            'valid': self.valid,
            'currentDigest': self.current_digest,
            'storedDigest': self.stored_digest,
            'message': self.message,
        }


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def strip_hash_fields(record: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a shallow copy of ``record`` without its top-level hash fields."""
    return {k: v for k, v in record.items() if k not in HASH_FIELDS}


def canonical_json(value: Any) -> str:
    """
    Serialize a value to its canonical JSON text.

    Raises:
        TypeError, ValueError: If the value holds non-JSON data
            (including NaN or infinity).
    """
    return json.dumps(
        value,
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
        allow_nan=False,
        default=_json_default,
    )


def canonicalize(record: Mapping[str, Any]) -> bytes:
    """
    Canonical UTF-8 bytes of a record, hash fields excluded.

    Raises:
        HashGenerationError: If the record cannot be serialized.
    """
    try:
        return canonical_json(strip_hash_fields(record)).encode("utf-8")
    except (TypeError, ValueError, AttributeError) as e:
        raise HashGenerationError(str(e))


def compute_digest(record: Mapping[str, Any]) -> str:
    """SHA-256 hex digest of the canonical form of ``record``."""
    return hashlib.sha256(canonicalize(record)).hexdigest()


def seal(record: Mapping[str, Any]) -> str:
    """
    Compute the digest to store with a record.

    Args:
        record: Entity data; existing hash fields are ignored.

    Returns:
        64-character lowercase hex digest.

    Raises:
        HashGenerationError: If the record cannot be hashed.
    """
    digest = compute_digest(record)
    logger.debug(f"Record sealed: {digest[:12]}...")
    return digest


def verify(record: Mapping[str, Any], stored_digest: Optional[str]) -> IntegrityStatus:
    """
    Compare a record against a previously stored digest.

    Never raises: a record that cannot be hashed is reported invalid
    with an empty current digest.

    Args:
        record: Entity data as it is now.
        stored_digest: Digest saved when the record was sealed.

    Returns:
        IntegrityStatus describing the comparison.
    """
    try:
        current_digest = compute_digest(record)
    except HashGenerationError as e:
        logger.error(f"Integrity check could not hash record: {e}")
        return IntegrityStatus(
            valid=False,
            current_digest="",
            stored_digest=stored_digest,
            message="Record could not be hashed",
        )

    if not stored_digest:
        return IntegrityStatus(
            valid=False,
            current_digest=current_digest,
            stored_digest=None,
            message="Record has no stored hash",
        )

    if current_digest == str(stored_digest).lower():
        return IntegrityStatus(
            valid=True,
            current_digest=current_digest,
            stored_digest=stored_digest,
            message="Record is intact",
        )

    logger.warning(
        f"Integrity mismatch: stored {str(stored_digest)[:12]}..., "
        f"current {current_digest[:12]}..."
    )
    return IntegrityStatus(
        valid=False,
        current_digest=current_digest,
        stored_digest=stored_digest,
        message="Record has been modified since it was sealed",
    )


def seal_record(record: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of ``record`` with ``dataHash`` and ``hashGeneratedAt`` set.

    Raises:
        HashGenerationError: If the record cannot be hashed.
    """
    sealed = strip_hash_fields(record)
    sealed[HASH_FIELD] = seal(sealed)
    sealed[HASH_TIMESTAMP_FIELD] = utc_now_iso()
    return sealed


def verify_record(record: Mapping[str, Any]) -> IntegrityStatus:
    """
    Verify a record against the ``dataHash`` it carries.

    Anything other than a mapping is reported invalid rather than raised.
    """
    if not isinstance(record, Mapping):
        logger.error(f"Integrity check got a {type(record).__name__}, not a record")
        return IntegrityStatus(
            valid=False,
            current_digest="",
            message="Record is not a mapping",
        )

    return verify(record, record.get(HASH_FIELD))


def ensure_untampered(
    record: Mapping[str, Any],
    operation: str,
    record_id: Optional[str] = None
) -> IntegrityStatus:
    """
    Guard a sensitive operation on a stored record.

    Operations listed under ``integrity.guarded_operations`` (edit, send,
    download and delete by default) are refused for records that fail
    verification. Other operations only report the status.

    Args:
        record: Stored record.
        operation: Operation about to be performed.
        record_id: Record identifier for error reporting.

    Returns:
        IntegrityStatus of the record.

    Raises:
        TamperedRecordError: If the operation is guarded and the record
            fails verification.
    """
    status = verify_record(record)
    guarded = get_config("integrity.guarded_operations", DEFAULT_GUARDED_OPERATIONS)

    if status.tampered and operation in guarded:
        logger.warning(f"Blocked {operation} on record {record_id}: {status.message}")
        raise TamperedRecordError(
            operation,
            record_id=record_id,
            stored_digest=status.stored_digest,
            current_digest=status.current_digest,
        )

    return status
