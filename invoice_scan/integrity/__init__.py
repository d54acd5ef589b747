"""
Integrity Module for Invoice Scan Core.

Content hashing of stored records: sealing, verification and the
guard refusing sensitive operations on tampered records.
"""

from .hasher import (
    HASH_FIELD,
    HASH_TIMESTAMP_FIELD,
    IntegrityStatus,
    canonical_json,
    canonicalize,
    compute_digest,
    ensure_untampered,
    seal,
    seal_record,
    strip_hash_fields,
    verify,
    verify_record,
)

__all__ = [
    'HASH_FIELD',
    'HASH_TIMESTAMP_FIELD',
    'IntegrityStatus',
    'canonical_json',
    'canonicalize',
    'compute_digest',
    'ensure_untampered',
    'seal',
    'seal_record',
    'strip_hash_fields',
    'verify',
    'verify_record',
]
