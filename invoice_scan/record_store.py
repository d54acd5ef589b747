"""
Sealed Record Store Module.

This module ties the hasher and the audit log to the storage medium:
every write seals the record, persists it and leaves an audit entry,
and every edit or delete first verifies that the stored record is
still intact.

Records of one type live as a JSON object under ``records:<type>``,
keyed by record id.
"""

import uuid
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from invoice_scan.audit import Actor, AuditAction, AuditLog, TargetType
from invoice_scan.integrity import (
    IntegrityStatus,
    ensure_untampered,
    seal_record,
    strip_hash_fields,
    verify_record,
)
from invoice_scan.storage import KeyValueStore
from invoice_scan.utils.logger import get_logger
from invoice_scan.utils.exceptions import DuplicateRecordError, RecordNotFoundError

# Initialize module logger
logger = get_logger(__name__)

RECORD_KEY_PREFIX = "records:"


class SealedRecordStore:
    """
    CRUD over hashed records with an audit trail.

    Attributes:
        storage: Key-value store holding the records
        audit_log: Audit trail receiving one entry per mutation
        id_field: Record key holding the identifier

    Example:
        >>> store = SealedRecordStore(InMemoryKeyValueStore())
        >>> invoice = store.create("invoice", {"id": "inv-1", "total": 15000}, actor)
        >>> record, status = store.get("invoice", "inv-1")
        >>> status.valid
        True
    """

    def __init__(
        self,
        storage: KeyValueStore,
        audit_log: Optional[AuditLog] = None,
        id_field: str = "id"
    ) -> None:
        self.storage = storage
        self.audit_log = audit_log if audit_log is not None else AuditLog(storage)
        self.id_field = id_field

    @staticmethod
    def _key(target_type: TargetType) -> str:
        return f"{RECORD_KEY_PREFIX}{target_type.value}"

    def _load(self, target_type: TargetType) -> Dict[str, Dict[str, Any]]:
        return self.storage.get(self._key(target_type), {}) or {}

    def _save(self, target_type: TargetType, records: Dict[str, Dict[str, Any]]) -> None:
        self.storage.set(self._key(target_type), records)

    def _require(
        self,
        target_type: TargetType,
        record_id: str
    ) -> Tuple[Dict[str, Dict[str, Any]], Dict[str, Any]]:
        records = self._load(target_type)
        if record_id not in records:
            raise RecordNotFoundError(target_type.value, record_id)
        return records, records[record_id]

    def create(
        self,
        target_type: Union[TargetType, str],
        record: Mapping[str, Any],
        actor: Actor,
        remarks: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Seal and store a new record.

        A record without an identifier gets a generated one. Existing
        records are changed through ``update`` only.

        Returns:
            The stored record including ``dataHash`` and ``hashGeneratedAt``.

        Raises:
            DuplicateRecordError: If the identifier is already in use.
            HashGenerationError: If the record cannot be hashed.
            StorageError: If the record cannot be persisted.
        """
        target_type = TargetType(target_type)
        data = dict(record)
        record_id = str(data.get(self.id_field) or uuid.uuid4().hex)
        data[self.id_field] = record_id

        records = self._load(target_type)
        if record_id in records:
            raise DuplicateRecordError(target_type.value, record_id)

        sealed = seal_record(data)
        records[record_id] = sealed
        self._save(target_type, records)

        logger.info(f"Created {target_type.value} {record_id}")
        self.audit_log.record(
            AuditAction.CREATE, target_type, record_id, actor,
            new_value=strip_hash_fields(sealed), remarks=remarks
        )
        return sealed

    def get(
        self,
        target_type: Union[TargetType, str],
        record_id: str
    ) -> Tuple[Dict[str, Any], IntegrityStatus]:
        """
        Load a record together with its verification status.

        Raises:
            RecordNotFoundError: If no such record exists.
        """
        target_type = TargetType(target_type)
        _, record = self._require(target_type, record_id)
        return record, verify_record(record)

    def list(self, target_type: Union[TargetType, str]) -> List[Dict[str, Any]]:
        """All stored records of a type, in insertion order."""
        return list(self._load(TargetType(target_type)).values())

    def ensure_mutable(
        self,
        target_type: Union[TargetType, str],
        record_id: str,
        operation: str
    ) -> IntegrityStatus:
        """
        Check a stored record before ``operation`` (e.g. send, download).

        Raises:
            RecordNotFoundError: If no such record exists.
            TamperedRecordError: If the record fails verification.
        """
        target_type = TargetType(target_type)
        _, record = self._require(target_type, record_id)
        return ensure_untampered(record, operation, record_id)

    def update(
        self,
        target_type: Union[TargetType, str],
        record_id: str,
        changes: Mapping[str, Any],
        actor: Actor,
        remarks: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Apply ``changes`` to an intact record and reseal it.

        The identifier and the hash fields cannot be changed this way.

        Raises:
            RecordNotFoundError: If no such record exists.
            TamperedRecordError: If the stored record fails verification.
        """
        target_type = TargetType(target_type)
        records, existing = self._require(target_type, record_id)
        ensure_untampered(existing, "edit", record_id)

        updated = strip_hash_fields(existing)
        updated.update(strip_hash_fields(changes))
        updated[self.id_field] = record_id

        sealed = seal_record(updated)
        records[record_id] = sealed
        self._save(target_type, records)

        logger.info(f"Updated {target_type.value} {record_id}")
        self.audit_log.record(
            AuditAction.UPDATE, target_type, record_id, actor,
            old_value=strip_hash_fields(existing),
            new_value=strip_hash_fields(sealed),
            remarks=remarks
        )
        return sealed

    def delete(
        self,
        target_type: Union[TargetType, str],
        record_id: str,
        actor: Actor,
        remarks: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Remove an intact record.

        Returns:
            The removed record.

        Raises:
            RecordNotFoundError: If no such record exists.
            TamperedRecordError: If the stored record fails verification.
        """
        target_type = TargetType(target_type)
        records, existing = self._require(target_type, record_id)
        ensure_untampered(existing, "delete", record_id)

        del records[record_id]
        self._save(target_type, records)

        logger.info(f"Deleted {target_type.value} {record_id}")
        self.audit_log.record(
            AuditAction.DELETE, target_type, record_id, actor,
            old_value=strip_hash_fields(existing), remarks=remarks
        )
        return existing
