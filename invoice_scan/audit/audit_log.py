"""
Audit Log Module.

This module keeps the append-only trail of every mutation to a stored
record. The trail is a JSON array under a single storage key, newest
entry last, bounded to the most recent ``capacity`` entries.

Writing to the trail must never block the mutation it describes:
append failures are logged and swallowed.

Usage:
    from invoice_scan.audit import AuditLog, AuditFilter

    audit_log = AuditLog(storage)
    audit_log.record("update", "invoice", "inv-1", actor, old, new)
    recent = audit_log.query(AuditFilter(target_id="inv-1"))
"""

import secrets
import string
from typing import Any, Iterator, List, Optional, Union

from config import get_config
from invoice_scan.storage import KeyValueStore
from invoice_scan.utils.logger import get_logger
from invoice_scan.utils.helpers import utc_now_iso
from invoice_scan.utils.exceptions import AuditWriteError, ConfigurationError, StorageError
from .audit_entry import (
    Actor,
    AuditAction,
    AuditFilter,
    AuditLogEntry,
    TargetType,
    detect_changed_fields,
)

# Initialize module logger
logger = get_logger(__name__)

AUDIT_LOG_CAPACITY = 1000
AUDIT_STORAGE_KEY = "audit_logs"

_ID_ALPHABET = string.digits + string.ascii_lowercase


def _random_suffix(length: int = 9) -> str:
    return ''.join(secrets.choice(_ID_ALPHABET) for _ in range(length))


class AuditLog:
    """
    Bounded, append-only audit trail.

    Attributes:
        storage: Key-value store holding the trail
        capacity: Maximum number of entries kept (oldest dropped first)
        storage_key: Key the trail is stored under

    Example:
        >>> audit_log = AuditLog(InMemoryKeyValueStore())
        >>> entry = audit_log.record("create", "client", "c-1", Actor("u1", "Sato"))
        >>> audit_log.count()
        1
    """

    def __init__(
        self,
        storage: KeyValueStore,
        capacity: Optional[int] = None,
        storage_key: Optional[str] = None
    ) -> None:
        """
        Initialize the audit log.

        Args:
            storage: Key-value store holding the trail.
            capacity: Entry cap. If None, uses configuration.
            storage_key: Storage key. If None, uses configuration.
        """
        self.storage = storage
        if capacity is None:
            capacity = get_config("audit.max_entries", AUDIT_LOG_CAPACITY)
        self.capacity = int(capacity)
        self.storage_key = storage_key or get_config("audit.storage_key", AUDIT_STORAGE_KEY)

        if self.capacity < 1:
            raise ConfigurationError("audit.max_entries", f"must be positive, got {self.capacity}")

    def create_entry(
        self,
        action: Union[AuditAction, str],
        target_type: Union[TargetType, str],
        target_id: str,
        actor: Actor,
        old_value: Any = None,
        new_value: Any = None,
        remarks: Optional[str] = None
    ) -> AuditLogEntry:
        """
        Build an entry without persisting it.

        ``changed_fields`` is filled for updates where both the old and
        the new value are mappings.
        """
        action = AuditAction(action)
        target_type = TargetType(target_type)
        timestamp = utc_now_iso()

        changed_fields = None
        if (
            action == AuditAction.UPDATE
            and isinstance(old_value, dict)
            and isinstance(new_value, dict)
        ):
            try:
                changed_fields = detect_changed_fields(old_value, new_value)
            except (TypeError, ValueError) as e:
                logger.debug(f"Could not compare values for {target_id}: {e}")

        return AuditLogEntry(
            id=f"audit-{timestamp}-{_random_suffix()}",
            target_id=str(target_id),
            target_type=target_type,
            action=action,
            user_id=actor.user_id,
            user_name=actor.user_name,
            timestamp=timestamp,
            old_value=old_value,
            new_value=new_value,
            changed_fields=changed_fields,
            remarks=remarks,
        )

    def record(
        self,
        action: Union[AuditAction, str],
        target_type: Union[TargetType, str],
        target_id: str,
        actor: Actor,
        old_value: Any = None,
        new_value: Any = None,
        remarks: Optional[str] = None
    ) -> AuditLogEntry:
        """
        Create an entry and append it to the trail.

        Returns:
            The created entry, whether or not it could be persisted.
        """
        entry = self.create_entry(
            action, target_type, target_id, actor, old_value, new_value, remarks
        )
        self._append(entry)
        return entry

    def _append(self, entry: AuditLogEntry) -> None:
        try:
            try:
                entries = self._load()
                entries.append(entry.to_dict())
                # Trim within the same write so the cap always holds
                self.storage.set(self.storage_key, entries[-self.capacity:])
            except (StorageError, TypeError, ValueError) as e:
                raise AuditWriteError(entry.id, str(e))
        except AuditWriteError as e:
            logger.error(str(e))
            return

        logger.info(
            f"Audit entry saved: {entry.action.value} "
            f"{entry.target_type.value} {entry.target_id}"
        )

    def _load(self) -> List[dict]:
        entries = self.storage.get(self.storage_key, [])
        if not isinstance(entries, list):
            raise ValueError(f"Audit trail under '{self.storage_key}' is not a list")
        return entries

    def iter_entries(self, audit_filter: Optional[AuditFilter] = None) -> Iterator[AuditLogEntry]:
        """
        Yield stored entries matching ``audit_filter`` in storage order
        (oldest first). Unreadable entries are skipped.
        """
        for raw in self._load():
            try:
                entry = AuditLogEntry.from_dict(raw)
                matched = audit_filter is None or audit_filter.matches(entry)
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed audit entry: {e}")
                continue

            if matched:
                yield entry

    def query(self, audit_filter: Optional[AuditFilter] = None) -> List[AuditLogEntry]:
        """
        Entries matching ``audit_filter``, newest first.

        Entries sharing a timestamp keep newest-inserted first. A trail
        that cannot be read yields an empty list.
        """
        try:
            entries = list(self.iter_entries(audit_filter))
        except (StorageError, ValueError) as e:
            logger.error(f"Failed to read audit log: {e}")
            return []

        return sorted(reversed(entries), key=lambda e: e.timestamp, reverse=True)

    def count(self) -> int:
        try:
            return len(self._load())
        except (StorageError, ValueError) as e:
            logger.error(f"Failed to read audit log: {e}")
            return 0
