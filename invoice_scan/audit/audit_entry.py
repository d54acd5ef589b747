"""
Audit Log Entry Data Classes.

This module defines the immutable record of one mutation (who changed
what, when, and how) and the filter used to query the log.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from dateutil import parser as date_parser

from invoice_scan.integrity.hasher import canonical_json


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class TargetType(str, Enum):
    INVOICE = "invoice"
    CLIENT = "client"
    PAYMENT = "payment"
    SETTINGS = "settings"


@dataclass(frozen=True)
class Actor:
    """The user performing a mutation."""
    user_id: str
    user_name: str = ""


@dataclass(frozen=True)
class AuditLogEntry:
    """
    One immutable audit trail entry.

    Attributes:
        id: Unique entry id (``audit-<timestamp>-<random>``)
        target_id: Identifier of the mutated entity
        target_type: Kind of entity
        action: create, update or delete
        user_id: Acting user id
        user_name: Acting user display name
        timestamp: ISO-8601 UTC time of the mutation
        old_value: Entity before the mutation (update/delete)
        new_value: Entity after the mutation (create/update)
        changed_fields: Keys whose values differ (update only)
        remarks: Free-form note
    """
    id: str
    target_id: str
    target_type: TargetType
    action: AuditAction
    user_id: str
    user_name: str
    timestamp: str
    old_value: Any = None
    new_value: Any = None
    changed_fields: Optional[List[str]] = None
    remarks: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Persisted shape; optional members are omitted when unset."""
        data = {
            'id': self.id,
            'targetId': self.target_id,
            'targetType': self.target_type.value,
            'action': self.action.value,
            'userId': self.user_id,
            'userName': self.user_name,
            'timestamp': self.timestamp,
        }
        optional = {
            'oldValue': self.old_value,
            'newValue': self.new_value,
            'changedFields': self.changed_fields,
            'remarks': self.remarks,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditLogEntry':
        changed = data.get('changedFields')
        return cls(
            id=data['id'],
            target_id=data['targetId'],
            target_type=TargetType(data['targetType']),
            action=AuditAction(data['action']),
            user_id=data.get('userId', ''),
            user_name=data.get('userName', ''),
            timestamp=data['timestamp'],
            old_value=data.get('oldValue'),
            new_value=data.get('newValue'),
            changed_fields=list(changed) if changed is not None else None,
            remarks=data.get('remarks'),
        )


def _parse_timestamp(value: str) -> datetime:
    parsed = date_parser.isoparse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class AuditFilter:
    """
    Criteria for querying the audit log. Unset criteria match everything.

    ``start_date`` and ``end_date`` are inclusive ISO-8601 bounds; values
    without a UTC offset are read as UTC.
    """
    target_id: Optional[str] = None
    target_type: Optional[TargetType] = None
    action: Optional[AuditAction] = None
    user_id: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    _bounds: Dict[str, datetime] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.target_type is not None:
            self.target_type = TargetType(self.target_type)
        if self.action is not None:
            self.action = AuditAction(self.action)
        if self.start_date:
            self._bounds['start'] = _parse_timestamp(self.start_date)
        if self.end_date:
            self._bounds['end'] = _parse_timestamp(self.end_date)

    def matches(self, entry: AuditLogEntry) -> bool:
        if self.target_id and entry.target_id != self.target_id:
            return False
        if self.target_type and entry.target_type != self.target_type:
            return False
        if self.action and entry.action != self.action:
            return False
        if self.user_id and entry.user_id != self.user_id:
            return False

        if self._bounds:
            timestamp = _parse_timestamp(entry.timestamp)
            if 'start' in self._bounds and timestamp < self._bounds['start']:
                return False
            if 'end' in self._bounds and timestamp > self._bounds['end']:
                return False

        return True


_MISSING = object()


def detect_changed_fields(old_value: Dict[str, Any], new_value: Dict[str, Any]) -> List[str]:
    """
    Keys of either mapping whose canonical JSON values differ, sorted.

    A key present on one side only counts as changed, even when the
    other side's value is None.
    """
    changed = []
    for key in set(old_value) | set(new_value):
        old = old_value.get(key, _MISSING)
        new = new_value.get(key, _MISSING)
        if old is _MISSING or new is _MISSING:
            changed.append(key)
        elif canonical_json(old) != canonical_json(new):
            changed.append(key)
    return sorted(changed)
