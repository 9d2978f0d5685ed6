"""Notification envelope - the canonical message record, visible or silent."""
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional


class NotificationKind(str, Enum):
    """Kinds of visible notifications."""
    SIGNAL = "signal"
    ACHIEVEMENT = "achievement"
    ANNOUNCEMENT = "announcement"
    ALERT = "alert"


class SilentType(str, Enum):
    """Handler types a silent envelope can name."""
    BACKGROUND_SYNC = "background-sync"
    PRICE_UPDATE = "price-update"
    SIGNAL_REFRESH = "signal-refresh"
    CACHE_INVALIDATE = "cache-invalidate"
    SYSTEM_MAINTENANCE = "system-maintenance"
    MARKET_DATA_SYNC = "market-data-sync"


SILENT_TYPES = frozenset(t.value for t in SilentType)

# Handler-type names containing this are treated as silent
BACKGROUND_MARKER = "background"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def is_silent_message(data: Mapping[str, Any]) -> bool:
    """Classify raw inbound data.

    Silent iff the data marks silent=true (bool, or the string "true" since
    push data blocks are string-valued) or the type name contains "background".
    """
    flag = data.get("silent")
    if flag is True or (isinstance(flag, str) and flag.lower() == "true"):
        return True
    type_name = data.get("type") or data.get("silent_type") or ""
    return BACKGROUND_MARKER in str(type_name)


@dataclass(frozen=True)
class NotificationEnvelope:
    """Immutable notification message."""

    kind: NotificationKind = NotificationKind.ALERT
    silent_type: Optional[str] = None
    silent: bool = False
    title: str = ""
    body: str = ""
    structured_data: Mapping[str, Any] = field(default_factory=dict)
    deep_link: Optional[str] = None
    timestamp: datetime = field(default_factory=_now)

    def __post_init__(self):
        object.__setattr__(self, "structured_data", MappingProxyType(dict(self.structured_data)))

    @classmethod
    def silent_envelope(cls, silent_type: str, payload: Optional[Mapping[str, Any]] = None) -> "NotificationEnvelope":
        """Build a silent envelope for a handler type."""
        return cls(
            kind=NotificationKind.ALERT,
            silent_type=silent_type,
            silent=True,
            title=f"Silent: {silent_type}",
            structured_data=payload or {},
        )

    @classmethod
    def from_message(cls, data: Mapping[str, Any]) -> "NotificationEnvelope":
        """Build an envelope from an inbound push data block."""
        type_name = str(data.get("silent_type") or data.get("type") or "")
        silent = is_silent_message(data)

        payload = data.get("payload") or {}
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError:
                payload = {"raw": payload}
        if not isinstance(payload, Mapping):
            payload = {"raw": payload}
        if not silent:
            payload = {k: v for k, v in data.items() if k not in ("title", "body", "message")}

        try:
            kind = NotificationKind(data.get("kind") or type_name)
        except ValueError:
            kind = NotificationKind.ALERT

        return cls(
            kind=kind,
            silent_type=type_name if silent else None,
            silent=silent,
            title=str(data.get("title") or ""),
            body=str(data.get("body") or data.get("message") or ""),
            structured_data=payload,
            deep_link=data.get("deep_link") or None,
        )


@dataclass(frozen=True)
class SilentHandlerResult:
    """Outcome of one handler invocation."""

    success: bool
    handler_name: str
    executed_at: datetime = field(default_factory=_now)
    result_payload: Optional[dict] = None
    error_message: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "executed_at": self.executed_at.isoformat(),
            "action": self.handler_name,
            "result": self.result_payload,
            "error": self.error_message,
        }
