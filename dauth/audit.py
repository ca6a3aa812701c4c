"""
DAuth Audit Trail

Tamper-evident record of every action pushed to the contract, accepted or
denied. Each event carries the digest of its predecessor, so rewriting or
dropping an event in the middle breaks ``verify_chain``.

When the trail is bounded (``max_events``) the oldest events are dropped;
verification then starts at the first retained event.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import hashlib
import json
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Tuple

from dauth.observability import DAuthComponent, get_correlation_id, get_logger

logger = get_logger("trail", DAuthComponent.AUDIT)


def canonical_json_bytes(obj: Any) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


class AuditOutcome(Enum):
    SUCCESS = "success"
    DENIED = "denied"


@dataclass
class AuditEvent:
    """An audit log entry."""
    event_id: str
    timestamp: str
    actor: str
    action: str
    resource_type: str
    resource_id: str
    outcome: str
    details: Dict[str, Any] = field(default_factory=dict)
    correlation_id: str = ""

    previous_event_digest: Optional[str] = None
    event_digest: str = ""

    def __post_init__(self):
        if not self.event_digest:
            self.event_digest = self.compute_digest()

    def compute_digest(self) -> str:
        content = {
            "event_id": self.event_id,
            "timestamp": self.timestamp,
            "actor": self.actor,
            "action": self.action,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "outcome": self.outcome,
            "details": self.details,
            "previous_event_digest": self.previous_event_digest,
        }
        return hashlib.sha256(canonical_json_bytes(content)).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "timestamp": self.timestamp,
            "actor": self.actor,
            "action": self.action,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "outcome": self.outcome,
            "details": self.details,
            "correlation_id": self.correlation_id,
            "previous_event_digest": self.previous_event_digest,
            "event_digest": self.event_digest,
        }


class AuditLogger:
    """Hash-chained audit log."""

    def __init__(self, max_events: Optional[int] = None):
        self._events: Deque[AuditEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()
        self._counter = 0
        self._last_digest: Optional[str] = None

    def log(
        self,
        actor: str,
        action: str,
        resource_type: str,
        resource_id: str,
        outcome: AuditOutcome,
        details: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        with self._lock:
            self._counter += 1
            event = AuditEvent(
                event_id=f"evt-{self._counter:012d}",
                timestamp=datetime.now(timezone.utc).isoformat(),
                actor=actor,
                action=action,
                resource_type=resource_type,
                resource_id=resource_id,
                outcome=outcome.value,
                details=details or {},
                correlation_id=get_correlation_id(),
                previous_event_digest=self._last_digest,
            )
            self._events.append(event)
            self._last_digest = event.event_digest

        logger.debug(
            f"AUDIT: {action} on {resource_type}/{resource_id}",
            operation="audit",
            outcome=event.outcome,
            event_id=event.event_id,
        )
        return event

    def verify_chain(self) -> Tuple[bool, Optional[int]]:
        """Returns (valid, index of first bad event)."""
        with self._lock:
            events = list(self._events)
        for i, event in enumerate(events):
            if event.compute_digest() != event.event_digest:
                return (False, i)
            if i > 0 and event.previous_event_digest != events[i - 1].event_digest:
                return (False, i)
        return (True, None)

    def get_events(
        self,
        actor: Optional[str] = None,
        action: Optional[str] = None,
        resource_id: Optional[str] = None,
        outcome: Optional[AuditOutcome] = None,
        limit: int = 100,
    ) -> List[AuditEvent]:
        with self._lock:
            events = list(self._events)

        if actor:
            events = [e for e in events if e.actor == actor]
        if action:
            events = [e for e in events if e.action == action]
        if resource_id:
            events = [e for e in events if e.resource_id == resource_id]
        if outcome:
            events = [e for e in events if e.outcome == outcome.value]

        return events[-limit:] if limit > 0 else []

    def export(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [e.to_dict() for e in self._events]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
