"""
Audit trail tests: hash chaining, tamper detection, bounded retention.

Copyright (c) 2026 Momentum. All rights reserved.
"""

from dauth.audit import AuditLogger, AuditOutcome, canonical_json_bytes


def _fill(audit, n):
    for i in range(n):
        outcome = AuditOutcome.SUCCESS if i % 2 == 0 else AuditOutcome.DENIED
        audit.log("vendor", "inituser", "user", str(i), outcome, {"timeout": i + 1})


class TestAuditChain:
    """Digest linkage between consecutive events."""

    def test_events_are_linked(self):
        audit = AuditLogger()
        _fill(audit, 3)

        events = audit.get_events()
        assert events[0].previous_event_digest is None
        assert events[1].previous_event_digest == events[0].event_digest
        assert events[2].previous_event_digest == events[1].event_digest
        assert [e.event_id for e in events] == ["evt-000000000001", "evt-000000000002", "evt-000000000003"]

    def test_chain_verifies(self):
        audit = AuditLogger()
        _fill(audit, 5)

        assert audit.verify_chain() == (True, None)

    def test_tampered_details_detected(self):
        audit = AuditLogger()
        _fill(audit, 4)

        audit._events[2].details["timeout"] = 0

        assert audit.verify_chain() == (False, 2)

    def test_dropped_event_detected(self):
        audit = AuditLogger()
        _fill(audit, 4)

        del audit._events[1]

        assert audit.verify_chain() == (False, 1)

    def test_digest_is_canonical(self):
        audit = AuditLogger()
        event = audit.log("orknode1", "addork", "ork", "100", AuditOutcome.SUCCESS, {"b": 1, "a": 2})

        assert event.compute_digest() == event.event_digest
        assert canonical_json_bytes({"b": 1, "a": 2}) == b'{"a":2,"b":1}'


class TestAuditRetention:
    """Bounded trails drop the oldest events."""

    def test_max_events(self):
        audit = AuditLogger(max_events=3)
        _fill(audit, 5)

        assert len(audit) == 3
        assert [e.resource_id for e in audit.get_events()] == ["2", "3", "4"]
        assert audit.verify_chain() == (True, None)


class TestAuditQueries:
    """Filtering and export."""

    def test_filter_by_outcome(self):
        audit = AuditLogger()
        _fill(audit, 4)

        denied = audit.get_events(outcome=AuditOutcome.DENIED)

        assert [e.resource_id for e in denied] == ["1", "3"]

    def test_filter_by_actor_and_limit(self):
        audit = AuditLogger()
        _fill(audit, 4)
        audit.log("orknode1", "addork", "ork", "9", AuditOutcome.SUCCESS)

        assert len(audit.get_events(actor="orknode1")) == 1
        assert len(audit.get_events(action="inituser", limit=2)) == 2
        assert audit.get_events(limit=0) == []

    def test_export(self):
        audit = AuditLogger()
        _fill(audit, 2)

        exported = audit.export()

        assert exported[0]["outcome"] == "success"
        assert exported[1]["previous_event_digest"] == exported[0]["event_digest"]
        assert exported[0]["correlation_id"]
