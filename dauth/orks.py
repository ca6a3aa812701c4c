"""
DAuth Ork Registry

Records which oracle-node account is currently assigned to service a
username. Keyed by username, so this is "who serves this user", not a
directory of oracle nodes.

Authority rules:
    unclaimed username   any authenticated ork may claim it for itself
    claimed username     only the account on file may change the entry

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from dauth.auth import AuthenticatedCaller, require_signer
from dauth.hardening import AuthorizationError, Validators, check
from dauth.observability import DAuthComponent, get_logger
from dauth.records import OrkRecord
from dauth.storage import KeyValueStore, Table

logger = get_logger("registry", DAuthComponent.ORKS)


class OrkRegistry:
    """Username → assigned ork account."""

    def __init__(
        self,
        store: KeyValueStore,
        namespace: str,
        strict_account_names: bool = False,
        max_payload_length: Optional[int] = None,
    ):
        self.namespace = namespace
        self.strict_account_names = strict_account_names
        self.max_payload_length = max_payload_length
        self._orks: Table[OrkRecord] = Table(store, namespace, OrkRecord)

    def register_or_update(
        self,
        caller: AuthenticatedCaller,
        username: int,
        public_key: str,
        url: str,
    ) -> OrkRecord:
        """Claim ``username`` for the calling ork, or refresh its own entry."""
        require_signer(caller)
        Validators.account("ork_node", caller.account, strict=self.strict_account_names)
        Validators.uint64("username", username)
        Validators.payload("public_key", public_key, self.max_payload_length)
        Validators.payload("url", url, self.max_payload_length)

        record = OrkRecord(account=caller.account, public_key=public_key, url=url)
        existing = self._orks.find(username)

        if existing is None:
            self._orks.insert(username, record)
            logger.info("Ork registered", operation="addork", username=username, account=caller.account)
            return record

        check(
            existing.account == caller.account,
            "You do not have permission to alter this ork node.",
            AuthorizationError,
            username=username,
            owner=existing.account,
            caller=caller.account,
        )
        self._orks.update(username, record)
        logger.info("Ork updated", operation="addork", username=username, account=caller.account)
        return record

    def get(self, username: int) -> Optional[OrkRecord]:
        return self._orks.find(username)

    def list(self) -> List[Tuple[int, OrkRecord]]:
        return list(self._orks.items())

    def history(self, username: int) -> List[OrkRecord]:
        return self._orks.history(username)
