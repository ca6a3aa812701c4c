"""
DAuth User Registry

Onboarding lifecycle per username:

    UNINITIALIZED --initialize(timeout≠0)--> PENDING
    PENDING       --initialize(timeout≠0)--> PENDING   (timeout refreshed)
    PENDING       --confirm-->               CONFIRMED
    CONFIRMED     --confirm-->               InvalidState

``timeout == 0`` is the confirmed sentinel and is reachable only through
``confirm``. Neither operation checks the caller against ``onboard_vendor``.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import dataclasses
from enum import Enum
from typing import List, Optional, Tuple

from dauth.auth import AuthenticatedCaller, require_signer
from dauth.hardening import InvalidArgument, InvalidState, NotFound, Validators, check
from dauth.observability import DAuthComponent, get_logger
from dauth.records import CONFIRMED, UserRecord
from dauth.storage import KeyValueStore, Table

logger = get_logger("registry", DAuthComponent.USERS)


class UserStatus(Enum):
    """Read-side view of a username's lifecycle."""
    UNINITIALIZED = "uninitialized"
    PENDING = "pending"
    EXPIRED = "expired"  # pending, with timeout at or before the given time
    CONFIRMED = "confirmed"


class UserRegistry:
    """Username → onboarding record."""

    def __init__(
        self,
        store: KeyValueStore,
        namespace: str,
        strict_account_names: bool = False,
    ):
        self.namespace = namespace
        self.strict_account_names = strict_account_names
        self._users: Table[UserRecord] = Table(store, namespace, UserRecord)

    def initialize(self, caller: AuthenticatedCaller, username: int, timeout: int) -> UserRecord:
        """Create a pending user, or refresh the expiry of an existing one."""
        require_signer(caller)
        Validators.account("vendor", caller.account, strict=self.strict_account_names)
        Validators.uint64("username", username)
        Validators.uint64("timeout", timeout)
        check(timeout != CONFIRMED, "Timeout can not be 0", InvalidArgument, username=username)

        existing = self._users.find(username)
        if existing is None:
            record = UserRecord(timeout=timeout, onboard_vendor=caller.account)
            self._users.insert(username, record)
            logger.info("User initialized", operation="inituser", username=username, vendor=caller.account)
            return record

        record = dataclasses.replace(existing, timeout=timeout)
        self._users.update(username, record)
        logger.info("User timeout refreshed", operation="inituser", username=username, vendor=caller.account)
        return record

    def confirm(self, caller: AuthenticatedCaller, username: int) -> UserRecord:
        """Move a pending user to confirmed. One-way."""
        require_signer(caller)
        Validators.uint64("username", username)

        existing = self._users.find(username)
        check(
            existing is not None,
            "That username has not been initialized.",
            NotFound,
            username=username,
        )
        check(
            existing.is_pending,
            "That user has already been confirmed.",
            InvalidState,
            username=username,
        )

        record = dataclasses.replace(existing, timeout=CONFIRMED)
        self._users.update(username, record)
        logger.info("User confirmed", operation="confirmuser", username=username, vendor=caller.account)
        return record

    def append_ork(self, username: int, entry: int) -> UserRecord:
        """Append to the serviced-by list. Caller owns the authorization."""
        existing = self._users.find(username)
        check(existing is not None, "That user does not exist.", NotFound, username=username)
        record = dataclasses.replace(existing, orks=existing.orks + (entry,))
        self._users.update(username, record)
        return record

    def get(self, username: int) -> Optional[UserRecord]:
        return self._users.find(username)

    def list(self) -> List[Tuple[int, UserRecord]]:
        return list(self._users.items())

    def history(self, username: int) -> List[UserRecord]:
        return self._users.history(username)

    def status(self, username: int, now: Optional[int] = None) -> UserStatus:
        """
        Lifecycle phase of ``username``.

        EXPIRED is reported only when ``now`` is given; expiry is advisory
        and does not gate any operation.
        """
        record = self._users.find(username)
        if record is None:
            return UserStatus.UNINITIALIZED
        if record.is_confirmed:
            return UserStatus.CONFIRMED
        if now is not None and record.timeout <= now:
            return UserStatus.EXPIRED
        return UserStatus.PENDING
