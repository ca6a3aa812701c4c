"""
DAuth Authentication Contract

Single entry point the ledger runtime drives. Composes the three record
stores over one storage adapter and gives every action:

    1. exactly one storage transaction (all-or-nothing)
    2. a structured log line with timing
    3. an audit event, accepted or denied

Actions (ledger names):

    addork        ork node    username, public_key, url
    inituser      vendor      username, timeout
    confirmuser   vendor      username
    postfragment  ork node    ork_username, username, vendor,
                              private_key_frag, public_key, pass_hash

No action triggers another; callers push them in the order the onboarding
flow requires.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from dauth.audit import AuditLogger, AuditOutcome
from dauth.auth import AuthenticatedCaller, require_auth
from dauth.config import DAuthConfig, create_store, get_config
from dauth.fragments import FragmentStore
from dauth.hardening import ContractError, InvalidArgument, StorageError
from dauth.observability import DAuthComponent, get_logger
from dauth.orks import OrkRegistry
from dauth.records import FragmentRecord, OrkRecord, UserRecord
from dauth.storage import KeyValueStore
from dauth.users import UserRegistry

logger = get_logger("contract", DAuthComponent.CONTRACT)

T = TypeVar("T")


class Action(Enum):
    """Actions exposed to the ledger runtime."""
    ADDORK = "addork"
    INITUSER = "inituser"
    CONFIRMUSER = "confirmuser"
    POSTFRAGMENT = "postfragment"


# action -> (required data fields, optional authorizer field)
ACTION_FIELDS: Dict[Action, Tuple[Tuple[str, ...], Optional[str]]] = {
    Action.ADDORK: (("username", "public_key", "url"), "ork_node"),
    Action.INITUSER: (("username", "timeout"), "vendor"),
    Action.CONFIRMUSER: (("username",), "vendor"),
    Action.POSTFRAGMENT: (
        ("ork_username", "username", "vendor", "private_key_frag", "public_key", "pass_hash"),
        None,
    ),
}

RESOURCE_TYPES: Dict[Action, str] = {
    Action.ADDORK: "ork",
    Action.INITUSER: "user",
    Action.CONFIRMUSER: "user",
    Action.POSTFRAGMENT: "fragment",
}


class AuthenticationContract:
    """
    The onboarding authority.

    Usage:
        contract = AuthenticationContract(InMemoryStore())
        vendor = AuthenticatedCaller("vendor")
        contract.inituser(vendor, 100, 99999)
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        config: Optional[DAuthConfig] = None,
        audit: Optional[AuditLogger] = None,
    ):
        config = config or get_config()
        self.config = config
        self.account: str = config.contract.account.get()
        self.store = store if store is not None else create_store(config)

        strict = config.security.strict_account_names.get()
        max_len = config.security.max_payload_length.get()
        self.orks = OrkRegistry(self.store, self.account, strict, max_len)
        self.users = UserRegistry(self.store, self.account, strict)
        self.fragments = FragmentStore(self.store, self.users, self.orks, max_len)

        if audit is not None:
            self.audit: Optional[AuditLogger] = audit
        elif config.audit.enabled.get():
            self.audit = AuditLogger(max_events=config.audit.max_events.get())
        else:
            self.audit = None

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def addork(
        self,
        caller: AuthenticatedCaller,
        username: int,
        public_key: str,
        url: str,
    ) -> OrkRecord:
        return self._execute(
            Action.ADDORK,
            caller,
            "ork",
            username,
            lambda: self.orks.register_or_update(caller, username, public_key, url),
            url=url,
        )

    def inituser(self, caller: AuthenticatedCaller, username: int, timeout: int) -> UserRecord:
        return self._execute(
            Action.INITUSER,
            caller,
            "user",
            username,
            lambda: self.users.initialize(caller, username, timeout),
            timeout=timeout,
        )

    def confirmuser(self, caller: AuthenticatedCaller, username: int) -> UserRecord:
        return self._execute(
            Action.CONFIRMUSER,
            caller,
            "user",
            username,
            lambda: self.users.confirm(caller, username),
        )

    def postfragment(
        self,
        caller: AuthenticatedCaller,
        ork_username: int,
        username: int,
        vendor: int,
        private_key_frag: str,
        public_key: str,
        pass_hash: str,
    ) -> FragmentRecord:
        return self._execute(
            Action.POSTFRAGMENT,
            caller,
            "fragment",
            username,
            lambda: self.fragments.post_fragment(
                caller, ork_username, username, vendor, private_key_frag, public_key, pass_hash
            ),
            ork_username=ork_username,
            vendor=vendor,
        )

    def push_action(self, name: str, caller: AuthenticatedCaller, data: Dict[str, Any]) -> Any:
        """
        Dispatch an action by its ledger name with a data mapping.

        When the mapping names its authorizer (``ork_node`` / ``vendor``
        for the account-signed actions) it must be the caller. Rejections
        here are logged and audited like any other denied action.
        """
        start = time.monotonic()
        try:
            action, args = self._resolve(name, caller, data)
        except ContractError as e:
            action = _lookup_action(name)
            username = data.get("username", "") if isinstance(data, dict) else ""
            self._deny(
                str(name),
                caller,
                RESOURCE_TYPES.get(action, "action"),
                username,
                e,
                (time.monotonic() - start) * 1000,
                {},
            )
            raise

        handler: Callable[..., Any] = getattr(self, action.value)
        return handler(caller, *args)

    def _resolve(
        self,
        name: str,
        caller: AuthenticatedCaller,
        data: Dict[str, Any],
    ) -> Tuple[Action, List[Any]]:
        action = _lookup_action(name)
        if action is None:
            raise InvalidArgument(f"unknown action: {name}", action=str(name))
        if not isinstance(data, dict):
            raise InvalidArgument("action data must be a mapping", action=name)

        required, authorizer = ACTION_FIELDS[action]
        allowed = set(required) | ({authorizer} if authorizer else set())
        missing = [f for f in required if f not in data]
        unknown = sorted(set(data) - allowed)
        if missing:
            raise InvalidArgument(f"{name}: missing fields {missing}", action=name)
        if unknown:
            raise InvalidArgument(f"{name}: unknown fields {unknown}", action=name)
        if authorizer and authorizer in data:
            require_auth(caller, data[authorizer])

        return action, [data[f] for f in required]

    # -------------------------------------------------------------------------
    # Execution boundary
    # -------------------------------------------------------------------------

    def _execute(
        self,
        action: Action,
        caller: AuthenticatedCaller,
        resource_type: str,
        resource_id: Any,
        fn: Callable[[], T],
        **details: Any,
    ) -> T:
        start = time.monotonic()
        try:
            with self.store.transaction():
                result = fn()
        except ContractError as e:
            self._deny(
                action.value,
                caller,
                resource_type,
                resource_id,
                e,
                (time.monotonic() - start) * 1000,
                details,
            )
            raise

        actor = _actor(caller)
        logger.operation(
            action.value,
            (time.monotonic() - start) * 1000,
            actor=actor,
            resource_id=resource_id,
        )
        if self.audit is not None:
            self.audit.log(
                actor,
                action.value,
                resource_type,
                str(resource_id),
                AuditOutcome.SUCCESS,
                dict(details),
            )
        return result

    def _deny(
        self,
        action_name: str,
        caller: Any,
        resource_type: str,
        resource_id: Any,
        error: ContractError,
        duration_ms: float,
        details: Dict[str, Any],
    ) -> None:
        actor = _actor(caller)
        context = dict(
            operation=action_name,
            duration_ms=duration_ms,
            actor=actor,
            resource_id=resource_id,
        )
        if isinstance(error, StorageError):
            logger.error(f"Action {action_name} failed in storage: {error.message}", error_code=error.code, **context)
        else:
            logger.warning(f"Action {action_name} rejected: {error.message}", error_code=error.code, **context)

        if self.audit is not None:
            self.audit.log(
                actor,
                action_name,
                resource_type,
                str(resource_id),
                AuditOutcome.DENIED,
                {"error_code": error.code, "reason": error.message, **details},
            )


def _actor(caller: Any) -> str:
    return caller.account if isinstance(caller, AuthenticatedCaller) else repr(caller)


def _lookup_action(name: Any) -> Optional[Action]:
    try:
        return Action(name)
    except ValueError:
        return None
