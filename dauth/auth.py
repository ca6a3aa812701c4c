"""
DAuth Caller Authority

The ledger runtime authenticates the signer of every action before the core
runs. The result arrives here as an AuthenticatedCaller value; the core never
authenticates anyone itself, it only compares the caller against the account
a record names as its owner.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

from dataclasses import dataclass

from dauth.hardening import AuthorizationError, Validators


@dataclass(frozen=True)
class AuthenticatedCaller:
    """An account whose authority the runtime has already verified."""
    account: str

    def __post_init__(self):
        Validators.account("caller", self.account)

    def __str__(self) -> str:
        return self.account

    def is_account(self, account: str) -> bool:
        return self.account == account


def require_auth(caller: AuthenticatedCaller, account: str) -> None:
    """Fail unless the action carries the authority of ``account``."""
    if not isinstance(caller, AuthenticatedCaller):
        raise AuthorizationError(
            "action was not authorized by the runtime",
            required=account,
        )
    if not caller.is_account(account):
        raise AuthorizationError(
            f"missing authority of {account}",
            required=account,
            caller=caller.account,
        )


def require_signer(caller: AuthenticatedCaller) -> str:
    """Account of the runtime-authenticated signer; fails for anything else."""
    if not isinstance(caller, AuthenticatedCaller):
        raise AuthorizationError("action was not authorized by the runtime")
    return caller.account
