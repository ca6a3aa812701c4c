"""
DAuth Validation and Hardening Module

Error taxonomy and input validation for the onboarding authority core.

Every precondition violation surfaces as a distinct ContractError subclass
carrying a human-readable reason. Errors are raised synchronously and abort
the enclosing transaction; nothing in this package catches them to recover.

Error hierarchy:
    ContractError (base)
    ├── AuthorizationError   caller lacks the required authority
    ├── NotFound             referenced record absent
    ├── InvalidArgument      malformed input (zero timeout, out of range id)
    ├── InvalidState         operation invalid for the record's state
    └── StorageError         storage contract misuse or corrupt row

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import re
from typing import Any, Dict, Optional, Type


# =============================================================================
# ERROR TYPES
# =============================================================================

class ContractError(Exception):
    """Base exception for every rejected contract operation."""

    code = "contract_error"
    exit_code = 1

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details: Dict[str, Any] = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": dict(self.details),
        }


class AuthorizationError(ContractError):
    """Caller does not hold the required authority or ownership."""

    code = "authorization_error"
    exit_code = 3


class NotFound(ContractError):
    """Referenced record does not exist."""

    code = "not_found"
    exit_code = 4


class InvalidArgument(ContractError):
    """Malformed input."""

    code = "invalid_argument"
    exit_code = 2


class InvalidState(ContractError):
    """Operation is not valid for the current record state."""

    code = "invalid_state"
    exit_code = 5


class StorageError(ContractError):
    """Storage contract violated (duplicate insert, missing update, bad row)."""

    code = "storage_error"
    exit_code = 6


def check(
    condition: bool,
    message: str,
    error: Type[ContractError] = InvalidArgument,
    **details: Any,
) -> None:
    """Raise ``error(message)`` unless ``condition`` holds."""
    if not condition:
        raise error(message, **details)


# =============================================================================
# INPUT VALIDATORS
# =============================================================================

UINT64_MAX = (1 << 64) - 1

# Ledger account names: up to 12 chars of a-z, 1-5 and '.'
ACCOUNT_NAME_PATTERN = re.compile(r"^[a-z1-5.]{1,12}$")


class Validators:
    """Input validators. Each returns the value unchanged or raises InvalidArgument."""

    @staticmethod
    def uint64(field: str, value: Any) -> int:
        # bool is an int subclass; a flag is never a valid handle
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidArgument(
                f"{field} must be an unsigned 64-bit integer",
                field=field,
                value=repr(value),
            )
        if value < 0 or value > UINT64_MAX:
            raise InvalidArgument(
                f"{field} out of range for unsigned 64-bit integer: {value}",
                field=field,
                value=value,
            )
        return value

    @staticmethod
    def account(field: str, value: Any, strict: bool = False) -> str:
        if not isinstance(value, str) or not value.strip():
            raise InvalidArgument(f"{field} must be a non-empty account name", field=field)
        if value != value.strip():
            raise InvalidArgument(f"{field} must not carry surrounding whitespace", field=field)
        if strict and not ACCOUNT_NAME_PATTERN.match(value):
            raise InvalidArgument(
                f"{field} is not a valid ledger account name: {value!r}",
                field=field,
            )
        return value

    @staticmethod
    def payload(field: str, value: Any, max_length: Optional[int] = None) -> str:
        if not isinstance(value, str):
            raise InvalidArgument(f"{field} must be a string", field=field)
        if max_length is not None and len(value) > max_length:
            raise InvalidArgument(
                f"{field} exceeds maximum length {max_length}",
                field=field,
                length=len(value),
            )
        return value
