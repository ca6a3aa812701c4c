"""
DAuth Record Shapes

The three live record kinds of the onboarding contract and their persisted
JSON form:

    OrkRecord       table "orks"       global namespace, keyed by username
    UserRecord      table "users"      global namespace, keyed by username
    FragmentRecord  table "fragments"  ork-account namespace, keyed by username

Rows coming back from a storage adapter are checked against a JSON Schema
before they are turned into records.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from functools import lru_cache
from typing import Any, Dict, Tuple

from jsonschema import Draft202012Validator

from dauth.hardening import UINT64_MAX, StorageError


ORKS_TABLE = "orks"
USERS_TABLE = "users"
FRAGMENTS_TABLE = "fragments"

CONFIRMED = 0  # UserRecord.timeout sentinel


_UINT64 = {"type": "integer", "minimum": 0, "maximum": UINT64_MAX}
_ACCOUNT = {"type": "string", "minLength": 1}

RECORD_SCHEMAS: Dict[str, Dict[str, Any]] = {
    ORKS_TABLE: {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "title": "OrkRecord",
        "type": "object",
        "required": ["account", "public_key", "url"],
        "properties": {
            "account": _ACCOUNT,
            "public_key": {"type": "string"},
            "url": {"type": "string"},
        },
        "additionalProperties": False,
    },
    USERS_TABLE: {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "title": "UserRecord",
        "type": "object",
        "required": ["timeout", "onboard_vendor", "orks"],
        "properties": {
            "timeout": _UINT64,
            "onboard_vendor": _ACCOUNT,
            "orks": {"type": "array", "items": _UINT64},
        },
        "additionalProperties": False,
    },
    FRAGMENTS_TABLE: {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "title": "FragmentRecord",
        "type": "object",
        "required": ["vendor", "public_key", "private_key_frag", "pass_hash"],
        "properties": {
            "vendor": _UINT64,
            "public_key": {"type": "string"},
            "private_key_frag": {"type": "string"},
            "pass_hash": {"type": "string"},
        },
        "additionalProperties": False,
    },
}


@lru_cache(maxsize=None)
def record_validator(table: str) -> Draft202012Validator:
    """Cached validator for a table's row schema."""
    try:
        schema = RECORD_SCHEMAS[table]
    except KeyError:
        raise StorageError(f"unknown table: {table}", table=table) from None
    return Draft202012Validator(schema)


def validate_row(table: str, row: Any) -> None:
    """Raise StorageError if ``row`` does not match the table schema."""
    errors = sorted(record_validator(table).iter_errors(row), key=lambda e: list(e.path))
    if errors:
        first = errors[0]
        raise StorageError(
            f"invalid {table} row: {first.json_path}: {first.message}",
            table=table,
            error_count=len(errors),
        )


# =============================================================================
# RECORDS
# =============================================================================

@dataclass(frozen=True)
class OrkRecord:
    """The oracle node currently assigned to serve a username."""
    account: str
    public_key: str
    url: str

    table = ORKS_TABLE

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "OrkRecord":
        validate_row(cls.table, row)
        return cls(account=row["account"], public_key=row["public_key"], url=row["url"])


@dataclass(frozen=True)
class UserRecord:
    """
    Onboarding lifecycle of a username.

    ``timeout`` is the pending-registration expiry; 0 means confirmed.
    ``orks`` grows by one entry per first fragment post.
    """
    timeout: int
    onboard_vendor: str
    orks: Tuple[int, ...] = field(default_factory=tuple)

    table = USERS_TABLE

    @property
    def is_confirmed(self) -> bool:
        return self.timeout == CONFIRMED

    @property
    def is_pending(self) -> bool:
        return self.timeout != CONFIRMED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timeout": self.timeout,
            "onboard_vendor": self.onboard_vendor,
            "orks": list(self.orks),
        }

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "UserRecord":
        validate_row(cls.table, row)
        return cls(
            timeout=row["timeout"],
            onboard_vendor=row["onboard_vendor"],
            orks=tuple(row["orks"]),
        )


@dataclass(frozen=True)
class FragmentRecord:
    """An ork's encrypted key fragment for one username."""
    vendor: int
    public_key: str
    private_key_frag: str
    pass_hash: str

    table = FRAGMENTS_TABLE

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def redacted(self) -> Dict[str, Any]:
        """Dict form with the secret payload fields masked."""
        d = self.to_dict()
        d["private_key_frag"] = "<redacted>"
        d["pass_hash"] = "<redacted>"
        return d

    @classmethod
    def from_dict(cls, row: Dict[str, Any]) -> "FragmentRecord":
        validate_row(cls.table, row)
        return cls(
            vendor=row["vendor"],
            public_key=row["public_key"],
            private_key_frag=row["private_key_frag"],
            pass_hash=row["pass_hash"],
        )
