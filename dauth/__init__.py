"""
DAUTH — Decentralized Onboarding Authority

Authorization and record-consistency core for identity onboarding where a
user's private key is split into fragments held by independent oracle nodes
("orks") and a vendor sponsors the onboarding.

Architecture
────────────

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      AUTHENTICATION CONTRACT                        │
    │                                                                     │
    │  contract.py    action boundary: transaction, logging, audit        │
    │                                                                     │
    │  RECORD STORES                                                      │
    │    orks.py       username → assigned ork account                    │
    │    users.py      username → pending/confirmed lifecycle             │
    │    fragments.py  ork account → username → encrypted fragment        │
    │                                                                     │
    │  FOUNDATION                                                         │
    │    auth.py       AuthenticatedCaller, require_auth                  │
    │    storage.py    transactional keyed store (memory, sqlite)         │
    │    records.py    record shapes and row schemas                      │
    │    hardening.py  error taxonomy and input validation                │
    │    audit.py      hash-chained audit trail                           │
    │    config.py     layered YAML/env configuration                     │
    └─────────────────────────────────────────────────────────────────────┘

Onboarding flow
───────────────

    vendor   inituser(username, timeout)        user PENDING
    ork      addork(username, key, url)         ork assigned
    ork      postfragment(..., username, ...)   fragment stored, user.orks += [username]
    vendor   confirmuser(username)              user CONFIRMED

Each step is authorized independently; none triggers another.

Copyright © 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

__version__ = "0.3.0"


# Lazy imports to avoid circular dependencies
def __getattr__(name):
    """Lazy import DAuth modules on first access."""

    if name in ("AuthenticationContract", "Action"):
        from dauth import contract
        return getattr(contract, name)

    if name in ("AuthenticatedCaller", "require_auth", "require_signer"):
        from dauth import auth
        return getattr(auth, name)

    if name in ("OrkRegistry",):
        from dauth import orks
        return getattr(orks, name)

    if name in ("UserRegistry", "UserStatus"):
        from dauth import users
        return getattr(users, name)

    if name in ("FragmentStore",):
        from dauth import fragments
        return getattr(fragments, name)

    if name in ("OrkRecord", "UserRecord", "FragmentRecord"):
        from dauth import records
        return getattr(records, name)

    if name in ("KeyValueStore", "InMemoryStore", "SqliteStore", "Table"):
        from dauth import storage
        return getattr(storage, name)

    if name in ("ContractError", "AuthorizationError", "NotFound",
                "InvalidArgument", "InvalidState", "StorageError"):
        from dauth import hardening
        return getattr(hardening, name)

    if name in ("AuditLogger", "AuditEvent", "AuditOutcome"):
        from dauth import audit
        return getattr(audit, name)

    if name in ("DAuthConfig", "ConfigManager", "get_config", "get_config_manager"):
        from dauth import config
        return getattr(config, name)

    raise AttributeError(f"module 'dauth' has no attribute '{name}'")


__all__ = [
    "__version__",
    # Contract
    "AuthenticationContract",
    "Action",
    # Authority
    "AuthenticatedCaller",
    "require_auth",
    "require_signer",
    # Record stores
    "OrkRegistry",
    "UserRegistry",
    "UserStatus",
    "FragmentStore",
    # Records
    "OrkRecord",
    "UserRecord",
    "FragmentRecord",
    # Storage
    "KeyValueStore",
    "InMemoryStore",
    "SqliteStore",
    "Table",
    # Errors
    "ContractError",
    "AuthorizationError",
    "NotFound",
    "InvalidArgument",
    "InvalidState",
    "StorageError",
    # Audit
    "AuditLogger",
    "AuditEvent",
    "AuditOutcome",
    # Config
    "DAuthConfig",
    "ConfigManager",
    "get_config",
    "get_config_manager",
]
