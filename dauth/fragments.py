"""
DAuth Fragment Store

Each ork account owns a private table of encrypted key fragments, one per
username it services. Only the ork currently assigned to a username (per
the OrkRegistry) may post that username's fragment.

post_fragment checks, in order:
    1. user record exists          NotFound
    2. ork record exists           NotFound
    3. caller is the assigned ork  AuthorizationError

On the first post into a namespace the username is appended to the user's
``orks`` list in the same atomic unit as the fragment insert. Later posts
overwrite the payload only.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import dataclasses
from typing import List, Optional, Tuple

from dauth.auth import AuthenticatedCaller, require_auth
from dauth.hardening import NotFound, Validators, check
from dauth.observability import DAuthComponent, get_logger
from dauth.orks import OrkRegistry
from dauth.records import FragmentRecord
from dauth.storage import KeyValueStore, Table
from dauth.users import UserRegistry

logger = get_logger("store", DAuthComponent.FRAGMENTS)


class FragmentStore:
    """Per-ork fragment tables."""

    def __init__(
        self,
        store: KeyValueStore,
        users: UserRegistry,
        orks: OrkRegistry,
        max_payload_length: Optional[int] = None,
    ):
        self.store = store
        self.users = users
        self.orks = orks
        self.max_payload_length = max_payload_length

    def _table(self, ork_account: str) -> Table[FragmentRecord]:
        return Table(self.store, ork_account, FragmentRecord)

    def post_fragment(
        self,
        caller: AuthenticatedCaller,
        ork_username: int,
        username: int,
        vendor: int,
        private_key_frag: str,
        public_key: str,
        pass_hash: str,
    ) -> FragmentRecord:
        """Create or overwrite the assigned ork's fragment for ``username``."""
        Validators.uint64("ork_username", ork_username)
        Validators.uint64("username", username)
        Validators.uint64("vendor", vendor)
        Validators.payload("private_key_frag", private_key_frag, self.max_payload_length)
        Validators.payload("public_key", public_key, self.max_payload_length)
        Validators.payload("pass_hash", pass_hash, self.max_payload_length)

        with self.store.transaction():
            user = self.users.get(username)
            check(user is not None, "That user does not exist.", NotFound, username=username)

            ork = self.orks.get(username)
            check(ork is not None, "That ork does not exist.", NotFound, username=username)

            require_auth(caller, ork.account)

            frags = self._table(ork.account)
            existing = frags.find(username)

            if existing is None:
                record = FragmentRecord(
                    vendor=vendor,
                    public_key=public_key,
                    private_key_frag=private_key_frag,
                    pass_hash=pass_hash,
                )
                frags.insert(username, record)
                # the list holds the username itself, once per servicing namespace
                self.users.append_ork(username, username)
            else:
                record = dataclasses.replace(
                    existing,
                    public_key=public_key,
                    private_key_frag=private_key_frag,
                    pass_hash=pass_hash,
                )
                frags.update(username, record)

        logger.info(
            "Fragment stored" if existing is None else "Fragment replaced",
            operation="postfragment",
            username=username,
            ork=ork.account,
            ork_username=ork_username,
        )
        return record

    def get(self, ork_account: str, username: int) -> Optional[FragmentRecord]:
        return self._table(ork_account).find(username)

    def list(self, ork_account: str) -> List[Tuple[int, FragmentRecord]]:
        return list(self._table(ork_account).items())

    def history(self, ork_account: str, username: int) -> List[FragmentRecord]:
        return self._table(ork_account).history(username)
