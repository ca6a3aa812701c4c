"""
User registry tests: pending/confirmed lifecycle, status view, history.

Copyright (c) 2026 Momentum. All rights reserved.
"""

import pytest

from dauth.auth import AuthenticatedCaller
from dauth.hardening import AuthorizationError, InvalidArgument, InvalidState, NotFound
from dauth.records import UserRecord
from dauth.users import UserRegistry, UserStatus


@pytest.fixture
def users(any_store):
    return UserRegistry(any_store, "dauth")


class TestInitialize:
    """Vendor-driven creation and refresh of pending users."""

    def test_creates_pending_user(self, users, vendor):
        record = users.initialize(vendor, 100, 99999)

        assert record == UserRecord(timeout=99999, onboard_vendor="vendor", orks=())
        assert record.is_pending
        assert users.get(100) == record

    def test_zero_timeout_rejected(self, users, vendor):
        with pytest.raises(InvalidArgument, match="Timeout can not be 0"):
            users.initialize(vendor, 100, 0)

        assert users.get(100) is None

    def test_zero_timeout_rejected_for_existing_user(self, users, vendor):
        users.initialize(vendor, 100, 500)

        with pytest.raises(InvalidArgument):
            users.initialize(vendor, 100, 0)

        assert users.get(100).timeout == 500

    def test_refresh_replaces_timeout_only(self, users, vendor):
        users.initialize(vendor, 100, 500)
        users.append_ork(100, 100)

        record = users.initialize(AuthenticatedCaller("vendor2"), 100, 900)

        assert record.timeout == 900
        assert record.onboard_vendor == "vendor"
        assert record.orks == (100,)

    def test_reinitialize_confirmed_user_makes_it_pending(self, users, vendor):
        users.initialize(vendor, 100, 500)
        users.confirm(vendor, 100)

        record = users.initialize(vendor, 100, 700)

        assert record.is_pending
        assert record.timeout == 700

    @pytest.mark.parametrize("timeout", [-5, 1 << 64, "99999", None])
    def test_rejects_non_uint64_timeout(self, users, vendor, timeout):
        with pytest.raises(InvalidArgument):
            users.initialize(vendor, 100, timeout)

    def test_unauthenticated_vendor_rejected(self, users):
        with pytest.raises(AuthorizationError):
            users.initialize("vendor", 100, 500)


class TestConfirm:
    """One-way PENDING -> CONFIRMED transition."""

    def test_confirm_pending_user(self, users, vendor):
        users.initialize(vendor, 100, 99999)

        record = users.confirm(vendor, 100)

        assert record.timeout == 0
        assert record.is_confirmed

    def test_confirm_unknown_user(self, users, vendor):
        with pytest.raises(NotFound, match="has not been initialized"):
            users.confirm(vendor, 100)

    def test_double_confirm_rejected(self, users, vendor):
        users.initialize(vendor, 100, 99999)
        users.confirm(vendor, 100)

        with pytest.raises(InvalidState, match="already been confirmed"):
            users.confirm(vendor, 100)
        with pytest.raises(InvalidState):
            users.confirm(vendor, 100)

    def test_any_vendor_may_confirm(self, users, vendor):
        users.initialize(vendor, 100, 99999)

        record = users.confirm(AuthenticatedCaller("othervendor"), 100)

        assert record.is_confirmed
        assert record.onboard_vendor == "vendor"


class TestStatus:
    """Read-side lifecycle view."""

    def test_uninitialized(self, users):
        assert users.status(100) == UserStatus.UNINITIALIZED

    def test_pending_and_confirmed(self, users, vendor):
        users.initialize(vendor, 100, 99999)
        assert users.status(100) == UserStatus.PENDING

        users.confirm(vendor, 100)
        assert users.status(100) == UserStatus.CONFIRMED

    def test_expired_only_with_reference_time(self, users, vendor):
        users.initialize(vendor, 100, 1000)

        assert users.status(100) == UserStatus.PENDING
        assert users.status(100, now=999) == UserStatus.PENDING
        assert users.status(100, now=1000) == UserStatus.EXPIRED

    def test_expired_user_can_still_be_confirmed(self, users, vendor):
        users.initialize(vendor, 100, 1000)

        users.confirm(vendor, 100)

        assert users.status(100, now=5000) == UserStatus.CONFIRMED


class TestAppendOrk:
    """Serviced-by list maintenance."""

    def test_append_grows_list(self, users, vendor):
        users.initialize(vendor, 100, 99999)

        users.append_ork(100, 100)
        users.append_ork(100, 100)

        assert users.get(100).orks == (100, 100)

    def test_append_to_unknown_user(self, users):
        with pytest.raises(NotFound):
            users.append_ork(100, 100)

    def test_history_tracks_lifecycle(self, users, vendor):
        users.initialize(vendor, 100, 500)
        users.initialize(vendor, 100, 600)
        users.confirm(vendor, 100)

        assert [r.timeout for r in users.history(100)] == [500, 600, 0]
