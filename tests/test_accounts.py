"""
Tests for accounts, PIN login and admin maintenance
"""

import threading

import pytest

from backend.cleanstreak.models.db import SessionLocal
from backend.cleanstreak.models.motivation_quote import MotivationQuote
from backend.cleanstreak.models.transaction import LedgerTransaction
from backend.cleanstreak.models.user import User
from backend.cleanstreak.services import account_service, daily_log_service, ledger_service, prize_service
from backend.cleanstreak.services.errors import (
    AuthenticationFailed,
    ConflictError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from backend.cleanstreak.services.motivation_service import seed_default_quotes


def _count(model):
    session = SessionLocal()
    try:
        return session.query(model).count()
    finally:
        session.close()


class TestSignupAndLogin:
    def test_first_user_becomes_admin(self):
        assert account_service.setup_status() == {"initialized": False, "hasPin": False}
        user = account_service.setup_first_user({"username": "Owner", "pin": "1234"})

        assert user["username"] == "owner"
        assert user["isAdmin"] is True
        assert account_service.setup_status() == {"initialized": True, "hasPin": True}
        with pytest.raises(ConflictError):
            account_service.setup_first_user({"username": "second"})

    def test_signup_then_login(self):
        created = account_service.signup({"username": "sam_01", "pin": "4321", "weeklySpendCents": 1400})
        assert created["isAdmin"] is False
        assert created["weeklySpendCents"] == 1400
        assert created["startDate"] is not None

        logged_in = account_service.login("SAM_01", "4321")
        assert logged_in["id"] == created["id"]

    def test_wrong_pin_is_rejected(self):
        account_service.signup({"username": "sam", "pin": "4321"})
        with pytest.raises(AuthenticationFailed):
            account_service.login("sam", "0000")
        with pytest.raises(AuthenticationFailed):
            account_service.login("nobody", "4321")

    def test_account_without_pin_cannot_log_in(self):
        account_service.signup({"username": "nopin"})
        with pytest.raises(ValidationError, match="No PIN set"):
            account_service.login("nopin", "1234")

    def test_duplicate_username_is_a_conflict(self):
        account_service.signup({"username": "sam"})
        with pytest.raises(ConflictError, match="Username already taken"):
            account_service.signup({"username": "SAM"})
        assert _count(User) == 1

    def test_concurrent_signups_for_one_name(self, file_db):
        barrier = threading.Barrier(2)
        outcomes = []

        def sign_up(pin):
            barrier.wait()
            try:
                outcomes.append(account_service.signup({"username": "racer", "pin": pin}))
            except ConflictError as exc:
                outcomes.append(exc)

        threads = [threading.Thread(target=sign_up, args=(pin,)) for pin in ("1111", "2222")]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        conflicts = [o for o in outcomes if isinstance(o, ConflictError)]
        assert len(outcomes) == 2
        assert len(conflicts) == 1
        assert str(conflicts[0]) == "Username already taken"
        assert _count(User) == 1

    @pytest.mark.parametrize("payload", [
        {"username": "ab"},
        {"username": "has space"},
        {"username": "okname", "pin": "12"},
        {"username": "okname", "pin": "abcd"},
        {"username": "okname", "weeklySpendCents": -100},
    ])
    def test_signup_validation(self, payload):
        with pytest.raises(ValidationError):
            account_service.signup(payload)
        assert _count(User) == 0


class TestProfile:
    def test_update_profile_fields(self, make_user):
        user_id = make_user()
        updated = account_service.update_profile(user_id, {
            "firstName": " Alex ",
            "lastName": "",
            "weeklySpendCents": 2100,
            "startDate": "2026-02-01T00:00:00Z",
            "newPin": "98765",
        })

        assert updated["firstName"] == "Alex"
        assert updated["lastName"] is None
        assert updated["weeklySpendCents"] == 2100
        assert updated["startDate"].startswith("2026-02-01")
        assert updated["hasPin"] is True
        assert account_service.login("tester", "98765")["id"] == user_id

    def test_unknown_user_profile(self):
        with pytest.raises(NotFoundError):
            account_service.get_profile(999)


class TestAdmin:
    def test_set_points_writes_single_adjustment(self, make_user, grant, today, ledger_rows):
        admin = make_user("admin", is_admin=True)
        target = make_user("target")
        grant(target, 35)

        first = account_service.set_user_points(admin, target, 50, today=today)
        same = account_service.set_user_points(admin, target, "50", today=today)
        lower = account_service.set_user_points(admin, target, 20, today=today)

        assert (first["previous"], first["delta"], first["balance"]) == (35, 15, 50)
        assert same["delta"] == 0
        assert same["transaction"] is None
        assert (lower["delta"], lower["balance"]) == (-30, 20)
        adjustments = ledger_rows(target, "admin:")
        assert [p for p, _, _ in adjustments] == [15, -30]
        assert ledger_service.get_bank_summary(target, today=today)["balance"] == 20

    def test_set_points_rejects_non_numeric(self, make_user, today, ledger_rows):
        admin = make_user("admin", is_admin=True)
        target = make_user("target")
        with pytest.raises(ValidationError):
            account_service.set_user_points(admin, target, "lots", today=today)
        with pytest.raises(ValidationError, match="out of range"):
            account_service.set_user_points(admin, target, "1e30", today=today)
        assert ledger_rows(target) == []

    def test_non_admin_is_denied(self, make_user, today):
        user_id = make_user("plain")
        other = make_user("other")
        with pytest.raises(PermissionDenied):
            account_service.set_user_points(user_id, other, 10, today=today)
        with pytest.raises(PermissionDenied):
            account_service.list_users_with_balances(user_id)
        with pytest.raises(PermissionDenied):
            account_service.reset_all_data(user_id)

    def test_list_users_with_balances(self, make_user, grant):
        admin = make_user("admin", is_admin=True)
        target = make_user("target")
        grant(target, 12)

        users = {u["username"]: u["balance"] for u in account_service.list_users_with_balances(admin)}
        assert users == {"admin": 0, "target": 12}

    def test_reset_pin(self, make_user):
        admin = make_user("admin", is_admin=True)
        target = make_user("target")
        assert account_service.reset_user_pin(admin, target, "2468")["hasPin"] is True
        assert account_service.login("target", "2468")["id"] == target
        with pytest.raises(NotFoundError):
            account_service.reset_user_pin(admin, 999, "2468")

    def test_delete_user_removes_owned_rows(self, make_user, grant, today):
        admin = make_user("admin", is_admin=True)
        target = make_user("target", weekly_spend_cents=700)
        grant(target, 100)
        daily_log_service.submit_daily_log(target, False, today=today)
        prize = prize_service.create_prize(target, {"name": "Book", "costPoints": 10})
        prize_service.purchase_prize(target, prize["id"], today=today)

        account_service.delete_user(admin, target)

        assert [u["username"] for u in account_service.list_users_with_balances(admin)] == ["admin"]
        assert _count(LedgerTransaction) == 0
        with pytest.raises(NotFoundError):
            account_service.get_profile(target)

    def test_reset_all_data_keeps_quotes(self, make_user, grant, today):
        admin = make_user("admin", is_admin=True)
        grant(admin, 5)
        daily_log_service.submit_daily_log(admin, False, today=today)
        session = SessionLocal()
        try:
            seed_default_quotes(session)
            session.commit()
        finally:
            session.close()

        account_service.reset_all_data(admin)

        assert _count(User) == 0
        assert _count(LedgerTransaction) == 0
        assert _count(MotivationQuote) > 0
        assert account_service.setup_status()["initialized"] is False
