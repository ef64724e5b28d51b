"""
Tests for the checklist rollover, breathing sessions and quotes
"""

from datetime import date, timedelta

import pytest

from backend.cleanstreak.models.daily_counters import ChecklistDaily
from backend.cleanstreak.models.db import SessionLocal
from backend.cleanstreak.services import account_service, ledger_service, motivation_service, prize_service
from backend.cleanstreak.services.errors import InsufficientPoints, ValidationError
from backend.cleanstreak.services.motivation_service import CHECKLIST_ITEMS, FALLBACK_QUOTES, seed_default_quotes

ALL_CHECKED = [True] * len(CHECKLIST_ITEMS)
PARTIAL = [True] * (len(CHECKLIST_ITEMS) - 1) + [False]


def _insert_checklist_row(user_id, day, checked):
    session = SessionLocal()
    try:
        session.add(ChecklistDaily(user_id=user_id, date=day, checked=list(checked), scored=""))
        session.commit()
    finally:
        session.close()


class TestChecklistRollover:
    """A closed day is scored exactly once, by whichever request comes first."""

    def test_incomplete_day_settles_one_penalty(self, make_user, today, ledger_rows):
        user_id = make_user()
        motivation_service.update_checklist(user_id, PARTIAL, today=today)

        tomorrow = today + timedelta(days=1)
        status = motivation_service.get_checklist(user_id, today=tomorrow)

        assert status["settled"] == [{"date": "2026-03-10", "scored": "missed", "points": -5}]
        assert status["date"] == "2026-03-11"
        assert status["checked"] == [False] * len(CHECKLIST_ITEMS)
        assert status["scored"] == ""
        assert ledger_rows(user_id) == [(-5, "checklist:2026-03-10", today)]

    def test_settlement_runs_once(self, make_user, today, ledger_rows):
        user_id = make_user()
        motivation_service.get_checklist(user_id, today=today)
        tomorrow = today + timedelta(days=1)

        motivation_service.get_checklist(user_id, today=tomorrow)
        again = motivation_service.get_checklist(user_id, today=tomorrow)
        update = motivation_service.update_checklist(user_id, PARTIAL, today=tomorrow)

        assert again["settled"] == []
        assert update["settled"] == []
        assert len(ledger_rows(user_id, "checklist:")) == 1

    def test_several_closed_days_settle_oldest_first(self, make_user, today):
        user_id = make_user()
        for offset in (2, 3):
            _insert_checklist_row(user_id, today - timedelta(days=offset), PARTIAL)

        status = motivation_service.get_checklist(user_id, today=today)

        assert [s["date"] for s in status["settled"]] == ["2026-03-07", "2026-03-08"]
        assert ledger_service.get_bank_summary(user_id, today=today)["balance"] == -10

    def test_days_without_a_row_are_not_penalized(self, make_user, today, ledger_rows):
        user_id = make_user()
        motivation_service.get_checklist(user_id, today=today - timedelta(days=5))
        motivation_service.get_checklist(user_id, today=today)
        assert len(ledger_rows(user_id, "checklist:")) == 1

    def test_completed_day_is_not_penalized_later(self, make_user, today, ledger_rows):
        user_id = make_user()
        motivation_service.update_checklist(user_id, ALL_CHECKED, today=today)
        status = motivation_service.get_checklist(user_id, today=today + timedelta(days=1))

        assert status["settled"] == []
        assert ledger_rows(user_id) == [(1, "checklist:2026-03-10", today)]

    def test_unscored_complete_day_settles_as_complete(self, make_user, today, ledger_rows):
        user_id = make_user()
        _insert_checklist_row(user_id, today, ALL_CHECKED)

        status = motivation_service.get_checklist(user_id, today=today + timedelta(days=1))
        assert status["settled"][0]["scored"] == "complete"
        assert ledger_rows(user_id) == [(1, "checklist:2026-03-10", today)]


class TestChecklistUpdate:
    def test_completion_awards_once(self, make_user, today, ledger_rows):
        user_id = make_user()
        first = motivation_service.update_checklist(user_id, ALL_CHECKED, today=today)
        motivation_service.update_checklist(user_id, PARTIAL, today=today)
        second = motivation_service.update_checklist(user_id, ALL_CHECKED, today=today)

        assert first["awarded"] is True
        assert first["scored"] == "complete"
        assert second["awarded"] is False
        assert ledger_rows(user_id) == [(1, "checklist:2026-03-10", today)]

    def test_partial_ticks_persist_across_reads(self, make_user, today):
        user_id = make_user()
        motivation_service.update_checklist(user_id, PARTIAL, today=today)
        assert motivation_service.get_checklist(user_id, today=today)["checked"] == PARTIAL

    @pytest.mark.parametrize("checked", [
        None,
        [True, False],
        ["yes"] * len(CHECKLIST_ITEMS),
        [1] * len(CHECKLIST_ITEMS),
    ])
    def test_rejects_malformed_ticks(self, make_user, today, checked):
        user_id = make_user()
        with pytest.raises(ValidationError):
            motivation_service.update_checklist(user_id, checked, today=today)

    def test_only_today_is_editable(self, make_user, today):
        user_id = make_user()
        with pytest.raises(ValidationError):
            motivation_service.update_checklist(user_id, ALL_CHECKED, on_date="2026-03-09", today=today)


class TestBreathing:
    def test_third_session_awards_once(self, make_user, today, ledger_rows):
        user_id = make_user()
        results = [motivation_service.record_breath_session(user_id, today=today) for _ in range(5)]

        assert [r["count"] for r in results] == [1, 2, 3, 4, 5]
        assert [r["awarded"] for r in results] == [False, False, True, False, False]
        assert ledger_rows(user_id) == [(1, "breath:2026-03-10", today)]

        status = motivation_service.get_breath_status(user_id, today=today)
        assert status["count"] == 5
        assert status["scored"] is True

    def test_count_resets_each_day(self, make_user, today):
        user_id = make_user()
        for _ in range(3):
            motivation_service.record_breath_session(user_id, today=today)
        tomorrow = motivation_service.record_breath_session(user_id, today=today + timedelta(days=1))
        assert tomorrow["count"] == 1
        assert tomorrow["scored"] is False


class TestQuotes:
    def test_fallback_pool_rotates_by_day_of_year(self):
        first = motivation_service.daily_quotes(today=date(2026, 1, 1))
        second = motivation_service.daily_quotes(today=date(2026, 1, 2))

        assert len(first) == 6
        assert first[0]["text"] == FALLBACK_QUOTES[0]["text"]
        assert second[0]["text"] == FALLBACK_QUOTES[1]["text"]
        assert second[:5] == first[1:]

    def test_rotation_wraps_around_the_pool(self):
        quotes = motivation_service.daily_quotes(today=date(2026, 1, 10))
        assert quotes[0]["text"] == FALLBACK_QUOTES[9]["text"]
        assert quotes[1]["text"] == FALLBACK_QUOTES[0]["text"]

    def test_stored_quotes_replace_fallback(self):
        session = SessionLocal()
        try:
            assert seed_default_quotes(session) == len(motivation_service.DEFAULT_QUOTES)
            assert seed_default_quotes(session) == 0
            session.commit()
        finally:
            session.close()

        quotes = motivation_service.daily_quotes(today=date(2026, 1, 1))
        assert quotes[0]["text"] == motivation_service.DEFAULT_QUOTES[0]["text"]
        assert motivation_service.random_quote() in [
            {"text": q["text"], "author": q.get("author"), "source": q.get("source")}
            for q in motivation_service.DEFAULT_QUOTES
        ]


class TestSettlementBeforeBalanceUse:
    """A closed, incomplete day costs its -5 before the balance is shown or spent."""

    def _close_day_incomplete(self, make_user, grant, today, points=200):
        user_id = make_user()
        grant(user_id, points)
        motivation_service.update_checklist(user_id, PARTIAL, today=today)
        return user_id

    def test_bank_summary_settles_closed_day(self, make_user, grant, today, ledger_rows):
        user_id = self._close_day_incomplete(make_user, grant, today)
        tomorrow = today + timedelta(days=1)

        summary = ledger_service.get_bank_summary(user_id, today=tomorrow)

        assert summary["balance"] == 195
        assert ledger_rows(user_id, "checklist:") == [(-5, "checklist:2026-03-10", today)]
        assert motivation_service.get_checklist(user_id, today=tomorrow)["settled"] == []

    def test_same_day_read_does_not_settle(self, make_user, grant, today, ledger_rows):
        user_id = self._close_day_incomplete(make_user, grant, today)
        assert ledger_service.get_bank_summary(user_id, today=today)["balance"] == 200
        assert ledger_rows(user_id, "checklist:") == []

    def test_purchase_cannot_spend_owed_points(self, make_user, grant, today):
        user_id = self._close_day_incomplete(make_user, grant, today)
        prize = prize_service.create_prize(user_id, {"name": "Concert", "costPoints": 200})
        tomorrow = today + timedelta(days=1)

        with pytest.raises(InsufficientPoints) as excinfo:
            prize_service.purchase_prize(user_id, prize["id"], today=tomorrow)

        assert excinfo.value.balance == 195
        assert ledger_service.get_bank_summary(user_id, today=tomorrow)["balance"] == 195

    def test_purchase_after_settlement_never_overdraws(self, make_user, grant, today):
        user_id = self._close_day_incomplete(make_user, grant, today, points=205)
        prize = prize_service.create_prize(user_id, {"name": "Concert", "costPoints": 200})
        tomorrow = today + timedelta(days=1)

        result = prize_service.purchase_prize(user_id, prize["id"], today=tomorrow)

        assert result["balance"] == 0
        assert motivation_service.get_checklist(user_id, today=tomorrow)["settled"] == []
        assert ledger_service.get_bank_summary(user_id, today=tomorrow)["balance"] == 0

    def test_admin_adjustment_counts_owed_penalty(self, make_user, grant, today, ledger_rows):
        admin = make_user("admin", is_admin=True)
        user_id = self._close_day_incomplete(make_user, grant, today)
        tomorrow = today + timedelta(days=1)

        listed = {u["id"]: u["balance"] for u in account_service.list_users_with_balances(admin, today=tomorrow)}
        result = account_service.set_user_points(admin, user_id, 100, today=tomorrow)

        assert listed[user_id] == 195
        assert (result["previous"], result["delta"], result["balance"]) == (195, -95, 100)
        assert len(ledger_rows(user_id, "checklist:")) == 1
        assert ledger_service.get_bank_summary(user_id, today=tomorrow)["balance"] == 100
