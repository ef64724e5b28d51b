"""Daily clean/use logs, streaks and the journal.

A (user, date) pair owns one ``daily_logs`` row. The status half of the row
(used/context/paid/amount) pays out exactly once; the journal half is editable
for the current day only and pays +1 on its first empty to non-empty change.
"""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..models.daily_log import DailyLog
from ..models.user import User
from ..utils import (
    daily_log_to_dict,
    local_today,
    money_event_to_dict,
    parse_bool,
    parse_date,
    parse_int,
    transaction_to_dict,
)
from .errors import ValidationError
from .ledger_service import (
    CLEAN_DAY_POINTS,
    JOURNAL_POINTS,
    USE_DAY_POINTS,
    daily_log_key,
    daily_savings_cents,
    find_award,
    journal_key,
    ledger_session,
    lock_user,
    record_award,
    record_money_event,
)

CONTEXT_MAX_LENGTH = 255


def _normalize_context(value) -> Optional[str]:
    text = (str(value) if value is not None else "").strip()
    if len(text) > CONTEXT_MAX_LENGTH:
        raise ValidationError(f"context must be at most {CONTEXT_MAX_LENGTH} characters")
    return text or None


def _parse_mood(value) -> Optional[int]:
    if value is None or value == "":
        return None
    mood = parse_int(value, "mood")
    if mood < 1 or mood > 5:
        raise ValidationError("mood must be between 1 and 5")
    return mood


def _get_log(session: Session, user_id: int, day: date) -> Optional[DailyLog]:
    return (
        session.query(DailyLog)
        .filter(DailyLog.user_id == user_id, DailyLog.date == day)
        .first()
    )


def _apply_status(log: DailyLog, used: bool, context: Optional[str], paid: Optional[bool], amount: Optional[int]) -> None:
    log.used = used
    log.context = context
    log.paid = paid
    log.amount_cents = amount


def _award_status(session: Session, user: User, log: DailyLog) -> Dict[str, object]:
    key = daily_log_key(log.date)
    money_event = None
    if not log.used:
        tx = record_award(
            session, user.id, CLEAN_DAY_POINTS,
            award_key=key, note="Clean day", on_date=log.date, related_log_id=log.id,
        )
        per_day = daily_savings_cents(user.weekly_spend_cents)
        if tx is not None and per_day > 0:
            money_event = record_money_event(
                session, user.id, per_day,
                note="Clean day savings", on_date=log.date, related_log_id=log.id,
            )
    else:
        tx = record_award(
            session, user.id, USE_DAY_POINTS,
            award_key=key, note="Use day", on_date=log.date, related_log_id=log.id,
        )
        if tx is not None and log.paid and log.amount_cents and log.amount_cents > 0:
            money_event = record_money_event(
                session, user.id, -abs(log.amount_cents),
                note="Use day purchase", on_date=log.date, related_log_id=log.id,
            )
    return {
        "transaction": transaction_to_dict(tx) if tx is not None else None,
        "moneyEvent": money_event_to_dict(money_event) if money_event is not None else None,
    }


def compute_current_streak(session: Session, user_id: int, as_of: Optional[date] = None) -> int:
    """Consecutive clean days ending at the most recent logged day.

    Stops at a used day or a missing day. With ``as_of`` the run must reach
    that day or the day before, otherwise the streak is already broken.
    """
    rows = (
        session.query(DailyLog.date, DailyLog.used)
        .filter(DailyLog.user_id == user_id, DailyLog.used.isnot(None))
        .order_by(DailyLog.date.desc())
        .all()
    )
    if not rows:
        return 0
    if as_of is not None and rows[0][0] < as_of - timedelta(days=1):
        return 0
    streak = 0
    expected = rows[0][0]
    for log_date, used in rows:
        if used or log_date != expected:
            break
        streak += 1
        expected = log_date - timedelta(days=1)
    return streak


def compute_longest_streak(session: Session, user_id: int) -> int:
    """Longest run of consecutive clean days anywhere in the log history."""
    rows = (
        session.query(DailyLog.date, DailyLog.used)
        .filter(DailyLog.user_id == user_id, DailyLog.used.isnot(None))
        .order_by(DailyLog.date)
        .all()
    )
    longest = run = 0
    previous = None
    for log_date, used in rows:
        if used:
            run = 0
        elif previous is not None and run and log_date == previous + timedelta(days=1):
            run += 1
        else:
            run = 1
        previous = log_date
        longest = max(longest, run)
    return longest


def _refresh_longest_streak(session: Session, user: User) -> int:
    current = compute_current_streak(session, user.id)
    if current > (user.longest_streak_days or 0):
        user.longest_streak_days = current
        logging.info("User %s longest streak is now %s days", user.id, current)
    return current


def submit_daily_log(
    user_id: int,
    used,
    context=None,
    paid=None,
    amount_cents=None,
    on_date=None,
    allow_correction: bool = False,
    today: Optional[date] = None,
) -> Dict[str, object]:
    """Set the clean/use status for a day and pay the day's award once.

    Re-submitting a day that already paid out returns ``alreadyLogged`` and
    writes no ledger rows. The status fields are only overwritten when
    ``allow_correction`` is set.
    """
    today = today or local_today()
    log_date = parse_date(on_date) or today
    if log_date > today:
        raise ValidationError("Cannot log a day in the future.")

    used_flag = parse_bool(used, "used")
    paid_flag = parse_bool(paid, "paid", default=False) if used_flag else None
    amount = parse_int(amount_cents, "amountCents", minimum=0, default=0) if paid_flag else None
    context_text = _normalize_context(context)

    with ledger_session(commit_on_success=True) as session:
        user = lock_user(session, user_id)
        log = _get_log(session, user_id, log_date)
        if log is None:
            log = DailyLog(user_id=user_id, date=log_date)
            session.add(log)

        if find_award(session, user_id, daily_log_key(log_date)) is not None:
            if allow_correction:
                _apply_status(log, used_flag, context_text, paid_flag, amount)
                session.flush()
                # The ledger keeps the original award; only the streak follows the correction
                user.longest_streak_days = compute_longest_streak(session, user_id)
            session.flush()
            logging.info("User %s re-submitted %s, already logged", user_id, log_date)
            return {"log": daily_log_to_dict(log), "alreadyLogged": True, "transaction": None, "moneyEvent": None}

        _apply_status(log, used_flag, context_text, paid_flag, amount)
        session.flush()
        payload = _award_status(session, user, log)
        if not log.used:
            _refresh_longest_streak(session, user)
        return {"log": daily_log_to_dict(log), "alreadyLogged": False, **payload}


def list_daily_logs(user_id: int) -> List[Dict[str, object]]:
    with ledger_session() as session:
        logs = (
            session.query(DailyLog)
            .filter(DailyLog.user_id == user_id)
            .order_by(DailyLog.date.desc())
            .all()
        )
        return [daily_log_to_dict(log) for log in logs]


def get_streak(user_id: int, today: Optional[date] = None) -> Dict[str, int]:
    today = today or local_today()
    with ledger_session() as session:
        user = session.get(User, user_id)
        if user is None:
            return {"current": 0, "longest": 0, "daysSinceStart": 0}
        current = compute_current_streak(session, user_id, as_of=today)
        days_since_start = 0
        if user.start_date:
            days_since_start = max(0, (today - user.start_date.date()).days)
        return {
            "current": current,
            "longest": max(current, user.longest_streak_days or 0),
            "daysSinceStart": days_since_start,
        }


def save_journal(user_id: int, journal, mood=None, on_date=None, today: Optional[date] = None) -> Dict[str, object]:
    """Upsert today's journal text and mood; +1 once per day for writing."""
    today = today or local_today()
    entry_date = parse_date(on_date) or today
    if entry_date != today:
        raise ValidationError("Journal entries can only be edited on the same day.")
    text = None if journal is None else str(journal)
    if text is not None and not text.strip():
        text = None
    mood_value = _parse_mood(mood)

    with ledger_session(commit_on_success=True) as session:
        lock_user(session, user_id)
        log = _get_log(session, user_id, entry_date)
        was_empty = log is None or not (log.journal or "").strip()
        if log is None:
            log = DailyLog(user_id=user_id, date=entry_date)
            session.add(log)
        log.journal = text
        log.mood = mood_value
        session.flush()

        tx = None
        if was_empty and text is not None:
            tx = record_award(
                session, user_id, JOURNAL_POINTS,
                award_key=journal_key(entry_date), note="Journal entry", on_date=entry_date,
            )
        return {
            "log": daily_log_to_dict(log),
            "awarded": tx is not None,
            "transaction": transaction_to_dict(tx) if tx is not None else None,
        }


def get_journal(user_id: int, on_date=None, today: Optional[date] = None) -> Dict[str, object]:
    day = parse_date(on_date) or today or local_today()
    with ledger_session() as session:
        log = _get_log(session, user_id, day)
        return {"date": day.isoformat(), "log": daily_log_to_dict(log) if log else None}


def list_journal(user_id: int) -> List[Dict[str, object]]:
    with ledger_session() as session:
        logs = (
            session.query(DailyLog)
            .filter(DailyLog.user_id == user_id, DailyLog.journal.isnot(None), DailyLog.journal != "")
            .order_by(DailyLog.date.desc())
            .all()
        )
        return [daily_log_to_dict(log) for log in logs]
