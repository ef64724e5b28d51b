"""Quotes, the daily "make it obvious" checklist and breathing sessions.

Checklist and breathing rows exist per (user, date) only so that "award once
per day" survives reloads and multiple devices. Closed checklist days are
scored lazily: whichever request first touches the checklist after midnight
settles every earlier unscored day.
"""
from __future__ import annotations

import logging
import random
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..models.daily_counters import BreathDaily, ChecklistDaily
from ..models.motivation_quote import MotivationQuote
from ..utils import local_today, parse_date, quote_to_dict, transaction_to_dict
from .errors import ValidationError
from .ledger_service import (
    BREATH_POINTS,
    BREATH_SESSIONS_FOR_AWARD,
    CHECKLIST_COMPLETE_POINTS,
    CHECKLIST_MISSED_POINTS,
    breath_key,
    checklist_key,
    ledger_session,
    lock_user,
    record_award,
)

CHECKLIST_ITEMS = [
    {"id": "env-water-visible", "title": "Water visible", "category": "Environment",
     "description": "Fill a water bottle and keep it in your line of sight."},
    {"id": "env-tidy-up", "title": "Tidy up", "category": "Environment",
     "description": "Clean a part of the house, even though you don't have to."},
    {"id": "nutrition-snack", "title": "Snack ready", "category": "Nutrition",
     "description": "Stage a quick snack for the next craving window."},
    {"id": "sleep-winddown", "title": "Wind-down anchor", "category": "Sleep",
     "description": "Set a bedtime reminder and prep your wind-down routine."},
    {"id": "social-checkin", "title": "Check-in", "category": "Social",
     "description": "Let a trusted person know you are doing well."},
    {"id": "play-music", "title": "Play music", "category": "Music",
     "description": "Play music to help you relax for 30 minutes."},
]

DAILY_QUOTE_COUNT = 6

DEFAULT_QUOTES = [
    {"text": "Discomfort is the price of admission to a meaningful life.", "author": "Susan David", "source": "Emotional Agility"},
    {"text": "We are what we repeatedly do. Excellence, then, is not an act but a habit.", "author": "Will Durant", "source": "The Story of Philosophy"},
    {"text": "You do not rise to the level of your goals. You fall to the level of your systems.", "author": "James Clear", "source": "Atomic Habits"},
    {"text": "Mood follows action.", "author": "Rich Roll", "source": "Podcast"},
    {"text": "The only way out is through.", "author": "Robert Frost"},
    {"text": "Tiny gains, remarkable results.", "author": "James Clear", "source": "Atomic Habits"},
    {"text": "Discipline equals freedom.", "author": "Jocko Willink"},
    {"text": "What you practice grows stronger.", "author": "Shauna Shapiro"},
    {"text": "Cravings are waves. Learn to surf them.", "author": "Adapted from Urge Surfing"},
    {"text": "Action is the antidote to anxiety.", "author": "Naval Ravikant"},
]

# Served when the quotes table is empty
FALLBACK_QUOTES = [
    {"text": "Discipline is choosing what you want most over what you want now.", "author": "Abraham Lincoln"},
    {"text": "It does not matter how slowly you go as long as you do not stop.", "author": "Confucius"},
    {"text": "Success is the sum of small efforts, repeated day in and day out.", "author": "Robert Collier"},
    {"text": "Motivation gets you going, but discipline keeps you growing.", "author": "John C. Maxwell"},
    {"text": "Suffer the pain of discipline or the pain of regret.", "author": "Jim Rohn"},
    {"text": "Fall in love with the process and the results will come.", "author": "Eric Thomas"},
    {"text": "Hard choices, easy life. Easy choices, hard life.", "author": "Jerzy Gregorek"},
    {"text": "First we form habits, then they form us.", "author": "John Dryden"},
    {"text": "The secret of your future is hidden in your daily routine.", "author": "Mike Murdock"},
    {"text": "Start where you are. Use what you have. Do what you can.", "author": "Arthur Ashe"},
]


def seed_default_quotes(session: Session) -> int:
    """Insert the default quotes when the table is empty. Returns rows added."""
    if session.query(MotivationQuote.id).first() is not None:
        return 0
    for quote in DEFAULT_QUOTES:
        session.add(MotivationQuote(text=quote["text"], author=quote.get("author"), source=quote.get("source")))
    session.flush()
    return len(DEFAULT_QUOTES)


def _quote_pool(session: Session) -> List[Dict[str, object]]:
    stored = session.query(MotivationQuote).order_by(MotivationQuote.id).all()
    if stored:
        return [quote_to_dict(q) for q in stored]
    return [quote_to_dict(q) for q in FALLBACK_QUOTES]


def daily_quotes(today: Optional[date] = None) -> List[Dict[str, object]]:
    """Six quotes, shifted by one every day of the year."""
    today = today or local_today()
    with ledger_session() as session:
        pool = _quote_pool(session)
    day_index = (today - date(today.year, 1, 1)).days
    start = day_index % len(pool)
    size = min(DAILY_QUOTE_COUNT, len(pool))
    return [pool[(start + offset) % len(pool)] for offset in range(size)]


def random_quote() -> Dict[str, object]:
    with ledger_session() as session:
        pool = _quote_pool(session)
    return random.choice(pool)


# --- Checklist ---

def _checklist_row(session: Session, user_id: int, day: date) -> ChecklistDaily:
    row = (
        session.query(ChecklistDaily)
        .filter(ChecklistDaily.user_id == user_id, ChecklistDaily.date == day)
        .first()
    )
    if row is None:
        row = ChecklistDaily(user_id=user_id, date=day, checked=[False] * len(CHECKLIST_ITEMS), scored='')
        session.add(row)
        session.flush()
    return row


def _is_complete(checked) -> bool:
    values = list(checked or [])
    return len(values) == len(CHECKLIST_ITEMS) and all(values)


def settle_checklist_days(session: Session, user_id: int, today: date) -> List[Dict[str, object]]:
    """Score every closed, unscored checklist day exactly once.

    Caller holds the user lock. Returns what was settled, oldest first.
    """
    open_rows = (
        session.query(ChecklistDaily)
        .filter(
            ChecklistDaily.user_id == user_id,
            ChecklistDaily.date < today,
            ChecklistDaily.scored == '',
        )
        .order_by(ChecklistDaily.date)
        .all()
    )
    settled = []
    for row in open_rows:
        if _is_complete(row.checked):
            points, status, note = CHECKLIST_COMPLETE_POINTS, 'complete', "Checklist complete"
        else:
            points, status, note = CHECKLIST_MISSED_POINTS, 'missed', "Checklist missed"
        tx = record_award(session, user_id, points, award_key=checklist_key(row.date), note=note, on_date=row.date)
        row.scored = status
        settled.append({"date": row.date.isoformat(), "scored": status, "points": tx.points if tx is not None else 0})
        logging.info("Settled checklist for user %s on %s as %s", user_id, row.date, status)
    session.flush()
    return settled


def _checklist_payload(row: ChecklistDaily, settled, awarded: bool = False) -> Dict[str, object]:
    return {
        "date": row.date.isoformat(),
        "items": CHECKLIST_ITEMS,
        "checked": list(row.checked or []),
        "scored": row.scored or '',
        "awarded": awarded,
        "settled": settled,
    }


def get_checklist(user_id: int, today: Optional[date] = None) -> Dict[str, object]:
    today = today or local_today()
    with ledger_session(commit_on_success=True) as session:
        lock_user(session, user_id)
        settled = settle_checklist_days(session, user_id, today)
        row = _checklist_row(session, user_id, today)
        return _checklist_payload(row, settled)


def update_checklist(user_id: int, checked, on_date=None, today: Optional[date] = None) -> Dict[str, object]:
    """Store today's ticks; +1 the first time every item is ticked."""
    today = today or local_today()
    target = parse_date(on_date) or today
    if target != today:
        raise ValidationError("Only today's checklist can be changed.")
    if not isinstance(checked, list) or len(checked) != len(CHECKLIST_ITEMS):
        raise ValidationError(f"checked must be a list of {len(CHECKLIST_ITEMS)} booleans")
    if not all(isinstance(value, bool) for value in checked):
        raise ValidationError("checked must only contain true/false values")

    with ledger_session(commit_on_success=True) as session:
        lock_user(session, user_id)
        settled = settle_checklist_days(session, user_id, today)
        row = _checklist_row(session, user_id, today)
        row.checked = list(checked)

        awarded = False
        if _is_complete(row.checked) and not row.scored:
            tx = record_award(
                session, user_id, CHECKLIST_COMPLETE_POINTS,
                award_key=checklist_key(today), note="Checklist complete", on_date=today,
            )
            row.scored = 'complete'
            awarded = tx is not None
        session.flush()
        return _checklist_payload(row, settled, awarded=awarded)


# --- Breathing ---

def get_breath_status(user_id: int, today: Optional[date] = None) -> Dict[str, object]:
    today = today or local_today()
    with ledger_session() as session:
        row = (
            session.query(BreathDaily)
            .filter(BreathDaily.user_id == user_id, BreathDaily.date == today)
            .first()
        )
        return {
            "date": today.isoformat(),
            "count": row.count if row else 0,
            "scored": bool(row.scored) if row else False,
            "sessionsForAward": BREATH_SESSIONS_FOR_AWARD,
        }


def record_breath_session(user_id: int, today: Optional[date] = None) -> Dict[str, object]:
    """Count one finished session; the third of the day pays +1."""
    today = today or local_today()
    with ledger_session(commit_on_success=True) as session:
        lock_user(session, user_id)
        row = (
            session.query(BreathDaily)
            .filter(BreathDaily.user_id == user_id, BreathDaily.date == today)
            .first()
        )
        if row is None:
            row = BreathDaily(user_id=user_id, date=today, count=0, scored=False)
            session.add(row)
        row.count = (row.count or 0) + 1

        awarded = False
        if row.count >= BREATH_SESSIONS_FOR_AWARD and not row.scored:
            tx = record_award(
                session, user_id, BREATH_POINTS,
                award_key=breath_key(today), note="Breathing complete", on_date=today,
            )
            row.scored = True
            awarded = tx is not None
        session.flush()
        return {
            "date": today.isoformat(),
            "count": row.count,
            "scored": bool(row.scored),
            "awarded": awarded,
        }
