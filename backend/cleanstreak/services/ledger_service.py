"""Points and money ledger.

Balances are never stored. Every read sums the user's rows, and every award
is a new row keyed by ``award_key`` so the same logical event can be replayed
without paying out twice.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date
from typing import Dict, Generator, List, Optional

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.db import SessionLocal
from ..models.money_event import MoneyEvent
from ..models.transaction import LedgerTransaction
from ..models.user import User
from ..utils import local_today, money_event_to_dict, transaction_to_dict
from .errors import ConflictError, NotFoundError, ServiceError, StorageFailure

CLEAN_DAY_POINTS = 10
USE_DAY_POINTS = -20
JOURNAL_POINTS = 1
CHECKLIST_COMPLETE_POINTS = 1
CHECKLIST_MISSED_POINTS = -5
BREATH_POINTS = 1
BREATH_SESSIONS_FOR_AWARD = 3


@contextmanager
def ledger_session(commit_on_success: bool = False) -> Generator[Session, None, None]:
    """Yield a session that is one all-or-nothing unit of work."""
    session = SessionLocal()
    try:
        yield session
        if commit_on_success:
            session.commit()
    except ServiceError:
        session.rollback()
        raise
    except IntegrityError as exc:
        session.rollback()
        logging.warning("Unique constraint hit, rolled back: %s", exc.orig)
        raise ConflictError("This action was already recorded.") from exc
    except SQLAlchemyError as exc:
        session.rollback()
        logging.error("Database error, rolled back: %s", exc)
        raise StorageFailure("The database rejected the operation; nothing was saved.") from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def lock_user(session: Session, user_id: int) -> User:
    """Load the user row with FOR UPDATE so per-user writes serialize."""
    user = session.query(User).filter(User.id == user_id).with_for_update().first()
    if not user:
        raise NotFoundError("User not found.")
    return user


def daily_log_key(day: date) -> str:
    return f"daily-log:{day.isoformat()}"


def journal_key(day: date) -> str:
    return f"journal:{day.isoformat()}"


def checklist_key(day: date) -> str:
    return f"checklist:{day.isoformat()}"


def breath_key(day: date) -> str:
    return f"breath:{day.isoformat()}"


def purchase_key(purchase_id: int) -> str:
    return f"purchase:{purchase_id}"


def daily_savings_cents(weekly_spend_cents: Optional[int]) -> int:
    """weekly/7 rounded half up, in whole cents."""
    weekly = max(0, weekly_spend_cents or 0)
    return (2 * weekly + 7) // 14


def find_award(session: Session, user_id: int, award_key: str) -> Optional[LedgerTransaction]:
    return (
        session.query(LedgerTransaction)
        .filter(LedgerTransaction.user_id == user_id, LedgerTransaction.award_key == award_key)
        .first()
    )


def record_award(
    session: Session,
    user_id: int,
    points: int,
    *,
    award_key: str,
    note: str,
    on_date: date,
    tx_type: Optional[str] = None,
    related_log_id: Optional[int] = None,
    related_prize_id: Optional[int] = None,
) -> Optional[LedgerTransaction]:
    """Append one ledger row unless ``award_key`` was already used.

    Returns the new row, or None when the award exists. Callers must hold the
    user lock; the unique index on (user_id, award_key) backs this up.
    """
    if find_award(session, user_id, award_key) is not None:
        logging.info("Award %s already recorded for user %s, skipping", award_key, user_id)
        return None
    entry = LedgerTransaction(
        user_id=user_id,
        points=points,
        type=tx_type or ('earn' if points >= 0 else 'deduct'),
        note=note,
        date=on_date,
        award_key=award_key,
        related_log_id=related_log_id,
        related_prize_id=related_prize_id,
    )
    session.add(entry)
    session.flush()
    logging.info("Ledger %+d for user %s (%s)", points, user_id, award_key)
    return entry


def record_money_event(
    session: Session,
    user_id: int,
    amount_cents: int,
    *,
    note: str,
    on_date: date,
    related_log_id: Optional[int] = None,
) -> MoneyEvent:
    event = MoneyEvent(
        user_id=user_id,
        amount_cents=amount_cents,
        type='saved' if amount_cents >= 0 else 'spent',
        note=note,
        date=on_date,
        related_log_id=related_log_id,
    )
    session.add(event)
    session.flush()
    return event


def current_balance(session: Session, user_id: int) -> int:
    total = (
        session.query(func.coalesce(func.sum(LedgerTransaction.points), 0))
        .filter(LedgerTransaction.user_id == user_id)
        .scalar()
    )
    return int(total or 0)


def _point_totals(session: Session, user_id: int) -> Dict[str, int]:
    earned, spent = (
        session.query(
            func.coalesce(func.sum(case((LedgerTransaction.points > 0, LedgerTransaction.points), else_=0)), 0),
            func.coalesce(func.sum(case((LedgerTransaction.points < 0, -LedgerTransaction.points), else_=0)), 0),
        )
        .filter(LedgerTransaction.user_id == user_id)
        .one()
    )
    return {"earned": int(earned or 0), "spent": int(spent or 0)}


def settled_balance(session: Session, user_id: int, today: date) -> int:
    """Balance once every closed checklist day has been scored.

    Every balance that is shown or spent goes through here. Caller holds the
    user lock.
    """
    from .motivation_service import settle_checklist_days  # deferred, motivation_service imports this module
    settle_checklist_days(session, user_id, today)
    return current_balance(session, user_id)


def get_bank_summary(user_id: int, today: Optional[date] = None) -> Dict[str, object]:
    today = today or local_today()
    with ledger_session(commit_on_success=True) as session:
        lock_user(session, user_id)
        balance = settled_balance(session, user_id, today)
        transactions = (
            session.query(LedgerTransaction)
            .filter(LedgerTransaction.user_id == user_id)
            .order_by(LedgerTransaction.date.desc(), LedgerTransaction.id.desc())
            .all()
        )
        return {
            "balance": balance,
            "totals": _point_totals(session, user_id),
            "transactions": [transaction_to_dict(tx) for tx in transactions],
        }


def get_savings(user_id: int) -> Dict[str, object]:
    with ledger_session() as session:
        events = (
            session.query(MoneyEvent)
            .filter(MoneyEvent.user_id == user_id)
            .order_by(MoneyEvent.date.desc(), MoneyEvent.id.desc())
            .all()
        )
        saved = sum(e.amount_cents for e in events if e.amount_cents > 0)
        spent = sum(-e.amount_cents for e in events if e.amount_cents < 0)
        return {
            "saved": saved,
            "spent": spent,
            "net": saved - spent,
            "events": [money_event_to_dict(e) for e in events],
        }


def reconcile_balances() -> List[Dict[str, object]]:
    """Compare the aggregate balance with a row-by-row sum for every user."""
    report = []
    with ledger_session() as session:
        for user in session.query(User).order_by(User.id).all():
            derived = current_balance(session, user.id)
            rows = session.query(LedgerTransaction.points).filter(LedgerTransaction.user_id == user.id).all()
            row_sum = sum(points for (points,) in rows)
            report.append({
                "userId": user.id,
                "username": user.username,
                "balance": derived,
                "rowSum": row_sum,
                "entries": len(rows),
                "consistent": derived == row_sum,
            })
    return report
