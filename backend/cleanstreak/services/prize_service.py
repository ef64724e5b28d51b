"""Self-defined prizes bought with ledger points."""
from __future__ import annotations

import logging
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy.orm import Session, selectinload

from ..models.prize import Prize, Purchase
from ..utils import local_today, parse_int, prize_to_dict, purchase_to_dict, transaction_to_dict
from .errors import AlreadyPurchased, InsufficientPoints, NotFoundError, ValidationError
from .ledger_service import ledger_session, lock_user, purchase_key, record_award, settled_balance

NAME_MAX_LENGTH = 120


def _normalize_name(value, fallback: Optional[str] = None) -> str:
    source = value if value is not None else fallback
    name = (source or "").strip()
    if not name:
        raise ValidationError("Name is required")
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(f"Name must be at most {NAME_MAX_LENGTH} characters")
    return name


def _owned_prize(session: Session, user_id: int, prize_id: int, for_update: bool = False) -> Prize:
    query = session.query(Prize).filter(Prize.id == prize_id, Prize.user_id == user_id)
    if for_update:
        query = query.with_for_update()
    prize = query.first()
    if not prize:
        raise NotFoundError("Prize not found.")
    return prize


def list_prizes(user_id: int) -> List[Dict[str, object]]:
    with ledger_session() as session:
        prizes = (
            session.query(Prize)
            .options(selectinload(Prize.purchases))
            .filter(Prize.user_id == user_id)
            .order_by(Prize.created_at.desc(), Prize.id.desc())
            .all()
        )
        return [prize_to_dict(p, include_purchases=True) for p in prizes]


def create_prize(user_id: int, payload: Dict[str, object]) -> Dict[str, object]:
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be an object")
    name = _normalize_name(payload.get("name"))
    cost = parse_int(payload.get("costPoints"), "costPoints", minimum=0, default=0)
    description = (payload.get("description") or "").strip() or None

    with ledger_session(commit_on_success=True) as session:
        lock_user(session, user_id)
        prize = Prize(user_id=user_id, name=name, description=description, cost_points=cost, active=True)
        session.add(prize)
        session.flush()
        return prize_to_dict(prize)


def update_prize(user_id: int, prize_id: int, payload: Dict[str, object]) -> Dict[str, object]:
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be an object")
    with ledger_session(commit_on_success=True) as session:
        prize = _owned_prize(session, user_id, prize_id, for_update=True)
        if "name" in payload:
            prize.name = _normalize_name(payload.get("name"), fallback=prize.name)
        if "description" in payload:
            prize.description = (payload.get("description") or "").strip() or None
        if "costPoints" in payload:
            prize.cost_points = parse_int(payload.get("costPoints"), "costPoints", minimum=0)
        session.flush()
        return prize_to_dict(prize)


def delete_prize(user_id: int, prize_id: int) -> Dict[str, object]:
    """Remove a prize and its purchases. Ledger debits stay."""
    with ledger_session(commit_on_success=True) as session:
        prize = _owned_prize(session, user_id, prize_id, for_update=True)
        session.delete(prize)
        session.flush()
        return {"ok": True}


def purchase_prize(user_id: int, prize_id: int, today: Optional[date] = None) -> Dict[str, object]:
    """Buy a prize: purchase row, debit and deactivation commit together."""
    today = today or local_today()
    with ledger_session(commit_on_success=True) as session:
        # Lock order user -> prize; two purchases for one user run one after the other
        lock_user(session, user_id)
        prize = _owned_prize(session, user_id, prize_id, for_update=True)
        if not prize.active:
            raise AlreadyPurchased("Already purchased; restock to buy again.")

        balance = settled_balance(session, user_id, today)
        if balance < prize.cost_points:
            logging.warning(
                "User %s cannot afford prize %s (balance %s, cost %s)",
                user_id, prize.id, balance, prize.cost_points,
            )
            raise InsufficientPoints(balance, prize.cost_points)

        purchase = Purchase(user_id=user_id, prize_id=prize.id)
        session.add(purchase)
        session.flush()
        tx = record_award(
            session, user_id, -abs(prize.cost_points),
            award_key=purchase_key(purchase.id),
            note=f"Purchased {prize.name}",
            on_date=today,
            tx_type='spend',
            related_prize_id=prize.id,
        )
        prize.active = False
        session.flush()
        logging.info("User %s purchased prize %s for %s points", user_id, prize.id, prize.cost_points)
        return {
            "purchase": purchase_to_dict(purchase),
            "prize": prize_to_dict(prize),
            "transaction": transaction_to_dict(tx),
            "balance": balance - prize.cost_points,
        }


def restock_prize(user_id: int, prize_id: int) -> Dict[str, object]:
    """Make a prize purchasable again. Not a refund: no ledger rows."""
    with ledger_session(commit_on_success=True) as session:
        prize = _owned_prize(session, user_id, prize_id, for_update=True)
        prize.active = True
        session.flush()
        return prize_to_dict(prize)
