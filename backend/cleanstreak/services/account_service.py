"""Accounts, PIN login and admin maintenance."""
from __future__ import annotations

import logging
import re
from datetime import date, datetime, timezone
from typing import Dict, List, Optional
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from ..models.daily_counters import BreathDaily, ChecklistDaily
from ..models.daily_log import DailyLog
from ..models.money_event import MoneyEvent
from ..models.prize import Prize, Purchase
from ..models.transaction import LedgerTransaction
from ..models.user import User
from ..utils import local_today, parse_int, transaction_to_dict
from .errors import AuthenticationFailed, ConflictError, NotFoundError, PermissionDenied, ValidationError
from .ledger_service import ledger_session, lock_user, record_award, settled_balance

USERNAME_PATTERN = re.compile(r"^[a-z0-9_]{3,30}$")
PIN_PATTERN = re.compile(r"^\d{4,8}$")


def _normalize_username(value) -> str:
    username = (str(value) if value is not None else "").strip().lower()
    if not username:
        raise ValidationError("Username is required")
    if not USERNAME_PATTERN.match(username):
        raise ValidationError("Invalid username: use 3-30 letters, digits or underscores")
    return username


def _hash_pin(value) -> Optional[str]:
    if value is None or value == "":
        return None
    pin = str(value)
    if not PIN_PATTERN.match(pin):
        raise ValidationError("PIN must be 4 to 8 digits")
    return generate_password_hash(pin)


def _parse_start(value) -> Optional[datetime]:
    if value in (None, ""):
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValidationError("startDate must be an ISO timestamp") from exc
    return parsed.replace(tzinfo=None)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _new_user(payload: Dict[str, object], *, is_admin: bool) -> User:
    return User(
        username=_normalize_username(payload.get("username")),
        first_name=(payload.get("firstName") or "").strip() or None,
        last_name=(payload.get("lastName") or "").strip() or None,
        weekly_spend_cents=parse_int(payload.get("weeklySpendCents"), "weeklySpendCents", minimum=0, default=0),
        # The quit clock starts at account creation
        start_date=_utcnow(),
        pin_hash=_hash_pin(payload.get("pin")),
        is_admin=is_admin,
    )


def setup_status() -> Dict[str, bool]:
    with ledger_session() as session:
        first = session.query(User).order_by(User.id).first()
        return {"initialized": first is not None, "hasPin": bool(first and first.pin_hash)}


def setup_first_user(payload: Dict[str, object]) -> Dict[str, object]:
    """Create the first account, which administers the install."""
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be an object")
    with ledger_session(commit_on_success=True) as session:
        if session.query(User.id).first() is not None:
            raise ConflictError("Already set up")
        user = _new_user(payload, is_admin=True)
        session.add(user)
        session.flush()
        logging.info("Created first (admin) user %s", user.username)
        return user.to_dict()


def signup(payload: Dict[str, object]) -> Dict[str, object]:
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be an object")
    user = _new_user(payload, is_admin=False)
    with ledger_session(commit_on_success=True) as session:
        if session.query(User.id).filter(User.username == user.username).first() is not None:
            raise ConflictError("Username already taken")
        session.add(user)
        try:
            session.flush()
        except IntegrityError as exc:
            # Lost a race with a concurrent signup for the same name
            raise ConflictError("Username already taken") from exc
        logging.info("Signed up user %s", user.username)
        return user.to_dict()


def login(username, pin) -> Dict[str, object]:
    if not username or not pin:
        raise ValidationError("Username and PIN are required")
    with ledger_session() as session:
        user = session.query(User).filter(User.username == str(username).strip().lower()).first()
        if not user:
            raise AuthenticationFailed("Invalid credentials")
        if not user.pin_hash:
            raise ValidationError("No PIN set")
        if not check_password_hash(user.pin_hash, str(pin)):
            raise AuthenticationFailed("Invalid credentials")
        return user.to_dict()


def get_profile(user_id: int) -> Dict[str, object]:
    with ledger_session() as session:
        user = session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found.")
        return user.to_dict()


def update_profile(user_id: int, payload: Dict[str, object]) -> Dict[str, object]:
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be an object")
    with ledger_session(commit_on_success=True) as session:
        user = lock_user(session, user_id)
        if "firstName" in payload:
            user.first_name = (payload.get("firstName") or "").strip() or None
        if "lastName" in payload:
            user.last_name = (payload.get("lastName") or "").strip() or None
        if "weeklySpendCents" in payload:
            user.weekly_spend_cents = parse_int(
                payload.get("weeklySpendCents"), "weeklySpendCents", minimum=0, default=0
            )
        if "startDate" in payload:
            user.start_date = _parse_start(payload.get("startDate"))
        if "newPin" in payload:
            user.pin_hash = _hash_pin(payload.get("newPin"))
        session.flush()
        return user.to_dict()


# --- Admin ---

def _require_admin(session: Session, actor_id: int) -> User:
    actor = session.get(User, actor_id)
    if not actor or not actor.is_admin:
        raise PermissionDenied("Admin only")
    return actor


def list_users_with_balances(actor_id: int, today: Optional[date] = None) -> List[Dict[str, object]]:
    today = today or local_today()
    with ledger_session(commit_on_success=True) as session:
        _require_admin(session, actor_id)
        users = (
            session.query(User)
            .order_by(User.created_at, User.id)
            .with_for_update()
            .all()
        )
        return [{**u.to_dict(), "balance": settled_balance(session, u.id, today)} for u in users]


def set_user_points(actor_id: int, target_id: int, desired, today: Optional[date] = None) -> Dict[str, object]:
    """Write one adjustment row so the target's balance becomes ``desired``."""
    today = today or local_today()
    desired_points = parse_int(desired, "points")
    with ledger_session(commit_on_success=True) as session:
        _require_admin(session, actor_id)
        lock_user(session, target_id)
        current = settled_balance(session, target_id, today)
        delta = desired_points - current
        if delta == 0:
            return {"userId": target_id, "previous": current, "balance": current, "delta": 0, "transaction": None}
        note = f"Admin adjustment to {desired_points} (delta {delta:+d})"
        tx = record_award(
            session, target_id, delta,
            award_key=f"admin:{uuid4().hex}", note=note, on_date=today,
        )
        logging.info("Admin %s set user %s points %s -> %s", actor_id, target_id, current, desired_points)
        return {
            "userId": target_id,
            "previous": current,
            "balance": current + delta,
            "delta": delta,
            "transaction": transaction_to_dict(tx),
        }


def reset_user_pin(actor_id: int, target_id: int, new_pin) -> Dict[str, object]:
    with ledger_session(commit_on_success=True) as session:
        _require_admin(session, actor_id)
        target = session.get(User, target_id)
        if not target:
            raise NotFoundError("User not found.")
        target.pin_hash = _hash_pin(new_pin)
        session.flush()
        return {"id": target.id, "username": target.username, "hasPin": bool(target.pin_hash)}


def delete_user(actor_id: int, target_id: int) -> Dict[str, object]:
    """Delete a user and everything the user owns, ledger included."""
    with ledger_session(commit_on_success=True) as session:
        _require_admin(session, actor_id)
        target = session.get(User, target_id)
        if not target:
            raise NotFoundError("User not found.")
        session.delete(target)
        session.flush()
        logging.info("Admin %s deleted user %s", actor_id, target_id)
        return {"ok": True}


def reset_all_data(actor_id: int) -> Dict[str, object]:
    """Wipe every account and its rows. Quotes are kept."""
    with ledger_session(commit_on_success=True) as session:
        _require_admin(session, actor_id)
        # Children before parents
        for model in (LedgerTransaction, MoneyEvent, Purchase, ChecklistDaily, BreathDaily, DailyLog, Prize, User):
            session.query(model).delete(synchronize_session=False)
        logging.warning("Admin %s reset all data", actor_id)
        return {"ok": True}
