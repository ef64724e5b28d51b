import os
from datetime import date
from uuid import uuid4

# Must run before the package reads its configuration
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["APP_TIMEZONE"] = "UTC"

import pytest

from backend.cleanstreak.models.db import SessionLocal, configure_engine, drop_db, init_db
from backend.cleanstreak.models.transaction import LedgerTransaction
from backend.cleanstreak.models.user import User
from backend.cleanstreak.services.ledger_service import ledger_session, record_award

TODAY = date(2026, 3, 10)


@pytest.fixture(autouse=True)
def fresh_db():
    drop_db()
    init_db()
    yield


@pytest.fixture
def file_db(tmp_path):
    """File-backed SQLite that several threads can share."""
    configure_engine(f"sqlite:///{tmp_path / 'cleanstreak.db'}")
    init_db()
    yield
    configure_engine("sqlite://")
    init_db()


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def make_user():
    def _make_user(username="tester", weekly_spend_cents=0, is_admin=False):
        session = SessionLocal()
        try:
            user = User(
                username=username,
                weekly_spend_cents=weekly_spend_cents,
                is_admin=is_admin,
                longest_streak_days=0,
            )
            session.add(user)
            session.commit()
            return user.id
        finally:
            session.close()
    return _make_user


@pytest.fixture
def grant():
    """Put arbitrary points on a user's ledger."""
    def _grant(user_id, points):
        with ledger_session(commit_on_success=True) as session:
            record_award(session, user_id, points, award_key=f"test:{uuid4().hex}", note="test grant", on_date=TODAY)
    return _grant


@pytest.fixture
def ledger_rows():
    def _rows(user_id, key_prefix=None):
        session = SessionLocal()
        try:
            query = session.query(LedgerTransaction).filter(LedgerTransaction.user_id == user_id)
            if key_prefix:
                query = query.filter(LedgerTransaction.award_key.like(f"{key_prefix}%"))
            return [(tx.points, tx.award_key, tx.date) for tx in query.order_by(LedgerTransaction.id).all()]
        finally:
            session.close()
    return _rows
