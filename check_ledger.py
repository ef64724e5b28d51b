import sys

from backend.cleanstreak.models.db import SessionLocal, configure_engine
from backend.cleanstreak.models.transaction import LedgerTransaction
from backend.cleanstreak.services.ledger_service import reconcile_balances
from sqlalchemy import func


def check_ledger():
    print("--- Balances ---")
    report = reconcile_balances()
    for row in report:
        flag = "OK" if row["consistent"] else "MISMATCH"
        print(f"ID: {row['userId']}, Username: {row['username']}, Balance: {row['balance']}, "
              f"Rows: {row['entries']}, RowSum: {row['rowSum']} [{flag}]")

    session = SessionLocal()
    try:
        print("\n--- Duplicate award keys ---")
        duplicates = (
            session.query(LedgerTransaction.user_id, LedgerTransaction.award_key, func.count())
            .group_by(LedgerTransaction.user_id, LedgerTransaction.award_key)
            .having(func.count() > 1)
            .all()
        )
        for user_id, award_key, count in duplicates:
            print(f"UserID: {user_id}, Key: {award_key}, Count: {count}")
        print(f"Duplicated keys: {len(duplicates)}")
    finally:
        session.close()

    return all(row["consistent"] for row in report)


if __name__ == "__main__":
    if len(sys.argv) > 1:
        # Check another database, e.g. a copy of production
        configure_engine(sys.argv[1])
    raise SystemExit(0 if check_ledger() else 1)
