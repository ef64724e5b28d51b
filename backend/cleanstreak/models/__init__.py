"""Model package exports."""

from .user import User  # noqa: F401
from .daily_log import DailyLog  # noqa: F401
from .transaction import LedgerTransaction  # noqa: F401
from .money_event import MoneyEvent  # noqa: F401
from .prize import Prize, Purchase  # noqa: F401
from .daily_counters import ChecklistDaily, BreathDaily  # noqa: F401
from .motivation_quote import MotivationQuote  # noqa: F401

__all__ = [
	'User',
	'DailyLog',
	'LedgerTransaction',
	'MoneyEvent',
	'Prize',
	'Purchase',
	'ChecklistDaily',
	'BreathDaily',
	'MotivationQuote',
]
