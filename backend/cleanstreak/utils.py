from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from .config import Config
from .services.errors import ValidationError


def local_today() -> date:
    """Calendar day in the configured application time zone."""
    zone = timezone.utc if Config.APP_TIMEZONE.upper() == "UTC" else ZoneInfo(Config.APP_TIMEZONE)
    return datetime.now(zone).date()


def parse_date(value, field_label: str = "date") -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        # Accept full timestamps too; only the calendar day matters
        return datetime.fromisoformat(str(value)[:10]).date()
    except ValueError as exc:
        raise ValidationError(f"{field_label} must be an ISO date (YYYY-MM-DD)") from exc


def _iso(value):
    return value.isoformat() if value else None


def daily_log_to_dict(log):
    return {
        "id": log.id,
        "date": _iso(log.date),
        "used": log.used,
        "context": log.context,
        "paid": log.paid,
        "amountCents": log.amount_cents,
        "journal": log.journal,
        "mood": log.mood,
    }


def transaction_to_dict(tx):
    return {
        "id": tx.id,
        "points": tx.points,
        "type": tx.type,
        "note": tx.note,
        "date": _iso(tx.date),
        "awardKey": tx.award_key,
        "relatedLogId": tx.related_log_id,
        "relatedPrizeId": tx.related_prize_id,
        "createdAt": _iso(tx.created_at),
    }


def money_event_to_dict(event):
    return {
        "id": event.id,
        "amountCents": event.amount_cents,
        "type": event.type,
        "note": event.note,
        "date": _iso(event.date),
        "relatedLogId": event.related_log_id,
    }


def purchase_to_dict(purchase):
    return {
        "id": purchase.id,
        "prizeId": purchase.prize_id,
        "createdAt": _iso(purchase.created_at),
    }


def prize_to_dict(prize, include_purchases: bool = False):
    payload = {
        "id": prize.id,
        "name": prize.name,
        "description": prize.description,
        "costPoints": prize.cost_points,
        "active": bool(prize.active),
        "createdAt": _iso(prize.created_at),
    }
    if include_purchases:
        payload["purchases"] = [purchase_to_dict(p) for p in prize.purchases]
    return payload


def quote_to_dict(quote):
    if isinstance(quote, dict):
        return {"text": quote["text"], "author": quote.get("author"), "source": quote.get("source")}
    return {"text": quote.text, "author": quote.author, "source": quote.source}


# Signed 32-bit INT columns
INT_MIN = -2**31
INT_MAX = 2**31 - 1


def parse_int(value, field_label: str, *, minimum: Optional[int] = None, default: Optional[int] = None) -> int:
    if value is None or value == "":
        if default is None:
            raise ValidationError(f"{field_label} is required")
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field_label} must be a whole number")
    if isinstance(value, int):
        result = value
    else:
        try:
            number = float(value)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"{field_label} must be a whole number") from exc
        if number != number or number in (float('inf'), float('-inf')) or not number.is_integer():
            raise ValidationError(f"{field_label} must be a whole number")
        result = int(number)
    if minimum is not None and result < minimum:
        raise ValidationError(f"{field_label} must be at least {minimum}")
    if result < INT_MIN or result > INT_MAX:
        raise ValidationError(f"{field_label} is out of range")
    return result


def parse_bool(value, field_label: str, *, default: Optional[bool] = None) -> bool:
    if value is None or value == "":
        if default is None:
            raise ValidationError(f"{field_label} is required")
        return default
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ValidationError(f"{field_label} must be true or false")
