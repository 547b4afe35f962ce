from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta

from leaddesk.domain.rules import ValidationError


def utc_now() -> datetime:
    return datetime.now(UTC).replace(microsecond=0)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def today_iso() -> str:
    return date.today().isoformat()


def to_iso(value: datetime | date | str | None) -> str | None:
    """Normalize a timestamp to the stored form: UTC, second precision."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).replace(microsecond=0).isoformat()


def checked_iso(value: datetime | date | str | None, field: str) -> str | None:
    try:
        return to_iso(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be ISO 8601.") from exc


def day_bounds(day: date) -> tuple[str, str]:
    start = datetime.combine(day, time.min, tzinfo=UTC)
    end = start + timedelta(days=1) - timedelta(seconds=1)
    return start.isoformat(), end.isoformat()
