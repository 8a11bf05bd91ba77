from datetime import date, datetime, timedelta, timezone

ISO_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime(ISO_FORMAT)


def now_iso() -> str:
    return to_iso(utc_now())


def end_of_day_iso(day: str) -> str:
    """Last second of a YYYY-MM-DD date, as a stored timestamp."""
    parsed = date.fromisoformat(day)
    return f"{parsed.isoformat()}T23:59:59Z"


def date_after(days: int, start: date | None = None) -> str:
    return ((start or date.today()) + timedelta(days=days)).isoformat()
