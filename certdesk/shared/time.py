from datetime import date, datetime, timezone

_SPANISH_MONTHS = (
    "enero",
    "febrero",
    "marzo",
    "abril",
    "mayo",
    "junio",
    "julio",
    "agosto",
    "septiembre",
    "octubre",
    "noviembre",
    "diciembre",
)


def now_utc() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def now_iso() -> str:
    """ISO-8601 timestamp with millisecond precision and a ``Z`` suffix."""
    return now_utc().isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: str | date | None) -> date | None:
    """Parse an ISO date or timestamp string; ``Z`` suffixes are accepted."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None


def fmt_long_date_es(value: str | date | None) -> str:
    """Render dates the way certificates print them: ``15 de marzo de 2024``."""
    parsed = parse_iso(value)
    if parsed is None:
        return ""
    return f"{parsed.day} de {_SPANISH_MONTHS[parsed.month - 1]} de {parsed.year}"
