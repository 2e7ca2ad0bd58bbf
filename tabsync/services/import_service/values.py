"""Value parsers for loosely-typed spreadsheet cells.

None of these functions raise on bad input. Each ``*_result`` variant
returns a ParseResult whose ``degraded`` flag is set when a value was
present but unusable and the documented fallback was substituted, so
callers can count degradations without per-row errors.
"""

import math
import re
import unicodedata
from datetime import date, datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Generic, NamedTuple, TypeVar

T = TypeVar("T")

# Spreadsheet day 25569 is 1970-01-01 (serial 0 is 1899-12-30)
SERIAL_EPOCH_OFFSET = 25569
UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Parsed years before this are treated as silent epoch misparses
MIN_PLAUSIBLE_YEAR = 1971

QUOTE_CHARS = "\"'\u201c\u201d\u2018\u2019"
QUOTE_PAIRS = {'"': '"', "'": "'", "\u201c": "\u201d", "\u2018": "\u2019"}

# BOM, zero-width and non-breaking characters that leak into header cells
INVISIBLE_CHARS = "\ufeff\u200b\u200c\u200d\u2060\xa0"

_CURRENCY_STRIP = re.compile(rf"[$,\s{QUOTE_CHARS}]")
_COUNT_STRIP = re.compile(rf"[,\s{QUOTE_CHARS}]")
_DATE_SPLIT = re.compile(r"[/\-.]")

_STANDARD_DATE_FORMATS = (
    "%Y",
    "%Y/%m/%d",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
)

KNOWN_SUPPLIER_ACRONYMS = {"CES", "CED", "G&G", "ABC"}
SUPPLIER_OVERRIDES = {"world": "World Electric", "manhattan": "Manhattan"}


class ParseResult(NamedTuple, Generic[T]):
    """A parsed value and whether a fallback was substituted."""

    value: T
    degraded: bool = False


# =============================================================================
# Text normalization
# =============================================================================


def strip_quotes(text: str) -> str:
    """Strip a single pair of wrapping quote characters."""
    if len(text) >= 2 and QUOTE_PAIRS.get(text[0]) == text[-1]:
        return text[1:-1]
    return text


def normalize_text(value: Any) -> str:
    """Convert a cell to trimmed text with one pair of wrapping quotes removed."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return strip_quotes(str(value).strip()).strip()


def clean_header(text: Any) -> str:
    """Clean a column header for matching: drop invisible characters and trim."""
    if text is None:
        return ""
    cleaned = "".join(ch for ch in str(text) if ch not in INVISIBLE_CHARS)
    return strip_quotes(cleaned.strip()).strip()


def fold_text(text: str) -> str:
    """Lower-case and strip accents so "Ejecución" matches "ejecucion"."""
    decomposed = unicodedata.normalize("NFKD", text.lower().strip())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_email(value: Any) -> str:
    """Normalize an email address for comparison."""
    text = normalize_text(value).lower()
    if text.startswith("mailto:"):
        text = text[len("mailto:"):]
    return text.strip()


def normalize_supplier(value: Any) -> str:
    """Normalize supplier names (e.g. "REXEL" -> "Rexel")."""
    clean = normalize_text(value)
    if not clean:
        return "Unknown"
    lowered = clean.lower()
    for keyword, name in SUPPLIER_OVERRIDES.items():
        if keyword in lowered:
            return name
    if clean.upper() in KNOWN_SUPPLIER_ACRONYMS:
        return clean.upper()
    return clean[0].upper() + clean[1:].lower()


def is_blank(value: Any) -> bool:
    """True for None, empty strings and whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return not strip_quotes(value.strip()).strip()
    return False


# =============================================================================
# Numbers
# =============================================================================


def _parse_number(value: Any, pattern: re.Pattern[str]) -> ParseResult[float]:
    if value is None:
        return ParseResult(0.0)
    if isinstance(value, bool):
        return ParseResult(0.0, degraded=True)
    if isinstance(value, (int, float)):
        number = float(value)
        if math.isfinite(number):
            return ParseResult(number)
        return ParseResult(0.0, degraded=True)

    text = str(value).strip()
    if not text:
        return ParseResult(0.0)

    negative = False
    cleaned = pattern.sub("", text)
    # Accounting style negatives: (1,200.00)
    if cleaned.startswith("(") and cleaned.endswith(")"):
        negative = True
        cleaned = cleaned[1:-1]
    if not cleaned:
        return ParseResult(0.0)

    try:
        number = float(cleaned)
    except ValueError:
        return ParseResult(0.0, degraded=True)
    if not math.isfinite(number):
        return ParseResult(0.0, degraded=True)
    return ParseResult(-number if negative else number)


def parse_currency_result(value: Any) -> ParseResult[float]:
    """Parse a currency cell such as ' $35,953.80 ' or '"$33,825.00"'."""
    return _parse_number(value, _CURRENCY_STRIP)


def parse_currency(value: Any) -> float:
    """Parse a currency cell, returning 0.0 for empty or unparsable input."""
    return parse_currency_result(value).value


def parse_count_result(value: Any) -> ParseResult[float]:
    """Parse a quantity that may carry thousands separators ('3,000')."""
    return _parse_number(value, _COUNT_STRIP)


def parse_count(value: Any) -> float:
    """Parse a quantity, returning 0.0 for empty or unparsable input."""
    return parse_count_result(value).value


# =============================================================================
# Dates
# =============================================================================


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def serial_to_datetime(serial: float) -> datetime:
    """Convert a spreadsheet serial day number to a UTC datetime.

    Raises:
        OverflowError: If the serial is outside the representable range.
    """
    seconds = round((serial - SERIAL_EPOCH_OFFSET) * 86400)
    return UNIX_EPOCH + timedelta(seconds=seconds)


def _parse_standard(text: str) -> datetime | None:
    try:
        return _as_utc(datetime.fromisoformat(text))
    except ValueError:
        pass

    try:
        return _as_utc(parsedate_to_datetime(text))
    except (TypeError, ValueError, IndexError):
        pass

    for fmt in _STANDARD_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def _parse_split(text: str) -> datetime | None:
    """Parse D/M/Y or M/D/Y by magnitude: a first part over 12 is a day.

    Dates where both parts are <= 12 ("03/04/2024") are read month-first.
    Year-first dates before MIN_PLAUSIBLE_YEAR are rejected, as the standard
    parse already was.
    """
    head = text.split()[0] if text.split() else ""
    parts = _DATE_SPLIT.split(head)
    if len(parts) != 3 or not all(part.isdigit() for part in parts):
        return None

    first, second, third = (int(part) for part in parts)
    if len(parts[0]) == 4:
        if first < MIN_PLAUSIBLE_YEAR:
            return None
        year, month, day = first, second, third
    elif first > 12:
        day, month, year = first, second, third
    else:
        month, day, year = first, second, third

    if year < 100:
        year += 2000

    try:
        return datetime(year, month, day, tzinfo=timezone.utc)
    except ValueError:
        return None


def parse_date_result(value: Any, now: datetime | None = None) -> ParseResult[datetime]:
    """Parse a date cell into an aware UTC datetime.

    Dispatches on the input shape: datetime/date objects, spreadsheet serial
    numbers, then strings (standard formats first, then slash/dash/dot
    splitting). Anything unparsable yields ``now`` with ``degraded=True``.
    """
    fallback = now or datetime.now(timezone.utc)

    if isinstance(value, datetime):
        return ParseResult(_as_utc(value))
    if isinstance(value, date):
        return ParseResult(datetime(value.year, value.month, value.day, tzinfo=timezone.utc))

    if value is None:
        return ParseResult(fallback)
    if isinstance(value, bool):
        return ParseResult(fallback, degraded=True)

    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return ParseResult(fallback, degraded=True)
        try:
            return ParseResult(serial_to_datetime(value))
        except OverflowError:
            return ParseResult(fallback, degraded=True)

    text = normalize_text(value)
    if not text:
        return ParseResult(fallback)

    parsed = _parse_standard(text)
    if parsed is not None and parsed.year >= MIN_PLAUSIBLE_YEAR:
        return ParseResult(parsed)

    parsed = _parse_split(text)
    if parsed is not None:
        return ParseResult(parsed)

    # A bare number in a text cell is still a serial
    try:
        serial = float(text)
    except ValueError:
        return ParseResult(fallback, degraded=True)
    if math.isfinite(serial):
        try:
            return ParseResult(serial_to_datetime(serial))
        except OverflowError:
            pass
    return ParseResult(fallback, degraded=True)


def parse_date(value: Any, now: datetime | None = None) -> datetime:
    """Parse a date cell, defaulting to ``now`` when it cannot be read."""
    return parse_date_result(value, now).value
