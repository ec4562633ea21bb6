"""
app/validators/sales_value_parser.py

Lenient value coercion for uploaded sales rows.

Nothing here rejects a row: unreadable quantities become 0, unreadable dates
become the current UTC date, and absent text becomes "".
"""

from __future__ import annotations

import datetime as dt
import math
import re
from decimal import Decimal
from typing import Any, Callable, Mapping

from openpyxl.utils.datetime import WINDOWS_EPOCH, from_excel

from app.domain.sales import SalesRecordInput

DATE_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d.%m.%Y",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%m/%d/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%b %d %Y",
    "%d %b %Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%d %B %Y",
)

_NON_NUMERIC_RE = re.compile(r"[^0-9,.\-]")
_LEADING_NUMBER_RE = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")


def utc_today() -> dt.date:
    return dt.datetime.now(dt.timezone.utc).date()


def _clamp_quantity(value: float) -> float:
    if not math.isfinite(value) or value < 0:
        return 0.0
    return value


def parse_quantity(value: Any) -> float:
    """
    Parse a locale-ambiguous quantity cell.

    ``"1.234,56"`` and ``"1,234.56"`` both give 1234.56; ``"12,5"`` gives 12.5;
    currency symbols and spaces are ignored. The right-most separator is the
    decimal one when both appear.
    """

    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float, Decimal)):
        return _clamp_quantity(float(value))

    text = _NON_NUMERIC_RE.sub("", str(value).strip())
    if not text:
        return 0.0

    has_comma = "," in text
    has_dot = "." in text
    if has_comma and not has_dot:
        text = text.replace(",", ".")
    elif has_comma and has_dot and text.rfind(",") > text.rfind("."):
        text = text.replace(".", "").replace(",", ".")
    else:
        text = text.replace(",", "")

    match = _LEADING_NUMBER_RE.match(text)
    if match is None:
        return 0.0
    try:
        return _clamp_quantity(float(match.group(0)))
    except ValueError:
        return 0.0


def parse_sale_date(
    value: Any,
    *,
    epoch: dt.datetime = WINDOWS_EPOCH,
    today: Callable[[], dt.date] = utc_today,
) -> dt.date:
    """
    Parse a date cell into a calendar date.

    Structured datetimes keep their UTC calendar day, numbers are decoded as
    spreadsheet serials against *epoch*, strings are tried as ISO-8601 and
    then against DATE_FORMATS.
    """

    if value is None or isinstance(value, bool):
        return today()

    if isinstance(value, dt.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(dt.timezone.utc)
        return value.date()
    if isinstance(value, dt.date):
        return value

    if isinstance(value, (int, float, Decimal)):
        return _parse_serial(float(value), epoch=epoch) or today()

    text = str(value).strip()
    if not text:
        return today()
    return _parse_date_text(text) or today()


def _parse_serial(serial: float, *, epoch: dt.datetime) -> dt.date | None:
    if not math.isfinite(serial):
        return None
    try:
        decoded = from_excel(serial, epoch=epoch)
    except (OverflowError, ValueError):
        return None
    if isinstance(decoded, dt.datetime):
        return decoded.date()
    if isinstance(decoded, dt.date):
        return decoded
    return None


def _parse_date_text(text: str) -> dt.date | None:
    normalized = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        parsed = dt.datetime.fromisoformat(normalized)
    except ValueError:
        parsed = None
    if parsed is not None:
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(dt.timezone.utc)
        return parsed.date()

    for fmt in DATE_FORMATS:
        try:
            return dt.datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_text(value: Any) -> str:
    """
    Coerce a text cell. Whole floats lose their ".0" so numeric ids read back unchanged.
    """

    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, dt.datetime):
        return value.date().isoformat()
    if isinstance(value, dt.date):
        return value.isoformat()
    return str(value).strip()


class SalesRowNormalizer:
    """
    Coerces one header-mapped row into a typed SalesRecordInput.
    """

    def __init__(self, *, today: Callable[[], dt.date] = utc_today) -> None:
        self._today = today

    def normalize_row(
        self,
        *,
        mapped_row: Mapping[str, Any],
        epoch: dt.datetime = WINDOWS_EPOCH,
    ) -> SalesRecordInput:
        return SalesRecordInput(
            salesperson_name=parse_text(mapped_row.get("salesperson_name")),
            city=parse_text(mapped_row.get("city")),
            business_type=parse_text(mapped_row.get("business_type")),
            presentation=parse_text(mapped_row.get("presentation")),
            quantity=parse_quantity(mapped_row.get("quantity")),
            date=parse_sale_date(mapped_row.get("date"), epoch=epoch, today=self._today),
        )

