"""Adapter for Swiss bank/card statement CSV exports.

Exports come either semicolon- or comma-delimited, optionally preceded by an
Excel-style ``sep=X`` declaration line, with this header (column order is not
significant; rows are mapped by header name):

``Account number, Card number, Account/Cardholder, Purchase date,``
``Booking text, Sector, Amount, Original currency, Rate, Currency, Debit,``
``Credit, Booked``

Normalization
-------------
- Dates are ``DD.MM.YYYY``. Unparseable dates fall back to today and the row
  is flagged ``purchase_date_estimated`` instead of being rejected.
- Numbers use ``'`` as thousands separator and ``,`` or ``.`` as decimal
  separator. Empty or unparseable numbers become ``None``, never ``0``.
- When a row carries neither debit nor credit but a positive amount, the
  booking text decides: inflow markers (``TRANSFER FROM``, ``INCOMING``,
  ``DEPOSIT``, ``SALARY``, ``REFUND``) make it a credit, anything else a debit.

Failure mode
------------
Row-level anomalies never raise; they are logged at WARNING and degrade to
defaults. An unreadable file raises :class:`StatementReadError`, a failure of
the ``csv`` module itself raises :class:`StatementParseError`.
"""

from __future__ import annotations

import csv
import io
import re
from collections.abc import Iterator, Mapping
from datetime import date
from os import PathLike
from pathlib import Path

from ..errors import StatementParseError, StatementReadError
from ..logging_setup import get_logger
from ..models import Transaction

logger = get_logger(__name__)

# Header names as they appear in the export
COL_ACCOUNT = "Account number"
COL_CARD = "Card number"
COL_HOLDER = "Account/Cardholder"
COL_PURCHASE_DATE = "Purchase date"
COL_BOOKING_TEXT = "Booking text"
COL_SECTOR = "Sector"
COL_AMOUNT = "Amount"
COL_ORIGINAL_CURRENCY = "Original currency"
COL_RATE = "Rate"
COL_CURRENCY = "Currency"
COL_DEBIT = "Debit"
COL_CREDIT = "Credit"
COL_BOOKED = "Booked"

EXPECTED_COLUMNS: tuple[str, ...] = (
    COL_ACCOUNT,
    COL_CARD,
    COL_HOLDER,
    COL_PURCHASE_DATE,
    COL_BOOKING_TEXT,
    COL_SECTOR,
    COL_AMOUNT,
    COL_ORIGINAL_CURRENCY,
    COL_RATE,
    COL_CURRENCY,
    COL_DEBIT,
    COL_CREDIT,
    COL_BOOKED,
)

DEFAULT_SECTOR = "Other"
DEFAULT_CURRENCY = "CHF"

INFLOW_MARKERS: tuple[str, ...] = ("TRANSFER FROM", "INCOMING", "DEPOSIT", "SALARY", "REFUND")

# Lower-cased substrings marking footer/summary rows
SUMMARY_MARKERS: tuple[str, ...] = ("total", "sum", "subtotal", "grand total")

_SEP_LINE_RE = re.compile(r"^sep=(.)\r?\n", re.IGNORECASE)
# Leading numeric prefix, tolerant of trailing garbage ("12.50 CHF" -> 12.5)
_NUMBER_PREFIX_RE = re.compile(r"^\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


# ---------------------------------------------------------------------------
# Field-level helpers
# ---------------------------------------------------------------------------


def detect_delimiter(content: str) -> str:
    """Return the field delimiter for ``content``.

    A leading ``sep=X`` line wins. Otherwise semicolons and commas are counted
    in the first five lines and ``;`` is chosen only when strictly more
    frequent.
    """

    m = _SEP_LINE_RE.match(content)
    if m:
        return m.group(1)
    sample = "\n".join(content.split("\n")[:5])
    return ";" if sample.count(";") > sample.count(",") else ","


def strip_sep_header(content: str) -> str:
    """Remove a leading ``sep=X`` declaration line when present."""

    return _SEP_LINE_RE.sub("", content, count=1)


def parse_swiss_date(value: str | None, *, today: date | None = None) -> tuple[date, bool]:
    """Parse ``DD.MM.YYYY`` into ``(date, estimated)``.

    Never raises. On any failure the result is ``(today, True)``.
    """

    fallback = today or date.today()
    s = (value or "").strip()
    if not s:
        return fallback, True

    parts = s.split(".")
    if len(parts) != 3 or not all(p.strip().isascii() and p.strip().isdecimal() for p in parts):
        return fallback, True

    try:
        day, month, year = (int(p) for p in parts)
        return date(year, month, day), False
    except (ValueError, OverflowError):
        return fallback, True


def parse_swiss_number(value: str | None) -> float | None:
    """Parse a Swiss-formatted number; ``None`` when empty or unparseable.

    ``"1'234,56"`` -> ``1234.56``; ``"50.00"`` -> ``50.0``; ``""`` -> ``None``.
    """

    if value is None or not value.strip():
        return None
    normalized = value.replace("'", "").replace(",", ".", 1)
    m = _NUMBER_PREFIX_RE.match(normalized)
    if m is None:
        return None
    return float(m.group(0))


def _cell(row: Mapping[str, str | None], key: str) -> str:
    v = row.get(key)
    return v.strip() if v else ""


def _is_skippable(row: Mapping[str, str | None]) -> str | None:
    """Return a skip reason for non-data rows, else ``None``."""

    account = _cell(row, COL_ACCOUNT)
    purchase = _cell(row, COL_PURCHASE_DATE)
    text = _cell(row, COL_BOOKING_TEXT)

    if not account and not purchase and not text:
        return "blank"

    text_l = text.lower()
    if any(marker in text_l for marker in SUMMARY_MARKERS) or "total" in account.lower():
        return "summary"

    if not purchase and not text and not _cell(row, COL_AMOUNT):
        return "degenerate"

    return None


def _infer_direction(
    amount: float, debit: float | None, credit: float | None, booking_text: str
) -> tuple[float | None, float | None]:
    if debit is None and credit is None and amount > 0:
        upper = booking_text.upper()
        if any(marker in upper for marker in INFLOW_MARKERS):
            return None, amount
        return amount, None
    return debit, credit


def _row_to_transaction(
    row: Mapping[str, str | None], *, line_no: int, today: date | None
) -> Transaction:
    raw_purchase = _cell(row, COL_PURCHASE_DATE)
    purchase_date, estimated = parse_swiss_date(raw_purchase, today=today)
    if estimated:
        logger.warning("parse:invalid_date row=%d column=purchase value=%r", line_no, raw_purchase)

    raw_booked = _cell(row, COL_BOOKED)
    booked_date, booked_estimated = parse_swiss_date(raw_booked, today=today)
    if booked_estimated:
        logger.debug("parse:invalid_date row=%d column=booked value=%r", line_no, raw_booked)

    raw_amount = _cell(row, COL_AMOUNT)
    parsed_amount = parse_swiss_number(raw_amount)
    amount = parsed_amount or 0.0
    if raw_amount and parsed_amount is None:
        logger.warning("parse:invalid_number row=%d column=amount value=%r", line_no, raw_amount)

    booking_text = _cell(row, COL_BOOKING_TEXT)
    debit, credit = _infer_direction(
        amount,
        parse_swiss_number(_cell(row, COL_DEBIT)),
        parse_swiss_number(_cell(row, COL_CREDIT)),
        booking_text,
    )

    return Transaction(
        account_number=_cell(row, COL_ACCOUNT),
        card_number=_cell(row, COL_CARD),
        account_holder=_cell(row, COL_HOLDER),
        purchase_date=purchase_date,
        booking_text=booking_text,
        sector=_cell(row, COL_SECTOR) or DEFAULT_SECTOR,
        amount=amount,
        original_currency=_cell(row, COL_ORIGINAL_CURRENCY),
        rate=parse_swiss_number(_cell(row, COL_RATE)),
        currency=_cell(row, COL_CURRENCY) or DEFAULT_CURRENCY,
        debit=debit,
        credit=credit,
        booked_date=booked_date,
        purchase_date_estimated=estimated,
    )


def _iter_rows(reader: csv.DictReader) -> Iterator[tuple[int, dict[str, str | None]]]:
    for row in reader:
        # Drop overflow cells (key None) and strip stray whitespace from keys
        yield reader.line_num, {
            k.strip(): v for k, v in row.items() if k is not None
        }


# ---------------------------------------------------------------------------
# Public parse entry points
# ---------------------------------------------------------------------------


def parse_statement_text(text: str, *, today: date | None = None) -> list[Transaction]:
    """Parse statement CSV ``text`` into transactions in file order.

    Parameters
    ----------
    text:
        Full decoded file content, optionally starting with ``sep=X``.
    today:
        Substitute for unparseable dates; defaults to ``date.today()``.

    Returns
    -------
    list[Transaction]
        One record per data row; blank, summary and degenerate rows are
        skipped.
    """

    text = text.removeprefix("\ufeff")
    if not text.strip():
        return []

    delimiter = detect_delimiter(text)
    body = strip_sep_header(text)

    out: list[Transaction] = []
    skipped = 0
    try:
        reader = csv.DictReader(io.StringIO(body, newline=""), delimiter=delimiter)
        headers = [h.strip() for h in (reader.fieldnames or [])]
        missing = [c for c in EXPECTED_COLUMNS if c not in headers]
        if missing:
            logger.warning("parse:missing_columns columns=%s", ",".join(missing))

        for line_no, row in _iter_rows(reader):
            reason = _is_skippable(row)
            if reason is not None:
                skipped += 1
                logger.debug("parse:skip_row row=%d reason=%s", line_no, reason)
                continue
            out.append(_row_to_transaction(row, line_no=line_no, today=today))
    except csv.Error as e:
        raise StatementParseError(f"CSV parsing error: {e}") from e

    logger.info(
        "parse:done delimiter=%r transactions=%d skipped=%d", delimiter, len(out), skipped
    )
    return out


def decode_statement_bytes(data: bytes) -> str:
    """Decode raw bytes as UTF-8 (BOM tolerated), falling back to Latin-1."""

    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.info("parse:decode_fallback encoding=latin-1")
        return data.decode("latin-1")


def parse_statement_bytes(data: bytes, *, today: date | None = None) -> list[Transaction]:
    return parse_statement_text(decode_statement_bytes(data), today=today)


def load_statement(path: str | PathLike[str], *, today: date | None = None) -> list[Transaction]:
    """Read and parse the statement file at ``path``.

    Raises
    ------
    StatementReadError
        The file is missing or cannot be read.
    StatementParseError
        The delimited table cannot be parsed at all.
    """

    p = Path(path)
    try:
        data = p.read_bytes()
    except OSError as e:
        raise StatementReadError(f"Failed to read file: {p} ({e.strerror or e})") from e
    return parse_statement_bytes(data, today=today)


__all__ = [
    "EXPECTED_COLUMNS",
    "INFLOW_MARKERS",
    "detect_delimiter",
    "strip_sep_header",
    "parse_swiss_date",
    "parse_swiss_number",
    "parse_statement_text",
    "decode_statement_bytes",
    "parse_statement_bytes",
    "load_statement",
]
