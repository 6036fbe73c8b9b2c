"""
Rule-based receipt field parser.

Pulls a total amount, a purchase date and a merchant name out of raw OCR
text. Each field is found by an ordered list of patterns where the first
usable hit wins. Results pre-fill an expense that a person verifies later,
so the rules favour being explainable over being clever.
"""
from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from expense_tracker.schemas import ParsedFields

# ---------------------------------------------------------------------------
# Amount
# ---------------------------------------------------------------------------

# 1,234.56 | 12.50 | 12,50
_NUMBER = r"(\d{1,3}(?:,\d{3})+\.\d{2}|\d+[.,]\d{2})(?!\d)"

# Tried in order. The first pattern that matches decides the candidate.
# Keywords may run straight into the number ("TOTAL12.50") but not into
# another word ("Totals", "Subtotal").
AMOUNT_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"\btotal(?![a-z])[:\s]*\$?\s*" + _NUMBER, re.IGNORECASE),
    re.compile(r"\bamount(?![a-z])[:\s]*\$?\s*" + _NUMBER, re.IGNORECASE),
    re.compile(r"\$\s*" + _NUMBER),
    re.compile(r"(?<![\d.,])" + _NUMBER),
]


def normalize_amount(raw: str) -> Optional[Decimal]:
    """``"1,234.56"`` -> 1234.56, ``"12,50"`` -> 12.50, ``"$3.00"`` -> 3.00."""
    cleaned = raw.replace("$", "").strip()
    if "," in cleaned and "." in cleaned:
        cleaned = cleaned.replace(",", "")
    else:
        cleaned = cleaned.replace(",", ".")
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def extract_amount(text: str) -> Optional[Decimal]:
    for pattern in AMOUNT_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        value = normalize_amount(match.group(1))
        if value is not None and value > 0:
            return value
    return None


# ---------------------------------------------------------------------------
# Date
# ---------------------------------------------------------------------------

_MONTHS = r"(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?"

# (pattern, strptime formats tried in order on the normalized match)
DATE_PATTERNS: list[tuple[re.Pattern[str], list[str]]] = [
    (
        re.compile(r"(?<!\d)(\d{1,2}[-/]\d{1,2}[-/](?:\d{4}|\d{2}))(?!\d)"),
        ["%m/%d/%Y", "%d/%m/%Y", "%m/%d/%y", "%d/%m/%y"],
    ),
    (
        re.compile(r"(?<!\d)(\d{4}[-/]\d{1,2}[-/]\d{1,2})(?!\d)"),
        ["%Y/%m/%d"],
    ),
    (
        re.compile(r"\b(\d{1,2}\s+" + _MONTHS + r"\s+(?:\d{4}|\d{2}))\b", re.IGNORECASE),
        ["%d %b %Y", "%d %b %y"],
    ),
    (
        re.compile(r"\b(" + _MONTHS + r"\s+\d{1,2},?\s+(?:\d{4}|\d{2}))\b", re.IGNORECASE),
        ["%b %d %Y", "%b %d %y"],
    ),
]

_WORD_MONTH = re.compile(r"[a-z]+\.?", re.IGNORECASE)


def _normalize_date_text(raw: str) -> str:
    # "25 December, 2024" -> "25 Dec 2024"; "12-25-2024" -> "12/25/2024"
    text = raw.replace("-", "/").replace(",", " ")
    text = _WORD_MONTH.sub(lambda m: m.group(0)[:3].capitalize(), text)
    return " ".join(text.split())


def _parse_date(raw: str, formats: list[str]) -> Optional[date]:
    text = _normalize_date_text(raw)
    for fmt in formats:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def extract_date(text: str) -> Optional[date]:
    """The first pattern that matches decides; an impossible date means no date."""
    for pattern, formats in DATE_PATTERNS:
        match = pattern.search(text)
        if match:
            return _parse_date(match.group(1), formats)
    return None


# ---------------------------------------------------------------------------
# Merchant
# ---------------------------------------------------------------------------

_ADDRESS_HINT = re.compile(r"street|avenue|road|blvd", re.IGNORECASE)


def _looks_like_address(line: str) -> bool:
    return line[:1].isdigit() or bool(_ADDRESS_HINT.search(line))


def extract_merchant(text: str) -> Optional[str]:
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines:
        return None
    if _looks_like_address(lines[0]) and len(lines) > 1:
        return lines[1]
    return lines[0]


def parse_receipt_text(text: str) -> ParsedFields:
    return ParsedFields(
        merchant=extract_merchant(text),
        amount=extract_amount(text),
        date=extract_date(text),
    )
