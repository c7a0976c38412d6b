"""
Calendar helpers: loose date parsing, month-boundary counting and ages.

All functions here are total. Bad input never raises; it yields ``None``
(for dates and ages) or ``0`` (for month counts).
"""

from __future__ import annotations

import re
from datetime import date

import numpy as np

PLACEHOLDER = "待定"

_DATE_RE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")


def parse_date(text: object, placeholder: str = PLACEHOLDER) -> date | None:
    """
    Extract a calendar date from a loosely formatted date string.

    The first ``YYYY-MM-DD`` substring wins; anything around it (weekday,
    time of day) is ignored.

    **Args:**
        text: Raw snapshot value, e.g. ``"2002-07-15 周一 08:00"``
        placeholder: Value meaning "not decided yet"

    **Returns:**
        The parsed ``date``, or ``None`` for the placeholder, empty or
        non-string input, a missing pattern, or an impossible date such
        as ``2002-02-30``.

    **Example:**
        ```python
        parse_date("2002-07-15 周一 08:00")  # date(2002, 7, 15)
        parse_date("待定")                   # None
        ```
    """
    if not isinstance(text, str) or not text or text == placeholder:
        return None
    match = _DATE_RE.search(text)
    if match is None:
        return None
    year, month, day = (int(group) for group in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _as_date(value: date | str | None, placeholder: str) -> date | None:
    if isinstance(value, date):
        return value
    return parse_date(value, placeholder)


def count_month_boundaries(
    old: date | str | None,
    new: date | str | None,
    placeholder: str = PLACEHOLDER,
) -> int:
    """
    Count the month-start boundaries crossed when moving from ``old`` to ``new``.

    The first boundary is the 1st of the month after ``old``. When ``old``
    already falls on the 1st, its own month is the first boundary, so the
    start date itself counts as crossed. Downstream cash accrual relies on
    this count, so it must stay as is.

    Every month from that first boundary up to and including the month of
    ``new`` counts once; ``new``'s day of month does not matter.

    **Returns:**
        Number of boundaries (>= 0). ``0`` when either date is missing or
        when ``new <= old``.

    **Example:**
        ```python
        count_month_boundaries("2002-07-15", "2002-09-15")  # 2 (Aug 1st, Sep 1st)
        count_month_boundaries("2002-07-01", "2002-07-01")  # 0
        ```
    """
    old_date = _as_date(old, placeholder)
    new_date = _as_date(new, placeholder)
    if old_date is None or new_date is None or new_date <= old_date:
        return 0

    first = np.datetime64(old_date, "M")
    if old_date.day > 1:
        first = first + np.timedelta64(1, "M")
    last = np.datetime64(new_date, "M")

    span = int((last - first).astype("int64")) + 1
    return max(span, 0)


def calculate_age(
    current: date | str | None,
    birthday: date | str | None,
    placeholder: str = PLACEHOLDER,
) -> int | None:
    """
    Birthday-aware age in whole years.

    Returns ``None`` when either date cannot be parsed or when the result
    would be negative (birthday after the current date).
    """
    today = _as_date(current, placeholder)
    born = _as_date(birthday, placeholder)
    if today is None or born is None:
        return None

    age = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        age -= 1
    return age if age >= 0 else None
