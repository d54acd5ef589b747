"""
OCR Text Normalization.

Japanese OCR frequently reads the yen sign as a backslash and thousands
separators as periods (``\\204.040`` for ``¥204,040``). These helpers
repair such tokens and re-join item descriptions that wrapped onto
several lines.
"""

import re
from typing import List

BACKSLASH_AMOUNT = re.compile(r"\\(\d+)\.(\d{3})")
PERIOD_GROUP = re.compile(r"(\d{1,3})\.(\d{3})")
CHAINED_GROUP = re.compile(r"(\d),(\d{3})\.(\d{3})")

OPEN_PARENS = re.compile(r"[（(]")
CLOSE_PARENS = re.compile(r"[）)]")


def normalize_ocr_text(text: str) -> str:
    """
    Convert period-grouped numbers into comma-grouped numbers.

    Example:
        >>> normalize_ocr_text("\\\\204.040")
        '204,040'
        >>> normalize_ocr_text("1.234.567")
        '1,234,567'
    """
    text = BACKSLASH_AMOUNT.sub(r"\1,\2", text)
    text = PERIOD_GROUP.sub(r"\1,\2", text)

    previous = None
    while previous != text:
        previous = text
        text = CHAINED_GROUP.sub(r"\1,\2,\3", text)

    return text


def _paren_balance(line: str) -> int:
    return len(OPEN_PARENS.findall(line)) - len(CLOSE_PARENS.findall(line))


def merge_multiline_descriptions(lines: List[str]) -> List[str]:
    """
    Join lines whose parentheses were left open with the lines after them.

    ``["Web制作（9月", "分）  50,000"]`` becomes ``["Web制作（9月分）  50,000"]``.
    Blank lines are passed through untouched. A line that never balances
    is emitted as-is at the end.
    """
    merged: List[str] = []
    pending = ""

    for line in lines:
        stripped = line.strip()
        if not stripped:
            merged.append(line)
            continue

        if pending:
            pending += stripped
            if _paren_balance(pending) <= 0:
                merged.append(pending)
                pending = ""
        elif _paren_balance(stripped) > 0:
            pending = stripped
        else:
            merged.append(line)

    if pending:
        merged.append(pending)

    return merged
