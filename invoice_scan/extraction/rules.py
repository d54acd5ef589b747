"""
Extraction Rules Module.

Each logical field is described by an ordered tuple of rules. A rule
either matches a regular expression (``PatternRule``) or runs a small
search function (``HeuristicRule``). ``run_cascade`` evaluates the rules
in order and the first rule that yields an acceptable value wins.

Example:
    >>> rules = (
    ...     PatternRule(r'Total[:\\s]*([0-9,]+)', ConfidenceTier.PRIMARY_STRONG,
    ...                 normalize=strip_commas, accept=AmountRange().contains),
    ... )
    >>> run_cascade(rules, "Total: 1,200")
    RecognizedField(value='1200', confidence=0.9)
"""

import re
from dataclasses import dataclass
from typing import Callable, Optional, Pattern, Sequence, Union

from .extraction_result import RecognizedField

# Half-width and full-width thousands separators
COMMA_CHARS = ",，"


def strip_commas(value: str) -> str:
    """Remove thousands separators from a numeric token."""
    return re.sub(f"[{COMMA_CHARS}]", "", value)


def collapse_whitespace(value: str) -> str:
    """Remove all whitespace, which OCR often inserts between CJK glyphs."""
    return re.sub(r"\s+", "", value)


@dataclass(frozen=True)
class AmountRange:
    """
    Plausibility filter for monetary values.

    Amounts outside the range are treated as OCR noise (page numbers,
    postal codes, stray digits) and rejected.
    """
    minimum: int = 100
    maximum: int = 100_000_000

    def contains(self, value: str) -> bool:
        try:
            amount = int(value)
        except (TypeError, ValueError):
            return False
        return self.minimum <= amount <= self.maximum


class ExtractionRule:
    """Base class for a single step of a field cascade."""

    confidence: float

    def find(self, text: str) -> Optional[str]:
        """Return the extracted value, or None when the rule does not apply."""
        raise NotImplementedError

    def apply(self, text: str) -> Optional[RecognizedField]:
        value = self.find(text)
        if value is None:
            return None
        return RecognizedField(value, self.confidence)


class PatternRule(ExtractionRule):
    """
    Label-anchored regular expression rule.

    Only the first match of the pattern is considered. The captured group
    is passed through ``normalize`` and must then satisfy ``accept``;
    a rejected match makes the rule fail so the cascade moves on.

    Args:
        pattern: Regular expression (string or compiled).
        confidence: Confidence assigned when the rule succeeds.
        group: Capture group holding the value (0 for the whole match).
        normalize: Optional transform applied to the captured text.
        accept: Optional predicate on the normalized value.
        preprocess: Optional transform applied to the text before
            searching (e.g. dropping whitespace, or cutting the text down
            to the part after an anchor).
        flags: Regex flags when ``pattern`` is a string.
    """

    def __init__(
        self,
        pattern: Union[str, Pattern],
        confidence: float,
        group: int = 1,
        normalize: Optional[Callable[[str], str]] = None,
        accept: Optional[Callable[[str], bool]] = None,
        preprocess: Optional[Callable[[str], str]] = None,
        flags: int = 0
    ) -> None:
        if isinstance(pattern, str):
            pattern = re.compile(pattern, flags)
        self.pattern = pattern
        self.confidence = confidence
        self.group = group
        self.normalize = normalize
        self.accept = accept
        self.preprocess = preprocess

    def find(self, text: str) -> Optional[str]:
        if self.preprocess is not None:
            text = self.preprocess(text)
        match = self.pattern.search(text)
        if not match:
            return None

        value = match.group(self.group)
        if value is None:
            return None

        value = value.strip()
        if self.normalize is not None:
            value = self.normalize(value)
        if not value:
            return None
        if self.accept is not None and not self.accept(value):
            return None
        return value

    def __repr__(self) -> str:
        return f"PatternRule({self.pattern.pattern!r}, {self.confidence})"


class HeuristicRule(ExtractionRule):
    """
    Rule backed by a search function rather than a single regex.

    Used for fallbacks that scan the whole text (largest amount, a
    katakana-only line) and for searches anchored on another value.
    """

    def __init__(self, finder: Callable[[str], Optional[str]], confidence: float) -> None:
        self.finder = finder
        self.confidence = confidence

    def find(self, text: str) -> Optional[str]:
        value = self.finder(text)
        return value or None

    def __repr__(self) -> str:
        name = getattr(self.finder, '__name__', repr(self.finder))
        return f"HeuristicRule({name}, {self.confidence})"


def run_cascade(rules: Sequence[ExtractionRule], text: str) -> Optional[RecognizedField]:
    """
    Evaluate rules in order and return the first successful result.

    Args:
        rules: Ordered rules, most specific first.
        text: Text to search.

    Returns:
        RecognizedField from the first rule that matched, or None.
    """
    for rule in rules:
        result = rule.apply(text)
        if result is not None:
            return result
    return None


def max_plausible_amount(
    pattern: Union[str, Pattern],
    amount_range: AmountRange
) -> Callable[[str], Optional[str]]:
    """
    Build a finder returning the largest plausible amount in the text.

    The total is usually the largest figure on an invoice, so when no
    labelled total is found the maximum in-range token is the best guess.

    Args:
        pattern: Regex whose whole match is a numeric token.
        amount_range: Plausibility bounds applied to every candidate.
    """
    if isinstance(pattern, str):
        pattern = re.compile(pattern)

    def find_max_amount(text: str) -> Optional[str]:
        candidates = [
            int(value)
            for value in (strip_commas(m.group(0)) for m in pattern.finditer(text))
            if amount_range.contains(value)
        ]
        if not candidates:
            return None
        return str(max(candidates))

    return find_max_amount
