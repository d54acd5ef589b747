"""
Confidence Scoring Module.

Every extraction rule is assigned one of a small set of named confidence
tiers. Primary (label-anchored) tiers all score at least 0.8 and fallback
(heuristic) tiers at most 0.6, so the provenance of a value can always be
read back from its score.
"""

from typing import Iterable


class ConfidenceTier:
    """Named confidence values for extraction rules."""

    # Primary tier: label-anchored patterns
    PRIMARY_STRONG = 0.9
    PRIMARY = 0.85
    PRIMARY_WEAK = 0.8

    # Fallback tier: heuristics without an anchoring label
    FALLBACK_STRONG = 0.6
    FALLBACK = 0.5
    FALLBACK_WEAK = 0.4

    PRIMARY_FLOOR = PRIMARY_WEAK
    FALLBACK_CEILING = FALLBACK_STRONG


class ConfidenceScorer:
    """
    Derives and classifies confidence values.

    Example:
        >>> ConfidenceScorer.is_fallback(0.6)
        True
        >>> ConfidenceScorer.provenance(0.85)
        'primary'
    """

    @staticmethod
    def is_primary(confidence: float) -> bool:
        return confidence >= ConfidenceTier.PRIMARY_FLOOR

    @staticmethod
    def is_fallback(confidence: float) -> bool:
        return confidence <= ConfidenceTier.FALLBACK_CEILING

    @classmethod
    def provenance(cls, confidence: float) -> str:
        """
        Describe which rule tier produced a confidence value.

        Returns:
            'primary', 'fallback' or 'unknown' for scores between tiers
            (caller-supplied recognition confidences, for instance).
        """
        if cls.is_primary(confidence):
            return 'primary'
        if cls.is_fallback(confidence):
            return 'fallback'
        return 'unknown'

    @staticmethod
    def overall(confidences: Iterable[float]) -> float:
        """Mean of the given confidences, 0.0 for an empty input."""
        values = list(confidences)
        if not values:
            return 0.0
        return sum(values) / len(values)

    @staticmethod
    def clamp(confidence: float) -> float:
        """Clamp a score into [0, 1]."""
        return max(0.0, min(1.0, float(confidence)))
