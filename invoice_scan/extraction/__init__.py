"""
Field Extraction Module for Invoice Scan Core.

This module turns OCR-recognized invoice text into structured,
confidence-scored fields.

Features:
    - Ordered rule cascades per field (pattern tier, then fallback tier)
    - Plausibility filtering of monetary amounts
    - Positional date assignment (issue date, due date)
    - Bank transfer details, issuer details and line items
    - Named confidence tiers that reveal each value's provenance
"""

from .confidence import ConfidenceScorer, ConfidenceTier
from .extraction_result import ExtractionResult, FieldName, LineItem, RecognizedField
from .extractor import FieldExtractor
from .rules import AmountRange, HeuristicRule, PatternRule, run_cascade

__all__ = [
    'FieldExtractor',
    'ExtractionResult',
    'FieldName',
    'LineItem',
    'RecognizedField',
    'ConfidenceScorer',
    'ConfidenceTier',
    'AmountRange',
    'PatternRule',
    'HeuristicRule',
    'run_cascade',
]
