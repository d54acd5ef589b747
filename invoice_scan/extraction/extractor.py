"""
Invoice Field Extractor Module.

This module provides the FieldExtractor class that turns OCR-recognized
invoice text into a sparse, confidence-scored ExtractionResult.

Approach:
    Every field has an ordered cascade of rules (label-anchored patterns
    first, heuristic fallbacks last, see ``field_rules``). Dates are
    assigned by position and line items are read from the item table.

Extraction is a pure function of the input text: no state is shared
between calls, and no input makes it raise. A field that no rule can
find is simply absent from the result.
"""

import re
import time
from typing import Any, List, Optional

from config import get_config
from invoice_scan.utils.logger import get_logger
from .confidence import ConfidenceScorer, ConfidenceTier
from .extraction_result import ExtractionResult, FieldName
from .field_rules import RuleTable, build_field_rules
from .line_items import LineItemExtractor
from .rules import AmountRange, run_cascade
from .text_normalizer import normalize_ocr_text

# Initialize module logger
logger = get_logger(__name__)

GREGORIAN_DATE = re.compile(r"([0-9]{4})[年/\-]([0-9]{1,2})[月/\-]([0-9]{1,2})日?")
ERA_DATE = re.compile(
    r"(令和|平成|昭和)\s*([0-9]{1,2}|元)\s*年\s*([0-9]{1,2})\s*月\s*([0-9]{1,2})\s*日"
)
ERA_FIRST_YEAR = {"令和": 2019, "平成": 1989, "昭和": 1926}


class FieldExtractor:
    """
    Rule-based invoice field extractor.

    Attributes:
        amount_range: Plausibility bounds for monetary fields
        normalize_text: Whether OCR number repairs run before matching
        field_rules: Ordered rule cascade per scalar field
        line_item_extractor: Reader for the item table

    Example:
        >>> extractor = FieldExtractor()
        >>> result = extractor.extract("請求書番号: INV-001\\n合計¥15,000")
        >>> result.get_value(FieldName.TOTAL)
        '15000'
        >>> result.get_confidence(FieldName.TOTAL)
        0.9
    """

    def __init__(
        self,
        amount_range: Optional[AmountRange] = None,
        normalize_text: Optional[bool] = None,
        max_line_items: Optional[int] = None,
        client_search_lines: Optional[int] = None
    ) -> None:
        """
        Initialize the extractor.

        Args:
            amount_range: Monetary plausibility bounds. If None, uses config.
            normalize_text: Repair OCR number formatting before matching.
            max_line_items: Maximum item rows to read.
            client_search_lines: Lines after 請求先 searched for the client.
        """
        self.amount_range = amount_range or AmountRange(
            minimum=get_config("extraction.amount.min", 100),
            maximum=get_config("extraction.amount.max", 100_000_000),
        )
        if normalize_text is None:
            normalize_text = get_config("extraction.normalize_text", True)
        self.normalize_text = normalize_text

        self.field_rules: RuleTable = build_field_rules(
            self.amount_range,
            client_search_lines if client_search_lines is not None
            else get_config("extraction.client.search_lines", 3),
        )
        self.line_item_extractor = LineItemExtractor(
            max_line_items if max_line_items is not None
            else get_config("extraction.line_items.max_items", 10)
        )

        logger.debug(
            f"FieldExtractor initialized (amounts {self.amount_range.minimum}-"
            f"{self.amount_range.maximum}, {len(self.field_rules)} field cascades)"
        )

    def extract(
        self,
        raw_text: Any,
        recognition_confidence: Optional[float] = None
    ) -> ExtractionResult:
        """
        Extract invoice fields from recognized text.

        Args:
            raw_text: Recognized text. None is treated as empty and other
                non-string values are converted with ``str``.
            recognition_confidence: Confidence reported by the recognizer.
                Used as the overall confidence when given; otherwise the
                mean field confidence is used.

        Returns:
            ExtractionResult holding only the fields that were found.
        """
        start_time = time.perf_counter()
        result = ExtractionResult()
        text = self._prepare_text(raw_text)

        for field_name, rules in self.field_rules.items():
            try:
                recognized = run_cascade(rules, text)
            except Exception as e:
                logger.debug(f"Rule evaluation failed for {field_name.value}: {e}")
                continue
            if recognized is not None:
                result.fields[field_name] = recognized

        try:
            self._extract_dates(text, result)
        except Exception as e:
            logger.debug(f"Date extraction failed: {e}")

        try:
            result.line_items = self.line_item_extractor.extract(
                text,
                subtotal=result.get_value(FieldName.SUBTOTAL),
                total=result.get_value(FieldName.TOTAL),
            )
        except Exception as e:
            logger.debug(f"Line item extraction failed: {e}")

        if recognition_confidence is not None:
            result.overall_confidence = ConfidenceScorer.clamp(recognition_confidence)
        else:
            result.overall_confidence = result.average_confidence

        result.processing_time_ms = (time.perf_counter() - start_time) * 1000

        logger.info(
            f"Extraction complete: {len(result.fields)}/{len(FieldName)} fields, "
            f"{len(result.line_items)} line items, "
            f"confidence: {result.overall_confidence:.2f}, "
            f"time: {result.processing_time_ms:.1f}ms"
        )
        return result

    def _prepare_text(self, raw_text: Any) -> str:
        if raw_text is None:
            return ""
        try:
            text = raw_text if isinstance(raw_text, str) else str(raw_text)
        except Exception as e:
            logger.warning(f"Could not convert input to text: {e}")
            return ""

        text = text.replace("\r\n", "\n").replace("\r", "\n")
        if self.normalize_text:
            text = normalize_ocr_text(text)
        return text

    def _extract_dates(self, text: str, result: ExtractionResult) -> None:
        """
        Assign dates by position: the first is the issue date, the
        second the due date. No check is made that they are in order.
        """
        dates, confidence = self._find_gregorian_dates(text), ConfidenceTier.PRIMARY_WEAK
        if not dates:
            dates, confidence = self._find_era_dates(text), ConfidenceTier.FALLBACK

        if dates:
            result.set_field(FieldName.ISSUE_DATE, dates[0], confidence)
        if len(dates) > 1:
            result.set_field(FieldName.DUE_DATE, dates[1], confidence)

    @staticmethod
    def _find_gregorian_dates(text: str) -> List[str]:
        return [
            _format_date(int(year), int(month), int(day))
            for year, month, day in GREGORIAN_DATE.findall(text)
        ]

    @staticmethod
    def _find_era_dates(text: str) -> List[str]:
        dates = []
        for era, era_year, month, day in ERA_DATE.findall(text):
            year_in_era = 1 if era_year == "元" else int(era_year)
            year = ERA_FIRST_YEAR[era] + year_in_era - 1
            dates.append(_format_date(year, int(month), int(day)))
        return dates


def _format_date(year: int, month: int, day: int) -> str:
    return f"{year:04d}-{month:02d}-{day:02d}"
