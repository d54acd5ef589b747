"""
Line Item Extraction.

Finds the item table on an invoice (a header line naming the item,
quantity and price columns) and reads the rows below it until the
totals section starts.
"""

import re
from typing import List, Optional

from invoice_scan.utils.logger import get_logger
from .confidence import ConfidenceTier
from .extraction_result import LineItem, RecognizedField
from .text_normalizer import merge_multiline_descriptions

logger = get_logger(__name__)

TOTALS_LINE = re.compile(
    r"^(?:合計|小計|消費税|税額|総額|御請求額|税|Total|Subtotal|Tax)", re.IGNORECASE
)
SUBJECT_LINE = re.compile(r"件\s*名\s*[:：]")
ITEM_COLUMN = re.compile(r"品\s*名|摘\s*要|商\s*品|品\s*目|内\s*容|項\s*目")
QUANTITY_COLUMN = re.compile(r"数\s*量|個\s*数|qty|quantity", re.IGNORECASE)
PRICE_COLUMN = re.compile(r"金\s*額|単\s*価")
NON_ITEM_LINE = re.compile(
    r"支払|振込|期限|銀行|支店|口座|名義|登録番号|TEL|FAX|担当|〒|住所|※", re.IGNORECASE
)
SEPARATOR_ONLY = re.compile(r"^[\s|]+$")
NUMBERS_ONLY = re.compile(r"^[¥\\￥,，0-9\s|]+$")
PRICE = re.compile(r"[¥\\￥]\s*[0-9,，]+|[0-9]{1,3}(?:[,，][0-9]{3})+")
HAS_WORDS = re.compile(r"[ぁ-んァ-ヶー一-龠a-zA-Z]")

COMMA_NUMBER = re.compile(r"\\?[0-9]{1,3}(?:[,，][0-9]{3})+")
LARGE_NUMBER = re.compile(r"\\?[0-9]{4,}")
DESCRIPTION = re.compile(r"^([ぁ-んァ-ヶー一-龠a-zA-Z0-9０-９\s（）()【】・\-/]+)")
NON_NUMERIC_PREFIX = re.compile(r"^([^0-9\\¥￥]+)")
EMPTY_PARENS = re.compile(r"\(\s*\)|（\s*）")
LEADING_NUMBERING = re.compile(r"^[0-9０-９]+[\s　]*")
UNITS = r"(?:式|個|件|台|本|枚|時間|ヶ月|ケ月)"
TRAILING_NUMBERS = re.compile(rf"(?:\s+[0-9０-９.]+(?:%|{UNITS})?)+$")
QUANTITY = re.compile(
    r"[0-9]+%\s+([0-9]{1,4})(?![0-9,，])"
    rf"|(?<![0-9,，])\b([0-9]{{1,4}})\s*{UNITS}"
)


class LineItemExtractor:
    """
    Extracts item rows from recognized invoice text.

    Rows without a price are held as pending descriptions (item names
    that wrapped onto their own line) and joined with the next priced row.

    Example:
        >>> extractor = LineItemExtractor()
        >>> items = extractor.extract(text)
        >>> items[0].description.value
        'Web制作（9月分）'
    """

    def __init__(self, max_items: int = 10) -> None:
        self.max_items = max_items

    def extract(
        self,
        text: str,
        subtotal: Optional[str] = None,
        total: Optional[str] = None
    ) -> List[LineItem]:
        """
        Extract line items from text.

        Args:
            text: Normalized recognized text.
            subtotal: Already extracted subtotal, used as the amount when
                only a description could be read.
            total: Already extracted total, second choice for that amount.

        Returns:
            Up to ``max_items`` line items, possibly empty.
        """
        if self.max_items < 1:
            return []

        lines = merge_multiline_descriptions(text.split("\n"))
        header_index = self._find_header(lines)
        if header_index is None:
            return []

        items: List[LineItem] = []
        pending = ""

        for raw_line in lines[header_index + 1:]:
            line = raw_line.strip()
            if not line:
                continue
            if TOTALS_LINE.match(line):
                break
            if NON_ITEM_LINE.search(line):
                continue
            if SEPARATOR_ONLY.match(line) or NUMBERS_ONLY.match(line):
                continue

            if PRICE.search(line):
                row = f"{pending} {line}" if pending else line
                pending = ""
                item = self._parse_row(row)
                if item is not None:
                    items.append(item)
            elif HAS_WORDS.search(line):
                pending = f"{pending} {line}" if pending else line

            if len(items) >= self.max_items:
                break

        if pending and not items:
            amount = subtotal or total
            if amount:
                item = self._parse_row(f"{pending} {amount} {amount}")
                if item is not None:
                    items.append(item)

        logger.debug(f"Extracted {len(items)} line items")
        return items

    def _find_header(self, lines: List[str]) -> Optional[int]:
        for index, line in enumerate(lines):
            stripped = line.strip()
            if not stripped or TOTALS_LINE.match(stripped) or SUBJECT_LINE.search(stripped):
                continue

            is_column_header = (
                ITEM_COLUMN.search(stripped)
                and QUANTITY_COLUMN.search(stripped)
                and PRICE_COLUMN.search(stripped)
            )
            is_pipe_table = len(stripped.split("|")) >= 4
            if is_column_header or is_pipe_table:
                return index
        return None

    def _parse_row(self, line: str) -> Optional[LineItem]:
        normalized = re.sub(r"\s+", " ", line).strip()
        description = self._parse_description(normalized)
        if not 2 <= len(description) <= 100:
            return None

        numbers: List[str] = []
        for token in COMMA_NUMBER.findall(normalized):
            cleaned = re.sub(r"[\\,，]", "", token)
            if len(cleaned) >= 3:
                numbers.append(cleaned)
        for token in LARGE_NUMBER.findall(normalized):
            cleaned = token.replace("\\", "")
            if cleaned not in numbers:
                numbers.append(cleaned)

        unit_price = amount = None
        if len(numbers) >= 2:
            unit_price, amount = numbers[0], numbers[-1]
        elif numbers:
            amount = numbers[0]

        quantity_match = QUANTITY.search(normalized)
        quantity = None
        if quantity_match:
            quantity = quantity_match.group(1) or quantity_match.group(2)

        return LineItem(
            description=RecognizedField(description, ConfidenceTier.PRIMARY_WEAK),
            quantity=self._numeric_field(quantity),
            unit_price=self._numeric_field(unit_price),
            amount=self._numeric_field(amount),
        )

    @staticmethod
    def _parse_description(normalized: str) -> str:
        cleaned = COMMA_NUMBER.sub("", normalized)
        cleaned = LARGE_NUMBER.sub("", cleaned)
        cleaned = re.sub(r"\s+", " ", cleaned).strip()

        description = ""
        match = DESCRIPTION.match(cleaned)
        if match:
            description = re.sub(r"\s+", " ", match.group(1)).strip()
            description = EMPTY_PARENS.sub("", description).strip()

        if len(description) < 2:
            match = NON_NUMERIC_PREFIX.match(normalized)
            if match:
                description = re.sub(r"\s+", " ", match.group(1)).strip()

        description = LEADING_NUMBERING.sub("", description)
        description = TRAILING_NUMBERS.sub("", description)
        return description.strip()

    @staticmethod
    def _numeric_field(value: Optional[str]) -> Optional[RecognizedField]:
        if not value:
            return None
        return RecognizedField(value, ConfidenceTier.FALLBACK_STRONG)
