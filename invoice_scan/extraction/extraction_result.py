"""
Extraction Result Data Classes.

This module defines the data structures for invoice field extraction,
providing a standardized, sparse format for extracted fields.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional
import json

from .confidence import ConfidenceScorer


class FieldName(str, Enum):
    """Closed set of logical invoice fields the extractor can produce."""

    INVOICE_NUMBER = "invoiceNumber"
    CLIENT_NAME = "clientName"
    ISSUE_DATE = "issueDate"
    DUE_DATE = "dueDate"
    TOTAL = "total"
    SUBTOTAL = "subtotal"
    TAX = "tax"
    BANK_NAME = "bankName"
    BRANCH_NAME = "branchName"
    ACCOUNT_TYPE = "accountType"
    ACCOUNT_NUMBER = "accountNumber"
    ACCOUNT_HOLDER = "accountHolder"
    ISSUER_REGISTRATION_NUMBER = "issuerRegistrationNumber"
    ISSUER_NAME = "issuerName"
    ISSUER_ADDRESS = "issuerAddress"
    ISSUER_PHONE = "issuerPhone"
    ISSUER_EMAIL = "issuerEmail"


@dataclass
class RecognizedField:
    """
    A single extracted value with the confidence of the rule that found it.

    Attributes:
        value: Extracted value as a string
        confidence: Confidence score (0-1)
    """
    value: str
    confidence: float

    def to_dict(self) -> Dict[str, Any]:
        return {'value': self.value, 'confidence': self.confidence}


@dataclass
class LineItem:
    """One row of the invoice's item table."""
    description: RecognizedField
    quantity: Optional[RecognizedField] = None
    unit_price: Optional[RecognizedField] = None
    amount: Optional[RecognizedField] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {'description': self.description.to_dict()}
        if self.quantity is not None:
            data['quantity'] = self.quantity.to_dict()
        if self.unit_price is not None:
            data['unitPrice'] = self.unit_price.to_dict()
        if self.amount is not None:
            data['amount'] = self.amount.to_dict()
        return data


@dataclass
class ExtractionResult:
    """
    Represents the result of invoice field extraction.

    The ``fields`` mapping is sparse: a key is present only when some
    rule produced a value. A missing key is the only signal that a field
    was not found.

    Attributes:
        overall_confidence: Recognition confidence, or the mean field
            confidence when extraction ran on bare text
        processing_time_ms: Wall time spent producing this result
        fields: Extracted scalar fields keyed by FieldName
        line_items: Extracted item table rows

    Example:
        >>> result = ExtractionResult()
        >>> result.set_field(FieldName.TOTAL, "15000", 0.9)
        >>> result.get_value(FieldName.TOTAL)
        '15000'
        >>> print(result.to_json())
    """
    overall_confidence: float = 0.0
    processing_time_ms: float = 0.0
    fields: Dict[FieldName, RecognizedField] = field(default_factory=dict)
    line_items: List[LineItem] = field(default_factory=list)

    @property
    def missing_fields(self) -> List[FieldName]:
        """Fields for which no rule matched."""
        return [name for name in FieldName if name not in self.fields]

    @property
    def average_confidence(self) -> float:
        """
        Calculate average confidence across extracted scalar fields.

        Returns:
            Average confidence score (0-1), 0.0 when nothing was extracted.
        """
        return ConfidenceScorer.overall(f.confidence for f in self.fields.values())

    def has_field(self, name: FieldName) -> bool:
        return FieldName(name) in self.fields

    def get(self, name: FieldName) -> Optional[RecognizedField]:
        return self.fields.get(FieldName(name))

    def get_value(self, name: FieldName) -> Optional[str]:
        """
        Get the extracted value of a field.

        Args:
            name: FieldName member or its string value.

        Returns:
            The value, or None if the field is absent.
        """
        recognized = self.get(name)
        return recognized.value if recognized else None

    def get_confidence(self, name: FieldName) -> float:
        recognized = self.get(name)
        return recognized.confidence if recognized else 0.0

    def set_field(self, name: FieldName, value: str, confidence: float) -> None:
        """
        Set a field value with its confidence.

        Args:
            name: Field to set.
            value: Extracted value.
            confidence: Confidence score (0-1).
        """
        self.fields[FieldName(name)] = RecognizedField(value, confidence)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to the external JSON shape.

        Returns:
            ``{confidence, processingTime, extractedFields}`` where
            extractedFields holds only the fields that were found.
        """
        extracted = {
            name.value: recognized.to_dict()
            for name, recognized in self.fields.items()
        }
        if self.line_items:
            extracted['lineItems'] = [item.to_dict() for item in self.line_items]

        return {
            'confidence': self.overall_confidence,
            'processingTime': self.processing_time_ms,
            'extractedFields': extracted,
        }

    def to_json(self, indent: int = 2) -> str:
        """
        Convert to JSON string.

        Args:
            indent: JSON indentation level.

        Returns:
            JSON string representation.
        """
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def __repr__(self) -> str:
        return (
            f"ExtractionResult("
            f"fields={len(self.fields)}, "
            f"line_items={len(self.line_items)}, "
            f"confidence={self.overall_confidence:.2f})"
        )
