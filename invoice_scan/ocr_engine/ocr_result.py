"""
Recognition Output Data Class.

This module defines what a text recognizer hands to the field
extractor: the recognized text and a single confidence for the page.
"""

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class RecognitionOutput:
    """
    Text recognized from one invoice image.

    Attributes:
        text: Recognized text, lines separated by newlines
        confidence: Mean recognition confidence (0-1)
        engine: Name of the backend that produced the text
        language: Recognition language code
        processing_time: Recognition time in seconds
        metadata: Backend-specific details
    """
    text: str = ""
    confidence: float = 0.0
    engine: str = ""
    language: str = ""
    processing_time: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def line_count(self) -> int:
        return len([line for line in self.text.split("\n") if line.strip()])

    def is_empty(self) -> bool:
        """Check if no text was recognized."""
        return not self.text.strip()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'text': self.text,
            'confidence': self.confidence,
            'engine': self.engine,
            'language': self.language,
            'processing_time': self.processing_time,
            'metadata': self.metadata,
        }

    def __repr__(self) -> str:
        return (
            f"RecognitionOutput(lines={self.line_count}, "
            f"confidence={self.confidence:.2f}, engine={self.engine})"
        )
