"""
Text Recognizer Adapter for Invoice Scan Core.

Wraps an OCR engine behind a small lifecycle object: the worker is
created on first use, shared by all calls, and released on shutdown.

Supported backends:
    - Tesseract (pytesseract)
"""

from .engine import TextRecognizer
from .tesseract_backend import TesseractBackend
from .ocr_result import RecognitionOutput

__all__ = ['TextRecognizer', 'TesseractBackend', 'RecognitionOutput']
