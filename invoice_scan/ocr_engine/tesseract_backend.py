"""
Tesseract OCR Backend.

This module provides text recognition using Tesseract (pytesseract).
It is the worker behind ``TextRecognizer``; the recognizer decides when
it is created and released.

Requirements:
    - Tesseract OCR installed on the system, with the configured
      language data (``jpn`` by default)
    - pytesseract Python package
"""

import time
from typing import Dict, List, Tuple

import pytesseract
from PIL import Image

from config import get_config
from invoice_scan.utils.logger import get_logger
from invoice_scan.utils.exceptions import RecognitionUnavailableError
from .ocr_result import RecognitionOutput

# Initialize module logger
logger = get_logger(__name__)


class TesseractBackend:
    """
    Tesseract OCR backend implementation.

    Attributes:
        language: Tesseract language code (e.g., "jpn")
        psm: Page Segmentation Mode (1-13)
        oem: OCR Engine Mode (0-3)
        extra_config: Additional Tesseract command line options

    Example:
        >>> backend = TesseractBackend()
        >>> output = backend.recognize(image)
        >>> print(f"confidence: {output.confidence:.2f}")
    """

    ENGINE_NAME = "tesseract"

    def __init__(self) -> None:
        """
        Initialize the Tesseract backend with configuration.

        Raises:
            RecognitionUnavailableError: If Tesseract is not installed.
        """
        self.language = get_config("ocr.tesseract.lang", "jpn")
        self.psm = get_config("ocr.tesseract.psm", 3)
        self.oem = get_config("ocr.tesseract.oem", 1)
        self.extra_config = get_config("ocr.tesseract.config", "")

        self.version = self._check_dependencies()

        logger.debug(
            f"TesseractBackend initialized (lang={self.language}, "
            f"psm={self.psm}, oem={self.oem})"
        )

    def _check_dependencies(self) -> str:
        """
        Check that the Tesseract binary is reachable.

        Returns:
            Tesseract version string.

        Raises:
            RecognitionUnavailableError: If Tesseract is not installed.
        """
        try:
            version = str(pytesseract.get_tesseract_version())
        except Exception as e:
            raise RecognitionUnavailableError(
                self.ENGINE_NAME,
                f"Tesseract OCR not installed or not in PATH: {e}"
            )

        logger.info(f"Tesseract version: {version}")
        return version

    def _build_config(self) -> str:
        """
        Build Tesseract configuration string.

        Returns:
            Configuration string for Tesseract.
        """
        config_parts = [
            f"--psm {self.psm}",
            f"--oem {self.oem}"
        ]

        if self.extra_config:
            config_parts.append(self.extra_config)

        return ' '.join(config_parts)

    def recognize(self, image: Image.Image) -> RecognitionOutput:
        """
        Recognize text in an image.

        Args:
            image: PIL Image to process.

        Returns:
            RecognitionOutput with text and mean word confidence.

        Raises:
            RecognitionUnavailableError: If Tesseract fails to run.
        """
        start_time = time.time()

        try:
            if image.mode != 'RGB':
                image = image.convert('RGB')

            config = self._build_config()
            logger.debug(f"Running Tesseract OCR (config: {config})")

            data = pytesseract.image_to_data(
                image,
                lang=self.language,
                config=config,
                output_type=pytesseract.Output.DICT
            )
        except Exception as e:
            logger.error(f"OCR processing failed: {e}")
            raise RecognitionUnavailableError(self.ENGINE_NAME, str(e))

        text, confidence = self._parse_tesseract_output(data)
        processing_time = time.time() - start_time

        output = RecognitionOutput(
            text=text,
            confidence=confidence,
            engine=self.ENGINE_NAME,
            language=self.language,
            processing_time=processing_time,
            metadata={
                'psm': self.psm,
                'oem': self.oem,
                'tesseract_version': self.version,
            }
        )

        logger.info(
            f"OCR completed: {output.line_count} lines, "
            f"confidence: {confidence:.2f} ({processing_time:.2f}s)"
        )
        return output

    def _parse_tesseract_output(self, data: Dict[str, List]) -> Tuple[str, float]:
        """
        Rebuild text lines and the mean confidence from image_to_data output.

        Args:
            data: Dictionary output from image_to_data.

        Returns:
            Tuple of (text, confidence in 0-1).
        """
        lines: Dict[Tuple[int, int, int], List[str]] = {}
        confidences: List[float] = []

        for i, word in enumerate(data['text']):
            if not word or not word.strip():
                continue

            key = (data['block_num'][i], data['par_num'][i], data['line_num'][i])
            lines.setdefault(key, []).append(word.strip())

            # Tesseract returns -1 for non-word elements
            conf = float(data['conf'][i])
            if conf >= 0:
                confidences.append(conf)

        text = "\n".join(" ".join(words) for _, words in sorted(lines.items()))
        confidence = sum(confidences) / len(confidences) / 100 if confidences else 0.0
        return text, confidence

    def close(self) -> None:
        """Tesseract runs as a subprocess per call; nothing to release."""
        logger.debug("TesseractBackend released")
