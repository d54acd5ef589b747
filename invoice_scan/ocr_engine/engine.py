"""
Text Recognizer Module.

This module provides the TextRecognizer class, the single entry point
for turning an invoice image into text. It owns exactly one backend
worker, created on first use and released on ``terminate()``.

Usage:
    from invoice_scan.ocr_engine import TextRecognizer

    with TextRecognizer() as recognizer:
        output = recognizer.recognize("invoice.png")
        print(output.text, output.confidence)
"""

import threading
from pathlib import Path
from typing import Any, Callable, Optional, Union

from PIL import Image

from config import get_config
from invoice_scan.utils.logger import get_logger
from invoice_scan.utils.exceptions import (
    InputError,
    RecognitionError,
    RecognitionUnavailableError,
)
from .ocr_result import RecognitionOutput
from .tesseract_backend import TesseractBackend

# Initialize module logger
logger = get_logger(__name__)

BackendFactory = Callable[[], Any]


class TextRecognizer:
    """
    Lifecycle owner of a single OCR worker.

    The worker is created lazily by ``initialize()`` (idempotent) or the
    first ``recognize()`` call, and released by ``terminate()``. All
    recognition calls on one instance are serialized through a lock, so
    concurrent callers queue instead of spawning extra workers.

    A backend is any object with ``recognize(image) -> RecognitionOutput``
    and, optionally, ``close()``.

    Attributes:
        backend_name: Name of the configured backend

    Example:
        >>> recognizer = TextRecognizer()
        >>> output = recognizer.recognize("invoice.png")
        >>> recognizer.terminate()
    """

    SUPPORTED_BACKENDS = ['tesseract']

    def __init__(
        self,
        backend: Optional[str] = None,
        backend_factory: Optional[BackendFactory] = None
    ) -> None:
        """
        Initialize the recognizer without starting a worker.

        Args:
            backend: Backend name. If None, uses configuration.
            backend_factory: Callable creating the worker. Overrides the
                named backend; mainly used to supply test doubles.
        """
        self.backend_name = backend or get_config("ocr.engine", "tesseract")

        if self.backend_name == "pytesseract":
            self.backend_name = "tesseract"

        self._backend_factory = backend_factory
        self._backend = None
        self._lock = threading.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._backend is not None

    def initialize(self) -> None:
        """
        Start the worker if it is not running yet.

        Raises:
            RecognitionUnavailableError: If the worker cannot be created.
        """
        with self._lock:
            self._ensure_backend()

    def _ensure_backend(self) -> None:
        if self._backend is None:
            self._backend = self._create_backend()
            logger.info(f"Text recognizer started with backend: {self.backend_name}")

    def _create_backend(self) -> Any:
        if self._backend_factory is not None:
            try:
                return self._backend_factory()
            except RecognitionError:
                raise
            except Exception as e:
                raise RecognitionUnavailableError(self.backend_name, str(e))

        if self.backend_name not in self.SUPPORTED_BACKENDS:
            logger.warning(
                f"Unknown backend '{self.backend_name}', falling back to tesseract"
            )
            self.backend_name = "tesseract"

        return TesseractBackend()

    def recognize(self, image: Union[Image.Image, str, Path]) -> RecognitionOutput:
        """
        Recognize text in an invoice image.

        Args:
            image: PIL Image or path to an image file.

        Returns:
            RecognitionOutput with text and confidence.

        Raises:
            InputError: If the image cannot be loaded.
            RecognitionUnavailableError: If the worker cannot be created
                or fails while recognizing.
        """
        image = self._load_image(image)

        with self._lock:
            self._ensure_backend()
            try:
                return self._backend.recognize(image)
            except RecognitionError:
                raise
            except Exception as e:
                logger.error(f"Recognition failed: {e}")
                raise RecognitionUnavailableError(self.backend_name, str(e))

    @staticmethod
    def _load_image(image: Union[Image.Image, str, Path]) -> Image.Image:
        if isinstance(image, (str, Path)):
            image_path = str(image)
            logger.debug(f"Loading image from: {image_path}")
            try:
                image = Image.open(image_path)
                image.load()
            except Exception as e:
                raise InputError(image_path, f"Failed to load image: {e}")

        if not isinstance(image, Image.Image):
            raise InputError(repr(type(image)), "Invalid image input")

        return image

    def terminate(self) -> None:
        """Release the worker. Safe to call when it was never started."""
        with self._lock:
            if self._backend is None:
                return
            backend, self._backend = self._backend, None

        close = getattr(backend, 'close', None)
        if close is not None:
            try:
                close()
            except Exception as e:
                logger.warning(f"Error while releasing OCR worker: {e}")
        logger.info("Text recognizer terminated")

    def __enter__(self) -> 'TextRecognizer':
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.terminate()
