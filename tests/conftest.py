"""
Shared pytest fixtures.

The configuration singleton is reset around every test, and OCR is
replaced with an in-process fake so no Tesseract install is needed.
"""

import logging
import threading
import time

import pytest

from config import ConfigurationManager
from invoice_scan.audit import Actor
from invoice_scan.ocr_engine import RecognitionOutput
from invoice_scan.storage import InMemoryKeyValueStore
from invoice_scan.utils.logger import LOGGER_NAMESPACE


SAMPLE_INVOICE_TEXT = """請求書
請求書番号: INV-2024-015
請求先
株式会社サンプル商事 御中
発行日 2024年4月1日
お支払期限 2024年4月30日
株式会社テックワークス
〒150-0001 東京都渋谷区神宮前1-2-3 TEL 03-1234-5678
登録番号 T1234567890123
品名 数量 単価 金額
Web制作 1式 100,000 100,000
保守費用 2ヶ月 25,000 50,000
小計 150,000
消費税 15,000
合計 165,000
振込先 みずほ銀行 渋谷支店 普通 1234567
口座名義 テックワークス"""


class FakeBackend:
    """Recognizer backend returning canned text."""

    def __init__(self, text="", confidence=0.9, error=None, delay=0.0):
        self.text = text
        self.confidence = confidence
        self.error = error
        self.delay = delay
        self.calls = 0
        self.closed = False
        self.active = 0
        self.max_active = 0
        self._counter_lock = threading.Lock()

    def recognize(self, image):
        with self._counter_lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return RecognitionOutput(text=self.text, confidence=self.confidence, engine="fake")
        finally:
            with self._counter_lock:
                self.active -= 1

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def reset_configuration():
    ConfigurationManager.reset()
    yield
    ConfigurationManager.reset()
    logging.getLogger(LOGGER_NAMESPACE).handlers.clear()


@pytest.fixture
def sample_invoice_text():
    return SAMPLE_INVOICE_TEXT


@pytest.fixture
def memory_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def actor():
    return Actor(user_id="u-001", user_name="佐藤")


@pytest.fixture
def fake_backend_factory():
    """Returns (factory, created) where ``created`` collects every backend built."""
    created = []

    def build(**kwargs):
        def factory():
            backend = FakeBackend(**kwargs)
            created.append(backend)
            return backend
        return factory

    return build, created


@pytest.fixture
def config_file(tmp_path):
    """Write a settings file and return its path."""
    def write(text):
        path = tmp_path / "settings.yaml"
        path.write_text(text, encoding="utf-8")
        return path
    return write
