import pytest

from invoice_scan.extraction.text_normalizer import (
    merge_multiline_descriptions,
    normalize_ocr_text,
)


@pytest.mark.parametrize("raw, expected", [
    ("\\204.040", "204,040"),
    ("合計 15.000円", "合計 15,000円"),
    ("1.234.567", "1,234,567"),
    ("単価 1.5", "単価 1.5"),
    ("15,000", "15,000"),
])
def test_normalize_ocr_text(raw, expected):
    assert normalize_ocr_text(raw) == expected


def test_merges_description_split_inside_parentheses():
    lines = ["Web制作（9月", "分）  50,000", "保守 10,000"]

    assert merge_multiline_descriptions(lines) == ["Web制作（9月分）  50,000", "保守 10,000"]


def test_blank_lines_pass_through():
    assert merge_multiline_descriptions(["a", "", "b"]) == ["a", "", "b"]


def test_unbalanced_line_is_emitted_at_end():
    assert merge_multiline_descriptions(["項目（A", "続き"]) == ["項目（A続き"]
