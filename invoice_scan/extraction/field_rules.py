"""
Field Rule Tables.

This module holds the ordered rule cascade for every scalar invoice
field. Rules are listed most specific first; the extractor evaluates
each cascade independently and the first rule that yields a value wins.

Label-anchored patterns use the primary confidence tiers, unanchored
heuristics the fallback tiers (see ``confidence.ConfidenceTier``).
"""

import re
from typing import Callable, Dict, List, Optional, Tuple

from .confidence import ConfidenceTier
from .extraction_result import FieldName
from .rules import (
    AmountRange,
    ExtractionRule,
    HeuristicRule,
    PatternRule,
    collapse_whitespace,
    max_plausible_amount,
    strip_commas,
)

RuleTable = Dict[FieldName, Tuple[ExtractionRule, ...]]

# Character classes
KANA_KANJI = "ぁ-んァ-ヶー一-龠"
KATAKANA = "ァ-ヴー"
INLINE_SPACE = " \t　"
NAME_CHARS = KANA_KANJI + "a-zA-Z0-9０-９"
DASHES = "-−ー－"

# Labels are followed by any mix of separators, currency marks and "円"
AMOUNT_SEPARATOR = r"[:：\s¥\\￥円]*"
AMOUNT_TOKEN = r"([0-9,，]+)"

COMMA_GROUPED_NUMBER = re.compile(r"[0-9]{1,3}(?:[,，][0-9]{3})+")
PLAIN_NUMBER = re.compile(r"\b[0-9]{4,8}\b", re.ASCII)

# Client / party markers
HONORIFIC_LINE = re.compile(rf"^([^\n]+?)[{INLINE_SPACE}]*(?:様|御中|宛)", re.MULTILINE)
HONORIFIC_ONLY = re.compile(r"^(?:様|御中|殿)$")
TRAILING_HONORIFIC = re.compile(r"(?:様|御中|殿)$")
PARTY_LABEL_PREFIX = re.compile(r"^(?:請求先|宛先|宛名)[:：\s]*")
BILLING_LABEL = "請求先"
CORPORATE_FORM = re.compile(
    r"株\s*式\s*会\s*社|有\s*限\s*会\s*社|合\s*同\s*会\s*社|合\s*資\s*会\s*社"
    r"|一\s*般\s*社\s*団\s*法\s*人|財\s*団\s*法\s*人"
)

# Bank details
BANK_NAME = re.compile(
    rf"([{KANA_KANJI}A-Za-zＡ-Ｚ{INLINE_SPACE}]{{3,20}}銀[{INLINE_SPACE}]*行)"
)
TRANSFER_LABEL = re.compile(r"^(?:お?振込先|振込口座|お?支払先)")
BRANCH_NAME = re.compile(
    rf"([{KANA_KANJI}{INLINE_SPACE}]{{3,20}}支[{INLINE_SPACE}]*(?:店|所))"
)

# Issuer details
ISSUER_NAME_PATTERNS = (
    re.compile(rf"株式会社[{NAME_CHARS}]{{2,20}}"),
    re.compile(rf"[{NAME_CHARS}]{{2,20}}株式会社"),
)
POSTAL_ADDRESS = re.compile(
    rf"〒[{INLINE_SPACE}]*([0-9]{{3}}[{DASHES}]?[0-9]{{4}})[{INLINE_SPACE}]*([^\n]*)"
)
PREFECTURE_ADDRESS = re.compile(r"(?:東京都|北海道|(?:京都|大阪)府|[一-龠]{2,3}県)[^\n]+")
CONTACT_SUFFIX = re.compile(r"[\s]*(?:TEL|Tel|tel|電話|FAX|Fax).*$")

EMAIL_ADDRESS = r"(?<![a-zA-Z0-9._%+-])([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})"
EMAIL_LABEL = r"(?:E-?mail|mail|メール)[:：\s]*"

REGISTRATION_MISREAD_PREFIX = "TtＴイ1lLIi『｢「"
REGISTRATION_NUMBER = re.compile(r"T[0-9]{13}")
FULLWIDTH_DIGITS = str.maketrans("０１２３４５６７８９", "0123456789")


# =============================================================================
# VALUE NORMALIZERS
# =============================================================================

def clean_party_name(line: str) -> str:
    """Drop whitespace, a leading recipient label and a trailing honorific."""
    name = collapse_whitespace(line)
    name = PARTY_LABEL_PREFIX.sub("", name)
    name = TRAILING_HONORIFIC.sub("", name)
    return name.strip()


def clean_bank_name(value: str) -> str:
    """Drop whitespace and a transfer label that ran into the bank name."""
    return TRANSFER_LABEL.sub("", collapse_whitespace(value))


def normalize_dashes(value: str) -> str:
    return re.sub(f"[{DASHES}]", "-", value)


def normalize_account_holder(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip()


def normalize_registration_number(value: str) -> str:
    """
    Repair an OCR-read qualified invoice issuer number.

    The leading ``T`` is often misread (``イ``, ``1``, ``I``, brackets);
    a 14-character token whose first character is one of those is given
    its ``T`` back, and a bare 13-digit number gets one prepended.

    Example:
        >>> normalize_registration_number("イ１２３４５６７８９０１２３")
        'T1234567890123'
    """
    value = value.translate(FULLWIDTH_DIGITS)
    if len(value) == 14 and value[0] in REGISTRATION_MISREAD_PREFIX:
        value = "T" + value[1:]
    value = re.sub(r"[^T0-9]", "", value)
    if re.fullmatch(r"[0-9]{13}", value):
        value = "T" + value
    return value


def is_registration_number(value: str) -> bool:
    return REGISTRATION_NUMBER.fullmatch(value) is not None


def _contains_digit(value: str) -> bool:
    return any(ch.isdigit() for ch in value)


def _bounded(minimum: int, maximum: int, *markers: str) -> Callable[[str], bool]:
    """Accept values of the given length that contain one of ``markers``."""
    def accept(value: str) -> bool:
        if not minimum <= len(value) <= maximum:
            return False
        return not markers or any(marker in value for marker in markers)
    return accept


# =============================================================================
# ANCHORED SEARCHES
# =============================================================================

def text_after_client(text: str) -> str:
    """Text following the first ``…様 / 御中 / 宛`` recipient line."""
    match = HONORIFIC_LINE.search(text)
    return text[match.end():] if match else text


def _billing_candidates(text: str, search_lines: int) -> List[str]:
    """Non-empty lines right after a 請求先 label, honorific-only lines skipped."""
    lines = text.split("\n")
    for index, line in enumerate(lines):
        if BILLING_LABEL in collapse_whitespace(line):
            window = lines[index + 1:index + 1 + search_lines]
            return [
                candidate.strip() for candidate in window
                if candidate.strip() and not HONORIFIC_ONLY.match(candidate.strip())
            ]
    return []


def corporate_client_finder(search_lines: int) -> Callable[[str], Optional[str]]:
    def find_corporate_client(text: str) -> Optional[str]:
        for line in _billing_candidates(text, search_lines):
            if CORPORATE_FORM.search(line):
                return clean_party_name(line)
        return None
    return find_corporate_client


def billing_line_finder(search_lines: int) -> Callable[[str], Optional[str]]:
    def find_billing_line(text: str) -> Optional[str]:
        for line in _billing_candidates(text, search_lines):
            name = clean_party_name(line)
            if len(name) >= 2:
                return name
        return None
    return find_billing_line


def find_branch_after_bank(text: str) -> Optional[str]:
    """Branch name appearing after the bank name."""
    bank = BANK_NAME.search(text)
    if not bank:
        return None
    branch = BRANCH_NAME.search(text, bank.end())
    if not branch:
        return None
    value = collapse_whitespace(branch.group(1))
    return value if _bounded(3, 20, "支店", "支所")(value) else None


def find_issuer_name(text: str) -> Optional[str]:
    """Company name (株式会社 form) on a line after the recipient."""
    for line in text_after_client(text).split("\n"):
        compact = collapse_whitespace(line)
        for pattern in ISSUER_NAME_PATTERNS:
            match = pattern.search(compact)
            if match and 4 <= len(match.group(0)) <= 30:
                return match.group(0)
    return None


def _issuer_section(text: str) -> str:
    """Text from the issuer's name line onward, or the whole text."""
    issuer = find_issuer_name(text)
    section = text_after_client(text)
    if issuer:
        lines = section.split("\n")
        for index, line in enumerate(lines):
            if issuer in collapse_whitespace(line):
                return "\n".join(lines[index:])
    return text


def find_postal_address(text: str) -> Optional[str]:
    section = _issuer_section(text)
    match = POSTAL_ADDRESS.search(section)
    if not match:
        return None

    postal_code = normalize_dashes(match.group(1))
    remainder = CONTACT_SUFFIX.sub("", match.group(2)).strip()
    if not remainder:
        # Address continues on the next non-empty line
        for line in section[match.end():].split("\n"):
            line = CONTACT_SUFFIX.sub("", line).strip()
            if line:
                remainder = line
                break

    return f"〒{postal_code} {remainder}".strip()


def find_prefecture_address(text: str) -> Optional[str]:
    match = PREFECTURE_ADDRESS.search(_issuer_section(text))
    if not match:
        return None
    address = CONTACT_SUFFIX.sub("", match.group(0)).strip()
    return address or None


# =============================================================================
# RULE TABLE
# =============================================================================

def build_field_rules(
    amount_range: Optional[AmountRange] = None,
    client_search_lines: int = 3
) -> RuleTable:
    """
    Build the ordered rule cascade for every scalar field.

    Args:
        amount_range: Plausibility bounds for monetary fields.
        client_search_lines: How many lines after 請求先 to inspect.

    Returns:
        Mapping of FieldName to its rules, most specific first.
    """
    amount_range = amount_range or AmountRange()

    def amount_rule(pattern: str, confidence: float = ConfidenceTier.PRIMARY_STRONG) -> PatternRule:
        return PatternRule(
            pattern,
            confidence,
            normalize=strip_commas,
            accept=amount_range.contains,
            flags=re.IGNORECASE,
        )

    return {
        FieldName.INVOICE_NUMBER: (
            PatternRule(
                r"(?:請求書番号|請求書|Invoice|(?<![A-Za-z])No\.?)[:：#\t 　]*([A-Z0-9\-]+)",
                ConfidenceTier.PRIMARY,
                accept=_contains_digit,
                flags=re.IGNORECASE,
            ),
            PatternRule(
                r"(?<![A-Za-z0-9])([A-Z]{2,5}-[0-9]{2,}(?:-[0-9A-Z]+)*)",
                ConfidenceTier.FALLBACK,
            ),
        ),
        FieldName.CLIENT_NAME: (
            HeuristicRule(corporate_client_finder(client_search_lines), ConfidenceTier.PRIMARY_STRONG),
            PatternRule(
                HONORIFIC_LINE,
                ConfidenceTier.PRIMARY_WEAK,
                normalize=clean_party_name,
            ),
            HeuristicRule(billing_line_finder(client_search_lines), ConfidenceTier.FALLBACK_STRONG),
        ),
        FieldName.TOTAL: (
            amount_rule(rf"(?:合計|総額|御請求額|請求額|(?<![A-Za-z])Total){AMOUNT_SEPARATOR}{AMOUNT_TOKEN}"),
            amount_rule(rf"(?:金額|Amount){AMOUNT_SEPARATOR}{AMOUNT_TOKEN}"),
            amount_rule(rf"[¥￥]\s*{AMOUNT_TOKEN}\s*(?:円|JPY|yen)"),
            HeuristicRule(
                max_plausible_amount(COMMA_GROUPED_NUMBER, amount_range),
                ConfidenceTier.FALLBACK_STRONG,
            ),
            HeuristicRule(
                max_plausible_amount(PLAIN_NUMBER, amount_range),
                ConfidenceTier.FALLBACK_WEAK,
            ),
        ),
        FieldName.SUBTOTAL: (
            amount_rule(rf"(?:小計|Subtotal){AMOUNT_SEPARATOR}{AMOUNT_TOKEN}"),
            amount_rule(rf"(?:税抜き|税抜|税別){AMOUNT_SEPARATOR}{AMOUNT_TOKEN}"),
        ),
        FieldName.TAX: (
            amount_rule(rf"(?:消費税|税額|Tax){AMOUNT_SEPARATOR}{AMOUNT_TOKEN}"),
            amount_rule(rf"(?:税|VAT){AMOUNT_SEPARATOR}{AMOUNT_TOKEN}"),
        ),
        FieldName.BANK_NAME: (
            PatternRule(
                BANK_NAME,
                ConfidenceTier.PRIMARY,
                normalize=clean_bank_name,
                accept=_bounded(3, 20, "銀行"),
            ),
            PatternRule(
                rf"(?:お振込先|振込先|振込口座)[:：{INLINE_SPACE}]*([^\s:：]{{2,20}})",
                ConfidenceTier.FALLBACK,
                accept=lambda value: not value.isdigit(),
            ),
        ),
        FieldName.BRANCH_NAME: (
            HeuristicRule(find_branch_after_bank, ConfidenceTier.PRIMARY),
            PatternRule(
                BRANCH_NAME,
                ConfidenceTier.PRIMARY_WEAK,
                normalize=collapse_whitespace,
                accept=_bounded(3, 20, "支店", "支所"),
            ),
            PatternRule(
                rf"支店名[:：{INLINE_SPACE}]*([{KANA_KANJI}]{{2,10}})",
                ConfidenceTier.FALLBACK,
            ),
        ),
        FieldName.ACCOUNT_TYPE: (
            PatternRule(r"普通預金|普通|[Ss]avings", ConfidenceTier.PRIMARY,
                        group=0, normalize=lambda _: "普通預金"),
            PatternRule(r"当座預金|当座|[Cc]hecking", ConfidenceTier.PRIMARY,
                        group=0, normalize=lambda _: "当座預金"),
            PatternRule(
                r"(普|当)[\s:：]*[0-9]{7}(?![0-9])",
                ConfidenceTier.FALLBACK,
                normalize=lambda value: "普通預金" if value == "普" else "当座預金",
            ),
        ),
        FieldName.ACCOUNT_NUMBER: (
            PatternRule(
                r"(?:口座番号|口座No|Account)[:：\s#.]*([0-9]{5,8})(?![0-9])",
                ConfidenceTier.PRIMARY,
                flags=re.IGNORECASE,
            ),
            PatternRule(r"(?:No|NO)[:：\s.]*([0-9]{7})(?![0-9])", ConfidenceTier.PRIMARY),
            PatternRule(re.compile(r"\b([0-9]{7})\b", re.ASCII), ConfidenceTier.FALLBACK_STRONG),
        ),
        FieldName.ACCOUNT_HOLDER: (
            PatternRule(
                rf"(?:口座名義|名義人|名義)[:：\s]*([{KATAKANA}{INLINE_SPACE}]+)",
                ConfidenceTier.PRIMARY_WEAK,
                normalize=normalize_account_holder,
                accept=_bounded(1, 49),
            ),
            PatternRule(
                rf"(?:カナ氏名|カナ)[:：\s]*([{KATAKANA}{INLINE_SPACE}]+)",
                ConfidenceTier.PRIMARY_WEAK,
                normalize=normalize_account_holder,
                accept=_bounded(1, 49),
            ),
            PatternRule(
                re.compile(
                    rf"^[{INLINE_SPACE}]*([{KATAKANA}][{KATAKANA}{INLINE_SPACE}]{{2,29}})[{INLINE_SPACE}]*$",
                    re.MULTILINE,
                ),
                ConfidenceTier.FALLBACK,
                normalize=normalize_account_holder,
                accept=lambda value: value.strip("ー ") != "",
            ),
        ),
        FieldName.ISSUER_REGISTRATION_NUMBER: (
            PatternRule(
                r"(?:適格請求書発行事業者登録番号|登録番号|登録No\.?|登録ナンバー|RegistrationNumber"
                r"|Reg\.?No\.?|インボイス番号|InvoiceNo)[:：]*"
                r"([TtＴイ1lLIi『｢「]?[0-9０-９]{13,})",
                ConfidenceTier.PRIMARY_STRONG,
                normalize=normalize_registration_number,
                accept=is_registration_number,
                preprocess=collapse_whitespace,
                flags=re.IGNORECASE,
            ),
            PatternRule(
                r"(?:インボイス|Invoice|T番号)[:：]*([TtＴイ1lLIi『｢「]?[0-9０-９]{13,})",
                ConfidenceTier.PRIMARY_STRONG,
                normalize=normalize_registration_number,
                accept=is_registration_number,
                preprocess=collapse_whitespace,
                flags=re.IGNORECASE,
            ),
            PatternRule(
                r"(?<![0-9A-Za-z])([TtＴ][0-9０-９]{13})(?![0-9０-９])",
                ConfidenceTier.FALLBACK_STRONG,
                normalize=normalize_registration_number,
                accept=is_registration_number,
                preprocess=collapse_whitespace,
            ),
        ),
        FieldName.ISSUER_NAME: (
            HeuristicRule(find_issuer_name, ConfidenceTier.PRIMARY_WEAK),
        ),
        FieldName.ISSUER_ADDRESS: (
            HeuristicRule(find_postal_address, ConfidenceTier.PRIMARY_STRONG),
            HeuristicRule(find_prefecture_address, ConfidenceTier.PRIMARY_WEAK),
        ),
        FieldName.ISSUER_PHONE: (
            PatternRule(
                rf"(?:TEL|Tel|電話)[:：\s.]*([0-9]{{2,4}}[{DASHES}][0-9]{{2,4}}[{DASHES}][0-9]{{4}})",
                ConfidenceTier.PRIMARY,
                normalize=normalize_dashes,
                preprocess=text_after_client,
            ),
            PatternRule(
                rf"(?<![0-9])(0[0-9]{{1,3}}[{DASHES}][0-9]{{2,4}}[{DASHES}][0-9]{{4}})(?![0-9])",
                ConfidenceTier.FALLBACK_STRONG,
                normalize=normalize_dashes,
                preprocess=text_after_client,
            ),
        ),
        FieldName.ISSUER_EMAIL: (
            PatternRule(
                EMAIL_LABEL + EMAIL_ADDRESS,
                ConfidenceTier.PRIMARY,
                normalize=str.lower,
                preprocess=text_after_client,
                flags=re.IGNORECASE,
            ),
            PatternRule(
                EMAIL_ADDRESS,
                ConfidenceTier.FALLBACK_STRONG,
                normalize=str.lower,
                preprocess=text_after_client,
            ),
        ),
    }
