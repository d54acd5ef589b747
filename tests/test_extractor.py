import json

import pytest

from invoice_scan.extraction import ConfidenceScorer, FieldExtractor, FieldName
from invoice_scan.extraction.rules import AmountRange


@pytest.fixture
def extractor():
    return FieldExtractor()


class TestBasicInvoice:
    TEXT = "請求書番号: INV-001\n合計¥15,000\n2024年03月01日発行"

    def test_extracts_number_total_and_issue_date(self, extractor):
        result = extractor.extract(self.TEXT)

        assert result.get_value(FieldName.INVOICE_NUMBER) == "INV-001"
        assert result.get_confidence(FieldName.INVOICE_NUMBER) == 0.85
        assert result.get_value(FieldName.TOTAL) == "15000"
        assert result.get_confidence(FieldName.TOTAL) == 0.9
        assert result.get_value(FieldName.ISSUE_DATE) == "2024-03-01"
        assert result.get_confidence(FieldName.ISSUE_DATE) == 0.8

    def test_fields_are_sparse(self, extractor):
        result = extractor.extract(self.TEXT)

        assert set(result.fields) == {
            FieldName.INVOICE_NUMBER, FieldName.TOTAL, FieldName.ISSUE_DATE
        }
        assert FieldName.DUE_DATE in result.missing_fields
        assert "dueDate" not in result.to_dict()["extractedFields"]

    def test_overall_confidence_is_mean_of_fields(self, extractor):
        result = extractor.extract(self.TEXT)
        assert result.overall_confidence == pytest.approx((0.85 + 0.9 + 0.8) / 3)

    def test_recognition_confidence_is_used_verbatim(self, extractor):
        result = extractor.extract(self.TEXT, recognition_confidence=0.73)
        assert result.overall_confidence == 0.73

    def test_is_deterministic(self, extractor):
        first = extractor.extract(self.TEXT).to_dict()
        second = extractor.extract(self.TEXT).to_dict()
        first.pop("processingTime")
        second.pop("processingTime")
        assert first == second


class TestFullInvoice:
    def test_header_fields(self, extractor, sample_invoice_text):
        result = extractor.extract(sample_invoice_text)

        assert result.get_value(FieldName.INVOICE_NUMBER) == "INV-2024-015"
        assert result.get_value(FieldName.CLIENT_NAME) == "株式会社サンプル商事"
        assert result.get_confidence(FieldName.CLIENT_NAME) == 0.9
        assert result.get_value(FieldName.ISSUE_DATE) == "2024-04-01"
        assert result.get_value(FieldName.DUE_DATE) == "2024-04-30"

    def test_amounts(self, extractor, sample_invoice_text):
        result = extractor.extract(sample_invoice_text)

        assert result.get_value(FieldName.TOTAL) == "165000"
        assert result.get_value(FieldName.SUBTOTAL) == "150000"
        assert result.get_value(FieldName.TAX) == "15000"

    def test_bank_details(self, extractor, sample_invoice_text):
        result = extractor.extract(sample_invoice_text)

        assert result.get_value(FieldName.BANK_NAME) == "みずほ銀行"
        assert result.get_value(FieldName.BRANCH_NAME) == "渋谷支店"
        assert result.get_value(FieldName.ACCOUNT_TYPE) == "普通預金"
        assert result.get_value(FieldName.ACCOUNT_NUMBER) == "1234567"
        assert result.get_confidence(FieldName.ACCOUNT_NUMBER) == 0.6
        assert result.get_value(FieldName.ACCOUNT_HOLDER) == "テックワークス"

    def test_issuer_details(self, extractor, sample_invoice_text):
        result = extractor.extract(sample_invoice_text)

        assert result.get_value(FieldName.ISSUER_NAME) == "株式会社テックワークス"
        assert result.get_value(FieldName.ISSUER_REGISTRATION_NUMBER) == "T1234567890123"
        assert result.get_value(FieldName.ISSUER_ADDRESS) == "〒150-0001 東京都渋谷区神宮前1-2-3"
        assert result.get_value(FieldName.ISSUER_PHONE) == "03-1234-5678"

    def test_line_items(self, extractor, sample_invoice_text):
        items = extractor.extract(sample_invoice_text).line_items

        assert [item.description.value for item in items] == ["Web制作", "保守費用"]
        assert items[1].quantity.value == "2"
        assert items[1].unit_price.value == "25000"
        assert items[1].amount.value == "50000"

    def test_zero_line_items_is_honoured(self, sample_invoice_text):
        result = FieldExtractor(max_line_items=0).extract(sample_invoice_text)

        assert result.line_items == []
        assert result.get_value(FieldName.TOTAL) == "165000"

    def test_json_shape(self, extractor, sample_invoice_text):
        data = extractor.extract(sample_invoice_text).to_dict()

        assert set(data) == {"confidence", "processingTime", "extractedFields"}
        assert data["extractedFields"]["total"] == {"value": "165000", "confidence": 0.9}
        assert data["extractedFields"]["lineItems"][0]["unitPrice"]["value"] == "100000"

    def test_json_keeps_japanese_text(self, extractor, sample_invoice_text):
        result = extractor.extract(sample_invoice_text)

        assert result.has_field("clientName")
        assert json.loads(result.to_json()) == result.to_dict()
        assert "\\u" not in result.to_json()


class TestTotalCascade:
    def test_out_of_range_match_falls_through_to_next_pattern(self, extractor):
        result = extractor.extract("合計 50\n金額 3,000")

        assert result.get_value(FieldName.TOTAL) == "3000"
        assert result.get_confidence(FieldName.TOTAL) == 0.9

    def test_comma_grouped_fallback_takes_maximum(self, extractor):
        result = extractor.extract("ABC商店\n品代 12,500\n送料 1,000")

        assert result.get_value(FieldName.TOTAL) == "12500"
        assert result.get_confidence(FieldName.TOTAL) == 0.6
        assert ConfidenceScorer.is_fallback(result.get_confidence(FieldName.TOTAL))

    def test_plain_number_fallback(self, extractor):
        result = extractor.extract("伝票 4500\nページ 12")

        assert result.get_value(FieldName.TOTAL) == "4500"
        assert result.get_confidence(FieldName.TOTAL) == 0.4

    def test_implausible_amounts_are_never_returned(self, extractor):
        result = extractor.extract("合計 999,999,999")
        assert FieldName.TOTAL not in result.fields

    def test_total_is_not_read_from_subtotal_label(self, extractor):
        result = extractor.extract("Subtotal: 1,000\nTotal: 1,100")

        assert result.get_value(FieldName.SUBTOTAL) == "1000"
        assert result.get_value(FieldName.TOTAL) == "1100"

    def test_period_grouped_amount_is_repaired(self, extractor):
        result = extractor.extract("合計\\204.040")
        assert result.get_value(FieldName.TOTAL) == "204040"

    def test_custom_amount_range(self):
        extractor = FieldExtractor(amount_range=AmountRange(minimum=10, maximum=1000))
        result = extractor.extract("合計 50")
        assert result.get_value(FieldName.TOTAL) == "50"


class TestDates:
    def test_era_dates_use_fallback_confidence(self, extractor):
        result = extractor.extract("発行日 令和6年3月1日\n期限 令和6年3月31日")

        assert result.get_value(FieldName.ISSUE_DATE) == "2024-03-01"
        assert result.get_value(FieldName.DUE_DATE) == "2024-03-31"
        assert result.get_confidence(FieldName.ISSUE_DATE) == 0.5

    def test_first_era_year(self, extractor):
        result = extractor.extract("平成元年5月1日")
        assert result.get_value(FieldName.ISSUE_DATE) == "1989-05-01"

    def test_slash_dates_are_zero_padded(self, extractor):
        result = extractor.extract("2024/3/5")
        assert result.get_value(FieldName.ISSUE_DATE) == "2024-03-05"


class TestRegistrationNumber:
    def test_misread_prefix_is_corrected(self, extractor):
        result = extractor.extract("登録番号: イ1234567890123")
        assert result.get_value(FieldName.ISSUER_REGISTRATION_NUMBER) == "T1234567890123"

    def test_fullwidth_digits_are_converted(self, extractor):
        result = extractor.extract("登録番号 Ｔ１２３４５６７８９０１２３")
        assert result.get_value(FieldName.ISSUER_REGISTRATION_NUMBER) == "T1234567890123"


class TestRobustness:
    @pytest.mark.parametrize("raw", [None, "", "   \n\n", "！？…"])
    def test_empty_or_noise_input_yields_no_fields(self, extractor, raw):
        result = extractor.extract(raw)

        assert result.fields == {}
        assert result.line_items == []
        assert result.overall_confidence == 0.0

    def test_non_string_input_is_coerced(self, extractor):
        result = extractor.extract(12345)
        assert result.get_value(FieldName.TOTAL) == "12345"

    def test_processing_time_is_reported(self, extractor):
        result = extractor.extract("合計 1,000")
        assert result.processing_time_ms >= 0.0
