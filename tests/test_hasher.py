import hashlib
import re
from datetime import date, datetime

import pytest

from invoice_scan.integrity import (
    canonicalize,
    ensure_untampered,
    seal,
    seal_record,
    verify,
    verify_record,
)
from invoice_scan.utils.exceptions import HashGenerationError, TamperedRecordError


HEX_DIGEST = re.compile(r"^[0-9a-f]{64}$")


class TestCanonicalForm:
    def test_sorted_compact_json(self):
        assert canonicalize({"name": "A", "amount": 100}) == b'{"amount":100,"name":"A"}'

    def test_non_ascii_is_kept(self):
        assert canonicalize({"name": "株式会社"}) == '{"name":"株式会社"}'.encode("utf-8")

    def test_dates_are_iso_strings(self):
        record = {"d": date(2024, 3, 1), "t": datetime(2024, 3, 1, 9, 30)}
        assert canonicalize(record) == b'{"d":"2024-03-01","t":"2024-03-01T09:30:00"}'

    def test_digest_is_sha256_of_canonical_form(self):
        expected = hashlib.sha256(b'{"amount":100,"name":"A"}').hexdigest()
        assert seal({"name": "A", "amount": 100}) == expected


class TestSeal:
    def test_digest_format(self):
        assert HEX_DIGEST.match(seal({"name": "A"}))

    def test_key_order_does_not_matter(self):
        first = {"a": 1, "b": {"x": 1, "y": [1, {"p": 1, "q": 2}]}}
        second = {"b": {"y": [1, {"q": 2, "p": 1}], "x": 1}, "a": 1}
        assert seal(first) == seal(second)

    def test_top_level_hash_fields_are_ignored(self):
        record = {"name": "A", "amount": 100}
        stamped = dict(record, dataHash="abc", hashGeneratedAt="2024-01-01T00:00:00Z")
        assert seal(record) == seal(stamped)

    def test_nested_hash_fields_are_hashed(self):
        assert seal({"child": {"dataHash": "x"}}) != seal({"child": {}})

    def test_list_order_matters(self):
        assert seal({"items": [1, 2]}) != seal({"items": [2, 1]})

    @pytest.mark.parametrize("value", [object(), float("nan"), {1, 2}])
    def test_unhashable_values_raise(self, value):
        with pytest.raises(HashGenerationError):
            seal({"x": value})


class TestVerify:
    def test_detects_changed_value(self):
        digest = seal({"name": "A", "amount": 100})
        status = verify({"name": "A", "amount": 200}, digest)

        assert status.valid is False
        assert status.tampered is True
        assert status.current_digest != digest

    def test_unchanged_record_is_valid(self):
        digest = seal({"name": "A", "amount": 100})
        status = verify({"amount": 100, "name": "A"}, digest)

        assert status.valid is True
        assert status.current_digest == digest

    def test_unhashable_record_is_reported_not_raised(self):
        status = verify({"x": object()}, "0" * 64)

        assert status.valid is False
        assert status.current_digest == ""


class TestSealRecord:
    def test_attaches_hash_fields(self):
        sealed = seal_record({"id": "inv-1", "total": 15000})

        assert HEX_DIGEST.match(sealed["dataHash"])
        assert sealed["hashGeneratedAt"].endswith("Z")
        assert verify_record(sealed).valid

    def test_does_not_modify_input(self):
        record = {"id": "inv-1"}
        seal_record(record)
        assert record == {"id": "inv-1"}

    def test_nested_change_is_detected(self):
        sealed = seal_record({"id": "inv-1", "items": [{"amount": 100}]})
        sealed["items"][0]["amount"] = 101

        assert verify_record(sealed).valid is False

    def test_resealing_replaces_old_hash(self):
        sealed = seal_record({"id": "inv-1", "total": 100})
        sealed["total"] = 200
        resealed = seal_record(sealed)

        assert resealed["dataHash"] != sealed["dataHash"]
        assert verify_record(resealed).valid

    def test_record_without_hash_is_invalid(self):
        status = verify_record({"id": "inv-1"})

        assert status.valid is False
        assert status.stored_digest is None
        assert "no stored hash" in status.message

    @pytest.mark.parametrize("record", [["not", "a", "record"], "garbage", None, 42])
    def test_non_mapping_is_invalid(self, record):
        status = verify_record(record)

        assert status.valid is False
        assert status.current_digest == ""
        assert status.stored_digest is None


class TestEnsureUntampered:
    def test_intact_record_passes(self):
        status = ensure_untampered(seal_record({"id": "inv-1"}), "edit")
        assert status.valid

    @pytest.mark.parametrize("operation", ["edit", "send", "download", "delete"])
    def test_tampered_record_is_refused(self, operation):
        sealed = seal_record({"id": "inv-1", "total": 100})
        sealed["total"] = 1

        with pytest.raises(TamperedRecordError) as excinfo:
            ensure_untampered(sealed, operation, record_id="inv-1")

        assert excinfo.value.details["record_id"] == "inv-1"
        assert excinfo.value.details["stored_digest"] == sealed["dataHash"]

    def test_unsealed_record_is_refused(self):
        with pytest.raises(TamperedRecordError):
            ensure_untampered({"id": "inv-1"}, "send")

    def test_unguarded_operation_only_reports(self):
        sealed = seal_record({"id": "inv-1", "total": 100})
        sealed["total"] = 1

        assert ensure_untampered(sealed, "view").tampered
