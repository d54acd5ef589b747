import json

import pytest

import main


@pytest.fixture
def memory_config(config_file):
    return str(config_file(
        "logging:\n  level: WARNING\n  console:\n    colorize: false\n"
        "storage:\n  backend: memory\n"
    ))


def run(capsys, *argv):
    code = main.main(list(argv))
    return code, capsys.readouterr().out


def write_json(path, data):
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
    return str(path)


def test_extract_from_text(capsys, tmp_path, memory_config):
    text_path = tmp_path / "invoice.txt"
    text_path.write_text("請求書番号: INV-001\n合計¥15,000\n2024年03月01日発行", encoding="utf-8")

    code, out = run(capsys, "--config", memory_config, "extract", "--text", str(text_path))
    fields = json.loads(out)["extractedFields"]

    assert code == 0
    assert fields["invoiceNumber"] == {"value": "INV-001", "confidence": 0.85}
    assert fields["total"]["value"] == "15000"


def test_extract_writes_output_file(capsys, tmp_path, memory_config):
    text_path = tmp_path / "invoice.txt"
    text_path.write_text("合計 1,000", encoding="utf-8")
    output = tmp_path / "out" / "result.json"

    code, out = run(capsys, "--config", memory_config, "extract", "--text", str(text_path),
                    "--output", str(output))

    assert code == 0
    assert out == ""
    assert json.loads(output.read_text(encoding="utf-8"))["extractedFields"]["total"]["value"] == "1000"


def test_extract_missing_text_file(capsys, tmp_path, memory_config):
    code, _ = run(capsys, "--config", memory_config, "extract", "--text", str(tmp_path / "nope.txt"))
    assert code == 2


def test_extract_requires_a_source(capsys):
    code, _ = run(capsys, "extract")
    assert code == 2


def test_seal_then_verify(capsys, tmp_path, memory_config):
    record_path = write_json(tmp_path / "record.json", {"name": "A", "amount": 100})

    code, out = run(capsys, "--config", memory_config, "seal", "--input", record_path)
    sealed = json.loads(out)
    assert code == 0
    assert len(sealed["dataHash"]) == 64

    sealed_path = write_json(tmp_path / "sealed.json", sealed)
    code, out = run(capsys, "--config", memory_config, "verify", "--input", sealed_path)
    assert code == 0
    assert json.loads(out)["valid"] is True


def test_verify_tampered_record(capsys, tmp_path, memory_config):
    record_path = write_json(tmp_path / "record.json", {"name": "A", "amount": 100})
    run(capsys, "--config", memory_config, "seal", "--input", record_path, "--output",
        str(tmp_path / "sealed.json"))

    sealed = json.loads((tmp_path / "sealed.json").read_text(encoding="utf-8"))
    sealed["amount"] = 200
    tampered_path = write_json(tmp_path / "tampered.json", sealed)

    code, out = run(capsys, "--config", memory_config, "verify", "--input", tampered_path)

    assert code == 1
    assert json.loads(out)["valid"] is False


def test_seal_rejects_non_object(capsys, tmp_path, memory_config):
    path = write_json(tmp_path / "list.json", [1, 2, 3])
    code, _ = run(capsys, "--config", memory_config, "seal", "--input", path)
    assert code == 2


def test_audit_on_empty_log(capsys, memory_config):
    code, out = run(capsys, "--config", memory_config, "audit", "--target-type", "invoice")

    assert code == 0
    assert json.loads(out) == []


def test_audit_rejects_bad_date(capsys, memory_config):
    code, _ = run(capsys, "--config", memory_config, "audit", "--since", "not-a-date")
    assert code == 2
