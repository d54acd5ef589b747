from invoice_scan.extraction.line_items import LineItemExtractor


HEADER = "品名 数量 単価 金額"


def test_no_header_means_no_items():
    assert LineItemExtractor().extract("Web制作 1式 100,000 100,000") == []


def test_reads_rows_until_totals():
    text = "\n".join([
        HEADER,
        "デザイン費 1式 80,000 80,000",
        "合計 80,000",
        "別件 1式 5,000 5,000",
    ])
    items = LineItemExtractor().extract(text)

    assert len(items) == 1
    assert items[0].description.value == "デザイン費"
    assert items[0].description.confidence == 0.8
    assert items[0].quantity.value == "1"
    assert items[0].amount.value == "80000"
    assert items[0].amount.confidence == 0.6


def test_pending_description_joins_next_priced_row():
    text = "\n".join([
        HEADER,
        "システム開発費",
        "1式 300,000 300,000",
        "合計 300,000",
    ])
    items = LineItemExtractor().extract(text)

    assert len(items) == 1
    assert items[0].description.value == "システム開発費"
    assert items[0].amount.value == "300000"


def test_pending_description_takes_subtotal_as_amount():
    text = "\n".join([HEADER, "コンサルティング業務", "小計 80,000"])
    items = LineItemExtractor().extract(text, subtotal="80000", total="88000")

    assert len(items) == 1
    assert items[0].description.value == "コンサルティング業務"
    assert items[0].amount.value == "80000"
    assert items[0].unit_price is None


def test_payment_lines_are_skipped():
    text = "\n".join([
        HEADER,
        "お振込期限 2024年5月31日 10,000",
        "作業費 1式 10,000 10,000",
    ])
    items = LineItemExtractor().extract(text)

    assert [item.description.value for item in items] == ["作業費"]


def test_item_count_is_capped():
    rows = [f"作業{i} 1式 1,000 1,000" for i in range(12)]
    items = LineItemExtractor(max_items=10).extract("\n".join([HEADER] + rows))

    assert len(items) == 10


def test_pipe_table_header():
    text = "\n".join([
        "No | 作業 | 回数 | 料金",
        "撮影費 | 1 | 30,000",
    ])
    items = LineItemExtractor().extract(text)

    assert len(items) == 1
    assert items[0].description.value == "撮影費"
    assert items[0].amount.value == "30000"
