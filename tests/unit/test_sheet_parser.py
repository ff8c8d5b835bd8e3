from __future__ import annotations

from boq_ingest.models.boq import Headline, LineItem
from boq_ingest.parser.classifier import HeadlineRow, LineItemRow
from boq_ingest.parser.sheet import (
    HeadlineAccumulator,
    find_header_row,
    find_package_name,
    fold_rows,
    parse_sheet,
)

HEADER = ["S.No", "Description", "Location", "Unit", "Qty"]


def test_parse_sheet_builds_headline_tree(boq_rows):
    outcome = parse_sheet(boq_rows, "Sheet1")
    assert outcome.warnings == ()
    sheet = outcome.sheet
    assert sheet is not None
    assert sheet.package_name == "PACKAGE A - CIVIL WORKS"
    assert [h.serial_number for h in sheet.headlines] == [1, 2]
    assert [h.name for h in sheet.headlines] == ["PCC WORK", "RCC WORK"]
    first = sheet.headlines[0]
    assert first.line_items == (
        LineItem("1.1", "Excavation", "Block A", "cum", 120.0),
        LineItem("1.2", "PCC 1:4:8", "", "cum", 45.5),
    )
    assert sheet.line_item_count == 3


def test_insufficient_rows_warns():
    outcome = parse_sheet([["Title"], HEADER], "Notes")
    assert outcome.sheet is None
    assert outcome.warnings == ('Sheet "Notes" has insufficient data',)


def test_missing_header_warns():
    rows = [["Title"], ["Description", "Unit", "Qty", "Rate"], [1, "PCC WORK"]]
    outcome = parse_sheet(rows, "Rates")
    assert outcome.sheet is None
    assert outcome.warnings == ('No header row found in sheet "Rates"',)


def test_header_without_headlines_warns():
    rows = [["Title"], HEADER, ["Note", "nothing here"], []]
    outcome = parse_sheet(rows, "Empty")
    assert outcome.sheet is None
    assert outcome.warnings == ('No BOQ headlines found in sheet "Empty"',)


def test_header_detection_variants():
    assert find_header_row([["x"], ["Sl.No", "a", "b", "c"]]) == 1
    assert find_header_row([["SNO", "a", "b", "c"]]) == 0
    assert find_header_row([[" S.No. ", "a", "b", "c"]]) == 0
    # fewer than four cells is not a header
    assert find_header_row([["S.No", "Description"]]) is None


def test_header_outside_scan_window_is_not_found():
    rows = [["filler"]] * 10 + [HEADER]
    assert find_header_row(rows) is None


def test_package_name_fallbacks():
    assert find_package_name([HEADER, [1, "PCC"]], "Sheet7") == "Sheet7"
    assert find_package_name([[None], ["  Package B  "]], "Sheet7") == "Package B"
    assert find_package_name([[12], [3.5]], "Sheet7") == "Sheet7"


def test_orphan_line_item_synthesizes_headline():
    rows = [["Package"], HEADER, [3.1, "Orphan", "", "nos", 2]]
    sheet = parse_sheet(rows, "S").sheet
    assert sheet is not None
    assert sheet.headlines == (
        Headline(3, "Item 3", (LineItem("3.1", "Orphan", "", "nos", 2.0),)),
    )


def test_duplicate_headline_serials_are_kept():
    headlines = fold_rows([[1, "A"], [1, "B"], [1.1, "x", "", "u", 1]])
    assert [h.name for h in headlines] == ["A", "B"]
    assert len(headlines[1].line_items) == 1


def test_accumulator_state_transitions():
    acc = HeadlineAccumulator()
    assert acc.step(None) is acc
    assert acc.current is None
    assert acc.step(HeadlineRow(1, "A")) is acc
    assert acc.current == Headline(1, "A")
    acc.step(LineItemRow("1.1", 1.1, "d", "", "u", 1.0))
    acc.step(HeadlineRow(2, "B"))
    assert acc.closed == [Headline(1, "A", (LineItem("1.1", "d", "", "u", 1.0),))]
    assert acc.current == Headline(2, "B")
    assert acc.finish() == (
        Headline(1, "A", (LineItem("1.1", "d", "", "u", 1.0),)),
        Headline(2, "B"),
    )


def test_fold_handles_large_sheets():
    rows = [[1, "BULK"]] + [[1 + i / 100000, f"item {i}", "", "nos", i] for i in range(1, 20001)]
    (headline,) = fold_rows(rows)
    assert len(headline.line_items) == 20000
    assert headline.line_items[-1].quantity == 20000.0


def test_header_at_row_two_with_trailing_empty_headline():
    rows = [
        ["PACKAGE B"],
        [],
        ["S.No", "Description", "Location", "Unit", "Qty"],
        [1, "PCC WORK", None, None, None],
        [1.1, "Excavation", "Block A", "cum", 120],
        [2, "BRICK WORK", None, None, None],
    ]
    sheet = parse_sheet(rows, "Sheet1").sheet
    assert sheet is not None
    first, second = sheet.headlines
    assert (first.serial_number, first.name) == (1, "PCC WORK")
    assert [(li.item_number, li.quantity) for li in first.line_items] == [("1.1", 120.0)]
    assert (second.serial_number, second.name) == (2, "BRICK WORK")
    assert second.line_items == ()


def test_parse_sheet_is_deterministic(boq_rows):
    assert parse_sheet(boq_rows, "S") == parse_sheet(boq_rows, "S")
