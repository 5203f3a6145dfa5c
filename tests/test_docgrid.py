from __future__ import annotations

import pytest

from docgrid import (
    Cell, Column, GridConfig, ListingUnavailable, Policy, aggregate, build_axis,
    build_report, classify, extract_badge, month_range, resolve_columns,
)

DYNAMIC = GridConfig()
DICT = GridConfig(policy=Policy.DICTIONARY, dictionary=(("INV", "Invoices"), ("PAY", "Payroll")))


# ---------- Classifier ----------
@pytest.mark.parametrize("name", [
    "202401_Invoice.pdf",
    "202401_Invoice.PDF",
    "202401_Bank statement.xlsx",
    "/srv/docs/2024/202401_Invoice.jpeg",
    r"C:\docs\202401_Invoice.bmp",
])
def test_classify_accepts_convention(name):
    f = classify(name)
    assert f is not None
    assert f.period == "202401"
    assert f.source_path == name

@pytest.mark.parametrize("name", [
    "notes.txt",
    "20240_Invoice.pdf",
    "2024011_Invoice.pdf",
    "202401Invoice.pdf",
    "202401_.pdf",
    "202401_Invoice",
    "202401_Invoice.tar.gz",
    "202401_Invoice.docx",
    "202401_month.pdf",
    "",
])
def test_classify_rejects(name):
    assert classify(name) is None

def test_classify_fields():
    f = classify("/a/b/202402_Sales-Report.XLSX")
    assert (f.period, f.category, f.extension) == ("202402", "Sales-Report", ".xlsx")
    assert f.name == "202402_Sales-Report.XLSX"

def test_classify_respects_allowed_extensions():
    assert classify("202401_Invoice.csv", {"pdf"}) is None
    assert classify("202401_Invoice.pdf", {"pdf"}) is not None

def test_classify_keeps_illegal_month_token():
    assert classify("202413_Invoice.pdf").period == "202413"

@pytest.mark.parametrize("name,badge", [
    ("202401_INV_3-2.pdf", "3,2"),
    ("202401_INV_1-2x10-20.pdf", "10,20"),
    ("202401_Invoice.pdf", None),
    ("noextension_1-2", None),
    ("12-3.pdf", None),
])
def test_extract_badge(name, badge):
    assert extract_badge(name) == badge


# ---------- Period axis ----------
def test_month_range_rolls_over_year():
    assert month_range("202311", "202402") == ["202311", "202312", "202401", "202402"]

def test_month_range_single_and_reversed():
    assert month_range("202405", "202405") == ["202405"]
    assert month_range("202405", "202401") == []

def test_month_range_rejects_illegal_month():
    with pytest.raises(ValueError):
        month_range("202401", "202413")

def test_build_axis_properties():
    axis = build_axis(["202212", "202003", "202105", "202105"])
    assert axis[0] == "202003" and axis[-1] == "202212"
    assert len(axis) == 34
    assert len(set(axis)) == len(axis)
    assert axis == sorted(axis)

def test_build_axis_empty_and_illegal_only():
    assert build_axis([]) == []
    assert build_axis(["202413", "202400"]) == []


# ---------- Aggregator ----------
def test_aggregate_is_dense():
    files = [classify("202401_A.pdf"), classify("202403_B.pdf")]
    axis = build_axis(f.period for f in files)
    cols = resolve_columns(files, DYNAMIC)
    grid = aggregate(axis, cols, files, Policy.DYNAMIC)
    assert len(grid) == 3
    assert all(len(row) == 2 for row in grid)
    assert grid[1] == [Cell(), Cell()]
    for row in grid:
        for cell in row:
            assert cell.count == len(cell.files)

def test_dynamic_columns_sorted_case_sensitive():
    files = [classify(n) for n in ("202401_b.pdf", "202401_B.pdf", "202401_a.pdf")]
    assert [c.key for c in resolve_columns(files, DYNAMIC)] == ["B", "a", "b"]

def test_dictionary_columns_keep_config_order():
    assert resolve_columns([], DICT) == [Column("INV", "Invoices"), Column("PAY", "Payroll")]

def test_dictionary_file_counts_in_every_matching_column():
    report = build_report(["/d/202402_INV_PAY.pdf"], DICT)
    assert report.cell("202402", "INV").count == 1
    assert report.cell("202402", "PAY").count == 1

def test_dictionary_substring_anywhere_in_name():
    report = build_report(["/d/202402_monthly-INVOICE.pdf", "/d/202402_x-INV.pdf"], DICT)
    assert report.cell("202402", "INV").files == ("/d/202402_monthly-INVOICE.pdf", "/d/202402_x-INV.pdf")

def test_dictionary_unmatched_files_kept_aside():
    report = build_report(["/d/202402_Other.pdf"], DICT)
    assert report.months == ("202402",)
    assert report.counts("INV") == [0]
    assert report.unmatched == ("/d/202402_Other.pdf",)
    assert report.unprocessed == ()

def test_cell_states():
    assert Cell().state == "missing"
    assert Cell(("a.pdf",)).state == "ok"
    assert Cell(("a.pdf", "b.csv")).state == "duplicate"
    assert Cell(("a.PDF", "b.csv")).exts == [".pdf", ".csv"]

def test_cell_badge_only_for_single_file():
    assert Cell(("/d/202401_INV_3-2.pdf",)).badge == "3,2"
    assert Cell(("/d/202401_INV_3-2.pdf", "/d/202401_INV_4-1.pdf")).badge is None
    assert Cell().to_dict()["badge"] is None
    assert Cell(("/d/202401_INV_3-2.pdf",)).to_dict()["state"] == "ok"


# ---------- Scenarios ----------
def test_gap_month_appears_with_zero_count():
    report = build_report(["/d/202401_Invoice.pdf", "/d/202403_Invoice.pdf"], DYNAMIC)
    assert report.months == ("202401", "202402", "202403")
    assert report.counts("Invoice") == [1, 0, 1]

def test_same_category_different_extension_collapses():
    report = build_report(["/d/202401_Invoice.pdf", "/d/202401_Invoice.csv"], DYNAMIC)
    assert [c.key for c in report.columns] == ["Invoice"]
    cell = report.cell("202401", "Invoice")
    assert cell.count == 2
    assert cell.files == ("/d/202401_Invoice.pdf", "/d/202401_Invoice.csv")

def test_unconventional_name_only_in_unprocessed():
    report = build_report(["/d/notes.txt"], DYNAMIC)
    assert report.unprocessed == ("/d/notes.txt",)
    assert report.months == () and report.grid == ()

def test_empty_listing_gives_empty_report():
    assert build_report([], DYNAMIC).to_dict() == {
        "months": [], "columns": [], "grid": [], "unprocessedFiles": []}

def test_none_listing_is_unavailable():
    with pytest.raises(ListingUnavailable):
        build_report(None, DYNAMIC)

def test_illegal_month_goes_to_unprocessed():
    report = build_report(["/d/202401_Invoice.pdf", "/d/202413_Invoice.pdf"], DYNAMIC)
    assert report.months == ("202401",)
    assert report.unprocessed == ("/d/202413_Invoice.pdf",)
    assert report.counts("Invoice") == [1]


# ---------- Report ----------
def test_report_json_shape():
    data = build_report(["/d/202401_Invoice.PDF", "/d/202402_Bank.csv", "/d/readme"], DYNAMIC).to_dict()
    assert data["months"] == ["202401", "202402"]
    assert data["columns"] == [{"key": "Bank", "label": "Bank"}, {"key": "Invoice", "label": "Invoice"}]
    assert data["grid"][0] == {
        "month": "202401",
        "Bank": {"count": 0, "paths": [], "exts": [], "state": "missing", "badge": None},
        "Invoice": {"count": 1, "paths": ["/d/202401_Invoice.PDF"], "exts": [".pdf"],
                    "state": "ok", "badge": None},
    }
    assert [row["month"] for row in data["grid"]] == data["months"]
    assert data["unprocessedFiles"] == ["/d/readme"]

def test_pipeline_is_deterministic():
    listing = ["/d/202401_B.pdf", "/d/x.txt", "/d/202312_A.csv", "/d/202401_B.txt", "/d/202402_A.pdf"]
    first, second = build_report(listing, DYNAMIC), build_report(list(listing), DYNAMIC)
    assert first == second
    assert first.to_dict() == second.to_dict()

def test_grid_config_from_mapping():
    cfg = GridConfig.from_mapping({"policy": "Dictionary", "dictionary": {"INV": "Invoices"},
                                   "extensions": [".PDF", "csv"]})
    assert cfg.policy is Policy.DICTIONARY
    assert cfg.dictionary == (("INV", "Invoices"),)
    assert cfg.allowed_extensions == frozenset({"pdf", "csv"})

@pytest.mark.parametrize("raw", [
    {"policy": "fuzzy"},
    {"policy": "dictionary"},
    {"policy": "dictionary", "dictionary": {"month": "Month"}},
    {"dictionary": ["INV"]},
    {"extensions": "pdf"},
])
def test_grid_config_rejects_bad_values(raw):
    with pytest.raises(ValueError):
        GridConfig.from_mapping(raw)
