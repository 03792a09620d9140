"""Spreadsheet and CSV rendering of sales reports."""

import csv
import io
from datetime import datetime
from decimal import Decimal

import pytest
from openpyxl import load_workbook

from pos_app.services import checkout_service, report_export, reporting_service
from pos_app.services.checkout_service import CartLine


@pytest.fixture
def report_with_sales(monkeypatch, cashier_user, make_product):
    coffee = make_product("Coffee", price_cents=2_500, stock=20)
    tea = make_product("Tea", price_cents=1_000, stock=20)

    monkeypatch.setattr(checkout_service, "utcnow", lambda: datetime(2024, 1, 15, 9, 30))
    checkout_service.checkout([CartLine(coffee.id, 2), CartLine(tea.id, 1)], "cash", cashier_user.id)
    monkeypatch.setattr(checkout_service, "utcnow", lambda: datetime(2024, 1, 16, 14, 0))
    checkout_service.checkout([CartLine(tea.id, 3)], "card", cashier_user.id)

    report = reporting_service.generate_report("2024-01-15", "2024-01-16")
    transactions = reporting_service.detailed_transactions(report.start, report.end)
    return report, transactions


def test_export_filename(report_with_sales):
    report, _ = report_with_sales
    assert report_export.export_filename(report, "xlsx") == "sales-report-2024-01-15-2024-01-16.xlsx"


def test_xlsx_has_labeled_sheets(report_with_sales):
    report, transactions = report_with_sales
    workbook = load_workbook(io.BytesIO(report_export.render_xlsx(report, transactions)))

    assert workbook.sheetnames == ["Summary", "Top Products", "Payment Methods", "Daily Sales", "Transactions"]

    summary = {row[0]: row[1] for row in workbook["Summary"].iter_rows(min_row=3, values_only=True) if row[0]}
    assert Decimal(str(summary["Total Sales"])) == Decimal("90.00")
    assert summary["Total Transactions"] == 2

    top = list(workbook["Top Products"].iter_rows(min_row=4, values_only=True))
    assert [row[1] for row in top] == ["Coffee", "Tea"]

    headers = next(workbook["Transactions"].iter_rows(min_row=3, max_row=3, values_only=True))
    assert headers[0] == "Date"
    detail_rows = list(workbook["Transactions"].iter_rows(min_row=4, values_only=True))
    assert len(detail_rows) == 3


def test_csv_sections_match_json(report_with_sales):
    report, transactions = report_with_sales
    rows = list(csv.reader(io.StringIO(report_export.render_csv(report, transactions))))
    titles = [row[0] for row in rows if len(row) == 1]

    assert titles == ["SUMMARY", "TOP PRODUCTS", "SALES BY PAYMENT METHOD", "DAILY SALES", "TRANSACTION DETAIL"]

    daily_start = rows.index(["DAILY SALES"]) + 2
    assert rows[daily_start] == ["2024-01-15", "1", "60.00"]
    assert rows[daily_start + 1] == ["2024-01-16", "1", "30.00"]


def test_empty_report_still_renders(db_session):
    report = reporting_service.generate_report("2024-02-01", "2024-02-02")
    workbook = load_workbook(io.BytesIO(report_export.render_xlsx(report, [])))
    assert workbook["Top Products"].max_row == 3

    text = report_export.render_csv(report, [])
    assert "TRANSACTION DETAIL" in text
