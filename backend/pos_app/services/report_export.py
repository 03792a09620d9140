# Overview: Renders a SalesReport as a downloadable XLSX workbook or CSV file.

from __future__ import annotations

import csv
import io

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from ..money import from_cents
from pos_app.time_utils import to_utc_z, utcnow

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV_MIMETYPE = "text/csv"

_HEADER_FONT = Font(bold=True, color="FFFFFF")
_HEADER_FILL = PatternFill(fill_type="solid", fgColor="4F81BD")
_THIN = Side(style="thin", color="000000")
_HEADER_BORDER = Border(top=_THIN, bottom=_THIN, left=_THIN, right=_THIN)

TOP_PRODUCT_HEADERS = ["Rank", "Product", "Qty Sold", "Revenue"]
PAYMENT_HEADERS = ["Payment Method", "Transactions", "Total"]
DAILY_HEADERS = ["Date", "Transactions", "Revenue"]
DETAIL_HEADERS = ["Date", "Transaction ID", "Receipt", "Cashier", "Payment Method", "Product", "Qty", "Subtotal", "Total"]


def export_filename(report, ext: str) -> str:
    return f"sales-report-{report.start.isoformat()}-{report.end.isoformat()}.{ext}"


def _summary_rows(report) -> list[list]:
    return [
        ["Period", f"{report.start.isoformat()} to {report.end.isoformat()}"],
        ["Generated At", to_utc_z(utcnow())],
        ["Total Sales", from_cents(report.total_sales_cents)],
        ["Total Transactions", report.total_transaction_count],
        ["Average per Transaction", from_cents(round(report.average_transaction_value_cents))],
    ]


def _top_product_rows(report) -> list[list]:
    return [
        [rank, row["name"], row["quantity"], from_cents(row["revenue_cents"])]
        for rank, row in enumerate(report.top_products, start=1)
    ]


def _payment_rows(report) -> list[list]:
    return [
        [row["method"].upper(), row["count"], from_cents(row["total_cents"])]
        for row in report.sales_by_payment_method
    ]


def _daily_rows(report) -> list[list]:
    return [
        [row["date"], row["transactions"], from_cents(row["revenue_cents"])]
        for row in report.daily_sales
    ]


def _detail_rows(transactions) -> list[list]:
    """One row per line item; transaction-level cells only on its first line."""
    rows = []
    for tx in transactions:
        receipt_number = tx.receipt.receipt_number if tx.receipt else ""
        cashier = tx.user.username if tx.user else ""
        for index, detail in enumerate(tx.details):
            first = index == 0
            rows.append([
                tx.transaction_date.date().isoformat() if first else "",
                tx.id if first else "",
                receipt_number if first else "",
                cashier if first else "",
                tx.payment_method.upper() if first else "",
                detail.product.name if detail.product else f"#{detail.product_id}",
                detail.quantity,
                from_cents(detail.subtotal_cents),
                from_cents(tx.total_price_cents) if first else "",
            ])
    return rows


def _write_table(sheet, title: str, headers: list[str], rows: list[list], widths: list[int]) -> None:
    sheet.append([title])
    sheet["A1"].font = Font(bold=True, size=14)
    sheet.append([])
    sheet.append(headers)
    for cell in sheet[3]:
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
        cell.border = _HEADER_BORDER
        cell.alignment = Alignment(horizontal="center", vertical="center")
    for row in rows:
        sheet.append(row)
    for index, width in enumerate(widths):
        sheet.column_dimensions[chr(ord("A") + index)].width = width


def render_xlsx(report, transactions) -> bytes:
    """Workbook with Summary, Top Products, Payment Methods, Daily Sales and Transactions sheets."""
    workbook = Workbook()

    summary = workbook.active
    summary.title = "Summary"
    summary.append(["SALES REPORT"])
    summary["A1"].font = Font(bold=True, size=16)
    summary.append([])
    for row in _summary_rows(report):
        summary.append(row)
    summary.column_dimensions["A"].width = 25
    summary.column_dimensions["B"].width = 30

    _write_table(
        workbook.create_sheet("Top Products"),
        "TOP PRODUCTS", TOP_PRODUCT_HEADERS, _top_product_rows(report), [10, 30, 15, 20],
    )
    _write_table(
        workbook.create_sheet("Payment Methods"),
        "SALES BY PAYMENT METHOD", PAYMENT_HEADERS, _payment_rows(report), [20, 20, 20],
    )
    _write_table(
        workbook.create_sheet("Daily Sales"),
        "DAILY SALES", DAILY_HEADERS, _daily_rows(report), [15, 20, 20],
    )
    _write_table(
        workbook.create_sheet("Transactions"),
        "TRANSACTION DETAIL", DETAIL_HEADERS, _detail_rows(transactions),
        [12, 14, 28, 15, 18, 25, 8, 15, 15],
    )

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def render_csv(report, transactions) -> str:
    """Single CSV with labeled sections separated by blank lines."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)

    sections = [
        ("SUMMARY", None, _summary_rows(report)),
        ("TOP PRODUCTS", TOP_PRODUCT_HEADERS, _top_product_rows(report)),
        ("SALES BY PAYMENT METHOD", PAYMENT_HEADERS, _payment_rows(report)),
        ("DAILY SALES", DAILY_HEADERS, _daily_rows(report)),
        ("TRANSACTION DETAIL", DETAIL_HEADERS, _detail_rows(transactions)),
    ]
    for index, (title, headers, rows) in enumerate(sections):
        if index:
            writer.writerow([])
        writer.writerow([title])
        if headers:
            writer.writerow(headers)
        writer.writerows(rows)

    return buffer.getvalue()
