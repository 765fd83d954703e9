"""Spreadsheet export of classified receipts.

Produces an .xlsx workbook with a per-category summary sheet and an itemized
sheet. Only completed records are exported.
"""

import io
from collections.abc import Iterable

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

from taxease.shared.errors import NothingToExportError
from taxease.shared.models import InvoiceRecord, RecordStatus

EXPORT_FILENAME = "Tax_Return_Summary.xlsx"
SUMMARY_SHEET = "Tax Summary"
DETAIL_SHEET = "Itemized Invoices"

SUMMARY_HEADERS = ("Tax Deduction Category", "Total Deductible Amount")
DETAIL_HEADERS = (
    "Date",
    "Vendor",
    "Description",
    "Tax Category",
    "Amount",
    "Currency",
    "Confidence",
    "File Name",
)


def category_totals(records: Iterable[InvoiceRecord]) -> dict[str, float]:
    """Sum completed amounts per category, highest spend first.

    Categories with equal totals keep their first-seen order.
    """
    totals: dict[str, float] = {}
    for record in records:
        if record.status is RecordStatus.COMPLETED:
            category = record.tax_category.value
            totals[category] = totals.get(category, 0.0) + record.total_amount
    return dict(sorted(totals.items(), key=lambda item: item[1], reverse=True))


def build_workbook(records: Iterable[InvoiceRecord]) -> Workbook:
    """Build the export workbook.

    Raises:
        NothingToExportError: If no record has completed classification
    """
    completed = [r for r in records if r.status is RecordStatus.COMPLETED]
    if not completed:
        raise NothingToExportError("No valid data to export.")

    workbook = Workbook()
    summary = workbook.active
    summary.title = SUMMARY_SHEET
    summary.append(SUMMARY_HEADERS)
    for category, total in category_totals(completed).items():
        summary.append((category, total))

    detail = workbook.create_sheet(DETAIL_SHEET)
    detail.append(DETAIL_HEADERS)
    for record in completed:
        detail.append(
            (
                record.invoice_date,
                record.vendor_name,
                record.description,
                record.tax_category.value,
                record.total_amount,
                record.currency,
                f"{record.confidence_score:g}%",
                record.filename,
            )
        )

    for sheet in (summary, detail):
        _fit_columns(sheet)
    return workbook


def export_workbook_bytes(records: Iterable[InvoiceRecord]) -> bytes:
    """Render the export workbook as .xlsx bytes.

    Raises:
        NothingToExportError: If no record has completed classification
    """
    buffer = io.BytesIO()
    build_workbook(records).save(buffer)
    return buffer.getvalue()


def _fit_columns(sheet) -> None:  # type: ignore[no-untyped-def]
    for index, column in enumerate(sheet.iter_cols(values_only=True), start=1):
        width = max(len(str(value)) for value in column if value is not None)
        sheet.column_dimensions[get_column_letter(index)].width = min(width + 2, 60)
