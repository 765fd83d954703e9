"""Classify a folder of receipts and write the tax summary workbook.

Runs every file of the folder as one batch: JSON files are imported as vendor
rules first, everything else is classified one receipt at a time with the
configured provider.

Usage:
    python scripts/analyze_folder.py receipts/ --output Tax_Return_Summary.xlsx

Requirements:
    - OPENAI_API_KEY environment variable set for the openai provider
    - Or APP_CLASSIFICATION_PROVIDER=ollama with a running Ollama server
"""

import asyncio
import logging
from pathlib import Path

from taxease.export.workbook import EXPORT_FILENAME, export_workbook_bytes
from taxease.ingestion.batch import BatchReport
from taxease.ingestion.session import AnalyzerSession, build_session
from taxease.shared.config import get_settings
from taxease.shared.errors import NothingToExportError
from taxease.shared.models import InvoiceRecord, RecordStatus, UploadedFile

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def load_folder(folder: Path) -> list[UploadedFile]:
    """Read every regular, non-hidden file of a folder, sorted by name.

    Args:
        folder: Directory holding receipts and rule files

    Returns:
        Files in name order
    """
    files = []
    for path in sorted(folder.iterdir()):
        if path.is_file() and not path.name.startswith("."):
            files.append(UploadedFile(filename=path.name, content=path.read_bytes()))
    return files


def format_progress(record: InvoiceRecord) -> str:
    """One progress line for a record transition."""
    if record.status is RecordStatus.COMPLETED:
        return (
            f"[done]  {record.filename}: {record.vendor_name} "
            f"{record.total_amount:.2f} {record.currency} -> {record.tax_category.value}"
        )
    if record.status is RecordStatus.ERROR:
        return f"[error] {record.filename}: {record.error_message}"
    return f"[{record.status.value}] {record.filename}"


async def run_batch(session: AnalyzerSession, files: list[UploadedFile]) -> BatchReport:
    """Run one batch to completion, printing each record transition."""

    def show(changed: tuple[InvoiceRecord, ...]) -> None:
        for record in changed:
            print(format_progress(record))

    unsubscribe = session.records.subscribe(show)
    try:
        return await session.coordinator.ingest(files, wait=True)
    finally:
        unsubscribe()


def main(folder: Path, output: Path) -> int:
    """Analyze a folder and write the workbook.

    Returns:
        Process exit code
    """
    session = build_session(get_settings())
    files = load_folder(folder)
    if not files:
        logger.error(f"No files found in {folder}")
        return 1

    report = asyncio.run(run_batch(session, files))
    for failure in report.rule_file_errors:
        logger.warning(f"Rule file {failure.filename} skipped: {failure.error}")
    for notice in report.notices:
        logger.info(notice)

    stats = session.stats()
    print("=" * 60)
    print(f"Files: {stats.total_files}  Processed: {stats.processed}")
    print(f"Successful: {stats.successful}  Failed: {stats.failed}")
    print(f"Total deductible value: {stats.total_value:.2f}")
    print("=" * 60)

    try:
        content = export_workbook_bytes(session.records.records)
    except NothingToExportError as e:
        logger.error(str(e))
        return 1

    output.write_bytes(content)
    logger.info(f"Saved summary to {output}")
    return 0


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Classify a folder of receipts")
    parser.add_argument("folder", type=Path, help="Folder with receipts and rule files")
    parser.add_argument(
        "--output",
        type=Path,
        default=Path(EXPORT_FILENAME),
        help="Output workbook path",
    )

    args = parser.parse_args()
    raise SystemExit(main(args.folder, args.output))
