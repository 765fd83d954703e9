"""Aggregate counters derived from the record store on every read."""

from collections.abc import Iterable

from pydantic import BaseModel

from taxease.shared.models import InvoiceRecord, RecordStatus


class ProcessingStats(BaseModel):
    """Progress and value totals for the current set of records."""

    total_files: int
    processed: int
    successful: int
    failed: int
    total_value: float


def project_stats(records: Iterable[InvoiceRecord]) -> ProcessingStats:
    """Compute stats from the records as they are right now.

    ``total_value`` only counts completed records.
    """
    total = successful = failed = 0
    total_value = 0.0
    for record in records:
        total += 1
        if record.status is RecordStatus.COMPLETED:
            successful += 1
            total_value += record.total_amount
        elif record.status is RecordStatus.ERROR:
            failed += 1

    return ProcessingStats(
        total_files=total,
        processed=successful + failed,
        successful=successful,
        failed=failed,
        total_value=total_value,
    )
