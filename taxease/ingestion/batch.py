"""Entry point for a dropped file batch.

Partitions the batch, commits every rule file to the rule store in one step
and only then queues the receipts. Rules imported by a batch therefore apply
to the receipts of that same batch.
"""

import logging
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, Field

from taxease.ingestion.partitioner import partition_batch
from taxease.ingestion.pipeline import IngestionPipeline
from taxease.ingestion.records import RecordStore
from taxease.rules.codec import parse_rule_file
from taxease.rules.store import RuleStore
from taxease.shared.errors import RuleFileError
from taxease.shared.models import InvoiceRecord, UploadedFile

logger = logging.getLogger(__name__)

NO_NEW_RULES_NOTICE = "No new rules found in the uploaded rule files."


class RuleFileFailure(BaseModel):
    """A rule file that could not be read; the rest of the batch still ran."""

    filename: str
    error: str


class BatchReport(BaseModel):
    """What happened to one submitted batch."""

    records: list[InvoiceRecord] = Field(default_factory=list)
    rule_files: int = 0
    rules_added: int = 0
    rule_file_errors: list[RuleFileFailure] = Field(default_factory=list)
    notices: list[str] = Field(default_factory=list)


class BatchCoordinator:
    """Routes a mixed batch to the rule store and the ingestion pipeline."""

    def __init__(
        self, rules: RuleStore, records: RecordStore, pipeline: IngestionPipeline
    ) -> None:
        self._rules = rules
        self._records = records
        self._pipeline = pipeline

    async def ingest(self, files: Iterable[UploadedFile], wait: bool = False) -> BatchReport:
        """Accept a batch and start classifying its receipts.

        Args:
            files: Mixed rule and receipt files, in drop order
            wait: Return only after the receipt queue has drained

        Returns:
            Report with the batch's records (pending unless waited for)
        """
        report = self.submit(files)
        self._pipeline.start()
        if wait:
            await self._pipeline.join()
            report.records = [self._records.get(record.id) for record in report.records]
        return report

    def submit(self, files: Iterable[UploadedFile]) -> BatchReport:
        """Commit the batch's rules and queue its receipts without starting the worker."""
        batch = partition_batch(files)
        report = BatchReport(rule_files=len(batch.rule_files))

        if batch.rule_files:
            report.rules_added, report.rule_file_errors = self._import_rule_files(
                batch.rule_files
            )
            if report.rules_added == 0 and len(report.rule_file_errors) < len(batch.rule_files):
                report.notices.append(NO_NEW_RULES_NOTICE)

        report.records = self._pipeline.enqueue(batch.receipt_files)
        return report

    def _import_rule_files(
        self, rule_files: list[UploadedFile]
    ) -> tuple[int, list[RuleFileFailure]]:
        entries: list[Any] = []
        failures: list[RuleFileFailure] = []
        for rule_file in rule_files:
            try:
                entries.extend(parse_rule_file(rule_file.filename, rule_file.content))
            except RuleFileError as e:
                logger.warning(f"Skipping rule file {e.filename}: {e.reason}")
                failures.append(RuleFileFailure(filename=e.filename, error=e.reason))

        # One commit for all files of the batch
        added = self._rules.import_rules(entries) if entries else 0
        return added, failures
