"""Sequential receipt classification pipeline.

Receipts are queued as pending records the moment they are accepted, then a
single worker task classifies them one at a time in queue order. The only
suspension point is the classification call itself, which runs in a worker
thread so the event loop keeps serving readers while it is in flight.

Batches submitted while the worker is running join the same queue. A failed
receipt is recorded on its own record and the worker moves on.
"""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Callable, Iterable

from taxease.classification.base import ClassificationResult, ReceiptClassifier
from taxease.ingestion.records import RecordStore
from taxease.rules.matcher import match_category
from taxease.rules.store import RuleStore
from taxease.shared.models import InvoiceRecord, RecordStatus, TaxCategory, UploadedFile

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Failed to analyze"

ClassificationListener = Callable[[ClassificationResult, float], None]


class IngestionPipeline:
    """Single-consumer queue driving records from pending to a terminal status.

    Args:
        classifier: Provider performing the classification call
        records: Store receiving new records and their transitions
        rules: Rule store read at commit time for category overrides
        on_classified: Optional callback receiving each result and its duration
    """

    def __init__(
        self,
        classifier: ReceiptClassifier,
        records: RecordStore,
        rules: RuleStore,
        on_classified: ClassificationListener | None = None,
    ) -> None:
        self._classifier = classifier
        self._records = records
        self._rules = rules
        self._on_classified = on_classified
        self._queue: deque[tuple[str, UploadedFile]] = deque()
        self._worker: asyncio.Task[None] | None = None
        self._processing = False

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def queued(self) -> int:
        """Receipts waiting for the worker, excluding the one in flight."""
        return len(self._queue)

    def enqueue(self, files: Iterable[UploadedFile]) -> list[InvoiceRecord]:
        """Create pending records for receipts and queue them, in file order.

        Runs synchronously, so the full queue is visible before any
        classification call starts.

        Returns:
            The new pending records
        """
        documents = list(files)
        created = [InvoiceRecord(filename=document.filename) for document in documents]
        self._records.append(created)
        self._queue.extend((record.id, document) for record, document in zip(created, documents))
        if created:
            logger.info(f"Queued {len(created)} receipts ({len(self._queue)} waiting)")
        return created

    def start(self) -> asyncio.Task[None] | None:
        """Make sure exactly one worker is draining the queue.

        Must be called from a running event loop.

        Returns:
            The active worker task, or None if there is nothing to do
        """
        if self._worker is not None and not self._worker.done():
            return self._worker
        if not self._queue:
            return None

        self._processing = True
        self._worker = asyncio.get_running_loop().create_task(self._drain())
        return self._worker

    async def join(self) -> None:
        """Wait until the queue is empty and no receipt is in flight."""
        while self._worker is not None and not self._worker.done():
            # Shielded so a cancelled waiter never cancels the worker
            await asyncio.shield(self._worker)

    async def process(self, files: Iterable[UploadedFile]) -> list[InvoiceRecord]:
        """Queue receipts and wait for the whole queue to finish.

        Returns:
            Final state of the records created for these files
        """
        created = self.enqueue(files)
        self.start()
        await self.join()
        return [self._records.get(record.id) for record in created]

    async def _drain(self) -> None:
        try:
            while self._queue:
                record_id, document = self._queue.popleft()
                await self._process_one(record_id, document)
        finally:
            self._processing = False
            logger.info("Receipt queue drained")

    async def _process_one(self, record_id: str, document: UploadedFile) -> None:
        self._records.transition(record_id, RecordStatus.PROCESSING)
        logger.info(f"Classifying {document.filename} (record {record_id})")

        started = time.perf_counter()
        try:
            result = await asyncio.to_thread(self._classifier.classify, document)
        except Exception as e:
            logger.exception(f"Classifier raised for {document.filename}")
            result = ClassificationResult(
                fields=None,
                success=False,
                error=str(e) or None,
                provider=self._classifier.provider_name,
            )
        duration = time.perf_counter() - started

        if self._on_classified is not None:
            self._on_classified(result, duration)

        if result.success and result.fields is not None:
            fields = result.fields
            # Rules are read here, after the await, so the latest committed set applies
            override = match_category(fields.vendor_name, self._rules.rules)
            effective = override or fields.tax_category or TaxCategory.UNCATEGORIZED
            self._records.transition(
                record_id,
                RecordStatus.COMPLETED,
                **fields.model_dump(exclude={"tax_category"}),
                tax_category=effective,
            )
            logger.info(
                f"Classified {document.filename} as {effective.value}"
                + (" (vendor rule)" if override else "")
            )
        else:
            error = result.error or DEFAULT_ERROR_MESSAGE
            self._records.transition(record_id, RecordStatus.ERROR, error_message=error)
            logger.warning(f"Classification failed for {document.filename}: {error}")
