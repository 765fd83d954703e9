"""Ordered, in-memory collection of invoice records.

Records are never removed and keep their insertion order. Every mutation is
a single commit: the affected records are replaced with new frozen copies and
subscribers are notified afterwards with the records that changed.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from taxease.shared.errors import InvalidTransitionError, RecordNotFoundError
from taxease.shared.models import InvoiceRecord, RecordStatus, TaxCategory

logger = logging.getLogger(__name__)

RecordListener = Callable[[tuple[InvoiceRecord, ...]], None]

# Fields owned by ingestion and the pipeline, never touched by plain updates
_PROTECTED_FIELDS = frozenset({"id", "filename", "status", "error_message"})

_NEXT_STATUSES: dict[RecordStatus, frozenset[RecordStatus]] = {
    RecordStatus.PENDING: frozenset({RecordStatus.PROCESSING}),
    RecordStatus.PROCESSING: frozenset({RecordStatus.COMPLETED, RecordStatus.ERROR}),
    RecordStatus.COMPLETED: frozenset(),
    RecordStatus.ERROR: frozenset(),
}


class RecordStore:
    """Single source of truth for the invoice records of a session."""

    def __init__(self) -> None:
        self._records: list[InvoiceRecord] = []
        self._positions: dict[str, int] = {}
        self._listeners: list[RecordListener] = []

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> tuple[InvoiceRecord, ...]:
        """Snapshot of all records in insertion order."""
        return tuple(self._records)

    def get(self, record_id: str) -> InvoiceRecord:
        """Look up a record by id.

        Raises:
            RecordNotFoundError: If no record has this id
        """
        try:
            return self._records[self._positions[record_id]]
        except KeyError:
            raise RecordNotFoundError(f"Invoice record not found: {record_id}") from None

    def append(self, records: Iterable[InvoiceRecord]) -> None:
        """Add records at the end, preserving their order.

        Raises:
            ValueError: If a record id is already present
        """
        new_records = list(records)
        seen: set[str] = set()
        for record in new_records:
            if record.id in self._positions or record.id in seen:
                raise ValueError(f"Duplicate invoice record id: {record.id}")
            seen.add(record.id)

        for record in new_records:
            self._positions[record.id] = len(self._records)
            self._records.append(record)
        self._notify(tuple(new_records))

    def update_by_id(self, record_id: str, fields: Mapping[str, Any]) -> InvoiceRecord:
        """Merge user-editable fields into one record.

        ``id``, ``filename``, ``status`` and ``error_message`` are ignored;
        status only moves through :meth:`transition`.

        Raises:
            RecordNotFoundError: If no record has this id
            ValueError: If a field name is unknown
            pydantic.ValidationError: If a value is invalid for its field
        """
        current = self.get(record_id)
        unknown = set(fields) - set(InvoiceRecord.model_fields)
        if unknown:
            raise ValueError(f"Unknown invoice record fields: {', '.join(sorted(unknown))}")

        changes = {k: v for k, v in fields.items() if k not in _PROTECTED_FIELDS}
        updated = InvoiceRecord.model_validate({**current.model_dump(), **changes})
        self._replace(updated)
        self._notify((updated,))
        return updated

    def transition(self, record_id: str, status: RecordStatus, **fields: Any) -> InvoiceRecord:
        """Move a record along its status chain, committing result fields with it.

        Raises:
            RecordNotFoundError: If no record has this id
            InvalidTransitionError: If the move is not pending -> processing
                or processing -> completed/error
        """
        current = self.get(record_id)
        if status not in _NEXT_STATUSES[current.status]:
            raise InvalidTransitionError(
                f"Record {record_id} cannot move from {current.status.value} to {status.value}"
            )

        changes = {k: v for k, v in fields.items() if k not in ("id", "filename")}
        if status is not RecordStatus.ERROR:
            changes["error_message"] = None
        updated = InvoiceRecord.model_validate(
            {**current.model_dump(), **changes, "status": status}
        )
        self._replace(updated)
        self._notify((updated,))
        return updated

    def bulk_update_category(self, record_ids: Iterable[str], category: TaxCategory) -> int:
        """Set one category on every listed record; unknown ids are ignored.

        Returns:
            Number of records updated
        """
        category = TaxCategory.parse(category)
        return self.apply_categories({record_id: category for record_id in record_ids})

    def apply_categories(self, categories: Mapping[str, TaxCategory]) -> int:
        """Set per-record categories in one commit; unknown ids are ignored.

        Returns:
            Number of records updated
        """
        changed: list[InvoiceRecord] = []
        for record_id, category in categories.items():
            position = self._positions.get(record_id)
            if position is None:
                continue
            updated = self._records[position].model_copy(
                update={"tax_category": TaxCategory.parse(category)}
            )
            self._records[position] = updated
            changed.append(updated)

        if changed:
            self._notify(tuple(changed))
        return len(changed)

    def subscribe(self, listener: RecordListener) -> Callable[[], None]:
        """Register a callback receiving the records changed by each commit.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _replace(self, record: InvoiceRecord) -> None:
        self._records[self._positions[record.id]] = record

    def _notify(self, changed: tuple[InvoiceRecord, ...]) -> None:
        for listener in list(self._listeners):
            try:
                listener(changed)
            except Exception:
                logger.exception("Record listener failed")
