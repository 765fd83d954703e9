"""Shared test helpers: a scripted classifier standing in for the real providers."""

import threading
import time
from typing import Any

from taxease.classification.base import (
    NOT_A_RECEIPT_ERROR,
    ClassificationResult,
    ReceiptClassifier,
)
from taxease.shared.config import Settings
from taxease.shared.models import UploadedFile


class ScriptedClassifier(ReceiptClassifier):
    """Classifier answering from a filename -> outcome script.

    An outcome is a payload dict (success), a string (failure message) or an
    exception instance (raised). Unknown files fail as "not a receipt".
    """

    def __init__(self, outcomes: dict[str, Any] | None = None, delay: float = 0.0) -> None:
        super().__init__(Settings())
        self.outcomes = outcomes or {}
        self.delay = delay
        self.calls: list[str] = []
        self.max_in_flight = 0
        self._in_flight = 0
        self._lock = threading.Lock()

    @property
    def provider_name(self) -> str:
        return "scripted"

    def is_available(self) -> bool:
        return True

    def classify(self, document: UploadedFile) -> ClassificationResult:
        with self._lock:
            self._in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self._in_flight)
            self.calls.append(document.filename)
        try:
            if self.delay:
                time.sleep(self.delay)
            problem = self.check_document(document)
            if problem:
                return self.failure(problem)
            outcome = self.outcomes.get(document.filename)
            if isinstance(outcome, Exception):
                raise outcome
            if isinstance(outcome, str):
                return self.failure(outcome)
            if outcome is None:
                return self.failure(NOT_A_RECEIPT_ERROR)
            return self.result_from_payload({"is_invoice": True, **outcome})
        finally:
            with self._lock:
                self._in_flight -= 1


def receipt(filename: str, media_type: str | None = "image/png") -> UploadedFile:
    """Build a small fake receipt upload."""
    return UploadedFile(filename=filename, content=b"\x89PNG fake", media_type=media_type)
