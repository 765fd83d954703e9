"""Abstract base class for receipt classification providers.

Enables switching between providers (OpenAI, self-hosted Ollama) while keeping
a consistent interface for the ingestion pipeline.

Based on Strategy Pattern:
https://refactoring.guru/design-patterns/strategy/python

Providers never raise for a bad document or a failed call: they return a
ClassificationResult with success=False and a human-readable error.
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ValidationError

from taxease.classification.schema import ExtractedFields
from taxease.shared.config import Settings
from taxease.shared.models import UploadedFile

NOT_A_RECEIPT_ERROR = "Document does not appear to be a valid invoice."


class ClassificationResult(BaseModel):
    """Result of classification operation.

    Attributes:
        fields: Extracted receipt fields or None if classification failed
        success: Whether operation succeeded
        error: Error message if operation failed
        provider: Name of provider that performed classification (e.g., 'openai')
    """

    fields: ExtractedFields | None
    success: bool
    error: str | None = None
    provider: str


class ReceiptClassifier(ABC):
    """Abstract base class for receipt classification providers.

    All providers must implement this interface so the pipeline can treat
    classification as an opaque call.

    Example implementations:
    - OpenAIReceiptClassifier: Uses OpenAI API (cloud-based)
    - OllamaReceiptClassifier: Uses a vision model on an Ollama server
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize provider with settings.

        Args:
            settings: Application settings
        """
        self.settings = settings

    @abstractmethod
    def classify(self, document: UploadedFile) -> ClassificationResult:
        """Extract receipt fields and a deduction category from one document.

        Args:
            document: Receipt image or PDF

        Returns:
            ClassificationResult with extracted fields or error
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this provider is available/configured.

        Returns:
            True if provider can be used, False otherwise
        """
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get provider name for logging/metrics.

        Returns:
            Provider identifier (e.g., 'openai', 'ollama')
        """
        pass

    def supports_media_type(self, media_type: str) -> bool:
        """Check whether the provider accepts documents of this type."""
        return media_type.startswith("image/") or media_type == "application/pdf"

    def check_document(self, document: UploadedFile) -> str | None:
        """Validate a document before sending it to the provider.

        Returns:
            Error message, or None if the document can be sent
        """
        if not document.content:
            return "Empty file"
        media_type = document.resolved_media_type
        if not self.supports_media_type(media_type):
            return f"Unsupported file type: {media_type}"
        return None

    def result_from_payload(self, payload: dict[str, Any]) -> ClassificationResult:
        """Turn a provider's structured output into a result.

        Fails when the model says the document is not an invoice or receipt,
        so an unrecognizable upload never becomes a vacuous success.
        """
        if not payload.get("is_invoice", False):
            return self.failure(NOT_A_RECEIPT_ERROR)

        try:
            fields = ExtractedFields.model_validate(payload)
        except ValidationError as e:
            return self.failure(f"Invalid classification output: {e.errors()[0]['msg']}")

        return ClassificationResult(fields=fields, success=True, provider=self.provider_name)

    def failure(self, error: str) -> ClassificationResult:
        return ClassificationResult(
            fields=None, success=False, error=error, provider=self.provider_name
        )
