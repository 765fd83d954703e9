"""Unit tests for classification base classes and output normalization.

Tests cover:
- Abstract base class enforcement
- Document checks shared by all providers
- Structured output to ExtractedFields normalization
"""

from datetime import date

import pytest
from conftest import ScriptedClassifier

from taxease.classification.base import (
    NOT_A_RECEIPT_ERROR,
    ClassificationResult,
    ReceiptClassifier,
)
from taxease.classification.schema import ExtractedFields
from taxease.shared.config import Settings
from taxease.shared.models import TaxCategory, UploadedFile


def test_classifier_is_abstract() -> None:
    """Test that ReceiptClassifier cannot be instantiated directly."""
    with pytest.raises(TypeError, match="Can't instantiate abstract class"):
        ReceiptClassifier(Settings())  # type: ignore[abstract]


def test_classifier_requires_provider_name() -> None:
    """Test that concrete providers must implement all abstract methods."""

    class IncompleteClassifier(ReceiptClassifier):
        def classify(self, document: UploadedFile) -> ClassificationResult:
            return self.failure("Not implemented")

        def is_available(self) -> bool:
            return True

        # Missing: provider_name property

    with pytest.raises(TypeError, match="Can't instantiate abstract class"):
        IncompleteClassifier(Settings())  # type: ignore[abstract]


class TestCheckDocument:
    """Test pre-flight checks before a provider call."""

    def test_empty_file(self) -> None:
        classifier = ScriptedClassifier()
        document = UploadedFile(filename="empty.png", content=b"", media_type="image/png")

        assert classifier.check_document(document) == "Empty file"

    def test_unsupported_type(self) -> None:
        classifier = ScriptedClassifier()
        document = UploadedFile(filename="notes.txt", content=b"hello")

        assert classifier.check_document(document) == "Unsupported file type: text/plain"

    @pytest.mark.parametrize(
        ("filename", "media_type"),
        [("r.png", "image/png"), ("r.jpg", None), ("r.pdf", None), ("r.webp", "image/webp")],
    )
    def test_accepted(self, filename: str, media_type: str | None) -> None:
        classifier = ScriptedClassifier()
        document = UploadedFile(filename=filename, content=b"data", media_type=media_type)

        assert classifier.check_document(document) is None


class TestResultFromPayload:
    """Test provider output handling."""

    def test_not_an_invoice(self) -> None:
        result = ScriptedClassifier().result_from_payload(
            {"is_invoice": False, "vendor_name": "Cat"}
        )

        assert result.success is False
        assert result.error == NOT_A_RECEIPT_ERROR
        assert result.fields is None

    def test_missing_flag_is_not_an_invoice(self) -> None:
        result = ScriptedClassifier().result_from_payload({"vendor_name": "Coles"})
        assert result.error == NOT_A_RECEIPT_ERROR

    def test_invalid_values(self) -> None:
        result = ScriptedClassifier().result_from_payload(
            {"is_invoice": True, "total_amount": "a lot"}
        )

        assert result.success is False
        assert result.error is not None
        assert result.error.startswith("Invalid classification output")

    def test_success(self) -> None:
        result = ScriptedClassifier().result_from_payload(
            {
                "is_invoice": True,
                "vendor_name": "Officeworks",
                "invoice_date": "2024-06-30",
                "total_amount": 89.95,
                "currency": "AUD",
                "description": "Printer paper",
                "tax_category": "Office Expense",
                "confidence_score": 97,
            }
        )

        assert result.success is True
        assert result.provider == "scripted"
        assert result.fields is not None
        assert result.fields.tax_category is TaxCategory.OFFICE_EXPENSE
        assert result.fields.total_amount == 89.95


class TestExtractedFields:
    """Test normalization of raw provider output."""

    def test_placeholders_for_missing_values(self) -> None:
        fields = ExtractedFields.model_validate(
            {"vendor_name": "  ", "total_amount": None, "currency": None}
        )

        assert fields.vendor_name == "Unknown Vendor"
        assert fields.total_amount == 0
        assert fields.currency == "USD"
        assert fields.description == "No description"
        assert fields.invoice_date == date.today().isoformat()
        assert fields.tax_category is None

    def test_unknown_category_becomes_none(self) -> None:
        fields = ExtractedFields.model_validate({"tax_category": "Groceries"})
        assert fields.tax_category is None

    def test_confidence_is_clamped(self) -> None:
        assert ExtractedFields(confidence_score=140).confidence_score == 100
        assert ExtractedFields(confidence_score=-3).confidence_score == 0

    def test_negative_amount_rejected(self) -> None:
        with pytest.raises(ValueError):
            ExtractedFields(total_amount=-1)

    def test_strings_are_stripped(self) -> None:
        fields = ExtractedFields(vendor_name=" Bunnings Warehouse ")
        assert fields.vendor_name == "Bunnings Warehouse"
