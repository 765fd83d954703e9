"""Structured fields extracted from a receipt by a classification provider."""

from datetime import date
from typing import Any

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from taxease.shared.models import TaxCategory


class ExtractedFields(BaseModel):
    """Receipt fields as returned by a provider, normalized.

    Missing values fall back to neutral placeholders. An absent or unknown
    category stays None so the pipeline can apply its own fallback.
    """

    vendor_name: str = Field("Unknown Vendor", description="Vendor or merchant name")
    invoice_date: str = Field(
        default_factory=lambda: date.today().isoformat(),
        description="Invoice date (YYYY-MM-DD)",
    )
    total_amount: float = Field(0.0, ge=0, description="Total amount paid")
    currency: str = Field("USD", description="Currency code (ISO 4217)")
    description: str = Field("No description", description="Summary of items purchased")
    tax_category: TaxCategory | None = Field(None, description="Suggested deduction category")
    confidence_score: float = Field(
        0.0, ge=0, le=100, description="Legibility and classification certainty (0-100)"
    )

    @field_validator("vendor_name", "currency", "description", "invoice_date", mode="before")
    @classmethod
    def _blank_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            field = cls.model_fields[info.field_name]
            return field.get_default(call_default_factory=True)
        return value.strip() if isinstance(value, str) else value

    @field_validator("total_amount", mode="before")
    @classmethod
    def _missing_amount(cls, value: Any) -> Any:
        return 0.0 if value is None else value

    @field_validator("tax_category", mode="before")
    @classmethod
    def _known_category(cls, value: Any) -> TaxCategory | None:
        if value is None:
            return None
        try:
            return TaxCategory.parse(value)
        except ValueError:
            return None

    @field_validator("confidence_score", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> Any:
        if value is None:
            return 0.0
        if isinstance(value, int | float):
            return min(max(float(value), 0.0), 100.0)
        return value
