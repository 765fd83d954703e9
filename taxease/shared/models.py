"""Core data models shared by the rule engine, the pipeline and the API.

Records and rules are frozen pydantic models: stores replace them wholesale
on every commit, so a reader never observes a half-applied update.
"""

import mimetypes
import uuid
from enum import Enum
from pathlib import PurePath
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TaxCategory(str, Enum):
    """Schedule C deduction categories."""

    ADVERTISING = "Advertising"
    CAR_TRUCK = "Car and Truck Expenses"
    COMMISSIONS = "Commissions and Fees"
    CONTRACT_LABOR = "Contract Labor"
    DEPLETION = "Depletion"
    DEPRECIATION = "Depreciation"
    INSURANCE = "Insurance (other than health)"
    INTEREST = "Interest"
    LEGAL_PROFESSIONAL = "Legal and Professional Services"
    OFFICE_EXPENSE = "Office Expense"
    PENSION_PROFIT = "Pension and Profit-Sharing Plans"
    RENT_LEASE_VEHICLES = "Rent/Lease (Vehicles/Equipment)"
    RENT_LEASE_PROPERTY = "Rent/Lease (Other Business Property)"
    REPAIRS_MAINTENANCE = "Repairs and Maintenance"
    SUPPLIES = "Supplies"
    TAXES_LICENSES = "Taxes and Licenses"
    TRAVEL = "Travel"
    MEALS = "Deductible Meals"
    UTILITIES = "Utilities"
    WAGES = "Wages"
    OTHER = "Other Expenses"
    UNCATEGORIZED = "Uncategorized"

    @classmethod
    def parse(cls, value: Any) -> "TaxCategory":
        """Resolve a category from its display value or its member name.

        Raises:
            ValueError: If the value names no category
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            text = value.strip()
            try:
                return cls(text)
            except ValueError:
                pass
            if text in cls.__members__:
                return cls[text]
        raise ValueError(f"Unknown tax category: {value!r}")


class RecordStatus(str, Enum):
    """Lifecycle of an invoice record: pending -> processing -> completed | error."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (RecordStatus.COMPLETED, RecordStatus.ERROR)


def new_id() -> str:
    """Generate an opaque unique identifier."""
    return uuid.uuid4().hex


class UploadedFile(BaseModel):
    """One file handle from an incoming batch.

    Attributes:
        filename: Original file name as uploaded
        content: Raw file bytes
        media_type: Declared MIME type, if the client sent one
    """

    filename: str
    content: bytes = b""
    media_type: str | None = None

    @property
    def extension(self) -> str:
        return PurePath(self.filename).suffix.lower()

    @property
    def resolved_media_type(self) -> str:
        """Declared media type, falling back to a guess from the file name."""
        if self.media_type:
            return self.media_type
        guessed, _ = mimetypes.guess_type(self.filename)
        return guessed or "application/octet-stream"


class InvoiceRecord(BaseModel):
    """One ingested receipt and its extracted, classified data."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    filename: str
    vendor_name: str = ""
    invoice_date: str = ""
    total_amount: float = Field(default=0.0, ge=0)
    currency: str = ""
    description: str = ""
    tax_category: TaxCategory = TaxCategory.UNCATEGORIZED
    confidence_score: float = Field(default=0.0, ge=0, le=100)
    status: RecordStatus = RecordStatus.PENDING
    error_message: str | None = None

    @field_validator("tax_category", mode="before")
    @classmethod
    def _parse_category(cls, value: Any) -> TaxCategory:
        return TaxCategory.parse(value)


class VendorRule(BaseModel):
    """User-defined override: vendor names containing the pattern get the category.

    Serialized with the camelCase keys of the rule file format.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=new_id)
    vendor_name_pattern: str = Field(alias="vendorNamePattern")
    tax_category: TaxCategory = Field(alias="taxCategory")

    @field_validator("vendor_name_pattern")
    @classmethod
    def _non_empty_pattern(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("vendorNamePattern must not be empty")
        return value

    @field_validator("tax_category", mode="before")
    @classmethod
    def _parse_category(cls, value: Any) -> TaxCategory:
        return TaxCategory.parse(value)

    @property
    def pattern_key(self) -> str:
        """Case-insensitive identity of the pattern."""
        return self.vendor_name_pattern.lower()
