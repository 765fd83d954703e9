"""Built-in vendor rules used when no rule set has been saved yet."""

from taxease.shared.models import TaxCategory, VendorRule

_DEFAULT_PATTERNS: list[tuple[str, TaxCategory]] = [
    ("Bunnings", TaxCategory.REPAIRS_MAINTENANCE),
    ("Officeworks", TaxCategory.OFFICE_EXPENSE),
    ("Uber", TaxCategory.TRAVEL),
    ("Chevron", TaxCategory.CAR_TRUCK),
    ("Shell", TaxCategory.CAR_TRUCK),
    ("Caltex", TaxCategory.CAR_TRUCK),
    ("Woolworths", TaxCategory.SUPPLIES),
    ("Coles", TaxCategory.SUPPLIES),
    ("Adobe", TaxCategory.OFFICE_EXPENSE),
    ("Zoom", TaxCategory.OFFICE_EXPENSE),
    ("Telstra", TaxCategory.UTILITIES),
    ("Optus", TaxCategory.UTILITIES),
    ("Amazon", TaxCategory.SUPPLIES),
    ("Apple", TaxCategory.OFFICE_EXPENSE),
    ("Google", TaxCategory.ADVERTISING),
    ("Facebook", TaxCategory.ADVERTISING),
    ("LinkedIn", TaxCategory.ADVERTISING),
    ("Xero", TaxCategory.LEGAL_PROFESSIONAL),
    ("Quickbooks", TaxCategory.LEGAL_PROFESSIONAL),
    ("Upwork", TaxCategory.CONTRACT_LABOR),
]


def default_rules() -> list[VendorRule]:
    """Return a fresh copy of the built-in rule set."""
    return [
        VendorRule(id=f"def-{i}", vendor_name_pattern=pattern, tax_category=category)
        for i, (pattern, category) in enumerate(_DEFAULT_PATTERNS, start=1)
    ]
