"""Prompts and output schema shared by the classification providers."""

from typing import Any

from taxease.shared.models import TaxCategory

TAX_CATEGORIES_LIST = [category.value for category in TaxCategory]

SYSTEM_INSTRUCTION = f"""You are an expert tax accountant assistant. Your job is to analyze \
images of invoices or receipts and extract structured data for tax return preparation \
(specifically Schedule C categories).

Output must be strictly JSON.

For each invoice, extract:
1. Vendor Name
2. Invoice Date (YYYY-MM-DD format). If not found, use today's date.
3. Total Amount (number only).
4. Currency (e.g., USD, EUR).
5. Brief Description (summary of items purchased).
6. Tax Category: Select exactly ONE from the provided list that best matches the expense nature.
7. Confidence Score (0-100) based on legibility and classification certainty.

The allowed Tax Categories are:
{', '.join(TAX_CATEGORIES_LIST)}

If the document is not an invoice or is unreadable, set is_invoice to false."""

USER_INSTRUCTION = "Extract data from this invoice."

# JSON keys the providers must return, in the order shown to the model
OUTPUT_FIELDS = (
    '{"vendor_name": string, "invoice_date": string (YYYY-MM-DD), "total_amount": number, '
    '"currency": string, "description": string, "tax_category": string, '
    '"confidence_score": number (0-100), "is_invoice": boolean}'
)


def receipt_function_schema() -> dict[str, Any]:
    """Get OpenAI function calling schema for receipt classification.

    Returns:
        Function definition dict for OpenAI API
    """
    return {
        "name": "classify_receipt",
        "description": "Extract receipt fields and choose a tax deduction category",
        "parameters": {
            "type": "object",
            "properties": {
                "vendor_name": {"type": "string"},
                "invoice_date": {"type": "string", "description": "YYYY-MM-DD format"},
                "total_amount": {"type": "number"},
                "currency": {"type": "string"},
                "description": {"type": "string"},
                "tax_category": {"type": "string", "enum": TAX_CATEGORIES_LIST},
                "confidence_score": {"type": "number", "minimum": 0, "maximum": 100},
                "is_invoice": {
                    "type": "boolean",
                    "description": "True if the image looks like an invoice/receipt",
                },
            },
            "required": ["vendor_name", "total_amount", "tax_category", "is_invoice"],
        },
    }
