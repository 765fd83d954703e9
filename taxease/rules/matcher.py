"""Vendor rule matching.

A rule matches when its pattern is a case-insensitive substring of the vendor
name. Rules are evaluated in order and the first match wins; there is no
scoring and no longest-match preference.
"""

from collections.abc import Iterable, Sequence

from taxease.shared.models import InvoiceRecord, TaxCategory, VendorRule


def match_category(vendor_name: str, rules: Sequence[VendorRule]) -> TaxCategory | None:
    """Return the category of the first rule matching the vendor name.

    Args:
        vendor_name: Vendor name as extracted from the receipt
        rules: Rule set in evaluation order

    Returns:
        Matching rule's category, or None for an empty name or no match
    """
    if not vendor_name:
        return None

    name = vendor_name.lower()
    for rule in rules:
        if rule.pattern_key in name:
            return rule.tax_category
    return None


def reapply_rules(
    records: Iterable[InvoiceRecord], rules: Sequence[VendorRule]
) -> dict[str, TaxCategory]:
    """Compute the category overrides a rule set implies for existing records.

    Records without a vendor name, records no rule matches and records that
    already carry the matched category are left out, so applying the result
    twice is the same as applying it once.

    Args:
        records: Records to re-evaluate
        rules: Rule set in evaluation order

    Returns:
        Mapping of record id to the category it should now carry
    """
    updates: dict[str, TaxCategory] = {}
    for record in records:
        if not record.vendor_name:
            continue
        category = match_category(record.vendor_name, rules)
        if category is not None and category != record.tax_category:
            updates[record.id] = category
    return updates
