"""Owned store of vendor rules.

Holds the ordered rule set, persists it after every change and re-applies it
to the attached record store so that existing records always reflect the
current rules. Deleting a rule does not revert categories it already set.
"""

import logging
from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError

from taxease.ingestion.records import RecordStore
from taxease.rules.codec import serialize_rules
from taxease.rules.defaults import default_rules
from taxease.rules.matcher import reapply_rules
from taxease.rules.persistence import RuleSlot, load_rules
from taxease.shared.errors import DuplicateRuleError, InvalidRuleError
from taxease.shared.models import TaxCategory, VendorRule, new_id

logger = logging.getLogger(__name__)


class RuleStore:
    """Ordered vendor rules with case-insensitively unique patterns.

    Args:
        rules: Initial rule set; later duplicates of a pattern are dropped
        slot: Where to persist the rule set after each change
        records: Record store receiving the retroactive rule pass
    """

    def __init__(
        self,
        rules: Iterable[VendorRule] = (),
        slot: RuleSlot | None = None,
        records: RecordStore | None = None,
    ) -> None:
        self._rules: tuple[VendorRule, ...] = tuple(_dedupe(rules))
        self._slot = slot
        self._records = records

    @classmethod
    def from_slot(
        cls,
        slot: RuleSlot,
        records: RecordStore | None = None,
        seed_defaults: bool = True,
    ) -> "RuleStore":
        """Create a store from the persisted rule set.

        Args:
            slot: Slot to read once and write on every change
            records: Record store receiving the retroactive rule pass
            seed_defaults: Start from the built-in rules when the slot is empty or corrupt
        """
        fallback = default_rules() if seed_defaults else []
        return cls(load_rules(slot, fallback), slot=slot, records=records)

    def __len__(self) -> int:
        return len(self._rules)

    @property
    def rules(self) -> tuple[VendorRule, ...]:
        """Current committed rule set in evaluation order."""
        return self._rules

    def import_rules(self, raw_entries: Iterable[Any]) -> int:
        """Append valid, not-yet-known rules from raw rule file entries.

        Entries missing a pattern or carrying an unknown category are dropped
        individually. Patterns already present (case-insensitive), including
        earlier in the same input, are dropped too: first seen wins. Missing
        or already-taken ids are replaced with fresh ones.

        Args:
            raw_entries: Decoded rule file entries, in file order

        Returns:
            Number of rules actually added
        """
        known_patterns = {rule.pattern_key for rule in self._rules}
        known_ids = {rule.id for rule in self._rules}
        added: list[VendorRule] = []
        rejected = 0

        for index, entry in enumerate(raw_entries):
            rule = _validate_entry(entry, index)
            if rule is None:
                rejected += 1
                continue
            if rule.pattern_key in known_patterns:
                logger.debug(f"Skipping duplicate rule pattern: {rule.vendor_name_pattern!r}")
                continue
            if rule.id in known_ids:
                rule = rule.model_copy(update={"id": new_id()})
            known_patterns.add(rule.pattern_key)
            known_ids.add(rule.id)
            added.append(rule)

        if rejected:
            logger.warning(f"Rejected {rejected} malformed rule entries")
        if added:
            self._commit(self._rules + tuple(added))
        logger.info(f"Imported {len(added)} new vendor rules")
        return len(added)

    def add_rule(self, pattern: str, category: TaxCategory | str) -> VendorRule:
        """Append one rule with a fresh id.

        Raises:
            InvalidRuleError: If the pattern is empty or the category unknown
            DuplicateRuleError: If the pattern already exists
        """
        try:
            rule = VendorRule(vendor_name_pattern=pattern, tax_category=category)
        except ValidationError as e:
            raise InvalidRuleError(_first_error(e)) from e

        if any(existing.pattern_key == rule.pattern_key for existing in self._rules):
            raise DuplicateRuleError(f"A rule for {rule.vendor_name_pattern!r} already exists")

        self._commit(self._rules + (rule,))
        logger.info(
            f"Added rule {rule.id}: {rule.vendor_name_pattern!r} -> {rule.tax_category.value}"
        )
        return rule

    def delete_rule(self, rule_id: str) -> bool:
        """Remove a rule by id.

        Categories the rule already assigned to records are kept.

        Returns:
            True if a rule was removed
        """
        remaining = tuple(rule for rule in self._rules if rule.id != rule_id)
        if len(remaining) == len(self._rules):
            return False
        self._commit(remaining)
        logger.info(f"Deleted rule {rule_id}")
        return True

    def export_rules(self) -> str:
        """Serialize the rule set as importable JSON."""
        return serialize_rules(self._rules)

    def reapply(self) -> int:
        """Run the retroactive rule pass over the attached record store.

        Returns:
            Number of records recategorized
        """
        if self._records is None:
            return 0
        updates = reapply_rules(self._records.records, self._rules)
        updated = self._records.apply_categories(updates)
        if updated:
            logger.info(f"Rule pass recategorized {updated} records")
        return updated

    def _commit(self, rules: tuple[VendorRule, ...]) -> None:
        self._rules = rules
        if self._slot is not None:
            try:
                self._slot.write(serialize_rules(rules))
            except Exception:
                # In-memory set stays live; the next commit rewrites the whole slot
                logger.exception("Failed to persist vendor rules")
        self.reapply()


def _validate_entry(entry: Any, index: int) -> VendorRule | None:
    if not isinstance(entry, dict):
        logger.warning(f"Rule entry {index} is not an object")
        return None

    data = dict(entry)
    if not data.get("id"):
        data.pop("id", None)
    elif not isinstance(data["id"], str):
        data["id"] = str(data["id"])

    try:
        return VendorRule.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Rule entry {index} rejected: {_first_error(e)}")
        return None


def _dedupe(rules: Iterable[VendorRule]) -> list[VendorRule]:
    seen: set[str] = set()
    unique: list[VendorRule] = []
    for rule in rules:
        if rule.pattern_key not in seen:
            seen.add(rule.pattern_key)
            unique.append(rule)
    return unique


def _first_error(error: ValidationError) -> str:
    details = error.errors()
    if not details:
        return str(error)
    first = details[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg', 'invalid value')}" if location else first["msg"]
