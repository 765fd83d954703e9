"""Persistence of the vendor rule set.

The rule set lives in a single named slot holding its JSON text. It is read
once at startup and rewritten after every change.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

from pydantic import TypeAdapter, ValidationError

from taxease.shared.models import VendorRule

logger = logging.getLogger(__name__)

_rule_list_adapter = TypeAdapter(list[VendorRule])


class RuleSlot(Protocol):
    """Key/value slot holding the serialized rule set."""

    def read(self) -> str | None:
        """Return the stored text, or None if nothing was ever written."""
        ...

    def write(self, text: str) -> None:
        """Replace the stored text."""
        ...


class JsonFileSlot:
    """Rule slot backed by a JSON file on local disk."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def read(self) -> str | None:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def write(self, text: str) -> None:
        # Write-then-rename so a crash never leaves a truncated rule file
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                tmp.write(text)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def load_rules(slot: RuleSlot, fallback: list[VendorRule]) -> list[VendorRule]:
    """Load the persisted rule set, falling back when absent or corrupt.

    Args:
        slot: Slot to read from
        fallback: Rules to use when the slot holds no usable data

    Returns:
        Rule set in stored order
    """
    text = slot.read()
    if text is None:
        logger.info(f"No saved rule set found, starting with {len(fallback)} rules")
        return list(fallback)

    try:
        rules = _rule_list_adapter.validate_json(text)
    except ValidationError as e:
        logger.warning(f"Saved rule set is corrupt, starting with {len(fallback)} rules: {e}")
        return list(fallback)

    logger.info(f"Loaded {len(rules)} saved vendor rules")
    return rules
