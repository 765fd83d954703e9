"""JSON encoding of vendor rule sets.

Rule files and the persisted rule slot share one format: a JSON array of
``{"id"?, "vendorNamePattern", "taxCategory"}`` objects.
"""

import json
from collections.abc import Iterable
from typing import Any

from taxease.shared.errors import RuleFileError
from taxease.shared.models import VendorRule


def serialize_rules(rules: Iterable[VendorRule]) -> str:
    """Encode rules as importable JSON text."""
    return json.dumps(
        [rule.model_dump(by_alias=True, mode="json") for rule in rules],
        indent=2,
        ensure_ascii=False,
    )


def parse_rule_file(filename: str, content: bytes | str) -> list[Any]:
    """Decode one rule file into its raw entries.

    Entries are not validated here; malformed entries are dropped one by one
    on import.

    Args:
        filename: Name used in error reports
        content: File bytes or text

    Returns:
        Raw rule entries in file order

    Raises:
        RuleFileError: If the file is not UTF-8 JSON or not a JSON array
    """
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise RuleFileError(filename, f"not UTF-8 text ({e.reason})") from e

    try:
        document = json.loads(content)
    except json.JSONDecodeError as e:
        raise RuleFileError(filename, f"invalid JSON: {e.msg} at line {e.lineno}") from e
    except RecursionError as e:
        raise RuleFileError(filename, "invalid JSON: nested too deeply") from e
    except ValueError as e:
        raise RuleFileError(filename, f"invalid JSON: {e}") from e

    if not isinstance(document, list):
        raise RuleFileError(filename, "expected a JSON array of rules")
    return document
