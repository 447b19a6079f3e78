"""Rule document loading.

A rules directory holds YAML files (``.yaml``/``.yml``), each containing a
list of rule mappings. Files are read in name order and their rules are
concatenated. Subdirectories and other extensions are skipped.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ynab_alerts.errors import NoRuleFilesFoundError, RuleLoadError
from ynab_alerts.rules.schema import Rule

logger = logging.getLogger(__name__)

RULE_FILE_SUFFIXES = (".yaml", ".yml")


def load_rule_file(path: Path) -> list[Rule]:
    """Load the rules from a single YAML document.

    Args:
        path: Path to the YAML file.

    Returns:
        Rules in document order (empty for an empty file).

    Raises:
        RuleLoadError: If the file cannot be read, parsed or validated.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        msg = f"Cannot read rule file: {e}"
        raise RuleLoadError(msg, path) from e

    try:
        data: Any = yaml.safe_load(content)
    except yaml.YAMLError as e:
        msg = f"parsing {path.name}: {e}"
        raise RuleLoadError(msg, path) from e

    if data is None:
        return []

    if not isinstance(data, list):
        msg = f"parsing {path.name}: rule file must contain a YAML list of rules"
        raise RuleLoadError(msg, path)

    rules: list[Rule] = []
    for index, entry in enumerate(data):
        try:
            rules.append(Rule.model_validate(entry))
        except ValidationError as e:
            details = "; ".join(
                f"{'.'.join(str(loc) for loc in err['loc']) or 'rule'}: {err['msg']}"
                for err in e.errors()
            )
            msg = f"parsing {path.name}: rule #{index + 1}: {details}"
            raise RuleLoadError(msg, path) from e
    return rules


def load_rules_dir(directory: str | Path) -> list[Rule]:
    """Load every rule file in a directory.

    Args:
        directory: Rules directory.

    Returns:
        All rules, ordered by file name then document order.

    Raises:
        RuleLoadError: If the directory is missing or a file is invalid.
        NoRuleFilesFoundError: If no rules were found.
    """
    path = Path(directory).expanduser()
    if not path.is_dir():
        msg = f"Rules directory not found: {path}"
        raise RuleLoadError(msg, path)

    rules: list[Rule] = []
    for entry in sorted(path.iterdir()):
        if entry.is_dir() or entry.suffix not in RULE_FILE_SUFFIXES:
            continue
        file_rules = load_rule_file(entry)
        logger.debug("Loaded %d rule(s) from %s", len(file_rules), entry.name)
        rules.extend(file_rules)

    if not rules:
        msg = "no rule files found"
        raise NoRuleFilesFoundError(msg, path)
    return rules
