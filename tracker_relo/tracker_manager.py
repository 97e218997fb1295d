"""Manages the tracker domain replacement rules.

This module holds the rule engine that decides whether a tracker URL should be
rewritten, together with the helpers that load, save, edit and display the
ordered rule list.

Key features include:
- Evaluating an ordered rule list against a tracker URL (first match wins).
- Loading rules from, and saving them to, a `tracker_rules.json` file.
- Adding, updating, deleting and toggling rules by their old domain.
- Extracting the host from a tracker URL for domain statistics.
"""
import json
import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlparse

from rich.console import Console
from rich.table import Table
from rich.text import Text

from .utils import ConfigError


@dataclass
class Rule:
    """A domain substitution directive.

    `old_domain` is matched as a raw substring of the full tracker URL, so it
    may contain a scheme, a port or a path fragment as well as a host name.
    """
    old_domain: str
    new_domain: str
    enabled: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rule":
        """Builds a rule from its JSON form, raising `ValueError` on bad input."""
        if not isinstance(data, dict) or 'old_domain' not in data:
            raise ValueError(f"Invalid rule entry: {data!r}")
        return cls(
            old_domain=str(data['old_domain']),
            new_domain=str(data.get('new_domain', '')),
            enabled=bool(data.get('enabled', True)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def apply_rules(tracker_url: str, rules: Sequence[Rule]) -> Optional[str]:
    """Returns the rewritten tracker URL for the first matching rule.

    Rules are tried in the given order. Disabled rules and rules whose trimmed
    `old_domain` is empty are skipped. The first rule whose trimmed
    `old_domain` occurs anywhere in `tracker_url` wins: every occurrence is
    replaced with the trimmed `new_domain` and no further rule is tried.
    Matching is case sensitive and no URL normalisation is performed.

    Example:
        'http://tracker.old.com:6969/announce' with the rule
        'tracker.old.com' -> 'tracker.new.com' gives
        'http://tracker.new.com:6969/announce'.

    Args:
        tracker_url: The announce URL exactly as reported by the backend.
        rules: The ordered rule list.

    Returns:
        The new URL, or `None` if no enabled rule matches.
    """
    for rule in rules:
        if not rule.enabled:
            continue
        old_domain = rule.old_domain.strip()
        if not old_domain:
            continue
        if old_domain in tracker_url:
            return tracker_url.replace(old_domain, rule.new_domain.strip())
    return None


def get_tracker_domain(tracker_url: str) -> Optional[str]:
    """Extracts the host name from a tracker URL.

    Example:
        'udp://tracker.example.com:6969/announce' -> 'tracker.example.com'

    Returns:
        The lower-cased host, or `None` if the URL has no host or cannot be parsed.
    """
    try:
        return urlparse(tracker_url).hostname or None
    except ValueError:
        return None


def load_tracker_rules(rules_file: Path) -> List[Rule]:
    """Loads the ordered rule list from a JSON file.

    A missing file is not an error and yields an empty list.

    Args:
        rules_file: Path of the JSON rules file.

    Returns:
        The rules in file order.

    Raises:
        ConfigError: If the file cannot be read or does not hold a list of rules.
    """
    if not rules_file.is_file():
        logging.info(f"Tracker rules file not found at '{rules_file}'. Starting with an empty ruleset.")
        return []
    try:
        with open(rules_file, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError("top-level JSON value must be a list")
        rules = [Rule.from_dict(entry) for entry in data]
    except (OSError, ValueError) as e:
        raise ConfigError(f"Could not load tracker rules from '{rules_file}': {e}") from e
    logging.debug(f"Loaded {len(rules)} tracker rules from '{rules_file}'.")
    return rules


def save_tracker_rules(rules: Sequence[Rule], rules_file: Path) -> None:
    """Saves the rule list to a JSON file, preserving order.

    Raises:
        ConfigError: If the file cannot be written.
    """
    try:
        rules_file.parent.mkdir(parents=True, exist_ok=True)
        with open(rules_file, 'w', encoding='utf-8') as f:
            json.dump([rule.to_dict() for rule in rules], f, indent=4)
    except OSError as e:
        raise ConfigError(f"Failed to save rules to '{rules_file}': {e}") from e
    logging.info(f"Successfully saved {len(rules)} rules to '{rules_file}'.")


def _find_rule(rules: Sequence[Rule], old_domain: str) -> Optional[int]:
    wanted = old_domain.strip()
    for index, rule in enumerate(rules):
        if rule.old_domain.strip() == wanted:
            return index
    return None


def add_rule(rules: List[Rule], old_domain: str, new_domain: str) -> List[Rule]:
    """Adds a rule, or updates the existing rule for the same old domain.

    An updated rule keeps its position and is re-enabled; a new rule is
    appended so that it has the lowest priority.

    Raises:
        ValueError: If `old_domain` is blank.
    """
    old_domain = old_domain.strip()
    if not old_domain:
        raise ValueError("The old domain of a rule cannot be empty.")
    updated = list(rules)
    index = _find_rule(updated, old_domain)
    if index is None:
        updated.append(Rule(old_domain=old_domain, new_domain=new_domain.strip()))
    else:
        updated[index] = Rule(old_domain=old_domain, new_domain=new_domain.strip(), enabled=True)
    return updated


def delete_rule(rules: List[Rule], old_domain: str) -> List[Rule]:
    """Removes the rule for `old_domain`.

    Raises:
        KeyError: If no rule exists for that domain.
    """
    index = _find_rule(rules, old_domain)
    if index is None:
        raise KeyError(old_domain)
    return [rule for i, rule in enumerate(rules) if i != index]


def set_rule_enabled(rules: List[Rule], old_domain: str, enabled: bool) -> List[Rule]:
    """Enables or disables the rule for `old_domain`.

    Raises:
        KeyError: If no rule exists for that domain.
    """
    index = _find_rule(rules, old_domain)
    if index is None:
        raise KeyError(old_domain)
    updated = list(rules)
    current = updated[index]
    updated[index] = Rule(old_domain=current.old_domain, new_domain=current.new_domain, enabled=enabled)
    return updated


def display_tracker_rules(rules: Sequence[Rule], console: Optional[Console] = None) -> None:
    """Displays the rules in evaluation order as a table."""
    if not rules:
        logging.info("No tracker replacement rules are currently defined.")
        return
    console = console or Console()
    table = Table(title="Tracker Replacement Rules", show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Old Domain", width=40)
    table.add_column("New Domain")
    table.add_column("Enabled")
    for position, rule in enumerate(rules, start=1):
        enabled = "[green]yes[/green]" if rule.enabled else "[yellow]no[/yellow]"
        table.add_row(str(position), Text(rule.old_domain), Text(rule.new_domain, style="cyan"), enabled)
    console.print(table)
