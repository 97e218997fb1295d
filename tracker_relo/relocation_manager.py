"""Runs the tracker relocation pipelines against a backend.

Each pipeline connects a fresh client, fetches a fresh torrent snapshot and
closes the client again; nothing is cached between calls, so results always
reflect the backend's state at call time.

Pipelines:
- `scan`: read-only preview of every tracker a rule would rewrite.
- `execute`: applies those rewrites one tracker at a time and records the
  outcome of each, never stopping on a failure.
- `list_tracker_domains`: counts how many torrents use each tracker host.
- `test_connection`: connects and reports the backend's version string.

Torrents and trackers are processed sequentially, in snapshot order.
"""
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from .clients import connect_client
from .clients.base import Torrent
from .config_manager import AppConfig, ConnectionConfig
from .tracker_manager import Rule, apply_rules, get_tracker_domain
from .utils import ReplaceError


@dataclass
class MatchResult:
    """One tracker that a rule would rewrite."""
    hash: str
    name: str
    old_url: str
    new_url: str


@dataclass
class ScanResult:
    total_torrents: int
    matched_torrents: int
    matches: List[MatchResult]


@dataclass
class ReplaceOutcome:
    """The result of one attempted tracker replacement."""
    torrent_name: str
    old_url: str
    new_url: str
    success: bool
    error: Optional[str] = None


@dataclass
class TrackerDomain:
    domain: str
    count: int


def find_matches(torrents: Iterable[Torrent], rules: Sequence[Rule]) -> List[MatchResult]:
    """Evaluates the rules against every tracker of every torrent.

    Returns:
        One `MatchResult` per matching tracker, in torrent-then-tracker order.
    """
    matches: List[MatchResult] = []
    for torrent in torrents:
        for tracker in torrent.trackers:
            new_url = apply_rules(tracker.url, rules)
            if new_url is not None:
                matches.append(MatchResult(hash=torrent.hash, name=torrent.name, old_url=tracker.url, new_url=new_url))
    return matches


def test_connection(connection: ConnectionConfig) -> str:
    """Connects to the backend and returns its name and version.

    Raises:
        UnsupportedBackendError: For an unknown backend.
        ClientConnectionError: If the backend cannot be reached or rejects us.
    """
    logging.info(f"Testing connection to {connection.downloader_type}")
    with connect_client(connection) as client:
        try:
            version = client.test_connection()
        except Exception as e:
            logging.warning(f"Connection test failed: {e}")
            raise
    logging.info(f"Connection test succeeded: {version}")
    return version


def scan(connection: ConnectionConfig, rules: Sequence[Rule]) -> ScanResult:
    """Previews which trackers the rules would rewrite. Never modifies the backend.

    `matched_torrents` counts distinct torrent hashes, so a torrent with three
    matching trackers contributes one to it and three entries to `matches`.
    """
    active_rules = sum(1 for rule in rules if rule.enabled)
    logging.info(f"Scanning torrents with {active_rules} active rules")
    with connect_client(connection) as client:
        torrents = client.list_torrents()

    matches = find_matches(torrents, rules)
    matched_torrents = len({match.hash for match in matches})
    logging.info(f"Scan complete: {len(torrents)} total torrents, {matched_torrents} matched, {len(matches)} replacements")
    return ScanResult(total_torrents=len(torrents), matched_torrents=matched_torrents, matches=matches)


def execute(connection: ConnectionConfig, rules: Sequence[Rule]) -> List[ReplaceOutcome]:
    """Applies every matching rewrite and records one outcome per attempt.

    A failed replacement is recorded and the remaining ones are still
    attempted. Connection or listing failures abort before anything changes.
    """
    logging.info("Executing tracker replacements")
    outcomes: List[ReplaceOutcome] = []
    with connect_client(connection) as client:
        torrents = client.list_torrents()
        for match in find_matches(torrents, rules):
            try:
                client.replace_tracker(match.hash, match.old_url, match.new_url)
                outcomes.append(ReplaceOutcome(match.name, match.old_url, match.new_url, success=True))
            except ReplaceError as e:
                logging.error(f"Failed to replace tracker for '{match.name}': {e}")
                outcomes.append(ReplaceOutcome(match.name, match.old_url, match.new_url, success=False, error=str(e)))
            except Exception as e:
                logging.exception(f"Unexpected error replacing tracker for '{match.name}': {e}")
                outcomes.append(ReplaceOutcome(match.name, match.old_url, match.new_url, success=False, error=f"Unexpected error: {e}"))

    success_count = sum(1 for outcome in outcomes if outcome.success)
    logging.info(f"Replacement complete: {success_count} succeeded, {len(outcomes) - success_count} failed")
    return outcomes


def list_tracker_domains(connection: ConnectionConfig) -> List[TrackerDomain]:
    """Counts, per tracker host, how many torrents reference it.

    A torrent listing the same host several times is counted once. The result
    is sorted by count, highest first; equal counts are ordered by domain.
    """
    logging.info("Listing tracker domains")
    with connect_client(connection) as client:
        torrents = client.list_torrents()

    counts: Counter = Counter()
    for torrent in torrents:
        domains = {get_tracker_domain(tracker.url) for tracker in torrent.trackers}
        domains.discard(None)
        counts.update(domains)

    entries = [TrackerDomain(domain=domain, count=count) for domain, count in counts.items()]
    entries.sort(key=lambda entry: (-entry.count, entry.domain))
    logging.info(f"Found {len(entries)} unique tracker domains")
    return entries


def scan_torrents(config: AppConfig) -> ScanResult:
    return scan(config.connection, config.rules)


def execute_replace(config: AppConfig) -> List[ReplaceOutcome]:
    return execute(config.connection, config.rules)
