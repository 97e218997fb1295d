import io

from rich.console import Console

from tracker_relo.relocation_manager import MatchResult, ReplaceOutcome, ScanResult, TrackerDomain
from tracker_relo.ui import display_replace_outcomes, display_scan_result, display_tracker_domains


def make_console():
    return Console(file=io.StringIO(), width=200, color_system=None)


def test_scan_result_lists_matches():
    console = make_console()
    result = ScanResult(3, 1, [MatchResult('aaa', 'Linux ISO', 'http://old/a', 'http://new/a')])
    display_scan_result(result, console)
    output = console.file.getvalue()
    assert 'Scanned 3 torrent(s)' in output
    assert 'Linux ISO' in output
    assert 'http://new/a' in output


def test_scan_result_without_matches_has_no_table():
    console = make_console()
    display_scan_result(ScanResult(3, 0, []), console)
    assert 'Planned Replacements' not in console.file.getvalue()


def test_replace_outcomes_summary():
    console = make_console()
    display_replace_outcomes([
        ReplaceOutcome('A', 'http://old/a', 'http://new/a', True),
        ReplaceOutcome('B', 'http://old/b', 'http://new/b', False, 'Edit tracker failed: nope'),
    ], console)
    output = console.file.getvalue()
    assert 'Edit tracker failed: nope' in output
    assert '1 succeeded, 1 failed.' in output


def test_tracker_domains():
    console = make_console()
    display_tracker_domains([TrackerDomain('tracker.old.com', 7)], console)
    output = console.file.getvalue()
    assert 'tracker.old.com' in output
    assert '7' in output
    console = make_console()
    display_tracker_domains([], console)
    assert 'No http/udp trackers found.' in console.file.getvalue()


def test_brackets_in_names_and_urls_are_shown_verbatim():
    console = make_console()
    result = ScanResult(2, 2, [
        MatchResult('h1', '[x264] Movie', 'http://[fe80::1]:80/a', 'http://new/a'),
        MatchResult('h2', 'Show [/b] S01', 'http://old/b', 'http://new/b'),
    ])
    display_scan_result(result, console)
    output = console.file.getvalue()
    assert '[x264] Movie' in output
    assert 'http://[fe80::1]:80/a' in output
    assert 'Show [/b] S01' in output


def test_brackets_in_outcomes_are_shown_verbatim():
    console = make_console()
    display_replace_outcomes([
        ReplaceOutcome('[/i] Album', 'http://[::1]:80/a', 'http://new/a', False, 'RPC error: [bad] field'),
    ], console)
    output = console.file.getvalue()
    assert '[/i] Album' in output
    assert 'http://[::1]:80/a' in output
    assert 'RPC error: [bad] field' in output
