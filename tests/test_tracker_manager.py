import io
import json
import unittest
from pathlib import Path

import pytest
from rich.console import Console

from tracker_relo.tracker_manager import (
    Rule, add_rule, apply_rules, delete_rule, display_tracker_rules, get_tracker_domain,
    load_tracker_rules, save_tracker_rules, set_rule_enabled
)
from tracker_relo.utils import ConfigError


class TestApplyRules(unittest.TestCase):
    def test_rewrites_matching_domain(self):
        rules = [Rule('tracker.old.com', 'tracker.new.com', True)]
        self.assertEqual(
            apply_rules('http://tracker.old.com:6969/announce', rules),
            'http://tracker.new.com:6969/announce',
        )

    def test_no_match_returns_none(self):
        rules = [Rule('tracker.old.com', 'tracker.new.com', True)]
        self.assertIsNone(apply_rules('udp://elsewhere.org:80/announce', rules))

    def test_empty_rule_list_returns_none(self):
        self.assertIsNone(apply_rules('http://tracker.old.com/announce', []))

    def test_replaces_every_occurrence(self):
        rules = [Rule('old.com', 'new.org', True)]
        url = 'http://old.com/announce?redirect=old.com'
        self.assertEqual(apply_rules(url, rules), 'http://new.org/announce?redirect=new.org')

    def test_first_enabled_match_wins(self):
        rules = [
            Rule('tracker.old.com', 'first.example', True),
            Rule('old.com', 'second.example', True),
        ]
        self.assertEqual(apply_rules('http://tracker.old.com/a', rules), 'http://first.example/a')

    def test_later_rule_used_when_earlier_does_not_match(self):
        rules = [
            Rule('nomatch.net', 'x.example', True),
            Rule('old.com', 'new.com', True),
        ]
        self.assertEqual(apply_rules('http://old.com/a', rules), 'http://new.com/a')

    def test_disabled_rule_never_matches(self):
        rules = [Rule('tracker.old.com', 'tracker.new.com', False)]
        self.assertIsNone(apply_rules('http://tracker.old.com/announce', rules))

    def test_disabled_rule_does_not_shadow_later_rule(self):
        rules = [
            Rule('tracker.old.com', 'disabled.example', False),
            Rule('tracker.old.com', 'tracker.new.com', True),
        ]
        self.assertEqual(apply_rules('http://tracker.old.com/a', rules), 'http://tracker.new.com/a')

    def test_blank_old_domain_is_skipped(self):
        rules = [Rule('   ', 'anything', True), Rule('', 'anything', True)]
        self.assertIsNone(apply_rules('http://tracker.old.com/a', rules))

    def test_domains_are_trimmed(self):
        rules = [Rule('  tracker.old.com ', ' tracker.new.com\t', True)]
        self.assertEqual(apply_rules('http://tracker.old.com/a', rules), 'http://tracker.new.com/a')

    def test_matching_is_case_sensitive(self):
        rules = [Rule('Tracker.Old.com', 'tracker.new.com', True)]
        self.assertIsNone(apply_rules('http://tracker.old.com/a', rules))

    def test_substring_matches_more_than_the_host(self):
        rules = [Rule('old.com:6969', 'new.com:443', True)]
        self.assertEqual(apply_rules('http://tracker.old.com:6969/a', rules), 'http://tracker.new.com:443/a')

    def test_empty_new_domain_removes_the_match(self):
        rules = [Rule('?passkey=abc', '', True)]
        self.assertEqual(apply_rules('http://t.org/announce?passkey=abc', rules), 'http://t.org/announce')


@pytest.mark.parametrize("url, expected", [
    ('http://tracker.example.com:8080/announce', 'tracker.example.com'),
    ('udp://Tracker.Example.COM:6969', 'tracker.example.com'),
    ('https://example.org/announce.php?passkey=x', 'example.org'),
    ('not a url', None),
])
def test_get_tracker_domain(url, expected):
    assert get_tracker_domain(url) == expected


class TestRuleEditing(unittest.TestCase):
    def setUp(self):
        self.rules = [Rule('a.com', 'b.com'), Rule('c.com', 'd.com', enabled=False)]

    def test_add_appends_new_rule_last(self):
        updated = add_rule(self.rules, ' e.com ', ' f.com ')
        self.assertEqual(updated[-1], Rule('e.com', 'f.com', True))
        self.assertEqual(len(self.rules), 2, "input list must not be mutated")

    def test_add_updates_existing_rule_in_place(self):
        updated = add_rule(self.rules, 'c.com', 'z.com')
        self.assertEqual(updated[1], Rule('c.com', 'z.com', True))
        self.assertEqual(len(updated), 2)

    def test_add_rejects_blank_domain(self):
        with self.assertRaises(ValueError):
            add_rule(self.rules, '  ', 'x.com')

    def test_delete_rule(self):
        self.assertEqual(delete_rule(self.rules, 'a.com'), [Rule('c.com', 'd.com', False)])

    def test_delete_unknown_rule(self):
        with self.assertRaises(KeyError):
            delete_rule(self.rules, 'missing.com')

    def test_toggle_rule(self):
        updated = set_rule_enabled(self.rules, 'c.com', True)
        self.assertTrue(updated[1].enabled)
        self.assertFalse(self.rules[1].enabled)


def test_rules_file_preserves_order(tmp_path: Path):
    rules_file = tmp_path / 'tracker_rules.json'
    rules = [Rule('z.com', 'y.com'), Rule('a.com', 'b.com', enabled=False)]
    save_tracker_rules(rules, rules_file)

    on_disk = json.loads(rules_file.read_text(encoding='utf-8'))
    assert [entry['old_domain'] for entry in on_disk] == ['z.com', 'a.com']
    assert load_tracker_rules(rules_file) == rules


def test_missing_rules_file_is_empty(tmp_path: Path):
    assert load_tracker_rules(tmp_path / 'nope.json') == []


def test_rule_defaults_to_enabled(tmp_path: Path):
    rules_file = tmp_path / 'tracker_rules.json'
    rules_file.write_text('[{"old_domain": "a.com", "new_domain": "b.com"}]', encoding='utf-8')
    assert load_tracker_rules(rules_file) == [Rule('a.com', 'b.com', True)]


@pytest.mark.parametrize("content", ['{not json', '{"old_domain": "a"}', '[{"new_domain": "b"}]'])
def test_invalid_rules_file_raises_config_error(tmp_path: Path, content):
    rules_file = tmp_path / 'tracker_rules.json'
    rules_file.write_text(content, encoding='utf-8')
    with pytest.raises(ConfigError):
        load_tracker_rules(rules_file)


def test_display_rules_shows_brackets_verbatim():
    console = Console(file=io.StringIO(), width=200, color_system=None)
    display_tracker_rules([Rule('[/b]old.com', 'new[x].com', enabled=False)], console)
    output = console.file.getvalue()
    assert '[/b]old.com' in output
    assert 'new[x].com' in output
