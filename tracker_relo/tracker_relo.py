#!/usr/bin/env python3
# Tracker Relo
#
# Rewrites tracker announce URLs across all torrents of a qBittorrent or
# Transmission client, driven by an ordered list of domain replacement rules.

__version__ = "1.0.0"

import argparse
import configparser
import getpass
import logging
import sys
from pathlib import Path
from typing import List, Optional

import argcomplete
from rich.console import Console
from rich.logging import RichHandler

from . import relocation_manager
from .config_manager import BackendKind, ConfigStore, ConfigValidator
from .system_manager import get_app_dir, setup_logging
from .tracker_manager import (
    add_rule, delete_rule, display_tracker_rules, load_tracker_rules, set_rule_enabled
)
from .ui import display_replace_outcomes, display_scan_result, display_tracker_domains
from .utils import ConfigError, TrackerReloError


def build_parser(default_config_path: Path) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Replace tracker announce URLs in qBittorrent or Transmission using domain rules.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument('--config', default=str(default_config_path), help='Path to the configuration file.')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging.')
    parser.add_argument('--version', action='store_true', help="Show program's version and config file path, then exit.")

    action_group = parser.add_mutually_exclusive_group()
    action_group.add_argument('--execute', action='store_true', help='Apply the replacements. Without this flag only a preview is shown.')
    action_group.add_argument('--test-connection', action='store_true', help='Connect to the client, print its version and exit.')
    action_group.add_argument('--list-domains', action='store_true', help='List tracker domains with the number of torrents using each.')
    action_group.add_argument('--check-config', action='store_true', help='Validate the configuration file and exit.')
    action_group.add_argument('-l', '--list-rules', action='store_true', help='List all replacement rules and exit.')
    action_group.add_argument('-a', '--add-rule', nargs=2, metavar=('OLD_DOMAIN', 'NEW_DOMAIN'), help='Add or update a rule and exit.')
    action_group.add_argument('-d', '--delete-rule', metavar='OLD_DOMAIN', help='Delete a rule and exit.')
    action_group.add_argument('--enable-rule', metavar='OLD_DOMAIN', help='Enable a rule and exit.')
    action_group.add_argument('--disable-rule', metavar='OLD_DOMAIN', help='Disable a rule and exit.')
    action_group.add_argument('--set-connection', action='store_true', help='Store the connection options given below and exit.')
    action_group.add_argument('--set-password', action='store_true', help='Prompt for the client password, store it and exit.')

    parser.add_argument('-y', '--yes', action='store_true', help='(For --execute) Do not ask for confirmation.')
    parser.add_argument('--encrypt', action='store_true', help='Store the password encrypted with a key kept in the OS keychain.')

    connection_group = parser.add_argument_group('connection options (for --set-connection)')
    connection_group.add_argument('--backend', choices=[kind.value for kind in BackendKind], help='Torrent client type.')
    connection_group.add_argument('--host', help='Client host name or IP address.')
    connection_group.add_argument('--port', type=int, help='Client web interface port.')
    connection_group.add_argument('--username', help='Client user name.')
    connection_group.add_argument('--https', action=argparse.BooleanOptionalAction, default=None,
                                  help='Use HTTPS. Certificates are NOT verified.')
    return parser


def _setup_console_logging(debug: bool) -> None:
    log_level = logging.DEBUG if debug else logging.INFO
    rich_handler = RichHandler(level=log_level, show_path=False, rich_tracebacks=True, markup=False, console=Console(stderr=True))
    rich_handler.setFormatter(logging.Formatter('%(message)s'))
    logging.getLogger().addHandler(rich_handler)


def _handle_rule_commands(args: argparse.Namespace, store: ConfigStore, console: Console) -> bool:
    """Runs the rule editing commands. Returns `True` if one was handled."""
    if args.list_rules:
        display_tracker_rules(store.load().rules, console)
        return True

    if not (args.add_rule or args.delete_rule or args.enable_rule or args.disable_rule):
        return False

    config = store.load(strict=True)
    try:
        if args.add_rule:
            old_domain, new_domain = args.add_rule
            config.rules = add_rule(config.rules, old_domain, new_domain)
            logging.info(f"Rule set: '{old_domain.strip()}' -> '{new_domain.strip()}'")
        elif args.delete_rule:
            config.rules = delete_rule(config.rules, args.delete_rule)
            logging.info(f"Rule deleted: '{args.delete_rule}'")
        else:
            enabled = bool(args.enable_rule)
            old_domain = args.enable_rule or args.disable_rule
            config.rules = set_rule_enabled(config.rules, old_domain, enabled)
            logging.info(f"Rule '{old_domain}' {'enabled' if enabled else 'disabled'}")
    except KeyError as e:
        raise ConfigError(f"No rule found for domain {e}") from None
    except ValueError as e:
        raise ConfigError(str(e)) from None

    store.save(config)
    display_tracker_rules(config.rules, console)
    return True


def _handle_connection_commands(args: argparse.Namespace, store: ConfigStore) -> bool:
    """Stores connection settings. Returns `True` if a command was handled."""
    if args.set_connection:
        changes = {
            'downloader_type': args.backend,
            'host': args.host,
            'port': args.port,
            'username': args.username,
            'use_https': args.https,
        }
        changes = {key: value for key, value in changes.items() if value is not None}
        if not changes:
            raise ConfigError("--set-connection needs at least one of --backend, --host, --port, --username, --https")
        store.update_connection(**changes)
        return True

    if args.set_password:
        password = getpass.getpass("Client password: ")
        store.update_connection(password=password)
        return True

    return False


def _check_config(store: ConfigStore) -> bool:
    logging.info("--- Running Configuration Check ---")
    parser = configparser.ConfigParser(interpolation=None)
    try:
        if not parser.read(store.config_path, encoding='utf-8'):
            raise ConfigError(f"Configuration file not found at '{store.config_path}'")
        rules = load_tracker_rules(store.rules_path)
    except configparser.Error as e:
        raise ConfigError(f"Could not parse '{store.config_path}': {e}") from e

    if ConfigValidator(parser, rules).validate():
        logging.info("SUCCESS: Configuration file appears to be valid.")
        return True
    logging.error("FAILURE: Configuration file has errors.")
    return False


def _run_execute(args: argparse.Namespace, store: ConfigStore, console: Console) -> None:
    config = store.load()
    preview = relocation_manager.scan_torrents(config)
    display_scan_result(preview, console)
    if not preview.matches:
        return
    if not args.yes:
        answer = console.input(f"Apply {len(preview.matches)} replacement(s)? (y/n): ").lower().strip()
        if answer != 'y':
            logging.info("Aborted by user. Nothing was changed.")
            return
    outcomes = relocation_manager.execute_replace(config)
    display_replace_outcomes(outcomes, console)


def main(argv: Optional[List[str]] = None) -> int:
    """The main entry point for the application.

    Returns:
        0 on successful execution, 1 on error.
    """
    parser = build_parser(get_app_dir() / 'config.ini')
    argcomplete.autocomplete(parser)
    args = parser.parse_args(argv)

    if args.version:
        print(f"{Path(sys.argv[0]).name} {__version__}")
        print(f"Configuration file: {args.config}")
        return 0

    config_path = Path(args.config).expanduser()
    try:
        setup_logging(config_path.parent / 'logs', args.debug)
    except OSError as e:
        print(f"WARNING: File logging disabled: {e}", file=sys.stderr)
    _setup_console_logging(args.debug)
    logging.info(f"Using configuration file: {config_path}")

    console = Console()
    store = ConfigStore(config_path, encrypt_passwords=args.encrypt)
    try:
        if args.check_config:
            return 0 if _check_config(store) else 1
        if _handle_rule_commands(args, store, console):
            return 0
        if _handle_connection_commands(args, store):
            return 0

        if args.test_connection:
            console.print(relocation_manager.test_connection(store.load().connection), markup=False)
        elif args.list_domains:
            display_tracker_domains(relocation_manager.list_tracker_domains(store.load().connection), console)
        elif args.execute:
            _run_execute(args, store, console)
        else:
            display_scan_result(relocation_manager.scan_torrents(store.load()), console)
    except TrackerReloError as e:
        logging.error(str(e))
        return 1
    except KeyboardInterrupt:
        logging.warning("Process interrupted by user. Shutting down.")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
