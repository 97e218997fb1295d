"""Manages loading, saving, and validating the application's configuration.

The configuration is split over two files that live side by side:
- `config.ini` holds the `[CONNECTION]` section describing the backend.
- `tracker_rules.json` holds the ordered replacement rules.

`ConfigStore` turns the pair into an `AppConfig` and back. Loading never fails:
a missing or unreadable configuration yields the built-in defaults. Saving
uses `configupdater` so that comments and unrelated sections a user added to
`config.ini` are preserved.
"""
import configparser
import enum
import logging
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import List, Optional

import configupdater

from .encryption_utils import decrypt_password, encrypt_password, is_encrypted
from .tracker_manager import Rule, load_tracker_rules, save_tracker_rules
from .utils import ConfigError, UnsupportedBackendError

CONNECTION_SECTION = 'CONNECTION'
DEFAULT_RULES_FILENAME = 'tracker_rules.json'


class BackendKind(enum.Enum):
    """The torrent client daemons a connection can point at."""
    QBITTORRENT = 'qbittorrent'
    TRANSMISSION = 'transmission'

    @classmethod
    def parse(cls, value: "str | BackendKind") -> "BackendKind":
        """Resolves a backend name case-insensitively.

        Raises:
            UnsupportedBackendError: If the name is not a known backend.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedBackendError(f"Unknown downloader type: {value}") from None


@dataclass(frozen=True)
class ConnectionConfig:
    """Everything needed to reach one backend. Built by the caller."""
    downloader_type: str = BackendKind.QBITTORRENT.value
    host: str = '127.0.0.1'
    port: int = 8080
    username: str = 'admin'
    password: str = ''
    use_https: bool = False

    def __repr__(self) -> str:
        # Keep the password out of logs and tracebacks.
        return (f"ConnectionConfig(downloader_type={self.downloader_type!r}, host={self.host!r}, "
                f"port={self.port!r}, username={self.username!r}, use_https={self.use_https!r})")


@dataclass
class AppConfig:
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    rules: List[Rule] = field(default_factory=list)


class ConfigStore:
    """Loads and saves an `AppConfig` from `config.ini` plus a JSON rules file.

    Attributes:
        config_path (Path): The INI file holding the `[CONNECTION]` section.
        rules_path (Path): The JSON rules file. Defaults to
            `tracker_rules.json` next to `config_path`.
        encrypt_passwords (bool): If `True`, `save` stores the password as an
            `ENC:` token keyed from the OS keychain. Encrypted values are
            decrypted on load regardless of this flag.
    """

    def __init__(self, config_path: Path, rules_path: Optional[Path] = None, encrypt_passwords: bool = False):
        self.config_path = Path(config_path)
        self.rules_path = Path(rules_path) if rules_path else self.config_path.parent / DEFAULT_RULES_FILENAME
        self.encrypt_passwords = encrypt_passwords

    def load(self, strict: bool = False) -> AppConfig:
        """Loads the configuration, falling back to defaults on any failure.

        Args:
            strict: If `True`, an unreadable file raises instead of yielding
                defaults. Callers that save the result back must use this so
                a bad read never overwrites the user's files.

        Raises:
            ConfigError: Only in strict mode, if either file cannot be read.
        """
        if not self.config_path.is_file() and not self.rules_path.is_file():
            logging.info(f"CONFIG: No configuration found at '{self.config_path}'. Using defaults.")
            return AppConfig()
        try:
            connection = self._read_connection()
            rules = load_tracker_rules(self.rules_path)
        except ConfigError as e:
            if strict:
                raise
            logging.warning(f"CONFIG: {e}. Falling back to the default configuration.")
            return AppConfig()
        logging.info(f"CONFIG: Loaded connection to {connection.downloader_type} at {connection.host}:{connection.port} and {len(rules)} rule(s).")
        return AppConfig(connection=connection, rules=rules)

    def _read_connection(self) -> ConnectionConfig:
        if not self.config_path.is_file():
            return ConnectionConfig()
        parser = configparser.ConfigParser(interpolation=None)
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                parser.read_file(f)
            if not parser.has_section(CONNECTION_SECTION):
                return ConnectionConfig()
            section = parser[CONNECTION_SECTION]
            defaults = ConnectionConfig()
            password = section.get('password', defaults.password)
            if is_encrypted(password):
                password = decrypt_password(password)
            return ConnectionConfig(
                downloader_type=section.get('downloader_type', defaults.downloader_type).strip(),
                host=section.get('host', defaults.host).strip(),
                port=section.getint('port', defaults.port),
                username=section.get('username', defaults.username),
                password=password,
                use_https=section.getboolean('use_https', defaults.use_https),
            )
        except (OSError, configparser.Error, ValueError) as e:
            raise ConfigError(f"Could not parse '{self.config_path}': {e}") from e

    def save(self, config: AppConfig) -> None:
        """Writes the configuration to disk.

        Raises:
            ConfigError: If either file cannot be written.
        """
        connection = config.connection
        password = connection.password
        if self.encrypt_passwords and password and not is_encrypted(password):
            password = encrypt_password(password)

        updater = configupdater.ConfigUpdater()
        try:
            if self.config_path.is_file():
                updater.read(self.config_path, encoding='utf-8')
            if not updater.has_section(CONNECTION_SECTION):
                updater.add_section(CONNECTION_SECTION)
            section = updater[CONNECTION_SECTION]
            section['downloader_type'] = connection.downloader_type
            section['host'] = connection.host
            section['port'] = str(connection.port)
            section['username'] = connection.username
            section['password'] = password
            section['use_https'] = 'true' if connection.use_https else 'false'

            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with self.config_path.open('w', encoding='utf-8') as f:
                updater.write(f)
        except (OSError, configparser.Error) as e:
            raise ConfigError(f"Failed to save configuration to '{self.config_path}': {e}") from e
        logging.info(f"CONFIG: Saved connection settings to '{self.config_path}'.")
        save_tracker_rules(config.rules, self.rules_path)

    def update_connection(self, **changes) -> AppConfig:
        """Loads the stored configuration, applies connection changes and saves it."""
        config = self.load(strict=True)
        config.connection = replace(config.connection, **changes)
        self.save(config)
        return config


class ConfigValidator:
    """Validates the structure and values of a `config.ini`.

    Attributes:
        config (configparser.ConfigParser): The configuration object to validate.
        errors (List[str]): Critical problems. A non-empty list means the
            configuration is invalid.
        warnings (List[str]): Non-critical problems.
    """

    REQUIRED_OPTIONS = ['downloader_type', 'host', 'port']

    def __init__(self, config: configparser.ConfigParser, rules: Optional[List[Rule]] = None):
        self.config = config
        self.rules = rules or []
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate(self, report: bool = True) -> bool:
        """Runs all checks and optionally prints the results to stderr.

        Returns:
            `True` if no errors were found.
        """
        self._check_connection_section()
        self._check_backend()
        self._check_port()
        self._check_use_https()
        self._check_rules()

        if report and self.errors:
            print("Configuration errors found:", file=sys.stderr)
            for error in self.errors:
                print(f" ❌ {error}", file=sys.stderr)
        if report and self.warnings:
            print("Configuration warnings:", file=sys.stderr)
            for warning in self.warnings:
                print(f" ⚠️ {warning}", file=sys.stderr)
        return not self.errors

    def _check_connection_section(self) -> None:
        if not self.config.has_section(CONNECTION_SECTION):
            self.errors.append(f"Missing required section: [{CONNECTION_SECTION}]")
            return
        for option in self.REQUIRED_OPTIONS:
            if not self.config.has_option(CONNECTION_SECTION, option):
                self.errors.append(f"Missing option '{option}' in [{CONNECTION_SECTION}]")
            elif not self.config.get(CONNECTION_SECTION, option).strip():
                self.errors.append(f"Option '{option}' in [{CONNECTION_SECTION}] is empty")

    def _check_backend(self) -> None:
        value = self.config.get(CONNECTION_SECTION, 'downloader_type', fallback='').strip()
        if not value:
            return
        try:
            BackendKind.parse(value)
        except UnsupportedBackendError:
            valid = ', '.join(kind.value for kind in BackendKind)
            self.errors.append(f"Invalid downloader_type '{value}'. Must be one of: {valid}")

    def _check_port(self) -> None:
        if not self.config.has_option(CONNECTION_SECTION, 'port'):
            return
        try:
            port = self.config.getint(CONNECTION_SECTION, 'port')
        except ValueError:
            self.errors.append("Option 'port' must be an integer")
            return
        if not 1 <= port <= 65535:
            self.errors.append(f"port={port} is outside the valid range [1-65535]")

    def _check_use_https(self) -> None:
        if not self.config.has_option(CONNECTION_SECTION, 'use_https'):
            return
        try:
            use_https = self.config.getboolean(CONNECTION_SECTION, 'use_https')
        except ValueError:
            self.errors.append("Option 'use_https' must be a boolean (true/false)")
            return
        if use_https:
            self.warnings.append("use_https is enabled: TLS certificates will NOT be verified")

    def _check_rules(self) -> None:
        seen = set()
        for position, rule in enumerate(self.rules, start=1):
            old_domain = rule.old_domain.strip()
            if not old_domain:
                self.warnings.append(f"Rule #{position} has an empty old domain and will never match")
                continue
            if old_domain in seen:
                self.warnings.append(f"Rule #{position} for '{old_domain}' is shadowed by an earlier rule")
            seen.add(old_domain)
            if not rule.new_domain.strip():
                self.warnings.append(f"Rule #{position} for '{old_domain}' has an empty new domain")
