import abc
import logging
import warnings
from dataclasses import dataclass, field
from typing import List

import requests
import urllib3

from ..config_manager import ConnectionConfig
from ..utils import Timeouts, build_base_url

# Only these announce schemes are reported; DHT/PEX/LSD pseudo-trackers are skipped.
ANNOUNCE_SCHEMES = ('http', 'udp')


@dataclass
class Tracker:
    """A single announce URL on a torrent."""
    url: str
    # Backend specific status code, passed through untouched.
    status: int = 0


@dataclass
class Torrent:
    """A dataclass to hold standardized torrent information."""
    hash: str
    name: str
    trackers: List[Tracker] = field(default_factory=list)


def is_announce_url(url: str) -> bool:
    return url.startswith(ANNOUNCE_SCHEMES)


class _UnverifiedSession(requests.Session):
    """A session that skips TLS verification and silences urllib3's warning for its own requests only."""

    def __init__(self):
        super().__init__()
        self.verify = False

    def request(self, *args, **kwargs):
        with warnings.catch_warnings():
            warnings.simplefilter('ignore', urllib3.exceptions.InsecureRequestWarning)
            return super().request(*args, **kwargs)


class TorrentClient(abc.ABC):
    """
    An abstract base class for a torrent client.

    A client owns one `requests.Session` for its whole lifetime, so cookies
    and headers set during `connect()` are attached to every later call. A
    client instance is not meant to be shared between concurrent pipelines.
    """

    def __init__(self, connection: ConnectionConfig):
        """Initializes the client for one backend connection. No I/O happens here."""
        self.connection = connection
        self.base_url = build_base_url(connection.host, connection.port, connection.use_https)
        if connection.use_https:
            # Deliberate: local daemons commonly run with self-signed certificates.
            self.session = _UnverifiedSession()
        else:
            self.session = requests.Session()

    @property
    def timeout(self):
        return Timeouts.as_tuple()

    def _warn_insecure(self) -> None:
        if self.connection.use_https:
            logging.warning(f"CLIENT: TLS certificate verification is DISABLED for {self.base_url}.")

    @abc.abstractmethod
    def connect(self) -> None:
        """Performs the backend handshake. Raises ClientConnectionError on failure."""
        pass

    @abc.abstractmethod
    def test_connection(self) -> str:
        """Returns a human-readable backend name and version."""
        pass

    @abc.abstractmethod
    def list_torrents(self) -> List[Torrent]:
        """Fetches every torrent with its http/udp trackers."""
        pass

    @abc.abstractmethod
    def replace_tracker(self, torrent_hash: str, old_url: str, new_url: str) -> None:
        """Replaces one tracker URL on one torrent. Raises ReplaceError on failure."""
        pass

    def close(self) -> None:
        """Releases the HTTP session."""
        self.session.close()

    def __enter__(self) -> "TorrentClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
