import base64
import logging
import threading
from typing import Any, Dict, List, Optional

import requests

from .base import TorrentClient, Torrent, Tracker, is_announce_url
from ..config_manager import ConnectionConfig
from ..utils import ClientConnectionError, ProtocolError, ReplaceError, TrackerReloError

SESSION_ID_HEADER = 'X-Transmission-Session-Id'
RPC_PATH = '/transmission/rpc'
# Transmission reports no tracker status through torrent-get's tracker list.
TRACKER_STATUS_UNKNOWN = 0


class TransmissionClient(TorrentClient):
    """
    A Transmission client implementation talking JSON-RPC.

    Transmission protects its RPC endpoint against CSRF: the first request is
    answered with HTTP 409 and an `X-Transmission-Session-Id` header whose
    value must be echoed on every later request. `connect()` performs that
    bootstrap once; the token is never refreshed afterwards.
    """

    def __init__(self, connection: ConnectionConfig):
        super().__init__(connection)
        self.url = f"{self.base_url}{RPC_PATH}"
        self._session_id = ''
        self._session_id_lock = threading.Lock()
        if connection.username:
            credentials = f"{connection.username}:{connection.password}".encode('utf-8')
            self.session.headers['Authorization'] = f"Basic {base64.b64encode(credentials).decode('ascii')}"

    @property
    def session_id(self) -> str:
        with self._session_id_lock:
            return self._session_id

    @session_id.setter
    def session_id(self, value: str) -> None:
        with self._session_id_lock:
            self._session_id = value

    def connect(self) -> None:
        """Bootstraps the RPC session token with a `session-get` call.

        Raises:
            ClientConnectionError: On network failure, a 409 without a token,
                or any status other than 409 or 2xx.
        """
        logging.info(f"STATE: Connecting to Transmission at {self.url}...")
        self._warn_insecure()
        try:
            response = self.session.post(
                self.url,
                json={'method': 'session-get', 'arguments': {}},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ClientConnectionError(f"Connection failed: {e}") from e

        token = response.headers.get(SESSION_ID_HEADER)
        if response.status_code == 409:
            if token is None:
                raise ClientConnectionError("No session ID in 409 response")
            self.session_id = token
        elif response.ok:
            # Some proxies and older daemons skip the CSRF handshake entirely.
            self.session_id = token or ''
        else:
            raise ClientConnectionError(f"Unexpected status: {response.status_code} {response.reason}")
        logging.info("CLIENT: Transmission RPC session established.")

    def _rpc_call(self, method: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Sends one RPC request and returns its `arguments` object.

        Raises:
            ClientConnectionError: If the request cannot be sent.
            ProtocolError: If the response is not JSON or `result` is not `success`.
        """
        payload = {'method': method, 'arguments': arguments if arguments is not None else {}}
        logging.debug(f"RPC request: {payload}")
        try:
            response = self.session.post(
                self.url,
                json=payload,
                headers={SESSION_ID_HEADER: self.session_id},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ClientConnectionError(f"RPC '{method}' failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise ProtocolError(f"RPC '{method}' returned HTTP {response.status_code} with a non-JSON body") from e
        if not isinstance(data, dict) or 'result' not in data:
            raise ProtocolError(f"RPC '{method}' returned an unexpected response: {data!r}")
        if data['result'] != 'success':
            raise ProtocolError(f"RPC error: {data['result']}")
        return data.get('arguments') or {}

    def test_connection(self) -> str:
        """Returns 'Transmission <version>'."""
        arguments = self._rpc_call('session-get')
        version = arguments.get('version')
        return f"Transmission {version if isinstance(version, str) else 'unknown'}"

    def list_torrents(self) -> List[Torrent]:
        """Fetches every torrent with its trackers in a single `torrent-get`."""
        arguments = self._rpc_call('torrent-get', {'fields': ['hashString', 'name', 'trackers']})
        torrents_data = arguments.get('torrents')
        if not isinstance(torrents_data, list):
            raise ProtocolError("No torrents field")

        torrents: List[Torrent] = []
        for entry in torrents_data:
            if not isinstance(entry, dict):
                raise ProtocolError(f"Malformed torrent entry: {entry!r}")
            trackers = []
            for tracker in entry.get('trackers') or []:
                announce = tracker.get('announce') if isinstance(tracker, dict) else None
                if isinstance(announce, str) and is_announce_url(announce):
                    trackers.append(Tracker(url=announce, status=TRACKER_STATUS_UNKNOWN))
            torrents.append(Torrent(
                hash=str(entry.get('hashString', '')),
                name=str(entry.get('name', '')),
                trackers=trackers,
            ))

        logging.info(f"CLIENT: Fetched {len(torrents)} torrent(s) from Transmission.")
        return torrents

    def _find_tracker_id(self, torrent_hash: str, old_url: str) -> int:
        arguments = self._rpc_call('torrent-get', {'ids': [torrent_hash], 'fields': ['trackers']})
        torrents_data = arguments.get('torrents')
        if not isinstance(torrents_data, list):
            raise ReplaceError("No torrents")
        if not torrents_data:
            raise ReplaceError("Torrent not found")

        entry = torrents_data[0]
        trackers = entry.get('trackers') if isinstance(entry, dict) else None
        if not isinstance(trackers, list):
            raise ReplaceError("No trackers")
        for tracker in trackers:
            if isinstance(tracker, dict) and tracker.get('announce') == old_url and isinstance(tracker.get('id'), int):
                return tracker['id']
        raise ReplaceError("Tracker not found in torrent")

    def replace_tracker(self, torrent_hash: str, old_url: str, new_url: str) -> None:
        """Replaces one tracker by resolving its id, then sending `trackerReplace`.

        Uses the Transmission 4.x `trackerReplace` argument of `torrent-set`,
        which takes a flat `[id, url]` pair.
        """
        try:
            tracker_id = self._find_tracker_id(torrent_hash, old_url)
            self._rpc_call('torrent-set', {'ids': [torrent_hash], 'trackerReplace': [tracker_id, new_url]})
        except ReplaceError:
            raise
        except TrackerReloError as e:
            raise ReplaceError(str(e)) from e
        logging.debug(f"Replaced tracker {tracker_id} on {torrent_hash}: {old_url} -> {new_url}")
