import logging
from typing import Any, Dict, List, Optional

import requests

from .base import TorrentClient, Torrent, Tracker, is_announce_url
from ..utils import ClientConnectionError, ProtocolError, ReplaceError

LOGIN_OK = "Ok."


class QBittorrentClient(TorrentClient):
    """
    A qBittorrent client implementation talking to the WebUI API (v2).

    Authentication is cookie based: the login call sets an SID cookie in the
    session's cookie jar, which `requests` then sends with every later call.
    There is no re-authentication once the session is established.
    """

    def _url(self, path: str) -> str:
        return f"{self.base_url}/api/v2/{path}"

    def connect(self) -> None:
        """Logs in to the WebUI.

        Raises:
            ClientConnectionError: If the request fails or the body is not `Ok.`.
        """
        logging.info(f"STATE: Connecting to qBittorrent at {self.base_url}...")
        self._warn_insecure()
        try:
            response = self.session.post(
                self._url('auth/login'),
                data={'username': self.connection.username, 'password': self.connection.password},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ClientConnectionError(f"Connection failed: {e}") from e

        text = response.text
        if text.strip() != LOGIN_OK:
            raise ClientConnectionError(f"Login failed: {text}")
        logging.info("CLIENT: Successfully logged in to qBittorrent.")

    def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> requests.Response:
        try:
            response = self.session.get(self._url(path), params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise ClientConnectionError(f"Request to {path} failed: {e}") from e
        if not response.ok:
            raise ProtocolError(f"{path} returned HTTP {response.status_code}: {response.text}")
        return response

    def _get_json(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        response = self._get(path, params)
        try:
            return response.json()
        except ValueError as e:
            raise ProtocolError(f"{path} returned invalid JSON: {e}") from e

    def test_connection(self) -> str:
        """Returns 'qBittorrent <version>'."""
        try:
            version = self._get('app/version').text
        except ProtocolError as e:
            raise ClientConnectionError(str(e)) from e
        return f"qBittorrent {version}"

    def list_torrents(self) -> List[Torrent]:
        """Fetches all torrents, then the trackers of each torrent one by one.

        The WebUI API has no batch endpoint for trackers, so this makes one
        request per torrent. On large libraries this dominates the runtime of
        every scan and execute.
        """
        torrents_data = self._get_json('torrents/info')
        if not isinstance(torrents_data, list):
            raise ProtocolError("torrents/info did not return a list")

        torrents: List[Torrent] = []
        for entry in torrents_data:
            try:
                torrent_hash = entry['hash']
                name = entry['name']
            except (KeyError, TypeError) as e:
                raise ProtocolError(f"Malformed torrent entry: {entry!r}") from e

            trackers_data = self._get_json('torrents/trackers', params={'hash': torrent_hash})
            if not isinstance(trackers_data, list):
                raise ProtocolError(f"torrents/trackers did not return a list for {torrent_hash}")
            trackers = []
            for tracker in trackers_data:
                url = tracker.get('url') if isinstance(tracker, dict) else None
                if not isinstance(url, str) or not is_announce_url(url):
                    continue
                status = tracker.get('status', 0)
                if isinstance(status, bool) or not isinstance(status, int):
                    raise ProtocolError(f"Malformed tracker status for {torrent_hash}: {status!r}")
                trackers.append(Tracker(url=url, status=status))
            torrents.append(Torrent(hash=torrent_hash, name=name, trackers=trackers))

        logging.info(f"CLIENT: Fetched {len(torrents)} torrent(s) from qBittorrent.")
        return torrents

    def replace_tracker(self, torrent_hash: str, old_url: str, new_url: str) -> None:
        """Edits one tracker URL in place, leaving the torrent's other trackers alone."""
        try:
            response = self.session.post(
                self._url('torrents/editTracker'),
                data={'hash': torrent_hash, 'origUrl': old_url, 'newUrl': new_url},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ReplaceError(str(e)) from e
        if not response.ok:
            raise ReplaceError(f"Edit tracker failed: {response.text}")
        logging.debug(f"Replaced tracker on {torrent_hash}: {old_url} -> {new_url}")
