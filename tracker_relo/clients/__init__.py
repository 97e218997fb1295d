import logging

from .base import TorrentClient, Torrent, Tracker
from ..config_manager import BackendKind, ConnectionConfig


def get_client(connection: ConnectionConfig) -> TorrentClient:
    """
    Factory function to get a torrent client instance for a connection.

    No network I/O happens here; an unknown backend fails before any session
    is created.

    Raises:
        UnsupportedBackendError: If `connection.downloader_type` is not a known backend.
    """
    kind = BackendKind.parse(connection.downloader_type)

    logging.info(f"Creating client of type: {kind.value} for {connection.host}:{connection.port}")

    if kind is BackendKind.QBITTORRENT:
        from .qbittorrent import QBittorrentClient
        return QBittorrentClient(connection)
    from .transmission import TransmissionClient
    return TransmissionClient(connection)


def connect_client(connection: ConnectionConfig) -> TorrentClient:
    """Creates the client for `connection` and performs its handshake.

    The session is closed again if the handshake fails.
    """
    client = get_client(connection)
    try:
        client.connect()
    except Exception:
        client.close()
        raise
    return client


__all__ = ['TorrentClient', 'Torrent', 'Tracker', 'get_client', 'connect_client']
