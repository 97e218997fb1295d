import pytest

from tracker_relo.clients.base import Torrent, Tracker
from tracker_relo.config_manager import ConnectionConfig
from tracker_relo.tracker_manager import Rule


@pytest.fixture
def qbit_connection():
    return ConnectionConfig(downloader_type='qbittorrent', host='127.0.0.1', port=8080, username='admin', password='secret')


@pytest.fixture
def transmission_connection():
    return ConnectionConfig(downloader_type='transmission', host='nas.local', port=9091, username='', password='')


@pytest.fixture
def migration_rules():
    return [Rule(old_domain='tracker.old.com', new_domain='tracker.new.com', enabled=True)]


@pytest.fixture
def sample_torrents():
    """Three torrents: one with three matching trackers, one with one, one with none."""
    return [
        Torrent(hash='aaa', name='Linux ISO', trackers=[
            Tracker('http://tracker.old.com:6969/announce', 2),
            Tracker('udp://tracker.old.com:1337/announce', 2),
            Tracker('https://tracker.old.com/announce?passkey=1', 4),
        ]),
        Torrent(hash='bbb', name='BSD ISO', trackers=[
            Tracker('http://other.org/announce', 2),
            Tracker('http://tracker.old.com/announce', 2),
        ]),
        Torrent(hash='ccc', name='Docs', trackers=[
            Tracker('udp://unrelated.net:80/announce', 1),
        ]),
    ]
