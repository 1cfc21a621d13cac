import threading
from pathlib import Path

import pytest

from nastools.models import Episode, Subscription, Torrent
from nastools.modules.base import ClientTorrent, Release, ReleaseInfo
from nastools.services.file_manager import FileManager
from nastools.services.module_manager import Collaborators
from nastools.services.monitor import MONITOR_DOWNLOADS, SEARCH_AND_DOWNLOAD, build_monitor
from nastools.services.monitor import download_monitor
from nastools.services.monitor.download_monitor import DownloadMonitor
from nastools.services.monitor.utils import select_primary_video_file
from nastools.services.notifier import DOWNLOAD_COMPLETED
from nastools.services.path_mapper import PathMapper
from nastools.services.settings import MonitorSettings
from tests.fakes import FakeClient, FakeFeed


@pytest.fixture
def downloads(tmp_path):
    """Finished download as the client sees it: /remote/dl/Show.S01E01/..."""
    folder = tmp_path / "dl" / "Show.S01E01"
    folder.mkdir(parents=True)
    (folder / "sample.mkv").write_bytes(b"s" * 10)
    (folder / "Show.S01E01.1080p.mkv").write_bytes(b"v" * 500)
    (folder / "info.nfo").write_text("nfo")
    return tmp_path / "dl"


@pytest.fixture
def library(tmp_path):
    return tmp_path / "library"


@pytest.fixture
def make_monitor(store_factory, notifier, downloads, library):
    def _make(torrents, qbit_tag="nas-tools"):
        client = FakeClient(torrents)
        monitor = DownloadMonitor(
            store_factory,
            client=client,
            file_manager=FileManager({"tv": str(library / "tv"), "movie": str(library / "movies")}),
            path_mapper=PathMapper([{"from": "/remote/dl/", "to": str(downloads)}]),
            qbit_tag=qbit_tag,
            notifier=notifier,
        )
        return monitor, client
    return _make


def client_torrent(torrent_hash="ABC123", state="pausedUP", progress=1.0, tags="nas-tools",
                   content_path="/remote/dl/Show.S01E01"):
    return ClientTorrent(hash=torrent_hash, state=state, progress=progress, tags=tags, content_path=content_path)


class TestEpisodeCompletion:
    """Moving finished episodes into the library."""

    @pytest.fixture
    def downloading(self, make_subscription, make_episode, make_torrent):
        sub = make_subscription(season_number=1)
        ep = make_episode(sub, episode_number=1, status="downloading", torrent_hash="abc123")
        make_torrent(sub, episode_id=ep.id, hash="abc123", link="magnet:?xt=urn:btih:abc123")
        return sub, ep

    async def test_completed_download_is_moved(self, db, downloading, make_monitor, library, notifier):
        """Largest video file lands as 'Title - SxxEyy.ext' and the torrent is cleaned up."""
        sub, ep = downloading
        monitor, client = make_monitor([client_torrent()])

        await monitor.run()

        target = library / "tv" / "Show" / "Season 01" / "Show - S01E01.mkv"
        assert target.read_bytes() == b"v" * 500
        db.expire_all()
        episode = db.get(Episode, ep.id)
        assert episode.status == "completed"
        assert episode.file_path == str(target)
        assert db.query(Torrent).one().status == "completed"
        assert client.deleted == [("ABC123", True)]
        assert notifier.types() == [DOWNLOAD_COMPLETED]

    async def test_seeding_torrent_is_kept(self, db, downloading, make_monitor):
        """Complete but still seeding: moved, not deleted."""
        sub, ep = downloading
        monitor, client = make_monitor([client_torrent(state="uploading")])

        await monitor.run()

        db.expire_all()
        assert db.get(Episode, ep.id).status == "completed"
        assert client.deleted == []

    async def test_unmanaged_torrent_is_kept(self, db, downloading, make_monitor):
        """Without the managed tag the torrent is never deleted."""
        sub, ep = downloading
        monitor, client = make_monitor([client_torrent(tags="nas-tools")], qbit_tag="")
        client.torrents[0].tags = "someone-else"

        await monitor.run()

        db.expire_all()
        assert db.get(Episode, ep.id).status == "completed"
        assert client.deleted == []

    async def test_incomplete_download_waits(self, db, downloading, make_monitor, library):
        sub, ep = downloading
        monitor, client = make_monitor([client_torrent(state="downloading", progress=0.4)])

        await monitor.run()

        db.expire_all()
        assert db.get(Episode, ep.id).status == "downloading"
        assert not library.exists()

    async def test_move_failure_keeps_downloading(self, db, downloading, make_monitor, caplog):
        """A missing content path leaves the episode for the next poll."""
        sub, ep = downloading
        monitor, client = make_monitor([client_torrent(content_path="/remote/dl/missing")])

        await monitor.run()

        db.expire_all()
        episode = db.get(Episode, ep.id)
        assert episode.status == "downloading"
        assert episode.file_path is None
        assert db.query(Torrent).one().status == "downloading"
        assert client.deleted == []
        assert "abc123" in caplog.text.lower()

    async def test_filesystem_work_runs_in_worker_thread(self, downloading, make_monitor, monkeypatch):
        """File discovery and folder creation stay off the event loop thread."""
        loop_thread = threading.current_thread()
        seen = []

        def select(content_path, file_manager):
            seen.append(threading.current_thread())
            return select_primary_video_file(content_path, file_manager)

        monkeypatch.setattr(download_monitor, "select_primary_video_file", select)
        monitor, _ = make_monitor([client_torrent()])
        ensure_folder = monitor.file_manager.ensure_folder

        def ensure(*args):
            seen.append(threading.current_thread())
            return ensure_folder(*args)

        monkeypatch.setattr(monitor.file_manager, "ensure_folder", ensure)

        await monitor.run()

        assert len(seen) == 2
        assert loop_thread not in seen

    async def test_cleanup_retried_for_completed_episode(self, make_subscription, make_episode, make_monitor):
        """A completed episode whose torrent is still in the client is cleaned up later."""
        sub = make_subscription(season_number=1)
        make_episode(sub, status="completed", torrent_hash="abc123", file_path="/library/Show - S01E01.mkv")
        monitor, client = make_monitor([client_torrent()])

        await monitor.run()

        assert client.deleted == [("ABC123", True)]

    async def test_episode_season_falls_back(self, make_subscription, make_episode, make_monitor, library):
        """Flat-numbered episodes go into Season 01."""
        sub = make_subscription(source="bgm", media_type="tv", season_number=None)
        make_episode(sub, season_number=None, episode_number=7, status="downloading", torrent_hash="abc123")
        monitor, client = make_monitor([client_torrent()])

        await monitor.run()

        assert (library / "tv" / "Show" / "Season 01" / "Show - S01E07.mkv").exists()

    async def test_listing_failure_aborts_run(self, db, downloading, make_monitor, caplog):
        sub, ep = downloading
        monitor, client = make_monitor([])

        async def broken_list(tag=None):
            raise ConnectionError("qbit down")

        client.list_torrents = broken_list

        await monitor.run()

        db.expire_all()
        assert db.get(Episode, ep.id).status == "downloading"
        assert "qbit down" in caplog.text


class TestMovieCompletion:

    async def test_movie_moved_and_completed(self, db, make_subscription, make_torrent, make_monitor, library, downloads):
        sub = make_subscription(media_type="movie", title="Movie", status="downloading")
        make_torrent(sub, hash="mov1", link="magnet:?xt=urn:btih:mov1")
        (downloads / "Movie.2023.mp4").write_bytes(b"m" * 50)
        monitor, client = make_monitor([client_torrent("MOV1", content_path="/remote/dl/Movie.2023.mp4")])

        await monitor.run()

        assert (library / "movies" / "Movie" / "Movie.mp4").read_bytes() == b"m" * 50
        db.expire_all()
        assert db.get(Subscription, sub.id).status == "completed"
        torrent = db.query(Torrent).one()
        assert torrent.status == "completed"
        assert torrent.download_path == str(library / "movies" / "Movie" / "Movie.mp4")
        assert client.deleted == [("MOV1", True)]

    async def test_completed_movie_cleanup_retry(self, make_subscription, make_torrent, make_monitor):
        sub = make_subscription(media_type="movie", title="Movie", status="completed")
        make_torrent(sub, hash="mov1", status="completed", link="magnet:?xt=urn:btih:mov1")
        monitor, client = make_monitor([client_torrent("MOV1")])

        await monitor.run()

        assert client.deleted == [("MOV1", True)]

    async def test_subscription_folder_path(self, db, make_subscription, make_torrent, make_monitor, tmp_path, downloads):
        """A subscription folder replaces <media dir>/<title>."""
        custom = tmp_path / "custom"
        sub = make_subscription(media_type="movie", title="Movie", status="downloading", folder_path=str(custom))
        make_torrent(sub, hash="mov1", link="magnet:?xt=urn:btih:mov1")
        (downloads / "Movie.2023.mkv").write_bytes(b"m")
        monitor, client = make_monitor([client_torrent("MOV1", content_path="/remote/dl/Movie.2023.mkv")])

        await monitor.run()

        assert Path(custom / "Movie.mkv").exists()


class TestAcquisitionToCompletion:
    """Acquisition and completion wired together the way build_monitor does it."""

    async def test_submitted_download_is_completed(self, db, store_factory, notifier, make_subscription,
                                                   make_episode, downloads, library):
        sub = make_subscription(season_number=1)
        ep = make_episode(sub, episode_number=1)
        release = Release(
            title="[Group] Show - 01 [1080p]",
            link="magnet:?xt=urn:btih:ABC123&dn=show",
            info=ReleaseInfo(english_title="Show", episode_number=1),
        )
        client = FakeClient(finished_content_path="/remote/dl/Show.S01E01")
        settings = MonitorSettings(
            qbit_tag="nas-tools",
            media_dirs={"tv": str(library / "tv")},
            path_map=[{"from": "/remote/dl", "to": str(downloads)}],
        )
        scheduler = build_monitor(
            settings,
            Collaborators(feed=FakeFeed([release]), download_client=client),
            notifier=notifier,
            store_factory=store_factory,
        )

        assert await scheduler.run(SEARCH_AND_DOWNLOAD) == "succeeded"
        assert await scheduler.run(MONITOR_DOWNLOADS) == "succeeded"

        assert client.added_tags == ["nas-tools"]
        db.expire_all()
        episode = db.get(Episode, ep.id)
        assert episode.status == "completed"
        assert episode.file_path == str(library / "tv" / "Show" / "Season 01" / "Show - S01E01.mkv")
        assert client.deleted == [("ABC123", True)]

    async def test_completed_subscription_still_monitored(self, db, make_subscription, make_episode,
                                                          make_torrent, make_monitor):
        """Downloads in flight finish even after the subscription left 'active'."""
        sub = make_subscription(season_number=1, status="completed")
        ep = make_episode(sub, episode_number=1, status="downloading", torrent_hash="abc123")
        make_torrent(sub, episode_id=ep.id, hash="abc123", link="magnet:?xt=urn:btih:abc123")
        monitor, _ = make_monitor([client_torrent()])

        await monitor.run()

        db.expire_all()
        assert db.get(Episode, ep.id).status == "completed"
