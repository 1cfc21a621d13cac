"""
Background monitor: discovery, acquisition and completion jobs on one JobScheduler.
"""
from typing import Optional

from nastools.database import SessionLocal
from nastools.services.file_manager import FileManager
from nastools.services.module_manager import Collaborators
from nastools.services.monitor.discovery import EpisodeDiscovery
from nastools.services.monitor.download_monitor import DownloadMonitor
from nastools.services.monitor.downloads import ReleaseDownloader
from nastools.services.monitor.scheduler import JobScheduler
from nastools.services.notifier import Notifier
from nastools.services.path_mapper import PathMapper
from nastools.services.settings import MonitorSettings
from nastools.services.store import MediaStore, StoreFactory

CHECK_NEW_EPISODES = "checkNewEpisodes"
SEARCH_AND_DOWNLOAD = "searchAndDownload"
MONITOR_DOWNLOADS = "monitorDownloads"


def default_store_factory() -> MediaStore:
    return MediaStore(SessionLocal())


def build_monitor(settings: MonitorSettings, collaborators: Collaborators,
                  notifier: Optional[Notifier] = None,
                  store_factory: StoreFactory = default_store_factory) -> JobScheduler:
    """JobScheduler with the three monitor jobs registered (not started)"""
    notifier = notifier or Notifier()

    discovery = EpisodeDiscovery(
        store_factory,
        metadata=collaborators.metadata,
        alt_metadata=collaborators.alt_metadata,
        notifier=notifier,
    )
    downloader = ReleaseDownloader(
        store_factory,
        feed=collaborators.feed,
        client=collaborators.download_client,
        download_dirs=settings.download_dirs,
        qbit_tag=settings.qbit_tag,
        notifier=notifier,
    )
    monitor = DownloadMonitor(
        store_factory,
        client=collaborators.download_client,
        file_manager=FileManager(settings.media_dirs),
        path_mapper=PathMapper(settings.path_map),
        qbit_tag=settings.qbit_tag,
        notifier=notifier,
    )

    scheduler = JobScheduler(settings.scheduler_timezone)
    scheduler.register(
        CHECK_NEW_EPISODES, "Check subscriptions for newly aired episodes",
        "0 0 * * *", discovery.run, run_on_start=True,
    )
    scheduler.register(
        SEARCH_AND_DOWNLOAD, "Search feeds and submit matching releases",
        "0 * * * *", downloader.run,
    )
    scheduler.register(
        MONITOR_DOWNLOADS, "Move finished downloads into the library",
        "*/5 * * * *", monitor.run,
    )
    return scheduler
