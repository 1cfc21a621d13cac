"""
Completion monitor - moves finished downloads into the library and reclaims
client torrents once seeding has stopped.

A failed move leaves every row untouched, so the next poll retries it.
"""
import asyncio
import logging
from typing import List, Optional, Set

from nastools.models.episode import Episode
from nastools.models.subscription import Subscription
from nastools.modules.base import ClientTorrent, DownloadClient
from nastools.services.file_manager import FileManager
from nastools.services.monitor.qbit import QbitLifecycle, is_download_complete, managed_tags
from nastools.services.monitor.utils import (
    build_episode_filename,
    build_movie_filename,
    find_client_torrent,
    select_primary_video_file,
)
from nastools.services.notifier import DOWNLOAD_COMPLETED, Notifier
from nastools.services.path_mapper import PathMapper
from nastools.services.store import MediaStore, StoreFactory
from nastools.utils.filename import normalize_filename

logger = logging.getLogger(__name__)


class DownloadMonitor:

    def __init__(self, store_factory: StoreFactory,
                 client: Optional[DownloadClient],
                 file_manager: FileManager,
                 path_mapper: Optional[PathMapper] = None,
                 qbit_tag: str = "",
                 notifier: Optional[Notifier] = None):
        self.store_factory = store_factory
        self.client = client
        self.lifecycle = QbitLifecycle(client) if client else None
        self.file_manager = file_manager
        self.path_mapper = path_mapper or PathMapper()
        self.tags: Set[str] = managed_tags(qbit_tag)
        self.notifier = notifier or Notifier()

    async def run(self):
        """Check downloading episodes and movies against the client"""
        if self.lifecycle is None:
            logger.warning("Download client module not loaded, skipping download monitor")
            return

        try:
            torrents = await self.lifecycle.managed_torrents(self.tags)
        except Exception as e:
            logger.error(f"✗ Failed to list torrents from download client: {e}", exc_info=True)
            return

        with self.store_factory() as store:
            for sub in store.list_monitored_subscriptions():
                try:
                    if sub.is_episodic:
                        await self._check_episodes(store, sub, torrents)
                    else:
                        await self._check_movie(store, sub, torrents)
                except Exception as e:
                    logger.error(
                        f"✗ Download monitor failed for subscription {sub.id} ({sub.title}): {e}",
                        exc_info=True
                    )

    async def _check_episodes(self, store: MediaStore, sub: Subscription, torrents: List[ClientTorrent]):
        for ep in store.list_episodes(sub.id):
            if not ep.torrent_hash:
                continue
            torrent = find_client_torrent(torrents, ep.torrent_hash)
            if torrent is None:
                continue

            if ep.status == "downloading":
                if not is_download_complete(torrent):
                    continue
                await self._complete_episode(store, sub, ep, torrent)
            elif ep.status == "completed" and ep.file_path and is_download_complete(torrent):
                await self._cleanup(torrent, subscription=sub.id, episode=ep.id)

    async def _complete_episode(self, store: MediaStore, sub: Subscription, ep: Episode, torrent: ClientTorrent):
        season = ep.season_number or sub.season_number or 1
        target = await self._move(
            torrent,
            media_type=sub.media_type,
            title=sub.title,
            season=season,
            folder_path=sub.folder_path,
            build_name=lambda source: build_episode_filename(
                normalize_filename(sub.title), season, ep.episode_number, source
            ),
        )
        if target is None:
            return

        store.update_episode(ep.id, {"status": "completed", "file_path": target})
        self._mark_torrent_completed(store, torrent.hash, target)
        logger.info(f"✓ Completed {sub.title} S{season:02d}E{ep.episode_number:02d} -> {target}")
        self.notifier.emit(DOWNLOAD_COMPLETED, sub, {
            "episode_id": ep.id,
            "episode_number": ep.episode_number,
            "season_number": season,
            "file_path": target,
            "hash": torrent.hash.lower(),
        })

        await self._cleanup(torrent, subscription=sub.id, episode=ep.id)

    async def _check_movie(self, store: MediaStore, sub: Subscription, torrents: List[ClientTorrent]):
        if sub.status not in ("downloading", "completed"):
            return

        row = next((t for t in store.list_torrents(sub.id) if t.hash), None)
        if row is None:
            return
        torrent = find_client_torrent(torrents, row.hash)
        if torrent is None or not is_download_complete(torrent):
            return

        if sub.status == "completed":
            await self._cleanup(torrent, subscription=sub.id)
            return

        target = await self._move(
            torrent,
            media_type=sub.media_type,
            title=sub.title,
            season=None,
            folder_path=sub.folder_path,
            build_name=lambda source: build_movie_filename(normalize_filename(sub.title), source),
        )
        if target is None:
            return

        store.update_subscription(sub.id, {"status": "completed"})
        store.update_torrent(row.id, {"status": "completed", "download_path": target})
        logger.info(f"✓ Completed movie {sub.title} -> {target}")
        self.notifier.emit(DOWNLOAD_COMPLETED, sub, {
            "file_path": target,
            "hash": row.hash,
        })

        await self._cleanup(torrent, subscription=sub.id)

    async def _move(self, torrent: ClientTorrent, media_type: str, title: str, season: Optional[int],
                    folder_path: Optional[str], build_name) -> Optional[str]:
        """Move the primary video file of a finished torrent, returns the final path or None on failure"""
        content_path = self.path_mapper.to_local_path(torrent.content_path or "")
        # source / target for the error log
        attempt = {}

        def _do_move() -> str:
            if not content_path:
                raise FileNotFoundError(f"Torrent {torrent.hash} reports no content path")
            source = attempt["source"] = select_primary_video_file(content_path, self.file_manager)
            target_dir = attempt["target"] = self.file_manager.ensure_folder(media_type, title, season, folder_path)
            return self.file_manager.move_to(source, str(target_dir), build_name(source))

        try:
            return await asyncio.to_thread(_do_move)
        except Exception as e:
            logger.error(
                f"✗ Failed to move download {torrent.hash}: content_path={torrent.content_path!r} "
                f"local_path={content_path!r} source={attempt.get('source')!r} "
                f"target={attempt.get('target')}: {e}",
                exc_info=True
            )
            return None

    def _mark_torrent_completed(self, store: MediaStore, torrent_hash: str, target: str):
        row = store.find_torrent_by_hash(torrent_hash)
        if row:
            store.update_torrent(row.id, {"status": "completed", "download_path": target})

    async def _cleanup(self, torrent: ClientTorrent, **context) -> bool:
        return await self.lifecycle.cleanup(torrent, self.tags, **context)
