"""
Acquisition - searches the release feed for pending work and hands matches to the download client.

Each episode (or movie subscription) is submitted at most once: existing torrent
rows are checked by episode, by magnet hash and by link before anything is added.
"""
import logging
from datetime import date
from typing import Dict, Optional, Set

from nastools.models.episode import Episode
from nastools.models.profile import QualityProfile
from nastools.models.subscription import Subscription
from nastools.modules.base import DownloadClient, Release, ReleaseFeed
from nastools.services.monitor.matchers import is_title_match, matches_episode_season, matches_profile
from nastools.services.monitor.utils import parse_magnet_hash
from nastools.services.notifier import DOWNLOAD_STARTED, Notifier
from nastools.services.store import MediaStore, StoreFactory
from nastools.utils.dates import parse_iso_like_date

logger = logging.getLogger(__name__)

EPISODIC_MEDIA_TYPES = ("tv", "anime")


class ReleaseDownloader:

    def __init__(self, store_factory: StoreFactory,
                 feed: Optional[ReleaseFeed] = None,
                 client: Optional[DownloadClient] = None,
                 download_dirs: Optional[Dict[str, Optional[str]]] = None,
                 qbit_tag: str = "",
                 notifier: Optional[Notifier] = None):
        self.store_factory = store_factory
        self.feed = feed
        self.client = client
        self.download_dirs = download_dirs or {}
        self.qbit_tag = qbit_tag.strip()
        self.notifier = notifier or Notifier()

    async def run(self):
        """Search and submit downloads for every active subscription"""
        if self.feed is None or self.client is None:
            logger.warning("Feed or download client module not loaded, skipping search")
            return

        with self.store_factory() as store:
            today = date.today()
            warned_dates: Set[str] = set()

            for sub in store.list_active_subscriptions():
                try:
                    if sub.media_type in EPISODIC_MEDIA_TYPES:
                        await self._search_episodes(store, sub, today, warned_dates)
                    elif sub.media_type == "movie":
                        await self._search_movie(store, sub)
                except Exception as e:
                    logger.error(
                        f"✗ Search failed for subscription {sub.id} ({sub.title}): {e}",
                        exc_info=True
                    )

    def _is_due(self, ep: Episode, today: date, warned_dates: Set[str]) -> bool:
        if not ep.air_date:
            return True
        aired = parse_iso_like_date(ep.air_date)
        if aired is None:
            if ep.air_date not in warned_dates:
                warned_dates.add(ep.air_date)
                logger.warning(f"Skipping episodes with unparseable air date {ep.air_date!r}")
            return False
        return aired <= today

    async def _search_episodes(self, store: MediaStore, sub: Subscription, today: date, warned_dates: Set[str]):
        pending = [
            ep for ep in store.list_episodes(sub.id)
            if ep.status == "pending" and self._is_due(ep, today, warned_dates)
        ]
        if not pending:
            return

        profile = store.get_profile(sub.profile_id)
        logger.info(f"Searching {len(pending)} pending episodes for {sub.title}")
        for ep in pending:
            if store.find_torrent_by_episode_id(ep.id):
                logger.debug(f"Episode {ep.id} of {sub.title} already has a torrent")
                continue
            await self._try_download_episode(store, sub, ep, profile)

    def _already_tracked(self, store: MediaStore, release: Release, torrent_hash: Optional[str]) -> bool:
        if torrent_hash and store.find_torrent_by_hash(torrent_hash):
            return True
        return store.find_torrent_by_link(release.link) is not None

    async def _try_download_episode(self, store: MediaStore, sub: Subscription, ep: Episode,
                                    profile: Optional[QualityProfile]) -> bool:
        releases = await self.feed.search(sub.title, season=sub.season_number, episode=ep.episode_number)

        for release in releases:
            torrent_hash = parse_magnet_hash(release.link)
            if self._already_tracked(store, release, torrent_hash):
                logger.info(
                    f"Release already tracked for {sub.title} E{ep.episode_number:02d}, "
                    f"not adding again: {release.title}"
                )
                return False

            if not is_title_match(sub.title, release.info):
                logger.debug(f"Rejected {release.title!r}: title_miss")
                continue

            result = matches_episode_season(sub, ep, release.info)
            if not result:
                logger.debug(f"Rejected {release.title!r}: {result.reason}")
                continue

            result = matches_profile(release, profile)
            if not result:
                logger.debug(f"Rejected {release.title!r}: {result.reason}")
                continue

            logger.info(f"Found match for {sub.title} E{ep.episode_number:02d}: {release.title}")
            if not await self._submit(sub, release):
                continue
            if not torrent_hash:
                logger.warning(
                    f"No magnet hash in {release.link!r} for {sub.title} E{ep.episode_number:02d}, "
                    f"completion cannot be tracked automatically"
                )

            store.update_episode(ep.id, {"status": "downloading", "torrent_hash": torrent_hash})
            store.create_torrent(
                subscription_id=sub.id,
                episode_id=ep.id,
                title=release.title,
                link=release.link,
                hash=torrent_hash,
                size=self._size_text(release),
                source=release.source,
                status="downloading",
            )
            self.notifier.emit(DOWNLOAD_STARTED, sub, {
                "episode_id": ep.id,
                "episode_number": ep.episode_number,
                "torrent_title": release.title,
                "hash": torrent_hash,
            })
            return True

        return False

    async def _search_movie(self, store: MediaStore, sub: Subscription) -> bool:
        if sub.status != "active":
            return False
        if any(t.status in ("downloading", "completed") for t in store.list_torrents(sub.id)):
            logger.debug(f"Movie {sub.title} already downloading or downloaded")
            return False

        profile = store.get_profile(sub.profile_id)
        releases = await self.feed.search(sub.title)

        for release in releases:
            torrent_hash = parse_magnet_hash(release.link)
            if self._already_tracked(store, release, torrent_hash):
                logger.info(f"Release already tracked for {sub.title}, not adding again: {release.title}")
                return False

            if not is_title_match(sub.title, release.info):
                logger.debug(f"Rejected {release.title!r}: title_miss")
                continue

            result = matches_profile(release, profile)
            if not result:
                logger.debug(f"Rejected {release.title!r}: {result.reason}")
                continue

            logger.info(f"Found movie match for {sub.title}: {release.title}")
            if not await self._submit(sub, release):
                continue
            if not torrent_hash:
                logger.warning(
                    f"No magnet hash in {release.link!r} for {sub.title}, completion cannot be tracked automatically"
                )

            store.update_subscription(sub.id, {"status": "downloading"})
            store.create_torrent(
                subscription_id=sub.id,
                episode_id=None,
                title=release.title,
                link=release.link,
                hash=torrent_hash,
                size=self._size_text(release),
                source=release.source,
                status="downloading",
            )
            self.notifier.emit(DOWNLOAD_STARTED, sub, {
                "torrent_title": release.title,
                "hash": torrent_hash,
            })
            return True

        return False

    async def _submit(self, sub: Subscription, release: Release) -> bool:
        try:
            ok = await self.client.add_by_url(
                release.link,
                savepath=self.download_dirs.get(sub.media_type),
                category=sub.media_type,
                tags=self.qbit_tag or None,
            )
        except Exception as e:
            logger.error(f"✗ Failed to add torrent {release.title!r} for {sub.title}: {e}", exc_info=True)
            return False

        if not ok:
            logger.error(f"✗ Download client rejected {release.title!r} for {sub.title}")
            return False
        return True

    @staticmethod
    def _size_text(release: Release) -> Optional[str]:
        if release.info and release.info.size:
            return release.info.size
        if release.size_bytes:
            return str(release.size_bytes)
        return None
