import logging
from typing import Dict, List, Set

from nastools.modules.base import ClientTorrent, DownloadClient

logger = logging.getLogger(__name__)

DONE_STATES = {"uploading", "stalledUP", "pausedUP", "stoppedUP", "queuedUP", "checkingUP", "forcedUP"}

# qBittorrent 5 renamed paused* to stopped*
SEEDING_STOPPED_STATES = {"pausedUP", "pausedDL", "stoppedUP", "stoppedDL"}


def managed_tags(raw: str) -> Set[str]:
    """'nas-tools, extra' -> {'nas-tools', 'extra'}"""
    if not raw:
        return set()
    return {tag.strip() for tag in raw.split(",") if tag.strip()}


def torrent_tags(torrent: ClientTorrent) -> Set[str]:
    return managed_tags(torrent.tags)


def is_download_complete(torrent: ClientTorrent) -> bool:
    return torrent.progress >= 1.0 or torrent.state in DONE_STATES


def is_managed(torrent: ClientTorrent, tags: Set[str]) -> bool:
    if not tags:
        return False
    return bool(torrent_tags(torrent) & tags)


def is_seeding_stopped(torrent: ClientTorrent) -> bool:
    return torrent.state in SEEDING_STOPPED_STATES


class QbitLifecycle:
    """Scopes download-client access to the torrents this system manages"""

    def __init__(self, client: DownloadClient):
        self.client = client

    async def managed_torrents(self, tags: Set[str]) -> List[ClientTorrent]:
        if not tags:
            return await self.client.list_torrents()

        by_hash: Dict[str, ClientTorrent] = {}
        for tag in sorted(tags):
            for torrent in await self.client.list_torrents(tag=tag):
                by_hash[torrent.hash.lower()] = torrent
        return list(by_hash.values())

    async def cleanup(self, torrent: ClientTorrent, tags: Set[str], **context) -> bool:
        """
        Delete a torrent and its files once seeding has stopped.

        Only torrents carrying a managed tag are touched; torrents that are
        still seeding are left alone. Returns True when a deletion happened.
        """
        if not is_managed(torrent, tags):
            return False
        if not is_seeding_stopped(torrent):
            return False

        try:
            ok = await self.client.delete(torrent.hash, True)
        except Exception as e:
            logger.warning(f"Failed to remove torrent {torrent.hash}: {e} {context}")
            return False

        if ok:
            logger.info(f"✓ Removed torrent {torrent.hash} and files {context}")
        else:
            logger.warning(f"Failed to remove torrent {torrent.hash} {context}")
        return bool(ok)
