import os
from pathlib import PurePath
from typing import Iterable, Optional

from nastools.modules.base import ClientTorrent

MAGNET_PREFIX = "magnet:?xt=urn:btih:"


def parse_magnet_hash(link: str) -> Optional[str]:
    if not link or not link.startswith(MAGNET_PREFIX):
        return None
    torrent_hash = link[len(MAGNET_PREFIX):].split("&")[0]
    return torrent_hash.lower() if torrent_hash else None


def _extension_suffix(source_path: str) -> str:
    suffix = PurePath(source_path).suffix
    return suffix if len(suffix) > 1 else ""


def build_episode_filename(title: str, season: int, episode: int, source_path: str) -> str:
    return f"{title} - S{season:02d}E{episode:02d}{_extension_suffix(source_path)}"


def build_movie_filename(title: str, source_path: str) -> str:
    return f"{title}{_extension_suffix(source_path)}"


def _file_size(path: str) -> int:
    try:
        return os.path.getsize(path)
    except OSError:
        return -1


def select_primary_video_file(content_path: str, file_manager) -> str:
    """Largest video file below content_path, or content_path itself when none is found"""
    files = file_manager.find_video_files(content_path)
    if not files:
        return content_path
    # max() keeps the first of equally sized files
    return max(files, key=_file_size)


def find_client_torrent(torrents: Iterable[ClientTorrent], torrent_hash: str) -> Optional[ClientTorrent]:
    normalized = torrent_hash.lower()
    for torrent in torrents:
        if torrent.hash.lower() == normalized:
            return torrent
    return None
