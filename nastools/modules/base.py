"""
Collaborator interfaces used by the background monitor.

Concrete implementations (metadata providers, release feeds, download clients)
live outside this package and are loaded by ModuleManager. Payloads coming from
them are normalized into the records below before any monitor logic sees them.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


def _int_or_none(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not number.is_integer():
        return None
    return int(number)


def _float_or_zero(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# ---- Metadata provider (TMDB-like) ----

@dataclass
class ProviderEpisode:
    episode_number: int
    name: Optional[str] = None
    air_date: Optional[str] = None
    overview: Optional[str] = None
    still_path: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> Optional["ProviderEpisode"]:
        number = _int_or_none(payload.get("episode_number", payload.get("number")))
        if number is None:
            return None
        return cls(
            episode_number=number,
            name=_str_or_none(payload.get("name")),
            air_date=_str_or_none(payload.get("air_date", payload.get("airDate"))),
            overview=_str_or_none(payload.get("overview")),
            still_path=_str_or_none(payload.get("still_path", payload.get("still"))),
        )


@dataclass
class SeasonDetail:
    season_number: int
    episodes: List[ProviderEpisode] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "SeasonDetail":
        season_number = _int_or_none(payload.get("season_number", payload.get("seasonNumber")))
        if season_number is None:
            raise ValueError(f"Season payload without season number: {payload!r}")
        episodes = []
        for raw in payload.get("episodes") or []:
            if isinstance(raw, dict):
                episode = ProviderEpisode.from_payload(raw)
                if episode:
                    episodes.append(episode)
        return cls(season_number=season_number, episodes=episodes)


@dataclass
class SeasonSummary:
    season_number: int
    air_date: Optional[str] = None
    episode_count: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> Optional["SeasonSummary"]:
        number = _int_or_none(payload.get("season_number", payload.get("seasonNumber")))
        if number is None:
            return None
        return cls(
            season_number=number,
            air_date=_str_or_none(payload.get("air_date", payload.get("airDate"))),
            episode_count=_int_or_none(payload.get("episode_count")),
        )


@dataclass
class ShowDetail:
    seasons: List[SeasonSummary] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ShowDetail":
        seasons = []
        for raw in payload.get("seasons") or []:
            if isinstance(raw, dict):
                season = SeasonSummary.from_payload(raw)
                if season:
                    seasons.append(season)
        return cls(seasons=seasons)


class MetadataProvider(ABC):
    """Season-aware metadata source"""

    @abstractmethod
    async def get_season_detail(self, show_id: int, season: int) -> SeasonDetail:
        pass

    @abstractmethod
    async def get_show_detail(self, show_id: int) -> ShowDetail:
        pass


# ---- Alternate metadata provider (Bangumi-like, flat episode list) ----

@dataclass
class AltEpisode:
    ep: Any = None
    sort: Any = None
    name: Optional[str] = None
    name_cn: Optional[str] = None
    airdate: Optional[str] = None
    desc: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "AltEpisode":
        return cls(
            ep=payload.get("ep"),
            sort=payload.get("sort"),
            name=_str_or_none(payload.get("name")),
            name_cn=_str_or_none(payload.get("name_cn")),
            airdate=_str_or_none(payload.get("airdate")),
            desc=_str_or_none(payload.get("desc")),
        )

    @property
    def raw_number(self) -> Any:
        return self.ep if self.ep is not None else self.sort

    @property
    def episode_number(self) -> Optional[int]:
        """First non-null of ep/sort, only when it is a positive integer"""
        number = _int_or_none(self.raw_number)
        if number is None or number <= 0:
            return None
        return number

    @property
    def display_name(self) -> Optional[str]:
        return self.name_cn or self.name


class AltMetadataProvider(ABC):

    @abstractmethod
    async def get_all_episodes(self, show_id: int) -> List[AltEpisode]:
        pass


# ---- Release feed (RSS search + AI title parsing) ----

@dataclass
class ReleaseInfo:
    """AI-parsed attributes of a release title"""
    english_title: Optional[str] = None
    chinese_title: Optional[str] = None
    resolution: Optional[str] = None
    format: Optional[str] = None
    sub_team: Optional[str] = None
    subtitle_language: Optional[str] = None
    size: Optional[str] = None
    episode_number: Optional[int] = None
    season_number: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ReleaseInfo":
        return cls(
            english_title=_str_or_none(payload.get("englishTitle", payload.get("english_title"))),
            chinese_title=_str_or_none(payload.get("chineseTitle", payload.get("chinese_title"))),
            resolution=_str_or_none(payload.get("resolution")),
            format=_str_or_none(payload.get("format")),
            sub_team=_str_or_none(payload.get("subTeam", payload.get("sub_team"))),
            subtitle_language=_str_or_none(payload.get("subtitleLanguage", payload.get("subtitle_language"))),
            size=_str_or_none(payload.get("size")),
            episode_number=_int_or_none(payload.get("episodeNumber", payload.get("episode_number"))),
            season_number=_int_or_none(payload.get("seasonNumber", payload.get("season_number"))),
        )


@dataclass
class Release:
    title: str
    link: str
    source: Optional[str] = None
    size_bytes: Optional[int] = None
    info: Optional[ReleaseInfo] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> Optional["Release"]:
        link = _str_or_none(payload.get("link"))
        if not link:
            return None
        ai = payload.get("ai")
        size_bytes = payload.get("size_bytes", payload.get("contentLength"))
        return cls(
            title=str(payload.get("title") or ""),
            link=link,
            source=_str_or_none(payload.get("source")),
            size_bytes=_int_or_none(size_bytes),
            info=ReleaseInfo.from_payload(ai) if isinstance(ai, dict) else None,
        )


class ReleaseFeed(ABC):

    @abstractmethod
    async def search(self, title: str, season: Optional[int] = None,
                     episode: Optional[int] = None) -> List[Release]:
        """Releases in feed order, annotated with AI parse results where available"""
        pass


# ---- Download client (qBittorrent-like) ----

@dataclass
class ClientTorrent:
    hash: str
    state: str = ""
    progress: float = 0.0
    content_path: str = ""
    tags: str = ""
    name: str = ""

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> Optional["ClientTorrent"]:
        torrent_hash = _str_or_none(payload.get("hash"))
        if not torrent_hash:
            return None
        return cls(
            hash=torrent_hash,
            state=str(payload.get("state") or ""),
            progress=_float_or_zero(payload.get("progress")),
            content_path=str(payload.get("content_path", payload.get("contentPath")) or ""),
            tags=str(payload.get("tags") or ""),
            name=str(payload.get("name") or ""),
        )


class DownloadClient(ABC):

    @abstractmethod
    async def add_by_url(self, link: str, savepath: Optional[str] = None,
                         category: Optional[str] = None, tags: Optional[str] = None) -> bool:
        pass

    @abstractmethod
    async def list_torrents(self, tag: Optional[str] = None) -> List[ClientTorrent]:
        pass

    @abstractmethod
    async def delete(self, torrent_hash: str, delete_files: bool = False) -> bool:
        pass
