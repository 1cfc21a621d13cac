"""
Release matching - decides whether a feed release satisfies a subscription.

All functions are pure; every rejection carries a short reason tag
(e.g. 'excluded_keyword:cam', 'resolution_miss') for the logs.
"""
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from nastools.models.profile import QualityProfile
from nastools.modules.base import Release, ReleaseInfo

SIZE_PATTERN = re.compile(r'([\d.]+)\s*(tib|tb|gib|gb|mib|mb|kib|kb)')

SIZE_UNIT_TO_MB = {
    "tb": 1024 * 1024, "tib": 1024 * 1024,
    "gb": 1024, "gib": 1024,
    "mb": 1, "mib": 1,
    "kb": 1 / 1024, "kib": 1 / 1024,
}


@dataclass(frozen=True)
class MatchResult:
    ok: bool
    reason: Optional[str] = None

    def __bool__(self):
        return self.ok


ACCEPT = MatchResult(True)


def reject(reason: str) -> MatchResult:
    return MatchResult(False, reason)


def normalize_token(value: str) -> str:
    return re.sub(r'[^a-z0-9]+', '', value.lower())


def text_matches_any(entries: Iterable[str], text: str) -> bool:
    """Any entry is a substring of text, compared lower-cased and token-normalized"""
    text_lower = text.lower()
    text_normalized = normalize_token(text)
    for entry in entries:
        entry_lower = entry.lower()
        if entry_lower and entry_lower in text_lower:
            return True
        entry_normalized = normalize_token(entry)
        if entry_normalized and entry_normalized in text_normalized:
            return True
    return False


def first_match(entries: Iterable[str], *texts: str) -> Optional[str]:
    for entry in entries:
        if any(text and text_matches_any([entry], text) for text in texts):
            return entry
    return None


def parse_size_mb(release: Release) -> Optional[float]:
    """Size in MB from the AI size text ('1.2 GB', '700MiB', '1,024 MB'), else from the byte length"""
    size_text = release.info.size if release.info else None
    if size_text:
        match = SIZE_PATTERN.search(size_text.lower().replace(",", ""))
        if match:
            try:
                return float(match.group(1)) * SIZE_UNIT_TO_MB[match.group(2)]
            except ValueError:
                pass

    if release.size_bytes and release.size_bytes > 0:
        return release.size_bytes / (1024 * 1024)
    return None


def is_title_match(subscription_title: str, info: Optional[ReleaseInfo]) -> bool:
    if not info:
        return False
    wanted = subscription_title.lower().strip()
    if not wanted:
        return False
    for parsed in (info.english_title, info.chinese_title):
        parsed = (parsed or "").lower().strip()
        if parsed and (wanted in parsed or parsed in wanted):
            return True
    return False


def matches_episode_season(subscription, episode, info: Optional[ReleaseInfo]) -> MatchResult:
    if not info or info.episode_number is None:
        return reject("episode_unknown")

    if info.episode_number != episode.episode_number:
        return reject("episode_miss")

    if (subscription.season_number is not None
            and info.season_number is not None
            and info.season_number != subscription.season_number):
        return reject("season_miss")

    return ACCEPT


def matches_profile(release: Release, profile: Optional[QualityProfile]) -> MatchResult:
    if profile is None:
        return ACCEPT

    info = release.info or ReleaseInfo()
    title = release.title or ""
    ai_resolution = info.resolution or ""
    ai_format = info.format or ""
    ai_text = " ".join(
        value for value in (ai_resolution, ai_format, info.sub_team, info.subtitle_language) if value
    )

    excluded = first_match(profile.excluded_keywords, title, ai_text)
    if excluded is not None:
        return reject(f"excluded_keyword:{excluded.lower()}")

    if profile.preferred_keywords and first_match(profile.preferred_keywords, title, ai_text) is None:
        return reject("preferred_keyword_miss")

    list_filters = (
        (profile.resolutions, ai_resolution, "resolution_miss"),
        (profile.qualities, ai_format, "quality_miss"),
        (profile.formats, ai_format, "format_miss"),
        (profile.encoders, ai_format, "encoder_miss"),
    )
    for entries, ai_field, reason in list_filters:
        if entries and first_match(entries, title, ai_field) is None:
            return reject(reason)

    if profile.min_size_mb is not None or profile.max_size_mb is not None:
        size_mb = parse_size_mb(release)
        if size_mb is not None:
            if profile.min_size_mb is not None and size_mb < profile.min_size_mb:
                return reject("min_size_mb")
            if profile.max_size_mb is not None and size_mb > profile.max_size_mb:
                return reject("max_size_mb")

    return ACCEPT
