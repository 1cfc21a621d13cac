"""
Discovery - finds newly aired episodes for active subscriptions and records them as pending.
"""
import logging
from typing import Dict, Optional, Set

from nastools.models.subscription import Subscription
from nastools.modules.base import AltMetadataProvider, MetadataProvider, SeasonDetail, ShowDetail
from nastools.services.notifier import MEDIA_RELEASED, Notifier
from nastools.services.store import MediaStore, StoreFactory
from nastools.utils.dates import is_on_or_before_date_only, normalize_date_only, today_date_only

logger = logging.getLogger(__name__)


def normalize_released_date(value: Optional[str], today: str) -> Optional[str]:
    """Canonical air date if it is on or before today, else None"""
    normalized = normalize_date_only(value)
    if not normalized:
        return None
    return normalized if is_on_or_before_date_only(normalized, today) is True else None


def select_target_season(show: ShowDetail, today: str) -> Optional[int]:
    """Latest aired regular season; highest-numbered season when none has aired"""
    regular = [season for season in show.seasons if season.season_number > 0]
    if not regular:
        return None

    aired = [
        (normalize_released_date(season.air_date, today), season.season_number)
        for season in regular
        if normalize_released_date(season.air_date, today)
    ]
    if aired:
        return max(aired)[1]
    return max(season.season_number for season in regular)


class EpisodeDiscovery:

    def __init__(self, store_factory: StoreFactory,
                 metadata: Optional[MetadataProvider] = None,
                 alt_metadata: Optional[AltMetadataProvider] = None,
                 notifier: Optional[Notifier] = None):
        self.store_factory = store_factory
        self.metadata = metadata
        self.alt_metadata = alt_metadata
        self.notifier = notifier or Notifier()

    async def run(self):
        """Check every active episodic subscription for newly aired episodes"""
        with self.store_factory() as store:
            subscriptions = store.list_active_subscriptions()
            logger.info(f"Checking {len(subscriptions)} subscriptions for new episodes")

            created = 0
            for sub in subscriptions:
                if not sub.is_episodic:
                    continue
                try:
                    if sub.source == "tmdb":
                        created += await self._process_season_subscription(store, sub)
                    elif sub.source == "bgm":
                        created += await self._process_flat_subscription(store, sub)
                    else:
                        logger.debug(f"Unsupported source {sub.source!r} for {sub.title}")
                except Exception as e:
                    logger.error(
                        f"✗ Discovery failed for subscription {sub.id} ({sub.title}, "
                        f"{sub.source}:{sub.source_id}): {e}",
                        exc_info=True
                    )

            logger.info(f"✓ Discovery finished, {created} new episodes")

    async def _fetch_season(self, sub: Subscription, today: str) -> Optional[SeasonDetail]:
        if sub.season_number:
            return await self.metadata.get_season_detail(sub.source_id, sub.season_number)

        show = await self.metadata.get_show_detail(sub.source_id)
        season_number = select_target_season(show, today)
        if season_number is None:
            logger.info(f"No seasons listed for {sub.title}")
            return None
        return await self.metadata.get_season_detail(sub.source_id, season_number)

    async def _process_season_subscription(self, store: MediaStore, sub: Subscription) -> int:
        if self.metadata is None:
            logger.warning(f"No metadata module loaded, skipping {sub.title}")
            return 0

        today = today_date_only()
        season = await self._fetch_season(sub, today)
        if season is None:
            return 0

        existing = store.list_episodes(sub.id)
        known: Set[int] = {
            ep.episode_number for ep in existing if ep.season_number == season.season_number
        }

        # Rows recorded before season tracking: episode number -> air dates seen
        legacy_air_dates: Dict[int, Set[str]] = {}
        for ep in existing:
            if ep.season_number is not None:
                continue
            dates = legacy_air_dates.setdefault(ep.episode_number, set())
            dates.add(ep.air_date or "")
            normalized = normalize_date_only(ep.air_date)
            if normalized:
                dates.add(normalized)

        created = 0
        for provider_ep in season.episodes:
            air_date = normalize_released_date(provider_ep.air_date, today)
            if not air_date:
                continue
            if provider_ep.episode_number in known:
                continue
            if air_date in legacy_air_dates.get(provider_ep.episode_number, set()):
                continue

            logger.info(
                f"✓ New episode: {sub.title} S{season.season_number:02d}E{provider_ep.episode_number:02d} "
                f"({air_date})"
            )
            episode = store.create_episode(
                subscription_id=sub.id,
                season_number=season.season_number,
                episode_number=provider_ep.episode_number,
                title=provider_ep.name,
                air_date=air_date,
                overview=provider_ep.overview,
                still_path=provider_ep.still_path,
                status="pending",
            )
            known.add(provider_ep.episode_number)
            created += 1
            self.notifier.emit(MEDIA_RELEASED, sub, {
                "episode_id": episode.id,
                "season_number": season.season_number,
                "episode_number": episode.episode_number,
                "episode_title": episode.title,
                "air_date": episode.air_date,
            })
        return created

    async def _process_flat_subscription(self, store: MediaStore, sub: Subscription) -> int:
        if self.alt_metadata is None:
            logger.warning(f"No alt_metadata module loaded, skipping {sub.title}")
            return 0

        today = today_date_only()
        provider_episodes = await self.alt_metadata.get_all_episodes(sub.source_id)
        known: Set[int] = {ep.episode_number for ep in store.list_episodes(sub.id)}

        created = 0
        for provider_ep in provider_episodes:
            number = provider_ep.episode_number
            if number is None:
                if provider_ep.raw_number is not None:
                    logger.warning(f"Skipping {sub.title} episode with invalid number {provider_ep.raw_number!r}")
                continue
            if number in known:
                continue
            air_date = normalize_released_date(provider_ep.airdate, today)
            if not air_date:
                continue

            logger.info(f"✓ New episode: {sub.title} E{number:02d} ({air_date})")
            episode = store.create_episode(
                subscription_id=sub.id,
                season_number=None,
                episode_number=number,
                title=provider_ep.display_name,
                air_date=air_date,
                overview=provider_ep.desc,
                still_path=None,
                status="pending",
            )
            known.add(number)
            created += 1
            self.notifier.emit(MEDIA_RELEASED, sub, {
                "episode_id": episode.id,
                "episode_number": episode.episode_number,
                "episode_title": episode.title,
                "air_date": episode.air_date,
            })
        return created
