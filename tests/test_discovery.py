import pytest

from nastools.models import Episode
from nastools.modules.base import AltEpisode, ProviderEpisode, SeasonDetail, SeasonSummary, ShowDetail
from nastools.services.monitor.discovery import EpisodeDiscovery, select_target_season
from nastools.services.notifier import MEDIA_RELEASED
from tests.fakes import FakeAltMetadata, FakeMetadata


def season(number, *episodes):
    return SeasonDetail(season_number=number, episodes=list(episodes))


class TestSeasonSelection:

    def test_latest_aired_season(self):
        show = ShowDetail(seasons=[
            SeasonSummary(0, "2019-01-01"),
            SeasonSummary(1, "2020-01-01"),
            SeasonSummary(2, "2021-06-01"),
            SeasonSummary(3, "2999-01-01"),
        ])

        assert select_target_season(show, "2024-01-01") == 2

    def test_falls_back_to_highest_number(self):
        show = ShowDetail(seasons=[SeasonSummary(1, None), SeasonSummary(2, "2999-01-01")])

        assert select_target_season(show, "2024-01-01") == 2

    def test_no_regular_seasons(self):
        assert select_target_season(ShowDetail(seasons=[SeasonSummary(0, "2019-01-01")]), "2024-01-01") is None


class TestEpisodeDiscovery:
    """Discovery of newly aired episodes."""

    @pytest.fixture
    def metadata(self):
        return FakeMetadata(seasons={
            1: season(
                1,
                ProviderEpisode(1, name="Pilot", air_date="2020-01-01"),
                ProviderEpisode(2, name="Second", air_date="2020-1-8"),
                ProviderEpisode(3, name="Future", air_date="2999-01-01"),
                ProviderEpisode(4, name="Unknown", air_date=None),
            ),
        })

    async def test_creates_aired_episodes(self, db, store_factory, notifier, make_subscription, metadata):
        """Only episodes aired on or before today are recorded, with normalized dates."""
        sub = make_subscription(season_number=1)

        await EpisodeDiscovery(store_factory, metadata=metadata, notifier=notifier).run()

        episodes = db.query(Episode).filter_by(subscription_id=sub.id).order_by(Episode.episode_number).all()
        assert [(e.season_number, e.episode_number, e.air_date) for e in episodes] == [
            (1, 1, "2020-01-01"),
            (1, 2, "2020-01-08"),
        ]
        assert all(e.status == "pending" for e in episodes)
        assert episodes[0].title == "Pilot"
        assert notifier.types() == [MEDIA_RELEASED, MEDIA_RELEASED]

    async def test_idempotent(self, db, store_factory, notifier, make_subscription, metadata):
        """A second run against the same provider data creates nothing."""
        make_subscription(season_number=1)
        discovery = EpisodeDiscovery(store_factory, metadata=metadata, notifier=notifier)

        await discovery.run()
        await discovery.run()

        assert db.query(Episode).count() == 2
        assert len(notifier.events) == 2

    async def test_legacy_rows_matched_by_air_date(self, db, store_factory, make_subscription, make_episode, metadata):
        """Rows without a season tag are recognized by episode number and air date."""
        sub = make_subscription(season_number=1)
        make_episode(sub, season_number=None, episode_number=1, air_date="2020-1-1")

        await EpisodeDiscovery(store_factory, metadata=metadata).run()

        episodes = db.query(Episode).filter_by(subscription_id=sub.id).all()
        assert sorted((e.season_number, e.episode_number) for e in episodes if e.season_number) == [(1, 2)]
        assert len(episodes) == 2

    async def test_other_season_rows_do_not_block(self, db, store_factory, make_subscription, make_episode, metadata):
        """Episode 1 of season 2 is not episode 1 of season 1."""
        sub = make_subscription(season_number=1)
        make_episode(sub, season_number=2, episode_number=1)

        await EpisodeDiscovery(store_factory, metadata=metadata).run()

        assert db.query(Episode).filter_by(subscription_id=sub.id, season_number=1).count() == 2

    async def test_season_chosen_from_show_detail(self, db, store_factory, make_subscription, metadata):
        sub = make_subscription(season_number=None)
        metadata.show = ShowDetail(seasons=[SeasonSummary(1, "2020-01-01"), SeasonSummary(2, "2999-01-01")])

        await EpisodeDiscovery(store_factory, metadata=metadata).run()

        assert metadata.season_calls == [(sub.source_id, 1)]
        assert db.query(Episode).count() == 2

    async def test_movies_and_inactive_skipped(self, db, store_factory, make_subscription, metadata):
        make_subscription(media_type="movie", season_number=1)
        make_subscription(status="disabled", season_number=1)
        make_subscription(status="completed", season_number=1)

        await EpisodeDiscovery(store_factory, metadata=metadata).run()

        assert db.query(Episode).count() == 0
        assert metadata.season_calls == []

    async def test_provider_failure_does_not_stop_loop(self, db, store_factory, make_subscription, metadata):
        """A failing subscription is logged and the next one is still processed."""
        make_subscription(season_number=9, title="Broken")  # no season 9 -> KeyError
        good = make_subscription(season_number=1, title="Good")

        await EpisodeDiscovery(store_factory, metadata=metadata).run()

        assert db.query(Episode).filter_by(subscription_id=good.id).count() == 2

    async def test_flat_episode_list(self, db, store_factory, notifier, make_subscription):
        """Flat sources use ep, then sort, and only positive integers."""
        sub = make_subscription(source="bgm", media_type="anime", season_number=None)
        alt = FakeAltMetadata([
            AltEpisode(ep=1, sort=1, name="One", name_cn="一", airdate="2020-01-01"),
            AltEpisode(ep=None, sort=2, name="Two", airdate="2020-01-08"),
            AltEpisode(ep=1.5, sort=1.5, name="Recap", airdate="2020-01-10"),
            AltEpisode(ep=0, sort=0, name="Zero", airdate="2020-01-01"),
            AltEpisode(ep=3, sort=3, name="Later", airdate="2999-01-01"),
            AltEpisode(ep=4, sort=4, name="Undated", airdate=None),
        ])
        discovery = EpisodeDiscovery(store_factory, alt_metadata=alt, notifier=notifier)

        await discovery.run()
        await discovery.run()

        episodes = db.query(Episode).filter_by(subscription_id=sub.id).order_by(Episode.episode_number).all()
        assert [(e.season_number, e.episode_number, e.title) for e in episodes] == [
            (None, 1, "一"),
            (None, 2, "Two"),
        ]
        assert len(notifier.events) == 2

    async def test_missing_provider_skips(self, db, store_factory, make_subscription):
        make_subscription(season_number=1)

        await EpisodeDiscovery(store_factory).run()

        assert db.query(Episode).count() == 0
