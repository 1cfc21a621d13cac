import os
import tempfile

# In-memory database and a throwaway log directory, before nastools is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="nastools-log-"))

import pytest

from nastools.database import Base, SessionLocal, engine
import nastools.models  # noqa: F401
from nastools.models import Episode, Profile, Subscription, Torrent
from nastools.services.store import MediaStore
from tests.fakes import RecordingNotifier


@pytest.fixture
def db():
    """Fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def store_factory(db):
    """Opens a new MediaStore per job run, like the real monitor."""
    return lambda: MediaStore(SessionLocal())


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def make_subscription(db):
    def _make(**fields):
        values = {
            "source": "tmdb",
            "source_id": 100,
            "media_type": "tv",
            "title": "Show",
            "status": "active",
        }
        values.update(fields)
        sub = Subscription(**values)
        db.add(sub)
        db.commit()
        db.refresh(sub)
        return sub
    return _make


@pytest.fixture
def make_episode(db):
    def _make(subscription, **fields):
        values = {
            "subscription_id": subscription.id,
            "season_number": 1,
            "episode_number": 1,
            "air_date": "2020-01-01",
            "status": "pending",
        }
        values.update(fields)
        episode = Episode(**values)
        db.add(episode)
        db.commit()
        db.refresh(episode)
        return episode
    return _make


@pytest.fixture
def make_torrent(db):
    def _make(subscription, **fields):
        values = {
            "subscription_id": subscription.id,
            "title": "existing",
            "link": "https://example.invalid/existing.torrent",
            "status": "downloading",
        }
        values.update(fields)
        torrent = Torrent(**values)
        db.add(torrent)
        db.commit()
        db.refresh(torrent)
        return torrent
    return _make


@pytest.fixture
def make_profile(db):
    def _make(**fields):
        values = {"name": "default"}
        values.update(fields)
        profile = Profile(**values)
        db.add(profile)
        db.commit()
        db.refresh(profile)
        return profile
    return _make
