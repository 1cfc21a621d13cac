"""
MediaStore - data store used by the background monitor.
Wraps one SQLAlchemy session; every write commits immediately.
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from nastools.models.episode import Episode
from nastools.models.profile import Profile, QualityProfile
from nastools.models.subscription import Subscription
from nastools.models.torrent import Torrent

logger = logging.getLogger(__name__)

# Everything except "disabled": movies leave "active" once a download starts
# but the completion monitor still has to see them.
MONITORED_SUBSCRIPTION_STATUSES = ("active", "downloading", "completed")


class MediaStore:

    def __init__(self, db: Session):
        self.db = db

    def close(self):
        self.db.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ---- Subscriptions ----

    def list_active_subscriptions(self) -> List[Subscription]:
        """Subscriptions still looking for new episodes or releases"""
        return (
            self.db.query(Subscription)
            .filter(Subscription.status == "active")
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
            .all()
        )

    def list_monitored_subscriptions(self) -> List[Subscription]:
        """Active subscriptions plus those with downloads in flight or finished"""
        return (
            self.db.query(Subscription)
            .filter(Subscription.status.in_(MONITORED_SUBSCRIPTION_STATUSES))
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
            .all()
        )

    def update_subscription(self, subscription_id: int, patch: Dict[str, Any]) -> Optional[Subscription]:
        return self._update(Subscription, subscription_id, patch)

    # ---- Episodes ----

    def list_episodes(self, subscription_id: int) -> List[Episode]:
        return (
            self.db.query(Episode)
            .filter(Episode.subscription_id == subscription_id)
            .order_by(Episode.season_number, Episode.episode_number, Episode.id)
            .all()
        )

    def create_episode(self, **fields) -> Episode:
        episode = Episode(**fields)
        self.db.add(episode)
        self._commit()
        self.db.refresh(episode)
        return episode

    def update_episode(self, episode_id: int, patch: Dict[str, Any]) -> Optional[Episode]:
        return self._update(Episode, episode_id, patch)

    # ---- Torrents ----

    def list_torrents(self, subscription_id: int) -> List[Torrent]:
        """Newest first"""
        return (
            self.db.query(Torrent)
            .filter(Torrent.subscription_id == subscription_id)
            .order_by(Torrent.created_at.desc(), Torrent.id.desc())
            .all()
        )

    def create_torrent(self, **fields) -> Torrent:
        if fields.get("hash"):
            fields["hash"] = fields["hash"].lower()
        torrent = Torrent(**fields)
        self.db.add(torrent)
        self._commit()
        self.db.refresh(torrent)
        return torrent

    def update_torrent(self, torrent_id: int, patch: Dict[str, Any]) -> Optional[Torrent]:
        return self._update(Torrent, torrent_id, patch)

    def find_torrent_by_hash(self, torrent_hash: str) -> Optional[Torrent]:
        if not torrent_hash:
            return None
        return self.db.query(Torrent).filter(Torrent.hash == torrent_hash.lower()).first()

    def find_torrent_by_link(self, link: str) -> Optional[Torrent]:
        if not link:
            return None
        return self.db.query(Torrent).filter(Torrent.link == link).first()

    def find_torrent_by_episode_id(self, episode_id: int) -> Optional[Torrent]:
        return self.db.query(Torrent).filter(Torrent.episode_id == episode_id).first()

    # ---- Profiles ----

    def get_profile(self, profile_id: Optional[int]) -> Optional[QualityProfile]:
        if profile_id is None:
            return None
        row = self.db.query(Profile).filter(Profile.id == profile_id).first()
        if not row:
            logger.warning(f"Profile {profile_id} not found, matching without profile")
            return None
        return QualityProfile.from_row(row)

    def _update(self, model, row_id: int, patch: Dict[str, Any]):
        row = self.db.query(model).filter(model.id == row_id).first()
        if not row:
            logger.warning(f"{model.__name__} {row_id} not found, update skipped")
            return None
        for key, value in patch.items():
            setattr(row, key, value)
        self._commit()
        return row

    def _commit(self):
        # A failed flush leaves the session unusable until rolled back
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise


StoreFactory = Callable[[], MediaStore]
