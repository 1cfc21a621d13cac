from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from datetime import datetime

from nastools.database import Base


class Torrent(Base):
    __tablename__ = "torrents"

    id = Column(Integer, primary_key=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id"), nullable=False, index=True)
    episode_id = Column(Integer, ForeignKey("episodes.id"), nullable=True, index=True)

    title = Column(String, nullable=False)
    link = Column(String, nullable=False, index=True)
    hash = Column(String, nullable=True, unique=True)  # lower-case btih, NULL until resolved
    size = Column(String, nullable=True)
    source = Column(String, nullable=True)

    status = Column(String, default="pending", nullable=False)  # pending, downloading, completed, failed
    download_path = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Torrent {self.title} [{self.status}]>"
