from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey
from datetime import datetime

from nastools.database import Base


class Episode(Base):
    __tablename__ = "episodes"

    id = Column(Integer, primary_key=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id"), nullable=False, index=True)

    # NULL for rows recorded before season tracking and for flat-numbered sources
    season_number = Column(Integer, nullable=True)
    episode_number = Column(Integer, nullable=False)

    title = Column(String, nullable=True)
    air_date = Column(String(10), nullable=True)  # YYYY-MM-DD
    overview = Column(Text, nullable=True)
    still_path = Column(String, nullable=True)

    status = Column(String, default="pending", nullable=False)
    torrent_hash = Column(String, nullable=True, index=True)
    file_path = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        season = self.season_number if self.season_number is not None else 0
        return f"<Episode S{season:02d}E{self.episode_number:02d}: {self.title} [{self.status}]>"
