from sqlalchemy import Column, Integer, String, DateTime, Text, Float, ForeignKey
from datetime import datetime

from nastools.database import Base


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True)
    source = Column(String, nullable=False)  # "tmdb", "bgm"
    source_id = Column(Integer, nullable=False)
    media_type = Column(String, nullable=False)  # "anime", "tv", "movie"

    title = Column(String, nullable=False)
    title_original = Column(String, nullable=True)
    overview = Column(Text, nullable=True)
    poster_path = Column(String, nullable=True)
    first_air_date = Column(String(10), nullable=True)
    vote_average = Column(Float, nullable=True)

    season_number = Column(Integer, nullable=True)
    total_episodes = Column(Integer, nullable=True)

    status = Column(String, default="active", nullable=False, index=True)
    folder_path = Column(String, nullable=True)
    profile_id = Column(Integer, ForeignKey("profiles.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_episodic(self) -> bool:
        return self.media_type != "movie"

    def __repr__(self):
        season = f" S{self.season_number:02d}" if self.season_number else ""
        return f"<Subscription {self.title}{season} [{self.status}]>"
