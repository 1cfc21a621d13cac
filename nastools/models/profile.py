from sqlalchemy import Column, Integer, String, DateTime, Text, Float, Boolean
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
import json
import logging

from nastools.database import Base


logger = logging.getLogger(__name__)


class Profile(Base):
    """Quality profile. List columns hold JSON arrays, e.g. '["1080p", "2160p"]'"""
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=True)

    resolutions = Column(Text, nullable=True)
    qualities = Column(Text, nullable=True)
    formats = Column(Text, nullable=True)
    encoders = Column(Text, nullable=True)
    preferred_keywords = Column(Text, nullable=True)
    excluded_keywords = Column(Text, nullable=True)

    min_size_mb = Column(Float, nullable=True)
    max_size_mb = Column(Float, nullable=True)

    is_default = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Profile {self.name}>"


def parse_profile_list(value: Optional[str]) -> List[str]:
    """Parse a JSON array column into a list of non-empty strings"""
    if not value:
        return []
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring malformed profile list: {value!r}")
        return []
    if not isinstance(parsed, list):
        return []
    return [str(entry).strip() for entry in parsed if str(entry).strip()]


@dataclass(frozen=True)
class QualityProfile:
    """Typed, immutable view of a Profile row used by the matcher"""
    name: str = ""
    resolutions: List[str] = field(default_factory=list)
    qualities: List[str] = field(default_factory=list)
    formats: List[str] = field(default_factory=list)
    encoders: List[str] = field(default_factory=list)
    preferred_keywords: List[str] = field(default_factory=list)
    excluded_keywords: List[str] = field(default_factory=list)
    min_size_mb: Optional[float] = None
    max_size_mb: Optional[float] = None

    @classmethod
    def from_row(cls, row: Profile) -> "QualityProfile":
        return cls(
            name=row.name,
            resolutions=parse_profile_list(row.resolutions),
            qualities=parse_profile_list(row.qualities),
            formats=parse_profile_list(row.formats),
            encoders=parse_profile_list(row.encoders),
            preferred_keywords=parse_profile_list(row.preferred_keywords),
            excluded_keywords=parse_profile_list(row.excluded_keywords),
            min_size_mb=row.min_size_mb,
            max_size_mb=row.max_size_mb,
        )
