import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from nastools.models.config import Config

logger = logging.getLogger(__name__)

MEDIA_TYPES = ("anime", "tv", "movie")


def get_setting(db: Session, key: str, default: Any = None) -> Any:
    """Typed config value, or default when the key is missing/empty/broken"""
    config = db.query(Config).filter_by(key=key).first()
    if not config or config.value is None or config.value == "":
        return default
    try:
        return config.typed_value
    except (ValueError, TypeError) as e:
        logger.warning(f"Config {key} has invalid {config.data_type} value {config.value!r}: {e}")
        return default


@dataclass
class MonitorSettings:
    """Settings the monitor reads once at startup"""
    qbit_tag: str = ""
    download_dirs: Dict[str, Optional[str]] = field(default_factory=dict)
    media_dirs: Dict[str, Optional[str]] = field(default_factory=dict)
    path_map: List[Dict[str, str]] = field(default_factory=list)
    notify_webhook_url: Optional[str] = None
    scheduler_enabled: bool = True
    scheduler_timezone: str = "UTC"
    modules: Dict[str, Optional[str]] = field(default_factory=dict)

    @classmethod
    def load(cls, db: Session) -> "MonitorSettings":
        path_map = get_setting(db, "qbit_path_map", [])
        if not isinstance(path_map, list):
            logger.warning("qbit_path_map is not a JSON list, ignoring it")
            path_map = []

        return cls(
            qbit_tag=get_setting(db, "qbit_tag", "") or "",
            download_dirs={
                media_type: (get_setting(db, f"qbit_download_dir_{media_type}", "") or "").strip() or None
                for media_type in MEDIA_TYPES
            },
            media_dirs={
                media_type: (get_setting(db, f"media_dir_{media_type}", "") or "").strip() or None
                for media_type in MEDIA_TYPES
            },
            path_map=path_map,
            notify_webhook_url=get_setting(db, "notify_webhook_url") or None,
            scheduler_enabled=get_setting(db, "scheduler_enabled", True),
            scheduler_timezone=get_setting(db, "scheduler_timezone", "UTC"),
            modules={
                name: get_setting(db, f"{name}_module")
                for name in ("metadata", "alt_metadata", "feed", "download_client")
            },
        )

    def describe(self) -> str:
        return json.dumps({
            "qbit_tag": self.qbit_tag,
            "path_map": self.path_map,
            "modules": self.modules,
        })
