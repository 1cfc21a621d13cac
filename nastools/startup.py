import logging

from nastools.database import SessionLocal
from nastools.models.config import Config

logger = logging.getLogger(__name__)

DEFAULT_CONFIGS = [
    # System
    ("log_level", "INFO", "core", False, "string", "Log level (DEBUG, INFO, WARNING, ERROR)"),
    ("scheduler_enabled", "true", "core", False, "bool", "Run the background monitor jobs"),
    ("scheduler_timezone", "UTC", "core", False, "string", "Timezone the cron schedules are evaluated in"),

    # qBittorrent
    ("qbit_tag", "nas-tools", "qbittorrent", False, "string",
     "Comma separated tags of torrents managed by the monitor (empty = all torrents)"),
    ("qbit_download_dir_anime", "", "qbittorrent", False, "string", "Save path for anime downloads"),
    ("qbit_download_dir_tv", "", "qbittorrent", False, "string", "Save path for TV downloads"),
    ("qbit_download_dir_movie", "", "qbittorrent", False, "string", "Save path for movie downloads"),
    ("qbit_path_map", "[]", "qbittorrent", False, "json",
     'Download client path -> local path, e.g. [{"from": "/downloads", "to": "/mnt/downloads"}]'),

    # Media library
    ("media_dir_anime", "", "media", False, "string", "Library folder for anime"),
    ("media_dir_tv", "", "media", False, "string", "Library folder for TV shows"),
    ("media_dir_movie", "", "media", False, "string", "Library folder for movies"),

    # Notifications
    ("notify_webhook_url", "", "notify", False, "string", "Webhook receiving release/download events (empty = off)"),

    # Collaborator modules ("package.module:ClassName")
    ("metadata_module", "", "modules", False, "string", "Season based metadata provider"),
    ("alt_metadata_module", "", "modules", False, "string", "Flat episode list metadata provider"),
    ("feed_module", "", "modules", False, "string", "Release feed search"),
    ("download_client_module", "", "modules", False, "string", "Torrent download client"),
]


def init_config(db=None):
    """Seed default configs, existing values are never overwritten"""
    owns_session = db is None
    db = db or SessionLocal()
    try:
        for key, value, module, secret, data_type, description in DEFAULT_CONFIGS:
            existing = db.query(Config).filter_by(key=key).first()
            if not existing:
                db.add(Config(
                    key=key,
                    value=value,
                    module=module,
                    secret=secret,
                    data_type=data_type,
                    description=description
                ))
                logger.info(f"✓ Added config: {key}")
        db.commit()
    finally:
        if owns_session:
            db.close()
    logger.info("✓ Base config initialized")
