import importlib
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from sqlalchemy.orm import Session

from nastools.models import ModuleState
from nastools.modules.base import AltMetadataProvider, DownloadClient, MetadataProvider, ReleaseFeed

logger = logging.getLogger(__name__)

MODULE_INTERFACES = {
    "metadata": MetadataProvider,
    "alt_metadata": AltMetadataProvider,
    "feed": ReleaseFeed,
    "download_client": DownloadClient,
}


@dataclass
class Collaborators:
    metadata: Optional[MetadataProvider] = None
    alt_metadata: Optional[AltMetadataProvider] = None
    feed: Optional[ReleaseFeed] = None
    download_client: Optional[DownloadClient] = None


def import_object(path: str):
    """'package.module:Name' -> object"""
    module_path, sep, attr = path.partition(":")
    if not sep or not module_path or not attr:
        raise ValueError(f"Expected 'package.module:Name', got {path!r}")
    module = importlib.import_module(module_path)
    return getattr(module, attr)


class ModuleManager:
    """Loads the configured collaborator implementations and records their state"""

    def __init__(self, db: Session):
        self.db = db

    def load(self, paths: Dict[str, Optional[str]]) -> Collaborators:
        collaborators = Collaborators()

        for name, interface in MODULE_INTERFACES.items():
            path = paths.get(name)
            if not path:
                logger.warning(f"No {name} module configured ({name}_module)")
                continue

            try:
                factory = import_object(path)
                instance = factory()
                if not isinstance(instance, interface):
                    raise TypeError(f"{path} does not implement {interface.__name__}")
                setattr(collaborators, name, instance)
                self._record(name, path, enabled=True)
                logger.info(f"✓ Loaded {name} module: {path}")
            except Exception as e:
                self._record(name, path, enabled=False, error=str(e))
                logger.error(f"✗ Failed to load {name} module {path}: {e}")

        self.db.commit()
        return collaborators

    def _record(self, name: str, path: str, enabled: bool, error: Optional[str] = None):
        state = self.db.query(ModuleState).filter_by(module_name=name).first()
        if not state:
            state = ModuleState(module_name=name)
            self.db.add(state)
        state.module_type = path
        state.enabled = enabled
        state.error_log = error
