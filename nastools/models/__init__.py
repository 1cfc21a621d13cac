from nastools.models.config import Config
from nastools.models.module_state import ModuleState
from nastools.models.profile import Profile, QualityProfile
from nastools.models.subscription import Subscription
from nastools.models.episode import Episode
from nastools.models.torrent import Torrent

__all__ = [
    "Config",
    "ModuleState",
    "Profile",
    "QualityProfile",
    "Subscription",
    "Episode",
    "Torrent",
]
