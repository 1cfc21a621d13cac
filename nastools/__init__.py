# nastools background monitor
from packaging.version import InvalidVersion, Version

__version__ = "0.0.0"

try:
    from nastools._version import version as __version__
except ImportError:
    # Fallback for development
    __version__ = "0.1.0.dev0"


def parse_version_tuple(version_str):
    """'1.2.3rc1' -> (1, 2, 3); (0, 0, 0) for anything unparseable"""
    try:
        release = Version(version_str).release
    except (InvalidVersion, TypeError):
        return (0, 0, 0)
    return tuple(release[:3]) + (0,) * (3 - len(release[:3]))


__version_tuple__ = parse_version_tuple(__version__)
