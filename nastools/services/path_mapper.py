"""
Translates paths reported by the download client (its own filesystem view,
e.g. inside its container) into paths visible to this process.
"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)


def _normalize_prefix(prefix: str) -> str:
    prefix = prefix.strip()
    if len(prefix) > 1:
        prefix = prefix.rstrip("/\\")
    return prefix


class PathMapper:

    def __init__(self, mappings: Optional[Iterable[Dict[str, str]]] = None):
        self.mappings: List[Tuple[str, str]] = []
        for entry in mappings or []:
            remote = _normalize_prefix(str(entry.get("from") or ""))
            local = _normalize_prefix(str(entry.get("to") or ""))
            if not remote or not local:
                logger.warning(f"Ignoring incomplete path mapping: {entry!r}")
                continue
            self.mappings.append((remote, local))
        # Longest prefix wins
        self.mappings.sort(key=lambda mapping: len(mapping[0]), reverse=True)

    def to_local_path(self, remote_path: str) -> str:
        if not remote_path:
            return remote_path
        for remote, local in self.mappings:
            if remote_path == remote:
                return local
            if remote == "/" and remote_path.startswith("/"):
                return _join(local, remote_path)
            if remote_path.startswith(remote) and remote_path[len(remote)] in "/\\":
                return _join(local, remote_path[len(remote):])
        return remote_path


def _join(local: str, suffix: str) -> str:
    return (local.rstrip("/\\") or "") + suffix
