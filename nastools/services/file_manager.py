import logging
import os
import shutil
from pathlib import Path
from typing import Dict, List, Optional

from nastools.utils.filename import sanitize_folder_name

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = {".mkv", ".mp4", ".avi", ".wmv", ".flv", ".mov", ".ts", ".m2ts"}


class FileManager:
    """Places finished downloads into the media library"""

    def __init__(self, media_dirs: Dict[str, Optional[str]]):
        self.media_dirs = media_dirs

    def get_media_dir(self, media_type: str) -> Path:
        media_dir = self.media_dirs.get(media_type)
        if not media_dir:
            raise ValueError(f"Media directory not configured for {media_type}")
        return Path(media_dir)

    def ensure_folder(self, media_type: str, title: str, season: Optional[int] = None,
                      folder_path: Optional[str] = None) -> Path:
        """
        <media dir>/<title>[/Season NN]; a subscription folder path replaces <media dir>/<title>.
        Movies never get a season folder.
        """
        if folder_path:
            base = Path(folder_path)
        else:
            base = self.get_media_dir(media_type) / sanitize_folder_name(title)

        if media_type != "movie" and season is not None:
            base = base / f"Season {season:02d}"

        base.mkdir(parents=True, exist_ok=True)
        return base

    def find_video_files(self, path: str) -> List[str]:
        """All video files at or below path, in directory walk order"""
        root = Path(path)
        if not root.exists():
            return []

        if root.is_file():
            return [str(root)] if root.suffix.lower() in VIDEO_EXTENSIONS else []

        results = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames.sort()
            for filename in sorted(filenames):
                if Path(filename).suffix.lower() in VIDEO_EXTENSIONS:
                    results.append(os.path.join(dirpath, filename))
        return results

    def move_to(self, source: str, dest_dir: str, name: Optional[str] = None) -> str:
        """Move source into dest_dir (optionally renamed), returns the final path"""
        source_path = Path(source)
        if not source_path.exists():
            raise FileNotFoundError(f"Source file does not exist: {source}")

        dest_dir_path = Path(dest_dir)
        dest_dir_path.mkdir(parents=True, exist_ok=True)
        dest_path = dest_dir_path / (name or source_path.name)

        # shutil.move falls back to copy+delete across devices
        shutil.move(str(source_path), str(dest_path))
        logger.info(f"✓ Moved {source_path} -> {dest_path}")
        return str(dest_path)
