import re


def normalize_filename(text: str) -> str:
    """Remove characters that are illegal in file names, keep diacritics and CJK"""
    if not text:
        return ""

    normalized = re.sub(r'[<>:"/\\|?*]', '', text)
    normalized = re.sub(r'\s+', ' ', normalized).strip()
    return normalized


def sanitize_folder_name(name: str) -> str:
    """Folder-safe variant of a title; falls back to '_' for names that strip to nothing"""
    return normalize_filename(name) or "_"
