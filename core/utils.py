# core/utils.py
"""
Core Utility Functions.

Pure helpers shared by the file manager and the UI: file extension lookup,
category derivation for listing filters, and human-readable byte counts.
None of these functions touch the network or raise on odd input.
"""
from typing import FrozenSet, Optional

# Categories used by the listing filter
CATEGORY_IMAGES = "images"
CATEGORY_DOCUMENTS = "documents"
CATEGORY_VIDEOS = "videos"
CATEGORY_OTHER = "other"

IMAGE_EXTENSIONS: FrozenSet[str] = frozenset({"jpg", "jpeg", "png", "gif", "webp", "svg", "bmp"})
DOCUMENT_EXTENSIONS: FrozenSet[str] = frozenset({"pdf", "doc", "docx", "txt", "md", "csv", "xls", "xlsx", "ppt", "pptx", "rtf"})
VIDEO_EXTENSIONS: FrozenSet[str] = frozenset({"mp4", "mov", "avi", "webm", "mkv"})

# What the gallery renders (no bmp)
GALLERY_IMAGE_EXTENSIONS: FrozenSet[str] = frozenset({"jpg", "jpeg", "png", "gif", "webp", "svg"})

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB")


def extension_of(name: Optional[str]) -> str:
    """Returns the lower-cased extension of a file name, or '' when there is none."""
    if not name or "." not in name:
        return ""
    return name.rsplit(".", 1)[1].lower()


def category_of(name: Optional[str]) -> str:
    """Maps a file name to images/documents/videos/other by extension."""
    ext = extension_of(name)
    if ext in IMAGE_EXTENSIONS:
        return CATEGORY_IMAGES
    if ext in DOCUMENT_EXTENSIONS:
        return CATEGORY_DOCUMENTS
    if ext in VIDEO_EXTENSIONS:
        return CATEGORY_VIDEOS
    return CATEGORY_OTHER


def is_gallery_image(name: Optional[str]) -> bool:
    return extension_of(name) in GALLERY_IMAGE_EXTENSIONS


def format_file_size(num_bytes: Optional[int]) -> str:
    """Formats a byte count as e.g. '1.5 KB'. Unknown sizes read 'Unknown size'."""
    if num_bytes is None:
        return "Unknown size"
    if num_bytes <= 0:
        return "0 Bytes"
    value = float(num_bytes)
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    return f"{round(value, 2):g} {_SIZE_UNITS[unit]}"
