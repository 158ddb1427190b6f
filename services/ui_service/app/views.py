# services/ui_service/app/views.py
"""Presentation helpers for the Gradio UI. No Gradio imports here."""
import mimetypes
import os
import shutil
from typing import List, Optional

from core.config import settings
from core.models import GalleryImage, Identity, LocalFile, StorageObject
from core.utils import format_file_size

FILE_TABLE_HEADERS = ["Name", "Size", "Uploaded", "Category"]
NOT_CONFIGURED_BANNER = "⚠️ **Supabase is not configured.** Set `SUPABASE_URL` and `SUPABASE_KEY` and restart."


def read_local_file(path: Optional[str]) -> Optional[LocalFile]:
    """Loads a file picked in the UI. Gradio keeps the original name as the basename."""
    if not path:
        return None
    name = os.path.basename(path)
    content_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
    with open(path, "rb") as f:
        data = f.read()
    return LocalFile(name=name, content_type=content_type, data=data)


def save_download(temp_path: str, name: str, download_dir: str = settings.DOWNLOAD_DIR) -> str:
    """Copies a fetched object out of its temporary file into the download folder."""
    os.makedirs(download_dir, exist_ok=True)
    target = os.path.join(download_dir, os.path.basename(name) or "download")
    shutil.copyfile(temp_path, target)
    return target


def format_date(obj_date) -> str:
    return obj_date.strftime("%Y-%m-%d") if obj_date else "Unknown"


def file_rows(objects: List[StorageObject]) -> List[List[str]]:
    return [[obj.name, format_file_size(obj.size), format_date(obj.created_at), obj.category] for obj in objects]


def listing_summary(shown: int, total: int, truncated: bool, error: Optional[str] = None) -> str:
    if error:
        return f"❌ {error}"
    summary = f"{shown} of {total} files"
    if truncated:
        summary += " (only the first page is shown)"
    return summary


def empty_listing_hint(filtered: bool) -> str:
    if filtered:
        return "No files match your filters. Try adjusting your search or filters to find files."
    return "No files yet. Upload your first file to get started with storage."


def identity_markdown(identity: Optional[Identity]) -> str:
    if identity is None:
        return "Sign in to access your profile, storage, and gallery features."
    last_sign_in = identity.last_sign_in_at.strftime("%Y-%m-%d %H:%M") if identity.last_sign_in_at else "Unknown"
    return (
        f"**Email:** {identity.email or 'Unknown'}  \n"
        f"**User ID:** `{identity.id}`  \n"
        f"**Last sign in:** {last_sign_in}"
    )


def gallery_items(images: List[GalleryImage]) -> List[tuple]:
    return [(img.url, img.name) for img in images]


def image_details(image: Optional[GalleryImage]) -> str:
    if image is None:
        return ""
    size = f"{image.size / 1024:.1f} KB" if image.size else "Unknown"
    return f"**{image.name}**  \nSize: {size}  \nUploaded: {format_date(image.created_at)}"
