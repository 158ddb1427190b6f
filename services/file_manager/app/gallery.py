# services/file_manager/app/gallery.py
from typing import List, Optional

from core.config import settings, logger as core_logger
from core.errors import ValidationError
from core.guards import ActionGuard
from core.models import GalleryImage, LocalFile, StorageObject, UploadResult
from core.utils import is_gallery_image
from .listing import ListingEngine, ListingView, RefreshSignal
from .uploads import ProgressCallback, UploadCoordinator

logger = core_logger.getChild("FileManager").getChild("Gallery")


class GalleryViewer(ListingView):
    """Image-only listing of the gallery bucket with a single-item overlay."""

    def __init__(self, engine: ListingEngine, uploads: UploadCoordinator, signal: Optional[RefreshSignal] = None,
                 bucket: Optional[str] = None, guard: Optional[ActionGuard] = None):
        super().__init__(engine, bucket or settings.GALLERY_BUCKET, signal=signal, guard=guard)
        self._uploads = uploads

    def _accept(self, objects: List[StorageObject]) -> List[StorageObject]:
        return [obj for obj in objects if is_gallery_image(obj.name)]

    def images(self) -> List[GalleryImage]:
        """Snapshot with public URLs, in fetch order."""
        return [self._to_image(obj) for obj in self.snapshot]

    def selected_image(self) -> Optional[GalleryImage]:
        if self.selected is None:
            return None
        match = next((obj for obj in self.snapshot if obj.name == self.selected), None)
        return self._to_image(match) if match else None

    def _to_image(self, obj: StorageObject) -> GalleryImage:
        return GalleryImage(
            name=obj.name,
            url=self.engine.public_url(self.bucket, obj.name),
            size=obj.size,
            created_at=obj.created_at,
        )

    async def upload(self, file: Optional[LocalFile], progress: Optional[ProgressCallback] = None) -> UploadResult:
        if file is None or not file.name:
            raise ValidationError("You must select an image to upload.")
        if not (file.content_type or "").startswith("image/"):
            raise ValidationError("Only image files are allowed.")
        result = await self._uploads.upload_to_gallery(file, progress=progress)
        await self.refresh()
        return result
