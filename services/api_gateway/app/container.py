# services/api_gateway/app/container.py
from typing import Any, Callable, Dict, Optional, Tuple

from supabase import create_client

from core.config import settings, logger as core_logger
from core.errors import ValidationError
from core.guards import ActionGuard
from core.storage import StorageGateway
from core.supabase_client import SupabaseClientFactory
from services.file_manager.app.gallery import GalleryViewer
from services.file_manager.app.listing import ListingEngine, ListingView, RefreshSignal
from services.file_manager.app.processing import ImageProcessor
from services.file_manager.app.uploads import UploadCoordinator
from services.session_tracker.app.navigation import NavigationRouter
from services.session_tracker.app.session import SessionStore, SessionTracker

logger = core_logger.getChild("APIGateway").getChild("Container")


class AppContainer:
    """
    Composition root. Builds every service once and wires them together;
    both the JSON API and the Gradio UI receive this object.
    """

    def __init__(self, clients: SupabaseClientFactory, config=settings):
        self.settings = config
        self.clients = clients
        self.guard = ActionGuard()
        self.signal = RefreshSignal()
        self.storage = StorageGateway(clients)
        self.store = SessionStore()
        self.tracker = SessionTracker(clients, self.store)
        self.router = NavigationRouter(self.store)
        self.engine = ListingEngine(self.storage, page_limit=config.LIST_PAGE_LIMIT)
        self.uploads = UploadCoordinator(self.storage, self.tracker, self.store, self.signal,
                                         guard=self.guard, config=config)
        self.gallery = GalleryViewer(self.engine, self.uploads, signal=self.signal,
                                     bucket=config.GALLERY_BUCKET, guard=self.guard)
        self.gallery.activate()
        self.processor = ImageProcessor(clients, signal=self.signal, function_name=config.IMAGE_PROCESS_FUNCTION)
        self._views: Dict[str, ListingView] = {}

    @classmethod
    def from_settings(cls, config=settings, create: Callable[..., Any] = create_client) -> "AppContainer":
        return cls(SupabaseClientFactory.from_settings(config, create=create), config=config)

    @property
    def configured(self) -> bool:
        return self.clients.is_configured

    @property
    def buckets(self) -> Tuple[str, ...]:
        return (self.settings.USER_FILES_BUCKET, self.settings.GALLERY_BUCKET, self.settings.AVATARS_BUCKET)

    def require_bucket(self, bucket: str) -> str:
        if bucket not in self.buckets:
            logger.warning(f"Rejected request for unknown bucket '{bucket}'.")
            raise ValidationError(f"Unknown bucket '{bucket}'. Available: {', '.join(self.buckets)}.")
        return bucket

    def view_for(self, bucket: Optional[str] = None) -> ListingView:
        """One listing view per configured bucket, created and activated on first use."""
        bucket = self.require_bucket(bucket or self.settings.USER_FILES_BUCKET)
        if bucket == self.gallery.bucket:
            return self.gallery
        view = self._views.get(bucket)
        if view is None:
            view = ListingView(self.engine, bucket, signal=self.signal, guard=self.guard)
            view.activate()
            self._views[bucket] = view
            logger.debug(f"Created listing view for bucket '{bucket}'.")
        return view

    def close_views(self):
        for view in list(self._views.values()):
            view.close()
        self._views.clear()
        self.gallery.close()
