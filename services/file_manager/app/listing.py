# services/file_manager/app/listing.py
import asyncio
import os
import tempfile
from typing import Callable, Dict, Iterable, List, Optional

from core.config import logger as core_logger
from core.errors import AppError, user_message
from core.guards import ActionGuard
from core.models import Category, SortKey, StorageObject, ViewFilterState
from core.storage import StorageGateway
from core.utils import category_of

logger = core_logger.getChild("FileManager").getChild("Listing")


# --- Refresh signalling ---

class Subscription:
    def __init__(self, release: Callable[[], None]):
        self._release = release

    def unsubscribe(self):
        release, self._release = self._release, None
        if release is not None:
            release()


class RefreshSignal:
    """Tells listing views that a bucket changed (upload, processing, ...)."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable[[str], None]]] = {}

    def subscribe(self, bucket: str, callback: Callable[[str], None]) -> Subscription:
        self._listeners.setdefault(bucket, []).append(callback)
        def release():
            listeners = self._listeners.get(bucket, [])
            if callback in listeners:
                listeners.remove(callback)
        return Subscription(release)

    def notify(self, bucket: str):
        for callback in list(self._listeners.get(bucket, [])):
            try:
                callback(bucket)
            except Exception as e:
                logger.error(f"[{bucket}] Refresh listener failed: {e}", exc_info=True)


# --- Filtering and sorting ---

def _sort_key(sort_key: SortKey):
    if sort_key == SortKey.NAME:
        return lambda obj: obj.name.lower()
    if sort_key == SortKey.SIZE:
        return lambda obj: obj.size or 0
    return lambda obj: obj.created_at.timestamp() if obj.created_at else float("-inf")


def apply_filters(objects: Iterable[StorageObject], state: ViewFilterState) -> List[StorageObject]:
    """
    Search, category filter and sort over a fetched snapshot.

    Name sorts ascending; size and created_at sort descending. sorted() is
    stable, also with reverse=True, so equal keys keep their fetch order.
    """
    needle = state.search_text.lower()
    selected = [obj for obj in objects if needle in obj.name.lower()]
    if state.category != Category.ALL:
        selected = [obj for obj in selected if category_of(obj.name) == state.category.value]
    descending = state.sort_key != SortKey.NAME
    return sorted(selected, key=_sort_key(state.sort_key), reverse=descending)


# --- Remote listing ---

class ListingEngine:
    """Fetches bucket listings (first page only) and performs object actions."""

    def __init__(self, storage: StorageGateway, page_limit: int = 100):
        self._storage = storage
        self.page_limit = page_limit
        self.last_truncated: Dict[str, bool] = {}

    async def list(self, bucket: str) -> List[StorageObject]:
        objects = await self._storage.list_objects(bucket, limit=self.page_limit, offset=0)
        truncated = len(objects) >= self.page_limit
        self.last_truncated[bucket] = truncated
        if truncated:
            logger.warning(f"[{bucket}] Listing returned a full page of {self.page_limit} objects; later objects are not shown.")
        return objects

    async def download(self, bucket: str, name: str) -> bytes:
        return await self._storage.download_object(bucket, name)

    async def delete(self, bucket: str, name: str):
        await self._storage.delete_objects(bucket, [name])

    def public_url(self, bucket: str, name: str) -> str:
        return self._storage.get_public_url(bucket, name)


class ListingView:
    """
    Per-view listing state for one bucket: snapshot, filters, selection.

    Results of a fetch are dropped when the view was closed meanwhile or a
    newer refresh was started, so a closed view is never written to.
    """

    def __init__(self, engine: ListingEngine, bucket: str, signal: Optional[RefreshSignal] = None,
                 guard: Optional[ActionGuard] = None):
        self.engine = engine
        self.bucket = bucket
        self.state = ViewFilterState()
        self.snapshot: List[StorageObject] = []
        self.selected: Optional[str] = None
        self.last_error: Optional[str] = None
        self.loaded = False
        self.stale = True
        self.active = False
        self._signal = signal
        self._subscription: Optional[Subscription] = None
        self._guard = guard or ActionGuard()
        self._generation = 0

    # --- Lifecycle ---

    def activate(self):
        self.active = True
        if self._signal is not None and self._subscription is None:
            self._subscription = self._signal.subscribe(self.bucket, self._on_bucket_changed)

    def close(self):
        self.active = False
        self._generation += 1
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.unsubscribe()

    def _on_bucket_changed(self, bucket: str):
        logger.debug(f"[{bucket}] Listing invalidated.")
        self.stale = True

    # --- Fetching ---

    def _accept(self, objects: List[StorageObject]) -> List[StorageObject]:
        return objects

    async def refresh(self) -> List[StorageObject]:
        """Re-fetches the bucket. A failed fetch shows an empty list."""
        self._generation += 1
        generation = self._generation
        try:
            objects = self._accept(await self.engine.list(self.bucket))
            error = None
        except AppError as e:
            logger.error(f"[{self.bucket}] Error fetching files: {e.message}")
            objects, error = [], user_message(e)
        if not self.active or generation != self._generation:
            logger.debug(f"[{self.bucket}] Discarding superseded listing result.")
            return self.snapshot
        self.snapshot = objects
        self.last_error = error
        self.loaded = True
        self.stale = False
        return self.snapshot

    async def ensure_fresh(self) -> List[StorageObject]:
        if self.stale or not self.loaded:
            return await self.refresh()
        return self.snapshot

    @property
    def truncated(self) -> bool:
        return self.engine.last_truncated.get(self.bucket, False)

    # --- Filters ---

    def visible(self) -> List[StorageObject]:
        return apply_filters(self.snapshot, self.state)

    def set_filters(self, search_text: Optional[str] = None, category: Optional[str] = None,
                    sort_key: Optional[str] = None) -> ViewFilterState:
        updates = {}
        if search_text is not None: updates["search_text"] = search_text
        if category is not None: updates["category"] = Category(category)
        if sort_key is not None: updates["sort_key"] = SortKey(sort_key)
        self.state = self.state.model_copy(update=updates)
        return self.state

    def reset_filters(self) -> ViewFilterState:
        self.state = ViewFilterState()
        return self.state

    # --- Selection overlay ---

    def select(self, name: str) -> Optional[StorageObject]:
        match = next((obj for obj in self.snapshot if obj.name == name), None)
        self.selected = match.name if match else None
        return match

    def close_overlay(self):
        self.selected = None

    # --- Object actions ---

    def is_busy(self, action: str, name: str) -> bool:
        return self._guard.is_busy(f"{action}:{self.bucket}/{name}")

    async def download(self, name: str, save: Callable[[str], object]) -> object:
        """
        Fetches the object into a temporary file and hands its path to `save`.
        The temporary file is removed afterwards, including when `save` raises.
        """
        async with self._guard.claim(f"download:{self.bucket}/{name}"):
            data = await self.engine.download(self.bucket, name)
            suffix = os.path.splitext(name)[1]
            fd, temp_path = tempfile.mkstemp(suffix=suffix)
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(data)
                return await asyncio.to_thread(save, temp_path)
            finally:
                try:
                    os.remove(temp_path)
                except FileNotFoundError:
                    pass

    async def delete(self, name: str, confirmed: bool) -> bool:
        """Deletes after explicit confirmation, then re-fetches the listing."""
        if not confirmed:
            logger.info(f"[{self.bucket}] Delete of '{name}' not confirmed; nothing sent.")
            return False
        async with self._guard.claim(f"delete:{self.bucket}/{name}"):
            await self.engine.delete(self.bucket, name)
        await self.refresh()
        if self.selected == name:
            self.close_overlay()
        return True
