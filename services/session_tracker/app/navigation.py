# services/session_tracker/app/navigation.py
from typing import Optional

from core.config import logger as core_logger
from core.models import Page
from .session import SessionStore

logger = core_logger.getChild("SessionTracker").getChild("Navigation")


class NavigationRouter:
    """Maps a page id to one of the three top-level views. No guards, no history."""

    def __init__(self, store: SessionStore):
        self._store = store

    @property
    def current(self) -> Page:
        return self._store.page

    def navigate(self, page_id: Optional[str]) -> Page:
        page = Page.parse(page_id)
        if page.value != page_id:
            logger.warning(f"Unknown page '{page_id}', falling back to '{page.value}'.")
        self._store.page = page
        return page

    def reset(self):
        self._store.page = Page.PROFILE
