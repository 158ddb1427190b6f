# services/session_tracker/app/session.py
import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from supabase import AuthError as SupabaseAuthError

from core.config import logger as core_logger
from core.errors import AuthError, ConfigurationError
from core.models import Identity, Page
from core.supabase_client import SupabaseClientFactory

logger = core_logger.getChild("SessionTracker")


def _on_loop(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError: # no loop in this thread
        return False


class SessionStore:
    """
    Identity-scoped state shared across views.

    Single writer per field: the tracker writes `identity`, the upload
    coordinator writes the profile image fields, the navigation router writes
    `page`. Everything else only reads.
    """

    def __init__(self):
        self.identity: Optional[Identity] = None
        self.profile_url: Optional[str] = None
        self.profile_file_path: Optional[str] = None
        self.page: Page = Page.PROFILE

    def set_identity(self, identity: Optional[Identity]):
        if identity is None:
            self.clear()
            return
        same_user = self.identity is not None and self.identity.id == identity.id
        self.identity = identity
        # Seed the profile image from the identity's attributes unless this
        # user already has a newer local value.
        if not (same_user and self.profile_url):
            self.profile_url = identity.user_metadata.get("profile_url")
            self.profile_file_path = identity.user_metadata.get("profile_file_path")

    def set_profile_image(self, url: str, file_path: str):
        self.profile_url = url
        self.profile_file_path = file_path

    def clear(self):
        """Drops all identity-derived state and returns to the profile page."""
        self.identity = None
        self.profile_url = None
        self.profile_file_path = None
        self.page = Page.PROFILE


class SessionTracker:
    """Observes Supabase Auth and keeps the SessionStore in sync with it."""

    def __init__(self, clients: SupabaseClientFactory, store: SessionStore):
        self._clients = clients
        self.store = store
        self._subscription = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def current(self) -> Optional[Identity]:
        return self.store.identity

    def _require_client(self):
        client = self._clients.get()
        if client is None:
            raise ConfigurationError()
        return client

    # --- Identity funnel ---

    def _apply_user(self, user: Any):
        """Every identity change, pushed or pulled, goes through here."""
        identity = Identity.from_user(user) if user is not None else None
        previous = self.store.identity
        self.store.set_identity(identity)
        if identity is None and previous is not None:
            logger.info(f"Identity cleared (was {previous.email}).")
        elif identity is not None and (previous is None or previous.id != identity.id):
            logger.info(f"Identity set: {identity.email} ({identity.id}).")

    def _on_auth_event(self, event: Any, session: Any):
        """
        The sync SDK fires this on whichever thread made the auth call, usually
        a to_thread worker. The store is only written on the event loop.
        """
        logger.debug(f"Auth event received: {event}")
        user = getattr(session, "user", None) if session else None
        loop = self._loop
        if loop is not None and not loop.is_closed() and not _on_loop(loop):
            loop.call_soon_threadsafe(self._apply_user, user)
            return
        self._apply_user(user)

    # --- Lifecycle ---

    async def start(self):
        """Subscribes to auth events and loads the current identity once."""
        self._loop = asyncio.get_running_loop()
        supabase = self._clients.get()
        if supabase is None:
            logger.warning("Supabase client not available. Session tracking disabled.")
            self._apply_user(None)
            return

        if self._subscription is None:
            try:
                self._subscription = supabase.auth.on_auth_state_change(self._on_auth_event)
                logger.info("Subscribed to auth state changes.")
            except Exception as e:
                logger.error(f"Error setting up auth listener: {e}", exc_info=True)

        try:
            user = await self._fetch_current_user(supabase)
        except Exception as e:
            logger.error(f"Error checking user session: {e}", exc_info=False)
            user = None
        self._apply_user(user)

    def stop(self):
        self._loop = None
        subscription, self._subscription = self._subscription, None
        if subscription is None:
            return
        try:
            subscription.unsubscribe()
            logger.info("Unsubscribed from auth state changes.")
        except Exception as e:
            logger.error(f"Error unsubscribing auth listener: {e}", exc_info=True)

    @asynccontextmanager
    async def running(self) -> AsyncIterator["SessionTracker"]:
        """Holds the auth subscription for the duration of the block."""
        try:
            await self.start()
            yield self
        finally:
            self.stop()

    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None

    # --- Operations ---

    async def _fetch_current_user(self, supabase) -> Any:
        response = await asyncio.to_thread(supabase.auth.get_user)
        return getattr(response, "user", None) if response else None

    async def refresh_identity(self) -> Optional[Identity]:
        """Re-reads the identity from Supabase (e.g. after a metadata update)."""
        supabase = self._require_client()
        try:
            user = await self._fetch_current_user(supabase)
        except SupabaseAuthError as e:
            raise AuthError(f"Error loading user: {e.message}") from e
        self._apply_user(user)
        return self.store.identity

    async def sign_in(self, email: str, password: str) -> Identity:
        supabase = self._require_client()
        try:
            response = await asyncio.to_thread(
                supabase.auth.sign_in_with_password, {"email": email, "password": password}
            )
        except SupabaseAuthError as e:
            logger.warning(f"Sign in failed for {email}: {e.message}")
            raise AuthError(f"Error: {e.message}") from e
        if response is None or response.user is None:
            raise AuthError("Sign in did not return a user.")
        self._apply_user(response.user)
        return self.store.identity

    async def sign_up(self, email: str, password: str) -> Optional[Identity]:
        """
        Registers a new account. Normally returns None: the user must confirm
        their email before the first sign in.
        """
        supabase = self._require_client()
        try:
            response = await asyncio.to_thread(supabase.auth.sign_up, {"email": email, "password": password})
        except SupabaseAuthError as e:
            logger.warning(f"Sign up failed for {email}: {e.message}")
            raise AuthError(f"Error: {e.message}") from e
        if response is not None and response.session is not None and response.user is not None:
            # Email confirmation disabled on the project: already signed in.
            self._apply_user(response.user)
            return self.store.identity
        logger.info(f"Sign up accepted for {email}; awaiting email verification.")
        return None

    async def sign_out(self):
        """Signs out remotely. Local identity state is cleared on every path."""
        try:
            supabase = self._require_client()
            await asyncio.to_thread(supabase.auth.sign_out)
        except SupabaseAuthError as e:
            logger.warning(f"Remote sign out failed: {e.message}")
            raise AuthError(f"Error signing out: {e.message}") from e
        finally:
            self._apply_user(None)

    async def update_profile_attributes(self, patch: Dict[str, Any]) -> Identity:
        """Merges `patch` into the identity's user_metadata."""
        supabase = self._require_client()
        if self.store.identity is None:
            raise AuthError("You must be signed in to update your profile.")
        try:
            response = await asyncio.to_thread(supabase.auth.update_user, {"data": patch})
        except SupabaseAuthError as e:
            raise AuthError(f"Error updating profile: {e.message}") from e
        if response is not None and getattr(response, "user", None) is not None:
            self._apply_user(response.user)
        return self.store.identity
