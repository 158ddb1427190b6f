from supabase import create_client, Client, ClientOptions
from core.config import settings, logger as core_logger
from typing import Any, Callable, Optional

logger = core_logger.getChild("SupabaseClient")


class SupabaseClientFactory:
    """
    Builds and memoizes Supabase clients for the lifetime of the factory.

    One factory is created by the composition root and handed to every
    service. `get()` / `get_admin()` return None when configuration is
    missing or construction fails; failures are not cached, so callers can
    simply call again after `reconfigure()`.
    """

    def __init__(self, url: Optional[str], key: Optional[str], service_key: Optional[str] = None,
                 create: Callable[..., Any] = create_client):
        self._url = url
        self._key = key
        self._service_key = service_key
        self._create = create
        self._client: Optional[Client] = None
        self._admin_client: Optional[Client] = None

    @classmethod
    def from_settings(cls, config=settings, create: Callable[..., Any] = create_client) -> "SupabaseClientFactory":
        return cls(config.SUPABASE_URL, config.SUPABASE_KEY, config.SUPABASE_SERVICE_KEY, create=create)

    @property
    def is_configured(self) -> bool:
        return bool(self._url and self._key)

    @property
    def is_admin_configured(self) -> bool:
        return bool(self._url and self._service_key)

    def reconfigure(self, url: Optional[str] = None, key: Optional[str] = None, service_key: Optional[str] = None):
        """Replaces missing/wrong credentials. Already-built clients are kept."""
        if url is not None: self._url = url
        if key is not None: self._key = key
        if service_key is not None: self._service_key = service_key

    def get(self) -> Optional[Client]:
        """Returns the anon-key client, or None if it cannot be built."""
        if self._client is not None:
            return self._client
        if not self.is_configured:
            logger.error("Supabase URL or Anon Key not configured. Cannot create client.")
            return None
        try:
            logger.info("Initializing Supabase client with anon key...")
            self._client = self._create(self._url, self._key)
            logger.info("Supabase client with anon key initialized successfully.")
        except Exception as e:
            logger.error(f"Failed to initialize Supabase client with anon key: {e}", exc_info=True)
            return None
        return self._client

    def get_admin(self) -> Optional[Client]:
        """
        Returns a client using the service role key (bypasses RLS).
        Sessions are neither persisted nor refreshed for this client.
        """
        if self._admin_client is not None:
            return self._admin_client
        if not self.is_admin_configured:
            logger.error("Supabase URL or Service Role Key not configured. Cannot create admin client.")
            return None
        try:
            logger.info("Initializing Supabase client with service role key...")
            options = ClientOptions(auto_refresh_token=False, persist_session=False)
            self._admin_client = self._create(self._url, self._service_key, options=options)
            logger.info("Supabase client with service role key initialized successfully.")
        except Exception as e:
            logger.error(f"Failed to initialize Supabase client with service role key: {e}", exc_info=True)
            return None
        return self._admin_client
