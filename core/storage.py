# core/storage.py
"""
Core Storage Utilities.

Thin async wrapper over Supabase Storage. Every SDK call runs in a worker
thread via asyncio.to_thread, SDK exceptions are translated into the
application's error taxonomy, and a missing client fails with
ConfigurationError before anything touches the network.
"""
import asyncio
from typing import Any, Dict, List

from supabase import StorageException

from core.config import logger as core_logger
from core.errors import ConfigurationError, StorageError, UnexpectedError, UploadError
from core.models import StorageObject
from core.supabase_client import SupabaseClientFactory

logger = core_logger.getChild("Storage")


def _error_payload(exc: StorageException) -> Dict[str, Any]:
    """Older SDKs raise with a dict payload; newer ones set status/code/message attributes."""
    payload = exc.args[0] if exc.args else None
    if isinstance(payload, dict):
        return payload
    return {
        "statusCode": getattr(exc, "status", None),
        "error": getattr(exc, "code", None),
        "message": getattr(exc, "message", None),
    }


def _error_text(exc: StorageException) -> str:
    payload = _error_payload(exc)
    return payload.get("message") or payload.get("error") or str(exc) or "Unknown storage error"


def _is_duplicate(exc: StorageException) -> bool:
    payload = _error_payload(exc)
    return str(payload.get("statusCode")) == "409" or payload.get("error") == "Duplicate"


def _unexpected(bucket: str, action: str, exc: Exception) -> UnexpectedError:
    """Transport and decoding failures the SDK does not wrap."""
    logger.error(f"[{bucket}] Unexpected error {action}: {type(exc).__name__}: {exc}", exc_info=True)
    return UnexpectedError(f"Error {action}: {UnexpectedError.default_message}")


class StorageGateway:
    """Bucket operations used by the upload coordinator, listing engine and gallery."""

    def __init__(self, clients: SupabaseClientFactory):
        self._clients = clients

    def ensure_configured(self):
        self._require_client()

    def _require_client(self):
        client = self._clients.get()
        if client is None:
            raise ConfigurationError()
        return client

    async def list_objects(self, bucket: str, limit: int = 100, offset: int = 0) -> List[StorageObject]:
        """Lists one page of the bucket root."""
        supabase = self._require_client()
        def storage_call():
            return supabase.storage.from_(bucket).list("", {"limit": limit, "offset": offset})
        try:
            records = await asyncio.to_thread(storage_call)
        except StorageException as e:
            logger.error(f"[{bucket}] Storage error listing objects: {_error_text(e)}", exc_info=False)
            raise StorageError(f"Error fetching files: {_error_text(e)}") from e
        except Exception as e:
            raise _unexpected(bucket, "fetching files", e) from e
        objects = [StorageObject.from_record(r) for r in (records or []) if r.get("name")]
        logger.debug(f"[{bucket}] Listed {len(objects)} objects (limit={limit}, offset={offset}).")
        return objects

    async def upload_object(self, bucket: str, key: str, data: bytes, content_type: str, overwrite: bool = False) -> None:
        supabase = self._require_client()
        file_options = {"content-type": content_type, "x-upsert": "true" if overwrite else "false"}
        def storage_call():
            return supabase.storage.from_(bucket).upload(path=key, file=data, file_options=file_options)
        try:
            await asyncio.to_thread(storage_call)
        except StorageException as e:
            if not overwrite and _is_duplicate(e):
                logger.warning(f"[{bucket}] Upload collided with existing key '{key}'.")
                raise UploadError(f"A file named '{key}' already exists.") from e
            logger.error(f"[{bucket}] Storage error uploading '{key}': {_error_text(e)}", exc_info=False)
            raise UploadError(f"Error uploading file: {_error_text(e)}") from e
        except Exception as e:
            raise _unexpected(bucket, "uploading file", e) from e
        logger.info(f"[{bucket}] Uploaded '{key}' ({len(data)} bytes, overwrite={overwrite}).")

    async def download_object(self, bucket: str, key: str) -> bytes:
        supabase = self._require_client()
        def storage_call():
            return supabase.storage.from_(bucket).download(key)
        try:
            return await asyncio.to_thread(storage_call)
        except StorageException as e:
            logger.error(f"[{bucket}] Storage error downloading '{key}': {_error_text(e)}", exc_info=False)
            raise StorageError(f"Error downloading file: {_error_text(e)}") from e
        except Exception as e:
            raise _unexpected(bucket, "downloading file", e) from e

    async def delete_objects(self, bucket: str, keys: List[str]) -> None:
        supabase = self._require_client()
        def storage_call():
            return supabase.storage.from_(bucket).remove(keys)
        try:
            await asyncio.to_thread(storage_call)
        except StorageException as e:
            logger.error(f"[{bucket}] Storage error deleting {keys}: {_error_text(e)}", exc_info=False)
            raise StorageError(f"Error deleting file: {_error_text(e)}") from e
        except Exception as e:
            raise _unexpected(bucket, "deleting file", e) from e
        logger.info(f"[{bucket}] Deleted {keys}.")

    def get_public_url(self, bucket: str, key: str) -> str:
        """Builds the public URL locally. Never fails once a client exists."""
        supabase = self._require_client()
        return supabase.storage.from_(bucket).get_public_url(key)
