# services/file_manager/app/uploads.py
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from core.config import settings, logger as core_logger
from core.errors import AuthError, ConfigurationError, ValidationError
from core.guards import ActionGuard
from core.models import LocalFile, UploadResult, UploadSession
from core.storage import StorageGateway
from services.session_tracker.app.session import SessionTracker, SessionStore
from .listing import RefreshSignal

logger = core_logger.getChild("FileManager").getChild("Uploads")

ProgressCallback = Callable[..., None]


@dataclass(frozen=True)
class UploadPolicy:
    """How one upload variant validates, names and stores its files."""
    name: str
    bucket: str
    folder: str = ""
    key_prefix: Optional[str] = None # Set => key is '<prefix>-<owner>-<ms>.<ext>' and needs an owner
    required_mime_prefix: Optional[str] = None
    max_bytes: Optional[int] = None
    overwrite: bool = False
    sync_profile: bool = False

    @property
    def needs_owner(self) -> bool:
        return self.key_prefix is not None


def profile_policy(config=settings) -> UploadPolicy:
    return UploadPolicy(
        name="profile",
        bucket=config.AVATARS_BUCKET,
        folder=config.PROFILE_FOLDER,
        key_prefix="profile",
        required_mime_prefix="image/",
        max_bytes=config.PROFILE_MAX_BYTES,
        overwrite=True, # latest wins
        sync_profile=True,
    )


def gallery_policy(config=settings) -> UploadPolicy:
    return UploadPolicy(name="gallery", bucket=config.GALLERY_BUCKET, key_prefix="gallery", required_mime_prefix="image/")


def generic_policy(bucket: str) -> UploadPolicy:
    return UploadPolicy(name="generic", bucket=bucket)


def _format_limit(max_bytes: int) -> str:
    mib = max_bytes / (1024 * 1024)
    return f"{mib:g}MB" if mib >= 1 else f"{max_bytes} bytes"


class UploadCoordinator:
    """Validates, keys, uploads and publishes one local file per call."""

    def __init__(self, storage: StorageGateway, tracker: SessionTracker, store: SessionStore,
                 signal: RefreshSignal, clock: Callable[[], float] = time.time,
                 guard: Optional[ActionGuard] = None, config=settings):
        self._storage = storage
        self._tracker = tracker
        self._store = store
        self._signal = signal
        self._clock = clock
        self._guard = guard or ActionGuard()
        self._config = config

    def is_busy(self, policy: UploadPolicy) -> bool:
        return self._guard.is_busy(f"upload:{policy.bucket}")

    @staticmethod
    def validate(file: Optional[LocalFile], policy: UploadPolicy):
        """Local checks; the first violation wins."""
        if file is None or not file.name:
            raise ValidationError("You must select a file to upload.")
        if policy.required_mime_prefix and not (file.content_type or "").startswith(policy.required_mime_prefix):
            raise ValidationError("Only image files are allowed.")
        if policy.max_bytes is not None and file.size > policy.max_bytes:
            raise ValidationError(f"File size must be less than {_format_limit(policy.max_bytes)}.")

    def build_key(self, file: LocalFile, policy: UploadPolicy, owner_id: Optional[str] = None) -> str:
        ext = file.name.rsplit(".", 1)[1] if "." in file.name else ""
        if policy.needs_owner:
            stem = f"{policy.key_prefix}-{owner_id}-{int(self._clock() * 1000)}"
        else:
            stem = uuid.uuid4().hex
        file_name = f"{stem}.{ext}" if ext else stem
        return f"{policy.folder}/{file_name}" if policy.folder else file_name

    async def upload(self, file: Optional[LocalFile], policy: UploadPolicy, owner_id: Optional[str] = None,
                     progress: Optional[ProgressCallback] = None) -> UploadResult:
        self.validate(file, policy)
        self._storage.ensure_configured()
        if policy.needs_owner and not owner_id:
            raise AuthError("You must be signed in to upload.")

        async with self._guard.claim(f"upload:{policy.bucket}"):
            session = UploadSession(source_name=file.name, bucket=policy.bucket,
                                    key=self.build_key(file, policy, owner_id))
            self._report(progress, session, 0.1, f"Uploading '{file.name}'...")
            await self._storage.upload_object(policy.bucket, session.key, file.data, file.content_type,
                                              overwrite=policy.overwrite)
            self._report(progress, session, 0.7, "Getting public URL...")
            public_url = self._storage.get_public_url(policy.bucket, session.key)

            profile_synced = None
            if policy.sync_profile:
                profile_synced = await self._sync_profile(public_url, session.key)

            self._report(progress, session, 1.0, "Done.")
            logger.info(f"[{policy.bucket}] {policy.name} upload stored as '{session.key}'.")

        self._signal.notify(policy.bucket)
        return UploadResult(bucket=policy.bucket, key=session.key, public_url=public_url, profile_synced=profile_synced)

    async def _sync_profile(self, public_url: str, key: str) -> bool:
        """Saves the new avatar locally and, best effort, in the identity's attributes."""
        self._store.set_profile_image(public_url, key)
        try:
            await self._tracker.update_profile_attributes({"profile_url": public_url, "profile_file_path": key})
            return True
        except (AuthError, ConfigurationError) as e:
            # The upload itself succeeded; keep the URL and report the partial outcome.
            logger.warning(f"Profile image uploaded but saving it to user metadata failed: {e.message}")
            return False

    @staticmethod
    def _report(progress: Optional[ProgressCallback], session: UploadSession, fraction: float, desc: str):
        session.progress = fraction
        if progress is None:
            return
        try:
            progress(fraction, desc=desc)
        except Exception as e:
            logger.debug(f"Progress callback failed: {e}")

    # --- Variants ---

    def _owner_id(self) -> Optional[str]:
        return self._store.identity.id if self._store.identity else None

    async def upload_profile_image(self, file: Optional[LocalFile], progress: Optional[ProgressCallback] = None) -> UploadResult:
        return await self.upload(file, profile_policy(self._config), owner_id=self._owner_id(), progress=progress)

    async def upload_to_gallery(self, file: Optional[LocalFile], progress: Optional[ProgressCallback] = None) -> UploadResult:
        return await self.upload(file, gallery_policy(self._config), owner_id=self._owner_id(), progress=progress)

    async def upload_file(self, file: Optional[LocalFile], bucket: Optional[str] = None,
                          progress: Optional[ProgressCallback] = None) -> UploadResult:
        return await self.upload(file, generic_policy(bucket or self._config.USER_FILES_BUCKET), progress=progress)
