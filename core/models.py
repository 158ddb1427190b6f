# core/models.py
from pydantic import BaseModel, Field, model_validator
from typing import List, Optional, Dict, Any
from enum import Enum
import datetime

from core.utils import category_of

# --- Enums ---

class Category(str, Enum):
    """Listing category filter. 'all' disables category filtering."""
    ALL = "all"
    IMAGES = "images"
    DOCUMENTS = "documents"
    VIDEOS = "videos"

class SortKey(str, Enum):
    NAME = "name"
    SIZE = "size"
    CREATED_AT = "created_at"

class Page(str, Enum):
    """Top-level views of the app."""
    PROFILE = "profile"
    STORAGE = "storage"
    GALLERY = "gallery"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Page":
        """Unknown page ids fall back to the profile page."""
        try:
            return cls(value)
        except ValueError:
            return cls.PROFILE

class ProcessOperation(str, Enum):
    RESIZE = "resize"
    COMPRESS = "compress"
    THUMBNAIL = "thumbnail"

# --- Core Data Models ---

class Identity(BaseModel):
    """The authenticated principal, as reported by Supabase Auth."""
    id: str
    email: Optional[str] = None
    last_sign_in_at: Optional[datetime.datetime] = None
    user_metadata: Dict[str, Any] = Field(default_factory=dict, description="Open-ended profile attributes (profile_url, profile_file_path, ...)")

    class Config:
        from_attributes = True

    @classmethod
    def from_user(cls, user: Any) -> "Identity":
        """Builds an Identity from an SDK user object or a plain dict."""
        if isinstance(user, dict):
            data = dict(user)
        else:
            data = {field: getattr(user, field, None) for field in ("id", "email", "last_sign_in_at", "user_metadata")}
        data["user_metadata"] = data.get("user_metadata") or {}
        return cls(**data)

    @property
    def profile_url(self) -> Optional[str]:
        return self.user_metadata.get("profile_url")

class StorageObject(BaseModel):
    """One object of a bucket listing. A transient snapshot, never edited locally."""
    name: str = Field(..., description="Bucket-relative path, unique within the bucket")
    id: Optional[str] = None # Folders have no id
    created_at: Optional[datetime.datetime] = None
    size: Optional[int] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "StorageObject":
        """Parses one entry of storage `list()`. Size may sit at top level or in metadata."""
        metadata = record.get("metadata") or {}
        size = record.get("size")
        if size is None:
            size = metadata.get("size")
        return cls(
            name=record["name"],
            id=record.get("id"),
            created_at=record.get("created_at"),
            size=size,
            metadata=metadata,
        )

    @property
    def category(self) -> str:
        return category_of(self.name)

class ViewFilterState(BaseModel):
    """Search/category/sort state of one listing view. Never persisted."""
    search_text: str = ""
    category: Category = Category.ALL
    sort_key: SortKey = SortKey.CREATED_AT

class LocalFile(BaseModel):
    """A file selected by the user, read into memory before upload."""
    name: str
    content_type: str = "application/octet-stream"
    data: bytes = b""

    @property
    def size(self) -> int:
        return len(self.data)

class UploadSession(BaseModel):
    """Lives for the duration of one upload call only."""
    source_name: str
    bucket: str
    key: str
    progress: float = 0.0

class UploadResult(BaseModel):
    bucket: str
    key: str
    public_url: str
    profile_synced: Optional[bool] = Field(None, description="Profile uploads only: whether the URL was saved to the identity's attributes")

class GalleryImage(BaseModel):
    name: str
    url: str
    size: Optional[int] = None
    created_at: Optional[datetime.datetime] = None

# --- Image Processing Contract ---

class ImageProcessRequest(BaseModel):
    """Request for the remote image function. Fields are checked per operation."""
    bucket: str
    file_name: str
    operation: ProcessOperation = ProcessOperation.RESIZE
    width: Optional[int] = Field(None, ge=10, le=2000)
    height: Optional[int] = Field(None, ge=10, le=2000)
    quality: Optional[int] = Field(None, ge=10, le=100)

    @model_validator(mode='after')
    def check_operation_fields(self):
        if self.operation == ProcessOperation.RESIZE:
            if self.width is None or self.height is None:
                raise ValueError("'resize' requires both width and height.")
            if self.quality is not None:
                raise ValueError("'resize' does not accept quality.")
        elif self.operation == ProcessOperation.COMPRESS:
            if self.quality is None:
                raise ValueError("'compress' requires quality.")
            if self.width is not None or self.height is not None:
                raise ValueError("'compress' does not accept width/height.")
        elif any(v is not None for v in (self.width, self.height, self.quality)):
            raise ValueError("'thumbnail' does not accept width, height or quality.")
        return self

    def to_payload(self) -> Dict[str, Any]:
        """Wire body expected by the edge function."""
        payload: Dict[str, Any] = {
            "bucket": self.bucket,
            "fileName": self.file_name,
            "operation": self.operation.value,
        }
        if self.operation == ProcessOperation.RESIZE:
            payload["width"] = self.width
            payload["height"] = self.height
        elif self.operation == ProcessOperation.COMPRESS:
            payload["quality"] = self.quality
        return payload

class ImageProcessResponse(BaseModel):
    success: bool = False
    processed_file_name: Optional[str] = Field(None, alias="processedFileName")
    public_url: Optional[str] = Field(None, alias="publicUrl")
    error: Optional[str] = None

    class Config:
        populate_by_name = True
        extra = 'ignore'

# --- API Gateway Request/Response Models ---

class Credentials(BaseModel):
    email: str
    password: str = Field(..., min_length=6)

class SessionInfo(BaseModel):
    configured: bool
    identity: Optional[Identity] = None
    profile_url: Optional[str] = None
    page: Page = Page.PROFILE

class FileEntry(BaseModel):
    """View-ready listing row."""
    name: str
    size: Optional[int] = None
    size_label: str
    created_at: Optional[datetime.datetime] = None
    category: str
    public_url: Optional[str] = None

class ListingResponse(BaseModel):
    bucket: str
    total: int = Field(description="Objects in the fetched snapshot before filtering")
    truncated: bool = False
    files: List[FileEntry] = Field(default_factory=list)

class GatewayResponse(BaseModel):
    """Standard response wrapper for the API Gateway."""
    status: str = Field(description="'success' or 'error'")
    data: Any | None = Field(default=None, description="The primary data payload (depends on the endpoint)")
    message: Optional[str] = Field(default=None, description="Optional status message or error details")
