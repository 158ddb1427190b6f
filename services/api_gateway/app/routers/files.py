# services/api_gateway/app/routers/files.py
from fastapi import APIRouter, HTTPException, Depends, File, Query, UploadFile
from fastapi.responses import Response
from core.models import Category, FileEntry, GatewayResponse, ListingResponse, LocalFile, SortKey
from core.utils import format_file_size
import logging
import mimetypes
import posixpath
from typing import List, Optional

from ..container import AppContainer
from ..main import get_container
from services.file_manager.app.listing import ListingView

# Use logger configured in core.config, get child logger
logger = logging.getLogger("SFH_Core").getChild("APIGateway").getChild("FilesRouter")

router = APIRouter()


async def to_local_file(upload: Optional[UploadFile]) -> Optional[LocalFile]:
    """Reads a multipart upload into memory. No upload => None (rejected by validation)."""
    if upload is None or not upload.filename:
        return None
    data = await upload.read()
    content_type = upload.content_type or mimetypes.guess_type(upload.filename)[0] or "application/octet-stream"
    return LocalFile(name=upload.filename, content_type=content_type, data=data)


def build_listing(view: ListingView, container: AppContainer) -> ListingResponse:
    files: List[FileEntry] = []
    for obj in view.visible():
        files.append(FileEntry(
            name=obj.name,
            size=obj.size,
            size_label=format_file_size(obj.size),
            created_at=obj.created_at,
            category=obj.category,
            public_url=container.engine.public_url(view.bucket, obj.name) if container.configured else None,
        ))
    return ListingResponse(bucket=view.bucket, total=len(view.snapshot), truncated=view.truncated, files=files)


@router.get("/{bucket}", response_model=GatewayResponse)
async def list_files(
    bucket: str,
    search: str = Query("", description="Case-insensitive name substring"),
    category: Category = Query(Category.ALL),
    sort: SortKey = Query(SortKey.CREATED_AT),
    container: AppContainer = Depends(get_container),
):
    """Lists a bucket (first page) with search, category filter and sort applied."""
    logger.info(f"Listing bucket '{bucket}': search='{search}', category={category.value}, sort={sort.value}")
    view = container.view_for(bucket)
    view.set_filters(search_text=search, category=category.value, sort_key=sort.value)
    await view.refresh()
    listing = build_listing(view, container)
    if view.last_error:
        # A failed fetch renders as an empty list plus a message.
        return GatewayResponse(status="success", data=listing.model_dump(mode="json"), message=view.last_error)
    return GatewayResponse(status="success", data=listing.model_dump(mode="json"))


@router.post("/{bucket}", response_model=GatewayResponse)
async def upload_file(
    bucket: str,
    file: Optional[UploadFile] = File(None),
    container: AppContainer = Depends(get_container),
):
    """Generic upload: random key, any type, never overwrites."""
    local_file = await to_local_file(file)
    result = await container.uploads.upload_file(local_file, bucket=container.require_bucket(bucket))
    return GatewayResponse(status="success", data=result.model_dump(), message="File uploaded successfully.")


@router.get("/{bucket}/objects/{name:path}")
async def download_file(bucket: str, name: str, container: AppContainer = Depends(get_container)):
    container.require_bucket(bucket)
    async with container.guard.claim(f"download:{bucket}/{name}"):
        data = await container.engine.download(bucket, name)
    media_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
    filename = posixpath.basename(name) or name
    logger.info(f"Serving download of '{bucket}/{name}' ({len(data)} bytes).")
    return Response(content=data, media_type=media_type,
                    headers={"Content-Disposition": f'attachment; filename="{filename}"'})


@router.delete("/{bucket}/objects/{name:path}", response_model=GatewayResponse)
async def delete_file(
    bucket: str,
    name: str,
    confirm: bool = Query(False, description="Must be true; deletion is irreversible"),
    container: AppContainer = Depends(get_container),
):
    view = container.view_for(bucket)
    deleted = await view.delete(name, confirmed=confirm)
    if not deleted:
        raise HTTPException(status_code=400, detail="Deletion not confirmed. Repeat the request with confirm=true.")
    return GatewayResponse(status="success", data=build_listing(view, container).model_dump(mode="json"),
                           message=f"Deleted '{name}'.")
