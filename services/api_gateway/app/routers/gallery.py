# services/api_gateway/app/routers/gallery.py
from fastapi import APIRouter, HTTPException, Depends, File, Query, UploadFile
from core.models import GatewayResponse
import logging
from typing import Optional

from ..container import AppContainer
from ..main import get_container
from .files import to_local_file

logger = logging.getLogger("SFH_Core").getChild("APIGateway").getChild("GalleryRouter")

router = APIRouter()


def _gallery_payload(container: AppContainer) -> dict:
    viewer = container.gallery
    images = viewer.images() if container.configured else []
    selected = viewer.selected_image() if container.configured else None
    return {
        "images": [img.model_dump(mode="json") for img in images],
        "selected": selected.model_dump(mode="json") if selected else None,
    }


@router.get("", response_model=GatewayResponse)
async def list_gallery(container: AppContainer = Depends(get_container)):
    await container.gallery.refresh()
    return GatewayResponse(status="success", data=_gallery_payload(container), message=container.gallery.last_error)


@router.post("", response_model=GatewayResponse)
async def upload_to_gallery(file: Optional[UploadFile] = File(None), container: AppContainer = Depends(get_container)):
    local_file = await to_local_file(file)
    result = await container.gallery.upload(local_file)
    return GatewayResponse(status="success", data={"upload": result.model_dump(), **_gallery_payload(container)},
                           message="Image added to gallery.")


@router.post("/select/{name:path}", response_model=GatewayResponse)
async def select_image(name: str, container: AppContainer = Depends(get_container)):
    await container.gallery.ensure_fresh()
    if container.gallery.select(name) is None:
        raise HTTPException(status_code=404, detail=f"Image '{name}' not found in gallery.")
    return GatewayResponse(status="success", data=_gallery_payload(container))


@router.delete("/select", response_model=GatewayResponse)
async def close_image(container: AppContainer = Depends(get_container)):
    container.gallery.close_overlay()
    return GatewayResponse(status="success", data=_gallery_payload(container))


@router.delete("/{name:path}", response_model=GatewayResponse)
async def delete_image(
    name: str,
    confirm: bool = Query(False, description="Must be true; deletion is irreversible"),
    container: AppContainer = Depends(get_container),
):
    deleted = await container.gallery.delete(name, confirmed=confirm)
    if not deleted:
        raise HTTPException(status_code=400, detail="Deletion not confirmed. Repeat the request with confirm=true.")
    return GatewayResponse(status="success", data=_gallery_payload(container), message=f"Deleted '{name}'.")
