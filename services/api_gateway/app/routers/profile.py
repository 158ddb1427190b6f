# services/api_gateway/app/routers/profile.py
from fastapi import APIRouter, Depends, File, UploadFile
from core.models import GatewayResponse
import logging
from typing import Optional

from ..container import AppContainer
from ..main import get_container
from .files import to_local_file

logger = logging.getLogger("SFH_Core").getChild("APIGateway").getChild("ProfileRouter")

router = APIRouter()


@router.get("", response_model=GatewayResponse)
async def get_profile(container: AppContainer = Depends(get_container)):
    identity = container.store.identity
    return GatewayResponse(status="success", data={
        "identity": identity.model_dump(mode="json") if identity else None,
        "profile_url": container.store.profile_url,
        "profile_file_path": container.store.profile_file_path,
    })


@router.post("/avatar", response_model=GatewayResponse)
async def upload_avatar(file: Optional[UploadFile] = File(None), container: AppContainer = Depends(get_container)):
    """Uploads a profile picture (images only, max 5MB) and stores its URL on the user."""
    local_file = await to_local_file(file)
    result = await container.uploads.upload_profile_image(local_file)
    message = "Profile picture uploaded successfully!"
    if result.profile_synced is False:
        message += " (It could not be saved to your account and may not persist across sessions.)"
    return GatewayResponse(status="success", data=result.model_dump(), message=message)
