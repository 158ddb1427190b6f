# services/api_gateway/app/routers/images.py
from fastapi import APIRouter, Depends
from core.models import GatewayResponse, ImageProcessRequest
import logging

from ..container import AppContainer
from ..main import get_container

logger = logging.getLogger("SFH_Core").getChild("APIGateway").getChild("ImagesRouter")

router = APIRouter()


@router.post("/process", response_model=GatewayResponse)
async def process_image(payload: ImageProcessRequest, container: AppContainer = Depends(get_container)):
    """Runs the server-side image function on a stored file."""
    container.require_bucket(payload.bucket)
    async with container.guard.claim(f"process:{payload.bucket}/{payload.file_name}"):
        response = await container.processor.process(payload)
    return GatewayResponse(
        status="success",
        data=response.model_dump(by_alias=True),
        message=f"Image processed successfully! Processed file: {response.processed_file_name}",
    )
