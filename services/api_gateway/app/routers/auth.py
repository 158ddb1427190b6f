# services/api_gateway/app/routers/auth.py
from fastapi import APIRouter, Depends
from core.models import Credentials, GatewayResponse
import logging

from ..container import AppContainer
from ..main import get_container

logger = logging.getLogger("SFH_Core").getChild("APIGateway").getChild("AuthRouter")

router = APIRouter()


@router.post("/signin", response_model=GatewayResponse)
async def sign_in(payload: Credentials, container: AppContainer = Depends(get_container)):
    logger.info(f"Sign in requested for {payload.email}")
    identity = await container.tracker.sign_in(payload.email, payload.password)
    return GatewayResponse(status="success", data=identity.model_dump(mode="json"), message="Signed in.")


@router.post("/signup", response_model=GatewayResponse)
async def sign_up(payload: Credentials, container: AppContainer = Depends(get_container)):
    logger.info(f"Sign up requested for {payload.email}")
    identity = await container.tracker.sign_up(payload.email, payload.password)
    if identity is None:
        return GatewayResponse(status="success", message="Sign up successful! Please check your email to verify.")
    return GatewayResponse(status="success", data=identity.model_dump(mode="json"), message="Signed up and signed in.")


@router.post("/signout", response_model=GatewayResponse)
async def sign_out(container: AppContainer = Depends(get_container)):
    await container.tracker.sign_out()
    return GatewayResponse(status="success", data={"page": container.router.current.value}, message="Signed out.")
