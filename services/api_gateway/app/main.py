# services/api_gateway/app/main.py
from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from core.config import settings
from core.errors import AppError, user_message
from core.models import GatewayResponse, SessionInfo
import logging
from contextlib import asynccontextmanager
from typing import Optional

from .container import AppContainer

# Use logger configured in core.config
logger = logging.getLogger("SFH_Core").getChild("APIGateway")


def get_container(request: Request) -> AppContainer:
    """Dependency function to get the composition root from app state."""
    container = getattr(request.app.state, 'container', None)
    if container is None:
        logger.error("Container dependency not met: not available in application state.")
        raise HTTPException(status_code=503, detail="Gateway internal error: services not ready")
    return container


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Holds the auth subscription while the app runs; releases it on shutdown."""
    container: AppContainer = app.state.container
    logger.info("API Gateway lifespan startup: starting session tracker.")
    container.gallery.activate()
    async with container.tracker.running():
        yield # Application runs here
        logger.info("API Gateway lifespan shutdown: Cleaning up resources.")
        container.close_views()
    logger.info("Session tracker stopped.")


async def app_error_handler(request: Request, exc: AppError):
    log = logger.warning if exc.status_code < 500 else logger.error
    log(f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": user_message(exc)})


async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(f"{request.method} {request.url.path} failed unexpectedly: {type(exc).__name__}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"detail": user_message(exc)})


def create_app(container: Optional[AppContainer] = None, mount_ui: Optional[bool] = None) -> FastAPI:
    container = container or AppContainer.from_settings(settings)
    app = FastAPI(
        title="Supa Files Hub API",
        description="Authentication, file storage and image gallery on Supabase",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.container = container
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    # --- Health Check ---
    @app.get("/health", response_model=GatewayResponse, tags=["Meta"])
    async def health_check(request: Request):
        c = get_container(request)
        status_text = "configured" if c.configured else "NOT configured"
        return GatewayResponse(
            status="success",
            data={"configured": c.configured, "admin_configured": c.clients.is_admin_configured},
            message=f"API Gateway is running (Supabase: {status_text})",
        )

    @app.get("/session", response_model=GatewayResponse, tags=["Meta"])
    async def session_info(request: Request):
        c = get_container(request)
        info = SessionInfo(configured=c.configured, identity=c.store.identity,
                           profile_url=c.store.profile_url, page=c.store.page)
        return GatewayResponse(status="success", data=info.model_dump(mode="json"))

    @app.post("/navigation/{page}", response_model=GatewayResponse, tags=["Meta"])
    async def navigate(page: str, request: Request):
        c = get_container(request)
        current = c.router.navigate(page)
        return GatewayResponse(status="success", data={"page": current.value})

    # --- Routing ---
    from .routers import auth, files, gallery, images, profile
    app.include_router(auth.router, prefix="/auth", tags=["Auth"])
    app.include_router(files.router, prefix="/files", tags=["Files"])
    app.include_router(profile.router, prefix="/profile", tags=["Profile"])
    app.include_router(gallery.router, prefix="/gallery", tags=["Gallery"])
    app.include_router(images.router, prefix="/images", tags=["Images"])

    if mount_ui is None:
        mount_ui = settings.UI_ENABLED
    if mount_ui:
        import gradio as gr
        from services.ui_service.app.main import build_ui
        app = gr.mount_gradio_app(app, build_ui(container), path="/ui")
        logger.info("Gradio UI mounted at /ui")

    # Example root endpoint
    @app.get("/", response_model=GatewayResponse, tags=["Meta"])
    async def read_root():
        return GatewayResponse(status="success", message="Welcome to the Supa Files Hub API. The UI lives at /ui")

    return app


app = create_app()
