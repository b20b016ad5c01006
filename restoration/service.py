"""
Restoration Service - HTTP API behind the single-page restoration UI.

Each browser tab works with its own session:
- upload an image (base64 / data URI)
- start a restoration and get the before/after pair
- download the result as PNG, JPEG or WEBP
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import Response
from pydantic import BaseModel
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from restoration.config import RestorationConfig, load_config
from restoration.photo_restoration import (
    ExportFormat,
    RestorationSession,
    SessionStatus,
    SessionStore,
    SourceImage,
    ValidationError,
    create_session_store,
    export_filename,
    export_image,
)

logger = logging.getLogger(__name__)

# The default uvicorn access log is replaced by CustomAccessLogMiddleware
uvicorn_access_logger = logging.getLogger("uvicorn.access")
uvicorn_access_logger.handlers = []
uvicorn_access_logger.propagate = False


class CustomAccessLogMiddleware(BaseHTTPMiddleware):
    """
    Access log for every request except /health.
    """
    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.access_logger = logging.getLogger("restoration.access")
        self.access_logger.setLevel(logging.INFO)
        if not self.access_logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')
            handler.setFormatter(formatter)
            self.access_logger.addHandler(handler)

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        process_time = time.time() - start_time
        formatted_process_time = f"{process_time:.4f}s"

        if request.url.path != "/health":
            client = f"{request.client.host}:{request.client.port}" if request.client else "-"
            self.access_logger.info(
                f'{client} - "{request.method} {request.url.path} HTTP/{request.scope["http_version"]}" '
                f'{response.status_code} {formatted_process_time}'
            )

        return response


# ============================================================================
# Pydantic Models
# ============================================================================

class ImageUploadRequest(BaseModel):
    image_base64: str
    mime_type: Optional[str] = None


class SessionView(BaseModel):
    session_id: str
    status: SessionStatus
    error: Optional[str] = None
    image: Optional[str] = None
    restored: Optional[str] = None


def session_view(session_id: str, session: RestorationSession) -> SessionView:
    """Render a session for the UI; images travel as data URIs."""
    view = SessionView(session_id=session_id, status=session.state.status, error=session.error)
    if session.result is not None:
        view.image = session.result.original.to_data_uri()
        view.restored = session.result.restored.to_data_uri()
    elif session.image is not None:
        view.image = session.image.to_data_uri()
    return view


# ============================================================================
# Dependencies
# ============================================================================

def get_store(request: Request) -> SessionStore:
    return request.app.state.store


def verify_api_key(request: Request, x_api_key: Optional[str] = Header(None)):
    expected_key = request.app.state.config.api_secret_key
    if expected_key and x_api_key != expected_key:
        raise HTTPException(status_code=403, detail="Invalid or missing API key")


def get_session(session_id: str, store: SessionStore = Depends(get_store)) -> RestorationSession:
    session = store.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


# ============================================================================
# Session Endpoints
# ============================================================================

router = APIRouter(prefix="/v1/sessions", dependencies=[Depends(verify_api_key)])


@router.post("", response_model=SessionView, status_code=201)
async def create_session(store: SessionStore = Depends(get_store)) -> SessionView:
    session_id = uuid.uuid4().hex
    session = store.get_or_create(session_id)
    logger.info(f"🆕 Session {session_id} created")
    return session_view(session_id, session)


@router.get("/{session_id}", response_model=SessionView)
async def read_session(session_id: str, session: RestorationSession = Depends(get_session)) -> SessionView:
    return session_view(session_id, session)


@router.post("/{session_id}/image", response_model=SessionView)
async def upload_image(
    session_id: str,
    req: ImageUploadRequest,
    session: RestorationSession = Depends(get_session),
) -> SessionView:
    """
    Accept a base64 image (raw or ``data:`` URI) as the session's source image.
    """
    try:
        image = SourceImage.from_base64(req.image_base64, req.mime_type)
        session.acquire_image(image.data, image.mime_type)
    except ValidationError as e:
        logger.warning(f"❌ Rejected upload for session {session_id}: {e.message}")
        raise HTTPException(status_code=400, detail=e.message)

    logger.info(f"📥 Session {session_id} received {image.mime_type} ({len(image.data)} bytes)")
    return session_view(session_id, session)


@router.post("/{session_id}/restore", response_model=SessionView)
async def restore(session_id: str, session: RestorationSession = Depends(get_session)) -> SessionView:
    """
    Run a restoration attempt and return the resulting state.

    Calling this while an attempt is running returns the processing state
    without starting another one.
    """
    logger.info(f"🎨 Restoration requested for session {session_id}")
    await session.start_restoration()
    return session_view(session_id, session)


@router.post("/{session_id}/reset", response_model=SessionView)
async def reset(session_id: str, session: RestorationSession = Depends(get_session)) -> SessionView:
    session.reset()
    return session_view(session_id, session)


@router.get("/{session_id}/download")
async def download(
    session_id: str,
    fmt: ExportFormat = Query(ExportFormat.PNG, alias="format"),
    session: RestorationSession = Depends(get_session),
) -> Response:
    if session.result is None:
        raise HTTPException(status_code=409, detail="No restored image to download")

    exported = export_image(session.result.restored, fmt)
    filename = export_filename(fmt)
    return Response(
        content=exported.data,
        media_type=exported.mime_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.delete("/{session_id}", status_code=204)
async def delete_session(session_id: str, store: SessionStore = Depends(get_store)) -> Response:
    if not store.discard(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return Response(status_code=204)


# ============================================================================
# Application
# ============================================================================

def create_app(
    config: Optional[RestorationConfig] = None,
    store_factory: Optional[Callable[[], SessionStore]] = None,
) -> FastAPI:
    config = config or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting restoration service")
        app.state.store = store_factory() if store_factory else create_session_store(config=config)

        yield

        logger.info("Shutting down...")
        close = getattr(app.state.store.restorer, "close", None)
        if close is not None:
            await close()

    app = FastAPI(
        title="RestaurAI Restoration Service",
        version="1.0.0",
        lifespan=lifespan,
        middleware=[Middleware(CustomAccessLogMiddleware)],
    )
    app.state.config = config

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/")
    async def root() -> Dict[str, Any]:
        return {"name": app.title, "version": app.version, "docs": "/docs"}

    app.include_router(router)
    return app


app = create_app()


# ============================================================================
# Main Entry Point
# ============================================================================

if __name__ == "__main__":
    logging.basicConfig(
        level=getattr(logging, app.state.config.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    import uvicorn
    uvicorn.run("restoration.service:app", host="0.0.0.0", port=app.state.config.port)
