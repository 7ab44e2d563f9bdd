"""File relay routes: POST /upload and GET /f/{public_id}."""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
from starlette.datastructures import UploadFile

from filerelay.config import Settings
from filerelay.errors import InvalidUploadError
from filerelay.schemas.file import ErrorResponse, UploadResponse
from filerelay.services.relay import FileRelayService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])

FILES_FIELD = "files[]"
ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_relay_service(request: Request) -> FileRelayService:
    return request.app.state.relay_service


def request_origin(request: Request, settings: Settings) -> str:
    if settings.PUBLIC_BASE_URL:
        return settings.PUBLIC_BASE_URL.rstrip("/")
    return f"{request.url.scheme}://{request.url.netloc}"


@router.post("/upload", response_model=UploadResponse, responses=ERROR_RESPONSES)
async def upload_files(
    request: Request,
    relay: FileRelayService = Depends(get_relay_service),
    settings: Settings = Depends(get_settings),
):
    """Store each ``files[]`` part and return public download links."""
    content_type = request.headers.get("content-type", "")
    if not content_type.startswith("multipart/form-data"):
        raise InvalidUploadError("Invalid Content-Type. Must be multipart/form-data")

    try:
        form = await request.form()
    except Exception as e:
        logger.info(f"Malformed multipart body: {e}")
        raise InvalidUploadError("Malformed multipart form data") from e

    try:
        files = [f for f in form.getlist(FILES_FIELD) if isinstance(f, UploadFile)]
        stored = await relay.upload(files, request_origin(request, settings))
    finally:
        await form.close()

    return UploadResponse(success=True, files=stored)


@router.get("/f/{public_id:path}", responses=ERROR_RESPONSES)
async def download_file(
    public_id: str,
    relay: FileRelayService = Depends(get_relay_service),
):
    """Stream a stored file back as an attachment."""
    stream = await relay.download(public_id)
    return StreamingResponse(
        stream.chunks,
        status_code=stream.status,
        headers=stream.headers,
        background=BackgroundTask(stream.aclose),
    )
