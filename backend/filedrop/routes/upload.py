"""Upload API routes.

Two entry points feed the same orchestrator: a multipart form upload and a
raw streamed body. The streamed variant reads the request as it arrives, so a
client disconnect aborts the transfer mid-way.
"""
import logging
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, File as FastAPIFile, HTTPException, Query, Request, Response, UploadFile

from filedrop.dependencies import get_services, is_admin
from filedrop.schemas.file import UploadResponse
from filedrop.schemas.setting import AppSettings
from filedrop.services.container import Services
from filedrop.services.upload_service import UploadResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/upload", tags=["upload"])


async def _iter_upload(file: UploadFile, chunk_size: int) -> AsyncIterator[bytes]:
    while chunk := await file.read(chunk_size):
        yield chunk


def _declared_length(request: Request) -> Optional[int]:
    value = request.headers.get("content-length")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


async def _load_upload_settings(request: Request, services: Services) -> AppSettings:
    settings = await services.settings.get_settings()
    if not settings.allow_public_uploads and not is_admin(request, services):
        raise HTTPException(status_code=403, detail="Public uploads are disabled")
    return settings


def _to_response(result: UploadResult, response: Response) -> UploadResponse:
    record = result.record
    response.status_code = 201 if result.created else 200
    return UploadResponse(
        id=record.id,
        code=record.code,
        name=record.name,
        url=record.data,
        size=record.size,
        hash=record.hash,
        expire_date=record.expire_date,
        deduplicated=not result.created,
    )


@router.post("", response_model=UploadResponse, status_code=201)
async def upload_file(
    request: Request,
    response: Response,
    file: Optional[UploadFile] = FastAPIFile(None),
    services: Services = Depends(get_services),
):
    """Upload a file (multipart field `file`) and get its retrieval code."""
    if file is None:
        logger.warning("Upload rejected: no file in request")
        raise HTTPException(status_code=400, detail="No file was uploaded")

    settings = await _load_upload_settings(request, services)
    try:
        result = await services.uploads.upload(
            _iter_upload(file, services.config.UPLOAD_CHUNK_SIZE),
            original_name=file.filename,
            mime_type=file.content_type,
            settings=settings,
            declared_size=file.size,
        )
    finally:
        await file.close()
    return _to_response(result, response)


@router.put("/stream", response_model=UploadResponse, status_code=201)
async def upload_stream(
    request: Request,
    response: Response,
    name: Optional[str] = Query(None, description="Original filename"),
    services: Services = Depends(get_services),
):
    """Upload the raw request body as a file named `name`."""
    settings = await _load_upload_settings(request, services)
    result = await services.uploads.upload(
        request.stream(),
        original_name=name,
        mime_type=request.headers.get("content-type"),
        settings=settings,
        declared_size=_declared_length(request),
    )
    return _to_response(result, response)
