"""Files API routes: lookups, download accounting, admin delete, local file serving."""
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse, RedirectResponse

from filedrop.dependencies import get_services, require_admin
from filedrop.models.file_record import FileRecord
from filedrop.schemas.common import ErrorResponse, SuccessResponse
from filedrop.schemas.file import FileRecordResponse, StorageUsageResponse
from filedrop.services.container import Services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/files", tags=["files"])

# Mounted under PUBLIC_FILE_PREFIX by the app factory
public_router = APIRouter(tags=["files"])

LOOKUP_ERRORS = {404: {"model": ErrorResponse}, 410: {"model": ErrorResponse}}


@router.get("", response_model=list[FileRecordResponse], dependencies=[Depends(require_admin)])
async def list_files(services: Services = Depends(get_services)):
    """List all file records, newest first."""
    files = await services.store.list_all()
    logger.debug(f"Returning {len(files)} file records")
    return files


@router.get("/usage", response_model=StorageUsageResponse, dependencies=[Depends(require_admin)])
async def storage_usage(services: Services = Depends(get_services)):
    """Bytes used by live files against the configured quota."""
    settings = await services.settings.get_settings()
    return StorageUsageResponse(
        used_bytes=await services.store.total_size(services.clock()),
        limit_bytes=settings.storage_limit_bytes,
        file_count=await services.store.count(),
    )


@router.get("/code/{code}", response_model=FileRecordResponse, responses=LOOKUP_ERRORS)
async def get_file_by_code(code: str, services: Services = Depends(get_services)):
    """Resolve a retrieval code. 404 if unknown, 410 if expired."""
    return await services.downloads.resolve(code)


@router.get("/code/{code}/download", responses=LOOKUP_ERRORS)
async def download_by_code(code: str, services: Services = Depends(get_services)):
    """Resolve a code, count the download and hand out the bytes."""
    record = await services.downloads.resolve(code)
    response = await _download_response(services, record)
    await services.downloads.record_download(record.id)
    return response


@router.get("/hash/{content_hash}", response_model=FileRecordResponse)
async def get_file_by_hash(content_hash: str, services: Services = Depends(get_services)):
    """Get file metadata by content hash."""
    record = await services.store.get_by_hash(content_hash)
    if not record:
        logger.warning(f"File not found: hash={content_hash}")
        raise HTTPException(status_code=404, detail="File not found")
    return record


@router.get("/{file_id}", response_model=FileRecordResponse)
async def get_file(file_id: str, services: Services = Depends(get_services)):
    """Get file metadata by ID."""
    record = await services.store.get_by_id(file_id)
    if not record:
        logger.warning(f"File not found: id={file_id}")
        raise HTTPException(status_code=404, detail="File not found")
    return record


@router.patch("/{file_id}/download", response_model=FileRecordResponse)
async def increment_download(file_id: str, services: Services = Depends(get_services)):
    """Increment the download counter."""
    return await services.downloads.record_download(file_id)


@router.delete("/{file_id}", response_model=SuccessResponse, dependencies=[Depends(require_admin)])
async def delete_file(file_id: str, services: Services = Depends(get_services)):
    """Delete a file's bytes and its record."""
    record = await services.store.get_by_id(file_id)
    if not record:
        logger.warning(f"File not found: id={file_id}")
        raise HTTPException(status_code=404, detail="File not found")

    settings = await services.settings.get_settings()
    await services.remover.remove(record, settings)
    return SuccessResponse()


@public_router.get("/{storage_path:path}")
async def serve_local_file(storage_path: str, services: Services = Depends(get_services)):
    """Serve locally stored bytes under the uploader's original filename."""
    record = await services.downloads.resolve_storage_path(storage_path)
    return await _download_response(services, record)


async def _download_response(services: Services, record: FileRecord):
    settings = await services.settings.get_settings()
    backend = services.backends.for_record(record, settings)
    target = await backend.resolve_download(record.storage_path)
    if target.url:
        return RedirectResponse(target.url, status_code=307)
    return FileResponse(
        path=target.path,
        filename=record.name,
        media_type=record.type or "application/octet-stream",
    )
