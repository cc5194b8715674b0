"""
Batch endpoints backing the upload page.

The browser uploads its files with their parameters once; the server runs
the conversion orchestrator for the user's batch and the page polls the
batch view to render per-file status, errors and download actions.
"""

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from loguru import logger

from app.exceptions import UploadValidationError
from app.models.auth import AuthUser
from app.models.conversion import FileStatus, SavedArtifact
from app.models.response import BatchResponse
from app.services.auth import get_current_user
from app.services.batches import BatchRegistry, BatchSession

router = APIRouter()


def _registry(request: Request) -> BatchRegistry:
    return request.app.state.batches


def _current(request: Request, user: AuthUser) -> BatchSession:
    session = _registry(request).get(user.id)
    if session is None:
        raise HTTPException(status_code=404, detail="No conversion batch")
    return session


def _attachment(artifact: SavedArtifact) -> Response:
    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={"Content-Disposition": f'attachment; filename="{artifact.name}"'},
    )


@router.post("/batches/current", response_model=BatchResponse, status_code=202)
async def create_batch(
    request: Request,
    files: list[UploadFile] = File(...),
    exchange_rates: list[str] = Form(default=[]),
    payment_reports: list[str] = Form(default=[]),
    user: AuthUser = Depends(get_current_user),
):
    """
    Start converting a new set of files, replacing the previous batch.

    ``exchange_rates`` and ``payment_reports`` are matched to ``files`` by
    position. Files with a missing or invalid parameter are still added
    and fail validation without reaching the conversion service.
    """
    client = getattr(request.app.state, "vendor_client", None)
    if client is None:
        raise HTTPException(status_code=500, detail="Invalid server configuration")

    session = _registry(request).get_or_create(user.id, client)
    session.reset()

    errors: list[str] = []
    for index, upload in enumerate(files):
        content = await upload.read()
        added, rejected = session.surface.add_files([(upload.filename or "", content, upload.content_type)])
        errors.extend(rejected)
        if not added:
            continue
        entry = added[0]
        rate = exchange_rates[index] if index < len(exchange_rates) else None
        report = payment_reports[index] if index < len(payment_reports) else None
        # Invalid parameters are reported here and fail the file during conversion
        for setter, value in (
            (session.surface.set_exchange_rate, rate),
            (session.surface.set_payment_report, report),
        ):
            try:
                setter(entry.id, value)
            except UploadValidationError as exc:
                errors.append(f"{entry.name}: {exc.message}")

    if not session.surface.entries:
        return JSONResponse(
            status_code=400,
            content=BatchResponse(errors=errors or ["No file provided"]).model_dump(mode="json"),
        )

    session.start(session.orchestrator.submit(session.surface.entries))
    logger.info(f"User {user.id} started a batch of {len(session.surface.entries)} file(s)")
    return session.view(errors)


@router.get("/batches/current", response_model=BatchResponse)
async def get_batch(request: Request, user: AuthUser = Depends(get_current_user)):
    """Current state of the user's batch."""
    session = _registry(request).get(user.id)
    if session is None:
        return BatchResponse()
    return session.view()


@router.post("/batches/current/retry", response_model=BatchResponse, status_code=202)
async def retry_batch(request: Request, user: AuthUser = Depends(get_current_user)):
    """Convert again the files whose conversion failed."""
    session = _current(request, user)
    if session.busy:
        raise HTTPException(status_code=409, detail="A conversion is already running")
    session.start(session.orchestrator.retry(session.surface.entries))
    return session.view()


@router.patch("/batches/current/files/{file_id}", response_model=BatchResponse)
async def update_file(
    file_id: str,
    request: Request,
    exchange_rate: str | None = Form(None),
    payment_report: str | None = Form(None),
    user: AuthUser = Depends(get_current_user),
):
    """
    Correct the conversion parameters of a file before retrying it.

    Only the fields sent are changed. The corrected values are used by the
    next retry of the batch.
    """
    session = _current(request, user)
    if session.surface.get(file_id) is None:
        raise HTTPException(status_code=404, detail="Unknown file")
    if session.busy:
        raise HTTPException(status_code=409, detail="A conversion is already running")

    try:
        if exchange_rate is not None:
            session.surface.set_exchange_rate(file_id, exchange_rate)
        if payment_report is not None:
            session.surface.set_payment_report(file_id, payment_report)
    except UploadValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.message)

    logger.info(f"User {user.id} updated the parameters of file {file_id}")
    return session.view()


@router.get("/batches/current/files/{file_id}/download")
async def download_file(file_id: str, request: Request, user: AuthUser = Depends(get_current_user)):
    """Download the XML of one converted file."""
    session = _current(request, user)
    record = session.orchestrator.get_status(file_id)
    if record is None or record.status != FileStatus.SUCCEEDED or not record.job_id:
        raise HTTPException(status_code=404, detail="No converted file to download")

    artifact = await session.orchestrator.download_one(file_id)
    if artifact is None:
        failed = session.orchestrator.get_status(file_id)
        raise HTTPException(status_code=502, detail=failed.error if failed else "Download failed")
    return _attachment(artifact)


@router.get("/batches/current/files/{file_id}/retry-download")
async def retry_download_file(file_id: str, request: Request, user: AuthUser = Depends(get_current_user)):
    """Download again a file whose previous download failed."""
    session = _current(request, user)
    artifact = await session.orchestrator.retry_download(file_id)
    if artifact is None:
        record = session.orchestrator.get_status(file_id)
        if record is None or record.status != FileStatus.FAILED:
            raise HTTPException(status_code=404, detail="No failed download to retry")
        raise HTTPException(status_code=502, detail=record.error or "Download failed")
    return _attachment(artifact)


@router.get("/batches/current/archive")
async def download_archive(request: Request, user: AuthUser = Depends(get_current_user)):
    """Download every converted file as one zip archive."""
    session = _current(request, user)
    try:
        artifact = await session.orchestrator.download_all()
    except Exception as exc:
        logger.exception(f"Bulk download failed for user {user.id}: {exc}")
        raise HTTPException(status_code=502, detail="Bulk download failed")
    if artifact is None:
        raise HTTPException(status_code=404, detail="No converted file to download")
    return _attachment(artifact)


@router.delete("/batches/current", response_model=BatchResponse)
async def reset_batch(request: Request, user: AuthUser = Depends(get_current_user)):
    """Stop conversions and clear the user's batch."""
    _registry(request).discard(user.id)
    logger.info(f"User {user.id} reset their batch")
    return BatchResponse()
