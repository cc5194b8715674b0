"""
Conversion proxy endpoints for the PDF → ASYCUDA XML portal.

These routes forward job submission, status and download requests to the
external conversion service, keeping its API key and payment-report
values on the server. Service error bodies and status codes are forwarded
unchanged.
"""

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from loguru import logger

from app.config import settings
from app.exceptions import ApiServiceError, ConfigurationError, UploadValidationError
from app.models.auth import AuthUser
from app.services.auth import get_current_user
from app.services.remote_client import VendorClient
from app.utils.validation import ValidationUtils

router = APIRouter()


def _vendor_client(request: Request) -> VendorClient:
    client: VendorClient | None = getattr(request.app.state, "vendor_client", None)
    if client is None:
        logger.error("Conversion service settings missing (API_BASE_URL / API_KEY)")
        raise HTTPException(status_code=500, detail="Invalid server configuration")
    return client


def _forward_error(exc: ApiServiceError) -> JSONResponse:
    """Return the service's error body and status as-is."""
    body = exc.body if exc.body is not None else {"detail": exc.message}
    return JSONResponse(content=body, status_code=exc.status_code or 502)


@router.post("/convert")
async def convert(
    request: Request,
    file: UploadFile | None = File(None),
    exchange_rate: str | None = Form(None),
    payment_report: str | None = Form(None),
    user: AuthUser = Depends(get_current_user),
):
    """
    Submit a PDF for asynchronous conversion.

    Args:
        file: PDF to convert
        exchange_rate: Customs exchange rate, positive
        payment_report: Payment-report label (KARTA or DJAM)

    Returns:
        The conversion service's job description
    """
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")
    try:
        ValidationUtils.validate_pdf(
            file.filename,
            file.content_type,
            settings.ALLOWED_EXTENSIONS,
            settings.ALLOWED_CONTENT_TYPES,
        )
        rate = ValidationUtils.parse_exchange_rate(exchange_rate)
        report = ValidationUtils.parse_payment_report(payment_report)
        content = await file.read()
        ValidationUtils.validate_file_size(len(content), settings.MAX_FILE_SIZE)
    except UploadValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.message)

    client = _vendor_client(request)
    try:
        job = await client.submit_job(
            file.filename,
            content,
            rate,
            report,
            file.content_type or "application/pdf",
        )
    except ApiServiceError as exc:
        logger.warning(f"Conversion service rejected {file.filename}: {exc.message}")
        return _forward_error(exc)
    except ConfigurationError as exc:
        logger.error(exc.message)
        raise HTTPException(status_code=500, detail="Invalid server configuration")
    except Exception as exc:
        logger.exception(f"Error in /api/convert: {exc}")
        raise HTTPException(status_code=500, detail="Internal server error")

    logger.info(f"User {user.id} submitted {file.filename} as job {job.job_id}")
    return job.model_dump(mode="json", exclude_none=True)


@router.get("/jobs/{job_id}/status")
async def job_status(
    job_id: str,
    request: Request,
    user: AuthUser = Depends(get_current_user),
):
    """Get the status of a conversion job."""
    client = _vendor_client(request)
    try:
        job = await client.get_job_status(job_id)
    except ApiServiceError as exc:
        return _forward_error(exc)
    except Exception as exc:
        logger.exception(f"Error in /api/jobs/{job_id}/status: {exc}")
        raise HTTPException(status_code=500, detail="Internal server error")
    return job.model_dump(mode="json", exclude_none=True)


@router.get("/jobs/{job_id}/download")
async def job_download(
    job_id: str,
    request: Request,
    user: AuthUser = Depends(get_current_user),
) -> Response:
    """Download the XML produced by a conversion job."""
    client = _vendor_client(request)
    try:
        result = await client.download_result(job_id)
    except ApiServiceError as exc:
        return _forward_error(exc)
    except Exception as exc:
        logger.exception(f"Error in /api/jobs/{job_id}/download: {exc}")
        raise HTTPException(status_code=500, detail="Internal server error")

    return Response(
        content=result.content,
        media_type=result.content_type,
        headers={"Content-Disposition": result.content_disposition},
    )
