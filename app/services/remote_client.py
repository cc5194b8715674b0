"""
Conversion service clients for the PDF → ASYCUDA XML portal.

Two clients share the same request/response handling:

- ``VendorClient`` calls the external conversion API with the server-side
  API key and maps payment-report labels to their configured vendor values.
- ``ProxyClient`` calls the portal's own proxy endpoints with a session
  token, for callers running outside the server.

Both expose ``submit_job``, ``get_job_status`` and ``download_result`` and
can be handed to the conversion orchestrator.
"""

from abc import ABC, abstractmethod
from typing import Any
from urllib.parse import quote

import httpx
from loguru import logger

from app.config import Settings
from app.exceptions import ApiServiceError, ConfigurationError, RequestTimeoutError
from app.models.conversion import PaymentReport
from app.models.response import (
    ApiErrorBody,
    ConvertAsyncResponse,
    JobStatusResponse,
    ResultFile,
)


def _error_message(response: httpx.Response, body: Any) -> str:
    """Extract a human message from an error response."""
    if isinstance(body, dict) and "detail" in body:
        try:
            return ApiErrorBody.model_validate(body).message()
        except ValueError:
            pass
    return f"API error: {response.status_code} {response.reason_phrase}"


def raise_for_api_error(response: httpx.Response) -> None:
    """
    Raise ``ApiServiceError`` for non-success responses.

    The parsed JSON body, when there is one, is kept on the exception so
    that proxies can forward it unchanged.
    """
    if response.is_success:
        return
    try:
        body = response.json()
    except ValueError:
        body = None
    raise ApiServiceError(_error_message(response, body), response.status_code, body)


class BaseConversionClient(ABC):
    """Shared HTTP plumbing for the conversion clients."""

    submit_path = ""

    def __init__(
        self,
        base_url: str,
        timeout: float = 120.0,
        headers: dict[str, str] | None = None,
        cookies: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Base URL requests are sent to
            timeout: Wall-clock budget for each request in seconds
            headers: Headers sent with every request
            cookies: Cookies sent with every request
            transport: Optional transport, used by tests
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._headers = headers or {}
        self._cookies = cookies or {}
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=self._headers,
            cookies=self._cookies,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request and normalize transport failures and error statuses."""
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning(f"{method} {path} timed out after {self.timeout}s")
            raise RequestTimeoutError(self.timeout) from exc
        except httpx.HTTPError as exc:
            logger.error(f"{method} {path} failed: {exc}")
            raise ApiServiceError(
                f"Unable to reach the conversion service: {exc}", status_code=502
            ) from exc

        if not response.is_success:
            logger.warning(f"{method} {path} returned {response.status_code}")
        raise_for_api_error(response)
        return response

    @abstractmethod
    def _submit_form(
        self, exchange_rate: float, payment_report: PaymentReport
    ) -> dict[str, str]:
        """Form fields sent alongside the uploaded PDF."""

    @abstractmethod
    def _status_path(self, job_id: str) -> str: ...

    @abstractmethod
    def _download_path(self, job_id: str) -> str: ...

    async def submit_job(
        self,
        filename: str,
        content: bytes,
        exchange_rate: float,
        payment_report: PaymentReport,
        content_type: str = "application/pdf",
    ) -> ConvertAsyncResponse:
        """
        Submit a PDF for asynchronous conversion.

        Args:
            filename: Name of the PDF
            content: PDF bytes
            exchange_rate: Customs exchange rate
            payment_report: Payment-report category label
            content_type: MIME type sent with the file

        Returns:
            ConvertAsyncResponse: The created job

        Raises:
            ApiServiceError: If the service rejects the submission
        """
        response = await self._request(
            "POST",
            self.submit_path,
            files={"file": (filename, content, content_type)},
            data=self._submit_form(exchange_rate, payment_report),
        )
        return ConvertAsyncResponse.model_validate(response.json())

    async def get_job_status(self, job_id: str) -> JobStatusResponse:
        """Fetch the current status of a job."""
        response = await self._request("GET", self._status_path(job_id))
        return JobStatusResponse.model_validate(response.json())

    async def download_result(self, job_id: str) -> ResultFile:
        """Fetch the XML produced by a completed job."""
        response = await self._request("GET", self._download_path(job_id))
        return ResultFile(
            content=response.content,
            content_type=response.headers.get("content-type", "application/xml"),
            content_disposition=response.headers.get(
                "content-disposition", "attachment; filename=output.xml"
            ),
        )


class VendorClient(BaseConversionClient):
    """Client for the external conversion API."""

    submit_path = "/convert/async"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        payment_reports: dict[PaymentReport, str],
        exchange_rate_field: str = "taux_douane",
        payment_report_field: str = "rapport_paiement",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(
            base_url,
            timeout=timeout,
            headers={"X-API-Key": api_key},
            transport=transport,
        )
        self.payment_reports = dict(payment_reports)
        self.exchange_rate_field = exchange_rate_field
        self.payment_report_field = payment_report_field

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> "VendorClient":
        """Build the client from application settings."""
        return cls(
            base_url=settings.API_BASE_URL,
            api_key=settings.API_KEY,
            payment_reports={
                PaymentReport.KARTA: settings.PAYMENT_REPORT_KARTA,
                PaymentReport.DJAM: settings.PAYMENT_REPORT_DJAM,
            },
            exchange_rate_field=settings.VENDOR_EXCHANGE_RATE_FIELD,
            payment_report_field=settings.VENDOR_PAYMENT_REPORT_FIELD,
            timeout=settings.REQUEST_TIMEOUT,
            transport=transport,
        )

    def resolve_payment_report(self, payment_report: PaymentReport) -> str:
        """
        Map a payment-report label to its vendor value.

        Raises:
            ConfigurationError: If no value is configured for the label
        """
        label = PaymentReport(payment_report)
        value = self.payment_reports.get(label)
        if not value:
            raise ConfigurationError(
                f"No vendor value configured for payment report {label.value}",
                f"PAYMENT_REPORT_{label.value}",
            )
        return value

    def _submit_form(self, exchange_rate: float, payment_report: PaymentReport) -> dict[str, str]:
        return {
            self.exchange_rate_field: repr(float(exchange_rate)),
            self.payment_report_field: self.resolve_payment_report(payment_report),
        }

    def _status_path(self, job_id: str) -> str:
        return f"/convert/{quote(job_id, safe='')}"

    def _download_path(self, job_id: str) -> str:
        return f"/convert/{quote(job_id, safe='')}/download"


class ProxyClient(BaseConversionClient):
    """Client for the portal's proxy endpoints."""

    submit_path = "/api/convert"

    def __init__(
        self,
        base_url: str,
        access_token: str,
        cookie_name: str = "sb-access-token",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(
            base_url,
            timeout=timeout,
            cookies={cookie_name: access_token},
            transport=transport,
        )

    def _submit_form(self, exchange_rate: float, payment_report: PaymentReport) -> dict[str, str]:
        return {
            "exchange_rate": repr(float(exchange_rate)),
            "payment_report": PaymentReport(payment_report).value,
        }

    def _status_path(self, job_id: str) -> str:
        return f"/api/jobs/{quote(job_id, safe='')}/status"

    def _download_path(self, job_id: str) -> str:
        return f"/api/jobs/{quote(job_id, safe='')}/download"
