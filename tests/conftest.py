"""
Shared fakes and fixtures for the portal tests.
"""

import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from app.exceptions import ApiServiceError, AuthError  # noqa: E402
from app.models.auth import AuthSession, AuthUser  # noqa: E402
from app.models.conversion import JobStatus, PaymentReport, UploadedFile  # noqa: E402
from app.models.response import ConvertAsyncResponse, JobStatusResponse, ResultFile  # noqa: E402

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\n%%EOF"


def make_entry(
    name: str = "declaration.pdf",
    rate: float | None = 655.957,
    report: PaymentReport | None = PaymentReport.KARTA,
    content: bytes | None = PDF_BYTES,
) -> UploadedFile:
    """Build an upload entry ready for conversion."""
    return UploadedFile(
        name=name,
        size=len(content or b""),
        content=content,
        exchange_rate=rate,
        payment_report=report,
    )


class FakeConversionClient:
    """
    Scripted stand-in for the conversion service.

    ``scripts`` maps a file name to the outcome of each successive attempt:
    either an exception raised on submission, or the list of statuses
    returned by successive polls (the last one repeats). A status is a
    string or a dict of ``JobStatusResponse`` fields.
    """

    def __init__(
        self,
        scripts: dict[str, list[Any]] | None = None,
        payloads: dict[str, bytes] | None = None,
    ):
        self.scripts = {name: list(attempts) for name, attempts in (scripts or {}).items()}
        self.payloads = payloads or {}
        self.submitted: list[str] = []
        self.submissions: list[dict[str, Any]] = []
        self.polls: list[str] = []
        self.downloads: list[str] = []
        self.download_errors: dict[str, Exception] = {}
        self.observer: Callable[[], None] | None = None
        self._jobs: dict[str, list[Any]] = {}
        self._names: dict[str, str] = {}

    def _observe(self) -> None:
        if self.observer is not None:
            self.observer()

    async def submit_job(self, filename, content, exchange_rate, payment_report, content_type="application/pdf"):
        self._observe()
        self.submitted.append(filename)
        self.submissions.append(
            {"filename": filename, "exchange_rate": exchange_rate, "payment_report": payment_report}
        )
        attempts = self.scripts.get(filename)
        outcome = attempts.pop(0) if attempts else ["completed"]
        if isinstance(outcome, Exception):
            raise outcome

        job_id = f"job-{len(self.submitted)}"
        self._jobs[job_id] = list(outcome)
        self._names[job_id] = filename
        return ConvertAsyncResponse(job_id=job_id, status=JobStatus.PENDING)

    async def get_job_status(self, job_id):
        self._observe()
        self.polls.append(job_id)
        statuses = self._jobs[job_id]
        current = statuses.pop(0) if len(statuses) > 1 else statuses[0]
        fields = {"status": current} if isinstance(current, str) else dict(current)
        fields.setdefault("progress", 50.0)
        return JobStatusResponse(job_id=job_id, **fields)

    async def download_result(self, job_id):
        self._observe()
        self.downloads.append(job_id)
        if job_id in self.download_errors:
            raise self.download_errors[job_id]
        name = self._names[job_id]
        content = self.payloads.get(name, f"<xml>{name}</xml>".encode())
        return ResultFile(content=content)


class FakeAuthProvider:
    """Auth provider accepting a fixed set of tokens."""

    configured = True

    def __init__(self, users: dict[str, AuthUser] | None = None, password: str = "secret"):
        self.users = users or {"token-alice": AuthUser(id="user-alice", email="alice@example.com")}
        self.password = password
        self.signed_out: list[str] = []

    async def get_user(self, access_token):
        return self.users.get(access_token or "")

    async def sign_in(self, email, password):
        for token, user in self.users.items():
            if user.email == email and password == self.password:
                return AuthSession(access_token=token, expires_in=3600, user=user)
        raise AuthError("Invalid login credentials", 400)

    async def sign_out(self, access_token):
        self.signed_out.append(access_token)


def vendor_rejection(message: str = "Invalid PDF", status_code: int = 422) -> ApiServiceError:
    return ApiServiceError(message, status_code, {"detail": message})


@pytest.fixture
def fake_client() -> FakeConversionClient:
    return FakeConversionClient()


@pytest.fixture
def auth_provider() -> FakeAuthProvider:
    return FakeAuthProvider()


@pytest.fixture
def app(auth_provider, fake_client):
    """Application wired to the fake auth provider and conversion service."""
    from app.main import create_app
    from app.services.batches import BatchRegistry

    application = create_app()
    application.state.auth_provider = auth_provider
    application.state.vendor_client = fake_client
    application.state.batches = BatchRegistry(poll_interval=0, retry_delay=0)
    return application


AUTH_COOKIES = {"sb-access-token": "token-alice"}
