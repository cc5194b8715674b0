"""
Test the conversion proxy endpoints.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from app.models.conversion import PaymentReport
from app.services.remote_client import VendorClient
from conftest import AUTH_COOKIES, PDF_BYTES, vendor_rejection

PDF_UPLOAD = {"file": ("declaration.pdf", PDF_BYTES, "application/pdf")}
VALID_FORM = {"exchange_rate": "655,957", "payment_report": "KARTA"}


def mock_vendor(handler, payment_reports=None) -> VendorClient:
    return VendorClient(
        "https://vendor.test",
        api_key="secret-key",
        payment_reports=payment_reports or {PaymentReport.KARTA: "vk-7f3a", PaymentReport.DJAM: "vd-91c2"},
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def client(app):
    return TestClient(app, cookies=AUTH_COOKIES)


class TestConvertEndpoint:
    """POST /api/convert"""

    def test_unauthenticated_rejected_before_vendor(self, app, fake_client):
        anonymous = TestClient(app)
        response = anonymous.post("/api/convert", files=PDF_UPLOAD, data=VALID_FORM)

        assert response.status_code == 401
        assert response.json() == {"detail": "Not authenticated"}
        assert fake_client.submitted == []

    def test_unauthenticated_before_configuration(self, app):
        app.state.vendor_client = None
        response = TestClient(app).post("/api/convert", files=PDF_UPLOAD, data=VALID_FORM)
        assert response.status_code == 401

    def test_success(self, client, fake_client):
        response = client.post("/api/convert", files=PDF_UPLOAD, data=VALID_FORM)

        assert response.status_code == 200
        assert response.json()["job_id"] == "job-1"
        assert response.json()["status"] == "pending"
        assert fake_client.submissions == [
            {"filename": "declaration.pdf", "exchange_rate": 655.957, "payment_report": PaymentReport.KARTA}
        ]

    @pytest.mark.parametrize(
        "files, form, detail",
        [
            (None, VALID_FORM, "No file provided"),
            (PDF_UPLOAD, {"payment_report": "KARTA"}, "Missing or invalid exchange rate"),
            (PDF_UPLOAD, {"exchange_rate": "0", "payment_report": "KARTA"}, "Missing or invalid exchange rate"),
            (PDF_UPLOAD, {"exchange_rate": "1.5"}, "Missing payment report (KARTA, DJAM required)"),
            (PDF_UPLOAD, {"exchange_rate": "1.5", "payment_report": "CASH"}, "Invalid payment report (KARTA, DJAM required)"),
            ({"file": ("notes.txt", b"hello", "text/plain")}, VALID_FORM, "File type not supported. Allowed: .pdf"),
        ],
    )
    def test_invalid_parameters(self, client, fake_client, files, form, detail):
        response = client.post("/api/convert", files=files, data=form)

        assert response.status_code == 400
        assert response.json() == {"detail": detail}
        assert fake_client.submitted == []

    def test_parameters_checked_before_configuration(self, app, client):
        app.state.vendor_client = None
        response = client.post("/api/convert", data=VALID_FORM)
        assert response.status_code == 400

    def test_unconfigured_vendor(self, app, client):
        app.state.vendor_client = None
        response = client.post("/api/convert", files=PDF_UPLOAD, data=VALID_FORM)

        assert response.status_code == 500
        assert response.json() == {"detail": "Invalid server configuration"}

    def test_missing_payment_value(self, app, client):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"job_id": "J1", "status": "pending"})

        app.state.vendor_client = mock_vendor(handler, payment_reports={PaymentReport.KARTA: "vk-7f3a"})
        response = client.post(
            "/api/convert", files=PDF_UPLOAD, data={"exchange_rate": "1", "payment_report": "DJAM"}
        )

        assert response.status_code == 500
        assert response.json() == {"detail": "Invalid server configuration"}
        assert calls == []

    def test_vendor_error_forwarded(self, client, fake_client):
        fake_client.scripts["declaration.pdf"] = [vendor_rejection("Corrupted PDF", 422)]

        response = client.post("/api/convert", files=PDF_UPLOAD, data=VALID_FORM)

        assert response.status_code == 422
        assert response.json() == {"detail": "Corrupted PDF"}

    def test_label_mapped_to_vendor_value(self, app, client):
        bodies = []

        def handler(request):
            bodies.append(request.read())
            return httpx.Response(202, json={"job_id": "J9", "status": "pending"})

        app.state.vendor_client = mock_vendor(handler)
        response = client.post(
            "/api/convert", files=PDF_UPLOAD, data={"exchange_rate": "1.5", "payment_report": "DJAM"}
        )

        assert response.status_code == 200
        assert b"vd-91c2" in bodies[0]
        assert b"vk-7f3a" not in bodies[0]
        assert b"DJAM" not in bodies[0]


class TestJobEndpoints:
    """GET /api/jobs/{job_id}/status and /download"""

    def test_status(self, app, client):
        def handler(request):
            assert request.url.path == "/convert/J1"
            return httpx.Response(200, json={"job_id": "J1", "status": "processing", "progress": 40})

        app.state.vendor_client = mock_vendor(handler)
        response = client.get("/api/jobs/J1/status")

        assert response.status_code == 200
        assert response.json()["status"] == "processing"
        assert response.json()["progress"] == 40

    def test_status_error_forwarded(self, app, client):
        def handler(request):
            return httpx.Response(404, json={"detail": "Job not found"})

        app.state.vendor_client = mock_vendor(handler)
        response = client.get("/api/jobs/missing/status")

        assert response.status_code == 404
        assert response.json() == {"detail": "Job not found"}

    def test_download(self, app, client):
        def handler(request):
            return httpx.Response(
                200,
                content=b"<asycuda/>",
                headers={"Content-Type": "application/xml", "Content-Disposition": 'attachment; filename="d.xml"'},
            )

        app.state.vendor_client = mock_vendor(handler)
        response = client.get("/api/jobs/J1/download")

        assert response.status_code == 200
        assert response.content == b"<asycuda/>"
        assert response.headers["content-type"].startswith("application/xml")
        assert response.headers["content-disposition"] == 'attachment; filename="d.xml"'

    def test_download_requires_session(self, app):
        response = TestClient(app).get("/api/jobs/J1/download")
        assert response.status_code == 401

    def test_unconfigured_vendor(self, app, client):
        app.state.vendor_client = None
        response = client.get("/api/jobs/J1/status")

        assert response.status_code == 500
        assert response.json() == {"detail": "Invalid server configuration"}
