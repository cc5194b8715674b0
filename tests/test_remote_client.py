"""
Test the conversion service clients against a mocked transport.
"""

import asyncio

import httpx
import pytest

from app.exceptions import ApiServiceError, ConfigurationError, RequestTimeoutError
from app.models.conversion import JobStatus, PaymentReport
from app.services.remote_client import BaseConversionClient, ProxyClient, VendorClient

PAYMENT_VALUES = {PaymentReport.KARTA: "vk-7f3a", PaymentReport.DJAM: "vd-91c2"}


def vendor_client(handler, **kwargs) -> VendorClient:
    return VendorClient(
        "https://vendor.test/",
        api_key="secret-key",
        payment_reports=kwargs.pop("payment_reports", PAYMENT_VALUES),
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def submit(client, report=PaymentReport.KARTA, rate=655.957):
    return asyncio.run(client.submit_job("declaration.pdf", b"%PDF-1.4", rate, report))


class TestVendorSubmit:
    """Job submission to the conversion service."""

    def test_submit_request(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["request"] = request
            captured["body"] = request.read()
            return httpx.Response(
                200,
                json={"job_id": "J1", "status": "pending", "message": "queued", "created_at": "2026-10-19T08:00:00Z"},
            )

        job = submit(vendor_client(handler))

        request = captured["request"]
        assert request.method == "POST"
        assert request.url.path == "/convert/async"
        assert request.headers["X-API-Key"] == "secret-key"
        assert b'name="taux_douane"' in captured["body"]
        assert b"655.957" in captured["body"]
        assert b'name="rapport_paiement"' in captured["body"]
        assert b'filename="declaration.pdf"' in captured["body"]
        assert job.job_id == "J1"
        assert job.status is JobStatus.PENDING

    @pytest.mark.parametrize(
        "label, sent, withheld",
        [
            (PaymentReport.KARTA, b"vk-7f3a", b"vd-91c2"),
            (PaymentReport.DJAM, b"vd-91c2", b"vk-7f3a"),
        ],
    )
    def test_payment_report_mapping(self, label, sent, withheld):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(request.read())
            return httpx.Response(200, json={"job_id": "J1", "status": "pending"})

        submit(vendor_client(handler), report=label)

        body = bodies[0]
        assert sent in body
        assert withheld not in body
        assert label.value.encode() not in body

    def test_unconfigured_payment_report(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"job_id": "J1", "status": "pending"})

        client = vendor_client(handler, payment_reports={PaymentReport.KARTA: "vk-7f3a"})

        with pytest.raises(ConfigurationError):
            submit(client, report=PaymentReport.DJAM)
        assert calls == []

    def test_custom_field_names(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(request.read())
            return httpx.Response(200, json={"job_id": "J1", "status": "pending"})

        submit(vendor_client(handler, exchange_rate_field="rate", payment_report_field="report"))

        assert b'name="rate"' in bodies[0]
        assert b'name="report"' in bodies[0]
        assert b"taux_douane" not in bodies[0]


class TestVendorErrors:
    """Error responses and transport failures."""

    def test_string_detail(self):
        def handler(request):
            return httpx.Response(400, json={"detail": "Invalid file"})

        with pytest.raises(ApiServiceError) as exc_info:
            submit(vendor_client(handler))

        assert exc_info.value.message == "Invalid file"
        assert exc_info.value.status_code == 400
        assert exc_info.value.body == {"detail": "Invalid file"}

    def test_list_detail(self):
        detail = [
            {"msg": "field required", "type": "missing"},
            {"msg": "value is not a valid float", "type": "float_parsing"},
        ]

        def handler(request):
            return httpx.Response(422, json={"detail": detail})

        with pytest.raises(ApiServiceError) as exc_info:
            submit(vendor_client(handler))

        assert exc_info.value.message == "field required, value is not a valid float"
        assert exc_info.value.body == {"detail": detail}

    def test_unstructured_error(self):
        def handler(request):
            return httpx.Response(500, text="oops")

        with pytest.raises(ApiServiceError) as exc_info:
            submit(vendor_client(handler))

        assert exc_info.value.message == "API error: 500 Internal Server Error"
        assert exc_info.value.body is None

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(RequestTimeoutError) as exc_info:
            submit(vendor_client(handler, timeout=5))

        assert exc_info.value.status_code == 408
        assert "5 seconds" in exc_info.value.message

    def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ApiServiceError) as exc_info:
            submit(vendor_client(handler))

        assert exc_info.value.status_code == 502


class TestVendorJobs:
    """Job status and result download."""

    def test_status(self):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(200, json={"job_id": "J1", "status": "processing", "progress": 42})

        job = asyncio.run(vendor_client(handler).get_job_status("J1"))

        assert paths == ["/convert/J1"]
        assert job.status is JobStatus.PROCESSING
        assert job.progress == 42

    def test_download(self):
        def handler(request):
            assert request.url.path == "/convert/J1/download"
            return httpx.Response(
                200,
                content=b"<xml/>",
                headers={
                    "Content-Type": "application/xml",
                    "Content-Disposition": 'attachment; filename="declaration.xml"',
                },
            )

        result = asyncio.run(vendor_client(handler).download_result("J1"))

        assert result.content == b"<xml/>"
        assert result.content_type == "application/xml"
        assert result.content_disposition == 'attachment; filename="declaration.xml"'

    def test_download_defaults(self):
        def handler(request):
            return httpx.Response(200, content=b"<xml/>")

        result = asyncio.run(vendor_client(handler).download_result("J1"))

        assert result.content_type == "application/xml"
        assert result.content_disposition == "attachment; filename=output.xml"


class TestProxyClient:
    """Client for the portal's own proxy endpoints."""

    def test_submit_sends_label_and_session(self):
        captured = {}

        def handler(request):
            captured["request"] = request
            captured["body"] = request.read()
            return httpx.Response(200, json={"job_id": "J1", "status": "pending"})

        client = ProxyClient(
            "http://portal.test",
            access_token="token-alice",
            transport=httpx.MockTransport(handler),
        )
        submit(client, report=PaymentReport.DJAM, rate=1.5)

        request = captured["request"]
        assert request.url.path == "/api/convert"
        assert "sb-access-token=token-alice" in request.headers["cookie"]
        assert b'name="payment_report"' in captured["body"]
        assert b"DJAM" in captured["body"]
        assert b'name="exchange_rate"' in captured["body"]
        assert b"1.5" in captured["body"]

    def test_job_paths(self):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            if request.url.path.endswith("/status"):
                return httpx.Response(200, json={"job_id": "J1", "status": "completed"})
            return httpx.Response(200, content=b"<xml/>")

        client = ProxyClient("http://portal.test", access_token="t", transport=httpx.MockTransport(handler))
        asyncio.run(client.get_job_status("J1"))
        asyncio.run(client.download_result("J1"))

        assert paths == ["/api/jobs/J1/status", "/api/jobs/J1/download"]


class TestBaseConversionClient:
    """Shared plumbing of the clients."""

    def test_cannot_be_instantiated(self):
        with pytest.raises(TypeError):
            BaseConversionClient("https://vendor.test")

    def test_subclass_must_define_paths(self):
        class Partial(BaseConversionClient):
            def _submit_form(self, exchange_rate, payment_report):
                return {}

        with pytest.raises(TypeError):
            Partial("https://vendor.test")
