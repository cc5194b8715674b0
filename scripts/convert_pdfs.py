#!/usr/bin/env python3
"""
Convert PDF declarations to ASYCUDA XML from the command line.

The files go through the same conversion orchestrator as the portal,
either directly against the conversion service (settings from ``.env``)
or through a running portal with a session token.

Examples:
    python scripts/convert_pdfs.py a.pdf b.pdf --rate 655,957 --report KARTA
    python scripts/convert_pdfs.py a.pdf --rate 1.1 --report DJAM \\
        --proxy-url http://localhost:8000 --token "$SB_TOKEN" --individual
"""

import argparse
import asyncio
import mimetypes
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from loguru import logger  # noqa: E402

from app.config import settings  # noqa: E402
from app.exceptions import BaseServiceError  # noqa: E402
from app.models.conversion import FileStatus  # noqa: E402
from app.services.orchestrator import ConversionOrchestrator  # noqa: E402
from app.services.remote_client import ProxyClient, VendorClient  # noqa: E402
from app.services.upload import UploadSurface  # noqa: E402
from app.utils.fs import DirectorySaver  # noqa: E402
from app.utils.validation import ValidationUtils  # noqa: E402


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Convert PDF files to ASYCUDA XML")
    parser.add_argument("files", nargs="+", type=Path, help="PDF files to convert")
    parser.add_argument("--rate", required=True, help="Customs exchange rate applied to every file")
    parser.add_argument("--report", required=True, help="Payment report: KARTA or DJAM")
    parser.add_argument("--out", type=Path, default=Path("output"), help="Output directory")
    parser.add_argument(
        "--individual",
        action="store_true",
        help="Save one XML per file instead of a single zip archive",
    )
    parser.add_argument("--proxy-url", help="Go through a running portal instead of the vendor")
    parser.add_argument("--token", help="Session access token for --proxy-url")
    parser.add_argument("--verbose", action="store_true", help="Show debug logs")
    return parser.parse_args(argv)


def build_client(args: argparse.Namespace) -> VendorClient | ProxyClient:
    if args.proxy_url:
        if not args.token:
            raise SystemExit("❌ --token is required with --proxy-url")
        return ProxyClient(
            args.proxy_url,
            access_token=args.token,
            cookie_name=settings.SESSION_COOKIE_NAME,
            timeout=settings.REQUEST_TIMEOUT,
        )
    if not settings.vendor_configured:
        raise SystemExit("❌ API_BASE_URL and API_KEY must be set (or use --proxy-url)")
    return VendorClient.from_settings(settings)


def load_files(surface: UploadSurface, paths: list[Path], rate: str, report: str) -> list[str]:
    """Add the files to the surface and return the rejection messages."""
    candidates = []
    errors = []
    for path in paths:
        if not path.is_file():
            errors.append(f"{path}: file not found")
            continue
        content_type = mimetypes.guess_type(path.name)[0] or "application/pdf"
        candidates.append((path.name, path.read_bytes(), content_type))

    added, rejected = surface.add_files(candidates)
    errors.extend(rejected)
    for entry in added:
        surface.set_exchange_rate(entry.id, rate)
        surface.set_payment_report(entry.id, report)
    return errors


async def run(args: argparse.Namespace) -> int:
    try:
        ValidationUtils.parse_exchange_rate(args.rate)
        ValidationUtils.parse_payment_report(args.report)
    except BaseServiceError as exc:
        print(f"❌ {exc.message}")
        return 2

    surface = UploadSurface()
    errors = load_files(surface, args.files, args.rate, args.report)
    for error in errors:
        print(f"⚠️  {error}")
    if not surface.entries:
        print("❌ No file to convert")
        return 1

    saver = DirectorySaver(args.out)
    orchestrator = ConversionOrchestrator(build_client(args), save=saver)

    print(f"📤 Converting {len(surface.entries)} file(s)...")
    await orchestrator.submit(surface.entries)

    for row in surface.rows(orchestrator.state):
        if row.status == FileStatus.SUCCEEDED:
            print(f"✅ {row.name} → {row.output_name}")
        else:
            print(f"❌ {row.name}: {row.error}")

    state = orchestrator.state
    if state.succeeded_count:
        if args.individual:
            for record_id in list(state.records):
                await orchestrator.download_one(record_id)
        else:
            try:
                await orchestrator.download_all()
            except Exception as exc:
                print(f"❌ Bulk download failed: {exc}")
                return 1
        for path in saver.saved:
            print(f"💾 {path}")

    print(f"\n📊 {orchestrator.state.succeeded_count} succeeded, {orchestrator.state.failed_count} failed")
    return 0 if orchestrator.state.failed_count == 0 else 1


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if args.verbose else "WARNING")
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
