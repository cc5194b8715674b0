"""
Per-file conversion orchestrator for the PDF → ASYCUDA XML portal.

The orchestrator owns the conversion lifecycle of every file in a batch:
sequential submission, status polling, bounded automatic retry, manual
retry, single-file download and bulk download as a zip archive.

State is an immutable ``ConversionState`` snapshot. Every update builds a
new record and a new mapping from the current snapshot, so operations that
interleave on the event loop never write through a stale reference.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Protocol

from loguru import logger

from app.config import settings
from app.exceptions import (
    ApiServiceError,
    BaseServiceError,
    ConversionCancelledError,
    JobFailedError,
    PollingTimeoutError,
    RequestTimeoutError,
    UploadValidationError,
)
from app.models.conversion import (
    ConversionRecord,
    ConversionState,
    FailureKind,
    FileStatus,
    JobStatus,
    SavedArtifact,
    UploadedFile,
)
from app.models.response import ConvertAsyncResponse, JobStatusResponse, ResultFile
from app.services.archive import archive_name, build_archive
from app.utils.naming import output_filename
from app.utils.validation import ValidationUtils

# Progress milestones of a single attempt
PROGRESS_SUBMITTING = 10.0
PROGRESS_ACCEPTED = 30.0
PROGRESS_DONE = 100.0

Saver = Callable[[str, bytes], Awaitable[Any] | Any]


class ConversionClient(Protocol):
    """What the orchestrator needs from a conversion service client."""

    async def submit_job(
        self,
        filename: str,
        content: bytes,
        exchange_rate: float,
        payment_report: Any,
        content_type: str = "application/pdf",
    ) -> ConvertAsyncResponse: ...

    async def get_job_status(self, job_id: str) -> JobStatusResponse: ...

    async def download_result(self, job_id: str) -> ResultFile: ...


class CancellationToken:
    """
    Cancellation signal checked by a batch at each suspension point.

    The token outlives a single event loop: the wake-up event is created
    lazily inside whichever loop is waiting on it.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._event: asyncio.Event | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self._event is not None:
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise ConversionCancelledError()

    def _wakeup(self) -> asyncio.Event:
        loop = asyncio.get_running_loop()
        if self._event is None or self._loop is not loop:
            self._event = asyncio.Event()
            self._loop = loop
            if self._cancelled:
                self._event.set()
        return self._event

    async def sleep(self, seconds: float) -> None:
        """
        Wait ``seconds``, waking up early if the token is cancelled.

        Raises:
            ConversionCancelledError: If cancelled before or during the wait
        """
        self.raise_if_cancelled()
        if seconds <= 0:
            await asyncio.sleep(0)
        else:
            try:
                await asyncio.wait_for(self._wakeup().wait(), timeout=seconds)
            except asyncio.TimeoutError:
                pass
        self.raise_if_cancelled()


def scale_progress(remote_progress: float) -> float:
    """Map the service's 0-100 progress onto the 30-100 polling range."""
    remote_progress = min(max(remote_progress, 0.0), 100.0)
    return PROGRESS_ACCEPTED + remote_progress * (PROGRESS_DONE - PROGRESS_ACCEPTED) / 100.0


def describe_failure(exc: Exception) -> tuple[str, FailureKind]:
    """Normalize a conversion failure into a message and a failure kind."""
    if isinstance(exc, (PollingTimeoutError, RequestTimeoutError)):
        return exc.message, FailureKind.TIMEOUT
    if isinstance(exc, JobFailedError):
        return exc.message, FailureKind.JOB_FAILED
    if isinstance(exc, ApiServiceError):
        return exc.message, FailureKind.REJECTED
    if isinstance(exc, UploadValidationError):
        return exc.message, FailureKind.VALIDATION
    if isinstance(exc, BaseServiceError):
        return exc.message, FailureKind.UNKNOWN
    return "An unknown error occurred", FailureKind.UNKNOWN


class ConversionOrchestrator:
    """Drives the conversion lifecycle of a batch of uploaded files."""

    def __init__(
        self,
        client: ConversionClient,
        *,
        poll_interval: float | None = None,
        max_poll_attempts: int | None = None,
        max_attempts: int | None = None,
        retry_delay: float | None = None,
        save: Saver | None = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            client: Conversion service client
            poll_interval: Seconds between two status polls
            max_poll_attempts: Status polls before giving up on an attempt
            max_attempts: Conversion attempts per file (first one included)
            retry_delay: Seconds to wait before an automatic retry
            save: Called with ``(name, content)`` for every download
        """
        self.client = client
        self.poll_interval = settings.POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        self.max_poll_attempts = settings.MAX_POLL_ATTEMPTS if max_poll_attempts is None else max_poll_attempts
        self.max_attempts = settings.MAX_CONVERSION_ATTEMPTS if max_attempts is None else max_attempts
        self.retry_delay = settings.RETRY_DELAY_SECONDS if retry_delay is None else retry_delay
        self._save = save

        self._state = ConversionState()
        self._token = CancellationToken()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConversionState:
        """Current batch snapshot."""
        return self._state

    def get_status(self, file_id: str) -> ConversionRecord | None:
        """Return the current record of a file, if any."""
        return self._state.records.get(file_id)

    def _update_record(self, file_id: str, **changes: Any) -> None:
        record = self._state.records.get(file_id)
        if record is None:
            # Cleared by reset() while a call was in flight
            return
        self._state = self._state.with_record(record.evolve(**changes))

    def _set_flags(self, **flags: bool) -> None:
        self._state = self._state.model_copy(update=flags)

    def reset(self) -> None:
        """Stop any running batch and clear all records, counts and flags."""
        self._token.cancel()
        self._token = CancellationToken()
        self._state = ConversionState()
        logger.info("Conversion state reset")

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    async def submit(self, files: Iterable[UploadedFile], *, merge: bool = False) -> None:
        """
        Convert files one after the other.

        Per-file failures are recorded in the state and never raised.

        Args:
            files: Files to convert, in processing order
            merge: Keep records of files outside ``files`` (retry mode)
        """
        files = list(files)
        if not files:
            return

        token = self._token
        queued = {
            entry.id: ConversionRecord(id=entry.id, filename=output_filename(entry.name))
            for entry in files
        }
        state = self._state.with_records(queued, merge=merge)
        flags = {"is_converting": True} if merge else {"is_converting": True, "is_downloading": False}
        self._state = state.model_copy(update=flags)
        logger.info(f"Starting conversion of {len(files)} file(s){' (retry)' if merge else ''}")

        try:
            valid = []
            for entry in files:
                try:
                    ValidationUtils.validate_entry(entry)
                except UploadValidationError as exc:
                    logger.warning(f"Rejected {entry.name}: {exc.message}")
                    self._update_record(
                        entry.id,
                        status=FileStatus.FAILED,
                        error=exc.message,
                        failure=FailureKind.VALIDATION,
                    )
                    continue
                valid.append(entry)

            for entry in valid:
                await self._convert_file(entry, token)
        except ConversionCancelledError:
            logger.info("Conversion batch cancelled")
        finally:
            if not token.cancelled:
                self._set_flags(is_converting=False)
                logger.info(
                    f"Conversion finished: {self._state.succeeded_count} succeeded, "
                    f"{self._state.failed_count} failed"
                )

    async def retry(self, files: Iterable[UploadedFile]) -> None:
        """
        Convert again the files whose conversion failed.

        Files that are not failed, and files whose download failed, are
        left untouched; their records keep their current status.
        """
        records = self._state.records
        to_retry = [
            entry
            for entry in files
            if (record := records.get(entry.id)) is not None
            and record.status == FileStatus.FAILED
            and (record.failure is None or record.failure.is_conversion_failure)
        ]
        if not to_retry:
            return
        await self.submit(to_retry, merge=True)

    async def _convert_file(self, entry: UploadedFile, token: CancellationToken) -> None:
        for attempt in range(1, self.max_attempts + 1):
            token.raise_if_cancelled()
            self._update_record(
                entry.id,
                status=FileStatus.PROCESSING,
                attempts=attempt,
                progress=0.0,
                error=None,
                failure=None,
            )
            try:
                job_id = await self._run_attempt(entry, token)
            except ConversionCancelledError:
                raise
            except Exception as exc:
                message, failure = describe_failure(exc)
                if failure is FailureKind.UNKNOWN and not isinstance(exc, BaseServiceError):
                    logger.exception(f"Unexpected error converting {entry.name}")
                if attempt >= self.max_attempts:
                    plural = "s" if attempt > 1 else ""
                    self._update_record(
                        entry.id,
                        status=FileStatus.FAILED,
                        error=f"{message} ({attempt} attempt{plural})",
                        failure=failure,
                    )
                    logger.error(f"Conversion of {entry.name} failed after {attempt} attempt{plural}: {message}")
                    return
                logger.warning(f"Attempt {attempt} for {entry.name} failed ({message}), retrying")
                await token.sleep(self.retry_delay)
            else:
                self._update_record(
                    entry.id,
                    status=FileStatus.SUCCEEDED,
                    progress=PROGRESS_DONE,
                    job_id=job_id,
                )
                logger.info(f"Converted {entry.name} (job {job_id}, attempt {attempt})")
                return

    async def _run_attempt(self, entry: UploadedFile, token: CancellationToken) -> str:
        """Submit one file and poll its job until it ends; return the job id."""
        self._update_record(entry.id, progress=PROGRESS_SUBMITTING)
        accepted = await self.client.submit_job(
            entry.name,
            entry.content,
            entry.exchange_rate,
            entry.payment_report,
            entry.content_type,
        )
        token.raise_if_cancelled()

        job_id = accepted.job_id
        self._update_record(entry.id, job_id=job_id, progress=PROGRESS_ACCEPTED)
        logger.debug(f"Submitted {entry.name} as job {job_id}")

        status = accepted.status
        last: JobStatusResponse | None = None
        polls = 0
        while not status.is_terminal and polls < self.max_poll_attempts:
            await token.sleep(self.poll_interval)
            last = await self.client.get_job_status(job_id)
            token.raise_if_cancelled()
            status = last.status
            if last.progress is not None:
                self._update_record(entry.id, progress=scale_progress(last.progress))
            polls += 1

        if status is JobStatus.COMPLETED:
            return job_id
        if status is JobStatus.FAILED:
            message = last.error if last is not None and last.error else "The conversion failed"
            raise JobFailedError(message, job_id)
        if status is JobStatus.CANCELLED:
            raise JobFailedError("The conversion was cancelled", job_id, cancelled=True)
        raise PollingTimeoutError(polls)

    # ------------------------------------------------------------------
    # Downloads
    # ------------------------------------------------------------------

    async def _emit(self, artifact: SavedArtifact) -> None:
        if self._save is None:
            return
        result = self._save(artifact.name, artifact.content)
        if inspect.isawaitable(result):
            await result

    async def download_one(self, file_id: str) -> SavedArtifact | None:
        """
        Download the XML of a converted file.

        Does nothing unless the file succeeded and has a job id. A failed
        download marks the record failed without touching its retry budget.
        """
        record = self._state.records.get(file_id)
        if record is None or record.status != FileStatus.SUCCEEDED or not record.job_id:
            return None
        return await self._download(record)

    async def retry_download(self, file_id: str) -> SavedArtifact | None:
        """Download again a file whose previous download failed."""
        record = self._state.records.get(file_id)
        if (
            record is None
            or record.status != FileStatus.FAILED
            or record.failure is not FailureKind.DOWNLOAD
            or not record.job_id
        ):
            return None
        return await self._download(record)

    async def _download(self, record: ConversionRecord) -> SavedArtifact | None:
        name = record.filename or output_filename(None)
        self._update_record(record.id, status=FileStatus.DOWNLOADING, error=None, failure=None)
        try:
            result = await self.client.download_result(record.job_id)
            artifact = SavedArtifact(name=name, content=result.content, media_type=result.content_type)
            await self._emit(artifact)
        except Exception as exc:
            message = exc.message if isinstance(exc, BaseServiceError) else "Download failed"
            if not isinstance(exc, BaseServiceError):
                logger.exception(f"Unexpected error downloading {name}")
            self._update_record(
                record.id,
                status=FileStatus.FAILED,
                error=message,
                failure=FailureKind.DOWNLOAD,
            )
            logger.error(f"Download of {name} failed: {message}")
            return None

        self._update_record(record.id, status=FileStatus.SUCCEEDED)
        logger.info(f"Downloaded {name}")
        return artifact

    async def download_all(self) -> SavedArtifact | None:
        """
        Download every converted file as one zip archive.

        Returns:
            SavedArtifact: The archive, or None if nothing is ready

        Raises:
            Exception: Any download or archive failure, after clearing the
                downloading flag
        """
        ready = [
            record
            for record in self._state.records.values()
            if record.status == FileStatus.SUCCEEDED and record.job_id and record.filename
        ]
        if not ready:
            return None

        self._set_flags(is_downloading=True)
        try:
            results = await asyncio.gather(
                *(self.client.download_result(record.job_id) for record in ready)
            )
            content = build_archive(
                (record.filename, result.content) for record, result in zip(ready, results)
            )
            artifact = SavedArtifact(name=archive_name(), content=content, media_type="application/zip")
            await self._emit(artifact)
            logger.info(f"Bulk download of {len(ready)} file(s) as {artifact.name}")
            return artifact
        except Exception as exc:
            logger.error(f"Bulk download failed: {exc}")
            raise
        finally:
            self._set_flags(is_downloading=False)
