"""
Per-user conversion batches hosted by the server.

Each authenticated user owns at most one batch: an upload surface, the
orchestrator converting it, and the background task currently running.
"""

import asyncio
from collections.abc import Coroutine
from typing import Any

from loguru import logger

from app.models.response import BatchResponse
from app.services.orchestrator import ConversionClient, ConversionOrchestrator
from app.services.upload import UploadSurface


class BatchSession:
    """One user's upload surface and orchestrator."""

    def __init__(self, orchestrator: ConversionOrchestrator, surface: UploadSurface | None = None):
        self.orchestrator = orchestrator
        self.surface = surface or UploadSurface()
        self._task: asyncio.Task | None = None

    @property
    def busy(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        """Run a conversion coroutine in the background."""
        task = asyncio.create_task(coro)
        task.add_done_callback(self._on_done)
        self._task = task
        return task

    @staticmethod
    def _on_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.opt(exception=exc).error("Background conversion task crashed")

    def reset(self) -> None:
        """Stop conversions and forget every file."""
        self.orchestrator.reset()
        self.surface.clear()

    def view(self, errors: list[str] | None = None) -> BatchResponse:
        state = self.orchestrator.state
        return BatchResponse(
            is_converting=state.is_converting or self.busy,
            is_downloading=state.is_downloading,
            succeeded_count=state.succeeded_count,
            failed_count=state.failed_count,
            files=self.surface.rows(state),
            errors=errors or [],
        )


class BatchRegistry:
    """In-memory store of the batch of every user."""

    def __init__(self, **orchestrator_options: Any):
        self._sessions: dict[str, BatchSession] = {}
        self._orchestrator_options = orchestrator_options

    def get(self, user_id: str) -> BatchSession | None:
        return self._sessions.get(user_id)

    def get_or_create(self, user_id: str, client: ConversionClient) -> BatchSession:
        session = self._sessions.get(user_id)
        if session is None:
            orchestrator = ConversionOrchestrator(client, **self._orchestrator_options)
            session = BatchSession(orchestrator)
            self._sessions[user_id] = session
            logger.debug(f"Created conversion batch for user {user_id}")
        return session

    def discard(self, user_id: str) -> None:
        session = self._sessions.pop(user_id, None)
        if session is not None:
            session.reset()

    def user_ids(self) -> list[str]:
        return list(self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)
