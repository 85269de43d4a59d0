"""Polling subscription for a document that is running OCR.

While a document is ocr_processing, its status is re-read on a fixed interval.
When it changes, the settle callback runs once (typically to fetch the full
document) and polling stops. The polling task belongs to the context that
opened it and is cancelled when that context exits.

    async with DocumentStatusPoller(fetch_status, on_settled) as poller:
        final_status = await poller.wait()
"""

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

import requests

from ..config import get_settings
from ..domain.documents.document_status import DocumentStatus

logger = logging.getLogger(__name__)

StatusFetcher = Callable[[], Awaitable[str]]
SettleCallback = Callable[[str], Union[Awaitable[None], None]]


class DocumentStatusPoller:
    """Cancellable poll loop bound to one observation lifetime.

    Args:
        fetch_status: Coroutine function returning the current status value
        on_settled: Called once with the first status other than ocr_processing
        interval_seconds: Delay between polls, STATUS_POLL_INTERVAL_SECONDS when None
    """

    def __init__(
        self,
        fetch_status: StatusFetcher,
        on_settled: SettleCallback,
        interval_seconds: Optional[float] = None,
    ):
        if interval_seconds is None:
            interval_seconds = get_settings().STATUS_POLL_INTERVAL_SECONDS
        self.fetch_status = fetch_status
        self.on_settled = on_settled
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start polling; a second call while running is a no-op."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        """Cancel the poll task and wait for it to finish."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def wait(self) -> str:
        """Wait for the settled status."""
        if self._task is None:
            raise RuntimeError("Poller has not been started")
        return await self._task

    async def _run(self) -> str:
        while True:
            await asyncio.sleep(self.interval_seconds)
            status = await self.fetch_status()
            if status != DocumentStatus.OCR_PROCESSING.value:
                logger.debug(f"Document settled: status={status}")
                result = self.on_settled(status)
                if inspect.isawaitable(result):
                    await result
                return status

    async def __aenter__(self) -> "DocumentStatusPoller":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()


def http_status_fetcher(
    base_url: str,
    document_id: str,
    token: str,
    timeout_seconds: float = 10.0,
    session: Optional[requests.Session] = None,
) -> StatusFetcher:
    """Status fetcher reading GET /api/v1/documents/{id}/status."""
    session = session or requests.Session()
    url = f"{base_url.rstrip('/')}/api/v1/documents/{document_id}/status"
    headers = {"Authorization": f"Bearer {token}"}

    def _get() -> str:
        response = session.get(url, headers=headers, timeout=timeout_seconds)
        response.raise_for_status()
        return response.json()["status"]

    async def fetch() -> str:
        return await asyncio.to_thread(_get)

    return fetch
