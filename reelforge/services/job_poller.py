"""Job Poller - drives create/poll cycles against slow generation backends."""

import asyncio
import math
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

from reelforge.core.config import Settings
from reelforge.core.errors import (
    JobCancelledError,
    JobTimeoutError,
    PollingExhaustedError,
    ProviderError,
    ReelForgeError,
    TransientError,
)
from reelforge.models.schemas import Job, JobStatus, PollResponse, ProviderKind


class JobBackend(ABC):
    """A provider endpoint that accepts a request and is then polled by job id."""

    provider_kind: ProviderKind
    name: str = "backend"

    @abstractmethod
    async def create(self, request: dict[str, Any]) -> str:
        """
        Create a job.

        Returns:
            Provider job id

        Raises:
            AuthError, InvalidRequestError, RateLimitError: on rejection
        """

    @abstractmethod
    async def query(self, job_id: str) -> PollResponse:
        """
        Query job status once.

        Raises:
            TransientError: network failure or malformed response
        """


class CancellationToken:
    """Lets a caller abandon in-flight jobs before their timeout."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise JobCancelledError("Job cancelled by caller")


class JobHandle:
    """A submitted job plus its cached terminal outcome."""

    def __init__(self, job: Job, backend: JobBackend):
        self.job = job
        self.backend = backend
        self._settled = False
        self._result: Any = None
        self._error: Optional[BaseException] = None

    @property
    def settled(self) -> bool:
        return self._settled

    def _settle(self, result: Any = None, error: Optional[BaseException] = None) -> None:
        self._settled = True
        self._result = result
        self._error = error

    def _replay(self) -> Any:
        if self._error is not None:
            raise self._error
        return self._result


class JobPoller:
    """Submits jobs and waits for their terminal state."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize job poller.

        Args:
            settings: Application settings
            logger: Logger instance
            clock: Monotonic clock in seconds (defaults to time.monotonic)
            sleep: Awaitable sleep in seconds (defaults to asyncio.sleep)
        """
        self.settings = settings
        self.logger = logger
        self.clock = clock or time.monotonic
        self.sleep = sleep or asyncio.sleep
        self.max_consecutive_failures = settings.max_consecutive_poll_failures

    async def submit(
        self,
        backend: JobBackend,
        request: dict[str, Any],
        cancel_token: Optional[CancellationToken] = None,
    ) -> JobHandle:
        """
        Create a job on the backend.

        Creation errors (auth, invalid request, rate limit) propagate immediately.

        Args:
            backend: Backend that owns the job
            request: Provider request body
            cancel_token: Optional cancellation token

        Returns:
            Handle for await_result()
        """
        if cancel_token:
            cancel_token.raise_if_cancelled()

        job_id = await backend.create(request)
        job = Job(id=job_id, provider_kind=backend.provider_kind, submitted_at=self.clock())
        self.logger.info(f"Submitted {backend.name} job {job_id}")
        return JobHandle(job, backend)

    async def await_result(
        self,
        handle: JobHandle,
        poll_interval_ms: int,
        max_wait_ms: int,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Any:
        """
        Poll until the job reaches a terminal state.

        Calling this again on a settled handle returns (or raises) the cached
        outcome without querying the backend.

        Args:
            handle: Handle from submit()
            poll_interval_ms: Delay before each status query
            max_wait_ms: Wall-clock budget measured from submission
            cancel_token: Optional cancellation token

        Returns:
            The provider's result payload

        Raises:
            ProviderError: The provider reported the job failed
            JobTimeoutError: The budget was exceeded
            PollingExhaustedError: Too many consecutive failed status queries
            JobCancelledError: The token was cancelled
        """
        if handle.settled:
            return handle._replay()

        job = handle.job
        consecutive_failures = 0

        while True:
            elapsed_ms = (self.clock() - job.submitted_at) * 1000
            if elapsed_ms > max_wait_ms:
                error = JobTimeoutError(
                    f"Job {job.id} exceeded {max_wait_ms}ms (last status: {job.status.value})",
                    handle.backend.name,
                    elapsed_seconds=elapsed_ms / 1000,
                )
                self._finish(handle, JobStatus.TIMED_OUT, error=error)
                raise error

            await self._wait(poll_interval_ms / 1000, cancel_token, handle)

            job.attempts += 1
            job.last_polled_at = self.clock()
            try:
                response = await handle.backend.query(job.id)
            except TransientError as e:
                consecutive_failures += 1
                self.logger.warning(
                    f"Status query {consecutive_failures}/{self.max_consecutive_failures} "
                    f"failed for job {job.id}: {e}"
                )
                if consecutive_failures >= self.max_consecutive_failures:
                    error = PollingExhaustedError(
                        f"Job {job.id}: {consecutive_failures} consecutive status queries failed",
                        handle.backend.name,
                    )
                    self._finish(handle, JobStatus.FAILED, error=error)
                    raise error from e
                continue
            except ReelForgeError as e:
                self._finish(handle, JobStatus.FAILED, error=e)
                raise

            consecutive_failures = 0

            if response.state == JobStatus.SUCCEEDED:
                self._finish(handle, JobStatus.SUCCEEDED, result=response.payload)
                return response.payload
            if response.state == JobStatus.FAILED:
                error = ProviderError(response.message or f"Job {job.id} failed", handle.backend.name)
                self._finish(handle, JobStatus.FAILED, error=error)
                raise error
            if job.status == JobStatus.SUBMITTED:
                job.advance(JobStatus.PROCESSING)

    async def run(
        self,
        backend: JobBackend,
        request: dict[str, Any],
        poll_interval_ms: int,
        max_wait_ms: int,
        cancel_token: Optional[CancellationToken] = None,
    ) -> Any:
        """Submit a job and wait for its result."""
        handle = await self.submit(backend, request, cancel_token)
        return await self.await_result(handle, poll_interval_ms, max_wait_ms, cancel_token)

    @staticmethod
    def max_polls(poll_interval_ms: int, max_wait_ms: int) -> int:
        """Upper bound on status queries for one await_result() call."""
        return math.ceil(max_wait_ms / poll_interval_ms) + 1

    async def _wait(
        self, seconds: float, cancel_token: Optional[CancellationToken], handle: JobHandle
    ) -> None:
        if cancel_token is None:
            await self.sleep(seconds)
            return

        cancel_token_wait = asyncio.ensure_future(cancel_token.wait())
        sleeper = asyncio.ensure_future(self.sleep(seconds))
        try:
            await asyncio.wait({cancel_token_wait, sleeper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (cancel_token_wait, sleeper):
                if not task.done():
                    task.cancel()

        if cancel_token.cancelled:
            error = JobCancelledError(f"Job {handle.job.id} cancelled by caller", handle.backend.name)
            self._finish(handle, JobStatus.CANCELLED, error=error)
            raise error

    def _finish(
        self,
        handle: JobHandle,
        status: JobStatus,
        result: Any = None,
        error: Optional[ReelForgeError] = None,
    ) -> None:
        job = handle.job
        job.advance(status)
        job.result = result
        if error is not None:
            job.error_kind = error.kind
            self.logger.error(f"❌ Job {job.id} {status.value} after {job.attempts} queries: {error}")
        else:
            self.logger.info(f"✅ Job {job.id} succeeded after {job.attempts} queries")
        handle._settle(result=result, error=error)
