"""Capability boundary and the timeout/retry/cancellation policy around it."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Protocol, TypeVar

from config.settings import CapabilityConfig

from .exceptions import CapabilityError, CapabilityTimeout, SessionCancelled

if TYPE_CHECKING:
    from judges.base import Criterion, Verdict

    from .models import Argument, DocumentContext, Exchange, Posture, Transcript

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DebateCapabilities(Protocol):
    """Generative operations the orchestrator depends on."""

    async def generate_postures(
        self,
        document_context: DocumentContext,
        question: str | None,
        n: int,
        perspectives: list[str] | None = None,
    ) -> list[Posture]: ...

    async def generate_questions(
        self, document_context: DocumentContext, max_questions: int
    ) -> list[str]: ...

    async def generate_argument(
        self, posture: Posture, topics: list[str], document_context: DocumentContext
    ) -> Argument: ...

    async def generate_question(
        self,
        asker: Posture,
        askee: Posture,
        topics: list[str],
        prior_exchanges: list[Exchange],
    ) -> str: ...

    async def generate_answer(
        self,
        askee: Posture,
        question: str,
        document_context: DocumentContext,
        prior_exchanges: list[Exchange],
    ) -> str: ...

    async def judge(
        self,
        transcript: Transcript,
        postures: list[Posture],
        topics: list[str],
        criteria: list[Criterion],
    ) -> Verdict: ...


class DocumentProvider(Protocol):
    """Read-only source of document contexts."""

    async def fetch_document_context(self, document_id: str) -> DocumentContext: ...


class CancellationToken:
    """Session-wide cancellation flag shared by every in-flight call."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Cancelled by user") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SessionCancelled(self.reason or "Cancelled")

    async def wait(self) -> None:
        await self._event.wait()


def _discard_result(task: asyncio.Future) -> None:
    """Consume the outcome of an abandoned call so it is never reported."""
    if not task.cancelled():
        exc = task.exception()
        if exc is not None:
            logger.debug("Abandoned capability call finished with %s", exc)


class CapabilityInvoker:
    """Runs capability calls with a timeout, bounded retries and cancellation."""

    def __init__(
        self,
        config: CapabilityConfig,
        cancel_token: CancellationToken | None = None,
    ):
        self.config = config
        self.cancel_token = cancel_token or CancellationToken()

    async def call(
        self,
        operation: str,
        factory: Callable[[], Awaitable[T]],
        *,
        timeout: float | None = None,
        retries: int | None = None,
    ) -> T:
        """Invoke ``factory()`` until it succeeds or the retry budget runs out.

        Timeouts and unexpected exceptions surface as ``CapabilityTimeout`` and
        ``CapabilityError``; cancellation surfaces as ``SessionCancelled`` and
        is never retried.
        """
        timeout = timeout if timeout is not None else self.config.timeout_seconds
        retries = retries if retries is not None else self.config.max_retries
        attempts = retries + 1
        last_error: CapabilityError | None = None

        for attempt in range(1, attempts + 1):
            self.cancel_token.raise_if_cancelled()
            try:
                return await self._attempt(operation, factory, timeout)
            except CapabilityError as e:
                last_error = e
                if attempt < attempts:
                    delay = self.config.retry_backoff_seconds * (2 ** (attempt - 1))
                    logger.warning(
                        "%s attempt %s/%s failed (%s); retrying in %.1fs",
                        operation,
                        attempt,
                        attempts,
                        e,
                        delay,
                    )
                    await asyncio.sleep(delay)

        if last_error is None:
            raise ValueError(f"{operation}: retries must be non-negative, got {retries}")
        logger.error("%s failed after %s attempts: %s", operation, attempts, last_error)
        raise last_error

    async def _attempt(
        self, operation: str, factory: Callable[[], Awaitable[T]], timeout: float
    ) -> T:
        call = asyncio.ensure_future(asyncio.wait_for(factory(), timeout))
        cancelled = asyncio.ensure_future(self.cancel_token.wait())
        try:
            done, _ = await asyncio.wait(
                {call, cancelled}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            call.cancel()
            raise
        finally:
            cancelled.cancel()

        if call not in done:
            # In-flight call keeps running; its result is dropped.
            call.add_done_callback(_discard_result)
            raise SessionCancelled(self.cancel_token.reason or "Cancelled")

        try:
            return call.result()
        except TimeoutError as e:
            raise CapabilityTimeout(operation, timeout) from e
        except CapabilityError:
            raise
        except Exception as e:
            raise CapabilityError(operation, f"{type(e).__name__}: {e}") from e
