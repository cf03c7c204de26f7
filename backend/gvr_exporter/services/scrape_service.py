"""
Scrape service: one fetch-evaluate-render cycle per request
"""
import time
from typing import Any, Awaitable, Callable, Optional

import anyio
from anyio import to_thread

from gvr_exporter.core.errors import EvalError, ExporterError, FetchError, ScrapeTimeoutError
from gvr_exporter.core.logging_config import LoggingConfig
from gvr_exporter.core.metrics import (resources_fetched, scrape_phase_duration_seconds,
                                       scrapes_total)
from gvr_exporter.core.models import ResourceSelector
from gvr_exporter.services import response_assembler
from gvr_exporter.services.policy_evaluator import CompiledQuery
from gvr_exporter.services.resource_fetcher import ResourceFetcher
from gvr_exporter.services.response_assembler import AssembledResponse

logger = LoggingConfig.get_logger(__name__)

DISCONNECT_POLL_INTERVAL = 0.05

_PHASE_ERRORS = {
    "fetch": FetchError,
    "evaluate": EvalError,
}


class ScrapeService:
    """
    Holds the dependencies shared by every scrape: the fetcher, the compiled
    stub and the selector. All three are read-only after construction, so a
    single instance serves concurrent requests.
    """

    def __init__(
        self,
        fetcher: ResourceFetcher,
        query: CompiledQuery,
        selector: ResourceSelector,
        timeout: float = 30.0,
    ):
        self.fetcher = fetcher
        self.query = query
        self.selector = selector
        self.timeout = timeout

    async def scrape(
        self,
        content_type: Optional[str] = None,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    ) -> Optional[AssembledResponse]:
        """
        Fetch, evaluate and render; upstream failures become a 5xx diagnostic

        Args:
            content_type: the request's Content-Type, selects the framing
            is_disconnected: polled while the cycle runs; once it reports
                True the cycle is cancelled

        Returns:
            The response to send, or None when the client disconnected first
        """
        if is_disconnected is None:
            return await self._scrape(content_type)

        assembled = None
        async with anyio.create_task_group() as tg:
            tg.start_soon(self._watch_disconnect, is_disconnected, tg.cancel_scope)
            assembled = await self._scrape(content_type)
            tg.cancel_scope.cancel()

        if assembled is None:
            scrapes_total.labels(outcome="client_disconnected").inc()
            logger.info("Scrape abandoned, client disconnected", extra={"selector": str(self.selector)})
        return assembled

    async def _watch_disconnect(
        self,
        is_disconnected: Callable[[], Awaitable[bool]],
        cancel_scope: anyio.CancelScope,
    ) -> None:
        while not await is_disconnected():
            await anyio.sleep(DISCONNECT_POLL_INTERVAL)
        cancel_scope.cancel()

    async def _scrape(self, content_type: Optional[str]) -> AssembledResponse:
        # one budget for the whole cycle
        deadline = anyio.current_time() + self.timeout
        try:
            items = await self._run_phase("fetch", deadline, self.fetcher.list, self.selector, self.timeout)
            output, _ = await self._run_phase("evaluate", deadline, self.query.evaluate, items)
        except ExporterError as e:
            scrapes_total.labels(outcome=e.kind).inc()
            logger.error(
                "Scrape failed",
                extra={"selector": str(self.selector), **e.to_dict()},
            )
            return response_assembler.render_error(e)

        scrapes_total.labels(outcome="success").inc()
        resources_fetched.set(len(items))
        logger.debug(
            "Scrape completed",
            extra={"selector": str(self.selector), "items": len(items), "lines": len(output.fragments)},
        )
        return response_assembler.render(output, content_type)

    async def _run_phase(self, phase: str, deadline: float, fn: Callable[..., Any], *args: Any) -> Any:
        """
        Run a blocking phase in a worker thread until the cycle deadline.
        On timeout the request is answered at once and the thread is abandoned.
        """
        start_time = time.perf_counter()
        try:
            with anyio.CancelScope(deadline=deadline):
                return await to_thread.run_sync(fn, *args, abandon_on_cancel=True)
        except ExporterError:
            raise
        except Exception as e:
            raise _PHASE_ERRORS[phase](
                f"{phase} failed: {type(e).__name__}: {e}",
                metadata={"selector": str(self.selector)},
            ) from e
        finally:
            scrape_phase_duration_seconds.labels(phase=phase).observe(time.perf_counter() - start_time)

        # only reached when the deadline cancelled the scope
        raise ScrapeTimeoutError(phase, self.timeout, metadata={"selector": str(self.selector)})
