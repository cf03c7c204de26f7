"""
ASGI middleware for request context and logging
"""
import time
import uuid

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from gvr_exporter.core.errors import WriteError
from gvr_exporter.core.logging_config import LoggingConfig

logger = LoggingConfig.get_logger(__name__)


class LoggingContextMiddleware:
    """
    Middleware to add request context to logs.

    It wraps `send` directly, so it sees the real write to the client: a
    failed write (peer gone) is logged as a WriteError and later messages of
    that response are dropped.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        request_id = headers.get("x-request-id") or str(uuid.uuid4())
        client = scope.get("client")

        LoggingConfig.set_context(
            request_id=request_id,
            method=scope["method"],
            path=scope["path"],
            client_host=client[0] if client else None,
            content_type=headers.get("content-type"),
        )

        start_time = time.time()
        status_code = None
        write_failed = False
        logger.debug("Request started")

        async def send_with_context(message: Message) -> None:
            nonlocal status_code, write_failed
            if message["type"] == "http.response.start":
                status_code = message["status"]
                MutableHeaders(scope=message)["X-Request-ID"] = request_id
            if write_failed:
                return
            try:
                await send(message)
            except OSError as e:
                write_failed = True
                error = WriteError(
                    f"failed to write response: {e}",
                    metadata={"status_code": status_code},
                )
                logger.error("Response write failed", extra=error.to_dict())

        try:
            await self.app(scope, receive, send_with_context)

        except Exception as e:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.error(
                "Request failed",
                exc_info=True,
                extra={
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "duration_ms": duration_ms,
                }
            )
            raise

        else:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.info(
                "Request completed",
                extra={
                    "status_code": status_code,
                    "duration_ms": duration_ms,
                    "write_failed": write_failed,
                }
            )

        finally:
            LoggingConfig.clear_context()
