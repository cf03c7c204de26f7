"""
Exporter error taxonomy

Startup errors (ConfigError, ClientInitError, CompileError) are fatal and
terminate the process. Per-request errors (FetchError, EvalError,
ScrapeTimeoutError) are turned into a 5xx response by the response assembler.
"""
from typing import Any, Dict, Optional


class ExporterError(Exception):
    """Base class for all exporter errors"""

    kind = "exporter_error"
    status_code = 500

    def __init__(self, message: str, metadata: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.metadata = metadata or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary (used as structured log context)"""
        return {
            "error": self.message,
            "error_kind": self.kind,
            **self.metadata,
        }


class ConfigError(ExporterError):
    """Configuration file is missing, unreadable or invalid"""

    kind = "config_error"


class ClientInitError(ExporterError):
    """Cluster client cannot be built from the resolved kubeconfig"""

    kind = "client_init_error"


class CompileError(ExporterError):
    """Stub script does not compile or does not define the query"""

    kind = "compile_error"


class FetchError(ExporterError):
    """Listing the configured resource collection failed"""

    kind = "fetch_error"
    status_code = 502


class EvalError(ExporterError):
    """Stub evaluation failed at runtime"""

    kind = "eval_error"
    status_code = 500


class ScrapeTimeoutError(ExporterError):
    """A scrape phase did not finish within the scrape timeout"""

    kind = "timeout"
    status_code = 504

    def __init__(self, phase: str, timeout: float, metadata: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"{phase} did not complete within {timeout:g}s",
            metadata={"phase": phase, **(metadata or {})},
        )
        self.phase = phase
        self.timeout = timeout


class WriteError(ExporterError):
    """Sending the response body failed after headers were sent"""

    kind = "write_error"


STARTUP_ERRORS = (ConfigError, ClientInitError, CompileError)
