"""
Logging configuration with structured JSON logging and per-request context
"""
import json
import logging
import re
import sys
from contextvars import ContextVar
from typing import Any, Dict, Optional

from gvr_exporter.core.config import get_settings

# Context variables for request context
request_context: ContextVar[Dict[str, Any]] = ContextVar('request_context', default={})

_RESERVED_ATTRS = frozenset({
    'name', 'msg', 'args', 'created', 'filename', 'funcName', 'levelname',
    'levelno', 'lineno', 'module', 'msecs', 'message', 'pathname', 'process',
    'processName', 'relativeCreated', 'thread', 'threadName', 'exc_info',
    'exc_text', 'stack_info', 'taskName',
})


class SensitiveDataFilter(logging.Filter):
    """
    Mask credentials that cluster client errors may carry.

    Only the message, its args and the fields in MASKED_FIELDS are touched.
    Secrets are matched in their header and kubeconfig forms (`Bearer x`,
    `token: x`), so `key=value` label tokens in stub output pass unchanged.
    """

    SENSITIVE_PATTERNS = [
        (r'Bearer\s+([^\s"\']+)', r'Bearer ***'),
        (r'Authorization:\s*([^\s"\']+)', r'Authorization: ***'),
        (r'(["\']?)(token|password|client-key-data)\1\s*:\s*["\']?[^"\'\s,}]+', r'\2: ***'),
    ]

    MASKED_FIELDS = ("error",)

    def __init__(self, enabled: bool = True):
        super().__init__()
        self.enabled = enabled

    def _mask(self, text: str) -> str:
        for pattern, replacement in self.SENSITIVE_PATTERNS:
            text = re.sub(pattern, replacement, text, flags=re.IGNORECASE)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.enabled:
            return True

        if isinstance(record.msg, str):
            record.msg = self._mask(record.msg)
        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                self._mask(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        for key in self.MASKED_FIELDS:
            value = getattr(record, key, None)
            if isinstance(value, str):
                setattr(record, key, self._mask(value))
        return True


class ContextualFormatter(logging.Formatter):
    """JSON formatter merging the request context and `extra=` fields"""

    def format(self, record: logging.LogRecord) -> str:
        log_dict = {
            'timestamp': self.formatTime(record, self.datefmt),
            'level': record.levelname,
            'logger': record.name,
            'function': record.funcName,
            'line': record.lineno,
            'message': record.getMessage(),
        }

        ctx = request_context.get({})
        if ctx:
            log_dict.update(ctx)

        if record.exc_info:
            log_dict['exception'] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in log_dict:
                continue
            try:
                json.dumps(value)
                log_dict[key] = value
            except (TypeError, ValueError):
                log_dict[key] = str(value)

        return json.dumps(log_dict, ensure_ascii=False, default=str)


class LoggingConfig:
    """Centralized logging configuration"""

    _configured = False

    @classmethod
    def configure(
        cls,
        level: Optional[str] = None,
        log_format: Optional[str] = None,
        force: bool = False,
    ):
        """Configure root logging once; CLI flags win over settings"""
        if cls._configured and not force:
            return

        settings = get_settings()
        level = (level or settings.log_level).upper()
        log_format = (log_format or settings.log_format).lower()

        if log_format == "json":
            formatter: logging.Formatter = ContextualFormatter(datefmt='%Y-%m-%d %H:%M:%S')
        else:
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)
        handler.addFilter(SensitiveDataFilter(enabled=not settings.log_sensitive_data))

        logging.basicConfig(
            level=getattr(logging, level, logging.INFO),
            handlers=[handler],
            force=True
        )

        # Module-specific levels
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("kubernetes").setLevel(logging.WARNING)

        cls._configured = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get a logger for a module"""
        return logging.getLogger(name)

    @classmethod
    def set_context(cls, **kwargs):
        """Set context variables for logging"""
        ctx = request_context.get({}).copy()
        ctx.update(kwargs)
        request_context.set(ctx)

    @classmethod
    def get_context(cls) -> Dict[str, Any]:
        return request_context.get({}).copy()

    @classmethod
    def clear_context(cls):
        """Clear context variables"""
        request_context.set({})
