"""
Response assembler: frames evaluation output as an exposition payload
"""
from dataclasses import dataclass
from typing import Optional

from prometheus_client.exposition import CONTENT_TYPE_LATEST as TEXT_CONTENT_TYPE
from prometheus_client.openmetrics.exposition import \
    CONTENT_TYPE_LATEST as OPENMETRICS_CONTENT_TYPE

from gvr_exporter.core.errors import ExporterError
from gvr_exporter.core.models import EvaluationOutput

OPENMETRICS_MEDIA_TYPE = "application/openmetrics-text"
EOF_MARKER = "# EOF\n"
ERROR_CONTENT_TYPE = "text/plain; charset=utf-8"


@dataclass(frozen=True)
class AssembledResponse:
    body: str
    media_type: str
    status_code: int = 200


def wants_openmetrics(content_type: Optional[str]) -> bool:
    """True only when the request explicitly declares the OpenMetrics media type"""
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == OPENMETRICS_MEDIA_TYPE


def render(output: EvaluationOutput, content_type: Optional[str]) -> AssembledResponse:
    """Body is the printed text; OpenMetrics requests also get the terminal # EOF line"""
    body = output.text
    if not wants_openmetrics(content_type):
        return AssembledResponse(body=body, media_type=TEXT_CONTENT_TYPE)

    if body and not body.endswith("\n"):
        body += "\n"
    return AssembledResponse(body=body + EOF_MARKER, media_type=OPENMETRICS_CONTENT_TYPE)


def render_error(error: ExporterError) -> AssembledResponse:
    """Short plain-text diagnostic with the error's 5xx status, never an EOF marker"""
    return AssembledResponse(
        body=f"{error.kind}: {error.message}\n",
        media_type=ERROR_CONTENT_TYPE,
        status_code=error.status_code,
    )
