"""
Data model shared by the scrape pipeline
"""
from typing import Any, Dict, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

# One fetched cluster resource, as returned by the API (JSON-like tree)
ResourceItem = Dict[str, Any]

DEFAULT_QUERY = "printer"


class ResourceSelector(BaseModel):
    """Group/version/resource triple naming the collection to list"""

    model_config = ConfigDict(frozen=True)

    group: str = Field(default="", description="API group, empty for the core group")
    version: str = Field(..., description="API version")
    resource: str = Field(..., description="Plural resource name, e.g. deployments")

    @field_validator("group", mode="before")
    @classmethod
    def none_group_is_core(cls, v):
        """`group:` with no value in YAML means the core group"""
        return "" if v is None else v

    @field_validator("version", "resource")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    @property
    def collection_path(self) -> str:
        """REST path listing this collection across all namespaces"""
        if self.group:
            return f"/apis/{self.group}/{self.version}/{self.resource}"
        return f"/api/{self.version}/{self.resource}"

    def __str__(self) -> str:
        return f"{self.api_version}/{self.resource}"


class PolicyModule(BaseModel):
    """Stub source plus the name of the query evaluated on every scrape"""

    model_config = ConfigDict(frozen=True)

    source: str
    query: str = DEFAULT_QUERY
    name: str = "stub"


class EvaluationOutput(BaseModel):
    """Text fragments emitted by print() during one evaluation, in order"""

    model_config = ConfigDict(frozen=True)

    fragments: Tuple[str, ...] = ()

    @property
    def text(self) -> str:
        return "".join(self.fragments)

    @classmethod
    def from_buffer(cls, buffer: List[str]) -> "EvaluationOutput":
        return cls(fragments=tuple(buffer))
