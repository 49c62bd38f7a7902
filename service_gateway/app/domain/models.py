"""
Domain models shared by the registry resolution layer.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field


T = TypeVar("T")


class RegistryClass(str, Enum):
    """Which upstream registry owns a package."""
    PRIVATE = "private"
    PUBLIC = "public"


@dataclass(frozen=True)
class UpstreamTarget:
    """A fully-formed upstream request target."""
    registry_class: RegistryClass
    scheme: str
    host: str
    path: str
    port: Optional[int] = None

    @property
    def url(self) -> str:
        netloc = self.host if self.port is None else f"{self.host}:{self.port}"
        return f"{self.scheme}://{netloc}{self.path}"


class FetchStatus(str, Enum):
    """Outcome of an upstream fetch or a resolver lookup."""
    FOUND = "found"
    NOT_FOUND = "not_found"
    UPSTREAM_ERROR = "upstream_error"


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Tagged result separating confirmed absence from upstream failure.

    ``value`` is only set when ``status`` is FOUND. ``status_code`` is the
    upstream HTTP status when one was received; network failures leave it
    unset and describe the failure in ``detail``.
    """
    status: FetchStatus
    value: Optional[T] = None
    status_code: Optional[int] = None
    detail: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.status is FetchStatus.FOUND

    @property
    def not_found(self) -> bool:
        return self.status is FetchStatus.NOT_FOUND

    @classmethod
    def ok(cls, value: T, status_code: Optional[int] = 200) -> "FetchResult[T]":
        return cls(FetchStatus.FOUND, value=value, status_code=status_code)

    @classmethod
    def missing(cls, status_code: Optional[int] = None) -> "FetchResult[T]":
        return cls(FetchStatus.NOT_FOUND, status_code=status_code)

    @classmethod
    def failed(cls, detail: str, status_code: Optional[int] = None) -> "FetchResult[T]":
        return cls(FetchStatus.UPSTREAM_ERROR, status_code=status_code, detail=detail)


class VersionsAndTags(BaseModel):
    """Published versions of a package and its dist-tags."""

    versions: List[str]
    tags: Dict[str, str] = Field(default_factory=dict)


PackageInfoDoc = Dict[str, Any]
PackageConfig = Dict[str, Any]
