"""The transport-agnostic description of one request."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urlencode

from restbind.analysis.base import ResponseShape


class BodyKind(str, Enum):
    STREAM = "stream"
    STRING = "string"
    URL_ENCODED = "url_encoded"
    SERIALIZED = "serialized"


@dataclass
class BodyPayload:
    kind: BodyKind
    content: Any
    content_type: str | None = None
    form: list[tuple[str, str]] | None = None  # url_encoded bodies, in order


@dataclass
class RequestDescriptor:
    method: str
    path: str
    method_name: str = ""
    query: list[tuple[str, str]] = field(default_factory=list)
    raw_query: list[str] = field(default_factory=list)
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: BodyPayload | None = None
    cancellation_token: Any = None
    response_shape: ResponseShape = ResponseShape.VOID
    response_type_name: str | None = None
    response_type: Any = None
    allow_any_status_code: bool = False
    properties: dict[str, Any] = field(default_factory=dict)

    def header_values(self, name: str) -> list[str]:
        name = name.lower()
        return [value for key, value in self.headers if key.lower() == name]

    def get_header(self, name: str, default: str | None = None) -> str | None:
        values = self.header_values(name)
        return values[0] if values else default

    def has_header(self, name: str) -> bool:
        return bool(self.header_values(name))

    def query_string(self) -> str:
        parts = [urlencode(self.query)] if self.query else []
        parts.extend(fragment.lstrip("?&") for fragment in self.raw_query if fragment)
        return "&".join(p for p in parts if p)
