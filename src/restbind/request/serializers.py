"""Pluggable payload codec. The default one is pydantic's JSON support."""

import functools
from enum import Enum
from typing import Any

from pydantic import BaseModel, TypeAdapter
from pydantic_core import to_json

JSON_CONTENT_TYPE = "application/json; charset=utf-8"


@functools.lru_cache(maxsize=256)
def _adapter(response_type: Any) -> TypeAdapter:
    return TypeAdapter(response_type)


class Serializers:
    """Turns objects into wire text and response text back into objects.

    Subclass and override any method to change a single channel; the
    assembler only calls ``serialize_body``, ``serialize_query`` and
    ``serialize_path``, the requester only ``deserialize``.
    """

    content_type = JSON_CONTENT_TYPE

    def serialize_body(self, value: Any) -> tuple[str, str]:
        if isinstance(value, BaseModel):
            return value.model_dump_json(by_alias=True), self.content_type
        return to_json(value).decode("utf-8"), self.content_type

    def serialize_query(self, value: Any) -> str:
        return to_json(value).decode("utf-8")

    def serialize_path(self, value: Any) -> str:
        return to_json(value).decode("utf-8")

    def to_string(self, value: Any) -> str:
        """Plain string form used by the ``to_string`` serialization method."""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, Enum):
            return str(value.value)
        return str(value)

    def deserialize(self, content: str | bytes, response_type: Any) -> Any:
        if not content:
            return None
        if response_type is None:
            response_type = Any
        try:
            adapter = _adapter(response_type)
        except TypeError:
            # unhashable annotations cannot be cached
            adapter = TypeAdapter(response_type)
        return adapter.validate_json(content)


DEFAULT_SERIALIZERS = Serializers()
