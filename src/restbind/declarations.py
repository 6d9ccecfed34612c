"""Declarative vocabulary for describing a remote HTTP API as a Python class.

Class and method declarations are decorators; parameter and attribute
declarations are markers placed inside ``typing.Annotated``::

    @base_path("api/v1")
    @header("User-Agent: restbind")
    class UsersApi(Disposable):
        api_key: Annotated[str | None, Header("X-Api-Key")] = None

        @get("users/{user_id}")
        def get_user(self, user_id: Annotated[int, Path()]) -> User: ...

Every decorator and marker only records a ``RawDeclaration``. Nothing is
interpreted here; decoding happens once, during analysis, for both the
runtime and the source backends.
"""

from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field

DECLARATIONS_ATTR = "__restbind_declarations__"


class BodySerializationMethod(str, Enum):
    DEFAULT = "default"
    SERIALIZED = "serialized"
    URL_ENCODED = "url_encoded"


class QuerySerializationMethod(str, Enum):
    TO_STRING = "to_string"
    SERIALIZED = "serialized"


class PathSerializationMethod(str, Enum):
    TO_STRING = "to_string"
    SERIALIZED = "serialized"


SERIALIZATION_ENUMS: dict[str, type[Enum]] = {
    "BodySerializationMethod": BodySerializationMethod,
    "QuerySerializationMethod": QuerySerializationMethod,
    "PathSerializationMethod": PathSerializationMethod,
}


class SourceLocation(BaseModel):
    """Where a declaration or member was written."""

    model_config = ConfigDict(frozen=True)

    qualname: str
    file: str | None = None
    line: int | None = None

    def __str__(self) -> str:
        if self.file and self.line:
            return f"{self.file}:{self.line}"
        if self.file:
            return self.file
        return self.qualname


class RawDeclaration(BaseModel):
    """One declaration exactly as written: its kind plus literal arguments."""

    model_config = ConfigDict(frozen=True)

    kind: str
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = Field(default_factory=dict)
    invalid_reason: str | None = None  # set when a literal could not be read
    location: SourceLocation | None = None


# Decorator name -> (declaration kind, leading arguments). Shared by the
# runtime decorators below and the source backend, which resolves decorator
# names through this table instead of importing anything.
DECORATORS: dict[str, tuple[str, tuple[Any, ...]]] = {
    "get": ("request", ("GET",)),
    "post": ("request", ("POST",)),
    "put": ("request", ("PUT",)),
    "patch": ("request", ("PATCH",)),
    "delete": ("request", ("DELETE",)),
    "head": ("request", ("HEAD",)),
    "options": ("request", ("OPTIONS",)),
    "trace": ("request", ("TRACE",)),
    "request": ("request", ()),
    "header": ("header", ()),
    "base_path": ("base_path", ()),
    "allow_any_status_code": ("allow_any_status_code", ()),
    "serialization_methods": ("serialization_methods", ()),
}

# Marker class name -> declaration kind.
MARKERS: dict[str, str] = {
    "Header": "header",
    "Path": "path",
    "Query": "query",
    "RawQueryString": "raw_query_string",
    "QueryMap": "query_map",
    "Body": "body",
    "HttpRequestMessageProperty": "http_request_message_property",
}


def declarations_of(target: Any) -> list[RawDeclaration]:
    """Return the declarations attached directly to a class or function.

    Reads ``__dict__`` so a subclass never reports its parent's decorators.
    """
    return list(getattr(target, "__dict__", {}).get(DECLARATIONS_ATTR, ()))


def _attach(target: Any, declaration: RawDeclaration) -> Any:
    existing = target.__dict__.get(DECLARATIONS_ATTR, [])
    # Decorators run bottom-up; prepend to keep the written order.
    setattr(target, DECLARATIONS_ATTR, [declaration, *existing])
    return target


def _location_of(target: Any) -> SourceLocation:
    code = getattr(target, "__code__", None)
    return SourceLocation(
        qualname=getattr(target, "__qualname__", repr(target)),
        file=code.co_filename if code else None,
        line=code.co_firstlineno if code else None,
    )


def _declaration_decorator(name: str) -> Callable[..., Callable[[Any], Any]]:
    kind, leading = DECORATORS[name]

    def factory(*args: Any, **kwargs: Any) -> Callable[[Any], Any]:
        def decorator(target: Any) -> Any:
            raw = RawDeclaration(
                kind=kind,
                args=(*leading, *args),
                kwargs=kwargs,
                location=_location_of(target),
            )
            return _attach(target, raw)

        return decorator

    factory.__name__ = name
    factory.__qualname__ = name
    return factory


get = _declaration_decorator("get")
post = _declaration_decorator("post")
put = _declaration_decorator("put")
patch = _declaration_decorator("patch")
delete = _declaration_decorator("delete")
head = _declaration_decorator("head")
options = _declaration_decorator("options")
trace = _declaration_decorator("trace")
request = _declaration_decorator("request")
header = _declaration_decorator("header")
base_path = _declaration_decorator("base_path")
serialization_methods = _declaration_decorator("serialization_methods")

_allow_any_status_code = _declaration_decorator("allow_any_status_code")


def allow_any_status_code(*args: Any, **kwargs: Any) -> Any:
    """Disable the non-2xx-is-failure policy for a class or a method.

    Usable bare (``@allow_any_status_code``) or called
    (``@allow_any_status_code(False)``).
    """
    if len(args) == 1 and not kwargs and callable(args[0]):
        return _allow_any_status_code()(args[0])
    return _allow_any_status_code(*args, **kwargs)


class ParameterMarker:
    """Base for the ``Annotated`` markers; holds the raw declaration."""

    kind: str = ""

    def __init__(self, *args: Any, **kwargs: Any):
        self.declaration = RawDeclaration(kind=self.kind, args=args, kwargs=kwargs)

    def __repr__(self) -> str:
        arguments = [repr(a) for a in self.declaration.args]
        arguments += [f"{k}={v!r}" for k, v in self.declaration.kwargs.items()]
        return f"{type(self).__name__}({', '.join(arguments)})"


class Header(ParameterMarker):
    kind = MARKERS["Header"]


class Path(ParameterMarker):
    kind = MARKERS["Path"]


class Query(ParameterMarker):
    kind = MARKERS["Query"]


class RawQueryString(ParameterMarker):
    kind = MARKERS["RawQueryString"]


class QueryMap(ParameterMarker):
    kind = MARKERS["QueryMap"]


class Body(ParameterMarker):
    kind = MARKERS["Body"]


class HttpRequestMessageProperty(ParameterMarker):
    kind = MARKERS["HttpRequestMessageProperty"]


class Disposable:
    """Inherit from this to give the generated client a ``close()`` method.

    ``close`` is recognized by identity and never treated as a request.
    """

    def close(self) -> None: ...

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
