"""Decoding of raw declarations into typed declaration models.

Both analyzer backends hand over ``RawDeclaration`` objects holding literal
arguments; this module is the single place where those literals are given
meaning, so the backends cannot drift apart.
"""

import inspect
from enum import Enum
from typing import Any, Callable

from restbind.analysis.base import (
    AllowAnyStatusCodeDeclaration,
    BasePathDeclaration,
    BodyDeclaration,
    Declaration,
    HeaderDeclaration,
    HttpRequestMessagePropertyDeclaration,
    PathDeclaration,
    QueryDeclaration,
    QueryMapDeclaration,
    RawQueryStringDeclaration,
    RequestDeclaration,
    Scope,
    SerializationMethodsDeclaration,
)
from restbind.analysis.diagnostics import Diagnostic, DiagnosticCode, error
from restbind.declarations import (
    BodySerializationMethod,
    PathSerializationMethod,
    QuerySerializationMethod,
    RawDeclaration,
)


class DeclarationDecodeError(ValueError):
    """A literal argument has the wrong type or an invalid value."""


def _require_str(value: Any, field: str) -> str:
    if not isinstance(value, str):
        raise DeclarationDecodeError(f"{field} must be a string, got {type(value).__name__}")
    return value


def _optional_str(value: Any, field: str) -> str | None:
    return None if value is None else _require_str(value, field)


def _require_bool(value: Any, field: str) -> bool:
    if not isinstance(value, bool):
        raise DeclarationDecodeError(f"{field} must be a bool, got {type(value).__name__}")
    return value


def _enum(value: Any, enum_cls: type[Enum], field: str) -> Any:
    if value is None or isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value)
        except ValueError:
            if value.upper() in enum_cls.__members__:
                return enum_cls[value.upper()]
    choices = ", ".join(member.value for member in enum_cls)
    raise DeclarationDecodeError(f"{field} must be one of {choices}, got {value!r}")


def _request(method, path=""):
    method = _require_str(method, "method").strip()
    if not method:
        raise DeclarationDecodeError("method must not be empty")
    return RequestDeclaration(method=method.upper(), path=_require_str(path, "path"))


def _header(name, value=None):
    name = _require_str(name, "name")
    if value is None and ":" in name:
        name, value = name.split(":", 1)
        value = value.strip()
    else:
        value = _optional_str(value, "value")
    name = name.strip()
    if not name:
        raise DeclarationDecodeError("header name must not be empty")
    if any(c.isspace() for c in name):
        raise DeclarationDecodeError(f"header name {name!r} must not contain whitespace")
    return HeaderDeclaration(name=name, value=value)


def _base_path(template):
    return BasePathDeclaration(template=_require_str(template, "template"))


def _allow_any_status_code(allow=True):
    return AllowAnyStatusCodeDeclaration(allow=_require_bool(allow, "allow"))


def _serialization_methods(*, body=None, query=None, path=None):
    return SerializationMethodsDeclaration(
        body=_enum(body, BodySerializationMethod, "body"),
        query=_enum(query, QuerySerializationMethod, "query"),
        path=_enum(path, PathSerializationMethod, "path"),
    )


def _path(name=None, serialization=None, url_encode=True):
    return PathDeclaration(
        name=_optional_str(name, "name"),
        serialization=_enum(serialization, PathSerializationMethod, "serialization"),
        url_encode=_require_bool(url_encode, "url_encode"),
    )


def _query(name=None, serialization=None):
    return QueryDeclaration(
        name=_optional_str(name, "name"),
        serialization=_enum(serialization, QuerySerializationMethod, "serialization"),
    )


def _raw_query_string():
    return RawQueryStringDeclaration()


def _query_map(serialization=None):
    return QueryMapDeclaration(serialization=_enum(serialization, QuerySerializationMethod, "serialization"))


def _body(serialization=None):
    return BodyDeclaration(serialization=_enum(serialization, BodySerializationMethod, "serialization"))


def _http_request_message_property(key=None):
    return HttpRequestMessagePropertyDeclaration(key=_optional_str(key, "key"))


_DECODERS: dict[str, tuple[Callable[..., Declaration], frozenset[Scope]]] = {
    "request": (_request, frozenset({Scope.METHOD})),
    "header": (_header, frozenset({Scope.TYPE, Scope.METHOD, Scope.PROPERTY, Scope.PARAMETER})),
    "base_path": (_base_path, frozenset({Scope.TYPE})),
    "allow_any_status_code": (_allow_any_status_code, frozenset({Scope.TYPE, Scope.METHOD})),
    "serialization_methods": (_serialization_methods, frozenset({Scope.TYPE, Scope.METHOD})),
    "path": (_path, frozenset({Scope.PROPERTY, Scope.PARAMETER})),
    "query": (_query, frozenset({Scope.PROPERTY, Scope.PARAMETER})),
    "raw_query_string": (_raw_query_string, frozenset({Scope.PARAMETER})),
    "query_map": (_query_map, frozenset({Scope.PARAMETER})),
    "body": (_body, frozenset({Scope.PARAMETER})),
    "http_request_message_property": (
        _http_request_message_property,
        frozenset({Scope.PROPERTY, Scope.PARAMETER}),
    ),
}


def describe(raw: RawDeclaration) -> str:
    arguments = [repr(a) for a in raw.args] + [f"{k}={v!r}" for k, v in raw.kwargs.items()]
    return f"{raw.kind}({', '.join(arguments)})"


def decode(
    raw: RawDeclaration, scope: Scope, *, member: str | None = None
) -> tuple[Declaration | None, Diagnostic | None]:
    """Decode one raw declaration found at ``scope``.

    Returns the declaration, or None plus a diagnostic when the literal
    cannot be decoded. Never raises for bad input.
    """
    if raw.invalid_reason:
        return None, error(
            DiagnosticCode.MALFORMED_DECLARATION,
            f"{raw.kind} declaration could not be read: {raw.invalid_reason}",
            member=member,
            location=raw.location,
        )

    entry = _DECODERS.get(raw.kind)
    if entry is None:
        return None, error(
            DiagnosticCode.MALFORMED_DECLARATION,
            f"unknown declaration kind {raw.kind!r}",
            member=member,
            location=raw.location,
        )
    decoder, scopes = entry

    if scope not in scopes:
        allowed = ", ".join(sorted(s.value for s in scopes))
        return None, error(
            DiagnosticCode.UNSUPPORTED_DECLARATION_SCOPE,
            f"{describe(raw)} cannot be declared on a {scope.value} (allowed on: {allowed})",
            member=member,
            location=raw.location,
        )

    try:
        bound = inspect.signature(decoder).bind(*raw.args, **raw.kwargs)
    except TypeError as e:
        return None, error(
            DiagnosticCode.MALFORMED_DECLARATION,
            f"{describe(raw)} has invalid arguments: {e}",
            member=member,
            location=raw.location,
        )

    try:
        return decoder(*bound.args, **bound.kwargs), None
    except DeclarationDecodeError as e:
        return None, error(
            DiagnosticCode.MALFORMED_DECLARATION,
            f"{describe(raw)} is malformed: {e}",
            member=member,
            location=raw.location,
        )
