"""Turns one method call plus its arguments into a ``RequestDescriptor``.

Everything that depends only on the model is worked out once, when the
assembler is built. ``assemble()`` then only looks at argument values: it
performs no I/O and keeps no state between calls.
"""

import copy
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, urlencode

from restbind.analysis.base import MethodModel, ParameterRole, PropertyModel, TypeModel
from restbind.analysis.resolution import (
    PLACEHOLDER,
    effective_template,
    message_property_key,
    parameter_key,
    property_key,
    resolve_allow_any_status_code,
    resolve_serialization,
)
from restbind.analysis.typenames import STREAM_TYPE_NAMES, STRING_TYPE_NAME, strip_optional
from restbind.declarations import (
    BodySerializationMethod,
    PathSerializationMethod,
    QuerySerializationMethod,
)
from restbind.errors import InvalidArgumentError
from restbind.request.descriptor import BodyKind, BodyPayload, RequestDescriptor
from restbind.request.serializers import DEFAULT_SERIALIZERS, Serializers

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"

Header = tuple[str, str | None]  # None value: removes the key


def body_kind(type_model: TypeModel, method: MethodModel, parameter) -> BodyKind:
    declared = parameter.body.declaration.serialization if parameter.body else None
    serialization = resolve_serialization(type_model, method, "body", declared)
    if serialization == BodySerializationMethod.URL_ENCODED:
        return BodyKind.URL_ENCODED
    if serialization == BodySerializationMethod.SERIALIZED:
        return BodyKind.SERIALIZED
    type_name = strip_optional(parameter.type_name)
    if type_name in STREAM_TYPE_NAMES:
        return BodyKind.STREAM
    if type_name == STRING_TYPE_NAME:
        return BodyKind.STRING
    return BodyKind.SERIALIZED


def _is_multi(value: Any) -> bool:
    return isinstance(value, (Sequence, set, frozenset)) and not isinstance(value, (str, bytes, bytearray))


def _apply_layer(current: list[Header], layer: list[Header]) -> list[Header]:
    """A layer replaces every lower-layer entry for the keys it mentions."""
    touched = {name.lower() for name, _ in layer}
    kept = [(name, value) for name, value in current if name.lower() not in touched]
    return kept + [(name, value) for name, value in layer if value is not None]


@dataclass(frozen=True)
class _Binding:
    name: str  # parameter or attribute name
    role: ParameterRole
    key: str
    serialization: Any = None
    url_encode: bool = True
    default: str | None = None  # attribute headers only


class RequestAssembler:
    def __init__(
        self,
        type_model: TypeModel,
        method: MethodModel,
        *,
        properties: list[PropertyModel] | None = None,
        serializers: Serializers | None = None,
        response_type: Any = None,
    ):
        if method.request is None:
            raise ValueError(f"{method.name} has no request declaration")
        self.type_model = type_model
        self.method = method
        self.serializers = serializers or DEFAULT_SERIALIZERS
        self.response_type = response_type

        self.http_method = method.request.declaration.method
        self.template = effective_template(type_model, method)
        self.allow_any_status_code = resolve_allow_any_status_code(type_model, method)
        self.type_headers: list[Header] = [
            (attr.declaration.name, attr.declaration.value) for attr in type_model.header_declarations
        ]
        self.method_headers: list[Header] = [
            (attr.declaration.name, attr.declaration.value) for attr in method.header_declarations
        ]

        self.parameters = [self._bind_parameter(p) for p in method.parameters]
        props = type_model.properties if properties is None else properties
        self.properties = [b for b in (self._bind_property(p) for p in props) if b is not None]

        self.body_kind = None
        for parameter in method.parameters:
            if parameter.body is not None:
                self.body_kind = body_kind(type_model, method, parameter)
                break

    def with_serializers(self, serializers: Serializers) -> "RequestAssembler":
        """A copy that encodes bodies, queries and paths with ``serializers``."""
        clone = copy.copy(self)
        clone.serializers = serializers
        return clone

    def __repr__(self) -> str:
        return f"RequestAssembler({self.type_model.name}.{self.method.name}: {self.http_method} {self.template!r})"

    # -- bind time ------------------------------------------------------------

    def _serialization(self, channel: str, declared):
        return resolve_serialization(self.type_model, self.method, channel, declared)

    def _bind_parameter(self, parameter) -> _Binding:
        role = parameter.role
        key = parameter_key(parameter)
        if role == ParameterRole.PATH:
            declaration = parameter.path.declaration
            return _Binding(
                parameter.name,
                role,
                key,
                self._serialization("path", declaration.serialization),
                declaration.url_encode,
            )
        if role == ParameterRole.QUERY:
            declared = parameter.query.declaration.serialization if parameter.query else None
            return _Binding(parameter.name, role, key, self._serialization("query", declared))
        if role == ParameterRole.QUERY_MAP:
            declared = parameter.query_map.declaration.serialization
            return _Binding(parameter.name, role, key, self._serialization("query", declared))
        if role == ParameterRole.HTTP_REQUEST_MESSAGE_PROPERTY:
            return _Binding(parameter.name, role, message_property_key(parameter))
        return _Binding(parameter.name, role, key)

    def _bind_property(self, prop: PropertyModel) -> _Binding | None:
        if prop.is_requester:
            return None
        if prop.header is not None:
            return _Binding(prop.name, ParameterRole.HEADER, property_key(prop), default=prop.header.declaration.value)
        if prop.path is not None:
            declaration = prop.path.declaration
            return _Binding(
                prop.name,
                ParameterRole.PATH,
                property_key(prop),
                self._serialization("path", declaration.serialization),
                declaration.url_encode,
            )
        if prop.query is not None:
            declared = prop.query.declaration.serialization
            return _Binding(prop.name, ParameterRole.QUERY, property_key(prop), self._serialization("query", declared))
        if prop.http_request_message_property is not None:
            return _Binding(prop.name, ParameterRole.HTTP_REQUEST_MESSAGE_PROPERTY, message_property_key(prop))
        return None

    # -- call time ------------------------------------------------------------

    def assemble(
        self, arguments: Mapping[str, Any], property_values: Mapping[str, Any] | None = None
    ) -> RequestDescriptor:
        property_values = property_values or {}

        def arg(binding: _Binding) -> Any:
            return arguments.get(binding.name)

        def prop(binding: _Binding) -> Any:
            return property_values.get(binding.name)

        descriptor = RequestDescriptor(
            method=self.http_method,
            method_name=self.method.name,
            path=self._path(arg, prop),
            response_shape=self.method.response_shape,
            response_type_name=self.method.response_type_name,
            response_type=self.response_type,
            allow_any_status_code=self.allow_any_status_code,
        )

        for binding in self.parameters:
            value = arg(binding)
            if binding.role == ParameterRole.QUERY:
                descriptor.query.extend(self._query_pairs(binding.key, value, binding.serialization))
            elif binding.role == ParameterRole.QUERY_MAP:
                descriptor.query.extend(self._query_map_pairs(binding, value))
            elif binding.role == ParameterRole.RAW_QUERY_STRING:
                if value is not None:
                    descriptor.raw_query.append(str(value))
            elif binding.role == ParameterRole.BODY:
                descriptor.body = self._body(binding, value)
            elif binding.role == ParameterRole.CANCELLATION:
                descriptor.cancellation_token = value

        for binding in self.properties:
            if binding.role == ParameterRole.QUERY:
                descriptor.query.extend(self._query_pairs(binding.key, prop(binding), binding.serialization))

        descriptor.headers = self._headers(arg, prop)

        for binding in self.properties:
            if binding.role == ParameterRole.HTTP_REQUEST_MESSAGE_PROPERTY:
                descriptor.properties[binding.key] = prop(binding)
        for binding in self.parameters:
            if binding.role == ParameterRole.HTTP_REQUEST_MESSAGE_PROPERTY:
                descriptor.properties[binding.key] = arg(binding)

        return descriptor

    def _path(self, arg, prop) -> str:
        values: dict[str, str] = {}
        for binding in self.properties:
            if binding.role == ParameterRole.PATH:
                values[binding.key.lower()] = self._path_value(binding, prop(binding))
        for binding in self.parameters:
            if binding.role == ParameterRole.PATH:
                values[binding.key.lower()] = self._path_value(binding, arg(binding))

        def substitute(match) -> str:
            return values.get(match.group(1).lower(), match.group(0))

        return PLACEHOLDER.sub(substitute, self.template)

    def _path_value(self, binding: _Binding, value: Any) -> str:
        if value is None:
            text = ""
        elif binding.serialization == PathSerializationMethod.SERIALIZED:
            text = self.serializers.serialize_path(value)
        else:
            text = self.serializers.to_string(value)
        return quote(text, safe="") if binding.url_encode else text

    def _query_pairs(self, key: str, value: Any, serialization) -> list[tuple[str, str]]:
        if value is None:
            return []
        items = list(value) if _is_multi(value) else [value]
        if serialization == QuerySerializationMethod.SERIALIZED:
            return [(key, self.serializers.serialize_query(item)) for item in items if item is not None]
        return [(key, self.serializers.to_string(item)) for item in items if item is not None]

    def _query_map_pairs(self, binding: _Binding, value: Any) -> list[tuple[str, str]]:
        if value is None:
            return []
        if not isinstance(value, Mapping):
            raise InvalidArgumentError(
                f"query map {binding.name} of {self.method.name} must be a mapping, got {type(value).__name__}"
            )
        pairs = []
        for key, item in value.items():
            pairs.extend(self._query_pairs(str(key), item, binding.serialization))
        return pairs

    def _headers(self, arg, prop) -> list[tuple[str, str]]:
        property_layer: list[Header] = []
        for binding in self.properties:
            if binding.role != ParameterRole.HEADER:
                continue
            value = prop(binding)
            if value is None:
                value = binding.default
            if value is not None:
                property_layer.extend(self._header_entries(binding.key, value))

        parameter_layer: list[Header] = []
        for binding in self.parameters:
            if binding.role == ParameterRole.HEADER:
                parameter_layer.extend(self._header_entries(binding.key, arg(binding)))

        headers: list[Header] = []
        for layer in (self.type_headers, property_layer, self.method_headers, parameter_layer):
            headers = _apply_layer(headers, layer)
        return headers

    def _header_entries(self, name: str, value: Any) -> list[Header]:
        if value is None:
            return [(name, None)]
        if _is_multi(value):
            return [(name, self.serializers.to_string(item)) for item in value if item is not None] or [(name, None)]
        return [(name, self.serializers.to_string(value))]

    def _body(self, binding: _Binding, value: Any) -> BodyPayload | None:
        if value is None:
            return None
        kind = self.body_kind
        if kind == BodyKind.URL_ENCODED:
            if not isinstance(value, Mapping):
                raise InvalidArgumentError(
                    f"url-encoded body {binding.name} of {self.method.name} must be a mapping, "
                    f"got {type(value).__name__}"
                )
            form = []
            for key, item in value.items():
                items = list(item) if _is_multi(item) else [item]
                form.extend((str(key), self.serializers.to_string(i)) for i in items if i is not None)
            return BodyPayload(kind, urlencode(form), FORM_CONTENT_TYPE, form)
        if kind == BodyKind.STREAM:
            return BodyPayload(kind, value)
        if kind == BodyKind.STRING:
            return BodyPayload(kind, value, TEXT_CONTENT_TYPE)
        content, content_type = self.serializers.serialize_body(value)
        return BodyPayload(BodyKind.SERIALIZED, content, content_type)


def assemble(
    type_model: TypeModel,
    method: MethodModel,
    arguments: Mapping[str, Any],
    property_values: Mapping[str, Any] | None = None,
    **options: Any,
) -> RequestDescriptor:
    """One-shot form of ``RequestAssembler(...).assemble(...)``."""
    return RequestAssembler(type_model, method, **options).assemble(arguments, property_values)
