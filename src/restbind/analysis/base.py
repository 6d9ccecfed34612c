"""Normalized model of an interface declaration.

Both analyzer backends (runtime classes and Python source) convert their
input into these models for the validator, the assembler and the generation
back-ends. Source locations are excluded from dumps: two models are the same
when their ``model_dump()`` is the same.
"""

from enum import Enum
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from restbind.declarations import (
    BodySerializationMethod,
    PathSerializationMethod,
    QuerySerializationMethod,
    SourceLocation,
)


class Scope(str, Enum):
    TYPE = "type"
    METHOD = "method"
    PROPERTY = "property"
    PARAMETER = "parameter"


class ResponseShape(str, Enum):
    VOID = "void"
    RAW_STRING = "raw_string"
    RAW_RESPONSE = "raw_response"
    DESERIALIZE = "deserialize"
    DESERIALIZE_WITH_METADATA = "deserialize_with_metadata"


class ParameterRole(str, Enum):
    QUERY = "query"
    PATH = "path"
    HEADER = "header"
    RAW_QUERY_STRING = "raw_query_string"
    QUERY_MAP = "query_map"
    BODY = "body"
    CANCELLATION = "cancellation"
    HTTP_REQUEST_MESSAGE_PROPERTY = "http_request_message_property"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# -- decoded declarations -----------------------------------------------------


class RequestDeclaration(_Frozen):
    kind: Literal["request"] = "request"
    method: str
    path: str = ""


class HeaderDeclaration(_Frozen):
    kind: Literal["header"] = "header"
    name: str
    value: str | None = None  # None: removal (or "no default" on attributes)


class BasePathDeclaration(_Frozen):
    kind: Literal["base_path"] = "base_path"
    template: str


class AllowAnyStatusCodeDeclaration(_Frozen):
    kind: Literal["allow_any_status_code"] = "allow_any_status_code"
    allow: bool = True


class SerializationMethodsDeclaration(_Frozen):
    kind: Literal["serialization_methods"] = "serialization_methods"
    body: BodySerializationMethod | None = None
    query: QuerySerializationMethod | None = None
    path: PathSerializationMethod | None = None


class PathDeclaration(_Frozen):
    kind: Literal["path"] = "path"
    name: str | None = None
    serialization: PathSerializationMethod | None = None
    url_encode: bool = True


class QueryDeclaration(_Frozen):
    kind: Literal["query"] = "query"
    name: str | None = None
    serialization: QuerySerializationMethod | None = None


class RawQueryStringDeclaration(_Frozen):
    kind: Literal["raw_query_string"] = "raw_query_string"


class QueryMapDeclaration(_Frozen):
    kind: Literal["query_map"] = "query_map"
    serialization: QuerySerializationMethod | None = None


class BodyDeclaration(_Frozen):
    kind: Literal["body"] = "body"
    serialization: BodySerializationMethod | None = None


class HttpRequestMessagePropertyDeclaration(_Frozen):
    kind: Literal["http_request_message_property"] = "http_request_message_property"
    key: str | None = None


Declaration = (
    RequestDeclaration
    | HeaderDeclaration
    | BasePathDeclaration
    | AllowAnyStatusCodeDeclaration
    | SerializationMethodsDeclaration
    | PathDeclaration
    | QueryDeclaration
    | RawQueryStringDeclaration
    | QueryMapDeclaration
    | BodyDeclaration
    | HttpRequestMessagePropertyDeclaration
)

T = TypeVar("T")


class AttributeModel(_Frozen, Generic[T]):
    """A decoded declaration plus where it came from."""

    declaration: T
    declared_on: str | None = None  # declaring interface, for type scope
    source: SourceLocation | None = Field(default=None, exclude=True)


# -- members ------------------------------------------------------------------


class ParameterModel(_Frozen):
    name: str
    type_name: str | None = None
    header: AttributeModel[HeaderDeclaration] | None = None
    path: AttributeModel[PathDeclaration] | None = None
    query: AttributeModel[QueryDeclaration] | None = None
    raw_query_string: AttributeModel[RawQueryStringDeclaration] | None = None
    query_map: AttributeModel[QueryMapDeclaration] | None = None
    body: AttributeModel[BodyDeclaration] | None = None
    http_request_message_property: AttributeModel[HttpRequestMessagePropertyDeclaration] | None = None
    is_cancellation_token: bool = False
    is_variadic: bool = False
    source: SourceLocation | None = Field(default=None, exclude=True)

    def bindings(self) -> list[tuple[ParameterRole, AttributeModel]]:
        """All binding declarations attached to this parameter, in role order."""
        candidates = [
            (ParameterRole.BODY, self.body),
            (ParameterRole.PATH, self.path),
            (ParameterRole.QUERY, self.query),
            (ParameterRole.HEADER, self.header),
            (ParameterRole.RAW_QUERY_STRING, self.raw_query_string),
            (ParameterRole.QUERY_MAP, self.query_map),
            (ParameterRole.HTTP_REQUEST_MESSAGE_PROPERTY, self.http_request_message_property),
        ]
        return [(role, attr) for role, attr in candidates if attr is not None]

    @property
    def role(self) -> ParameterRole:
        if self.is_cancellation_token:
            return ParameterRole.CANCELLATION
        bindings = self.bindings()
        if bindings:
            return bindings[0][0]
        return ParameterRole.QUERY


class PropertyModel(_Frozen):
    name: str
    type_name: str | None = None
    header: AttributeModel[HeaderDeclaration] | None = None
    path: AttributeModel[PathDeclaration] | None = None
    query: AttributeModel[QueryDeclaration] | None = None
    http_request_message_property: AttributeModel[HttpRequestMessagePropertyDeclaration] | None = None
    is_requester: bool = False
    has_getter: bool = True
    has_setter: bool = True
    declared_on: str | None = None
    source: SourceLocation | None = Field(default=None, exclude=True)

    def bindings(self) -> list[AttributeModel]:
        return [
            attr
            for attr in (self.header, self.path, self.query, self.http_request_message_property)
            if attr is not None
        ]


class MethodModel(_Frozen):
    name: str
    declared_on: str | None = None
    request_declarations: list[AttributeModel[RequestDeclaration]] = []
    allow_any_status_code: AttributeModel[AllowAnyStatusCodeDeclaration] | None = None
    serialization_methods: AttributeModel[SerializationMethodsDeclaration] | None = None
    header_declarations: list[AttributeModel[HeaderDeclaration]] = []
    parameters: list[ParameterModel] = []
    is_dispose_method: bool = False
    response_shape: ResponseShape = ResponseShape.VOID
    response_type_name: str | None = None
    source: SourceLocation | None = Field(default=None, exclude=True)

    @property
    def request(self) -> AttributeModel[RequestDeclaration] | None:
        return self.request_declarations[0] if self.request_declarations else None


class TypeModel(_Frozen):
    """One analyzed interface, its inherited interfaces folded in.

    ``interfaces`` is the traversal order (the interface itself first); the
    type-scoped lists and the members follow it.
    """

    name: str
    is_accessible: bool = True
    interfaces: list[str] = []
    base_path: AttributeModel[BasePathDeclaration] | None = None
    serialization_methods: AttributeModel[SerializationMethodsDeclaration] | None = None
    header_declarations: list[AttributeModel[HeaderDeclaration]] = []
    allow_any_status_code_declarations: list[AttributeModel[AllowAnyStatusCodeDeclaration]] = []
    properties: list[PropertyModel] = []
    methods: list[MethodModel] = []
    source: SourceLocation | None = Field(default=None, exclude=True)

    def method(self, name: str) -> MethodModel:
        for method in self.methods:
            if method.name == name:
                return method
        raise KeyError(name)

    def allow_any_status_code_for(self, interface: str) -> AllowAnyStatusCodeDeclaration | None:
        for attr in self.allow_any_status_code_declarations:
            if attr.declared_on == interface:
                return attr.declaration
        return None


def attribute(declaration, **fields) -> AttributeModel:
    """Wrap a decoded declaration in ``AttributeModel`` parametrized by its type."""
    return AttributeModel[type(declaration)](declaration=declaration, **fields)
