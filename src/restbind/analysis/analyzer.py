"""Backend-independent analysis: symbols in, ``TypeModel`` plus diagnostics out."""

import logging

from restbind.analysis.base import (
    AttributeModel,
    MethodModel,
    ParameterModel,
    PropertyModel,
    Scope,
    TypeModel,
    attribute,
)
from restbind.analysis.decoding import decode, describe
from restbind.analysis.diagnostics import Diagnostic, DiagnosticCode, error
from restbind.analysis.symbols import MethodSymbol, ParameterSymbol, PropertySymbol, TypeSymbol
from restbind.analysis.typenames import classify_response
from restbind.declarations import RawDeclaration

logger = logging.getLogger(__name__)

# Declaration kind -> model field, for members that hold at most one of each.
_PARAMETER_FIELDS = {
    "header": "header",
    "path": "path",
    "query": "query",
    "raw_query_string": "raw_query_string",
    "query_map": "query_map",
    "body": "body",
    "http_request_message_property": "http_request_message_property",
}
_PROPERTY_FIELDS = {
    "header": "header",
    "path": "path",
    "query": "query",
    "http_request_message_property": "http_request_message_property",
}


class TypeAnalyzer:
    """Walks one interface and everything it inherits into a ``TypeModel``.

    Traversal order is the interface itself, then its inherited interfaces
    in MRO order. That order is kept in ``TypeModel.interfaces`` and is the
    order in which type-level headers are layered.
    """

    def __init__(self, symbol: TypeSymbol):
        self.symbol = symbol
        self.diagnostics: list[Diagnostic] = []

    def analyze(self) -> tuple[TypeModel, list[Diagnostic]]:
        logger.debug("Analyzing interface %s", self.symbol.name)
        self.diagnostics = []
        chain = [self.symbol, *self.symbol.bases()]

        headers: list[AttributeModel] = []
        allow_any: list[AttributeModel] = []
        base_path = None
        serialization = None

        for interface in chain:
            found: dict[str, AttributeModel] = {}
            for raw in interface.declarations():
                declaration = self._decode(raw, Scope.TYPE, None)
                if declaration is None:
                    continue
                attr = attribute(declaration, declared_on=interface.name, source=raw.location)
                if declaration.kind == "header":
                    headers.append(attr)
                    continue
                if declaration.kind in found:
                    self._duplicate(raw, None)
                    continue
                found[declaration.kind] = attr
                if declaration.kind == "allow_any_status_code":
                    allow_any.append(attr)
            if base_path is None:
                base_path = found.get("base_path")
            if serialization is None:
                serialization = found.get("serialization_methods")

        seen: set[str] = set()
        properties: list[PropertyModel] = []
        methods: list[MethodModel] = []
        for interface in chain:
            for prop in interface.properties():
                if prop.name not in seen:
                    seen.add(prop.name)
                    properties.append(self._property(prop, interface.name))
            for method in interface.methods():
                if method.name not in seen:
                    seen.add(method.name)
                    methods.append(self._method(method, interface.name))

        model = TypeModel(
            name=self.symbol.name,
            is_accessible=self.symbol.is_accessible,
            interfaces=[interface.name for interface in chain],
            base_path=base_path,
            serialization_methods=serialization,
            header_declarations=headers,
            allow_any_status_code_declarations=allow_any,
            properties=properties,
            methods=methods,
            source=self.symbol.location,
        )
        return model, self.diagnostics

    # -- members --------------------------------------------------------------

    def _property(self, symbol: PropertySymbol, declared_on: str) -> PropertyModel:
        fields = self._single_fields(symbol.declarations, Scope.PROPERTY, symbol.name, _PROPERTY_FIELDS)
        return PropertyModel(
            name=symbol.name,
            type_name=symbol.type_name,
            is_requester=symbol.is_requester,
            has_getter=symbol.has_getter,
            has_setter=symbol.has_setter,
            declared_on=declared_on,
            source=symbol.location,
            **fields,
        )

    def _method(self, symbol: MethodSymbol, declared_on: str) -> MethodModel:
        requests: list[AttributeModel] = []
        headers: list[AttributeModel] = []
        single: dict[str, AttributeModel] = {}

        for raw in symbol.declarations:
            declaration = self._decode(raw, Scope.METHOD, symbol.name)
            if declaration is None:
                continue
            attr = attribute(declaration, source=raw.location)
            if declaration.kind == "request":
                requests.append(attr)
            elif declaration.kind == "header":
                headers.append(attr)
            elif declaration.kind in single:
                self._duplicate(raw, symbol.name)
            else:
                single[declaration.kind] = attr

        shape, response_type = classify_response(symbol.return_type_name)
        return MethodModel(
            name=symbol.name,
            declared_on=declared_on,
            request_declarations=requests,
            allow_any_status_code=single.get("allow_any_status_code"),
            serialization_methods=single.get("serialization_methods"),
            header_declarations=headers,
            parameters=[self._parameter(p, symbol.name) for p in symbol.parameters],
            is_dispose_method=symbol.is_dispose,
            response_shape=shape,
            response_type_name=response_type,
            source=symbol.location,
        )

    def _parameter(self, symbol: ParameterSymbol, method: str) -> ParameterModel:
        fields = self._single_fields(symbol.declarations, Scope.PARAMETER, method, _PARAMETER_FIELDS)
        return ParameterModel(
            name=symbol.name,
            type_name=symbol.type_name,
            is_cancellation_token=symbol.is_cancellation_token,
            is_variadic=symbol.is_variadic,
            source=symbol.location,
            **fields,
        )

    # -- helpers --------------------------------------------------------------

    def _single_fields(
        self,
        declarations: list[RawDeclaration],
        scope: Scope,
        member: str,
        mapping: dict[str, str],
    ) -> dict[str, AttributeModel]:
        fields: dict[str, AttributeModel] = {}
        for raw in declarations:
            declaration = self._decode(raw, scope, member)
            if declaration is None:
                continue
            field = mapping[declaration.kind]
            if field in fields:
                self._duplicate(raw, member)
                continue
            fields[field] = attribute(declaration, source=raw.location)
        return fields

    def _decode(self, raw: RawDeclaration, scope: Scope, member: str | None):
        declaration, diagnostic = decode(raw, scope, member=member)
        if diagnostic is not None:
            self.diagnostics.append(diagnostic)
        return declaration

    def _duplicate(self, raw: RawDeclaration, member: str | None) -> None:
        self.diagnostics.append(
            error(
                DiagnosticCode.DUPLICATE_DECLARATION,
                f"{describe(raw)} is declared more than once",
                member=member,
                location=raw.location,
            )
        )
