"""Consistency checks over an analyzed ``TypeModel``.

Type-level fatal findings reject the whole interface. Member-level fatal
findings only reject that member, listed in ``failed_members``, so one bad
method does not take down the rest of the API surface.
"""

import logging
from collections import Counter
from collections.abc import Collection

from pydantic import BaseModel, ConfigDict

from restbind.analysis.analyzer import TypeAnalyzer
from restbind.analysis.base import MethodModel, ParameterRole, PropertyModel, TypeModel
from restbind.analysis.diagnostics import Diagnostic, DiagnosticCode, error, info
from restbind.analysis.reflection import ReflectionTypeSymbol
from restbind.analysis.resolution import (
    effective_template,
    message_property_key,
    parameter_key,
    placeholders,
    property_key,
)

logger = logging.getLogger(__name__)


class AnalysisResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    type_model: TypeModel | None
    diagnostics: list[Diagnostic] = []
    failed_members: frozenset[str] = frozenset()

    @property
    def fatal(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.fatal]

    @property
    def is_valid(self) -> bool:
        return self.type_model is not None

    def failed(self, member: str) -> bool:
        return member in self.failed_members

    def diagnostics_for(self, member: str) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.member == member]


def validate(type_model: TypeModel, diagnostics: list[Diagnostic] | None = None) -> AnalysisResult:
    """Run every check and fold the analyzer's own diagnostics in."""
    found = list(diagnostics or [])

    if not type_model.is_accessible:
        found.append(
            error(
                DiagnosticCode.INACCESSIBLE_INTERFACE,
                f"{type_model.name} is not accessible; no enclosing name may start with an underscore",
                location=type_model.source,
            )
        )

    found.extend(_check_properties(type_model))
    property_names = {prop.name for prop in type_model.properties}
    failed_properties = {d.member for d in found if d.fatal and d.member in property_names}
    for method in type_model.methods:
        if method.is_dispose_method:
            continue
        found.extend(_check_method(type_model, method, failed_properties))

    failed = frozenset(d.member for d in found if d.fatal and d.member is not None)
    type_level = [d for d in found if d.fatal and d.is_type_level]
    if type_level:
        logger.debug("Rejected interface %s: %d type-level diagnostics", type_model.name, len(type_level))
    return AnalysisResult(
        type_model=None if type_level else type_model,
        diagnostics=found,
        failed_members=failed,
    )


def analyze_interface(cls: type) -> AnalysisResult:
    """Runtime backend plus validation for one interface class."""
    model, diagnostics = TypeAnalyzer(ReflectionTypeSymbol(cls)).analyze()
    return validate(model, diagnostics)


# -- methods ------------------------------------------------------------------


def _check_method(
    type_model: TypeModel, method: MethodModel, failed_properties: Collection[str] = ()
) -> list[Diagnostic]:
    found: list[Diagnostic] = []

    def report(code: DiagnosticCode, message: str, location=None) -> None:
        found.append(error(code, message, member=method.name, location=location or method.source))

    if not method.request_declarations:
        report(
            DiagnosticCode.MISSING_REQUEST_DECLARATION,
            f"{method.name} has no request declaration (@get, @post, ... or @request)",
        )
    elif len(method.request_declarations) > 1:
        verbs = ", ".join(attr.declaration.method for attr in method.request_declarations)
        report(
            DiagnosticCode.MULTIPLE_REQUEST_DECLARATIONS,
            f"{method.name} has more than one request declaration ({verbs})",
        )

    cancellation = [p for p in method.parameters if p.is_cancellation_token]
    if len(cancellation) > 1:
        report(
            DiagnosticCode.MULTIPLE_CANCELLATION_PARAMETERS,
            f"{method.name} takes more than one cancellation token: "
            + ", ".join(p.name for p in cancellation),
        )

    bodies = []
    message_keys: Counter[str] = Counter()
    for parameter in method.parameters:
        bindings = parameter.bindings()
        if parameter.is_variadic:
            report(
                DiagnosticCode.VARIADIC_PARAMETER,
                f"parameter {parameter.name} of {method.name} is variadic and cannot be bound",
                parameter.source,
            )
        if parameter.is_cancellation_token:
            if bindings:
                report(
                    DiagnosticCode.CANCELLATION_PARAMETER_HAS_DECLARATIONS,
                    f"cancellation parameter {parameter.name} of {method.name} must not carry declarations",
                    parameter.source,
                )
            continue
        if len(bindings) > 1:
            roles = ", ".join(role.value for role, _ in bindings)
            report(
                DiagnosticCode.MULTIPLE_BINDINGS_ON_PARAMETER,
                f"parameter {parameter.name} of {method.name} has more than one binding ({roles})",
                parameter.source,
            )
        if parameter.body is not None:
            bodies.append(parameter)
        if parameter.header is not None and parameter.header.declaration.value is not None:
            report(
                DiagnosticCode.HEADER_PARAMETER_HAS_VALUE,
                f"header {parameter.header.declaration.name!r} on parameter {parameter.name} "
                "must not declare a value; the argument is the value",
                parameter.source,
            )
        if parameter.role == ParameterRole.HTTP_REQUEST_MESSAGE_PROPERTY:
            message_keys[message_property_key(parameter)] += 1

    if len(bodies) > 1:
        report(
            DiagnosticCode.MULTIPLE_BODY_PARAMETERS,
            f"{method.name} has more than one body parameter: " + ", ".join(p.name for p in bodies),
        )
    for key, count in message_keys.items():
        if count > 1:
            report(
                DiagnosticCode.DUPLICATE_HTTP_REQUEST_MESSAGE_PROPERTY,
                f"{method.name} binds the request property {key!r} more than once",
            )

    if len(method.request_declarations) >= 1:
        found.extend(_check_placeholders(type_model, method, failed_properties))
    found.extend(_check_redundant(type_model, method))
    return found


def _check_placeholders(
    type_model: TypeModel, method: MethodModel, failed_properties: Collection[str] = ()
) -> list[Diagnostic]:
    found = []
    template = effective_template(type_model, method)
    keys = {name.lower(): name for name in placeholders(template)}

    bound: dict[str, list[str]] = {}
    for parameter in method.parameters:
        if parameter.path is not None and not parameter.is_cancellation_token:
            bound.setdefault(parameter_key(parameter).lower(), []).append(parameter.name)
    attributes = {
        property_key(prop).lower()
        for prop in type_model.properties
        if prop.path is not None and not prop.is_requester and prop.name not in failed_properties
    }

    for key, name in keys.items():
        if key not in bound and key not in attributes:
            found.append(
                error(
                    DiagnosticCode.MISSING_PATH_PARAMETER,
                    f"placeholder {{{name}}} in {template!r} has no path parameter or path attribute",
                    member=method.name,
                    location=method.source,
                )
            )
    for key, names in bound.items():
        if key not in keys:
            found.append(
                error(
                    DiagnosticCode.MISSING_PATH_PLACEHOLDER,
                    f"path parameter {names[0]} has no {{{key}}} placeholder in {template!r}",
                    member=method.name,
                    location=method.source,
                )
            )
        elif len(names) > 1:
            found.append(
                error(
                    DiagnosticCode.MULTIPLE_PATH_PARAMETERS_FOR_KEY,
                    f"placeholder {{{keys[key]}}} is bound by more than one parameter: " + ", ".join(names),
                    member=method.name,
                    location=method.source,
                )
            )
    return found


def _check_redundant(type_model: TypeModel, method: MethodModel) -> list[Diagnostic]:
    if method.allow_any_status_code is None:
        return []
    inherited = None
    for interface in (method.declared_on, type_model.name):
        if interface is not None:
            inherited = inherited or type_model.allow_any_status_code_for(interface)
    if inherited is None or inherited.allow != method.allow_any_status_code.declaration.allow:
        return []
    return [
        info(
            DiagnosticCode.REDUNDANT_DECLARATION,
            f"allow_any_status_code on {method.name} repeats the one on its interface",
            member=method.name,
            location=method.allow_any_status_code.source or method.source,
        )
    ]


# -- properties ---------------------------------------------------------------


def _check_properties(type_model: TypeModel) -> list[Diagnostic]:
    found: list[Diagnostic] = []
    requesters: list[PropertyModel] = []

    for prop in type_model.properties:

        def report(code: DiagnosticCode, message: str) -> None:
            found.append(error(code, message, member=prop.name, location=prop.source))

        bindings = prop.bindings()
        if prop.is_requester:
            requesters.append(prop)
            if prop.has_setter:
                report(
                    DiagnosticCode.REQUESTER_PROPERTY_MUST_BE_READ_ONLY,
                    f"requester property {prop.name} must be a read-only @property",
                )
            if bindings:
                report(
                    DiagnosticCode.PROPERTY_MUST_HAVE_ONE_DECLARATION,
                    f"requester property {prop.name} must not carry bindings",
                )
            continue

        if len(bindings) != 1:
            report(
                DiagnosticCode.PROPERTY_MUST_HAVE_ONE_DECLARATION,
                f"property {prop.name} must have exactly one binding (Header, Path, Query or "
                f"HttpRequestMessageProperty), found {len(bindings)}",
            )
        if not (prop.has_getter and prop.has_setter):
            report(
                DiagnosticCode.PROPERTY_MUST_HAVE_GETTER_AND_SETTER,
                f"property {prop.name} must be readable and writable",
            )

    for extra in requesters[1:]:
        found.append(
            error(
                DiagnosticCode.MULTIPLE_REQUESTER_PROPERTIES,
                f"only one requester property is allowed; {extra.name} repeats {requesters[0].name}",
                member=extra.name,
                location=extra.source,
            )
        )

    templates = [
        effective_template(type_model, method).lower()
        for method in type_model.methods
        if method.request is not None
    ]
    for prop in type_model.properties:
        if prop.path is None or prop.is_requester:
            continue
        key = property_key(prop).lower()
        if not any(key in (p.lower() for p in placeholders(t)) for t in templates):
            found.append(
                info(
                    DiagnosticCode.UNUSED_DECLARATION,
                    f"path attribute {prop.name} is not used by any path template",
                    member=prop.name,
                    location=prop.source,
                )
            )
    return found
