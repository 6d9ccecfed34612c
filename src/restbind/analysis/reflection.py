"""Runtime backend: reads declarations from loaded classes.

Inherited interfaces come from ``__mro__``; members come from the class
``__dict__`` and its own annotations, so each class only reports what it
declares itself.

Annotations are evaluated one at a time. One that names something missing at
runtime (a ``TYPE_CHECKING`` import, say) stays a string, and its markers are
read from that string the way the source backend reads them.
"""

import functools
import inspect
import logging
import sys
import types
import typing
from abc import ABC
from typing import Any, ClassVar, Generic, Protocol

from restbind.analysis.literals import marker_declarations_from_string
from restbind.analysis.symbols import (
    MethodSymbol,
    ParameterSymbol,
    PropertySymbol,
    TypeSymbol,
    is_accessible_qualname,
)
from restbind.analysis.typenames import (
    CANCELLATION_TYPE_NAME,
    REQUESTER_TYPE_NAME,
    annotation_from_object,
    annotation_from_string,
    strip_annotated,
    strip_optional,
)
from restbind.cancellation import CancellationToken
from restbind.declarations import (
    Disposable,
    ParameterMarker,
    RawDeclaration,
    SourceLocation,
    declarations_of,
)
from restbind.engine.requester import Requester

logger = logging.getLogger(__name__)

_IGNORED_BASES = (object, Protocol, Generic, ABC)


def _markers(annotation: Any, location: SourceLocation) -> list[RawDeclaration]:
    if isinstance(annotation, str):
        return marker_declarations_from_string(annotation, location)
    _, metadata = strip_annotated(annotation)
    declarations = []
    for item in metadata:
        if isinstance(item, type) and issubclass(item, ParameterMarker):
            item = item()
        if isinstance(item, ParameterMarker):
            declarations.append(item.declaration.model_copy(update={"location": location}))
    return declarations


def _strip_optional_object(annotation: Any) -> Any:
    args = [a for a in typing.get_args(annotation) if a is not type(None)]
    origin = typing.get_origin(annotation)
    if len(args) == 1 and (origin is typing.Union or origin is getattr(types, "UnionType", None)):
        return args[0]
    return annotation


def _is_type(annotation: Any, expected: type, type_name: str) -> bool:
    if isinstance(annotation, str):
        return strip_optional(annotation_from_string(annotation)) == type_name
    annotation, _ = strip_annotated(annotation)
    return _strip_optional_object(annotation) is expected


def _is_class_var(annotation: Any) -> bool:
    if isinstance(annotation, str):
        name = annotation_from_string(annotation)
        return name == "ClassVar" or name.startswith("ClassVar[")
    return annotation is ClassVar or typing.get_origin(annotation) is ClassVar


def _unevaluated_annotations(target: Any) -> dict[str, Any]:
    try:
        return dict(inspect.get_annotations(target))
    except NameError:
        # lazily evaluated annotations (3.14+) that name something missing
        import annotationlib

        return dict(annotationlib.get_annotations(target, format=annotationlib.Format.STRING))


def _namespaces(target: Any) -> tuple[dict[str, Any], dict[str, Any] | None]:
    if inspect.isclass(target):
        module = sys.modules.get(target.__module__)
        if module is not None:
            return vars(module), dict(vars(target))
        # loaded without registering the module; borrow a method's globals
        functions = [value for value in vars(target).values() if inspect.isfunction(value)]
        return (functions[0].__globals__ if functions else {}), dict(vars(target))
    return getattr(inspect.unwrap(target), "__globals__", {}), None


def _evaluate(annotation: Any, globalns: dict[str, Any], localns: dict[str, Any] | None) -> Any:
    def holder():
        pass

    holder.__annotations__ = {"value": annotation}
    return typing.get_type_hints(holder, globalns, localns, include_extras=True)["value"]


def _type_hints(target: Any, qualname: str) -> dict[str, Any]:
    """``target``'s own annotations, each evaluated where possible."""
    globalns, localns = _namespaces(target)
    hints = {}
    for name, annotation in _unevaluated_annotations(target).items():
        if _is_class_var(annotation):
            hints[name] = annotation
            continue
        try:
            hints[name] = _evaluate(annotation, globalns, localns)
        except (NameError, TypeError, SyntaxError) as e:
            logger.warning("Could not resolve annotation %r of %s (%s); reading it unevaluated", name, qualname, e)
            hints[name] = annotation
    return hints


class ReflectionTypeSymbol(TypeSymbol):
    def __init__(self, cls: type):
        if not inspect.isclass(cls):
            raise TypeError(f"{cls!r} is not a class")
        self.cls = cls

    def __repr__(self) -> str:
        return f"ReflectionTypeSymbol({self.cls.__qualname__})"

    @property
    def name(self) -> str:
        return self.cls.__qualname__

    @property
    def is_accessible(self) -> bool:
        return is_accessible_qualname(self.cls.__qualname__)

    @functools.cached_property
    def location(self) -> SourceLocation:
        try:
            file = inspect.getsourcefile(self.cls)
        except (TypeError, OSError):
            file = None
        return SourceLocation(qualname=self.cls.__qualname__, file=file)

    def declarations(self) -> list[RawDeclaration]:
        return [
            raw if raw.location is not None else raw.model_copy(update={"location": self.location})
            for raw in declarations_of(self.cls)
        ]

    def bases(self) -> list[TypeSymbol]:
        return [ReflectionTypeSymbol(base) for base in self.cls.__mro__[1:] if base not in _IGNORED_BASES]

    def properties(self) -> list[PropertySymbol]:
        properties = []
        namespace = vars(self.cls)
        for name, annotation in _type_hints(self.cls, self.name).items():
            if name.startswith("_") or isinstance(namespace.get(name), property):
                continue
            if _is_class_var(annotation):
                continue
            properties.append(self._property(name, annotation, has_getter=True, has_setter=True))

        for name, value in namespace.items():
            if name.startswith("_") or not isinstance(value, property):
                continue
            annotation = None
            if value.fget is not None:
                annotation = _type_hints(value.fget, f"{self.name}.{name}").get("return")
            properties.append(
                self._property(
                    name,
                    annotation,
                    has_getter=value.fget is not None,
                    has_setter=value.fset is not None,
                )
            )
        return properties

    def _property(self, name: str, annotation: Any, *, has_getter: bool, has_setter: bool) -> PropertySymbol:
        location = SourceLocation(qualname=f"{self.name}.{name}", file=self.location.file)
        return PropertySymbol(
            name=name,
            type_name=annotation_from_object(annotation) if annotation is not None else None,
            declarations=_markers(annotation, location),
            is_requester=_is_type(annotation, Requester, REQUESTER_TYPE_NAME),
            has_getter=has_getter,
            has_setter=has_setter,
            location=location,
        )

    def methods(self) -> list[MethodSymbol]:
        methods = []
        for name, value in vars(self.cls).items():
            if name.startswith("_") or not inspect.isfunction(value):
                continue
            methods.append(self._method(name, value))
        return methods

    def _method(self, name: str, func: Any) -> MethodSymbol:
        location = SourceLocation(
            qualname=func.__qualname__,
            file=func.__code__.co_filename,
            line=func.__code__.co_firstlineno,
        )
        hints = _type_hints(func, func.__qualname__)
        parameters = list(inspect.signature(func).parameters.values())[1:]

        return MethodSymbol(
            name=name,
            declarations=declarations_of(func),
            parameters=[self._parameter(p, hints, location) for p in parameters],
            return_type_name=annotation_from_object(hints["return"]) if "return" in hints else None,
            is_dispose=func is Disposable.close,
            location=location,
        )

    def _parameter(
        self, parameter: inspect.Parameter, hints: dict[str, Any], method_location: SourceLocation
    ) -> ParameterSymbol:
        location = method_location.model_copy(update={"qualname": f"{method_location.qualname}.{parameter.name}"})
        annotation = hints.get(parameter.name)
        return ParameterSymbol(
            name=parameter.name,
            type_name=annotation_from_object(annotation) if annotation is not None else None,
            declarations=_markers(annotation, location),
            is_cancellation_token=_is_type(annotation, CancellationToken, CANCELLATION_TYPE_NAME),
            is_variadic=parameter.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD),
            location=location,
        )
