"""Runtime generation back-end: builds client classes from live interfaces.

``create_client`` analyzes an interface once, derives a class from
``ClientBase`` and the interface, and binds one ``RequestAssembler`` per
request method. Classes written by ``restbind.generator.source`` derive from
the same ``ClientBase``; only the way their request methods come into being
differs.
"""

import functools
import inspect
import logging
import types
import typing
from typing import Any, ClassVar

from restbind.analysis.base import MethodModel, ResponseShape
from restbind.analysis.validator import AnalysisResult
from restbind.config import ClientConfig, load_config
from restbind.engine.requester import Requester, RequestsRequester
from restbind.errors import InvalidDeclarationError
from restbind.registry import ModelRegistry, build_model, default_registry
from restbind.request.assembler import RequestAssembler
from restbind.request.serializers import DEFAULT_SERIALIZERS, Serializers

logger = logging.getLogger(__name__)


def _response_type(interface: type, method: MethodModel) -> Any:
    if method.response_shape not in (ResponseShape.DESERIALIZE, ResponseShape.DESERIALIZE_WITH_METADATA):
        return None
    func = getattr(interface, method.name)
    try:
        annotation = typing.get_type_hints(func).get("return", Any)
    except (NameError, TypeError) as e:
        logger.warning("Could not resolve the return type of %s (%s); responses decode as Any", method.name, e)
        return Any
    if method.response_shape == ResponseShape.DESERIALIZE_WITH_METADATA:
        args = typing.get_args(annotation)
        return args[0] if args else Any
    return annotation


def _storage_property(name: str, default: Any) -> property:
    def fget(self):
        return self._property_values.get(name, default)

    def fset(self, value):
        self._property_values[name] = value

    return property(fget, fset, doc=f"Value bound to every request as {name!r}.")


def _failed_method(name: str, diagnostics: list) -> Any:
    def method(self, *args, **kwargs):
        raise InvalidDeclarationError(f"{name} cannot be called: its declaration is invalid", diagnostics)

    method.__name__ = name
    return method


class ClientBase:
    """Base of every generated client.

    A subclass that sets ``__restbind_result__`` gets its assemblers, its
    attribute storage and its requester property when it is created.
    """

    __restbind_interface__: ClassVar[type | None] = None
    __restbind_result__: ClassVar[AnalysisResult | None] = None
    __restbind_assemblers__: ClassVar[dict[str, RequestAssembler]] = {}
    __restbind_signatures__: ClassVar[dict[str, inspect.Signature]] = {}
    __restbind_properties__: ClassVar[tuple[str, ...]] = ()
    serializers: ClassVar[Serializers] = DEFAULT_SERIALIZERS

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        result = cls.__dict__.get("__restbind_result__")
        if result is None:
            return
        interface = cls.__restbind_interface__
        model = result.type_model
        if model is None:
            raise InvalidDeclarationError(f"{cls.__qualname__} has no valid model", result.fatal)

        bound = [p for p in model.properties if p.name not in result.failed_members]
        assemblers, signatures = {}, {}
        for method in model.methods:
            if method.is_dispose_method:
                continue
            if method.name in result.failed_members:
                if method.name not in cls.__dict__:
                    setattr(cls, method.name, _failed_method(method.name, result.diagnostics_for(method.name)))
                continue
            assemblers[method.name] = RequestAssembler(
                model,
                method,
                properties=bound,
                serializers=cls.serializers,
                response_type=_response_type(interface, method),
            )
            signatures[method.name] = inspect.signature(getattr(interface, method.name))

        names = []
        for prop in model.properties:
            if prop.is_requester:
                setattr(cls, prop.name, property(lambda self: self._requester))
                continue
            default = inspect.getattr_static(interface, prop.name, None)
            if isinstance(default, property):
                default = None
            setattr(cls, prop.name, _storage_property(prop.name, default))
            names.append(prop.name)

        cls.__restbind_assemblers__ = assemblers
        cls.__restbind_signatures__ = signatures
        cls.__restbind_properties__ = tuple(names)
        logger.debug("Bound %s: %d request methods", cls.__qualname__, len(assemblers))

    def __init__(self, requester: Requester, serializers: Serializers | None = None):
        self._requester = requester
        self._property_values: dict[str, Any] = {}
        self._assemblers = type(self).__restbind_assemblers__
        if serializers is not None and serializers is not type(self).serializers:
            self._assemblers = {
                name: assembler.with_serializers(serializers) for name, assembler in self._assemblers.items()
            }

    def _dispatch(self, name: str, args: tuple, kwargs: dict) -> Any:
        cls = type(self)
        bound = cls.__restbind_signatures__[name].bind(self, *args, **kwargs)
        bound.apply_defaults()
        arguments = dict(bound.arguments)
        arguments.pop(next(iter(arguments)))  # self

        values = {prop: getattr(self, prop) for prop in cls.__restbind_properties__}
        descriptor = self._assemblers[name].assemble(arguments, values)
        return self._requester.request(descriptor)

    def close(self) -> None:
        self._requester.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


class ImplementationBuilder:
    """Creates the client class for one analyzed interface."""

    def __init__(self, interface: type, result: AnalysisResult):
        self.interface = interface
        self.result = result

    def _request_method(self, name: str) -> Any:
        func = getattr(self.interface, name)

        @functools.wraps(func, updated=())
        def method(self, *args, **kwargs):
            return self._dispatch(name, args, kwargs)

        return method

    def build(self) -> type:
        model = self.result.type_model
        for diagnostic in self.result.fatal:
            logger.warning("Skipping %s.%s: %s", self.interface.__qualname__, diagnostic.member, diagnostic.format())
        namespace = {
            "__module__": self.interface.__module__,
            "__restbind_interface__": self.interface,
            "__restbind_result__": self.result,
        }
        for method in model.methods:
            if method.is_dispose_method or method.name in self.result.failed_members:
                continue
            namespace[method.name] = self._request_method(method.name)

        name = f"{self.interface.__name__}Client"
        return types.new_class(name, (ClientBase, self.interface), exec_body=lambda ns: ns.update(namespace))


def implementation_for(interface: type, registry: ModelRegistry | None = None) -> type:
    """The client class for ``interface``, built once per registry."""
    if registry is None:
        registry = default_registry()
    result = build_model(interface, registry)
    if result.type_model is None:
        raise InvalidDeclarationError(f"{interface.__qualname__} cannot be implemented", result.fatal)
    return registry.get_or_create(
        (ClientBase, interface), lambda: ImplementationBuilder(interface, result).build()
    )


def create_client(
    interface: type,
    target: str | Requester | None = None,
    config: ClientConfig | None = None,
    *,
    registry: ModelRegistry | None = None,
    serializers: Serializers | None = None,
):
    """Return an object implementing ``interface``.

    ``target`` is a base URL or a ``Requester``; without one the base URL
    comes from ``config`` (or ``load_config()``). ``serializers`` replaces the
    default codec for request bodies, queries, paths and responses.
    """
    cls = implementation_for(interface, registry)
    if target is None or isinstance(target, str):
        requester = RequestsRequester(base_url=target, config=config or load_config(), serializers=serializers)
    else:
        requester = target
    return cls(requester, serializers)
