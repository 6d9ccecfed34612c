"""Build-time backend: reads declarations from Python source without importing it.

Classes from one or more files are collected into a ``SourceGraph``; bases
are resolved by name inside that graph and linearized the way Python builds
an MRO. Literal arguments are read with ``ast.literal_eval``.
"""

import ast
from collections.abc import Iterable
from pathlib import Path

from restbind.analysis.analyzer import TypeAnalyzer
from restbind.analysis.literals import marker_declarations, raw_declaration, split_call
from restbind.analysis.symbols import (
    IGNORED_BASE_NAMES,
    MethodSymbol,
    ParameterSymbol,
    PropertySymbol,
    TypeSymbol,
    is_accessible_qualname,
)
from restbind.analysis.typenames import (
    CANCELLATION_TYPE_NAME,
    REQUESTER_TYPE_NAME,
    annotation_from_node,
    node_base_name,
    strip_optional,
)
from restbind.analysis.validator import AnalysisResult, validate
from restbind.declarations import DECORATORS, RawDeclaration, SourceLocation

_SKIPPED_DECORATORS = frozenset({"staticmethod", "classmethod"})


class SourceGraph:
    """All classes found in a set of modules, addressable by simple name."""

    def __init__(self):
        self.types: list["SourceTypeSymbol"] = []
        self._by_name: dict[str, "SourceTypeSymbol"] = {}

    def add_source(self, text: str, filename: str = "<source>") -> list["SourceTypeSymbol"]:
        tree = ast.parse(text, filename=filename)
        added: list[SourceTypeSymbol] = []
        self._collect(tree.body, "", filename, added)
        return added

    def add_file(self, path: Path) -> list["SourceTypeSymbol"]:
        return self.add_source(Path(path).read_text(encoding="utf-8"), str(path))

    def _collect(self, body: list[ast.stmt], prefix: str, filename: str, added: list) -> None:
        for node in body:
            if isinstance(node, ast.ClassDef):
                symbol = SourceTypeSymbol(node, prefix + node.name, filename, self)
                self.types.append(symbol)
                self._by_name.setdefault(node.name, symbol)
                added.append(symbol)
                # nested classes are still reachable; classes inside functions are not
                self._collect(node.body, f"{prefix}{node.name}.", filename, added)

    def resolve(self, name: str | None) -> TypeSymbol | None:
        if name is None or name in IGNORED_BASE_NAMES:
            return None
        symbol = self._by_name.get(name)
        if symbol is None and name == DISPOSABLE.name:
            return DISPOSABLE
        return symbol


class _DisposableSymbol(TypeSymbol):
    """``restbind.declarations.Disposable`` as the source backend sees it."""

    name = "Disposable"
    is_accessible = True

    def declarations(self) -> list[RawDeclaration]:
        return []

    def properties(self) -> list[PropertySymbol]:
        return []

    def methods(self) -> list[MethodSymbol]:
        return [
            MethodSymbol(
                name="close",
                return_type_name="None",
                is_dispose=True,
                location=SourceLocation(qualname="Disposable.close"),
            )
        ]

    def bases(self) -> list[TypeSymbol]:
        return []


DISPOSABLE = _DisposableSymbol()


class SourceTypeSymbol(TypeSymbol):
    def __init__(self, node: ast.ClassDef, qualname: str, filename: str, graph: SourceGraph):
        self.node = node
        self.qualname = qualname
        self.filename = filename
        self.graph = graph
        self._mro: list[TypeSymbol] | None = None

    def __repr__(self) -> str:
        return f"SourceTypeSymbol({self.qualname})"

    @property
    def name(self) -> str:
        return self.qualname

    @property
    def is_accessible(self) -> bool:
        return is_accessible_qualname(self.qualname)

    @property
    def location(self) -> SourceLocation:
        return self._location(self.qualname, self.node)

    def _location(self, qualname: str, node: ast.AST) -> SourceLocation:
        return SourceLocation(qualname=qualname, file=self.filename, line=getattr(node, "lineno", None))

    # -- declarations -----------------------------------------------------------

    def _decorator_declarations(self, decorators: list[ast.expr], qualname: str) -> list[RawDeclaration]:
        declarations = []
        for decorator in decorators:
            name, call = split_call(decorator)
            if name not in DECORATORS:
                continue
            kind, leading = DECORATORS[name]
            declarations.append(raw_declaration(kind, leading, call, self._location(qualname, decorator)))
        return declarations

    def declarations(self) -> list[RawDeclaration]:
        return self._decorator_declarations(self.node.decorator_list, self.qualname)

    # -- members --------------------------------------------------------------

    def _functions(self) -> list[ast.FunctionDef | ast.AsyncFunctionDef]:
        return [
            node
            for node in self.node.body
            if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)) and not node.name.startswith("_")
        ]

    @staticmethod
    def _decorator_names(node: ast.FunctionDef | ast.AsyncFunctionDef) -> list[str | None]:
        return [split_call(d)[0] for d in node.decorator_list]

    @staticmethod
    def _is_setter(node: ast.FunctionDef | ast.AsyncFunctionDef) -> bool:
        return any(
            isinstance(d, ast.Attribute) and d.attr == "setter" and node_base_name(d.value) == node.name
            for d in node.decorator_list
        )

    def properties(self) -> list[PropertySymbol]:
        properties = []
        functions = self._functions()
        property_names = {f.name for f in functions if "property" in self._decorator_names(f)}

        for node in self.node.body:
            if not isinstance(node, ast.AnnAssign) or not isinstance(node.target, ast.Name):
                continue
            name = node.target.id
            if name.startswith("_") or name in property_names:
                continue
            if node_base_name(node.annotation) == "ClassVar" or (
                isinstance(node.annotation, ast.Subscript) and node_base_name(node.annotation.value) == "ClassVar"
            ):
                continue
            properties.append(self._property(name, node.annotation, node, has_getter=True, has_setter=True))

        setters = {f.name for f in functions if self._is_setter(f)}
        for node in functions:
            if "property" not in self._decorator_names(node):
                continue
            properties.append(
                self._property(node.name, node.returns, node, has_getter=True, has_setter=node.name in setters)
            )
        return properties

    def _property(
        self, name: str, annotation: ast.expr | None, node: ast.AST, *, has_getter: bool, has_setter: bool
    ) -> PropertySymbol:
        location = self._location(f"{self.qualname}.{name}", node)
        type_name = annotation_from_node(annotation)
        return PropertySymbol(
            name=name,
            type_name=type_name,
            declarations=marker_declarations(annotation, location),
            is_requester=strip_optional(type_name) == REQUESTER_TYPE_NAME,
            has_getter=has_getter,
            has_setter=has_setter,
            location=location,
        )

    def methods(self) -> list[MethodSymbol]:
        methods = []
        for node in self._functions():
            names = self._decorator_names(node)
            if "property" in names or self._is_setter(node) or _SKIPPED_DECORATORS.intersection(names):
                continue
            methods.append(self._method(node))
        return methods

    def _method(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> MethodSymbol:
        qualname = f"{self.qualname}.{node.name}"
        location = self._location(qualname, node)
        arguments = node.args

        parameters: list[ParameterSymbol] = []
        positional = [*arguments.posonlyargs, *arguments.args][1:]
        for arg in positional:
            parameters.append(self._parameter(arg, qualname))
        if arguments.vararg is not None:
            parameters.append(self._parameter(arguments.vararg, qualname, variadic=True))
        for arg in arguments.kwonlyargs:
            parameters.append(self._parameter(arg, qualname))
        if arguments.kwarg is not None:
            parameters.append(self._parameter(arguments.kwarg, qualname, variadic=True))

        return MethodSymbol(
            name=node.name,
            declarations=self._decorator_declarations(node.decorator_list, qualname),
            parameters=parameters,
            return_type_name=annotation_from_node(node.returns),
            is_dispose=False,
            location=location,
        )

    def _parameter(self, arg: ast.arg, method_qualname: str, variadic: bool = False) -> ParameterSymbol:
        location = self._location(f"{method_qualname}.{arg.arg}", arg)
        type_name = annotation_from_node(arg.annotation)
        return ParameterSymbol(
            name=arg.arg,
            type_name=type_name,
            declarations=marker_declarations(arg.annotation, location),
            is_cancellation_token=strip_optional(type_name) == CANCELLATION_TYPE_NAME,
            is_variadic=variadic,
            location=location,
        )

    # -- inheritance ----------------------------------------------------------

    def direct_bases(self) -> list[TypeSymbol]:
        bases = []
        for base in self.node.bases:
            target = base.value if isinstance(base, ast.Subscript) else base
            symbol = self.graph.resolve(node_base_name(target))
            if symbol is not None and symbol is not self:
                bases.append(symbol)
        return bases

    def bases(self) -> list[TypeSymbol]:
        if self._mro is None:
            self._mro = _linearize(self)[1:]
        return list(self._mro)

    def has_declarations(self) -> bool:
        """True when the class or any of its own members uses the vocabulary."""
        if self.declarations():
            return True
        if any(prop.declarations or prop.is_requester for prop in self.properties()):
            return True
        return any(
            method.declarations or any(p.declarations for p in method.parameters) for method in self.methods()
        )


def _linearize(symbol: TypeSymbol, _active: frozenset = frozenset()) -> list[TypeSymbol]:
    """C3 linearization over the resolved graph."""
    if symbol in _active:
        raise ValueError(f"inheritance cycle through {symbol.name}")
    direct = symbol.direct_bases() if isinstance(symbol, SourceTypeSymbol) else symbol.bases()
    sequences = [_linearize(base, _active | {symbol}) for base in direct] + [list(direct)]
    result = [symbol]
    while True:
        sequences = [seq for seq in sequences if seq]
        if not sequences:
            return result
        for seq in sequences:
            head = seq[0]
            if not any(head in other[1:] for other in sequences):
                break
        else:
            raise ValueError(f"cannot create a consistent method resolution order for {symbol.name}")
        result.append(head)
        for seq in sequences:
            if seq[0] is head:
                del seq[0]


def analyze_source(source: str | Path | Iterable[str | Path]) -> list[AnalysisResult]:
    """Analyze and validate every interface found in Python source.

    ``source`` is source text, a file path, or several file paths that form
    one graph (bases may live in another file). Only classes that use the
    declaration vocabulary, on themselves or on their members, are reported.
    """
    graph = SourceGraph()
    if isinstance(source, str):
        graph.add_source(source)
    elif isinstance(source, Path):
        graph.add_file(source)
    else:
        for path in source:
            graph.add_file(Path(path))

    results = []
    for symbol in graph.types:
        if not symbol.has_declarations():
            continue
        model, diagnostics = TypeAnalyzer(symbol).analyze()
        results.append(validate(model, diagnostics))
    return results
