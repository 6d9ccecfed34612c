"""Minimal capability set the analyzer needs from a declaration source.

A backend only has to say which declarations, members and inherited
interfaces a type has; everything else (decoding, traversal, model
building) is shared in ``restbind.analysis.analyzer``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from restbind.declarations import RawDeclaration, SourceLocation

# Bases that are never part of an interface chain.
IGNORED_BASE_NAMES = frozenset({"object", "Protocol", "Generic", "ABC"})


def is_accessible_qualname(qualname: str) -> bool:
    """An interface is visible unless any enclosing name is private."""
    return not any(part.startswith("_") for part in qualname.split(".") if part != "<locals>")


@dataclass
class ParameterSymbol:
    name: str
    type_name: str | None = None
    declarations: list[RawDeclaration] = field(default_factory=list)
    is_cancellation_token: bool = False
    is_variadic: bool = False
    location: SourceLocation | None = None


@dataclass
class PropertySymbol:
    name: str
    type_name: str | None = None
    declarations: list[RawDeclaration] = field(default_factory=list)
    is_requester: bool = False
    has_getter: bool = True
    has_setter: bool = True
    location: SourceLocation | None = None


@dataclass
class MethodSymbol:
    name: str
    declarations: list[RawDeclaration] = field(default_factory=list)
    parameters: list[ParameterSymbol] = field(default_factory=list)
    return_type_name: str | None = None
    is_dispose: bool = False
    location: SourceLocation | None = None


class TypeSymbol(ABC):
    """One interface as seen by a backend."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Qualified name, used as identity inside a model."""

    @property
    @abstractmethod
    def is_accessible(self) -> bool: ...

    @property
    def location(self) -> SourceLocation | None:
        return None

    @abstractmethod
    def declarations(self) -> list[RawDeclaration]:
        """Type-scoped declarations written on this class only."""

    @abstractmethod
    def properties(self) -> list[PropertySymbol]:
        """Properties declared on this class only."""

    @abstractmethod
    def methods(self) -> list[MethodSymbol]:
        """Request methods declared on this class only."""

    @abstractmethod
    def bases(self) -> list["TypeSymbol"]:
        """Every inherited interface, linearized (MRO order, self excluded)."""
