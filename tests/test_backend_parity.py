"""The runtime and source backends must build value-identical models."""

import importlib.util
import textwrap
from pathlib import Path

import pytest

from restbind.analysis.analyzer import TypeAnalyzer
from restbind.analysis.reflection import ReflectionTypeSymbol
from restbind.analysis.source import SourceGraph, analyze_source
from restbind.analysis.validator import analyze_interface

FIXTURES = Path(__file__).parent / "fixtures"

PRELUDE = """
from typing import Annotated, Any, ClassVar, Optional

from restbind.cancellation import CancellationToken
from restbind.declarations import *
from restbind.engine.requester import ApiResponse, Requester
"""

CASES = {
    "headers_and_removal": """
@header("Accept: application/json")
@header("X-Empty:")
class Api:
    @get("a")
    @header("Accept")
    @header("X-Multi: 1")
    @header("X-Multi: 2")
    def a(self, token: Annotated[str | None, Header("Authorization")] = None) -> None: ...
""",
    "serialization_and_enums": """
@serialization_methods(query=QuerySerializationMethod.SERIALIZED)
class Api:
    @post("b")
    @serialization_methods(body="url_encoded", path=PathSerializationMethod.SERIALIZED)
    def b(
        self,
        form: Annotated[dict[str, Any], Body()],
        ids: Annotated[list[int], Query("id", QuerySerializationMethod.TO_STRING)],
        extra: Annotated[Optional[dict[str, str]], QueryMap()] = None,
    ) -> ApiResponse[list[dict[str, Any]]]: ...
""",
    "diamond_inheritance": """
@header("X-Root: 1")
class Root:
    @get("root")
    def root(self) -> str: ...

@allow_any_status_code
class Left(Root):
    @get("left")
    def shared(self) -> int: ...

@base_path("api/{tenant}")
class Right(Root):
    tenant: Annotated[str, Path()]

    @get("right")
    def shared(self) -> float: ...

class Api(Left, Right, Disposable):
    @property
    def requester(self) -> Requester: ...
""",
    "invalid_members": """
class Api:
    counter: ClassVar[int] = 0

    @get("x/{missing}")
    def x(self, *args) -> None: ...

    @get("y")
    @post("y")
    def y(self, token: CancellationToken, other: CancellationToken) -> None: ...

    def z(self, a: Annotated[int, Query(), Path()]) -> None: ...
""",
}


DEFERRED_ANNOTATIONS = """
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from decimal import Decimal as Hidden


class Api:
    owner: Annotated[str, Path()]

    @get("users/{owner}/items/{item_id}")
    def get_item(
        self,
        item_id: Annotated[int, Path()],
        extra: Hidden | None = None,
        note: Annotated[Hidden, Query("n")] = None,
    ) -> None: ...
"""


def _load(name: str, text: str, tmp_path: Path, future: bool = False):
    path = tmp_path / f"{name}.py"
    header = "from __future__ import annotations\n" if future else ""
    path.write_text(header + textwrap.dedent(PRELUDE + text), encoding="utf-8")
    spec = importlib.util.spec_from_file_location(f"parity_{name}", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module, path


def _source_model(path: Path, name: str):
    graph = SourceGraph()
    graph.add_file(path)
    symbol = next(s for s in graph.types if s.name == name)
    return TypeAnalyzer(symbol).analyze()


class TestBackendParity:
    @pytest.mark.parametrize("name", sorted(CASES))
    def test_same_model(self, name, tmp_path):
        module, path = _load(name, CASES[name], tmp_path)
        runtime_model, runtime_diagnostics = TypeAnalyzer(ReflectionTypeSymbol(module.Api)).analyze()
        source_model, source_diagnostics = _source_model(path, "Api")

        assert runtime_model.model_dump() == source_model.model_dump()
        assert [d.code for d in runtime_diagnostics] == [d.code for d in source_diagnostics]

    def test_same_validation_result(self, tmp_path):
        module, path = _load("invalid_members", CASES["invalid_members"], tmp_path)
        runtime = analyze_interface(module.Api)
        [source] = analyze_source(path)

        assert runtime.failed_members == source.failed_members == {"x", "y", "z"}
        assert [d.code for d in runtime.diagnostics] == [d.code for d in source.diagnostics]

    def test_deferred_annotations(self, tmp_path):
        module, path = _load("deferred", DEFERRED_ANNOTATIONS, tmp_path, future=True)
        runtime = analyze_interface(module.Api)
        [source] = analyze_source(path)

        assert runtime.type_model.model_dump() == source.type_model.model_dump()
        assert [d.code for d in runtime.diagnostics] == [d.code for d in source.diagnostics]
        assert runtime.failed_members == set()
        assert runtime.fatal == []

        method = runtime.type_model.method("get_item")
        assert [p.type_name for p in method.parameters] == ["int", "Hidden | None", "Hidden"]
        assert method.parameters[2].query.declaration.name == "n"
        assert runtime.type_model.properties[0].path is not None

    def test_fixture_interfaces(self):
        from fixtures import github_api

        for result in analyze_source(FIXTURES / "github_api.py"):
            cls = getattr(github_api, result.type_model.name)
            runtime_model, _ = TypeAnalyzer(ReflectionTypeSymbol(cls)).analyze()
            assert runtime_model.model_dump() == result.type_model.model_dump()

    def test_diamond_traversal_order(self, tmp_path):
        module, _ = _load("diamond_inheritance", CASES["diamond_inheritance"], tmp_path)
        model, _ = TypeAnalyzer(ReflectionTypeSymbol(module.Api)).analyze()
        assert model.interfaces == ["Api", "Left", "Right", "Root", "Disposable"]
        assert model.method("shared").declared_on == "Left"
