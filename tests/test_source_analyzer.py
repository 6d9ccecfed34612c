from pathlib import Path

import pytest

from restbind.analysis.analyzer import TypeAnalyzer
from restbind.analysis.base import ResponseShape
from restbind.analysis.diagnostics import DiagnosticCode
from restbind.analysis.source import SourceGraph, analyze_source
from restbind.declarations import BodySerializationMethod

FIXTURES = Path(__file__).parent / "fixtures"


def _symbol(text: str, name: str):
    graph = SourceGraph()
    graph.add_source(text)
    return next(s for s in graph.types if s.name == name)


class TestSourceGraph:
    def test_collects_nested_classes_with_qualnames(self):
        graph = SourceGraph()
        graph.add_source("class Outer:\n    class Inner:\n        pass\n")
        assert [s.name for s in graph.types] == ["Outer", "Outer.Inner"]

    def test_c3_linearization(self):
        text = """
class A: pass
class B(A): pass
class C(A): pass
class D(B, C): pass
"""
        symbol = _symbol(text, "D")
        assert [b.name for b in symbol.bases()] == ["B", "C", "A"]

    def test_unknown_bases_are_skipped(self):
        symbol = _symbol("class Api(Protocol, SomethingElse):\n    pass\n", "Api")
        assert symbol.bases() == []

    def test_disposable_is_builtin(self):
        symbol = _symbol("class Api(Disposable):\n    pass\n", "Api")
        [base] = symbol.bases()
        assert base.name == "Disposable"
        assert base.methods()[0].is_dispose

    def test_bases_across_files(self, tmp_path):
        (tmp_path / "base.py").write_text("@header('X-A: 1')\nclass Base:\n    pass\n")
        (tmp_path / "api.py").write_text("class Api(Base):\n    @get('a')\n    def a(self) -> None: ...\n")
        results = analyze_source([tmp_path / "base.py", tmp_path / "api.py"])
        api = next(r for r in results if r.type_model.name == "Api")
        assert api.type_model.interfaces == ["Api", "Base"]
        assert api.type_model.header_declarations[0].declared_on == "Base"


class TestLiterals:
    def test_enum_attribute_is_resolved(self):
        text = """
class Api:
    @post("form")
    def send(self, body: Annotated[dict, Body(BodySerializationMethod.URL_ENCODED)]) -> None: ...
"""
        model, diagnostics = TypeAnalyzer(_symbol(text, "Api")).analyze()
        assert diagnostics == []
        body = model.method("send").parameters[0].body
        assert body.declaration.serialization == BodySerializationMethod.URL_ENCODED

    def test_non_constant_argument_is_malformed(self):
        text = """
PATH = "users"

class Api:
    @get(PATH)
    def users(self) -> None: ...
"""
        model, diagnostics = TypeAnalyzer(_symbol(text, "Api")).analyze()
        assert model.method("users").request is None
        [diagnostic] = diagnostics
        assert diagnostic.code == DiagnosticCode.MALFORMED_DECLARATION
        assert "'PATH' is not a constant" in diagnostic.message
        assert diagnostic.location.line == 5

    def test_bare_and_called_decorators(self):
        text = """
@allow_any_status_code
class Api:
    @allow_any_status_code(False)
    @restbind.declarations.get("a")
    def a(self) -> str: ...
"""
        model, _ = TypeAnalyzer(_symbol(text, "Api")).analyze()
        assert model.allow_any_status_code_declarations[0].declaration.allow is True
        method = model.method("a")
        assert method.allow_any_status_code.declaration.allow is False
        assert method.request.declaration.method == "GET"
        assert method.response_shape == ResponseShape.RAW_STRING


class TestMembers:
    def test_property_setter_detection(self):
        text = """
class Api:
    @property
    def token(self) -> Annotated[str, Header("Authorization")]: ...

    @token.setter
    def token(self, value): ...

    @property
    def requester(self) -> Requester: ...
"""
        model, _ = TypeAnalyzer(_symbol(text, "Api")).analyze()
        token, requester = model.properties
        assert token.has_setter and token.header.declaration.name == "Authorization"
        assert requester.is_requester and not requester.has_setter
        assert model.methods == []

    def test_parameter_order_follows_signature(self):
        text = """
class Api:
    @get("a")
    def a(self, first, /, second, *rest, third, **extra) -> None: ...
"""
        model, _ = TypeAnalyzer(_symbol(text, "Api")).analyze()
        params = model.method("a").parameters
        assert [p.name for p in params] == ["first", "second", "rest", "third", "extra"]
        assert [p.is_variadic for p in params] == [False, False, True, False, True]

    def test_cancellation_token_recognized_by_type_name(self):
        text = """
class Api:
    @get("a")
    def a(self, token: Optional[CancellationToken] = None) -> None: ...
"""
        model, _ = TypeAnalyzer(_symbol(text, "Api")).analyze()
        assert model.method("a").parameters[0].is_cancellation_token


class TestAnalyzeSource:
    def test_only_classes_using_the_vocabulary(self):
        results = analyze_source(FIXTURES / "github_api.py")
        assert [r.type_model.name for r in results] == ["ApiBase", "GitHubApi"]

    def test_fixture_is_valid(self):
        results = analyze_source(FIXTURES / "github_api.py")
        assert all(r.diagnostics == [] for r in results)

    def test_syntax_error_propagates(self):
        with pytest.raises(SyntaxError):
            analyze_source("class Broken(:\n")
