import importlib.util
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from restbind.analysis.source import analyze_source
from restbind.errors import InvalidDeclarationError
from restbind.generator.runtime import ClientBase
from restbind.generator.source import _constant_name, client_name, render_client_module
from restbind.generator.validator import validate_files, validate_python, validate_structure

FIXTURES = Path(__file__).parent / "fixtures"


def _render(path: Path, module: str) -> str:
    return render_client_module(analyze_source(path), module)


def _load(text: str, tmp_path: Path):
    path = tmp_path / "github_clients.py"
    path.write_text(text, encoding="utf-8")
    spec = importlib.util.spec_from_file_location("github_clients", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class TestNames:
    def test_client_name(self):
        assert client_name("GitHubApi") == "GitHubApiClient"
        assert client_name("Outer.Inner") == "OuterInnerClient"

    def test_constant_name(self):
        assert _constant_name("GitHubApi") == "_GIT_HUB_API_RESULT"
        assert _constant_name("Outer.Inner") == "_OUTER_INNER_RESULT"


class TestRenderClientModule:
    def test_module_layout(self):
        text = _render(FIXTURES / "github_api.py", "fixtures.github_api")
        assert "from fixtures.github_api import ApiBase, GitHubApi\n" in text
        assert "class GitHubApiClient(ClientBase, GitHubApi):" in text
        assert "class ApiBaseClient(ClientBase, ApiBase):" in text
        assert '"""GET users/{owner}/repos"""' in text
        assert '"""DELETE /repos/{owner}/{repo}"""' in text
        assert "def close" not in text

    def test_generated_code_validates(self):
        text = _render(FIXTURES / "github_api.py", "fixtures.github_api")
        assert validate_files({"github_clients.py": text}) == {}

    def test_failed_members_and_rejected_interfaces(self):
        text = _render(FIXTURES / "broken_api.py", "fixtures.broken_api")
        assert "def list_items(self" in text
        assert "def get_item(self" not in text
        assert "def save_item(self" not in text
        assert "# Interfaces with type-level errors, not generated:" in text
        assert "_HiddenApi" not in text.split("# Interfaces")[0]

    def test_generated_client_works(self, tmp_path):
        text = _render(FIXTURES / "github_api.py", "fixtures.github_api")
        module = _load(text, tmp_path)

        requester = MagicMock()
        client = module.GitHubApiClient(requester)
        assert isinstance(client, ClientBase)
        client.owner = "octocat"
        client.list_repos(visibility="public", page_size=5)

        (descriptor,), _ = requester.request.call_args
        assert descriptor.path == "users/octocat/repos"
        assert descriptor.query == [("visibility", "public"), ("per_page", "5")]
        assert descriptor.get_header("X-GitHub-Api-Version") == "2022-11-28"
        assert client.requester is requester

    def test_embedded_result_matches_analysis(self, tmp_path):
        text = _render(FIXTURES / "github_api.py", "fixtures.github_api")
        module = _load(text, tmp_path)
        [_, github] = analyze_source(FIXTURES / "github_api.py")
        assert module._GIT_HUB_API_RESULT.model_dump() == github.model_dump()

    def test_generated_failed_member_raises(self, tmp_path):
        text = _render(FIXTURES / "broken_api.py", "fixtures.broken_api")
        module = _load(text, tmp_path)
        client = module.ItemsApiClient(MagicMock())
        with pytest.raises(InvalidDeclarationError):
            client.get_item(1)


class TestValidator:
    def test_syntax_error(self):
        errors = validate_python({"a.py": "def broken(:\n", "notes.txt": "def (", "empty.py": "  "})
        assert list(errors) == ["a.py"]
        assert errors["a.py"].startswith("SyntaxError:")

    def test_compile_errors_beyond_parsing(self):
        errors = validate_python({"c.py": "class ApiClient:\n    pass\n\nreturn ApiClient\n"})
        assert errors == {"c.py": "SyntaxError: 'return' outside function (line 4)"}

    def test_client_without_result(self):
        text = "class ApiClient(ClientBase, Api):\n    pass\n"
        assert "does not set __restbind_result__" in validate_structure({"c.py": text})["c.py"]

    def test_method_must_dispatch_to_itself(self):
        text = (
            "class ApiClient(ClientBase, Api):\n"
            "    __restbind_result__ = _API_RESULT\n"
            "    def a(self, *args, **kwargs):\n"
            "        return self._dispatch('b', args, kwargs)\n"
            "    def c(self):\n"
            "        return None\n"
        )
        message = validate_structure({"c.py": text})["c.py"]
        assert "ApiClient.a dispatches to the wrong method" in message
        assert "ApiClient.c does not dispatch" in message

    def test_structure_skipped_on_syntax_error(self):
        files = {"a.py": "class ApiClient(ClientBase):\n    def (\n"}
        assert validate_structure(files) == {}
        assert list(validate_files(files)) == ["a.py"]

    def test_other_classes_are_ignored(self):
        assert validate_structure({"c.py": "class Helper:\n    def a(self):\n        pass\n"}) == {}
