"""Source-emitting generation back-end.

Renders a Python module holding one client class per analyzed interface.
The analysis result is embedded as JSON, so importing the generated module
does not analyze anything; binding happens in ``ClientBase``.
"""

from restbind.analysis.base import MethodModel
from restbind.analysis.resolution import effective_template
from restbind.analysis.validator import AnalysisResult

CLIENT_BASE = "ClientBase"
RESULT_ATTR = "__restbind_result__"


def client_name(interface_name: str) -> str:
    return interface_name.replace(".", "") + "Client"


def _constant_name(interface_name: str) -> str:
    chars = []
    for i, char in enumerate(interface_name.replace(".", "_")):
        if char.isupper() and i and interface_name[i - 1] not in "._":
            chars.append("_")
        chars.append(char.upper())
    return "_" + "".join(chars) + "_RESULT"


class ClientModuleRenderer:
    def __init__(self, results: list[AnalysisResult], module: str):
        self.results = [r for r in results if r.type_model is not None]
        self.skipped = [r for r in results if r.type_model is None]
        self.module = module

    def _render_header(self) -> str:
        return f'''"""Clients generated by restbind from {self.module}. Do not edit."""

from restbind.analysis.validator import AnalysisResult
from restbind.generator.runtime import {CLIENT_BASE}
'''

    def _render_imports(self) -> str:
        roots = []
        for result in self.results:
            root = result.type_model.name.split(".")[0]
            if root not in roots:
                roots.append(root)
        if not roots:
            return ""
        return f"from {self.module} import {', '.join(roots)}\n"

    def _render_result(self, result: AnalysisResult) -> str:
        payload = result.model_dump_json()
        return f"{_constant_name(result.type_model.name)} = AnalysisResult.model_validate_json(\n    {payload!r}\n)\n"

    def _render_method(self, result: AnalysisResult, method: MethodModel) -> str:
        request = method.request.declaration
        template = effective_template(result.type_model, method)
        return f'''    def {method.name}(self, *args, **kwargs):
        """{request.method} {template}"""
        return self._dispatch({method.name!r}, args, kwargs)
'''

    def _render_client(self, result: AnalysisResult) -> str:
        model = result.type_model
        lines = [
            f"class {client_name(model.name)}({CLIENT_BASE}, {model.name}):",
            f"    __restbind_interface__ = {model.name}",
            f"    {RESULT_ATTR} = {_constant_name(model.name)}",
        ]
        methods = [
            self._render_method(result, method)
            for method in model.methods
            if not method.is_dispose_method and method.name not in result.failed_members
        ]
        return "\n".join(lines) + "\n" + "".join("\n" + m for m in methods)

    def _render_skipped(self) -> str:
        if not self.skipped:
            return ""
        lines = ["# Interfaces with type-level errors, not generated:"]
        lines += [f"#   {d.format()}" for r in self.skipped for d in r.fatal]
        return "\n".join(lines) + "\n"

    def render(self) -> str:
        parts = [self._render_header(), self._render_imports()]
        skipped = self._render_skipped()
        if skipped:
            parts.append(skipped)
        for result in self.results:
            parts.append("\n" + self._render_result(result))
        for result in self.results:
            parts.append("\n\n" + self._render_client(result))
        return "".join(parts)


def render_client_module(results: list[AnalysisResult], module: str) -> str:
    """Python source for a module of clients over the interfaces in ``module``."""
    return ClientModuleRenderer(results, module).render()
