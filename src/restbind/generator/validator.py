"""Validates generated client modules for syntax and structural correctness."""

import ast

from restbind.generator.source import CLIENT_BASE, RESULT_ATTR


def validate_python(files: dict[str, str]) -> dict[str, str]:
    """Compile each rendered client module and report the first error per file.

    Compiling catches what parsing alone lets through, such as ``return``
    outside a function. Only ``.py`` entries with content are checked.
    """
    errors = {}
    for filename, content in files.items():
        if not filename.endswith(".py") or not content.strip():
            continue
        try:
            compile(content, filename, "exec", dont_inherit=True)
        except SyntaxError as e:
            errors[filename] = f"SyntaxError: {e.msg} (line {e.lineno})"
    return errors


def _client_problems(node: ast.ClassDef) -> list[str]:
    problems = []
    assigned = {
        target.id
        for stmt in node.body
        if isinstance(stmt, ast.Assign)
        for target in stmt.targets
        if isinstance(target, ast.Name)
    }
    if RESULT_ATTR not in assigned:
        problems.append(f"{node.name} does not set {RESULT_ATTR}")

    for stmt in node.body:
        if not isinstance(stmt, ast.FunctionDef):
            continue
        calls = [
            call
            for call in ast.walk(stmt)
            if isinstance(call, ast.Call)
            and isinstance(call.func, ast.Attribute)
            and call.func.attr == "_dispatch"
        ]
        if not calls:
            problems.append(f"{node.name}.{stmt.name} does not dispatch")
            continue
        first = calls[0].args[0] if calls[0].args else None
        if not (isinstance(first, ast.Constant) and first.value == stmt.name):
            problems.append(f"{node.name}.{stmt.name} dispatches to the wrong method")
    return problems


def validate_structure(files: dict[str, str]) -> dict[str, str]:
    """Check that every client class is bound and every method dispatches.

    Files with syntax errors are skipped; ``validate_python`` reports them.
    """
    errors = {}
    for filename, content in files.items():
        if not filename.endswith(".py"):
            continue
        try:
            tree = ast.parse(content, filename=filename)
        except SyntaxError:
            continue
        problems = []
        for node in ast.walk(tree):
            if not isinstance(node, ast.ClassDef):
                continue
            if any(isinstance(b, ast.Name) and b.id == CLIENT_BASE for b in node.bases):
                problems.extend(_client_problems(node))
        if problems:
            errors[filename] = "; ".join(problems)
    return errors


def validate_files(files: dict[str, str]) -> dict[str, str]:
    """Syntax first, then client structure once every module compiles.

    Maps each failing file name to its error message.
    """
    errors = validate_python(files)
    if not errors:
        errors.update(validate_structure(files))
    return errors
