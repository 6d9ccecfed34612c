"""Reading declarations out of annotation and decorator syntax trees.

Used by the source backend for everything, and by the runtime backend for
annotations that stay unevaluated strings.
"""

import ast

from restbind.analysis.typenames import node_base_name
from restbind.declarations import MARKERS, SERIALIZATION_ENUMS, RawDeclaration, SourceLocation


class LiteralError(ValueError):
    pass


def read_literal(node: ast.expr):
    """Evaluate a declaration argument written in source."""
    try:
        return ast.literal_eval(node)
    except ValueError:
        pass
    if isinstance(node, ast.Attribute):
        enum_cls = SERIALIZATION_ENUMS.get(node_base_name(node.value) or "")
        if enum_cls is not None and node.attr in enum_cls.__members__:
            return enum_cls[node.attr]
    raise LiteralError(f"{ast.unparse(node)!r} is not a constant")


def raw_declaration(kind: str, leading: tuple, call: ast.Call | None, location: SourceLocation) -> RawDeclaration:
    args, kwargs, problems = list(leading), {}, []
    if call is not None:
        for node in call.args:
            try:
                args.append(read_literal(node))
            except LiteralError as e:
                problems.append(str(e))
        for keyword in call.keywords:
            if keyword.arg is None:
                problems.append("**kwargs cannot be used in a declaration")
                continue
            try:
                kwargs[keyword.arg] = read_literal(keyword.value)
            except LiteralError as e:
                problems.append(str(e))
    return RawDeclaration(
        kind=kind,
        args=tuple(args),
        kwargs=kwargs,
        invalid_reason="; ".join(problems) or None,
        location=location,
    )


def split_call(node: ast.expr) -> tuple[str | None, ast.Call | None]:
    if isinstance(node, ast.Call):
        return node_base_name(node.func), node
    return node_base_name(node), None


def marker_declarations(annotation: ast.expr | None, location: SourceLocation) -> list[RawDeclaration]:
    """Markers in ``Annotated[T, Marker(...), ...]``."""
    if not isinstance(annotation, ast.Subscript) or node_base_name(annotation.value) != "Annotated":
        return []
    if not isinstance(annotation.slice, ast.Tuple):
        return []
    declarations = []
    for item in annotation.slice.elts[1:]:
        name, call = split_call(item)
        if name in MARKERS:
            declarations.append(raw_declaration(MARKERS[name], (), call, location))
    return declarations


def marker_declarations_from_string(text: str, location: SourceLocation) -> list[RawDeclaration]:
    try:
        tree = ast.parse(text, mode="eval")
    except SyntaxError:
        return []
    return marker_declarations(tree.body, location)
