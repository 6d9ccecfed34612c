"""Type-name normalization shared by the runtime and source backends.

Runtime annotations and source annotations are both reduced to the same
short spelling (``list[User] | None``), so that the two backends produce
value-identical models.
"""

import ast
import types
import typing
from typing import Any, Annotated, Union, get_args, get_origin

from restbind.analysis.base import ResponseShape

_ALIASES = {
    "List": "list",
    "Dict": "dict",
    "Tuple": "tuple",
    "Set": "set",
    "FrozenSet": "frozenset",
    "Type": "type",
    "NoneType": "None",
}

STREAM_TYPE_NAMES = frozenset(
    {
        "bytes",
        "bytearray",
        "memoryview",
        "IO",
        "IO[bytes]",
        "BinaryIO",
        "IOBase",
        "RawIOBase",
        "BufferedIOBase",
        "BufferedReader",
        "BytesIO",
    }
)

STRING_TYPE_NAME = "str"
RAW_RESPONSE_TYPE_NAME = "Response"
WITH_METADATA_TYPE_NAME = "ApiResponse"
CANCELLATION_TYPE_NAME = "CancellationToken"
REQUESTER_TYPE_NAME = "Requester"


def strip_optional(type_name: str | None) -> str | None:
    """``Foo | None`` -> ``Foo``."""
    if type_name is None:
        return None
    parts = [part for part in _split_top_level(type_name, "|") if part != "None"]
    return " | ".join(parts) if parts else "None"


def _split_top_level(text: str, separator: str) -> list[str]:
    parts, depth, current = [], 0, []
    for char in text:
        if char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
        if char == separator and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    parts.append("".join(current).strip())
    return parts


# -- source ---------------------------------------------------------------------


def _subscript_args(node: ast.expr) -> list[ast.expr]:
    if isinstance(node, ast.Tuple):
        return list(node.elts)
    return [node]


def node_base_name(node: ast.expr) -> str | None:
    """Last dotted segment of a Name/Attribute node (``typing.IO`` -> ``IO``)."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return None


def annotation_from_node(node: ast.expr | None) -> str | None:
    """Normalized spelling of a source annotation."""
    if node is None:
        return None
    if isinstance(node, ast.Constant):
        if node.value is None:
            return "None"
        if isinstance(node.value, str):
            return annotation_from_string(node.value)
        return repr(node.value)
    if isinstance(node, (ast.Name, ast.Attribute)):
        name = node_base_name(node)
        return _ALIASES.get(name, name)
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return f"{annotation_from_node(node.left)} | {annotation_from_node(node.right)}"
    if isinstance(node, ast.Subscript):
        base = node_base_name(node.value)
        args = _subscript_args(node.slice)
        if base == "Annotated":
            return annotation_from_node(args[0])
        if base == "Optional":
            return f"{annotation_from_node(args[0])} | None"
        if base == "Union":
            return " | ".join(annotation_from_node(a) for a in args)
        if isinstance(node.slice, ast.Tuple) and not node.slice.elts:
            return f"{_ALIASES.get(base, base)}[()]"
        inner = ", ".join(annotation_from_node(a) for a in args)
        return f"{_ALIASES.get(base, base)}[{inner}]"
    if isinstance(node, ast.List):
        return "[" + ", ".join(annotation_from_node(a) for a in node.elts) + "]"
    return ast.unparse(node)


def annotation_from_string(text: str) -> str:
    try:
        tree = ast.parse(text, mode="eval")
    except SyntaxError:
        return text
    return annotation_from_node(tree.body)


# -- runtime --------------------------------------------------------------------


def strip_annotated(annotation: Any) -> tuple[Any, tuple[Any, ...]]:
    """Split ``Annotated[T, *metadata]`` into ``(T, metadata)``."""
    if get_origin(annotation) is Annotated:
        args = get_args(annotation)
        return args[0], tuple(args[1:])
    return annotation, ()


def annotation_from_object(annotation: Any) -> str | None:
    """Normalized spelling of a runtime annotation object."""
    if annotation is None or annotation is type(None):
        return "None"
    if isinstance(annotation, str):
        return annotation_from_string(annotation)
    if isinstance(annotation, typing.ForwardRef):
        return annotation_from_string(annotation.__forward_arg__)

    annotation, _ = strip_annotated(annotation)
    origin = get_origin(annotation)
    if origin is Union or origin is getattr(types, "UnionType", None):
        return " | ".join(annotation_from_object(a) for a in get_args(annotation))
    if origin is not None:
        args = get_args(annotation)
        base = _object_name(origin)
        if not args:
            return base
        return f"{base}[{', '.join(annotation_from_object(a) for a in args)}]"
    if isinstance(annotation, list):
        return "[" + ", ".join(annotation_from_object(a) for a in annotation) + "]"
    return _object_name(annotation)


def _object_name(obj: Any) -> str:
    name = getattr(obj, "__name__", None) or getattr(obj, "_name", None)
    if name is None:
        return repr(obj)
    return _ALIASES.get(name, name)


# -- response shape ------------------------------------------------------------


def classify_response(type_name: str | None) -> tuple[ResponseShape, str | None]:
    """Map a return annotation to the response shape and the payload type."""
    if type_name is None:
        return ResponseShape.DESERIALIZE, "Any"
    if type_name == "None":
        return ResponseShape.VOID, None
    if type_name == STRING_TYPE_NAME:
        return ResponseShape.RAW_STRING, None
    if type_name == RAW_RESPONSE_TYPE_NAME:
        return ResponseShape.RAW_RESPONSE, None
    prefix = WITH_METADATA_TYPE_NAME + "["
    if type_name.startswith(prefix) and type_name.endswith("]"):
        return ResponseShape.DESERIALIZE_WITH_METADATA, type_name[len(prefix):-1]
    if type_name == WITH_METADATA_TYPE_NAME:
        return ResponseShape.DESERIALIZE_WITH_METADATA, "Any"
    return ResponseShape.DESERIALIZE, type_name
