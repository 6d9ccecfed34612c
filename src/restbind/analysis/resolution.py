"""Rules shared by the validator and the assembler.

Both need the same answer to "which template does this method use", "which
key does this binding have" and "which serialization applies", so the
answers live here.
"""

import re

from restbind.analysis.base import MethodModel, ParameterModel, PropertyModel, TypeModel
from restbind.declarations import (
    BodySerializationMethod,
    PathSerializationMethod,
    QuerySerializationMethod,
)

PLACEHOLDER = re.compile(r"\{([^{}]+)\}")

_DEFAULTS = {
    "body": BodySerializationMethod.DEFAULT,
    "query": QuerySerializationMethod.TO_STRING,
    "path": PathSerializationMethod.TO_STRING,
}


def is_absolute(template: str) -> bool:
    return template.startswith("/") or "://" in template


def join_template(base: str, path: str) -> str:
    if not base:
        return path
    if not path:
        return base
    return base.rstrip("/") + "/" + path.lstrip("/")


def effective_template(type_model: TypeModel, method: MethodModel) -> str:
    """Method path, prefixed with the base path unless it is absolute."""
    path = method.request.declaration.path if method.request else ""
    if is_absolute(path) or type_model.base_path is None:
        return path
    return join_template(type_model.base_path.declaration.template, path)


def placeholders(template: str) -> list[str]:
    """Placeholder names in order of appearance, case preserved."""
    return PLACEHOLDER.findall(template)


def parameter_key(parameter: ParameterModel) -> str:
    """The wire name of a parameter's binding (path, query or header)."""
    for attr in (parameter.path, parameter.query, parameter.header):
        if attr is not None:
            name = getattr(attr.declaration, "name", None)
            return name or parameter.name
    return parameter.name


def property_key(prop: PropertyModel) -> str:
    for attr in (prop.path, prop.query, prop.header):
        if attr is not None:
            return attr.declaration.name or prop.name
    return prop.name


def message_property_key(member: ParameterModel | PropertyModel) -> str:
    attr = member.http_request_message_property
    return (attr.declaration.key if attr is not None else None) or member.name


def resolve_allow_any_status_code(type_model: TypeModel, method: MethodModel) -> bool:
    """Method first, then its declaring interface, the primary one, the rest."""
    if method.allow_any_status_code is not None:
        return method.allow_any_status_code.declaration.allow
    order = [method.declared_on, type_model.name, *type_model.interfaces]
    for interface in order:
        if interface is None:
            continue
        declaration = type_model.allow_any_status_code_for(interface)
        if declaration is not None:
            return declaration.allow
    return False


def resolve_serialization(type_model: TypeModel, method: MethodModel, channel: str, declared=None):
    """Most specific wins: the binding, the method, the type, then the default.

    ``channel`` is one of ``body``, ``query`` or ``path``.
    """
    if declared is not None:
        return declared
    for attr in (method.serialization_methods, type_model.serialization_methods):
        if attr is not None:
            value = getattr(attr.declaration, channel)
            if value is not None:
                return value
    return _DEFAULTS[channel]
