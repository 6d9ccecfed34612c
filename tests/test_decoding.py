from restbind.analysis.base import Scope
from restbind.analysis.decoding import decode
from restbind.analysis.diagnostics import DiagnosticCode
from restbind.declarations import (
    BodySerializationMethod,
    QuerySerializationMethod,
    RawDeclaration,
)


def _raw(kind, *args, **kwargs):
    return RawDeclaration(kind=kind, args=args, kwargs=kwargs)


class TestHeaderDecoding:
    def test_name_and_value(self):
        declaration, diagnostic = decode(_raw("header", "Accept: application/json"), Scope.TYPE)
        assert diagnostic is None
        assert declaration.name == "Accept"
        assert declaration.value == "application/json"

    def test_name_only_removes(self):
        declaration, _ = decode(_raw("header", "Accept"), Scope.METHOD)
        assert declaration.value is None

    def test_empty_value_after_delimiter_sets_empty(self):
        declaration, _ = decode(_raw("header", "Accept:"), Scope.METHOD)
        assert declaration.value == ""

    def test_separate_value_argument(self):
        declaration, _ = decode(_raw("header", "X-Version", "2"), Scope.PROPERTY)
        assert (declaration.name, declaration.value) == ("X-Version", "2")

    def test_whitespace_in_name_is_malformed(self):
        declaration, diagnostic = decode(_raw("header", "Bad Name: x"), Scope.TYPE)
        assert declaration is None
        assert diagnostic.code == DiagnosticCode.MALFORMED_DECLARATION

    def test_non_string_is_malformed(self):
        declaration, diagnostic = decode(_raw("header", 42), Scope.TYPE)
        assert declaration is None
        assert "must be a string" in diagnostic.message


class TestScopes:
    def test_base_path_on_method_is_rejected(self):
        declaration, diagnostic = decode(_raw("base_path", "api"), Scope.METHOD, member="get_user")
        assert declaration is None
        assert diagnostic.code == DiagnosticCode.UNSUPPORTED_DECLARATION_SCOPE
        assert diagnostic.member == "get_user"

    def test_body_on_property_is_rejected(self):
        _, diagnostic = decode(_raw("body"), Scope.PROPERTY)
        assert diagnostic.code == DiagnosticCode.UNSUPPORTED_DECLARATION_SCOPE


class TestArguments:
    def test_request_verb_is_upper_cased(self):
        declaration, _ = decode(_raw("request", "purge", "cache"), Scope.METHOD)
        assert declaration.method == "PURGE"

    def test_too_many_arguments(self):
        _, diagnostic = decode(_raw("request", "GET", "a", "b"), Scope.METHOD)
        assert diagnostic.code == DiagnosticCode.MALFORMED_DECLARATION
        assert "invalid arguments" in diagnostic.message

    def test_enum_by_value_or_member(self):
        declaration, _ = decode(_raw("body", "url_encoded"), Scope.PARAMETER)
        assert declaration.serialization == BodySerializationMethod.URL_ENCODED
        declaration, _ = decode(_raw("query", serialization="SERIALIZED"), Scope.PARAMETER)
        assert declaration.serialization == QuerySerializationMethod.SERIALIZED

    def test_unknown_enum_value(self):
        _, diagnostic = decode(_raw("body", "xml"), Scope.PARAMETER)
        assert "must be one of" in diagnostic.message

    def test_invalid_reason_is_reported(self):
        raw = RawDeclaration(kind="request", args=("GET",), invalid_reason="'PATH' is not a constant")
        declaration, diagnostic = decode(raw, Scope.METHOD)
        assert declaration is None
        assert "not a constant" in diagnostic.message

    def test_allow_any_status_code_requires_bool(self):
        _, diagnostic = decode(_raw("allow_any_status_code", "yes"), Scope.TYPE)
        assert diagnostic.code == DiagnosticCode.MALFORMED_DECLARATION
