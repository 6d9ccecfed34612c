"""Structured diagnostics produced by analysis and validation."""

from enum import Enum

from pydantic import BaseModel, ConfigDict

from restbind.declarations import SourceLocation


class DiagnosticCode(str, Enum):
    INACCESSIBLE_INTERFACE = "RB0001"
    MALFORMED_DECLARATION = "RB0002"
    UNSUPPORTED_DECLARATION_SCOPE = "RB0003"
    DUPLICATE_DECLARATION = "RB0004"
    MISSING_REQUEST_DECLARATION = "RB0101"
    MULTIPLE_REQUEST_DECLARATIONS = "RB0102"
    MISSING_PATH_PARAMETER = "RB0103"
    MISSING_PATH_PLACEHOLDER = "RB0104"
    MULTIPLE_PATH_PARAMETERS_FOR_KEY = "RB0105"
    MULTIPLE_BINDINGS_ON_PARAMETER = "RB0106"
    MULTIPLE_BODY_PARAMETERS = "RB0107"
    MULTIPLE_CANCELLATION_PARAMETERS = "RB0108"
    CANCELLATION_PARAMETER_HAS_DECLARATIONS = "RB0109"
    VARIADIC_PARAMETER = "RB0110"
    HEADER_PARAMETER_HAS_VALUE = "RB0111"
    DUPLICATE_HTTP_REQUEST_MESSAGE_PROPERTY = "RB0112"
    PROPERTY_MUST_HAVE_GETTER_AND_SETTER = "RB0201"
    PROPERTY_MUST_HAVE_ONE_DECLARATION = "RB0202"
    REQUESTER_PROPERTY_MUST_BE_READ_ONLY = "RB0203"
    MULTIPLE_REQUESTER_PROPERTIES = "RB0204"
    REDUNDANT_DECLARATION = "RB0901"
    UNUSED_DECLARATION = "RB0902"


class Diagnostic(BaseModel):
    """One finding. ``member`` is None for type-level diagnostics."""

    model_config = ConfigDict(frozen=True)

    code: DiagnosticCode
    message: str
    fatal: bool = True
    member: str | None = None
    location: SourceLocation | None = None

    @property
    def is_type_level(self) -> bool:
        return self.member is None

    def format(self) -> str:
        where = f"{self.location}: " if self.location else ""
        return f"{where}{self.code.value} {self.code.name.lower()}: {self.message}"


def error(
    code: DiagnosticCode,
    message: str,
    *,
    member: str | None = None,
    location: SourceLocation | None = None,
) -> Diagnostic:
    return Diagnostic(code=code, message=message, fatal=True, member=member, location=location)


def info(
    code: DiagnosticCode,
    message: str,
    *,
    member: str | None = None,
    location: SourceLocation | None = None,
) -> Diagnostic:
    return Diagnostic(code=code, message=message, fatal=False, member=member, location=location)
