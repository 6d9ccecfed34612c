"""Execution engine boundary and the default engine on top of ``requests``.

The engine receives a finished ``RequestDescriptor``; it never sees the
interface model.
"""

import logging
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

import requests
from requests.structures import CaseInsensitiveDict

from restbind.analysis.base import ResponseShape
from restbind.config import ClientConfig
from restbind.errors import ApiError
from restbind.request.descriptor import BodyKind, RequestDescriptor
from restbind.request.serializers import DEFAULT_SERIALIZERS, Serializers

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Out-of-band request properties that map onto ``requests`` keyword arguments.
SEND_OPTIONS = ("timeout", "verify", "allow_redirects", "cert", "proxies")


@runtime_checkable
class Requester(Protocol):
    def request(self, descriptor: RequestDescriptor) -> Any: ...

    def close(self) -> None: ...


@dataclass
class ApiResponse(Generic[T]):
    """Decoded content plus the response it came from."""

    response: requests.Response
    content: T | None = None

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def headers(self):
        return self.response.headers

    @property
    def string_content(self) -> str:
        return self.response.text

    @property
    def ok(self) -> bool:
        return is_success(self.response)

    def raise_for_status(self) -> T | None:
        if not is_success(self.response):
            raise _api_error(self.response)
        return self.content


def is_success(response: requests.Response) -> bool:
    return 200 <= response.status_code < 300


def _api_error(response: requests.Response) -> ApiError:
    request = response.request
    return ApiError(
        method=request.method if request is not None else "",
        url=response.url,
        status_code=response.status_code,
        reason=response.reason,
        content=response.text,
        headers=dict(response.headers),
    )


def join_url(base_url: str | None, path: str) -> str:
    if "://" in path or not base_url:
        return path
    if not path:
        return base_url
    return base_url.rstrip("/") + "/" + path.lstrip("/")


class RequestsRequester:
    """Sends descriptors with a ``requests.Session``."""

    def __init__(
        self,
        base_url: str | None = None,
        session: requests.Session | None = None,
        config: ClientConfig | None = None,
        serializers: Serializers | None = None,
    ):
        self.config = config or ClientConfig()
        self.base_url = base_url if base_url is not None else self.config.base_url
        self._owns_session = session is None
        self.session = session if session is not None else requests.Session()
        if self.config.headers:
            self.session.headers.update(self.config.headers)
        self.serializers = serializers or DEFAULT_SERIALIZERS

    def url_for(self, descriptor: RequestDescriptor) -> str:
        url = join_url(self.base_url, descriptor.path)
        query = descriptor.query_string()
        if query:
            url += ("&" if "?" in url else "?") + query
        return url

    def _headers(self, descriptor: RequestDescriptor) -> CaseInsensitiveDict:
        headers = CaseInsensitiveDict()
        for name, value in descriptor.headers:
            headers[name] = f"{headers[name]}, {value}" if name in headers else value
        body = descriptor.body
        if body is not None and body.content_type and "Content-Type" not in headers:
            headers["Content-Type"] = body.content_type
        return headers

    def _send_options(self, descriptor: RequestDescriptor) -> dict[str, Any]:
        options = {
            "timeout": self.config.timeout,
            "verify": self.config.verify,
            "allow_redirects": self.config.allow_redirects,
        }
        for key in SEND_OPTIONS:
            if descriptor.properties.get(key) is not None:
                options[key] = descriptor.properties[key]
        return options

    @staticmethod
    def _data(descriptor: RequestDescriptor) -> Any:
        body = descriptor.body
        if body is None:
            return None
        if body.kind in (BodyKind.STRING, BodyKind.SERIALIZED) and isinstance(body.content, str):
            return body.content.encode("utf-8")
        return body.content

    def request(self, descriptor: RequestDescriptor) -> Any:
        token = descriptor.cancellation_token
        if token is not None:
            token.raise_if_cancelled()

        url = self.url_for(descriptor)
        logger.debug("Request: %s %s", descriptor.method, url)
        response = self.session.request(
            descriptor.method,
            url,
            headers=self._headers(descriptor),
            data=self._data(descriptor),
            **self._send_options(descriptor),
        )
        logger.debug("Response: %s %s -> %d", descriptor.method, url, response.status_code)

        if token is not None:
            token.raise_if_cancelled()
        if not descriptor.allow_any_status_code and not is_success(response):
            raise _api_error(response)
        return self._decode(descriptor, response)

    def _decode(self, descriptor: RequestDescriptor, response: requests.Response) -> Any:
        shape = descriptor.response_shape
        if shape == ResponseShape.VOID:
            return None
        if shape == ResponseShape.RAW_STRING:
            return response.text
        if shape == ResponseShape.RAW_RESPONSE:
            return response
        content = None
        if is_success(response):
            content = self.serializers.deserialize(response.content, descriptor.response_type)
        if shape == ResponseShape.DESERIALIZE_WITH_METADATA:
            return ApiResponse(response=response, content=content)
        return content

    def close(self) -> None:
        if self._owns_session:
            self.session.close()
