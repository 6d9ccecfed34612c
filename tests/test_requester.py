from unittest.mock import MagicMock

import pytest
import requests
from pydantic import BaseModel

from restbind.analysis.base import ResponseShape
from restbind.cancellation import CancellationToken
from restbind.config import ClientConfig
from restbind.engine.requester import ApiResponse, Requester, RequestsRequester, join_url
from restbind.errors import ApiError, RequestCancelledError
from restbind.request.descriptor import BodyKind, BodyPayload, RequestDescriptor


class Repo(BaseModel):
    name: str


def _response(status=200, content=b"", url="https://api.example.com/x", reason="OK"):
    response = requests.Response()
    response.status_code = status
    response._content = content
    response.url = url
    response.reason = reason
    response.encoding = "utf-8"
    response.request = requests.Request("GET", url).prepare()
    return response


@pytest.fixture
def session():
    session = MagicMock()
    session.headers = {}
    session.request.return_value = _response(content=b'{"name": "r"}')
    return session


@pytest.fixture
def requester(session):
    return RequestsRequester("https://api.example.com/v1/", session=session, config=ClientConfig(timeout=10))


def _sent(session):
    args, kwargs = session.request.call_args
    return args, kwargs


class TestJoinUrl:
    @pytest.mark.parametrize(
        "base, path, expected",
        [
            ("https://a.com/v1/", "/users", "https://a.com/v1/users"),
            ("https://a.com/v1", "users", "https://a.com/v1/users"),
            ("https://a.com", "", "https://a.com"),
            ("https://a.com", "https://b.com/x", "https://b.com/x"),
            (None, "/users", "/users"),
        ],
    )
    def test_join(self, base, path, expected):
        assert join_url(base, path) == expected


class TestRequestsRequester:
    def test_satisfies_protocol(self, requester):
        assert isinstance(requester, Requester)

    def test_url_headers_and_options(self, requester, session):
        descriptor = RequestDescriptor(
            method="GET",
            path="repos",
            query=[("q", "a b")],
            raw_query=["x=%2F"],
            headers=[("Accept", "text/html"), ("accept", "application/json")],
            properties={"timeout": 2, "trace": "ignored"},
        )
        requester.request(descriptor)

        (method, url), kwargs = _sent(session)
        assert method == "GET"
        assert url == "https://api.example.com/v1/repos?q=a+b&x=%2F"
        assert kwargs["headers"]["ACCEPT"] == "text/html, application/json"
        assert kwargs["timeout"] == 2
        assert kwargs["allow_redirects"] is True
        assert "trace" not in kwargs
        assert kwargs["data"] is None

    def test_body_content_type(self, requester, session):
        descriptor = RequestDescriptor(
            method="POST",
            path="repos",
            body=BodyPayload(BodyKind.SERIALIZED, '{"name":"r"}', "application/json; charset=utf-8"),
        )
        requester.request(descriptor)

        _, kwargs = _sent(session)
        assert kwargs["data"] == b'{"name":"r"}'
        assert kwargs["headers"]["Content-Type"] == "application/json; charset=utf-8"

    def test_declared_content_type_wins(self, requester, session):
        descriptor = RequestDescriptor(
            method="POST",
            path="repos",
            headers=[("content-type", "application/vnd.custom")],
            body=BodyPayload(BodyKind.STRING, "text", "text/plain; charset=utf-8"),
        )
        requester.request(descriptor)
        assert _sent(session)[1]["headers"]["Content-Type"] == "application/vnd.custom"

    def test_deserializes_by_shape(self, requester):
        descriptor = RequestDescriptor(
            method="GET", path="r", response_shape=ResponseShape.DESERIALIZE, response_type=Repo
        )
        assert requester.request(descriptor) == Repo(name="r")

        descriptor.response_shape = ResponseShape.DESERIALIZE_WITH_METADATA
        result = requester.request(descriptor)
        assert isinstance(result, ApiResponse)
        assert result.content == Repo(name="r")
        assert result.status_code == 200
        assert result.ok

        descriptor.response_shape = ResponseShape.RAW_STRING
        assert requester.request(descriptor) == '{"name": "r"}'

        descriptor.response_shape = ResponseShape.VOID
        assert requester.request(descriptor) is None

    def test_non_success_raises(self, requester, session):
        session.request.return_value = _response(404, b"missing", reason="Not Found")
        with pytest.raises(ApiError) as excinfo:
            requester.request(RequestDescriptor(method="GET", path="x"))
        assert excinfo.value.status_code == 404
        assert excinfo.value.content == "missing"
        assert "404 Not Found" in str(excinfo.value)

    def test_redirect_status_is_not_success(self, requester, session):
        session.request.return_value = _response(304)
        with pytest.raises(ApiError):
            requester.request(RequestDescriptor(method="GET", path="x"))

    def test_allow_any_status_code(self, requester, session):
        session.request.return_value = _response(500, b'{"name": "r"}', reason="Server Error")
        descriptor = RequestDescriptor(
            method="GET",
            path="x",
            allow_any_status_code=True,
            response_shape=ResponseShape.DESERIALIZE_WITH_METADATA,
            response_type=Repo,
        )
        result = requester.request(descriptor)
        assert result.content is None
        assert result.status_code == 500
        with pytest.raises(ApiError):
            result.raise_for_status()

    def test_cancelled_before_send(self, requester, session):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(RequestCancelledError):
            requester.request(RequestDescriptor(method="GET", path="x", cancellation_token=token))
        session.request.assert_not_called()

    def test_cancelled_during_send(self, requester, session):
        token = CancellationToken()

        def send(*args, **kwargs):
            token.cancel()
            return _response()

        session.request.side_effect = send
        with pytest.raises(RequestCancelledError):
            requester.request(RequestDescriptor(method="GET", path="x", cancellation_token=token))

    def test_close_only_owned_session(self, requester, session):
        requester.close()
        session.close.assert_not_called()

    def test_config_defaults(self):
        requester = RequestsRequester(config=ClientConfig(base_url="https://c.example.com", headers={"X-A": "1"}))
        assert requester.base_url == "https://c.example.com"
        assert requester.session.headers["X-A"] == "1"
        requester.close()
