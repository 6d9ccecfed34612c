"""Interfaces analyzed both as loaded classes and as source text."""

from typing import Annotated, Any, Optional

import requests
from pydantic import BaseModel

from restbind.cancellation import CancellationToken
from restbind.declarations import (
    Body,
    BodySerializationMethod,
    Disposable,
    Header,
    HttpRequestMessageProperty,
    Path,
    Query,
    QueryMap,
    RawQueryString,
    allow_any_status_code,
    base_path,
    delete,
    get,
    header,
    post,
    serialization_methods,
)
from restbind.engine.requester import ApiResponse, Requester


class User(BaseModel):
    login: str
    id: int
    name: str | None = None


class Repository(BaseModel):
    name: str
    private: bool = False


@header("User-Agent: restbind-tests")
@header("Accept: application/vnd.github+json")
class ApiBase(Disposable):
    api_version: Annotated[str | None, Header("X-GitHub-Api-Version", "2022-11-28")] = None

    @property
    def requester(self) -> Requester: ...


@base_path("users/{owner}")
class GitHubApi(ApiBase):
    owner: Annotated[str, Path()]

    @get("")
    def get_user(self) -> User: ...

    @get("repos")
    def list_repos(
        self,
        visibility: Annotated[str | None, Query()] = None,
        sort: Optional[str] = None,
        page_size: Annotated[int, Query("per_page")] = 30,
    ) -> list[Repository]: ...

    @get("/repos/{owner}/{repo}")
    def get_repo(self, repo: Annotated[str, Path()]) -> ApiResponse[Repository]: ...

    @post("/user/repos")
    @header("Content-Type: application/json")
    def create_repo(
        self,
        repository: Annotated[Repository, Body()],
        cancellation: CancellationToken | None = None,
    ) -> Repository: ...

    @delete("/repos/{owner}/{repo}")
    @allow_any_status_code
    def delete_repo(self, repo: Annotated[str, Path()]) -> requests.Response: ...

    @get("/search/repositories")
    @header("Accept")
    def search(
        self,
        q: str,
        filters: Annotated[dict[str, Any] | None, QueryMap()] = None,
        raw: Annotated[str | None, RawQueryString()] = None,
    ) -> str: ...

    @post("/markdown")
    @serialization_methods(body=BodySerializationMethod.URL_ENCODED)
    def render(
        self,
        form: Annotated[dict[str, Any], Body()],
        trace_id: Annotated[str | None, Header("X-Trace")] = None,
        timeout: Annotated[float | None, HttpRequestMessageProperty()] = None,
    ) -> None: ...
