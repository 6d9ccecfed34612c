"""Interfaces with declaration errors, for validator and CLI tests."""

from typing import Annotated

from restbind.declarations import Path, get, post


class ItemsApi:
    @get("items/{id}")
    def get_item(self, item_id: Annotated[int, Path()]) -> dict: ...

    @get("items")
    def list_items(self) -> list[dict]: ...

    def count_items(self) -> int: ...

    @get("items")
    @post("items")
    def save_item(self) -> None: ...


class _HiddenApi:
    @get("hidden")
    def get_hidden(self) -> str: ...
