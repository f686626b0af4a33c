"""Key-value storage protocol used for the response cache and usage stats."""

from __future__ import annotations

from typing import Protocol


class KeyValueStore(Protocol):
    """
    Durable string key-value storage.

    Values are serialized records (JSON text). Writes replace the whole value
    for a key; implementations raise StorageError when a write would exceed
    their quota.
    """

    async def init(self) -> None:
        ...

    async def get(self, key: str) -> str | None:
        ...

    async def set(self, key: str, value: str) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def keys(self, prefix: str = "") -> list[str]:
        ...
