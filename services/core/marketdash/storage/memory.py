"""In-process KeyValueStore, used for tests and ephemeral deployments."""

from __future__ import annotations

from ..errors import StorageError


def _size(value: str) -> int:
    return len(value.encode("utf-8"))


class MemoryStore:
    """Dict-backed store with the same optional byte quota as SQLiteStore."""

    def __init__(self, max_bytes: int = 0):
        self.max_bytes = max_bytes
        self._data: dict[str, str] = {}

    async def init(self) -> None:
        return None

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        if self.max_bytes:
            used = sum(_size(v) for k, v in self._data.items() if k != key)
            if used + _size(value) > self.max_bytes:
                raise StorageError(
                    f"Storage quota exceeded writing {key!r}: "
                    f"{used + _size(value)} > {self.max_bytes} bytes"
                )
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))
