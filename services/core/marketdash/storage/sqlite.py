import os
import time

import aiosqlite

from ..errors import StorageError


CREATE_SQL = """
CREATE TABLE IF NOT EXISTS kv (
  key TEXT NOT NULL PRIMARY KEY,
  value TEXT NOT NULL,
  updated_at REAL NOT NULL
);
"""


class SQLiteStore:
  """
  KeyValueStore persisted in a single SQLite table.

  Every aiosqlite failure (locked database, disk full, unopenable file)
  surfaces as StorageError.
  """

  def __init__(self, path: str, max_bytes: int = 0):
    self.path = path
    self.max_bytes = max_bytes  # UTF-8 encoded size of all values; 0 = no quota

  async def init(self) -> None:
    directory = os.path.dirname(self.path)
    if directory:
      os.makedirs(directory, exist_ok=True)
    try:
      async with aiosqlite.connect(self.path) as db:
        await db.execute(CREATE_SQL)
        await db.commit()
    except aiosqlite.Error as e:
      raise StorageError(f"Could not initialize {self.path}: {e}") from e

  async def get(self, key: str) -> str | None:
    try:
      async with aiosqlite.connect(self.path) as db:
        cur = await db.execute("SELECT value FROM kv WHERE key=?;", (key,))
        row = await cur.fetchone()
        return row[0] if row else None
    except aiosqlite.Error as e:
      raise StorageError(f"SQLite read of {key!r} failed: {e}") from e

  async def set(self, key: str, value: str) -> None:
    try:
      async with aiosqlite.connect(self.path) as db:
        if self.max_bytes:
          cur = await db.execute(
            "SELECT COALESCE(SUM(LENGTH(CAST(value AS BLOB))), 0) FROM kv WHERE key != ?;",
            (key,),
          )
          (used,) = await cur.fetchone()
          size = len(value.encode("utf-8"))
          if used + size > self.max_bytes:
            raise StorageError(
              f"Storage quota exceeded writing {key!r}: "
              f"{used + size} > {self.max_bytes} bytes"
            )
        await db.execute(
          """
          INSERT INTO kv (key, value, updated_at)
          VALUES (?, ?, ?)
          ON CONFLICT(key) DO UPDATE SET
            value=excluded.value,
            updated_at=excluded.updated_at;
          """,
          (key, value, time.time()),
        )
        await db.commit()
    except aiosqlite.Error as e:
      raise StorageError(f"SQLite write of {key!r} failed: {e}") from e

  async def delete(self, key: str) -> None:
    try:
      async with aiosqlite.connect(self.path) as db:
        await db.execute("DELETE FROM kv WHERE key=?;", (key,))
        await db.commit()
    except aiosqlite.Error as e:
      raise StorageError(f"SQLite delete of {key!r} failed: {e}") from e

  async def keys(self, prefix: str = "") -> list[str]:
    """
    List stored keys, optionally restricted to a prefix.

    Args:
        prefix: Only return keys starting with this string

    Returns:
        Keys in ascending order
    """
    try:
      async with aiosqlite.connect(self.path) as db:
        if prefix:
          cur = await db.execute(
            "SELECT key FROM kv WHERE substr(key, 1, ?) = ? ORDER BY key;",
            (len(prefix), prefix),
          )
        else:
          cur = await db.execute("SELECT key FROM kv ORDER BY key;")
        rows = await cur.fetchall()
        return [row[0] for row in rows]
    except aiosqlite.Error as e:
      raise StorageError(f"SQLite key listing failed: {e}") from e
