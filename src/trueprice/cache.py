"""Cache backends (JSON file, Memory) and TTL caches layered on top of them."""

from __future__ import annotations

import json
import logging
import shutil
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Generic, TypeVar
from urllib.parse import quote

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_epoch_ms(ts: datetime) -> int:
    return int(ts.timestamp() * 1000)


def from_epoch_ms(ms: float) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


class CacheStore(ABC):
    """Abstract key/value store holding JSON-serializable values.

    Stores never expire anything; callers embed their own timestamps.
    """

    @abstractmethod
    def read(self, key: str, fallback: Any = None) -> Any:
        """Return the stored value, or ``fallback`` on a miss or any error."""
        ...

    @abstractmethod
    def write(self, key: str, value: Any) -> None:
        """Serialize and persist ``value``. Failures are logged, not raised."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def clear_all(self) -> None:
        ...


class NoStore(CacheStore):
    """No-op store — always misses."""

    def read(self, key, fallback=None):  # type: ignore[override]
        return fallback

    def write(self, key, value):  # type: ignore[override]
        pass

    def delete(self, key):  # type: ignore[override]
        pass

    def clear_all(self):
        pass


class JsonFileStore(CacheStore):
    """Disk-based store, one JSON document per key.

    Storage layout: ``{base_path}/{quoted key}.json``
    """

    def __init__(self, base_path: Path | str) -> None:
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _file_path(self, key: str) -> Path:
        return self.base_path / f"{quote(key, safe='._-')}.json"

    def read(self, key: str, fallback: Any = None) -> Any:
        fp = self._file_path(key)
        try:
            return json.loads(fp.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return fallback
        except Exception:  # noqa: BLE001
            logger.debug("Unreadable cache entry %s", fp)
            return fallback

    def write(self, key: str, value: Any) -> None:
        fp = self._file_path(key)
        try:
            fp.write_text(json.dumps(value), encoding="utf-8")
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Dropped cache write for %s: %s", key, exc)

    def delete(self, key: str) -> None:
        try:
            self._file_path(key).unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not delete cache entry %s: %s", key, exc)

    def clear_all(self) -> None:
        for f in self.base_path.iterdir():
            if f.is_dir():
                shutil.rmtree(f)
            elif f.suffix == ".json":
                f.unlink()


class MemoryStore(CacheStore):
    """In-process store keeping serialized JSON text per key."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    def read(self, key: str, fallback: Any = None) -> Any:
        raw = self._store.get(key)
        if raw is None:
            return fallback
        try:
            return json.loads(raw)
        except ValueError:
            return fallback

    def write(self, key: str, value: Any) -> None:
        try:
            self._store[key] = json.dumps(value)
        except (TypeError, ValueError) as exc:
            logger.warning("Dropped cache write for %s: %s", key, exc)

    def delete(self, key: str) -> None:
        self._store.pop(key, None)

    def clear_all(self) -> None:
        self._store.clear()

    def keys(self) -> list[str]:
        return list(self._store)


def create_store(backend: str, cache_dir: Path | str = "data/cache") -> CacheStore:
    """Build a store from a backend name: "json", "memory" or "none"."""
    if backend == "json":
        return JsonFileStore(cache_dir)
    if backend == "memory":
        return MemoryStore()
    return NoStore()


# ---------------------------------------------------------------- TTL caches


class TimedCache(Generic[K, V]):
    """Typed read-through helper with a freshness window.

    Each cache key maps to its own storage key holding
    ``{"at": <epoch ms>, "data": <encoded value>}``.

    Args:
        store: Backing store.
        ttl: Entries strictly younger than this are fresh.
        key_fn: Maps a cache key to its storage key.
        encode: Value -> JSON-compatible data.
        decode: JSON-compatible data -> value.
        clock: Returns the current aware datetime.
    """

    def __init__(
        self,
        store: CacheStore,
        ttl: timedelta,
        key_fn: Callable[[K], str],
        encode: Callable[[V], Any],
        decode: Callable[[Any], V],
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.ttl = ttl
        self.key_fn = key_fn
        self.encode = encode
        self.decode = decode
        self.clock = clock

    def is_fresh(self, captured_at: datetime) -> bool:
        return self.clock() - captured_at < self.ttl

    def peek(self, key: K) -> tuple[datetime, V] | None:
        """Return ``(captured_at, value)`` regardless of age, or None."""
        raw = self._load(key)
        if not isinstance(raw, dict) or "at" not in raw or "data" not in raw:
            return None
        try:
            return from_epoch_ms(float(raw["at"])), self.decode(raw["data"])
        except (KeyError, TypeError, ValueError, OverflowError):
            return None

    def get(self, key: K) -> V | None:
        """Return the value if present and fresh, else None."""
        entry = self.peek(key)
        if entry is None:
            return None
        captured_at, value = entry
        if not self.is_fresh(captured_at):
            return None
        return value

    def put(self, key: K, value: V) -> datetime:
        """Store ``value`` stamped with the current time; returns the stamp."""
        now = self.clock()
        self._save(key, {"at": to_epoch_ms(now), "data": self.encode(value)})
        return now

    # ---- storage layout ----

    def _load(self, key: K) -> Any:
        return self.store.read(self.key_fn(key), None)

    def _save(self, key: K, record: dict[str, Any]) -> None:
        self.store.write(self.key_fn(key), record)


class SharedTimedCache(TimedCache[K, V]):
    """TimedCache keeping every entry in one blob under ``storage_key``.

    Writes read the blob, replace one entry and write it back; concurrent
    writers race and the last write wins.
    """

    def __init__(
        self,
        store: CacheStore,
        storage_key: str,
        ttl: timedelta,
        encode: Callable[[V], Any],
        decode: Callable[[Any], V],
        key_fn: Callable[[K], str] = str,
        clock: Clock = utc_now,
    ) -> None:
        super().__init__(store, ttl, key_fn, encode, decode, clock)
        self.storage_key = storage_key

    def _blob(self) -> dict[str, Any]:
        blob = self.store.read(self.storage_key, {})
        return blob if isinstance(blob, dict) else {}

    def _load(self, key: K) -> Any:
        return self._blob().get(self.key_fn(key))

    def _save(self, key: K, record: dict[str, Any]) -> None:
        blob = self._blob()
        blob[self.key_fn(key)] = record
        self.store.write(self.storage_key, blob)
