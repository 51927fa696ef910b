"""Content-addressed, bounded caches for decoded, thumbnail and compressed images."""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
import logging
import threading
from typing import Generic, TypeVar

from PIL import Image

from .config import AIConfig, ImageCacheConfig
from .imaging import ImageCodec, content_hash

LOGGER = logging.getLogger(__name__)

V = TypeVar("V")


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time counters for one cache pool."""

    name: str
    entries: int
    total_cost: int
    hits: int
    misses: int
    evictions: int


class BoundedCache(Generic[V]):
    """Thread-safe LRU map bounded by entry count and total cost.

    Each value carries a cost (pixels or bytes). Inserting evicts the least
    recently used entries until both ceilings hold again. A value whose cost
    alone exceeds ``cost_limit`` is not stored.
    """

    def __init__(self, name: str, *, count_limit: int, cost_limit: int) -> None:
        self.name = name
        self.count_limit = max(1, count_limit)
        self.cost_limit = max(1, cost_limit)
        self._entries: OrderedDict[str, tuple[V, int]] = OrderedDict()
        self._total_cost = 0
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    @property
    def total_cost(self) -> int:
        with self._lock:
            return self._total_cost

    def get(self, key: str) -> V | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            self._entries.move_to_end(key)
            self._hits += 1
            return entry[0]

    def set(self, key: str, value: V, cost: int) -> None:
        cost = max(0, int(cost))
        with self._lock:
            previous = self._entries.pop(key, None)
            if previous is not None:
                self._total_cost -= previous[1]
            if cost > self.cost_limit:
                LOGGER.debug(
                    "image_cache.skip_oversized",
                    extra={
                        "event": "image_cache.skip_oversized",
                        "pool": self.name,
                        "cost": cost,
                    },
                )
                return
            self._entries[key] = (value, cost)
            self._total_cost += cost
            self._evict_locked()

    def get_or_create(self, key: str, factory: Callable[[], V], cost: Callable[[V], int]) -> V:
        """Return the cached value or compute, store and return it.

        The factory runs outside the lock; two threads racing on the same key
        may both compute, and the later store wins.
        """
        cached = self.get(key)
        if cached is not None:
            return cached
        value = factory()
        self.set(key, value, cost(value))
        return value

    def discard(self, key: str) -> None:
        with self._lock:
            entry = self._entries.pop(key, None)
            if entry is not None:
                self._total_cost -= entry[1]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._total_cost = 0

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                name=self.name,
                entries=len(self._entries),
                total_cost=self._total_cost,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
            )

    def _evict_locked(self) -> None:
        while self._entries and (
            len(self._entries) > self.count_limit or self._total_cost > self.cost_limit
        ):
            key, (_, cost) = self._entries.popitem(last=False)
            self._total_cost -= cost
            self._evictions += 1
            LOGGER.debug(
                "image_cache.evicted",
                extra={"event": "image_cache.evicted", "pool": self.name, "key": key},
            )


def _pixel_cost(image: Image.Image) -> int:
    width, height = image.size
    return width * height


class ImageCache:
    """Explicitly constructed image cache service with three independent pools.

    Construct one per process and pass it to whoever needs it.
    """

    def __init__(
        self,
        config: ImageCacheConfig | None = None,
        codec: ImageCodec | None = None,
    ) -> None:
        cfg = config or ImageCacheConfig()
        self.codec = codec or ImageCodec()
        self.decoded: BoundedCache[Image.Image] = BoundedCache(
            "decoded",
            count_limit=cfg.decoded_count_limit,
            cost_limit=cfg.decoded_cost_limit,
        )
        self.thumbnails: BoundedCache[Image.Image] = BoundedCache(
            "thumbnails",
            count_limit=cfg.thumbnail_count_limit,
            cost_limit=cfg.thumbnail_cost_limit,
        )
        self.compressed: BoundedCache[bytes] = BoundedCache(
            "compressed",
            count_limit=cfg.compressed_count_limit,
            cost_limit=cfg.compressed_cost_limit,
        )

    @staticmethod
    def image_key(data: bytes) -> str:
        return f"img:{content_hash(data)}"

    @staticmethod
    def thumbnail_key(data: bytes, max_pixel_size: int) -> str:
        return f"thm:{content_hash(data)}|px:{max_pixel_size}"

    @staticmethod
    def compressed_key(data: bytes, max_bytes: int, quality: float) -> str:
        return f"cmp:{content_hash(data)}|max:{max_bytes}|q:{quality:.2f}"

    def cached_image(self, data: bytes) -> Image.Image | None:
        return self.decoded.get(self.image_key(data))

    def decode_image(self, data: bytes) -> Image.Image:
        """Decode (or fetch) the full image; raises ``ImageDecodeError``."""
        return self.decoded.get_or_create(
            self.image_key(data), lambda: self.codec.decode(data), _pixel_cost
        )

    def decode_thumbnail(self, data: bytes, max_pixel_size: int) -> Image.Image:
        """Scaled-down image for display; raises ``ImageDecodeError``."""
        return self.thumbnails.get_or_create(
            self.thumbnail_key(data, max_pixel_size),
            lambda: self.codec.thumbnail(data, max_pixel_size),
            _pixel_cost,
        )

    def compressed_data(
        self,
        data: bytes,
        config: AIConfig | None = None,
        *,
        max_bytes: int | None = None,
        quality: float | None = None,
    ) -> bytes:
        """Upload-ready bytes bounded by the configured byte budget."""
        cfg = config or AIConfig()
        budget = cfg.max_image_bytes if max_bytes is None else max_bytes
        q = cfg.jpeg_quality if quality is None else quality
        return self.compressed.get_or_create(
            self.compressed_key(data, budget, q),
            lambda: self.codec.compress(data, budget, q),
            len,
        )

    def stats(self) -> dict[str, CacheStats]:
        return {
            pool.name: pool.stats()
            for pool in (self.decoded, self.thumbnails, self.compressed)
        }

    def clear(self) -> None:
        for pool in (self.decoded, self.thumbnails, self.compressed):
            pool.clear()
