"""Process-local cache of inventory listings keyed by wallet address."""
import copy
import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

class InventoryCache:
    """Read-through cache for per-party inventory listings.

    Entries have no TTL; writers evict the addresses they touched once their
    transaction has committed. Lookups and stores work on deep copies so a
    caller mutating a returned list never changes what the next caller sees.

    Every eviction bumps a per-address generation. A reader takes the
    generation before querying and hands it back to `set`; if a writer evicted
    the address in between, the store is skipped so rows read before the
    write never land in the cache.
    """

    def __init__(self):
        self._entries: Dict[str, List[Dict[str, Any]]] = {}
        self._generations: Dict[str, int] = {}
        self._epoch = 0
        self._lock = threading.Lock()

    @staticmethod
    def _key(address: str) -> str:
        return address.strip().lower()

    def generation(self, address: str) -> Tuple[int, int]:
        """Token identifying the current state of an address's entry."""
        with self._lock:
            return self._epoch, self._generations.get(self._key(address), 0)

    def get(self, address: str) -> Optional[List[Dict[str, Any]]]:
        with self._lock:
            items = self._entries.get(self._key(address))
        return copy.deepcopy(items) if items is not None else None

    def set(
        self,
        address: str,
        items: List[Dict[str, Any]],
        generation: Optional[Tuple[int, int]] = None
    ) -> bool:
        """Store a listing.

        Returns:
            False when `generation` is given and the address was evicted
            since it was taken; nothing is stored in that case
        """
        key = self._key(address)
        with self._lock:
            if generation is not None and generation != (self._epoch, self._generations.get(key, 0)):
                return False
            self._entries[key] = copy.deepcopy(items)
        return True

    def invalidate(self, *addresses: str) -> None:
        """Evict the given addresses; unknown addresses are ignored."""
        with self._lock:
            for address in addresses:
                key = self._key(address)
                self._generations[key] = self._generations.get(key, 0) + 1
                if self._entries.pop(key, None) is not None:
                    logger.debug(f"Evicted inventory cache entry for {address}")

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._epoch += 1

    def __contains__(self, address: str) -> bool:
        with self._lock:
            return self._key(address) in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
