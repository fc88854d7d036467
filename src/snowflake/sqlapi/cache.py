#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#

from __future__ import annotations

import datetime
from collections.abc import Iterator
from threading import Lock
from typing import Generic, TypeVar

from typing_extensions import NamedTuple, Self

from . import constants

now = datetime.datetime.now

T = TypeVar("T")


class CacheEntry(NamedTuple, Generic[T]):
    expiry: datetime.datetime
    entry: T


K = TypeVar("K")
V = TypeVar("V")


def is_expired(d: datetime.datetime) -> bool:
    return now() >= d


class SFDictCache(Generic[K, V]):
    """A generic in-memory cache that acts somewhat like a dictionary.

    Every entry carries its own expiry. Entries inserted through item
    assignment live for the cache wide ``entry_lifetime``, while ``set`` takes
    a lifetime for that one entry. Unlike normal dictionaries keys(), values()
    and items() return lists materialized at call time.
    """

    def __init__(
        self,
        entry_lifetime: float = constants.TOKEN_LIFETIME,
    ) -> None:
        self._entry_lifetime = datetime.timedelta(seconds=entry_lifetime)
        self._cache: dict[K, CacheEntry[V]] = {}
        self._lock = Lock()
        self._reset_stats()

    @classmethod
    def from_dict(
        cls,
        _dict: dict[K, V],
        **kw,
    ) -> Self:
        """Create a dictionary cache from an already existing dictionary.

        Note that the same references will be stored in the cache than in
        the dictionary provided.
        """
        cache = cls(**kw)
        for k, v in _dict.items():
            cache[k] = v
        return cache

    def __getitem(
        self,
        k: K,
        *,
        should_record_hits: bool = True,
    ) -> V:
        """Non-locking version of __getitem__.

        This should only be used by internal functions when already
        holding self._lock.
        """
        try:
            t, v = self._cache[k]
        except KeyError:
            self._miss(k)
            raise
        if is_expired(t):
            self._expiration(k)
            self.__delitem(k)
            raise KeyError(k)
        if should_record_hits:
            self._hit(k)
        return v

    def __setitem(
        self,
        k: K,
        v: V,
        lifetime: datetime.timedelta,
    ) -> None:
        """Non-locking version of __setitem__.

        This should only be used by internal functions when already
        holding self._lock.
        """
        self._cache[k] = CacheEntry(
            expiry=now() + lifetime,
            entry=v,
        )
        self.stats["size"] = len(self._cache)

    def __getitem__(
        self,
        k: K,
    ) -> V:
        """Returns an element if it hasn't expired yet in a thread-safe way."""
        with self._lock:
            return self.__getitem(k, should_record_hits=True)

    def __setitem__(
        self,
        k: K,
        v: V,
    ) -> None:
        """Inserts an element in a thread-safe way."""
        with self._lock:
            self.__setitem(k, v, self._entry_lifetime)

    def set(
        self,
        k: K,
        v: V,
        ttl: float | None = None,
    ) -> None:
        """Inserts an element that expires ``ttl`` seconds from now.

        A ``ttl`` of zero or less drops any existing entry instead, an entry
        that is already expired is never worth storing.
        """
        with self._lock:
            if ttl is None:
                self.__setitem(k, v, self._entry_lifetime)
            elif ttl <= 0:
                self._cache.pop(k, None)
                self.stats["size"] = len(self._cache)
            else:
                self.__setitem(k, v, datetime.timedelta(seconds=ttl))

    def __iter__(self) -> Iterator[K]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self.items())

    def keys(self) -> list[K]:
        return [k for k, _ in self.items()]

    def items(self) -> list[tuple[K, V]]:
        with self._lock:
            values: list[tuple[K, V]] = []
            for k in list(self._cache.keys()):
                try:
                    v = self.__getitem(k, should_record_hits=False)
                    values.append((k, v))
                except KeyError:
                    continue
        return values

    def values(self) -> list[V]:
        return [v for _, v in self.items()]

    def get(
        self,
        k: K,
        default: V | None = None,
    ) -> V | None:
        try:
            return self[k]
        except KeyError:
            return default

    def pop(
        self,
        k: K,
        default: V | None = None,
    ) -> V | None:
        with self._lock:
            entry = self._cache.pop(k, None)
            self.stats["size"] = len(self._cache)
        if entry is None or is_expired(entry.expiry):
            return default
        return entry.entry

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._reset_stats()

    def __delitem(
        self,
        key: K,
    ) -> None:
        """Non-locking version of __delitem__.

        This should only be used by internal functions when already
        holding self._lock.
        """
        del self._cache[key]
        self.stats["size"] = len(self._cache)

    def __delitem__(
        self,
        key: K,
    ) -> None:
        with self._lock:
            self.__delitem(key)

    def __contains__(
        self,
        key: K,
    ) -> bool:
        with self._lock:
            try:
                self.__getitem(key, should_record_hits=True)
                return True
            except KeyError:
                return False

    def _clear_expired_entries(self) -> None:
        with self._lock:
            for k in list(self._cache.keys()):
                try:
                    self.__getitem(k, should_record_hits=False)
                except KeyError:
                    continue
            self.stats["size"] = len(self._cache)

    # Statistics related functions, these can be plugged by child classes
    def _reset_stats(self) -> None:
        """(Re)set hit and miss counters.

        This function will be called by the initializer and by clear().
        """
        self.stats = {
            "hit": 0,
            "miss": 0,
            "expiration": 0,
            "size": 0,
        }

    def _hit(self, k: K) -> None:
        """This function gets called when a hit occurs.

        Functions that hit every entry (like values) are not going to count.

        Note that while this function does not interact with lock, but it's only
        called from contexts where the lock is already held.
        """
        self.stats["hit"] += 1

    def _miss(self, k: K) -> None:
        """This function gets called when a miss occurs.

        Note that while this function does not interact with lock, but it's only
        called from contexts where the lock is already held.
        """
        self.stats["miss"] += 1

    def _expiration(self, k: K) -> None:
        """This function gets called when an expiration occurs.

        Note that while this function does not interact with lock, but it's only
        called from contexts where the lock is already held.
        """
        self.stats["expiration"] += 1
