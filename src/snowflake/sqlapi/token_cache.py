#
# Copyright (c) 2012-2023 Snowflake Computing Inc. All rights reserved.
#
from __future__ import annotations

import codecs
import hashlib
import json
import logging
import os
import stat
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any, NamedTuple

import platformdirs

from .cache import SFDictCache
from .constants import ENV_VAR_TOKEN_CACHE_DIR, KEYPAIR_JWT_TOKEN_TYPE
from .file_lock import FileLock, FileLockError

logger = logging.getLogger(__name__)


class AuthToken(NamedTuple):
    """A signed token and its absolute expiry in epoch seconds.

    Stored as one immutable record so readers never see a token paired with
    another token's expiry.
    """

    token: str
    expiry: int

    def is_valid(self, margin: int, current_time: float | None = None) -> bool:
        if current_time is None:
            current_time = time.time()
        return bool(self.token) and current_time < self.expiry - margin


class _InvalidTokenKeyError(Exception):
    pass


@dataclass(frozen=True)
class TokenKey:
    account: str
    user: str
    token_type: str = KEYPAIR_JWT_TOKEN_TYPE

    def string_key(self) -> str:
        if len(self.account) == 0:
            raise _InvalidTokenKeyError("Invalid key, account is empty")
        if len(self.user) == 0:
            raise _InvalidTokenKeyError("Invalid key, user is empty")
        return f"{self.account.upper()}:{self.user.upper()}:{self.token_type}"

    def hash_key(self) -> str:
        m = hashlib.sha256()
        m.update(self.string_key().encode(encoding="utf-8"))
        return m.hexdigest()


class TokenCache(ABC):
    @staticmethod
    def make(
        use_file_cache: bool = False, cache_dir: str | Path | None = None
    ) -> TokenCache:
        """Builds the external cache tier.

        Falls back to a cache that stores nothing when no usable directory
        can be found.
        """
        if not use_file_cache:
            return NoopTokenCache()
        cache = FileTokenCache.make(cache_dir)
        if cache:
            return cache
        logger.warning(
            "Failed to initialize file based token cache. Tokens will only be "
            "cached for the lifetime of this process."
        )
        return NoopTokenCache()

    @abstractmethod
    def get(self, key: TokenKey) -> AuthToken | None:
        pass

    @abstractmethod
    def put(self, key: TokenKey, value: AuthToken, ttl: float) -> None:
        pass

    @abstractmethod
    def remove(self, key: TokenKey) -> None:
        pass


class InMemoryTokenCache(TokenCache):
    """Process wide token tier, shared by every client in the process."""

    _default: InMemoryTokenCache | None = None
    _default_lock = Lock()

    def __init__(self) -> None:
        self._cache: SFDictCache[str, AuthToken] = SFDictCache()

    @classmethod
    def default(cls) -> InMemoryTokenCache:
        with cls._default_lock:
            if cls._default is None:
                cls._default = cls()
            return cls._default

    def get(self, key: TokenKey) -> AuthToken | None:
        return self._cache.get(key.string_key())

    def put(self, key: TokenKey, value: AuthToken, ttl: float) -> None:
        self._cache.set(key.string_key(), value, ttl)

    def remove(self, key: TokenKey) -> None:
        self._cache.pop(key.string_key())

    def clear(self) -> None:
        self._cache.clear()


class _FileTokenCacheError(Exception):
    pass


class _OwnershipError(_FileTokenCacheError):
    pass


class _PermissionsTooWideError(_FileTokenCacheError):
    pass


class _CacheDirNotFoundError(_FileTokenCacheError):
    pass


class _InvalidCacheDirError(_FileTokenCacheError):
    pass


class _CacheFileWriteError(_FileTokenCacheError):
    pass


class FileTokenCache(TokenCache):
    """Token tier persisted to a JSON file readable only by its owner."""

    @staticmethod
    def make(cache_dir: str | Path | None = None) -> FileTokenCache | None:
        directory = (
            Path(cache_dir) if cache_dir is not None else FileTokenCache.find_cache_dir()
        )
        if directory is None:
            logger.debug(
                "Failed to find suitable cache directory for token cache. File based token cache initialization failed."
            )
            return None
        try:
            directory.mkdir(parents=True, exist_ok=True, mode=0o700)
            FileTokenCache.validate_cache_dir(directory)
        except (OSError, _FileTokenCacheError) as e:
            logger.debug(
                "Cache directory validation failed for %s due to error '%s'.",
                directory,
                e,
            )
            return None
        return FileTokenCache(directory)

    def __init__(self, cache_dir: Path) -> None:
        self.logger = logging.getLogger(__name__)
        self.cache_dir: Path = cache_dir

    def put(self, key: TokenKey, value: AuthToken, ttl: float) -> None:
        try:
            FileTokenCache.validate_cache_dir(self.cache_dir)
            with FileLock(self.lock_file()):
                cache = self._read_cache_file()
                if ttl <= 0:
                    cache["tokens"].pop(key.hash_key(), None)
                else:
                    cache["tokens"][key.hash_key()] = {
                        "token": value.token,
                        "expiry": value.expiry,
                        "expires_at": time.time() + ttl,
                    }
                self._write_cache_file(cache)
        except _FileTokenCacheError as e:
            self.logger.error("Failed to store token: %s", e)
        except FileLockError as e:
            self.logger.error("Unable to lock file lock: %s", e)
        except _InvalidTokenKeyError as e:
            self.logger.error("Failed to produce token key %s", e)

    def get(self, key: TokenKey) -> AuthToken | None:
        try:
            FileTokenCache.validate_cache_dir(self.cache_dir)
            with FileLock(self.lock_file()):
                cache = self._read_cache_file()
            entry = cache["tokens"].get(key.hash_key(), None)
        except _FileTokenCacheError as e:
            self.logger.error("Failed to retrieve token: %s", e)
            return None
        except FileLockError as e:
            self.logger.error("Unable to lock file lock: %s", e)
            return None
        except _InvalidTokenKeyError as e:
            self.logger.error("Failed to produce token key %s", e)
            return None

        if not isinstance(entry, dict):
            return None
        token, expiry = entry.get("token"), entry.get("expiry")
        if not isinstance(token, str) or not isinstance(expiry, int):
            return None
        if time.time() >= entry.get("expires_at", 0):
            return None
        return AuthToken(token, expiry)

    def remove(self, key: TokenKey) -> None:
        try:
            FileTokenCache.validate_cache_dir(self.cache_dir)
            with FileLock(self.lock_file()):
                cache = self._read_cache_file()
                cache["tokens"].pop(key.hash_key(), None)
                self._write_cache_file(cache)
        except _FileTokenCacheError as e:
            self.logger.error("Failed to remove token: %s", e)
        except FileLockError as e:
            self.logger.error("Unable to lock file lock: %s", e)
        except _InvalidTokenKeyError as e:
            self.logger.error("Failed to produce token key %s", e)

    def cache_file(self) -> Path:
        return self.cache_dir / "sqlapi_token_cache_v1.json"

    def lock_file(self) -> Path:
        return self.cache_dir / "sqlapi_token_cache_v1.json.lck"

    def _read_cache_file(self) -> dict[str, dict[str, Any]]:
        fd = -1
        json_data: dict[str, Any] = {"tokens": {}}
        try:
            fd = os.open(self.cache_file(), os.O_RDONLY)
            self._ensure_permissions(fd, 0o600)
            size = os.lseek(fd, 0, os.SEEK_END)
            os.lseek(fd, 0, os.SEEK_SET)
            data = os.read(fd, size)
            json_data = json.loads(codecs.decode(data, "utf-8"))
        except FileNotFoundError:
            self.logger.debug("%s not found", self.cache_file())
        except json.decoder.JSONDecodeError as e:
            self.logger.warning(
                "Failed to decode json read from cache file %s: %s",
                self.cache_file(),
                e.__class__.__name__,
            )
        except UnicodeError as e:
            self.logger.warning(
                "Failed to decode utf-8 read from cache file %s: %s",
                self.cache_file(),
                e.__class__.__name__,
            )
        except OSError as e:
            self.logger.warning("Failed to read cache file %s: %s", self.cache_file(), e)
        finally:
            if fd > 0:
                os.close(fd)

        if not isinstance(json_data, dict):
            json_data = {}
        if "tokens" not in json_data or not isinstance(json_data["tokens"], dict):
            json_data["tokens"] = {}

        return json_data

    def _write_cache_file(self, json_data: dict) -> None:
        fd = -1
        self.logger.debug("Writing cache file %s", self.cache_file())
        try:
            fd = os.open(
                self.cache_file(), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600
            )
            self._ensure_permissions(fd, 0o600)
            os.write(fd, codecs.encode(json.dumps(json_data), "utf-8"))
        except OSError as e:
            raise _CacheFileWriteError("Failed to write cache file", e)
        finally:
            if fd > 0:
                os.close(fd)

    @staticmethod
    def find_cache_dir() -> Path | None:
        env_val = os.getenv(ENV_VAR_TOKEN_CACHE_DIR)
        if env_val:
            return Path(env_val)
        try:
            return platformdirs.user_cache_path("snowflake", appauthor=False) / "sqlapi"
        except Exception as e:
            logger.debug("Unable to resolve user cache directory: %s", e)
            return None

    @staticmethod
    def validate_cache_dir(cache_dir: Path | None) -> None:
        if cache_dir is None:
            raise _CacheDirNotFoundError("Cache dir was not found")
        try:
            statinfo = cache_dir.stat()
        except FileNotFoundError:
            raise _CacheDirNotFoundError(
                f"Cache dir {cache_dir} was not found. Failed to stat."
            )

        if not stat.S_ISDIR(statinfo.st_mode):
            raise _InvalidCacheDirError(f"Cache dir {cache_dir} is not a directory")

        if not hasattr(os, "geteuid"):
            return

        permissions = stat.S_IMODE(statinfo.st_mode)
        if permissions != 0o700:
            raise _PermissionsTooWideError(
                f"Cache dir {cache_dir} has incorrect permissions. {permissions:o} != 0700"
            )

        euid = os.geteuid()
        if statinfo.st_uid != euid:
            raise _OwnershipError(
                f"Cache dir {cache_dir} has incorrect owner. {euid} != {statinfo.st_uid}"
            )

    def _ensure_permissions(self, fd: int, permissions: int) -> None:
        if not hasattr(os, "geteuid"):
            return
        statinfo = os.fstat(fd)
        actual_permissions = stat.S_IMODE(statinfo.st_mode)

        if actual_permissions != permissions:
            raise _PermissionsTooWideError(
                f"Cache file {self.cache_file()} has incorrect permissions. {permissions:o} != {actual_permissions:o}"
            )

        euid = os.geteuid()
        if statinfo.st_uid != euid:
            raise _OwnershipError(
                f"Cache file {self.cache_file()} has incorrect owner. {euid} != {statinfo.st_uid}"
            )


class NoopTokenCache(TokenCache):
    def get(self, key: TokenKey) -> AuthToken | None:
        return None

    def put(self, key: TokenKey, value: AuthToken, ttl: float) -> None:
        return None

    def remove(self, key: TokenKey) -> None:
        return None
