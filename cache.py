# app/cache.py
"""
Resolution cache: (namespace, address) -> present / confirmed-absent.

Rows live in a SQL table so results survive restarts. A missing row is the
implicit UNKNOWN state. Profiles and assets use separate namespaces so a miss
for one never shadows the other.
"""
from __future__ import annotations

import json
import logging
import threading
import time
from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine

from config import CACHE_TTL_SECONDS
from db import get_engine
from models import CacheEntry, CacheState, canonical_address

logger = logging.getLogger(__name__)

PROFILE_NAMESPACE = "profile"
ASSET_NAMESPACE = "asset"
NAMESPACES = (PROFILE_NAMESPACE, ASSET_NAMESPACE)


class ResolutionCache:
    def __init__(self, engine: Optional[Engine] = None, ttl_seconds: int = CACHE_TTL_SECONDS):
        self.engine = engine or get_engine()
        self.ttl_seconds = ttl_seconds
        self._lock = threading.RLock()
        self._ensure_table()

    def _ensure_table(self):
        with self._lock, self.engine.begin() as conn:
            conn.execute(text(
                "CREATE TABLE IF NOT EXISTS resolution_cache ("
                " namespace VARCHAR(32) NOT NULL,"
                " address VARCHAR(42) NOT NULL,"
                " state VARCHAR(16) NOT NULL,"
                " payload TEXT,"
                " updated_at BIGINT NOT NULL,"
                " PRIMARY KEY (namespace, address))"
            ))

    @staticmethod
    def _check_namespace(namespace: str):
        if namespace not in NAMESPACES:
            raise ValueError(f"unknown cache namespace: {namespace}")

    def get(self, namespace: str, address: str) -> CacheEntry:
        self._check_namespace(namespace)
        addr = canonical_address(address)
        with self._lock, self.engine.connect() as conn:
            row = conn.execute(
                text(
                    "SELECT state, payload, updated_at FROM resolution_cache "
                    "WHERE namespace = :ns AND address = :a"
                ),
                {"ns": namespace, "a": addr},
            ).fetchone()

        if row is None:
            return CacheEntry.unknown()

        state, payload, updated_at = row
        if self.ttl_seconds and time.time() - int(updated_at) > self.ttl_seconds:
            return CacheEntry.unknown()

        if state == CacheState.CONFIRMED_ABSENT.value:
            return CacheEntry.absent()
        if state == CacheState.PRESENT.value:
            try:
                return CacheEntry.present(json.loads(payload))
            except (TypeError, ValueError):
                logger.warning("Dropping unreadable %s cache entry for %s", namespace, addr)
                self.invalidate(namespace, addr)
        return CacheEntry.unknown()

    def put(self, namespace: str, address: str, entry: CacheEntry):
        self._check_namespace(namespace)
        addr = canonical_address(address)
        if entry.is_unknown:
            self.invalidate(namespace, addr)
            return

        payload = json.dumps(entry.value) if entry.is_present else None
        with self._lock, self.engine.begin() as conn:
            conn.execute(
                text(
                    "INSERT INTO resolution_cache (namespace, address, state, payload, updated_at) "
                    "VALUES (:ns, :a, :s, :p, :t) "
                    "ON CONFLICT (namespace, address) DO UPDATE SET "
                    "state = excluded.state, payload = excluded.payload, updated_at = excluded.updated_at"
                ),
                {"ns": namespace, "a": addr, "s": entry.state.value, "p": payload, "t": int(time.time())},
            )

    def invalidate(self, namespace: str, address: str):
        self._check_namespace(namespace)
        with self._lock, self.engine.begin() as conn:
            conn.execute(
                text("DELETE FROM resolution_cache WHERE namespace = :ns AND address = :a"),
                {"ns": namespace, "a": canonical_address(address)},
            )

    def clear(self, namespace: Optional[str] = None) -> int:
        """Drop every entry, or every entry of one namespace. Returns rows removed."""
        with self._lock, self.engine.begin() as conn:
            if namespace is None:
                result = conn.execute(text("DELETE FROM resolution_cache"))
            else:
                self._check_namespace(namespace)
                result = conn.execute(
                    text("DELETE FROM resolution_cache WHERE namespace = :ns"),
                    {"ns": namespace},
                )
        logger.info("Cleared %d cache entries (namespace=%s)", result.rowcount, namespace or "*")
        return result.rowcount
