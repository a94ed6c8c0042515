"""
Model cache for the face models

Model files are downloaded once, hashed with SHA-256 and kept as blobs in a
SQLite database so later runs load them without touching the network.
"""
import hashlib
import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

import httpx

from ..exceptions import ModelIntegrityError

logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS models (
    model_key TEXT PRIMARY KEY,
    blob BLOB NOT NULL,
    sha256 TEXT NOT NULL,
    source_url TEXT,
    fetched_at REAL NOT NULL
)
"""


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class ModelStore:
    """Service for caching model blobs in SQLite"""

    def __init__(self, db_path: str, client: Optional[httpx.AsyncClient] = None):
        """
        Args:
            db_path: Path to SQLite database file, or ":memory:"
            client: HTTP client used for downloads
        """
        self.db_path = db_path
        self.client = client
        self._memory_conn = None
        self._ensure_database_exists()

    def _ensure_database_exists(self):
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        with self._get_connection() as conn:
            conn.execute(SCHEMA)
            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Context manager for database connections"""
        # For in-memory databases, reuse the same connection
        if self.db_path == ":memory:":
            if self._memory_conn is None:
                self._memory_conn = sqlite3.connect(self.db_path)
                self._memory_conn.row_factory = sqlite3.Row
            yield self._memory_conn
        else:
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row
            try:
                yield conn
            finally:
                conn.close()

    def save(self, model_key: str, blob: bytes, source_url: Optional[str] = None) -> str:
        """
        Store a model blob, replacing any previous version.

        Returns:
            str: SHA-256 of the stored blob
        """
        digest = sha256_hex(blob)
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO models (model_key, blob, sha256, source_url, fetched_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (model_key, blob, digest, source_url, time.time())
            )
            conn.commit()
        logger.info(f"Cached model {model_key} ({len(blob)} bytes, sha256={digest[:12]})")
        return digest

    def load(self, model_key: str) -> Optional[bytes]:
        """
        Load a cached model, re-checking its hash.

        Returns:
            Model bytes, or None when the model is not cached

        Raises:
            ModelIntegrityError: stored blob no longer matches its hash
        """
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT blob, sha256 FROM models WHERE model_key = ?",
                (model_key,)
            ).fetchone()

        if row is None:
            return None

        blob = bytes(row['blob'])
        if sha256_hex(blob) != row['sha256']:
            raise ModelIntegrityError(f"Cached model {model_key} is corrupted")
        return blob

    def get_hash(self, model_key: str) -> Optional[str]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT sha256 FROM models WHERE model_key = ?",
                (model_key,)
            ).fetchone()
        return row['sha256'] if row else None

    def is_cached(self, model_keys: Iterable[str]) -> bool:
        """True only when every key is present"""
        keys = list(model_keys)
        if not keys:
            return False
        with self._get_connection() as conn:
            placeholders = ",".join("?" for _ in keys)
            row = conn.execute(
                f"SELECT COUNT(*) AS n FROM models WHERE model_key IN ({placeholders})",
                keys
            ).fetchone()
        return row['n'] == len(set(keys))

    def delete(self, model_key: str) -> None:
        with self._get_connection() as conn:
            conn.execute("DELETE FROM models WHERE model_key = ?", (model_key,))
            conn.commit()

    async def fetch_and_cache(
        self,
        model_key: str,
        url: str,
        expected_sha256: Optional[str] = None
    ) -> bytes:
        """
        Download a model and cache it.

        Raises:
            ModelIntegrityError: download does not match expected_sha256
            httpx.HTTPError: download failed
        """
        client = self.client or httpx.AsyncClient(timeout=120.0, follow_redirects=True)
        try:
            response = await client.get(url)
            response.raise_for_status()
        finally:
            if self.client is None:
                await client.aclose()

        blob = response.content
        digest = sha256_hex(blob)
        if expected_sha256 and digest != expected_sha256.lower():
            raise ModelIntegrityError(
                f"Model {model_key} hash mismatch: expected {expected_sha256}, got {digest}"
            )

        self.save(model_key, blob, source_url=url)
        return blob

    async def ensure_models(
        self,
        sources: Dict[str, Tuple[str, Optional[str]]]
    ) -> Dict[str, bytes]:
        """
        Load every model from the cache, downloading the ones that are missing.

        Individual download failures are logged and the model is left out of
        the result.

        Args:
            sources: model key -> (URL, expected SHA-256 or None)
        """
        models = {}
        for model_key, (url, expected_sha256) in sources.items():
            try:
                blob = self.load(model_key)
            except ModelIntegrityError as e:
                logger.warning(f"{e}; downloading again")
                self.delete(model_key)
                blob = None

            if blob is not None and expected_sha256 and sha256_hex(blob) != expected_sha256.lower():
                logger.warning(f"Cached model {model_key} does not match pinned hash; downloading again")
                blob = None

            if blob is None:
                try:
                    blob = await self.fetch_and_cache(model_key, url, expected_sha256)
                except (httpx.HTTPError, ModelIntegrityError) as e:
                    logger.error(f"Error loading or caching model {model_key}: {e}")
                    continue

            models[model_key] = blob

        logger.info(f"Models loaded: {', '.join(models) or 'none'}")
        return models
