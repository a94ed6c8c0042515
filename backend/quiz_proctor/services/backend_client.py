"""
Client for the remote proctoring backend

The backend owns registration, verification, attempt storage and reporting.
Its endpoints are treated as opaque; this module only preserves their
request and response shapes.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..exceptions import BackendError, OfflineError

logger = logging.getLogger(__name__)


class BackendClient:
    """Async HTTP client for the proctoring backend"""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url.rstrip('/')
        self.client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self.client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = e.response.text
            logger.error(f"{method} {path} failed with {e.response.status_code}: {detail}")
            raise BackendError(e.response.status_code, detail) from e
        except httpx.TransportError as e:
            logger.error(f"{method} {path} could not reach backend: {e}")
            raise OfflineError(f"Backend unreachable: {e}") from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def register(self, username: str, embedding: Any) -> Any:
        """Register a face descriptor (plain list or encrypted envelope)"""
        result = await self._request(
            "POST", "/register",
            json={"username": username, "embedding": embedding}
        )
        logger.info(f"Registered face for {username}")
        return result

    async def verify(self, username: str, embedding: Any) -> bool:
        """Compare a live descriptor with the registered one"""
        result = await self._request(
            "POST", "/verify",
            json={"username": username, "currentEmbedding": embedding}
        )
        return bool(result and result.get("isVerified"))

    async def bulk_verify(self, embeddings: List[Any]) -> Any:
        result = await self._request("POST", "/bulkverify", json={"embeddings": embeddings})
        logger.info("Embeddings sent successfully")
        return result

    async def get_public_key(self) -> str:
        """
        PEM public key used to encrypt embeddings.

        Accepts either a JSON body with a public_key/publicKey field or a
        bare PEM body.
        """
        result = await self._request("GET", "/getpubkey")
        if isinstance(result, dict):
            key = result.get("public_key") or result.get("publicKey")
        else:
            key = result
        if not key:
            raise BackendError(500, "Empty public key")
        return key

    async def start_test(self, username: str, test_name: str, category: Optional[int] = None) -> str:
        """
        Announce a new quiz attempt.

        Returns:
            str: test_id assigned by the backend
        """
        result = await self._request(
            "POST", "/starttest",
            json={"username": username, "test_name": test_name, "category": category}
        )
        test_id = result.get("test_id") if isinstance(result, dict) else None
        if test_id is None:
            raise BackendError(500, "Missing test_id in /starttest response")
        return str(test_id)

    async def submit_attempt(
        self,
        username: str,
        test_id: str,
        embeddings: List[Any],
        timestamps: List[str]
    ) -> Any:
        """Submit one batch of proctoring samples"""
        result = await self._request(
            "POST", "/submitattempt",
            json={
                "username": username,
                "test_id": test_id,
                "embeddings": embeddings,
                "timestamps": timestamps,
            }
        )
        logger.info(f"Submitted {len(embeddings)} samples for test {test_id}")
        return result

    async def get_report(self, username: str, test_id: str) -> Optional[Dict[str, Any]]:
        result = await self._request(
            "GET", "/getreport",
            params={"username": username, "test_id": test_id}
        )
        if isinstance(result, dict) and "report" in result:
            return result["report"]
        return result

    async def aclose(self) -> None:
        await self.client.aclose()
