import logging
from typing import Optional

import requests

from repochat.core.errors import ExternalServiceError
from repochat.core.models.document import VectorHit

logger = logging.getLogger(__name__)


class ChromaVectorStore:
    """Vector store using ChromaDB HTTP API."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 8001,
        collection_name: str = "documents",
        tenant: str = "default_tenant",
        database: str = "default_database",
        space: str = "l2",
        timeout: float = 30.0,
    ):
        """Initialize ChromaDB client.

        Args:
            host: ChromaDB host.
            port: ChromaDB port.
            collection_name: Collection name.
            tenant: Tenant name.
            database: Database name.
            space: HNSW distance space ("l2" or "cosine").
            timeout: Per-request timeout in seconds.
        """
        self._base_url = f"http://{host}:{port}/api/v2"
        self._tenant = tenant
        self._database = database
        self._collection_name = collection_name
        self._space = space
        self._timeout = timeout
        self._collection_id: Optional[str] = None

    @property
    def _collections_url(self) -> str:
        return f"{self._base_url}/tenants/{self._tenant}/databases/{self._database}/collections"

    def _request(self, method: str, url: str, json: Optional[dict] = None) -> requests.Response:
        try:
            resp = requests.request(method, url, json=json, timeout=self._timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise ExternalServiceError(f"Chroma {method} {url} failed: {e}") from e
        return resp

    def _similarity(self, distance: float) -> float:
        if self._space == "cosine":
            return 1.0 - distance
        return 1.0 / (1.0 + distance)

    def ensure_collection(self) -> str:
        """Get or create collection, return ID."""
        if self._collection_id:
            return self._collection_id

        resp = self._request("GET", self._collections_url)
        for col in resp.json():
            if col["name"] == self._collection_name:
                self._collection_id = col["id"]
                logger.info(f"Collection {self._collection_name} already exists")
                return self._collection_id

        resp = self._request(
            "POST",
            self._collections_url,
            json={"name": self._collection_name, "metadata": {"hnsw:space": self._space}},
        )
        self._collection_id = resp.json()["id"]
        logger.info(f"Created collection: {self._collection_name}")
        return self._collection_id

    def upsert(
        self,
        ids: list[str],
        embeddings: list[list[float]],
        documents: list[str],
        metadatas: list[dict],
    ) -> None:
        """Insert or replace entries in the collection."""
        col_id = self.ensure_collection()
        self._request(
            "POST",
            f"{self._collections_url}/{col_id}/upsert",
            json={
                "ids": ids,
                "embeddings": embeddings,
                "documents": documents,
                "metadatas": metadatas,
            },
        )

    def query(
        self,
        query_embedding: list[float],
        n_results: int = 5,
        where: Optional[dict] = None,
    ) -> list[VectorHit]:
        """Search by embedding."""
        col_id = self.ensure_collection()
        body = {
            "query_embeddings": [query_embedding],
            "n_results": n_results,
            "include": ["documents", "metadatas", "distances"],
        }
        if where:
            body["where"] = where

        data = self._request("POST", f"{self._collections_url}/{col_id}/query", json=body).json()

        results = []
        if data.get("ids") and data["ids"][0]:
            for i in range(len(data["ids"][0])):
                results.append(
                    VectorHit(
                        id=data["ids"][0][i],
                        text=data["documents"][0][i] or "",
                        metadata=data["metadatas"][0][i] or {},
                        score=self._similarity(data["distances"][0][i]),
                    )
                )

        return results

    def delete(self, ids: list[str]) -> None:
        col_id = self.ensure_collection()
        self._request("POST", f"{self._collections_url}/{col_id}/delete", json={"ids": ids})

