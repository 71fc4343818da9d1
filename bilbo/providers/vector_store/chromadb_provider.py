"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IVectorStoreProvider`
with cosine distance.  Fully local; no external service required.

ChromaDB metadata values must be scalars, so each point stores:

- ``document_id``, ``reference``, ``title``, ``chapter_ordinal``,
  ``chapter_title``, ``chunk_index`` as plain values,
- ``authors_json`` / ``tags_json`` with the ordered lists,
- one boolean key per tag (``tag::<name>``) and per author
  (``author::<name>``) so filters are exact-match ``where`` clauses.
"""

from __future__ import annotations

import json
import os
from collections.abc import Sequence
from typing import Any

os.environ.setdefault("ANONYMIZED_TELEMETRY", "False")

import chromadb
import structlog

from bilbo.interfaces.vector_store_provider import IVectorStoreProvider
from bilbo.models.search import IndexedPoint, PointPayload, VectorHit
from bilbo.utils.errors import VectorIndexError

logger = structlog.get_logger(logger_name=__name__)

_TAG_PREFIX = "tag::"
_AUTHOR_PREFIX = "author::"

# ChromaDB's names for the supported distance metrics.
_SPACES = {"cosine": "cosine", "euclid": "l2", "l2": "l2", "dot": "ip", "ip": "ip"}


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB with local persistence.

    Vectors are always computed by an :class:`IEmbeddingProvider` before
    they reach this class, so the collection is opened without an embedding
    function and ChromaDB never loads its default ONNX model.
    """

    def __init__(
        self,
        persist_directory: str = "data/chromadb",
        collection_name: str = "book_chunks",
    ) -> None:
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        self._collection: Any = None
        self._dimension: int | None = None

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def ensure_collection(self, dimension: int = 1024, distance: str = "cosine") -> None:
        """Open or create the collection and check it fits *dimension* / *distance*."""
        space = _SPACES.get(distance.lower())
        if space is None:
            raise ValueError(f"Unsupported distance {distance!r}; expected one of {sorted(_SPACES)}")

        try:
            collection = self._client.get_or_create_collection(
                name=self._collection_name,
                metadata={"hnsw:space": space},
                embedding_function=None,
            )
            existing_space = (collection.metadata or {}).get("hnsw:space", "l2")
            stored_dim = self._stored_dimension(collection)
        except Exception as exc:
            raise VectorIndexError(
                message=f"ChromaDB ensure_collection failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if existing_space != space:
            raise VectorIndexError(
                message=(
                    f"Collection '{self._collection_name}' uses {existing_space} distance, "
                    f"expected {space}"
                ),
                provider_name=self.get_provider_name(),
            )
        if stored_dim is not None and stored_dim != dimension:
            logger.error(
                "embedding_dimension_mismatch",
                stored_dim=stored_dim,
                expected_dim=dimension,
                collection=self._collection_name,
            )
            raise VectorIndexError(
                message=(
                    f"Embedding dimension mismatch: collection has {stored_dim}-dim vectors "
                    f"but {dimension}-dim vectors were requested"
                ),
                provider_name=self.get_provider_name(),
            )

        self._collection = collection
        self._dimension = dimension
        logger.info(
            "chromadb_collection_ready",
            collection=self._collection_name,
            dimension=dimension,
            distance=space,
            points=collection.count(),
        )

    async def delete_by_document(self, document_id: int) -> int:
        """Delete every point of *document_id*."""
        try:
            collection = self._get_collection()
            where = {"document_id": document_id}
            existing = collection.get(where=where, include=[])
            count = len(existing["ids"]) if existing["ids"] else 0
            if count > 0:
                collection.delete(where=where)
        except VectorIndexError:
            raise
        except Exception as exc:
            raise VectorIndexError(
                message=f"ChromaDB delete_by_document failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_delete_by_document", document_id=document_id, deleted_count=count)
        return count

    async def upsert_points(self, points: Sequence[IndexedPoint]) -> int:
        """Upsert *points* in one ChromaDB call."""
        if not points:
            return 0
        if self._dimension is not None:
            for point in points:
                if len(point.vector) != self._dimension:
                    raise VectorIndexError(
                        message=(
                            f"Point {point.point_id} has {len(point.vector)} dimensions, "
                            f"collection expects {self._dimension}"
                        ),
                        provider_name=self.get_provider_name(),
                    )

        try:
            self._get_collection().upsert(
                ids=[p.point_id for p in points],
                embeddings=[p.vector for p in points],
                documents=[p.payload.chunk_text for p in points],
                metadatas=[self._payload_to_metadata(p.payload) for p in points],
            )
        except VectorIndexError:
            raise
        except Exception as exc:
            raise VectorIndexError(
                message=f"ChromaDB upsert failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_upsert_points", count=len(points))
        return len(points)

    async def search(
        self,
        vector: list[float],
        tags: Sequence[str] = (),
        author: str | None = None,
        limit: int = 10,
    ) -> list[VectorHit]:
        """Nearest-neighbour query under the tag/author filters."""
        if limit <= 0:
            return []
        try:
            collection = self._get_collection()
            kwargs: dict[str, Any] = {
                "query_embeddings": [vector],
                "n_results": limit,
                "include": ["documents", "metadatas", "distances"],
            }
            where = self._build_where(tags, author)
            if where:
                kwargs["where"] = where
            results = collection.query(**kwargs)
        except VectorIndexError:
            raise
        except Exception as exc:
            raise VectorIndexError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results["ids"] or not results["ids"][0]:
            return []

        documents = results["documents"][0]
        metadatas = results["metadatas"][0]
        distances = results["distances"][0]

        hits = [
            VectorHit(
                reference=str(meta.get("reference", "")),
                title=str(meta.get("title", "")),
                chunk_text=text or "",
                score=1.0 - float(distance),
            )
            for text, meta, distance in zip(documents, metadatas, distances, strict=True)
        ]
        logger.info(
            "chromadb_query",
            results_count=len(hits),
            filtered=bool(where),
            top_score=hits[0].score if hits else 0.0,
        )
        return hits

    async def get_document_points(self, document_id: int) -> list[PointPayload]:
        """Return the stored payloads of *document_id*, in chapter/chunk order."""
        try:
            existing = self._get_collection().get(
                where={"document_id": document_id}, include=["documents", "metadatas"]
            )
        except Exception as exc:
            raise VectorIndexError(
                message=f"ChromaDB get failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        payloads = [
            self._metadata_to_payload(meta, text or "")
            for text, meta in zip(
                existing["documents"] or [], existing["metadatas"] or [], strict=True
            )
        ]
        payloads.sort(key=lambda p: (p.chapter_ordinal, p.chunk_index))
        return payloads

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB client answers a heartbeat."""
        try:
            self._client.heartbeat()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _get_collection(self) -> Any:
        if self._collection is None:
            self._collection = self._client.get_or_create_collection(
                name=self._collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=None,
            )
        return self._collection

    @staticmethod
    def _stored_dimension(collection: Any) -> int | None:
        if collection.count() == 0:
            return None
        sample = collection.peek(limit=1)
        embeddings = sample.get("embeddings") if sample else None
        if embeddings is None or len(embeddings) == 0:
            return None
        return len(embeddings[0])

    @staticmethod
    def _payload_to_metadata(payload: PointPayload) -> dict[str, str | int | float | bool]:
        meta: dict[str, str | int | float | bool] = {
            "document_id": payload.document_id,
            "reference": payload.reference,
            "title": payload.title,
            "chapter_ordinal": payload.chapter_ordinal,
            "chunk_index": payload.chunk_index,
            "authors_json": json.dumps(payload.authors, ensure_ascii=False),
            "tags_json": json.dumps(payload.tags, ensure_ascii=False),
        }
        if payload.chapter_title is not None:
            meta["chapter_title"] = payload.chapter_title
        for tag in payload.tags:
            meta[f"{_TAG_PREFIX}{tag}"] = True
        for name in payload.authors:
            meta[f"{_AUTHOR_PREFIX}{name}"] = True
        return meta

    @staticmethod
    def _metadata_to_payload(meta: dict[str, Any], text: str) -> PointPayload:
        """Reverse :meth:`_payload_to_metadata`."""
        return PointPayload(
            document_id=int(meta["document_id"]),
            reference=str(meta["reference"]),
            title=str(meta["title"]),
            chapter_ordinal=int(meta["chapter_ordinal"]),
            chapter_title=meta.get("chapter_title"),
            chunk_index=int(meta["chunk_index"]),
            chunk_text=text,
            authors=json.loads(meta.get("authors_json") or "[]"),
            tags=json.loads(meta.get("tags_json") or "[]"),
        )

    @staticmethod
    def _build_where(tags: Sequence[str], author: str | None) -> dict[str, Any] | None:
        """Translate tag/author filters into a ChromaDB ``where`` clause.

        Every tag must be present (``$and`` of boolean keys).
        """
        clauses: list[dict[str, Any]] = [
            {f"{_TAG_PREFIX}{tag}": True} for tag in dict.fromkeys(tags)
        ]
        if author:
            clauses.append({f"{_AUTHOR_PREFIX}{author}": True})

        if not clauses:
            return None
        if len(clauses) == 1:
            return clauses[0]
        return {"$and": clauses}
