"""
Vector Search
Similarity search over the knowledge base stored in Supabase (pgvector)
"""
from typing import List, Optional

import httpx

from app.config import Settings, settings as default_settings
from app.errors import ProviderError
from app.models.knowledge import KnowledgeMatch, MatchMetadata


class VectorStore:
    available = True

    async def search(self, query_vector: List[float], similarity_threshold: float, top_k: int) -> List[KnowledgeMatch]:
        raise NotImplementedError

    async def close(self) -> None:
        pass


class NullVectorStore(VectorStore):
    available = False

    async def search(self, query_vector, similarity_threshold, top_k) -> List[KnowledgeMatch]:
        raise ProviderError("Vector store is not configured")


class SupabaseVectorStore(VectorStore):
    """Calls the `match_documents` Postgres function through PostgREST"""

    def __init__(self, config: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None):
        config = config or default_settings
        self.function_name = config.SUPABASE_MATCH_FUNCTION
        self.client = client or httpx.AsyncClient(
            base_url=config.SUPABASE_URL.rstrip("/"),
            headers={
                "apikey": config.SUPABASE_KEY,
                "Authorization": f"Bearer {config.SUPABASE_KEY}",
                "Content-Type": "application/json",
            },
            timeout=config.EMBEDDING_TIMEOUT_SECONDS,
        )

    async def search(self, query_vector: List[float], similarity_threshold: float, top_k: int) -> List[KnowledgeMatch]:
        payload = {
            "query_embedding": query_vector,
            "match_threshold": similarity_threshold,
            "match_count": top_k,
        }
        try:
            response = await self.client.post(f"/rest/v1/rpc/{self.function_name}", json=payload)
            response.raise_for_status()
            rows = response.json() or []
        except httpx.HTTPError as e:
            raise ProviderError(f"Vector search failed: {e}") from e
        except ValueError as e:
            raise ProviderError(f"Vector search returned invalid JSON: {e}") from e

        return [self._to_match(row) for row in rows]

    @staticmethod
    def _to_match(row: dict) -> KnowledgeMatch:
        metadata = row.get("metadata") or {}
        keywords = metadata.get("keywords") or []
        if isinstance(keywords, str):
            keywords = [word.strip() for word in keywords.split(",") if word.strip()]
        return KnowledgeMatch(
            content=row.get("content", ""),
            similarity=float(row.get("similarity", 0.0)),
            metadata=MatchMetadata(
                title=metadata.get("title"),
                url=metadata.get("url"),
                summary=metadata.get("summary"),
                keywords=keywords,
                source=metadata.get("source") or row.get("source"),
            ),
        )

    async def close(self) -> None:
        await self.client.aclose()


def build_vector_store(config: Optional[Settings] = None) -> VectorStore:
    config = config or default_settings
    if not (config.SUPABASE_URL and config.SUPABASE_KEY):
        return NullVectorStore()
    return SupabaseVectorStore(config)
