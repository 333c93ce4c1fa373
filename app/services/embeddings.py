"""
Embedding Provider
Turns query text into a vector for knowledge-base search
"""
import asyncio
from typing import List, Optional

import openai
from openai import AsyncOpenAI

from app.config import Settings, settings as default_settings
from app.errors import ProviderError


class EmbeddingProvider:
    available = True

    async def embed(self, text: str) -> List[float]:
        raise NotImplementedError


class NullEmbeddingProvider(EmbeddingProvider):
    """Stands in when no embedding backend is configured"""

    available = False

    async def embed(self, text: str) -> List[float]:
        raise ProviderError("Embedding provider is not configured")


class OpenAIEmbeddingProvider(EmbeddingProvider):
    def __init__(self, config: Optional[Settings] = None, client: Optional[AsyncOpenAI] = None):
        config = config or default_settings
        self.model = config.EMBEDDING_MODEL
        self.timeout = config.EMBEDDING_TIMEOUT_SECONDS
        self.client = client or AsyncOpenAI(
            api_key=config.EMBEDDING_API_KEY,
            base_url=config.EMBEDDING_BASE_URL,
            timeout=config.EMBEDDING_TIMEOUT_SECONDS,
            max_retries=1,
        )

    async def embed(self, text: str) -> List[float]:
        try:
            response = await asyncio.wait_for(
                self.client.embeddings.create(model=self.model, input=[text]),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(f"Embedding call timed out after {self.timeout}s") from e
        except openai.APIError as e:
            raise ProviderError(f"Embedding call failed: {e}") from e

        if not response.data:
            raise ProviderError("Embedding response was empty")
        return list(response.data[0].embedding)


def build_embedding_provider(config: Optional[Settings] = None) -> EmbeddingProvider:
    config = config or default_settings
    if not config.EMBEDDING_API_KEY:
        return NullEmbeddingProvider()
    return OpenAIEmbeddingProvider(config)
