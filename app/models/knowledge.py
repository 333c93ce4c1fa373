"""
Knowledge Models
Vector search matches and curated-entry metadata
"""
from typing import List, Optional

from pydantic import BaseModel, Field


class MatchMetadata(BaseModel):
    title: Optional[str] = None
    url: Optional[str] = None
    summary: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    source: Optional[str] = None


class KnowledgeMatch(BaseModel):
    """A ranked hit from the vector datastore"""
    content: str
    similarity: float  # cosine similarity, 0..1 for normalized embeddings
    metadata: MatchMetadata = Field(default_factory=MatchMetadata)


class KnowledgeReference(BaseModel):
    """Title/url/summary of whatever knowledge backed an answer"""
    title: Optional[str] = None
    url: Optional[str] = None
    summary: Optional[str] = None
    source: Optional[str] = None


class KnowledgeResult(BaseModel):
    context_text: str = ""
    matches: Optional[List[KnowledgeMatch]] = None
    reference: Optional[KnowledgeReference] = None

    @property
    def has_content(self) -> bool:
        return bool(self.context_text)
