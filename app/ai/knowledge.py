"""
Knowledge Lookup
Curated doctor entries first, vector similarity search second
"""
import json
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from app.config import settings
from app.models.knowledge import KnowledgeMatch, KnowledgeReference, KnowledgeResult
from app.services.embeddings import EmbeddingProvider, NullEmbeddingProvider
from app.services.vector_store import NullVectorStore, VectorStore
from app.utils.logging_config import get_logger

logger = get_logger(__name__)

IDENTITY_KEYWORDS = ["rameshwar", "रामेश्वर"]

# Highest priority first; a query is routed to the first entry whose keywords it contains
CURATED_ROUTES: List[Tuple[str, List[str]]] = [
    ("contact", ["contact", "phone", "number", "email", "address", "website", "youtube", "online", "संपर्क", "नंबर"]),
    ("profile", ["who is", "about", "profile", "kaun hai", "kon hai", "कौन"]),
    ("experience", ["experience", "qualification", "degree", "years", "achievement", "अनुभव"]),
    ("hospital", ["hospital", "clinic", "location", "where", "अस्पताल"]),
    ("mission", ["course", "mission", "program", "challenge", "morning session", "मिशन"]),
]
DEFAULT_ENTRY = "profile"

CHANNEL_URL = "https://www.youtube.com/@DrRameshwarkumar/playlists"
WEBSITE_URL = "https://drrameshwarkumar.in/"


class CuratedKnowledge:
    """Hand-authored entries about the clinic's lead physiotherapist"""

    def __init__(self, kb_path: Optional[str] = None):
        self.entries = self._build_knowledge_base()
        if kb_path:
            self.entries.update(self._load_overrides(kb_path))

    def _build_knowledge_base(self) -> Dict[str, Dict[str, str]]:
        return {
            "contact": {
                "title": "Dr. Rameshwar Kumar - Contact",
                "content": (
                    f"Website: {WEBSITE_URL}, Contact page: {WEBSITE_URL}contact/, "
                    "YouTube: https://www.youtube.com/@DrRameshwarkumar. "
                    "Appointments and consultations are booked through the contact page."
                ),
                "summary": "Official website, contact page and YouTube channel",
                "url": CHANNEL_URL,
            },
            "profile": {
                "title": "Dr. Rameshwar Kumar - Chief Physiotherapist",
                "content": (
                    "Dr. Rameshwar Kumar is an expert physiotherapist and Chief Physiotherapist who conducts "
                    "daily morning exercise sessions for knee health. He specializes in home-based exercises, "
                    "rehabilitation programs and guidance for knee pain relief."
                ),
                "summary": "Chief Physiotherapist focused on knee pain relief and rehabilitation",
                "url": CHANNEL_URL,
            },
            "experience": {
                "title": "Dr. Rameshwar Kumar - Experience",
                "content": (
                    "Dr. Rameshwar Kumar is an experienced orthopedic and joint replacement surgeon with over "
                    "18 years of practice. He holds MBBS, MS, DNB and M.Ch (Ortho) degrees."
                ),
                "summary": "18+ years in orthopedics and joint replacement",
                "url": CHANNEL_URL,
            },
            "hospital": {
                "title": "Dr. Rameshwar Kumar - Clinic",
                "content": (
                    "Consultations are held at Dr. Rameshwar Kumar's clinic; location details and visiting hours "
                    f"are listed on {WEBSITE_URL}contact/."
                ),
                "summary": "Clinic location and visiting hours",
                "url": WEBSITE_URL,
            },
            "mission": {
                "title": "Dr. Rameshwar Kumar - Mission & Courses",
                "content": (
                    "Dr. Rameshwar helps people heal from knee pain without surgery or medication. He runs the "
                    "6 Weeks Knee Pain Relief Challenge, daily morning physiotherapy and meditation sessions, "
                    "and personalized coaching built on natural healing methods."
                ),
                "summary": "Natural, surgery-free knee pain relief programs",
                "url": CHANNEL_URL,
            },
        }

    @staticmethod
    def _load_overrides(kb_path: str) -> Dict[str, Dict[str, str]]:
        path = Path(kb_path)
        if not path.exists():
            logger.warning("Curated knowledge file %s not found; using built-in entries", kb_path)
            return {}
        data = json.loads(path.read_text(encoding="utf-8"))
        entries = data.get("entries", data)
        overrides = {}
        for key, value in entries.items():
            if not isinstance(value, dict) or not value.get("content"):
                logger.warning("Skipping curated entry %s without content", key)
                continue
            overrides[key] = {
                "title": value.get("title") or key.replace("_", " ").title(),
                "content": value["content"],
                "summary": value.get("summary"),
                "url": value.get("url"),
            }
        return overrides

    @staticmethod
    def mentions_identity(query: str) -> bool:
        lowered = query.lower()
        return any(keyword in lowered for keyword in IDENTITY_KEYWORDS)

    @staticmethod
    def select_entry(query: str) -> str:
        lowered = query.lower()
        for entry_key, keywords in CURATED_ROUTES:
            if any(keyword in lowered for keyword in keywords):
                return entry_key
        return DEFAULT_ENTRY

    def match(self, query: str) -> Optional[KnowledgeResult]:
        if not self.mentions_identity(query):
            return None
        entry_key = self.select_entry(query)
        entry = self.entries.get(entry_key) or self.entries[DEFAULT_ENTRY]
        return KnowledgeResult(
            context_text=f"{entry['title']}\n{entry['content']}",
            matches=None,
            reference=KnowledgeReference(
                title=entry.get("title"),
                url=entry.get("url"),
                summary=entry.get("summary"),
                source=f"curated:{entry_key}",
            ),
        )


class KnowledgeRouter:
    """Decides which knowledge source answers a query; never raises"""

    def __init__(
        self,
        curated: Optional[CuratedKnowledge] = None,
        embedder: Optional[EmbeddingProvider] = None,
        vector_store: Optional[VectorStore] = None,
        similarity_threshold: float = None,
        top_k: int = None,
    ):
        self.curated = curated or CuratedKnowledge(settings.CURATED_KB_PATH)
        self.embedder = embedder or NullEmbeddingProvider()
        self.vector_store = vector_store or NullVectorStore()
        self.similarity_threshold = (
            similarity_threshold if similarity_threshold is not None else settings.KB_SIMILARITY_THRESHOLD
        )
        self.top_k = top_k or settings.KB_TOP_K

    @property
    def vector_search_available(self) -> bool:
        return self.embedder.available and self.vector_store.available

    async def lookup(self, query: str) -> KnowledgeResult:
        curated = self.curated.match(query)
        if curated:
            logger.debug("Curated knowledge entry %s matched", curated.reference.source)
            return curated

        if not self.vector_search_available:
            return KnowledgeResult()

        try:
            vector = await self.embedder.embed(query)
            raw_matches = await self.vector_store.search(vector, self.similarity_threshold, self.top_k)
        except Exception:
            logger.warning("Knowledge search failed; continuing without context", exc_info=True)
            return KnowledgeResult()

        matches = self._rank(raw_matches)
        if not matches:
            return KnowledgeResult()

        logger.debug("Vector search returned %d matches (top similarity %.3f)", len(matches), matches[0].similarity)
        top = matches[0]
        return KnowledgeResult(
            context_text="\n".join(match.content for match in matches),
            matches=matches,
            reference=KnowledgeReference(
                title=top.metadata.title,
                url=top.metadata.url,
                summary=top.metadata.summary,
                source=top.metadata.source,
            ),
        )

    def _rank(self, matches: List[KnowledgeMatch]) -> List[KnowledgeMatch]:
        kept = [match for match in matches if match.similarity >= self.similarity_threshold]
        kept.sort(key=lambda match: match.similarity, reverse=True)
        return kept[: self.top_k]
