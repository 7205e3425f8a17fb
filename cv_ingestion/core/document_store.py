"""
Document store abstraction for the reference catalog.

The pipeline needs two things from a store: fetch a collection as a list of
documents, and insert a document and get its id back. Anything providing those
two coroutines can back the resolver and the entity creator.
"""

import asyncio
import copy
import json
import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional, Protocol

from cv_ingestion.core.schemas import Catalog, Degree, Institution, Skill, SkillCategory

logger = logging.getLogger(__name__)


DEGREES = "degrees"
INSTITUTIONS = "institutions"
SKILLS = "skills"
SKILL_CATEGORIES = "skill_categories"
COLLECTIONS = (DEGREES, INSTITUTIONS, SKILLS, SKILL_CATEGORIES)

Document = Dict[str, Any]


class DocumentStore(Protocol):
    async def fetch_all(self, collection: str, active_only: bool = False) -> List[Document]:
        ...

    async def insert(self, collection: str, document: Document) -> str:
        ...


class InMemoryDocumentStore:
    """Dict-backed store. Documents are copied in and out."""

    def __init__(self, data: Optional[Dict[str, Iterable[Document]]] = None):
        self._collections: Dict[str, List[Document]] = {name: [] for name in COLLECTIONS}
        for name, docs in (data or {}).items():
            self._collections[name] = [self._with_id(doc) for doc in docs]

    @staticmethod
    def _with_id(doc: Document) -> Document:
        doc = copy.deepcopy(dict(doc))
        doc.setdefault("id", uuid.uuid4().hex)
        return doc

    @classmethod
    def from_json_file(cls, path: str) -> "InMemoryDocumentStore":
        """Seed from a JSON object keyed by collection name."""
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        store = cls(data)
        logger.info(
            "Loaded catalog from %s: %s",
            path,
            {name: len(docs) for name, docs in store._collections.items()},
        )
        return store

    async def fetch_all(self, collection: str, active_only: bool = False) -> List[Document]:
        docs = self._collections.get(collection, [])
        if active_only:
            docs = [d for d in docs if d.get("is_active", True)]
        return copy.deepcopy(docs)

    async def insert(self, collection: str, document: Document) -> str:
        doc = self._with_id(document)
        self._collections.setdefault(collection, []).append(doc)
        return doc["id"]


async def fetch_catalog(store: DocumentStore) -> Catalog:
    """Fetch the four catalog collections concurrently (active degrees and institutions only)."""
    degrees, institutions, skills, categories = await asyncio.gather(
        store.fetch_all(DEGREES, active_only=True),
        store.fetch_all(INSTITUTIONS, active_only=True),
        store.fetch_all(SKILLS),
        store.fetch_all(SKILL_CATEGORIES),
    )
    return Catalog(
        degrees=[Degree.model_validate(d) for d in degrees],
        institutions=[Institution.model_validate(d) for d in institutions],
        skills=[Skill.model_validate(d) for d in skills],
        skill_categories=[SkillCategory.model_validate(d) for d in categories],
    )
