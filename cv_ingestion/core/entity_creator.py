"""
Create the catalog records a CV referenced but the catalog did not have.

Stages run in a fixed order: skill categories, degrees, institutions, skills.
Skills go last because they point at a category. Within a stage records are
inserted one at a time and each name is checked against the catalog plus
everything inserted earlier in the same run, so a name is never created twice.

A failed insert is logged and reported in `failed`; the run continues.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

from cv_ingestion.core import document_store
from cv_ingestion.core.document_store import Document, DocumentStore, fetch_catalog
from cv_ingestion.core.errors import InsertionFailure, MissingOtherCategory
from cv_ingestion.core.fuzzy import fuzzy_match
from cv_ingestion.core.schemas import (
    Catalog,
    Degree,
    EntityCreationResult,
    Institution,
    Skill,
    SkillCategory,
    UnmappedFields,
    UnmappedSkill,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEDUP_THRESHOLD = 0.85
SKILL_DEDUP_THRESHOLD = 0.9
OTHER_CATEGORY_NAMES = ("other", "others")

DEFAULT_DEGREE_LEVEL = "Undergraduate"
DEFAULT_INSTITUTION_TYPE = "University"
PLACEHOLDER_LOCATION = "Unknown"
PLACEHOLDER_DIVISION = "Dhaka"

# first match wins
DEGREE_LEVELS = [
    (re.compile(r"phd|doctor", re.I), "Postgraduate"),
    (re.compile(r"master|\bmsc\b|\bmba\b", re.I), "Graduate"),
    (re.compile(r"bachelor|\bbsc\b|\bba\b", re.I), "Undergraduate"),
    (re.compile(r"diploma", re.I), "Diploma"),
    (re.compile(r"certificate", re.I), "Certificate"),
]

INSTITUTION_TYPES = [
    ("college", "College"),
    ("school", "School"),
    ("institute", "Technical Institute"),
]

PAREN_RE = re.compile(r"\(([^)]+)\)")


def _key(s: str) -> str:
    return (s or "").strip().casefold()


def _find_existing(
    name: str,
    candidates: Sequence[T],
    names: Callable[[T], List[str]],
    threshold: float,
) -> Optional[T]:
    """Exact (case-insensitive) match on any of a record's names, then the first fuzzy match at or above threshold."""
    key = _key(name)
    for c in candidates:
        if any(n and _key(n) == key for n in names(c)):
            return c
    for c in candidates:
        if any(n and fuzzy_match(n, name) >= threshold for n in names(c)):
            return c
    return None


def infer_degree_level(name: str) -> str:
    for pattern, level in DEGREE_LEVELS:
        if pattern.search(name):
            return level
    return DEFAULT_DEGREE_LEVEL


def infer_degree_short_name(name: str) -> str:
    """Parenthetical text if there is one ('Bachelor of Science (BSc)' -> 'BSc'), otherwise the initials."""
    m = PAREN_RE.search(name)
    if m:
        short = m.group(1).strip()
    else:
        short = "".join(word[0] for word in name.split()).upper()
    return short or name[:10]


def infer_institution_type(name: str) -> str:
    lower = name.lower()
    for keyword, kind in INSTITUTION_TYPES:
        if keyword in lower:
            return kind
    return DEFAULT_INSTITUTION_TYPE


def _timestamps() -> Dict[str, str]:
    now = datetime.now(timezone.utc).isoformat()
    return {"created_at": now, "updated_at": now}


class EntityCreator:
    def __init__(self, store: DocumentStore):
        self.store = store
        self.result = EntityCreationResult()
        self.catalog = Catalog()

    async def _insert(self, collection: str, kind: str, name: str, document: Document) -> Optional[str]:
        """Insert one document; on failure record the label and return None."""
        try:
            doc_id = await self.store.insert(collection, {**document, **_timestamps()})
        except Exception as exc:
            failure = InsertionFailure(kind, name, str(exc))
            logger.exception("Failed to create %s %r", kind.lower(), name)
            self.result.failed.append(failure.label)
            return None
        logger.info("Created %s %r (%s)", kind.lower(), name, doc_id)
        return doc_id

    async def run(self, unmapped: UnmappedFields) -> EntityCreationResult:
        self.catalog = await fetch_catalog(self.store)

        # categories before skills: a new skill is filed under its new category
        await self.create_skill_categories(unmapped.skill_categories)
        await self.create_degrees(unmapped.degrees)
        await self.create_institutions(unmapped.institutions)
        await self.create_skills(unmapped.skills)

        created = self.result.created
        logger.info(
            "Entity creation done: %d categories, %d degrees, %d institutions, %d skills created, %d failed",
            created.categories,
            created.degrees,
            created.institutions,
            created.skills,
            len(self.result.failed),
        )
        return self.result

    # ===== Skill categories =====

    async def create_skill_categories(self, names: List[str]) -> None:
        for name in names:
            existing = _find_existing(name, self.catalog.skill_categories, lambda c: [c.name], DEDUP_THRESHOLD)
            if existing:
                self.result.category_map[name] = existing.id
                continue

            clean = name.strip()
            doc_id = await self._insert(document_store.SKILL_CATEGORIES, "Category", name, {"name": clean})
            if doc_id is None:
                continue
            self.result.category_map[name] = doc_id
            self.result.created.categories += 1
            self.catalog.skill_categories.append(SkillCategory(id=doc_id, name=clean))

    # ===== Degrees =====

    async def create_degrees(self, names: List[str]) -> None:
        for name in names:
            existing = _find_existing(name, self.catalog.degrees, lambda d: [d.name, d.short_name], DEDUP_THRESHOLD)
            if existing:
                self.result.degree_map[name] = existing.id
                continue

            clean = name.strip()
            degree = Degree(
                id="",
                name=clean,
                short_name=infer_degree_short_name(clean),
                level=infer_degree_level(clean),
            )
            doc_id = await self._insert(
                document_store.DEGREES,
                "Degree",
                name,
                {
                    "name": degree.name,
                    "short_name": degree.short_name,
                    "level": degree.level,
                    "description": f"{clean} degree",
                    "is_active": True,
                },
            )
            if doc_id is None:
                continue
            self.result.degree_map[name] = doc_id
            self.result.created.degrees += 1
            self.catalog.degrees.append(degree.model_copy(update={"id": doc_id}))

    # ===== Institutions =====

    async def create_institutions(self, names: List[str]) -> None:
        for name in names:
            existing = _find_existing(name, self.catalog.institutions, lambda i: [i.name], DEDUP_THRESHOLD)
            if existing:
                self.result.institution_map[name] = existing.id
                continue

            clean = name.strip()
            institution = Institution(
                id="",
                name=clean,
                type=infer_institution_type(clean),
                location=PLACEHOLDER_LOCATION,
                division=PLACEHOLDER_DIVISION,
            )
            # Taken from the user's own CV, so created as verified.
            doc_id = await self._insert(
                document_store.INSTITUTIONS,
                "Institution",
                name,
                {
                    "name": institution.name,
                    "type": institution.type,
                    "location": institution.location,
                    "division": institution.division,
                    "is_active": True,
                    "is_verified": True,
                },
            )
            if doc_id is None:
                continue
            self.result.institution_map[name] = doc_id
            self.result.created.institutions += 1
            self.catalog.institutions.append(institution.model_copy(update={"id": doc_id}))

    # ===== Skills =====

    def _other_category(self) -> SkillCategory:
        for wanted in OTHER_CATEGORY_NAMES:
            for c in self.catalog.skill_categories:
                if _key(c.name) == wanted:
                    return c
        raise MissingOtherCategory('No "Other" category found for skills')

    def _category_id_for(self, skill: UnmappedSkill) -> str:
        # already resolved during normalization
        if skill.category_id:
            return skill.category_id
        if skill.category:
            if skill.category in self.result.category_map:
                return self.result.category_map[skill.category]
            existing = _find_existing(skill.category, self.catalog.skill_categories, lambda c: [c.name], DEDUP_THRESHOLD)
            if existing:
                return existing.id
        return self._other_category().id

    async def create_skills(self, skills: List[UnmappedSkill]) -> None:
        for skill in skills:
            name = skill.name
            existing = _find_existing(name, self.catalog.skills, lambda s: [s.name], SKILL_DEDUP_THRESHOLD)
            if existing:
                self.result.skill_map[name] = existing.id
                continue

            clean = name.strip()
            category_id = self._category_id_for(skill)
            doc_id = await self._insert(
                document_store.SKILLS, "Skill", name, {"name": clean, "category_id": category_id}
            )
            if doc_id is None:
                continue
            self.result.skill_map[name] = doc_id
            self.result.created.skills += 1
            self.catalog.skills.append(Skill(id=doc_id, name=clean, category_id=category_id))


async def create_unmapped_entities(store: DocumentStore, unmapped: UnmappedFields) -> EntityCreationResult:
    """Create missing categories, degrees, institutions and skills in `store`, in that order."""
    return await EntityCreator(store).run(unmapped)
