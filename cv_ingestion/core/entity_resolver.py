"""
Entity resolution against the reference catalog.

Each resolve call is exact-then-fuzzy over the in-memory catalog:

  1. case-insensitive equality on the name (and short name for degrees);
     institutions also accept containment in either direction as exact
  2. fuzzy_match against every record, discarding scores below the threshold

Equal scores are broken by case-insensitive name, then id, so the result does
not depend on catalog order. Category lookups fall back to a synonym table.

The catalog is loaded with load_entities() (or load_catalog()) and replaced
wholesale on every load; resolving before a load behaves as an empty catalog.
"""

import logging
from typing import Callable, Dict, List, Literal, Optional, Sequence, Tuple, TypeVar

from cv_ingestion.core import confidence
from cv_ingestion.core.document_store import DocumentStore, fetch_catalog
from cv_ingestion.core.fuzzy import fuzzy_match
from cv_ingestion.core.schemas import (
    Catalog,
    Degree,
    EntityMatch,
    Institution,
    ResolvedSkill,
    Skill,
    SkillCategory,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

EntityType = Literal["degree", "institution", "skill", "category"]

DEFAULT_MATCH_THRESHOLD = 0.75
OTHER_CATEGORY_NAME = "Other"

CATEGORY_SYNONYMS: Dict[str, str] = {
    "frontend": "Frontend",
    "front-end": "Frontend",
    "backend": "Backend",
    "back-end": "Backend",
    "database": "Databases",
    "databases": "Databases",
    "devops": "DevOps",
    "dev ops": "DevOps",
    "cloud": "Cloud",
    "mobile": "Mobile",
    "testing": "Testing",
    "qa": "Testing",
    "design": "Design",
    "tools": "Tools",
    "framework": "Frameworks",
    "frameworks": "Frameworks",
    "library": "Libraries",
    "libraries": "Libraries",
    "language": "Languages",
    "languages": "Languages",
    "programming languages": "Languages",
}


def _key(s: str) -> str:
    return (s or "").strip().casefold()


def rank(candidates: Sequence[T], score: Callable[[T], float], threshold: float = 0.0) -> List[Tuple[T, float]]:
    """Candidates scoring at least `threshold`, best first; ties by name then id."""
    scored = [(c, score(c)) for c in candidates]
    scored = [(c, s) for c, s in scored if s >= threshold]
    scored.sort(key=lambda cs: (-cs[1], _key(getattr(cs[0], "name", "")), getattr(cs[0], "id", "")))
    return scored


def _first_by_name(candidates: Sequence[T]) -> Optional[T]:
    if not candidates:
        return None
    return sorted(candidates, key=lambda c: (_key(c.name), c.id))[0]


class EntityResolver:
    def __init__(self, match_threshold: float = DEFAULT_MATCH_THRESHOLD):
        self.match_threshold = match_threshold
        self.degrees: List[Degree] = []
        self.institutions: List[Institution] = []
        self.skills: List[Skill] = []
        self.skill_categories: List[SkillCategory] = []

    async def load_entities(self, store: DocumentStore) -> None:
        """Fetch all catalog collections from the store, replacing what was loaded before."""
        self.load_catalog(await fetch_catalog(store))

    def load_catalog(self, catalog: Catalog) -> None:
        self.degrees = list(catalog.degrees)
        self.institutions = list(catalog.institutions)
        self.skills = list(catalog.skills)
        self.skill_categories = list(catalog.skill_categories)
        logger.debug(
            "Catalog loaded: %d degrees, %d institutions, %d skills, %d categories",
            len(self.degrees),
            len(self.institutions),
            len(self.skills),
            len(self.skill_categories),
        )

    def catalog(self) -> Catalog:
        return Catalog(
            degrees=self.degrees,
            institutions=self.institutions,
            skills=self.skills,
            skill_categories=self.skill_categories,
        )

    def _fuzzy(self, candidates: Sequence[T], score: Callable[[T], float]) -> Optional[Tuple[T, float]]:
        ranked = rank(candidates, score, self.match_threshold)
        return ranked[0] if ranked else None

    # ===== Degrees =====

    def resolve_degree(self, name: str) -> EntityMatch[Degree]:
        key = _key(name)
        if not key:
            return EntityMatch[Degree](matched=False)

        exact = _first_by_name([d for d in self.degrees if _key(d.name) == key or (d.short_name and _key(d.short_name) == key)])
        if exact:
            return EntityMatch[Degree](matched=True, entity=exact, match_confidence=1.0, match_type="exact")

        best = self._fuzzy(
            self.degrees,
            lambda d: max(fuzzy_match(d.name, name), fuzzy_match(d.short_name, name) if d.short_name else 0.0),
        )
        if best:
            return EntityMatch[Degree](matched=True, entity=best[0], match_confidence=best[1], match_type="fuzzy")
        return EntityMatch[Degree](matched=False)

    # ===== Institutions =====

    def resolve_institution(self, name: str) -> EntityMatch[Institution]:
        key = _key(name)
        if not key:
            return EntityMatch[Institution](matched=False)

        equal = [i for i in self.institutions if _key(i.name) == key]
        contained = [i for i in self.institutions if _key(i.name) and (_key(i.name) in key or key in _key(i.name))]
        exact = _first_by_name(equal) or _first_by_name(contained)
        if exact:
            return EntityMatch[Institution](matched=True, entity=exact, match_confidence=1.0, match_type="exact")

        best = self._fuzzy(self.institutions, lambda i: fuzzy_match(i.name, name))
        if best:
            return EntityMatch[Institution](matched=True, entity=best[0], match_confidence=best[1], match_type="fuzzy")
        return EntityMatch[Institution](matched=False)

    # ===== Skills =====

    def _category_name(self, category_id: str) -> str:
        for c in self.skill_categories:
            if c.id == category_id:
                return c.name
        return OTHER_CATEGORY_NAME

    def _resolved_skill(self, skill: Skill) -> ResolvedSkill:
        return ResolvedSkill(
            id=skill.id,
            name=skill.name,
            category_id=skill.category_id,
            category_name=self._category_name(skill.category_id),
        )

    def _match_skill(self, name: str, candidates: Sequence[Skill]) -> EntityMatch[ResolvedSkill]:
        key = _key(name)
        exact = _first_by_name([s for s in candidates if _key(s.name) == key])
        if exact:
            return EntityMatch[ResolvedSkill](
                matched=True, entity=self._resolved_skill(exact), match_confidence=1.0, match_type="exact"
            )
        best = self._fuzzy(candidates, lambda s: fuzzy_match(s.name, name))
        if best:
            return EntityMatch[ResolvedSkill](
                matched=True, entity=self._resolved_skill(best[0]), match_confidence=best[1], match_type="fuzzy"
            )
        return EntityMatch[ResolvedSkill](matched=False)

    def resolve_skill(self, name: str, category_hint: Optional[str] = None) -> EntityMatch[ResolvedSkill]:
        """
        Resolve a skill, searching the hinted category first.

        When the hint resolves to a category, only that category's skills are
        searched; if nothing matches there the whole skill list is searched.
        """
        if not _key(name):
            return EntityMatch[ResolvedSkill](matched=False)

        if category_hint:
            category = self.resolve_skill_category(category_hint)
            if category.matched and category.entity is not None:
                in_category = [s for s in self.skills if s.category_id == category.entity.id]
                match = self._match_skill(name, in_category)
                if match.matched:
                    return match

        return self._match_skill(name, self.skills)

    # ===== Skill categories =====

    def resolve_skill_category(self, name: str) -> EntityMatch[SkillCategory]:
        key = _key(name)
        if not key:
            return EntityMatch[SkillCategory](matched=False)

        exact = _first_by_name([c for c in self.skill_categories if _key(c.name) == key])
        if exact:
            return EntityMatch[SkillCategory](matched=True, entity=exact, match_confidence=1.0, match_type="exact")

        best = self._fuzzy(self.skill_categories, lambda c: fuzzy_match(c.name, name))
        if best:
            return EntityMatch[SkillCategory](matched=True, entity=best[0], match_confidence=best[1], match_type="fuzzy")

        mapped = CATEGORY_SYNONYMS.get(key)
        if mapped:
            synonym = _first_by_name([c for c in self.skill_categories if _key(c.name) == _key(mapped)])
            if synonym:
                return EntityMatch[SkillCategory](
                    matched=True,
                    entity=synonym,
                    match_confidence=confidence.CATEGORY_SYNONYM_MATCH,
                    match_type="fuzzy",
                )

        return EntityMatch[SkillCategory](matched=False)

    # ===== Suggestions =====

    def get_suggestions(self, entity_type: EntityType, term: str, limit: int = 5) -> list:
        """Closest catalog records for a free-text term, best first."""
        entities: Dict[str, Sequence] = {
            "degree": self.degrees,
            "institution": self.institutions,
            "skill": self.skills,
            "category": self.skill_categories,
        }
        try:
            candidates = entities[entity_type]
        except KeyError:
            raise ValueError(f"Unknown entity type: {entity_type}") from None
        return [entity for entity, _ in rank(candidates, lambda e: fuzzy_match(e.name, term))][:limit]
