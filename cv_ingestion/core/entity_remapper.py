"""
Second resolution pass over normalized form data.

Run after the entity creator has inserted missing records and the resolver has
been reloaded from the store. Every Unresolved value is looked up again; what
still does not match stays Unresolved (rendered as plain text by to_record())
and is listed in remaining_unmapped. Resolved values are left alone.
"""

import logging
from typing import List, Optional

from cv_ingestion.core.entity_resolver import EntityResolver
from cv_ingestion.core.mapped import MappedValue, Resolved, Unresolved
from cv_ingestion.core.schemas import (
    EducationForm,
    ParsedCV,
    ParsedSkill,
    ParsedSkillCategory,
    PortfolioFormData,
    RemainingUnmapped,
    RemapResult,
    SkillEntry,
    TechnicalSkill,
)

logger = logging.getLogger(__name__)


def _key(s: Optional[str]) -> str:
    return (s or "").strip().casefold()


def _add_unique(items: List[str], value: str) -> None:
    if value not in items:
        items.append(value)


class _Remapper:
    def __init__(self, parsed_cv: ParsedCV, resolver: EntityResolver):
        self.cv = parsed_cv
        self.resolver = resolver
        self.remaining = RemainingUnmapped()

    # ===== Education =====

    def education(self, entries: List[EducationForm]) -> List[EducationForm]:
        updated = []
        for i, edu in enumerate(entries):
            # entries beyond the parsed list were added after parsing; leave them
            if i >= len(self.cv.education):
                updated.append(edu)
                continue
            updated.append(
                edu.model_copy(update={"degree": self._degree(edu.degree), "institution": self._institution(edu.institution)})
            )
        return updated

    def _degree(self, value: MappedValue) -> MappedValue:
        if not isinstance(value, Unresolved):
            return value
        match = self.resolver.resolve_degree(value.text)
        if match.matched and match.entity is not None:
            return Resolved(value=match.entity.name, match_type=match.match_type)
        _add_unique(self.remaining.degrees, value.text)
        return value

    def _institution(self, value: MappedValue) -> MappedValue:
        if not isinstance(value, Unresolved):
            return value
        match = self.resolver.resolve_institution(value.text)
        if match.matched and match.entity is not None:
            return Resolved(value=match.entity.name, match_type=match.match_type)
        _add_unique(self.remaining.institutions, value.text)
        return value

    # ===== Skills =====

    def _category_name(self, value: MappedValue) -> str:
        if isinstance(value, Unresolved):
            return value.text
        for c in self.resolver.skill_categories:
            if c.id == value.value:
                return c.name
        return value.value

    def _parsed_category(self, group: TechnicalSkill) -> Optional[ParsedSkillCategory]:
        name = _key(self._category_name(group.category))
        for pc in self.cv.skills.categories:
            if _key(pc.category_name) == name:
                return pc
        # a category the normalizer resolved by fuzzy or synonym carries a different name
        if isinstance(group.category, Resolved):
            for pc in self.cv.skills.categories:
                match = self.resolver.resolve_skill_category(pc.category_name)
                if match.matched and match.entity is not None and match.entity.id == group.category.value:
                    return pc
        return None

    def _category(self, value: MappedValue, record: bool) -> MappedValue:
        if not isinstance(value, Unresolved):
            return value
        match = self.resolver.resolve_skill_category(value.text)
        if match.matched and match.entity is not None:
            return Resolved(value=match.entity.id, match_type=match.match_type)
        if record:
            _add_unique(self.remaining.categories, value.text)
        return value

    def _skill(self, name: str, category_hint: Optional[str]) -> Optional[MappedValue]:
        match = self.resolver.resolve_skill(name, category_hint)
        if match.matched and match.entity is not None:
            return Resolved(value=match.entity.id, match_type=match.match_type)
        return None

    @staticmethod
    def _parsed_skill(pc: ParsedSkillCategory, name: str, index: int) -> Optional[ParsedSkill]:
        for ps in pc.skills:
            if _key(ps.name) == _key(name):
                return ps
        return pc.skills[index] if index < len(pc.skills) else None

    def technical_skills(self, groups: List[TechnicalSkill]) -> List[TechnicalSkill]:
        updated = []
        for group in groups:
            pc = self._parsed_category(group)
            hint = pc.category_name if pc else None
            category = self._category(group.category, record=pc is not None)

            skills: List[SkillEntry] = []
            for i, entry in enumerate(group.skills):
                if not isinstance(entry.skill_id, Unresolved):
                    skills.append(entry)
                    continue
                parsed = self._parsed_skill(pc, entry.skill_id.text, i) if pc else None
                name = parsed.name if parsed else entry.skill_id.text
                resolved = self._skill(name, hint)
                if resolved is not None:
                    skills.append(entry.model_copy(update={"skill_id": resolved}))
                else:
                    _add_unique(self.remaining.skills, name)
                    skills.append(entry)

            updated.append(group.model_copy(update={"category": category, "skills": skills}))
        return updated


def remap_form_data_with_entities(
    form_data: PortfolioFormData,
    parsed_cv: ParsedCV,
    resolver: EntityResolver,
) -> RemapResult:
    """
    Re-resolve the Unresolved values in `form_data` against the resolver's current catalog.

    Education entries line up with parsed_cv.education by position. Skill groups
    are matched to parsed categories by name (case-insensitive), and skills within
    a group by name with position as the fallback. The resolver is not reloaded
    here; call load_entities() first when new records were created.
    """
    remapper = _Remapper(parsed_cv, resolver)
    result = RemapResult(
        form_data=form_data.model_copy(
            update={
                "education": remapper.education(form_data.education),
                "technical_skills": remapper.technical_skills(form_data.technical_skills),
            }
        ),
        remaining_unmapped=remapper.remaining,
    )
    remaining = result.remaining_unmapped
    logger.info(
        "Remap done: %d skills, %d categories, %d degrees, %d institutions still unmapped",
        len(remaining.skills),
        len(remaining.categories),
        len(remaining.degrees),
        len(remaining.institutions),
    )
    return result
