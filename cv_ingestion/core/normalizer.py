"""
ParsedCV -> PortfolioFormData.

Catalog-backed fields (degree, institution, skill, skill category) are resolved
through an EntityResolver when one is given. A value that does not resolve is
kept as Unresolved with the CV text and listed in the unmapped fields so that a
later reconcile pass can create and map it. Everything else is a straight field
mapping.
"""

import logging
import re
from datetime import date
from typing import List, Optional, Tuple, Union

from cv_ingestion.core.entity_resolver import OTHER_CATEGORY_NAME, EntityResolver
from cv_ingestion.core.mapped import MappedValue, Resolved, Unresolved
from cv_ingestion.core.schemas import (
    CertificationForm,
    CourseForm,
    EducationForm,
    LanguageProficiency,
    NormalizationResult,
    ParsedCV,
    ParsedEducation,
    ParsedSkills,
    ParsedWorkExperience,
    PortfolioFormData,
    ProjectForm,
    SkillEntry,
    TechnicalSkill,
    UnmappedFields,
    UnmappedSkill,
    WorkExperienceForm,
)

logger = logging.getLogger(__name__)


DEFAULT_DESIGNATION = "Software Engineer"
DEFAULT_NATIONALITY = "Unknown"
DEFAULT_PROFICIENCY = "Intermediate"
DEFAULT_LANGUAGES = [LanguageProficiency(language="English", proficiency="professional")]
OTHER_CATEGORY_FALLBACK_ID = "other"

MONTH_NUMBERS = {
    m: i
    for i, names in enumerate(
        [
            ("jan", "january"), ("feb", "february"), ("mar", "march"), ("apr", "april"),
            ("may",), ("jun", "june"), ("jul", "july"), ("aug", "august"),
            ("sep", "sept", "september"), ("oct", "october"), ("nov", "november"), ("dec", "december"),
        ],
        start=1,
    )
    for m in names
}
MONTH_YEAR_RE = re.compile(r"^([A-Za-z]+)\.?\s+(\d{4})$")
NUMERIC_MONTH_YEAR_RE = re.compile(r"^(\d{1,2})/(\d{4})$")
US_DATE_RE = re.compile(r"^(\d{1,2})/\d{1,2}/(\d{4})$")
ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{1,2})(?:-\d{1,2})?")
YEAR_ONLY_RE = re.compile(r"^(\d{4})$")
FIRST_YEAR_RE = re.compile(r"\b(\d{4})\b")


def parse_month(value: Optional[str]) -> Optional[Tuple[int, int]]:
    """
    (year, month) for the date formats CVs commonly use, or None.

    Accepts 'Jan 2020', 'January 2020', '01/2020', '01/15/2020', '2020-01',
    '2020-01-15' and a bare '2020' (taken as January).
    """
    if not value:
        return None
    text = value.strip()

    m = MONTH_YEAR_RE.match(text)
    if m:
        month = MONTH_NUMBERS.get(m.group(1).lower())
        return (int(m.group(2)), month) if month else None
    for pattern in (NUMERIC_MONTH_YEAR_RE, US_DATE_RE):
        m = pattern.match(text)
        if m:
            month = int(m.group(1))
            return (int(m.group(2)), month) if 1 <= month <= 12 else None
    m = ISO_DATE_RE.match(text)
    if m:
        month = int(m.group(2))
        return (int(m.group(1)), month) if 1 <= month <= 12 else None
    m = YEAR_ONLY_RE.match(text)
    if m:
        return int(m.group(1)), 1
    return None


def calculate_years_of_experience(work: List[ParsedWorkExperience], today: Optional[date] = None) -> int:
    """Whole years across all jobs: month deltas summed (negative ones count as 0), floor-divided by 12."""
    today = today or date.today()
    total_months = 0
    for exp in work:
        start = parse_month(exp.start_date)
        end = parse_month(exp.end_date) if exp.end_date else (today.year, today.month)
        if start is None or end is None:
            continue
        months = (end[0] - start[0]) * 12 + (end[1] - start[1])
        total_months += max(0, months)
    return total_months // 12


def _passing_year(value: Union[int, str, None]) -> int:
    if isinstance(value, int):
        return value
    if value:
        m = FIRST_YEAR_RE.search(str(value))
        if m:
            return int(m.group(1))
    return date.today().year


class _Normalizer:
    def __init__(self, parsed_cv: ParsedCV, resolver: Optional[EntityResolver]):
        self.cv = parsed_cv
        self.resolver = resolver
        self.unmapped = UnmappedFields()
        self.warnings: List[str] = []

    def run(self) -> NormalizationResult:
        cv = self.cv
        p = cv.personal_info
        form = PortfolioFormData(
            email=p.email,
            mobile_no=p.phone,
            nationality=p.nationality or DEFAULT_NATIONALITY,
            years_of_experience=calculate_years_of_experience(cv.work_experience),
            designation=cv.work_experience[0].position if cv.work_experience else DEFAULT_DESIGNATION,
            summary=p.summary or "",
            employee_code="",
            language_proficiency=[lp.model_copy() for lp in DEFAULT_LANGUAGES],
            references=[],
            education=[self._education(e) for e in cv.education],
            certifications=[
                CertificationForm(
                    name=c.name,
                    issuer=c.issuer,
                    date=c.issue_date or "",
                    issuing_organization=c.issuer,
                    year=_first_year(c.issue_date),
                    expiry_date=c.expiry_date,
                    credential_id=c.credential_id,
                )
                for c in cv.certifications
            ],
            courses=[
                CourseForm(
                    name=c.name,
                    provider=c.provider,
                    completion_date=c.completion_date or "",
                    duration=c.duration,
                )
                for c in cv.courses
            ],
            technical_skills=self._skills(cv.skills),
            work_experience=[
                WorkExperienceForm(
                    company=w.company,
                    position=w.position,
                    start_date=w.start_date,
                    end_date=w.end_date,
                    is_current_role=w.is_current_role,
                    responsibilities=list(w.responsibilities),
                    technologies=list(w.technologies),
                )
                for w in cv.work_experience
            ],
            projects=[
                ProjectForm(
                    name=pr.name,
                    description=pr.description,
                    contribution=pr.contribution or pr.description,
                    technologies=list(pr.technologies),
                    start_date=pr.start_date,
                    end_date=pr.end_date,
                    is_ongoing=pr.is_ongoing,
                    role=pr.role,
                    url=pr.url,
                    repository=pr.repository,
                )
                for pr in cv.projects
            ],
        )
        return NormalizationResult(form_data=form, unmapped_fields=self.unmapped, warnings=self.warnings)

    # ===== Education =====

    def _education(self, edu: ParsedEducation) -> EducationForm:
        return EducationForm(
            degree=self._degree(edu.degree),
            institution=self._institution(edu.institution),
            passing_year=_passing_year(edu.graduation_year),
            grade=edu.grade,
        )

    def _degree(self, name: str) -> MappedValue:
        if self.resolver is not None:
            match = self.resolver.resolve_degree(name)
            if match.matched and match.entity is not None:
                return Resolved(value=match.entity.name, match_type=match.match_type)
            self.warnings.append(f'Degree "{name}" not found in database, will be created')
        _add_unique(self.unmapped.degrees, name)
        return Unresolved(text=name)

    def _institution(self, name: str) -> MappedValue:
        if self.resolver is not None:
            match = self.resolver.resolve_institution(name)
            if match.matched and match.entity is not None:
                return Resolved(value=match.entity.name, match_type=match.match_type)
            self.warnings.append(f'Institution "{name}" not found in database, will be created')
        _add_unique(self.unmapped.institutions, name)
        return Unresolved(text=name)

    # ===== Skills =====

    def _skill(self, name: str, category: Optional[str]) -> MappedValue:
        if self.resolver is not None:
            match = self.resolver.resolve_skill(name, category)
            if match.matched and match.entity is not None:
                return Resolved(value=match.entity.id, match_type=match.match_type)
            self.warnings.append(f'Skill "{name}" not found in database')
        if not any(s.name == name and s.category == category for s in self.unmapped.skills):
            self.unmapped.skills.append(
                UnmappedSkill(name=name, category=category, category_id=self._category_id(category))
            )
        return Unresolved(text=name)

    def _category_id(self, name: Optional[str]) -> Optional[str]:
        if not name or self.resolver is None:
            return None
        match = self.resolver.resolve_skill_category(name)
        return match.entity.id if match.matched and match.entity is not None else None

    def _category(self, name: str) -> MappedValue:
        if self.resolver is not None:
            match = self.resolver.resolve_skill_category(name)
            if match.matched and match.entity is not None:
                return Resolved(value=match.entity.id, match_type=match.match_type)
            self.warnings.append(f'Category "{name}" not found, will be created')
        _add_unique(self.unmapped.skill_categories, name)
        return Unresolved(text=name)

    def _skills(self, skills: ParsedSkills) -> List[TechnicalSkill]:
        technical: List[TechnicalSkill] = []

        for category in skills.categories:
            entries = [
                SkillEntry(
                    skill_id=self._skill(s.name, category.category_name),
                    proficiency=s.proficiency or DEFAULT_PROFICIENCY,
                )
                for s in category.skills
            ]
            if entries:
                technical.append(TechnicalSkill(category=self._category(category.category_name), skills=entries))

        # Uncategorised skills need a resolver; without one they are dropped.
        if skills.raw and self.resolver is not None:
            entries = [SkillEntry(skill_id=self._skill(name, None)) for name in skills.raw]
            other = self.resolver.resolve_skill_category(OTHER_CATEGORY_NAME)
            if other.matched and other.entity is not None:
                other_category: MappedValue = Resolved(value=other.entity.id, match_type=other.match_type)
            else:
                other_category = Resolved(value=OTHER_CATEGORY_FALLBACK_ID)
            technical.append(TechnicalSkill(category=other_category, skills=entries))
        elif skills.raw:
            logger.debug("Dropping %d uncategorised skills: no resolver", len(skills.raw))

        return technical


def _add_unique(items: List[str], value: str) -> None:
    if value not in items:
        items.append(value)


def _first_year(value: Optional[str]) -> str:
    if not value:
        return ""
    m = FIRST_YEAR_RE.search(value)
    return m.group(1) if m else ""


def normalize_parsed_cv(parsed_cv: ParsedCV, resolver: Optional[EntityResolver] = None) -> NormalizationResult:
    """Map a ParsedCV to form data. The ParsedCV is not modified."""
    result = _Normalizer(parsed_cv, resolver).run()
    logger.info(
        "Normalized CV: %d education, %d skill groups, %d unmapped skills",
        len(result.form_data.education),
        len(result.form_data.technical_skills),
        len(result.unmapped_fields.skills),
    )
    return result
