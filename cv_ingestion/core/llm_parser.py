"""
LLM-based CV parsing and the hybrid strategy.

The LLM parser sends the full CV text with a fixed JSON schema to a completion
provider, validates the answer and assigns flat per-kind confidences. The hybrid
strategy runs the deterministic parser first and only calls the LLM when the
deterministic confidence is below the configured threshold.
"""

import json
import logging
import re
import time
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from cv_ingestion.config import ParserConfig
from cv_ingestion.core import confidence
from cv_ingestion.core.deterministic_parser import DeterministicParser
from cv_ingestion.core.errors import MalformedResponse
from cv_ingestion.core.llm_providers import CompletionProvider, build_provider
from cv_ingestion.core.schemas import (
    CVMetadata,
    ExtractedText,
    ParsedCertification,
    ParsedCourse,
    ParsedCV,
    ParsedEducation,
    ParsedPersonalInfo,
    ParsedProject,
    ParsedSkill,
    ParsedSkillCategory,
    ParsedSkills,
    ParsedWorkExperience,
)

logger = logging.getLogger(__name__)


PROMPT_TEMPLATE = """You are an expert CV/Resume parser. Extract structured information from the following CV text and return it in JSON format.

CV Text:
{text}

Please extract the following information in valid JSON format:

{{
  "personalInfo": {{
    "fullName": "string",
    "email": "string",
    "phone": "string",
    "location": "string (optional)",
    "nationality": "string (optional)",
    "summary": "string (optional, professional summary/objective)",
    "linkedIn": "string (optional, URL)",
    "github": "string (optional, URL)",
    "website": "string (optional, URL)"
  }},
  "education": [
    {{
      "degree": "string (e.g., Bachelor of Science, MSc, etc.)",
      "institution": "string",
      "graduationYear": "number or string",
      "grade": "string (optional)",
      "fieldOfStudy": "string (optional)"
    }}
  ],
  "certifications": [
    {{
      "name": "string",
      "issuer": "string",
      "issueDate": "string (optional, ISO format)",
      "expiryDate": "string (optional, ISO format)",
      "credentialId": "string (optional)"
    }}
  ],
  "courses": [
    {{
      "name": "string",
      "provider": "string",
      "completionDate": "string (optional, ISO format)",
      "duration": "string (optional)"
    }}
  ],
  "skills": {{
    "categories": [
      {{
        "categoryName": "string (e.g., Frontend, Backend, etc.)",
        "skills": [
          {{
            "name": "string",
            "proficiency": "Beginner | Intermediate | Advanced | Expert (optional)",
            "yearsOfExperience": "number (optional)"
          }}
        ]
      }}
    ],
    "raw": ["string array of uncategorized skills (optional)"]
  }},
  "workExperience": [
    {{
      "company": "string",
      "position": "string",
      "location": "string (optional)",
      "startDate": "string (ISO format or 'MMM YYYY')",
      "endDate": "string (optional, ISO format or 'MMM YYYY')",
      "isCurrentRole": "boolean",
      "responsibilities": ["string array"],
      "achievements": ["string array (optional)"],
      "technologies": ["string array"]
    }}
  ],
  "projects": [
    {{
      "name": "string",
      "description": "string",
      "role": "string (optional)",
      "technologies": ["string array"],
      "startDate": "string (optional, ISO format)",
      "endDate": "string (optional, ISO format)",
      "url": "string (optional)",
      "repository": "string (optional, GitHub URL)"
    }}
  ]
}}

Important instructions:
1. Return ONLY valid JSON, no markdown or code blocks
2. Extract all available information accurately
3. If information is missing, omit the optional fields
4. For dates, prefer ISO format (YYYY-MM-DD) or at least 'MMM YYYY'
5. Categorize skills logically (Frontend, Backend, DevOps, Databases, etc.)
6. Split work responsibilities into clear bullet points
7. Extract technologies mentioned in experience and projects
8. Ensure all required fields are present
9. If unclear, make reasonable inferences based on context"""

CODE_FENCE_RE = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?```", re.IGNORECASE)
PROFICIENCIES = {"beginner": "Beginner", "intermediate": "Intermediate", "advanced": "Advanced", "expert": "Expert"}


# ============================================================================
# LLM response schema (camelCase on the wire)
# ============================================================================

class _LLMModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # null means "not provided": fall back to the field default
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class LLMPersonalInfo(_LLMModel):
    full_name: str = ""
    email: str = ""
    phone: str = ""
    location: Optional[str] = None
    nationality: Optional[str] = None
    summary: Optional[str] = None
    linked_in: Optional[str] = None
    github: Optional[str] = None
    website: Optional[str] = None


class LLMEducation(_LLMModel):
    degree: str = ""
    institution: str = ""
    graduation_year: Optional[Union[int, str]] = None
    grade: Optional[str] = None
    field_of_study: Optional[str] = None


class LLMCertification(_LLMModel):
    name: str = ""
    issuer: str = "Unknown"
    issue_date: Optional[str] = None
    expiry_date: Optional[str] = None
    credential_id: Optional[str] = None


class LLMCourse(_LLMModel):
    name: str = ""
    provider: str = "Unknown"
    completion_date: Optional[str] = None
    duration: Optional[str] = None


class LLMSkill(_LLMModel):
    name: str = ""
    proficiency: Optional[str] = None
    years_of_experience: Optional[float] = None


class LLMSkillCategory(_LLMModel):
    category_name: str = ""
    skills: List[LLMSkill] = Field(default_factory=list)


class LLMSkills(_LLMModel):
    categories: List[LLMSkillCategory] = Field(default_factory=list)
    raw: List[str] = Field(default_factory=list)


class LLMWorkExperience(_LLMModel):
    company: str = ""
    position: str = ""
    location: Optional[str] = None
    start_date: str = ""
    end_date: Optional[str] = None
    is_current_role: bool = False
    responsibilities: List[str] = Field(default_factory=list)
    achievements: Optional[List[str]] = None
    technologies: List[str] = Field(default_factory=list)


class LLMProject(_LLMModel):
    name: str = ""
    description: str = ""
    role: Optional[str] = None
    technologies: List[str] = Field(default_factory=list)
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    url: Optional[str] = None
    repository: Optional[str] = None


class LLMResponse(_LLMModel):
    personal_info: LLMPersonalInfo = Field(default_factory=LLMPersonalInfo)
    education: List[LLMEducation] = Field(default_factory=list)
    certifications: List[LLMCertification] = Field(default_factory=list)
    courses: List[LLMCourse] = Field(default_factory=list)
    skills: LLMSkills = Field(default_factory=LLMSkills)
    work_experience: List[LLMWorkExperience] = Field(default_factory=list)
    projects: List[LLMProject] = Field(default_factory=list)


def build_prompt(extracted: ExtractedText) -> str:
    return PROMPT_TEMPLATE.format(text=extracted.full_text)


def extract_json_payload(content: str) -> str:
    """Strip markdown code fences, or take the outermost {...} block."""
    fenced = CODE_FENCE_RE.search(content)
    if fenced:
        return fenced.group(1).strip()
    start, end = content.find("{"), content.rfind("}")
    if start != -1 and end > start:
        return content[start:end + 1]
    return content.strip()


def parse_llm_response(content: str) -> LLMResponse:
    try:
        data = json.loads(extract_json_payload(content))
    except json.JSONDecodeError as exc:
        raise MalformedResponse("Failed to parse LLM response as JSON", details={"error": str(exc)}) from exc
    if not isinstance(data, dict):
        raise MalformedResponse("LLM response is not a JSON object")
    try:
        return LLMResponse.model_validate(data)
    except ValidationError as exc:
        raise MalformedResponse(
            "LLM response does not match the expected schema",
            details={"errors": exc.errors(include_url=False)},
        ) from exc


def _proficiency(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return PROFICIENCIES.get(value.strip().lower())


def to_parsed_cv(response: LLMResponse, duration_ms: float = 0.0) -> ParsedCV:
    """Map a validated LLM response onto ParsedCV with flat LLM confidences."""
    c = confidence.LLM
    p = response.personal_info
    return ParsedCV(
        personal_info=ParsedPersonalInfo(**p.model_dump()),
        education=[
            ParsedEducation(
                degree=e.degree,
                institution=e.institution,
                graduation_year=e.graduation_year,
                grade=e.grade,
                field_of_study=e.field_of_study,
                confidence=c["education"],
            )
            for e in response.education
            if e.degree or e.institution
        ],
        certifications=[
            ParsedCertification(
                name=cert.name,
                issuer=cert.issuer or "Unknown",
                issue_date=cert.issue_date,
                expiry_date=cert.expiry_date,
                credential_id=cert.credential_id,
                confidence=c["certification"],
            )
            for cert in response.certifications
            if cert.name
        ],
        courses=[
            ParsedCourse(
                name=course.name,
                provider=course.provider or "Unknown",
                completion_date=course.completion_date,
                duration=course.duration,
                confidence=c["course"],
            )
            for course in response.courses
            if course.name
        ],
        skills=ParsedSkills(
            categories=[
                ParsedSkillCategory(
                    category_name=cat.category_name,
                    skills=[
                        ParsedSkill(
                            name=s.name,
                            proficiency=_proficiency(s.proficiency),
                            years_of_experience=s.years_of_experience,
                            confidence=c["skill"],
                        )
                        for s in cat.skills
                        if s.name
                    ],
                    confidence=c["skill_category"],
                )
                for cat in response.skills.categories
                if cat.category_name
            ],
            raw=[r for r in response.skills.raw if r],
        ),
        work_experience=[
            ParsedWorkExperience(
                company=w.company,
                position=w.position,
                location=w.location,
                start_date=w.start_date,
                end_date=w.end_date,
                is_current_role=w.is_current_role,
                responsibilities=w.responsibilities,
                achievements=w.achievements,
                technologies=w.technologies,
                confidence=c["work_experience"],
            )
            for w in response.work_experience
            if w.company or w.position
        ],
        projects=[
            ParsedProject(
                name=proj.name,
                description=proj.description,
                role=proj.role,
                contribution=proj.description,
                technologies=proj.technologies,
                start_date=proj.start_date,
                end_date=proj.end_date,
                url=proj.url,
                repository=proj.repository,
                confidence=c["project"],
            )
            for proj in response.projects
            if proj.name
        ],
        metadata=CVMetadata(
            parsing_method="llm",
            parsing_duration=duration_ms,
            total_confidence=c["total"],
        ),
    )


class LLMParser:
    """Parses ExtractedText through a CompletionProvider."""

    def __init__(
        self,
        extracted: ExtractedText,
        config: ParserConfig,
        provider: Optional[CompletionProvider] = None,
    ):
        self.extracted = extracted
        self.config = config
        self._provider = provider

    @property
    def provider(self) -> CompletionProvider:
        if self._provider is None:
            self._provider = build_provider(self.config)
        return self._provider

    async def parse(self) -> ParsedCV:
        started = time.perf_counter()
        provider = self.provider
        content = await provider.complete(build_prompt(self.extracted))
        response = parse_llm_response(content)
        return to_parsed_cv(response, duration_ms=(time.perf_counter() - started) * 1000)


# ============================================================================
# Hybrid
# ============================================================================

def _first_non_empty(primary: Optional[str], fallback: Optional[str]) -> Optional[str]:
    return primary if primary else fallback


def merge_parsed_cvs(primary: ParsedCV, fallback: ParsedCV) -> ParsedCV:
    """
    Prefer each non-empty section of `primary`, else keep `fallback`'s.

    Personal info is merged field by field, taking non-empty scalars from
    `primary` first.
    """
    p, f = primary.personal_info, fallback.personal_info
    personal_info = ParsedPersonalInfo(
        **{
            field: _first_non_empty(getattr(p, field), getattr(f, field))
            for field in ParsedPersonalInfo.model_fields
        }
    )
    education = primary.education or fallback.education
    certifications = primary.certifications or fallback.certifications
    courses = primary.courses or fallback.courses
    skills = fallback.skills if primary.skills.is_empty() else primary.skills
    work_experience = primary.work_experience or fallback.work_experience
    projects = primary.projects or fallback.projects

    total = confidence.mean_confidence(
        r.confidence for r in [*education, *certifications, *courses, *work_experience, *projects]
    )
    return ParsedCV(
        personal_info=personal_info,
        education=education,
        certifications=certifications,
        courses=courses,
        skills=skills,
        work_experience=work_experience,
        projects=projects,
        metadata=primary.metadata.model_copy(
            update={
                "parsing_method": "hybrid",
                "parsing_duration": primary.metadata.parsing_duration + fallback.metadata.parsing_duration,
                "total_confidence": total,
                "warnings": [*primary.metadata.warnings, *fallback.metadata.warnings],
                "errors": [*primary.metadata.errors, *fallback.metadata.errors],
            }
        ),
    )


async def parse_with_hybrid_approach(
    extracted: ExtractedText,
    config: ParserConfig,
    provider: Optional[CompletionProvider] = None,
) -> ParsedCV:
    """
    Deterministic first; LLM only when enabled and deterministic confidence is
    below the threshold.

    On LLM failure the deterministic result is returned when
    ``fallback_to_deterministic`` is set, otherwise the LLM error propagates.
    """
    if config.debug_mode:
        logger.info("Detected sections: %s", [s.heading for s in extracted.sections])

    deterministic = DeterministicParser(extracted).parse()
    total = deterministic.metadata.total_confidence

    if not config.use_llm or total >= config.confidence_threshold:
        logger.debug("Using deterministic result (confidence %.2f)", total)
        return deterministic

    logger.info(
        "Deterministic confidence %.2f below threshold %.2f, calling LLM",
        total,
        config.confidence_threshold,
    )
    try:
        llm_result = await LLMParser(extracted, config, provider=provider).parse()
    except Exception as exc:
        if config.fallback_to_deterministic:
            logger.warning("LLM parsing failed, using deterministic result: %s", exc)
            return deterministic
        raise

    return merge_parsed_cvs(llm_result, deterministic)
