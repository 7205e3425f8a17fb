from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, Field

from cv_ingestion.core.mapped import MappedValue, display_value


FileType = Literal["pdf", "docx", "doc", "txt"]
ParsingMethod = Literal["deterministic", "llm", "hybrid"]
MatchType = Literal["exact", "fuzzy", "created"]
Proficiency = Literal["Beginner", "Intermediate", "Advanced", "Expert"]


# ============================================================================
# Extraction
# ============================================================================

class ExtractedSection(BaseModel):
    heading: str = Field(..., description="Canonical section name, e.g. 'Education'")
    content: str = Field(default="", description="Raw lines belonging to the section")
    confidence: float = Field(..., ge=0.0, le=1.0)
    start_index: int = Field(..., description="Line offset of the heading")
    end_index: int = Field(..., description="Line offset of the last content line")


class TextMetadata(BaseModel):
    page_count: Optional[int] = None
    word_count: int = 0
    has_images: bool = False


class ExtractedText(BaseModel):
    full_text: str
    sections: List[ExtractedSection] = Field(default_factory=list)
    metadata: TextMetadata = Field(default_factory=TextMetadata)

    def section(self, heading: str) -> Optional[ExtractedSection]:
        """First section with the given canonical heading, if any."""
        for s in self.sections:
            if s.heading == heading:
                return s
        return None


# ============================================================================
# Parsed CV
# ============================================================================

class ParsedPersonalInfo(BaseModel):
    full_name: str = ""
    email: str = ""
    phone: str = ""
    location: Optional[str] = None
    nationality: Optional[str] = None
    summary: Optional[str] = None
    linked_in: Optional[str] = None
    github: Optional[str] = None
    website: Optional[str] = None


class ParsedEducation(BaseModel):
    degree: str
    institution: str
    location: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    graduation_year: Optional[Union[int, str]] = None
    grade: Optional[str] = None
    gpa: Optional[str] = None
    field_of_study: Optional[str] = None
    confidence: float = Field(..., ge=0.0, le=1.0)


class ParsedCertification(BaseModel):
    name: str
    issuer: str = "Unknown"
    issue_date: Optional[str] = None
    expiry_date: Optional[str] = None
    credential_id: Optional[str] = None
    credential_url: Optional[str] = None
    confidence: float = Field(..., ge=0.0, le=1.0)


class ParsedCourse(BaseModel):
    name: str
    provider: str = "Unknown"
    completion_date: Optional[str] = None
    duration: Optional[str] = None
    certificate_url: Optional[str] = None
    confidence: float = Field(..., ge=0.0, le=1.0)


class ParsedSkill(BaseModel):
    name: str
    proficiency: Optional[Proficiency] = None
    years_of_experience: Optional[float] = None
    confidence: float = Field(..., ge=0.0, le=1.0)


class ParsedSkillCategory(BaseModel):
    category_name: str
    skills: List[ParsedSkill] = Field(default_factory=list)
    confidence: float = Field(..., ge=0.0, le=1.0)


class ParsedSkills(BaseModel):
    categories: List[ParsedSkillCategory] = Field(default_factory=list)
    raw: List[str] = Field(default_factory=list, description="Uncategorised skill names")

    def is_empty(self) -> bool:
        return not self.categories and not self.raw


class ParsedWorkExperience(BaseModel):
    company: str
    position: str
    location: Optional[str] = None
    start_date: str = ""
    end_date: Optional[str] = None
    is_current_role: bool = False
    responsibilities: List[str] = Field(default_factory=list)
    achievements: Optional[List[str]] = None
    technologies: List[str] = Field(default_factory=list)
    confidence: float = Field(..., ge=0.0, le=1.0)


class ParsedProject(BaseModel):
    name: str
    description: str = ""
    role: Optional[str] = None
    contribution: Optional[str] = None
    technologies: List[str] = Field(default_factory=list)
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    is_ongoing: Optional[bool] = None
    url: Optional[str] = None
    repository: Optional[str] = None
    achievements: Optional[List[str]] = None
    confidence: float = Field(..., ge=0.0, le=1.0)


class CVMetadata(BaseModel):
    file_name: str = ""
    file_type: FileType = "pdf"
    file_size: int = 0
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    parsing_method: ParsingMethod = "deterministic"
    parsing_duration: float = Field(default=0.0, description="Milliseconds")
    total_confidence: float = Field(default=0.0, ge=0.0, le=1.0, description="Mean confidence across list records")
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)


class ParsedCV(BaseModel):
    personal_info: ParsedPersonalInfo = Field(default_factory=ParsedPersonalInfo)
    education: List[ParsedEducation] = Field(default_factory=list)
    certifications: List[ParsedCertification] = Field(default_factory=list)
    courses: List[ParsedCourse] = Field(default_factory=list)
    skills: ParsedSkills = Field(default_factory=ParsedSkills)
    work_experience: List[ParsedWorkExperience] = Field(default_factory=list)
    projects: List[ParsedProject] = Field(default_factory=list)
    metadata: CVMetadata = Field(default_factory=CVMetadata)


# ============================================================================
# Catalog (reference data)
# ============================================================================

class Degree(BaseModel):
    id: str
    name: str
    short_name: str = ""
    level: str = ""


class Institution(BaseModel):
    id: str
    name: str
    type: str = ""
    location: str = ""
    division: Optional[str] = None


class Skill(BaseModel):
    id: str
    name: str
    category_id: str


class SkillCategory(BaseModel):
    id: str
    name: str


class ResolvedSkill(BaseModel):
    id: str
    name: str
    category_id: str
    category_name: str


class Catalog(BaseModel):
    degrees: List[Degree] = Field(default_factory=list)
    institutions: List[Institution] = Field(default_factory=list)
    skills: List[Skill] = Field(default_factory=list)
    skill_categories: List[SkillCategory] = Field(default_factory=list)


T = TypeVar("T")


class EntityMatch(BaseModel, Generic[T]):
    """Uniform result of every resolver lookup."""
    matched: bool
    entity: Optional[T] = None
    match_confidence: Optional[float] = None
    match_type: Optional[MatchType] = None


# ============================================================================
# Portfolio form data (consumed by the form layer)
# ============================================================================

class LanguageProficiency(BaseModel):
    language: str
    proficiency: str


class Reference(BaseModel):
    name: str
    contact_info: str
    relationship: str


class EducationForm(BaseModel):
    degree: MappedValue
    institution: MappedValue
    passing_year: Union[int, str]
    grade: Optional[str] = None


class CertificationForm(BaseModel):
    name: str
    issuer: str
    date: str = ""
    issuing_organization: str
    year: str = ""
    expiry_date: Optional[str] = None
    credential_id: Optional[str] = None


class CourseForm(BaseModel):
    name: str
    provider: str
    completion_date: str = ""
    duration: Optional[str] = None


class SkillEntry(BaseModel):
    skill_id: MappedValue
    proficiency: Proficiency = "Intermediate"


class TechnicalSkill(BaseModel):
    category: MappedValue
    skills: List[SkillEntry] = Field(default_factory=list)


class WorkExperienceForm(BaseModel):
    position: str
    company: str
    responsibilities: List[str] = Field(default_factory=list)
    start_date: str = ""
    end_date: Optional[str] = None
    is_current_role: bool = False
    technologies: List[str] = Field(default_factory=list)


class ProjectForm(BaseModel):
    name: str
    description: str
    technologies: List[str] = Field(default_factory=list)
    contribution: str = ""
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    is_ongoing: Optional[bool] = None
    role: Optional[str] = None
    url: Optional[str] = None
    repository: Optional[str] = None


class PortfolioFormData(BaseModel):
    employee_code: str = ""
    designation: str = ""
    years_of_experience: int = 0
    nationality: str = "Unknown"
    language_proficiency: List[LanguageProficiency] = Field(default_factory=list)
    email: str = ""
    mobile_no: str = ""
    profile_image: Optional[str] = None
    summary: str = ""
    references: List[Reference] = Field(default_factory=list)
    education: List[EducationForm] = Field(default_factory=list)
    certifications: List[CertificationForm] = Field(default_factory=list)
    courses: List[CourseForm] = Field(default_factory=list)
    technical_skills: List[TechnicalSkill] = Field(default_factory=list)
    work_experience: List[WorkExperienceForm] = Field(default_factory=list)
    projects: List[ProjectForm] = Field(default_factory=list)

    def to_record(self) -> Dict[str, Any]:
        """
        Flatten into the persisted portfolio shape.

        Mapped values become plain strings: the catalog value when resolved,
        the original CV text otherwise.
        """
        record = self.model_dump(mode="json", exclude={"education", "technical_skills"})
        record["education"] = [
            {
                **edu.model_dump(mode="json", exclude={"degree", "institution"}),
                "degree": display_value(edu.degree),
                "institution": display_value(edu.institution),
            }
            for edu in self.education
        ]
        record["technical_skills"] = [
            {
                "category": display_value(ts.category),
                "skills": [
                    {"skill_id": display_value(s.skill_id), "proficiency": s.proficiency}
                    for s in ts.skills
                ],
            }
            for ts in self.technical_skills
        ]
        return record


# ============================================================================
# Normalization, creation, remapping
# ============================================================================

class UnmappedSkill(BaseModel):
    name: str
    category: Optional[str] = Field(default=None, description="Category name the skill was listed under")
    category_id: Optional[str] = Field(default=None, description="Catalog id the category name resolved to, if any")


class UnmappedFields(BaseModel):
    skills: List[UnmappedSkill] = Field(default_factory=list)
    institutions: List[str] = Field(default_factory=list)
    degrees: List[str] = Field(default_factory=list)
    skill_categories: List[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.skills or self.institutions or self.degrees or self.skill_categories)


class NormalizationResult(BaseModel):
    form_data: PortfolioFormData
    unmapped_fields: UnmappedFields = Field(default_factory=UnmappedFields)
    warnings: List[str] = Field(default_factory=list)


class CreationCounts(BaseModel):
    degrees: int = 0
    institutions: int = 0
    skills: int = 0
    categories: int = 0


class EntityCreationResult(BaseModel):
    degree_map: Dict[str, str] = Field(default_factory=dict, description="Original name -> catalog id")
    institution_map: Dict[str, str] = Field(default_factory=dict)
    skill_map: Dict[str, str] = Field(default_factory=dict)
    category_map: Dict[str, str] = Field(default_factory=dict)
    created: CreationCounts = Field(default_factory=CreationCounts)
    failed: List[str] = Field(default_factory=list, description="'<Kind>: <name>' labels")


class RemainingUnmapped(BaseModel):
    skills: List[str] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    degrees: List[str] = Field(default_factory=list)
    institutions: List[str] = Field(default_factory=list)


class RemapResult(BaseModel):
    form_data: PortfolioFormData
    remaining_unmapped: RemainingUnmapped = Field(default_factory=RemainingUnmapped)


class ReconciliationResult(BaseModel):
    form_data: PortfolioFormData
    creation: EntityCreationResult
    remaining_unmapped: RemainingUnmapped


# ============================================================================
# Validation and top-level result
# ============================================================================

class ValidationErrorItem(BaseModel):
    field: str
    message: str
    severity: Literal["critical", "error", "warning"]


class ValidationWarning(BaseModel):
    field: str
    message: str
    suggestion: Optional[str] = None


class CVValidationResult(BaseModel):
    is_valid: bool
    errors: List[ValidationErrorItem] = Field(default_factory=list)
    warnings: List[ValidationWarning] = Field(default_factory=list)
    completeness: int = Field(..., ge=0, le=100)
    quality_score: int = Field(..., ge=0, le=100)


class ErrorInfo(BaseModel):
    message: str
    code: str
    details: Optional[Any] = None


class CVIngestionResult(BaseModel):
    success: bool
    parsed_cv: Optional[ParsedCV] = None
    normalization_result: Optional[NormalizationResult] = None
    validation: Optional[CVValidationResult] = None
    reconciliation: Optional[ReconciliationResult] = None
    error: Optional[ErrorInfo] = None
