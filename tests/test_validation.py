from cv_ingestion.core.normalizer import normalize_parsed_cv
from cv_ingestion.core.schemas import (
    CVMetadata,
    NormalizationResult,
    ParsedCV,
    ParsedEducation,
    ParsedPersonalInfo,
    ParsedProject,
    ParsedSkill,
    ParsedSkillCategory,
    ParsedSkills,
    ParsedWorkExperience,
    PortfolioFormData,
)
from cv_ingestion.core.validation import calculate_completeness, validate_parsed_cv


def complete_cv(total_confidence: float = 0.7) -> ParsedCV:
    return ParsedCV(
        personal_info=ParsedPersonalInfo(full_name="Jane Doe", email="jane@example.com", phone="555-1234"),
        education=[ParsedEducation(degree="BSc", institution="XYZ University", confidence=0.7)],
        skills=ParsedSkills(
            categories=[
                ParsedSkillCategory(category_name="Languages", skills=[ParsedSkill(name="Python", confidence=0.6)], confidence=0.7)
            ]
        ),
        work_experience=[ParsedWorkExperience(company="Acme", position="Engineer", confidence=0.7)],
        projects=[ParsedProject(name="Chat App", confidence=0.6)],
        metadata=CVMetadata(total_confidence=total_confidence),
    )


def empty_normalization() -> NormalizationResult:
    return NormalizationResult(form_data=PortfolioFormData())


def test_complete_cv_scores():
    result = validate_parsed_cv(complete_cv(), empty_normalization())
    assert result.is_valid is True
    assert result.errors == []
    assert result.warnings == []
    # contact, education, skills, experience and projects out of seven
    assert result.completeness == 71
    # 100 + 10 bonus, clamped
    assert result.quality_score == 100


def test_missing_email_is_critical():
    cv = complete_cv()
    cv = cv.model_copy(update={"personal_info": cv.personal_info.model_copy(update={"email": ""})})
    result = validate_parsed_cv(cv, empty_normalization())

    assert result.is_valid is False
    assert [(e.field, e.severity) for e in result.errors] == [("personal_info.email", "critical")]
    # no bonus without email: 100 - 20
    assert result.quality_score == 80


def test_unknown_name_is_an_error_but_still_valid():
    cv = complete_cv()
    cv = cv.model_copy(update={"personal_info": cv.personal_info.model_copy(update={"full_name": "Unknown"})})
    result = validate_parsed_cv(cv, empty_normalization())
    assert result.is_valid is True
    assert result.errors[0].severity == "error"
    assert result.quality_score == 100


def test_empty_cv():
    result = validate_parsed_cv(ParsedCV(), empty_normalization())
    fields = [w.field for w in result.warnings]
    assert fields == ["personal_info.phone", "education", "skills", "work_experience"]
    assert result.completeness == 0
    # 100 - 20 (email) - 10 (name) - 4 * 2 (warnings) - 20 (confidence 0.0)
    assert result.quality_score == 42


def test_low_confidence_penalty():
    assert validate_parsed_cv(complete_cv(0.6), empty_normalization()).quality_score == 100
    assert validate_parsed_cv(complete_cv(0.4), empty_normalization()).quality_score == 90


def test_fully_mapped_cv_has_no_warnings(resolver):
    cv = complete_cv()
    result = validate_parsed_cv(cv, normalize_parsed_cv(cv, resolver))
    assert result.warnings == []


def test_unmapped_entities_produce_warnings(resolver):
    cv = complete_cv()
    cv = cv.model_copy(
        update={"education": [ParsedEducation(degree="Diploma in Music", institution="Riverside Conservatory", confidence=0.7)]}
    )
    result = validate_parsed_cv(cv, normalize_parsed_cv(cv, resolver))

    messages = [w.message for w in result.warnings]
    assert "1 degrees could not be mapped" in messages
    assert "1 institutions could not be mapped" in messages
    assert sum(1 for w in result.warnings if w.field == "normalization") == 2


def test_completeness_counts_contact_only_with_both_email_and_phone():
    cv = ParsedCV(personal_info=ParsedPersonalInfo(email="jane@example.com"))
    assert calculate_completeness(cv) == 0
    cv = ParsedCV(personal_info=ParsedPersonalInfo(email="jane@example.com", phone="555-1234"))
    assert calculate_completeness(cv) == 14
