"""
Review checks on a parsed CV.

Nothing here blocks ingestion. Only a missing email is critical (is_valid is
False); a missing name is an error; everything else is a warning for the person
confirming the form.

completeness  percentage of the seven sections present (contact counts when
              both email and phone are there)
quality_score 100, minus 20 per critical error, 10 per error and 2 per warning,
              minus 20 (confidence < 0.5) or 10 (< 0.7), plus 10 when email,
              education, categorised skills and work experience are all present;
              clamped to 0..100
"""

from typing import List

from cv_ingestion.core.schemas import (
    CVValidationResult,
    NormalizationResult,
    ParsedCV,
    ValidationErrorItem,
    ValidationWarning,
)

SECTION_COUNT = 7


def _has_skills(cv: ParsedCV) -> bool:
    return bool(cv.skills.categories or cv.skills.raw)


def calculate_completeness(cv: ParsedCV) -> int:
    filled = [
        bool(cv.personal_info.email and cv.personal_info.phone),
        bool(cv.education),
        _has_skills(cv),
        bool(cv.work_experience),
        bool(cv.projects),
        bool(cv.certifications),
        bool(cv.courses),
    ]
    return round(sum(filled) / SECTION_COUNT * 100)


def calculate_quality_score(
    cv: ParsedCV,
    errors: List[ValidationErrorItem],
    warnings: List[ValidationWarning],
) -> int:
    score = 100
    score -= 20 * sum(1 for e in errors if e.severity == "critical")
    score -= 10 * sum(1 for e in errors if e.severity == "error")
    score -= 2 * len(warnings)

    total = cv.metadata.total_confidence
    if total < 0.5:
        score -= 20
    elif total < 0.7:
        score -= 10

    if cv.personal_info.email and cv.education and cv.skills.categories and cv.work_experience:
        score += 10

    return max(0, min(100, score))


def validate_parsed_cv(parsed_cv: ParsedCV, normalization: NormalizationResult) -> CVValidationResult:
    errors: List[ValidationErrorItem] = []
    warnings: List[ValidationWarning] = []
    p = parsed_cv.personal_info

    if not p.email:
        errors.append(ValidationErrorItem(field="personal_info.email", message="Email is required", severity="critical"))
    if not p.phone:
        warnings.append(
            ValidationWarning(
                field="personal_info.phone",
                message="Phone number is missing",
                suggestion="Add contact information manually",
            )
        )
    if not p.full_name or p.full_name == "Unknown":
        errors.append(
            ValidationErrorItem(field="personal_info.full_name", message="Name could not be extracted", severity="error")
        )

    if not parsed_cv.education:
        warnings.append(
            ValidationWarning(field="education", message="No education entries found", suggestion="Add education history manually")
        )
    if not _has_skills(parsed_cv):
        warnings.append(
            ValidationWarning(field="skills", message="No skills found", suggestion="Add technical skills manually")
        )
    if not parsed_cv.work_experience:
        warnings.append(
            ValidationWarning(field="work_experience", message="No work experience found", suggestion="Add work history manually")
        )

    for message in normalization.warnings:
        warnings.append(ValidationWarning(field="normalization", message=message))

    unmapped = normalization.unmapped_fields
    for field, label, count in (
        ("skills", "skills", len(unmapped.skills)),
        ("skills", "skill categories", len(unmapped.skill_categories)),
        ("education", "degrees", len(unmapped.degrees)),
        ("education", "institutions", len(unmapped.institutions)),
    ):
        if count:
            warnings.append(
                ValidationWarning(
                    field=field,
                    message=f"{count} {label} could not be mapped",
                    suggestion=f"Review and map {label} manually",
                )
            )

    return CVValidationResult(
        is_valid=not any(e.severity == "critical" for e in errors),
        errors=errors,
        warnings=warnings,
        completeness=calculate_completeness(parsed_cv),
        quality_score=calculate_quality_score(parsed_cv, errors, warnings),
    )
