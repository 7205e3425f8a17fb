import asyncio
import json

from cv_ingestion.core.entity_creator import create_unmapped_entities
from cv_ingestion.core.entity_remapper import remap_form_data_with_entities
from cv_ingestion.core.entity_resolver import EntityResolver
from cv_ingestion.core.mapped import Resolved, Unresolved
from cv_ingestion.core.normalizer import normalize_parsed_cv
from cv_ingestion.core.schemas import (
    EducationForm,
    ParsedCV,
    ParsedEducation,
    ParsedSkill,
    ParsedSkillCategory,
    ParsedSkills,
)


def parsed_cv() -> ParsedCV:
    return ParsedCV(
        education=[
            ParsedEducation(degree="Bachelor of Science", institution="XYZ University", graduation_year=2020, confidence=0.7),
            ParsedEducation(degree="Diploma in Music", institution="Riverside Conservatory", confidence=0.7),
        ],
        skills=ParsedSkills(
            categories=[
                ParsedSkillCategory(
                    category_name="Languages",
                    skills=[ParsedSkill(name="Python", confidence=0.6), ParsedSkill(name="Elixirr", confidence=0.6)],
                    confidence=0.7,
                ),
                ParsedSkillCategory(
                    category_name="Infrastructure",
                    skills=[ParsedSkill(name="Terraform", confidence=0.6)],
                    confidence=0.7,
                ),
            ],
            raw=["Kubernetes"],
        ),
    )


def loaded_resolver(store) -> EntityResolver:
    resolver = EntityResolver()
    asyncio.run(resolver.load_entities(store))
    return resolver


def mapped_values(form):
    for edu in form.education:
        yield edu.degree
        yield edu.institution
    for group in form.technical_skills:
        yield group.category
        for entry in group.skills:
            yield entry.skill_id


def test_everything_resolves_after_creation_and_reload(store):
    cv = parsed_cv()
    resolver = loaded_resolver(store)
    normalization = normalize_parsed_cv(cv, resolver)

    creation = asyncio.run(create_unmapped_entities(store, normalization.unmapped_fields))
    asyncio.run(resolver.load_entities(store))
    result = remap_form_data_with_entities(normalization.form_data, cv, resolver)

    assert all(isinstance(v, Resolved) for v in mapped_values(result.form_data))
    assert result.remaining_unmapped.model_dump() == {
        "skills": [],
        "categories": [],
        "degrees": [],
        "institutions": [],
    }

    infrastructure = result.form_data.technical_skills[1]
    assert infrastructure.category.value == creation.category_map["Infrastructure"]
    assert infrastructure.skills[0].skill_id.value == creation.skill_map["Terraform"]
    assert result.form_data.education[1].degree.value == "Diploma in Music"


def test_without_reload_values_stay_unresolved_and_are_listed(store):
    cv = parsed_cv()
    resolver = loaded_resolver(store)
    normalization = normalize_parsed_cv(cv, resolver)

    asyncio.run(create_unmapped_entities(store, normalization.unmapped_fields))
    # resolver still holds the catalog from before creation
    result = remap_form_data_with_entities(normalization.form_data, cv, resolver)

    remaining = result.remaining_unmapped
    assert remaining.degrees == ["Diploma in Music"]
    assert remaining.institutions == ["Riverside Conservatory"]
    assert remaining.categories == ["Infrastructure"]
    assert remaining.skills == ["Elixirr", "Terraform", "Kubernetes"]
    assert result.form_data.education[1].degree == Unresolved(text="Diploma in Music")


def test_final_record_carries_plain_names(store):
    cv = parsed_cv()
    resolver = loaded_resolver(store)
    normalization = normalize_parsed_cv(cv, resolver)
    result = remap_form_data_with_entities(normalization.form_data, cv, resolver)

    record = result.form_data.to_record()
    assert record["education"][1]["degree"] == "Diploma in Music"
    assert record["education"][1]["institution"] == "Riverside Conservatory"
    dumped = json.dumps(record)
    assert "unresolved" not in dumped


def test_resolved_values_are_left_alone(resolver):
    cv = parsed_cv()
    normalization = normalize_parsed_cv(cv, resolver)
    before = normalization.form_data.education[0]

    result = remap_form_data_with_entities(normalization.form_data, cv, resolver)

    assert result.form_data.education[0] == before
    assert result.form_data.technical_skills[0].skills[0].skill_id == Resolved(value="sk-py", match_type="exact")


def test_education_beyond_parsed_entries_is_untouched(resolver):
    cv = parsed_cv()
    form = normalize_parsed_cv(cv, resolver).form_data
    extra = EducationForm(degree=Unresolved(text="bsc"), institution=Unresolved(text="XYZ University"), passing_year=2010)
    form = form.model_copy(update={"education": [*form.education, extra]})

    result = remap_form_data_with_entities(form, cv, resolver)

    assert result.form_data.education[2] == extra


def test_input_form_data_not_modified(resolver):
    cv = parsed_cv()
    form = normalize_parsed_cv(cv, resolver).form_data
    before = form.model_dump()
    remap_form_data_with_entities(form, cv, resolver)
    assert form.model_dump() == before
