import asyncio

from cv_ingestion.config import ParserConfig
from cv_ingestion.core.entity_resolver import EntityResolver
from cv_ingestion.core.ingestion_service import (
    export_parsed_cv,
    import_parsed_cv,
    ingest_cv,
    reconcile_unmapped_entities,
)
from cv_ingestion.core.llm_providers import CompletionProvider

CV_TEXT = (
    "Jane Doe\njane@example.com\n555-1234\n\n"
    "Education\nDiploma in Music\nRiverside Music Academy\n2019\n\n"
    "Skills\nLanguages: Python, Elixirr\n"
)


class BrokenExtractor:
    def extract(self, filename, data):
        raise RuntimeError("disk on fire")


class JunkProvider(CompletionProvider):
    async def complete(self, prompt):
        return "no json here"


def test_successful_ingestion_without_resolver():
    result = asyncio.run(ingest_cv("cv.txt", CV_TEXT.encode()))

    assert result.success is True
    assert result.error is None
    meta = result.parsed_cv.metadata
    assert (meta.file_name, meta.file_type, meta.file_size) == ("cv.txt", "txt", len(CV_TEXT.encode()))
    assert meta.parsing_method == "deterministic"
    assert result.parsed_cv.education[0].degree == "Diploma in Music"
    assert result.normalization_result.unmapped_fields.degrees == ["Diploma in Music"]
    assert result.validation.is_valid is True


def test_unsupported_file_is_structured_failure():
    result = asyncio.run(ingest_cv("cv.xls", b"data"))
    assert result.success is False
    assert result.parsed_cv is None
    assert result.error.code == "UNSUPPORTED_FILE_TYPE"


def test_extraction_failure_code():
    result = asyncio.run(ingest_cv("cv.pdf", b"not really a pdf"))
    assert result.success is False
    assert result.error.code == "EXTRACTION_FAILED"


def test_unexpected_errors_are_wrapped():
    result = asyncio.run(ingest_cv("cv.txt", b"x", extractor=BrokenExtractor()))
    assert result.success is False
    assert result.error.code == "INGESTION_ERROR"
    assert result.error.message == "disk on fire"
    assert result.error.details == {"type": "RuntimeError"}


def test_llm_failure_without_fallback_fails_ingestion():
    config = ParserConfig(use_llm=True, api_key="k", fallback_to_deterministic=False, confidence_threshold=0.9)
    result = asyncio.run(ingest_cv("cv.txt", CV_TEXT.encode(), config=config, provider=JunkProvider()))
    assert result.success is False
    assert result.error.code == "MALFORMED_RESPONSE"


def test_reconcile_creates_and_remaps(store):
    resolver = EntityResolver()
    asyncio.run(resolver.load_entities(store))
    result = asyncio.run(ingest_cv("cv.txt", CV_TEXT.encode(), resolver=resolver))

    reconciliation = asyncio.run(
        reconcile_unmapped_entities(result.normalization_result, result.parsed_cv, store, resolver)
    )

    created = reconciliation.creation.created
    assert (created.degrees, created.institutions, created.skills, created.categories) == (1, 1, 1, 0)
    assert reconciliation.creation.failed == []
    assert reconciliation.remaining_unmapped.model_dump() == {
        "skills": [],
        "categories": [],
        "degrees": [],
        "institutions": [],
    }
    edu = reconciliation.form_data.education[0]
    assert edu.degree.value == "Diploma in Music"
    assert edu.institution.value == "Riverside Music Academy"
    assert reconciliation.form_data.technical_skills[0].skills[1].skill_id.value == reconciliation.creation.skill_map["Elixirr"]


def test_export_and_import():
    parsed = asyncio.run(ingest_cv("cv.txt", CV_TEXT.encode())).parsed_cv
    restored = import_parsed_cv(export_parsed_cv(parsed))
    assert restored == parsed
