"""
Top-level CV ingestion pipeline.

    ingest_cv                    extract -> parse -> normalize -> validate
    reconcile_unmapped_entities  create missing catalog records -> reload -> remap

ingest_cv never raises: any failure comes back as a CVIngestionResult with
success=False and a structured error.
"""

import logging
from typing import Optional

from cv_ingestion.config import ParserConfig
from cv_ingestion.core.deterministic_parser import DeterministicParser
from cv_ingestion.core.document_store import DocumentStore
from cv_ingestion.core.entity_creator import create_unmapped_entities
from cv_ingestion.core.entity_remapper import remap_form_data_with_entities
from cv_ingestion.core.entity_resolver import EntityResolver
from cv_ingestion.core.errors import CVIngestionError, IngestionError
from cv_ingestion.core.extractors import TextExtractor, get_file_type
from cv_ingestion.core.llm_parser import parse_with_hybrid_approach
from cv_ingestion.core.llm_providers import CompletionProvider
from cv_ingestion.core.normalizer import normalize_parsed_cv
from cv_ingestion.core.schemas import (
    CVIngestionResult,
    ErrorInfo,
    NormalizationResult,
    ParsedCV,
    ReconciliationResult,
)
from cv_ingestion.core.validation import validate_parsed_cv

logger = logging.getLogger(__name__)


def _error_info(exc: Exception) -> ErrorInfo:
    if not isinstance(exc, CVIngestionError):
        exc = IngestionError(str(exc) or exc.__class__.__name__, details={"type": exc.__class__.__name__})
    return ErrorInfo(message=exc.message, code=exc.code, details=exc.details)


async def ingest_cv(
    filename: str,
    data: bytes,
    config: Optional[ParserConfig] = None,
    resolver: Optional[EntityResolver] = None,
    extractor: Optional[TextExtractor] = None,
    provider: Optional[CompletionProvider] = None,
) -> CVIngestionResult:
    """
    Run one uploaded file through the pipeline.

    With ``config.use_llm`` the hybrid parser is used (deterministic first, LLM
    below the confidence threshold), otherwise the deterministic parser alone.
    Without a resolver every catalog field is left unmapped.
    """
    config = config or ParserConfig()
    extractor = extractor or TextExtractor()

    try:
        extracted = extractor.extract(filename, data)

        if config.use_llm:
            parsed_cv = await parse_with_hybrid_approach(extracted, config, provider=provider)
        else:
            parsed_cv = DeterministicParser(extracted).parse()

        parsed_cv = parsed_cv.model_copy(
            update={
                "metadata": parsed_cv.metadata.model_copy(
                    update={
                        "file_name": filename,
                        "file_type": get_file_type(filename),
                        "file_size": len(data),
                    }
                )
            }
        )

        normalization = normalize_parsed_cv(parsed_cv, resolver)
        validation = validate_parsed_cv(parsed_cv, normalization)
    except Exception as exc:
        logger.exception("CV ingestion failed for %s", filename)
        return CVIngestionResult(success=False, error=_error_info(exc))

    logger.info(
        "Ingested %s via %s: confidence %.2f, completeness %d%%, quality %d",
        filename,
        parsed_cv.metadata.parsing_method,
        parsed_cv.metadata.total_confidence,
        validation.completeness,
        validation.quality_score,
    )
    return CVIngestionResult(
        success=True,
        parsed_cv=parsed_cv,
        normalization_result=normalization,
        validation=validation,
    )


async def reconcile_unmapped_entities(
    normalization: NormalizationResult,
    parsed_cv: ParsedCV,
    store: DocumentStore,
    resolver: EntityResolver,
) -> ReconciliationResult:
    """
    Create the records listed in ``normalization.unmapped_fields``, reload the
    resolver from the store and remap the form data against it.

    Raises MissingOtherCategory when a new skill has no category to go into.
    """
    creation = await create_unmapped_entities(store, normalization.unmapped_fields)
    await resolver.load_entities(store)
    remapped = remap_form_data_with_entities(normalization.form_data, parsed_cv, resolver)
    return ReconciliationResult(
        form_data=remapped.form_data,
        creation=creation,
        remaining_unmapped=remapped.remaining_unmapped,
    )


def export_parsed_cv(parsed_cv: ParsedCV) -> str:
    return parsed_cv.model_dump_json(indent=2)


def import_parsed_cv(payload: str) -> ParsedCV:
    return ParsedCV.model_validate_json(payload)
