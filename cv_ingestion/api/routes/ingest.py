from typing import Literal, Optional

from fastapi import APIRouter, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse

from cv_ingestion.config import LLMProviderName, get_settings
from cv_ingestion.core.entity_resolver import EntityResolver
from cv_ingestion.core.errors import CVIngestionError
from cv_ingestion.core.extractors import TextExtractor
from cv_ingestion.core.ingestion_service import ingest_cv, reconcile_unmapped_entities
from cv_ingestion.core.schemas import CVIngestionResult, ErrorInfo

router = APIRouter(tags=["parse"])


async def _load_resolver(request: Request) -> EntityResolver:
    resolver = EntityResolver(match_threshold=get_settings().match_threshold)
    await resolver.load_entities(request.app.state.store)
    return resolver


def _failure(result: CVIngestionResult) -> JSONResponse:
    status = 415 if result.error and result.error.code == "UNSUPPORTED_FILE_TYPE" else 422
    return JSONResponse(status_code=status, content=result.model_dump(mode="json"))


@router.post(
    "/parse",
    response_model=CVIngestionResult,
    summary="Parse CV",
    description="Extract, parse and normalize a CV file (PDF, DOCX, DOC or TXT) into portfolio form data, with catalog mapping and a validation report.",
    responses={
        200: {
            "description": "Successfully parsed CV",
            "content": {
                "application/json": {
                    "example": {
                        "success": True,
                        "parsed_cv": {
                            "personal_info": {"full_name": "John Doe", "email": "john@example.com", "phone": "555-1234"},
                            "education": [
                                {
                                    "degree": "Bachelor of Science",
                                    "institution": "XYZ University",
                                    "graduation_year": 2020,
                                    "confidence": 0.7,
                                }
                            ],
                            "metadata": {"parsing_method": "deterministic", "total_confidence": 0.7},
                        },
                        "validation": {"is_valid": True, "completeness": 29, "quality_score": 84},
                    }
                }
            },
        },
        400: {"description": "Empty file uploaded"},
        415: {"description": "Unsupported file format"},
        422: {"description": "Extraction, parsing or reconciliation failed"},
    },
)
async def parse_cv(
    request: Request,
    file: UploadFile = File(..., description="CV file (PDF, DOCX, DOC or TXT format)"),
    use_llm: Optional[bool] = Form(None, description="Override the configured LLM switch"),
    llm_provider: Optional[LLMProviderName] = Form(None),
    reconcile: bool = Form(False, description="Create missing catalog records and remap the form data"),
):
    """
    Parse a CV file and map it onto portfolio form data.

    **Supported formats:**
    - PDF (.pdf) - text layer only, OCR not supported
    - DOCX / DOC (.docx, .doc)
    - TXT (.txt)

    **Returns:**
    - **parsed_cv**: structured CV with per-record confidence
    - **normalization_result**: form data plus the fields that did not match the catalog
    - **validation**: errors, warnings, completeness and quality score
    - **reconciliation**: created records and remapped form data (when `reconcile` is set)
    """
    raw = await file.read()
    if not raw:
        raise HTTPException(status_code=400, detail="Empty file uploaded.")

    settings = get_settings()
    config = settings.parser_config(use_llm=use_llm, llm_provider=llm_provider)
    resolver = await _load_resolver(request)

    result = await ingest_cv(
        file.filename or "",
        raw,
        config=config,
        resolver=resolver,
        extractor=TextExtractor(pdf_backend=settings.pdf_backend),
    )
    if not result.success:
        return _failure(result)

    if reconcile:
        try:
            reconciliation = await reconcile_unmapped_entities(
                result.normalization_result, result.parsed_cv, request.app.state.store, resolver
            )
        except CVIngestionError as exc:
            failed = result.model_copy(
                update={"success": False, "error": ErrorInfo(message=exc.message, code=exc.code, details=exc.details)}
            )
            return _failure(failed)
        result = result.model_copy(update={"reconciliation": reconciliation})

    return result


@router.get(
    "/suggestions",
    summary="Catalog suggestions",
    description="Closest catalog records for a free-text term, ranked by fuzzy similarity.",
)
async def suggestions(
    request: Request,
    entity_type: Literal["degree", "institution", "skill", "category"] = Query(...),
    q: str = Query(..., min_length=1),
    limit: int = Query(5, ge=1, le=50),
):
    resolver = await _load_resolver(request)
    return {
        "entity_type": entity_type,
        "query": q,
        "results": [e.model_dump() for e in resolver.get_suggestions(entity_type, q, limit=limit)],
    }
