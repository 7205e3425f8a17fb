import logging

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi

from cv_ingestion.api.routes.ingest import router as ingest_router
from cv_ingestion.config import Settings, get_settings
from cv_ingestion.core.document_store import InMemoryDocumentStore


def _build_store(settings: Settings) -> InMemoryDocumentStore:
    if settings.catalog_path:
        return InMemoryDocumentStore.from_json_file(settings.catalog_path)
    return InMemoryDocumentStore()


def create_app(settings: Settings = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title=settings.app_name,
        description="CV ingestion service that turns PDF/DOCX/TXT CVs into catalog-mapped portfolio form data",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.store = _build_store(settings)
    app.include_router(ingest_router)

    @app.get("/", tags=["health"])
    def root():
        return {"service": "cv-ingestion", "status": "running"}

    @app.get("/health", tags=["health"])
    def health():
        return {"status": "ok"}

    def custom_openapi():
        """Generate OpenAPI schema with custom settings."""
        if app.openapi_schema:
            return app.openapi_schema
        openapi_schema = get_openapi(
            title="CV Ingestion API",
            version="0.1.0",
            description="CV parsing, catalog mapping and entity reconciliation",
            routes=app.routes,
        )
        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi
    return app


app = create_app()
