from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


LLMProviderName = Literal["openai", "anthropic", "gemini"]


class ParserConfig(BaseModel):
    """Per-run parsing options."""
    use_llm: bool = False
    llm_provider: Optional[LLMProviderName] = None
    api_key: Optional[str] = Field(default=None, repr=False)
    model: Optional[str] = Field(default=None, description="Override the provider's default model")
    timeout_seconds: float = 60.0
    fallback_to_deterministic: bool = True
    enable_ocr: bool = Field(default=False, description="Reserved, OCR is not implemented")
    confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    debug_mode: bool = False


class Settings(BaseSettings):
    app_name: str = "CV Ingestion Service"
    debug: bool = False
    log_level: str = "INFO"

    # Parsing
    use_llm: bool = False
    llm_provider: LLMProviderName = "openai"
    llm_api_key: str = ""
    llm_model: Optional[str] = None
    llm_timeout_seconds: float = 60.0
    fallback_to_deterministic: bool = True
    confidence_threshold: float = 0.7

    # Entity resolution
    match_threshold: float = 0.75

    # Extraction
    pdf_backend: Literal["text_layer", "structure"] = "text_layer"

    # Optional JSON file seeding the in-memory catalog
    catalog_path: Optional[str] = None

    class Config:
        env_file = ".env"
        extra = "ignore"
        case_sensitive = False

    def parser_config(self, **overrides) -> ParserConfig:
        """ParserConfig from settings, with per-request overrides (None values ignored)."""
        values = {
            "use_llm": self.use_llm,
            "llm_provider": self.llm_provider,
            "api_key": self.llm_api_key or None,
            "model": self.llm_model,
            "timeout_seconds": self.llm_timeout_seconds,
            "fallback_to_deterministic": self.fallback_to_deterministic,
            "confidence_threshold": self.confidence_threshold,
            "debug_mode": self.debug,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return ParserConfig(**values)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
