"""
Text extraction for uploaded CV files.

Dispatches by file extension to a PDF, DOCX or plain-text reader and runs section
detection over the result. PDFs can be read two ways, chosen per extractor
instance:

  text_layer  pdfplumber word boxes grouped into lines by vertical position,
              with x_tolerance auto-tuned per page
  structure   pdfminer layout objects, text containers in reading order

Both backends join pages with a blank line and report the page count.
"""

import logging
import os
import re
from io import BytesIO
from typing import Any, List, Literal, Tuple

import pdfplumber
from docx import Document
from pdfminer.high_level import extract_pages
from pdfminer.layout import LAParams, LTFigure, LTImage, LTTextContainer

from cv_ingestion.core.errors import ExtractionFailure, UnsupportedFileType
from cv_ingestion.core.schemas import ExtractedText, FileType, TextMetadata
from cv_ingestion.core.sections import detect_sections

logger = logging.getLogger(__name__)

PdfBackend = Literal["text_layer", "structure"]

SUPPORTED_EXTENSIONS = {"pdf", "docx", "doc", "txt"}
PAGE_SEPARATOR = "\n\n"


def get_file_type(filename: str) -> FileType:
    """File type from the extension, raising UnsupportedFileType for anything else."""
    ext = os.path.splitext(filename or "")[1].lstrip(".").lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFileType(
            f"Unsupported file type: {ext or '(none)'}",
            details={"filename": filename, "supported": sorted(SUPPORTED_EXTENSIONS)},
        )
    return ext  # type: ignore[return-value]


def count_words(text: str) -> int:
    return len(text.split())


# ============================================================================
# pdfplumber (text layer)
# ============================================================================

def _words_to_text(page: Any, *, x_tolerance: float = 3, line_y_tolerance: float = 3) -> str:
    """
    Text of a pdfplumber page built from word objects.

    Words are grouped into lines by their rounded 'top' coordinate and joined
    with single spaces, which avoids the glued and over-spaced words of
    layout-based extraction.
    """
    words = page.extract_words(
        x_tolerance=x_tolerance,
        y_tolerance=2,
        keep_blank_chars=False,
        use_text_flow=True,
    )
    if not words:
        return ""

    words.sort(key=lambda w: (round(w["top"] / line_y_tolerance), w["x0"]))
    lines: List[str] = []
    current_key = None
    current_words: List[str] = []

    for w in words:
        key = round(w["top"] / line_y_tolerance)
        if current_key is None or key == current_key:
            current_words.append(w["text"])
            current_key = key
        else:
            lines.append(" ".join(current_words))
            current_words = [w["text"]]
            current_key = key

    if current_words:
        lines.append(" ".join(current_words))

    return "\n".join(lines)


def _score_text(s: str) -> float:
    """
    Quality score for extracted page text, lower is better.

    Very long alphabetic tokens (18+ chars) indicate glued words, and more than
    ten single-letter tokens indicate fragmentation.
    """
    tokens = re.findall(r"[A-Za-z]+", s)
    if not tokens:
        return 1e9
    long_glued = sum(1 for t in tokens if len(t) >= 18)
    excessive_singles = max(0, sum(1 for t in tokens if len(t) == 1) - 10)
    return long_glued * 10 + excessive_singles * 3


def _extract_best(page: Any, x_tolerance_range: Tuple[float, ...] = (1.5, 2, 2.5, 3)) -> str:
    candidates = []
    for xt in x_tolerance_range:
        txt = _words_to_text(page, x_tolerance=xt)
        candidates.append((_score_text(txt), xt, txt))
    candidates.sort(key=lambda c: (c[0], c[1]))
    return candidates[0][2]


def _read_pdf_text_layer(data: bytes) -> Tuple[List[str], bool]:
    pages: List[str] = []
    has_images = False
    with pdfplumber.open(BytesIO(data)) as pdf:
        for page in pdf.pages:
            pages.append(_extract_best(page))
            has_images = has_images or bool(page.images)
    return pages, has_images


# ============================================================================
# pdfminer (document structure)
# ============================================================================

def _contains_image(element: Any) -> bool:
    if isinstance(element, LTImage):
        return True
    if isinstance(element, LTFigure):
        return any(_contains_image(child) for child in element)
    return False


def _read_pdf_structure(data: bytes) -> Tuple[List[str], bool]:
    pages: List[str] = []
    has_images = False
    laparams = LAParams(line_margin=0.5, word_margin=0.1, char_margin=2.0)
    for layout in extract_pages(BytesIO(data), laparams=laparams):
        parts: List[str] = []
        for element in layout:
            if isinstance(element, LTTextContainer):
                parts.append(element.get_text().strip("\n"))
            elif _contains_image(element):
                has_images = True
        pages.append("\n".join(p for p in parts if p.strip()))
    return pages, has_images


# ============================================================================
# Extractor
# ============================================================================

class TextExtractor:
    """Turns an uploaded file into ExtractedText."""

    def __init__(self, pdf_backend: PdfBackend = "text_layer"):
        if pdf_backend not in ("text_layer", "structure"):
            raise ValueError(f"Unknown PDF backend: {pdf_backend}")
        self.pdf_backend = pdf_backend

    def extract(self, filename: str, data: bytes) -> ExtractedText:
        file_type = get_file_type(filename)
        logger.info("Extracting %s (%s, %d bytes)", filename, file_type, len(data))
        try:
            if file_type == "pdf":
                return self._extract_pdf(data)
            if file_type in ("docx", "doc"):
                return self._extract_docx(data)
            return self._extract_txt(data)
        except ExtractionFailure:
            raise
        except Exception as exc:
            logger.exception("Failed to extract text from %s", filename)
            raise ExtractionFailure(
                f"Failed to extract text from {file_type.upper()}: {exc}",
                details={"filename": filename, "file_type": file_type},
            ) from exc

    def _extract_pdf(self, data: bytes) -> ExtractedText:
        if self.pdf_backend == "structure":
            pages, has_images = _read_pdf_structure(data)
        else:
            pages, has_images = _read_pdf_text_layer(data)
        full_text = PAGE_SEPARATOR.join(pages).strip()
        logger.info("PDF extracted via %s: %d pages, %d chars", self.pdf_backend, len(pages), len(full_text))
        return self._build(full_text, page_count=len(pages), has_images=has_images)

    def _extract_docx(self, data: bytes) -> ExtractedText:
        doc = Document(BytesIO(data))
        paragraphs = [(p.text or "").strip() for p in doc.paragraphs]
        full_text = "\n".join(paragraphs).strip()
        return self._build(full_text, has_images=len(doc.inline_shapes) > 0)

    def _extract_txt(self, data: bytes) -> ExtractedText:
        text = data.decode("utf-8", errors="replace")
        return self._build(text.strip())

    def _build(self, full_text: str, page_count: int = None, has_images: bool = False) -> ExtractedText:
        return ExtractedText(
            full_text=full_text,
            sections=detect_sections(full_text),
            metadata=TextMetadata(
                page_count=page_count,
                word_count=count_words(full_text),
                has_images=has_images,
            ),
        )
