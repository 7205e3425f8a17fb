"""
Section detection over extracted CV text.

A single pass over the lines. A heading-shaped line that matches one of the
canonical heading patterns closes the open section and opens a new one; every
other non-empty line is appended to the open section. Lines before the first
heading are not kept.
"""

import logging
import re
from typing import List, Optional, Pattern, Tuple

from cv_ingestion.core import confidence
from cv_ingestion.core.schemas import ExtractedSection

logger = logging.getLogger(__name__)


PERSONAL_INFORMATION = "Personal Information"
SUMMARY = "Summary"
EDUCATION = "Education"
EXPERIENCE = "Experience"
SKILLS = "Skills"
PROJECTS = "Projects"
CERTIFICATIONS = "Certifications"
COURSES = "Courses"
REFERENCES = "References"

SECTION_PATTERNS: List[Tuple[str, List[Pattern[str]]]] = [
    (PERSONAL_INFORMATION, [re.compile(p, re.IGNORECASE) for p in (r"personal\s+info", r"contact\s+info", r"about\s+me")]),
    (SUMMARY, [re.compile(p, re.IGNORECASE) for p in (r"summary", r"objective", r"profile")]),
    (EDUCATION, [re.compile(p, re.IGNORECASE) for p in (r"education", r"academic", r"qualifications")]),
    (EXPERIENCE, [re.compile(p, re.IGNORECASE) for p in (r"experience", r"employment", r"work\s+history")]),
    (SKILLS, [re.compile(p, re.IGNORECASE) for p in (r"skills", r"competencies", r"expertise")]),
    (PROJECTS, [re.compile(p, re.IGNORECASE) for p in (r"projects", r"portfolio")]),
    (CERTIFICATIONS, [re.compile(p, re.IGNORECASE) for p in (r"certifications?", r"licenses?")]),
    (COURSES, [re.compile(p, re.IGNORECASE) for p in (r"courses?", r"training")]),
    (REFERENCES, [re.compile(p, re.IGNORECASE) for p in (r"references",)]),
]

MAX_HEADING_CHARS = 50
MAX_HEADING_WORDS = 6
HEADING_DECORATION_RE = re.compile(r"^[\s#*=_\-•:]+|[\s#*=_\-•:]+$")
# A list item, not a decorated heading: '- Led training', '• Courses taken'
BULLET_ITEM_RE = re.compile(r"^(?:[•●▪◦►]|[-*+>]\s)\s*\w")


def _looks_like_heading(line: str) -> bool:
    """Short lines only: a heading is a label, not a sentence or a bullet."""
    if not line or len(line) > MAX_HEADING_CHARS:
        return False
    if len(line.split()) > MAX_HEADING_WORDS:
        return False
    if line.endswith(".") or "@" in line or "," in line or any(ch.isdigit() for ch in line):
        return False
    return True


def _is_labelled_value(line: str) -> bool:
    """'Soft Skills: Communication' carries content after the colon."""
    _, sep, rest = line.partition(":")
    return bool(sep) and bool(HEADING_DECORATION_RE.sub("", rest))


def match_heading(line: str) -> Optional[str]:
    """Canonical heading for a line, or None if the line is not a section heading."""
    stripped = line.strip()
    if BULLET_ITEM_RE.match(stripped) or _is_labelled_value(stripped):
        return None
    text = HEADING_DECORATION_RE.sub("", stripped)
    if not _looks_like_heading(text):
        return None
    for heading, patterns in SECTION_PATTERNS:
        if any(p.search(text) for p in patterns):
            return heading
    return None


def detect_sections(text: str) -> List[ExtractedSection]:
    sections: List[ExtractedSection] = []
    current: Optional[dict] = None

    def _close() -> None:
        if current is not None:
            sections.append(
                ExtractedSection(
                    heading=current["heading"],
                    content="".join(current["lines"]),
                    confidence=confidence.SECTION_MATCH,
                    start_index=current["start"],
                    end_index=current["end"],
                )
            )

    for index, line in enumerate((text or "").split("\n")):
        stripped = line.strip()
        if not stripped:
            continue

        heading = match_heading(stripped)
        if heading is not None:
            _close()
            current = {"heading": heading, "lines": [], "start": index, "end": index}
            continue

        if current is not None:
            current["lines"].append(line.rstrip() + "\n")
            current["end"] = index

    _close()
    logger.debug("Detected %d sections: %s", len(sections), [s.heading for s in sections])
    return sections
