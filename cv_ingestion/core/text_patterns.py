"""
Stateless regex extractors for contact details, links and dates.

These are used by the deterministic parser but are independent of it: each takes
raw text and returns what it finds, in scan order, without duplicates.
"""

import re
from typing import Iterable, List, Optional, Pattern, Tuple


MONTHS = r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec)[a-z]*\.?"

EMAIL_RE = re.compile(r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b", re.IGNORECASE)

# Ordered from most to least specific; a later pattern never claims digits an
# earlier one already matched.
PHONE_PATTERNS: Tuple[Pattern[str], ...] = (
    # International: +44 20 7946 0958, +880 1712-345678
    re.compile(r"\+\d{1,3}(?:[-.\s]?\(?\d{1,5}\)?){1,4}(?!\d)"),
    # North American: (555) 123-4567, 555-123-4567, 555.123.4567
    re.compile(r"(?<!\d)(?:\(\d{3}\)\s*|\d{3}[-.\s])\d{3}[-.\s]\d{4}(?!\d)"),
    # Bangladeshi mobile: 01712345678
    re.compile(r"(?<!\d)01[3-9]\d{8}(?!\d)"),
    # Local seven digit: 555-1234
    re.compile(r"(?<![\d\-.])\d{3}[-.\s]\d{4}(?![\d\-])"),
)
MIN_PHONE_DIGITS = 7

URL_RE = re.compile(r"\bhttps?://[^\s)>\]]+", re.IGNORECASE)
LINKEDIN_RE = re.compile(r"\b(?:https?://)?(?:www\.)?linkedin\.com/in/[\w-]+", re.IGNORECASE)
GITHUB_RE = re.compile(r"\b(?:https?://)?(?:www\.)?github\.com/[\w-]+", re.IGNORECASE)

DATE_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(rf"\b{MONTHS}\s+\d{{4}}\b", re.IGNORECASE),
    re.compile(r"\b\d{1,2}/\d{1,2}/\d{2,4}\b"),
    re.compile(r"\b\d{1,2}/\d{4}\b"),
    re.compile(r"\b\d{4}-\d{2}-\d{2}\b"),
    re.compile(r"\b(?:19|20)\d{2}\b"),
)

YEAR_RE = re.compile(r"\b(?:19|20)\d{2}\b")


def _dedupe(items: Iterable[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out


def extract_emails(text: str) -> List[str]:
    return _dedupe(m.group(0) for m in EMAIL_RE.finditer(text or ""))


def extract_phone_numbers(text: str) -> List[str]:
    """
    Phone numbers in several regional formats.

    Candidates with fewer than seven digits are discarded so that years and
    short numeric ranges are not reported as phones.
    """
    if not text:
        return []
    claimed: List[Tuple[int, int]] = []
    found: List[str] = []
    for pattern in PHONE_PATTERNS:
        for m in pattern.finditer(text):
            start, end = m.span()
            if any(start < c_end and c_start < end for c_start, c_end in claimed):
                continue
            value = m.group(0).strip()
            if len(re.sub(r"\D", "", value)) < MIN_PHONE_DIGITS:
                continue
            claimed.append((start, end))
            found.append(value)
    return _dedupe(found)


def extract_urls(text: str) -> List[str]:
    return _dedupe(m.group(0).rstrip(".,;") for m in URL_RE.finditer(text or ""))


def extract_linkedin_profile(text: str) -> Optional[str]:
    m = LINKEDIN_RE.search(text or "")
    return m.group(0) if m else None


def extract_github_profile(text: str) -> Optional[str]:
    m = GITHUB_RE.search(text or "")
    return m.group(0) if m else None


def extract_dates(text: str) -> List[str]:
    """Date-like substrings: 'Jan 2020', '01/02/2020', '03/2021', '2020-01-31', '2020'."""
    if not text:
        return []
    found: List[str] = []
    for pattern in DATE_PATTERNS:
        found.extend(m.group(0) for m in pattern.finditer(text))
    return _dedupe(found)


def extract_years(text: str) -> List[int]:
    return [int(y) for y in YEAR_RE.findall(text or "")]
