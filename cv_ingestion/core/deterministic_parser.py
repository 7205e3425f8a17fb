"""
Deterministic CV parser.

Walks each detected section with a small line classifier and builds structured
records without any model call. Every record carries the fixed confidence for
its kind from the confidence table; the CV total is their mean.

Per-section behaviour:
  Education       degree line opens an entry, institution/year/grade lines fill it.
                  Entries missing a degree or an institution are dropped.
  Certifications  a line with a year opens a certification, 'by'/'from' lines set
                  the issuer.
  Courses         one course per line: name, provider, date.
  Skills          'Category:' or short title-shaped lines open a category, other
                  lines are split into skills. Lines before any category are raw.
  Experience      bullets are responsibilities, job-title lines open entries,
                  company suffixes or '@' name the company, ranges set dates.
  Projects        title-shaped lines open projects, ranges/technologies/URLs fill
                  them, everything else is description.
"""

import logging
import re
import time
from typing import Dict, List, Optional, Tuple

from cv_ingestion.core import confidence
from cv_ingestion.core import sections as S
from cv_ingestion.core.schemas import (
    CVMetadata,
    ExtractedSection,
    ExtractedText,
    ParsedCertification,
    ParsedCourse,
    ParsedCV,
    ParsedEducation,
    ParsedPersonalInfo,
    ParsedProject,
    ParsedSkill,
    ParsedSkillCategory,
    ParsedSkills,
    ParsedWorkExperience,
)
from cv_ingestion.core.text_patterns import (
    MONTHS,
    YEAR_RE,
    extract_dates,
    extract_emails,
    extract_github_profile,
    extract_linkedin_profile,
    extract_phone_numbers,
    extract_urls,
    extract_years,
)

logger = logging.getLogger(__name__)


# ===== Personal info =====

NAME_BOILERPLATE_RE = re.compile(r"\b(?:Resume|CV|Curriculum Vitae|Contact|Email|Phone|Mobile|Address)\b", re.IGNORECASE)
NAME_SCAN_LINES = 5
LOCATION_LABEL_RE = re.compile(r"^\s*(?:Location|Address)\s*:\s*(.+)$", re.IGNORECASE | re.MULTILINE)
CITY_REGION_RE = re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*),\s*([A-Z]{2}|[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)\b")
LOCATION_SCAN_LINES = 8
NATIONALITY_RE = re.compile(r"Nationality\s*:\s*([A-Za-z ]+)", re.IGNORECASE)
NON_WEBSITE_HOSTS = ("linkedin", "github", "twitter")

# ===== Education =====

# Abbreviations are case-sensitive so that 'ma' or 'be' inside prose do not match.
DEGREE_ABBREV_RE = re.compile(r"\b(?:BSc|MSc|MBA|BBA|BA|MA|BS|MS|B\.?Tech|M\.?Tech|B\.?E|M\.?E|B\.?Sc|M\.?Sc)\b")
DEGREE_WORD_RE = re.compile(r"\b(?:Bachelor|Master|Ph\.?D|Doctorate|Doctor of|Associate|Diploma)", re.IGNORECASE)
INSTITUTION_RE = re.compile(r"\b(?:University|College|Institute|School|Academy|Polytechnic)\b", re.IGNORECASE)
GRADE_RE = re.compile(r"\b(?:GPA|CGPA|Grade|Result)\b", re.IGNORECASE)
ENTRY_SPLIT_RE = re.compile(r"\s*[,|–—]\s*|\s+-\s+|\s+at\s+")

# ===== Certifications / courses =====

NAME_DATE_SPLIT_RE = re.compile(r"\s*[–—|]\s*|\s+-\s+|,\s*")
ISSUER_PREFIX_RE = re.compile(r"^\s*(?:issued\s+by|by|from)\b[\s:]*", re.IGNORECASE)
ISSUER_WORD_RE = re.compile(r"\b(?:issued\s+by|by|from)\b", re.IGNORECASE)
MIN_COURSE_CHARS = 5

# ===== Skills =====

SKILL_SPLIT_RE = re.compile(r"[,;|•]")
INLINE_CATEGORY_RE = re.compile(r"^([A-Za-z][^:,]{1,39}):\s*(\S.*)$")
MAX_CATEGORY_CHARS = 40

# ===== Work experience / projects =====

BULLET_RE = re.compile(r"^[•●▪◦\-*>+]+\s*")
JOB_TITLE_KEYWORDS = (
    "Engineer", "Developer", "Manager", "Director", "Analyst",
    "Consultant", "Designer", "Architect", "Lead", "Senior",
    "Junior", "Intern", "Specialist", "Coordinator", "Administrator",
)
JOB_TITLE_RE = re.compile(r"\b(?:" + "|".join(JOB_TITLE_KEYWORDS) + r")\b", re.IGNORECASE)
COMPANY_RE = re.compile(
    r"\b(?:Inc|Ltd|Limited|Corp|Corporation|LLC|PLC|GmbH|Technologies|Solutions|Systems|Consulting|Group)\b\.?",
    re.IGNORECASE,
)
TITLE_COMPANY_SPLIT_RE = re.compile(r"\s+(?:at|@)\s+|\s*[|–—]\s*|\s+-\s+|,\s+")
TECH_LINE_RE = re.compile(r"^(?:Technologies|Technology|Tech Stack|Tools|Stack|Built with)\s*:\s*", re.IGNORECASE)
PAREN_RE = re.compile(r"\(([^)]+)\)")
CURRENT_RE = re.compile(r"\b(?:Present|Current|Ongoing|Now)\b", re.IGNORECASE)
MONTH_RE = re.compile(rf"\b{MONTHS}", re.IGNORECASE)

DATE_TOKEN = rf"(?:{MONTHS}\s+\d{{4}}|\d{{1,2}}/\d{{4}}|\d{{4}}-\d{{2}}(?!\d)|(?:19|20)\d{{2}})"
DATE_RANGE_RE = re.compile(
    rf"({DATE_TOKEN})\s*(?:-|–|—|to|until)\s*(Present|Current|Ongoing|Now|{DATE_TOKEN})",
    re.IGNORECASE,
)

MAX_PROJECT_TITLE_CHARS = 100
MAX_FOLLOWUP_TITLE_CHARS = 60
MIN_DESCRIPTION_CHARS = 10
EXPECT_COMPANY_MAX_CHARS = 60


def _strip_bullet(line: str) -> str:
    return BULLET_RE.sub("", line).strip()


def _is_bullet(line: str) -> bool:
    return bool(BULLET_RE.match(line))


def _lines(section: Optional[ExtractedSection]) -> List[str]:
    if section is None:
        return []
    return [ln.strip() for ln in section.content.split("\n") if ln.strip()]


def _is_date_only(line: str) -> bool:
    rest = MONTH_RE.sub("", line)
    return not re.sub(r"[\W\d_]+", "", rest)


def _first_date(text: str) -> Optional[str]:
    dates = extract_dates(text)
    return dates[0] if dates else None


def is_job_title(line: str) -> bool:
    return bool(JOB_TITLE_RE.search(line))


def is_date_range(line: str) -> bool:
    if DATE_RANGE_RE.search(line):
        return True
    return bool(MONTH_RE.search(line)) and bool(YEAR_RE.search(line) or CURRENT_RE.search(line)) and len(line) <= 40


def parse_date_range(line: str) -> Tuple[str, Optional[str], bool]:
    """(start, end, is_current) for a line holding a date range."""
    is_current = bool(CURRENT_RE.search(line))
    m = DATE_RANGE_RE.search(line)
    if m:
        start, end = m.group(1).strip(), m.group(2).strip()
        if CURRENT_RE.fullmatch(end):
            return start, None, True
        return start, (None if is_current else end), is_current
    dates = extract_dates(line)
    start = dates[0] if dates else ""
    end = None if is_current or len(dates) < 2 else dates[1]
    return start, end, is_current


def extract_technologies(line: str) -> List[str]:
    text = TECH_LINE_RE.sub("", line.strip())
    paren = PAREN_RE.search(text)
    if paren:
        text = paren.group(1)
    return [t.strip() for t in SKILL_SPLIT_RE.split(text) if t.strip()]


def is_category_heading(line: str) -> bool:
    """Short, starts uppercase, and not a list: no comma, period or separator."""
    return (
        len(line) < MAX_CATEGORY_CHARS
        and line[:1].isupper()
        and not any(ch in line for ch in ",.;|•")
    )


def is_project_title(line: str) -> bool:
    return (
        3 < len(line) < MAX_PROJECT_TITLE_CHARS
        and not _is_bullet(line)
        and line[:1].isupper()
    )


class DeterministicParser:
    """Regex and heuristic parser over ExtractedText."""

    def __init__(self, extracted: ExtractedText):
        self.extracted = extracted
        self.warnings: List[str] = []
        self.errors: List[str] = []

    def parse(self) -> ParsedCV:
        started = time.perf_counter()
        try:
            personal_info = self.parse_personal_info()
            education = self.parse_education()
            certifications = self.parse_certifications()
            courses = self.parse_courses()
            skills = self.parse_skills()
            work_experience = self.parse_work_experience()
            projects = self.parse_projects()
        except Exception as exc:
            self.errors.append(f"Parsing failed: {exc}")
            logger.exception("Deterministic parsing failed")
            raise

        total = confidence.mean_confidence(
            r.confidence for r in [*education, *certifications, *courses, *work_experience, *projects]
        )
        return ParsedCV(
            personal_info=personal_info,
            education=education,
            certifications=certifications,
            courses=courses,
            skills=skills,
            work_experience=work_experience,
            projects=projects,
            metadata=CVMetadata(
                parsing_method="deterministic",
                parsing_duration=(time.perf_counter() - started) * 1000,
                total_confidence=total,
                warnings=list(self.warnings),
                errors=list(self.errors),
            ),
        )

    def _section(self, heading: str) -> Optional[ExtractedSection]:
        return self.extracted.section(heading)

    # ===== Personal info =====

    def parse_personal_info(self) -> ParsedPersonalInfo:
        text = self.extracted.full_text
        emails = extract_emails(text)
        phones = extract_phone_numbers(text)
        summary_section = self._section(S.SUMMARY)

        return ParsedPersonalInfo(
            full_name=self._extract_name(text),
            email=emails[0] if emails else "",
            phone=phones[0] if phones else "",
            location=self._extract_location(text),
            nationality=self._extract_nationality(text),
            summary=summary_section.content.strip() if summary_section else "",
            linked_in=extract_linkedin_profile(text),
            github=extract_github_profile(text),
            website=self._extract_website(text),
        )

    def _extract_name(self, text: str) -> str:
        lines = [ln.strip() for ln in text.split("\n") if ln.strip()]
        for line in lines[:NAME_SCAN_LINES]:
            if not 2 <= len(line) <= 50:
                continue
            if NAME_BOILERPLATE_RE.search(line) or "@" in line or any(ch.isdigit() for ch in line):
                continue
            if S.match_heading(line):
                continue
            return line
        return "Unknown"

    def _extract_location(self, text: str) -> Optional[str]:
        labelled = LOCATION_LABEL_RE.search(text)
        if labelled:
            return labelled.group(1).strip()
        head = [ln.strip() for ln in text.split("\n") if ln.strip()][:LOCATION_SCAN_LINES]
        for line in head:
            if "@" in line:
                continue
            m = CITY_REGION_RE.search(line)
            if m:
                return m.group(0)
        return None

    def _extract_nationality(self, text: str) -> Optional[str]:
        m = NATIONALITY_RE.search(text)
        return m.group(1).strip() if m else None

    def _extract_website(self, text: str) -> Optional[str]:
        for url in extract_urls(text):
            if not any(host in url.lower() for host in NON_WEBSITE_HOSTS):
                return url
        return None

    # ===== Education =====

    @staticmethod
    def _has_degree(line: str) -> bool:
        return bool(DEGREE_ABBREV_RE.search(line) or DEGREE_WORD_RE.search(line))

    def parse_education(self) -> List[ParsedEducation]:
        section = self._section(S.EDUCATION)
        if section is None:
            self.warnings.append("No education section found")
            return []

        entries: List[ParsedEducation] = []
        current: Dict[str, object] = {}

        def _emit() -> None:
            if current.get("degree") and current.get("institution"):
                entries.append(
                    ParsedEducation(
                        degree=current["degree"],
                        institution=current["institution"],
                        graduation_year=current.get("graduation_year"),
                        grade=current.get("grade"),
                        confidence=confidence.DETERMINISTIC["education"],
                    )
                )

        for line in _lines(section):
            line = _strip_bullet(line) or line
            years = extract_years(line)

            if self._has_degree(line):
                _emit()
                current = {}
                degree, institution = self._split_degree_line(line)
                current["degree"] = degree
                if institution:
                    current["institution"] = institution
            elif INSTITUTION_RE.search(line):
                current["institution"] = line
            elif GRADE_RE.search(line):
                current["grade"] = line
                continue
            elif not years:
                continue

            if years:
                # end of a range is the graduation year
                current["graduation_year"] = years[-1]

        _emit()
        return entries

    @staticmethod
    def _split_degree_line(line: str) -> Tuple[str, Optional[str]]:
        """Degree and institution from a line such as 'BSc in CSE, Dhaka University, 2020'."""
        if not INSTITUTION_RE.search(line):
            return line, None
        parts = [p for p in ENTRY_SPLIT_RE.split(line) if p and p.strip()]
        degree_parts = [p for p in parts if DeterministicParser._has_degree(p)]
        institution_parts = [p for p in parts if INSTITUTION_RE.search(p) and p not in degree_parts]
        if not degree_parts or not institution_parts:
            return line, None
        return degree_parts[0].strip(), institution_parts[0].strip()

    # ===== Certifications =====

    def parse_certifications(self) -> List[ParsedCertification]:
        section = self._section(S.CERTIFICATIONS)
        if section is None:
            return []

        certifications: List[ParsedCertification] = []
        current: Dict[str, Optional[str]] = {}

        def _emit() -> None:
            if current.get("name"):
                certifications.append(
                    ParsedCertification(
                        name=current["name"],
                        issuer=current.get("issuer") or "Unknown",
                        issue_date=current.get("issue_date"),
                        confidence=confidence.DETERMINISTIC["certification"],
                    )
                )

        for line in _lines(section):
            line = _strip_bullet(line) or line
            if ISSUER_PREFIX_RE.match(line):
                current["issuer"] = YEAR_RE.sub("", ISSUER_PREFIX_RE.sub("", line)).strip(" ,-–—")
                if not current.get("issue_date"):
                    current["issue_date"] = _first_date(line)
            elif YEAR_RE.search(line):
                if current.get("name") and not current.get("issue_date") and _is_date_only(line):
                    current["issue_date"] = _first_date(line)
                    continue
                _emit()
                parts = [p.strip() for p in NAME_DATE_SPLIT_RE.split(line) if p and p.strip()]
                current = {"name": parts[0], "issue_date": _first_date(line)}
            elif ISSUER_WORD_RE.search(line):
                current["issuer"] = ISSUER_WORD_RE.sub("", line).strip(" :,-")
            elif not current.get("name"):
                current["name"] = line

        _emit()
        return certifications

    # ===== Courses =====

    def parse_courses(self) -> List[ParsedCourse]:
        section = self._section(S.COURSES)
        if section is None:
            return []

        courses: List[ParsedCourse] = []
        for line in _lines(section):
            line = _strip_bullet(line) or line
            if len(line) < MIN_COURSE_CHARS:
                continue
            parts = [p.strip() for p in NAME_DATE_SPLIT_RE.split(line) if p and p.strip()]
            provider = parts[1] if len(parts) > 1 and not extract_dates(parts[1]) else "Unknown"
            courses.append(
                ParsedCourse(
                    name=parts[0],
                    provider=provider,
                    completion_date=_first_date(line),
                    confidence=confidence.DETERMINISTIC["course"],
                )
            )
        return courses

    # ===== Skills =====

    @staticmethod
    def _skills_from_line(line: str) -> List[ParsedSkill]:
        names = [_strip_bullet(p) for p in SKILL_SPLIT_RE.split(line)]
        return [
            ParsedSkill(name=n, confidence=confidence.DETERMINISTIC["skill"])
            for n in names
            if n
        ]

    def parse_skills(self) -> ParsedSkills:
        section = self._section(S.SKILLS)
        if section is None:
            self.warnings.append("No skills section found")
            return ParsedSkills()

        # (name, explicit, skills)
        buckets: List[Tuple[str, bool, List[ParsedSkill]]] = []
        raw: List[str] = []

        for line in _lines(section):
            inline = INLINE_CATEGORY_RE.match(_strip_bullet(line))
            if inline:
                buckets.append((inline.group(1).strip(), True, self._skills_from_line(inline.group(2))))
            elif line.endswith(":"):
                buckets.append((line.rstrip(":").strip(), True, []))
            elif not _is_bullet(line) and is_category_heading(line):
                buckets.append((line, False, []))
            else:
                skills = self._skills_from_line(line)
                if buckets:
                    buckets[-1][2].extend(skills)
                else:
                    raw.extend(s.name for s in skills)

        categories: List[ParsedSkillCategory] = []
        for name, explicit, skills in buckets:
            if not skills and not explicit:
                # a one-skill-per-line list, not a heading
                raw.append(name)
                continue
            categories.append(
                ParsedSkillCategory(
                    category_name=name,
                    skills=skills,
                    confidence=confidence.DETERMINISTIC["skill_category"],
                )
            )
        return ParsedSkills(categories=categories, raw=raw)

    # ===== Work experience =====

    @staticmethod
    def _split_title_company(line: str) -> Tuple[str, Optional[str]]:
        if DATE_RANGE_RE.search(line):
            line = DATE_RANGE_RE.sub("", line)
        parts = [p.strip() for p in TITLE_COMPANY_SPLIT_RE.split(line) if p and p.strip()]
        if not parts:
            return line.strip(), None
        position = parts[0]
        company = next((p for p in parts[1:] if not is_date_range(p)), None)
        return position, company

    def parse_work_experience(self) -> List[ParsedWorkExperience]:
        section = self._section(S.EXPERIENCE)
        if section is None:
            self.warnings.append("No work experience section found")
            return []

        experiences: List[ParsedWorkExperience] = []
        current: Dict[str, object] = {}
        responsibilities: List[str] = []
        expect_company = False

        def _complete() -> bool:
            return bool(current.get("company") and current.get("position"))

        def _emit() -> None:
            if _complete():
                experiences.append(
                    ParsedWorkExperience(
                        company=current["company"],
                        position=current["position"],
                        start_date=current.get("start_date") or "",
                        end_date=current.get("end_date"),
                        is_current_role=bool(current.get("is_current_role")),
                        responsibilities=list(responsibilities),
                        technologies=list(current.get("technologies") or []),
                        confidence=confidence.DETERMINISTIC["work_experience"],
                    )
                )

        def _set_dates(text: str) -> None:
            start, end, is_current = parse_date_range(text)
            current["start_date"] = start
            current["end_date"] = end
            current["is_current_role"] = is_current

        for line in _lines(section):
            was_expecting, expect_company = expect_company, False

            if _is_bullet(line):
                responsibilities.append(_strip_bullet(line))
            elif TECH_LINE_RE.match(line):
                current["technologies"] = extract_technologies(line)
            elif is_job_title(line) and (not current.get("position") or _complete()):
                # company-first layouts name the company before the title
                carried = None if current.get("position") else current.get("company")
                _emit()
                position, company = self._split_title_company(line)
                current = {"position": position, "company": company or carried}
                responsibilities = []
                if is_date_range(line):
                    _set_dates(line)
                expect_company = current["company"] is None
            elif COMPANY_RE.search(line) or line.startswith("@"):
                company = DATE_RANGE_RE.sub("", line).lstrip("@").strip(" ,|-–—")
                if _complete():
                    _emit()
                    current = {}
                    responsibilities = []
                current["company"] = company
                if is_date_range(line):
                    _set_dates(line)
            elif is_date_range(line):
                _set_dates(line)
            elif PAREN_RE.search(line):
                current["technologies"] = extract_technologies(line)
            elif was_expecting and len(line) <= EXPECT_COMPANY_MAX_CHARS and not current.get("company"):
                # plain company name on the line after the title
                current["company"] = line

        _emit()
        return experiences

    # ===== Projects =====

    def parse_projects(self) -> List[ParsedProject]:
        section = self._section(S.PROJECTS)
        if section is None:
            return []

        projects: List[ParsedProject] = []
        current: Dict[str, object] = {}
        description: List[str] = []

        def _emit() -> None:
            if current.get("name"):
                projects.append(
                    ParsedProject(
                        name=current["name"],
                        description=" ".join(description),
                        contribution=description[0] if description else "",
                        technologies=list(current.get("technologies") or []),
                        start_date=current.get("start_date"),
                        end_date=current.get("end_date"),
                        is_ongoing=current.get("is_ongoing"),
                        url=current.get("url"),
                        repository=current.get("repository"),
                        confidence=confidence.DETERMINISTIC["project"],
                    )
                )

        def _has_details() -> bool:
            return bool(
                current.get("technologies") or current.get("url") or current.get("repository")
                or current.get("start_date")
            )

        def _opens_project(line: str) -> bool:
            if not is_project_title(line):
                return False
            if not current.get("name"):
                return True
            return _has_details() and len(line) <= MAX_FOLLOWUP_TITLE_CHARS and not line.endswith(".")

        for line in _lines(section):
            if TECH_LINE_RE.match(line):
                current["technologies"] = extract_technologies(line)
            elif re.search(r"https?://", line):
                urls = extract_urls(line)
                if urls:
                    key = "repository" if "github" in urls[0].lower() else "url"
                    current[key] = urls[0]
            elif is_date_range(line) and len(DATE_RANGE_RE.sub("", line).strip(" ,|-–—()")) == 0:
                start, end, ongoing = parse_date_range(line)
                current.update(start_date=start, end_date=end, is_ongoing=ongoing)
            elif _opens_project(line):
                _emit()
                name, techs = self._split_project_title(line)
                current = {"name": name, "technologies": techs}
                description = []
                if is_date_range(line):
                    start, end, ongoing = parse_date_range(line)
                    current.update(start_date=start, end_date=end, is_ongoing=ongoing)
            elif len(_strip_bullet(line)) > MIN_DESCRIPTION_CHARS:
                description.append(_strip_bullet(line))

        _emit()
        return projects

    @staticmethod
    def _split_project_title(line: str) -> Tuple[str, List[str]]:
        """'Chat App (React, Node.js)' or 'Chat App | React, Node.js' -> name and technologies."""
        text = DATE_RANGE_RE.sub("", line).strip(" ,|-–—")
        paren = PAREN_RE.search(text)
        if paren and not YEAR_RE.search(paren.group(1)):
            return PAREN_RE.sub("", text).strip(" ,|-–—"), extract_technologies(paren.group(0))
        if " | " in text:
            name, _, rest = text.partition(" | ")
            return name.strip(), [t.strip() for t in SKILL_SPLIT_RE.split(rest) if t.strip()]
        return text or line, []
