"""
Deterministic parser behaviour per section.

Inputs are plain text run through section detection, the same way an uploaded
TXT file would be.
"""

from cv_ingestion.core.deterministic_parser import (
    DeterministicParser,
    is_category_heading,
    is_job_title,
    parse_date_range,
)
from cv_ingestion.core.schemas import ExtractedText
from cv_ingestion.core.sections import detect_sections


def parse(text: str):
    return DeterministicParser(ExtractedText(full_text=text, sections=detect_sections(text))).parse()


def test_minimal_cv_with_one_education_entry():
    cv = parse("John Doe\njohn@x.com\n555-1234\n\nEducation\nBachelor of Science\nXYZ University\n2020")

    assert cv.personal_info.full_name == "John Doe"
    assert cv.personal_info.email == "john@x.com"
    assert cv.personal_info.phone == "555-1234"

    assert len(cv.education) == 1
    edu = cv.education[0]
    assert edu.degree == "Bachelor of Science"
    assert edu.institution == "XYZ University"
    assert edu.graduation_year == 2020
    assert edu.confidence == 0.7

    assert cv.metadata.parsing_method == "deterministic"
    assert cv.metadata.total_confidence == 0.7
    assert "No skills section found" in cv.metadata.warnings
    assert "No work experience section found" in cv.metadata.warnings


def test_personal_info_links_location_and_summary():
    cv = parse(
        "Jane Doe\nSenior Engineer\nDhaka, Bangladesh\njane@example.com | +880 1712-345678\n"
        "linkedin.com/in/janedoe\nhttps://janedoe.dev\n\nSummary\nBackend developer."
    )
    p = cv.personal_info
    assert p.full_name == "Jane Doe"
    assert p.phone == "+880 1712-345678"
    assert p.location == "Dhaka, Bangladesh"
    assert p.linked_in == "linkedin.com/in/janedoe"
    assert p.website == "https://janedoe.dev"
    assert p.summary == "Backend developer."


def test_education_line_with_degree_institution_and_range():
    cv = parse("Education\nBSc in Computer Science, XYZ University, 2016 - 2020\nCGPA 3.8")
    assert len(cv.education) == 1
    edu = cv.education[0]
    assert edu.degree == "BSc in Computer Science"
    assert edu.institution == "XYZ University"
    assert edu.graduation_year == 2020
    assert edu.grade == "CGPA 3.8"


def test_education_entry_without_institution_is_dropped():
    cv = parse("Education\nBachelor of Arts\n2015")
    assert cv.education == []
    assert cv.metadata.total_confidence == 0.0


def test_inline_categories_and_raw_skills():
    cv = parse("Skills\nLanguages: Python, JavaScript\nFrontend: React, Vue\nDocker\nGit")
    categories = {c.category_name: [s.name for s in c.skills] for c in cv.skills.categories}
    assert categories == {"Languages": ["Python", "JavaScript"], "Frontend": ["React", "Vue"]}
    assert cv.skills.raw == ["Docker", "Git"]
    assert all(c.confidence == 0.7 for c in cv.skills.categories)


def test_labelled_category_named_like_a_section():
    cv = parse("Skills\nLanguages: Python, Go\nSoft Skills: Communication, Teamwork")
    categories = {c.category_name: [s.name for s in c.skills] for c in cv.skills.categories}
    assert categories == {"Languages": ["Python", "Go"], "Soft Skills": ["Communication", "Teamwork"]}


def test_heading_style_skill_category():
    cv = parse("Skills\nDatabases\nPostgreSQL, MongoDB")
    assert len(cv.skills.categories) == 1
    assert cv.skills.categories[0].category_name == "Databases"
    assert [s.name for s in cv.skills.categories[0].skills] == ["PostgreSQL", "MongoDB"]
    assert cv.skills.categories[0].skills[0].confidence == 0.6


def test_multiple_jobs():
    cv = parse(
        "Experience\n"
        "Senior Software Engineer at Acme Technologies\n"
        "Jan 2020 - Present\n"
        "- Built payment APIs\n"
        "- Led a team of four\n"
        "Software Developer\n"
        "Beta Systems Ltd\n"
        "Jun 2017 - Dec 2019\n"
        "- Maintained billing\n"
    )
    assert len(cv.work_experience) == 2
    first, second = cv.work_experience

    assert first.position == "Senior Software Engineer"
    assert first.company == "Acme Technologies"
    assert first.start_date == "Jan 2020"
    assert first.end_date is None
    assert first.is_current_role is True
    assert first.responsibilities == ["Built payment APIs", "Led a team of four"]

    assert second.position == "Software Developer"
    assert second.company == "Beta Systems Ltd"
    assert (second.start_date, second.end_date) == ("Jun 2017", "Dec 2019")
    assert second.responsibilities == ["Maintained billing"]
    assert second.confidence == 0.7


def test_certification_with_issuer_line():
    cv = parse("Certifications\nAWS Certified Solutions Architect - Associate, 2021\nIssued by Amazon Web Services")
    assert len(cv.certifications) == 1
    cert = cv.certifications[0]
    assert cert.name == "AWS Certified Solutions Architect"
    assert cert.issuer == "Amazon Web Services"
    assert cert.issue_date == "2021"
    assert cert.confidence == 0.6


def test_course_line():
    cv = parse("Courses\nMachine Learning - Coursera, 2019")
    assert len(cv.courses) == 1
    course = cv.courses[0]
    assert (course.name, course.provider, course.completion_date) == ("Machine Learning", "Coursera", "2019")
    assert course.confidence == 0.5


def test_projects_with_technologies_and_links():
    cv = parse(
        "Projects\n"
        "Chat App (React, Node.js)\n"
        "Real-time messaging app for small teams.\n"
        "https://github.com/jane/chat\n"
        "Inventory Tracker | Python, Flask\n"
        "Tracks stock levels across warehouses.\n"
    )
    assert [p.name for p in cv.projects] == ["Chat App", "Inventory Tracker"]
    chat, tracker = cv.projects
    assert chat.technologies == ["React", "Node.js"]
    assert chat.repository == "https://github.com/jane/chat"
    assert chat.description == "Real-time messaging app for small teams."
    assert tracker.technologies == ["Python", "Flask"]
    assert tracker.confidence == 0.6


def test_date_range_helpers():
    assert parse_date_range("Jan 2020 - Present") == ("Jan 2020", None, True)
    assert parse_date_range("2016 - 2020") == ("2016", "2020", False)
    assert is_job_title("Lead Data Analyst")
    assert not is_job_title("Acme Corporation")


def test_no_sections_at_all():
    cv = parse("Just a name")
    assert cv.personal_info.full_name == "Just a name"
    assert cv.education == [] and cv.work_experience == []
    assert cv.metadata.total_confidence == 0.0
    assert len(cv.metadata.warnings) == 3


def test_category_heading_shape():
    assert is_category_heading("Cloud Platforms")
    assert not is_category_heading("cloud platforms")
    assert not is_category_heading("AWS, GCP")
    assert not is_category_heading("Deployed services to three regions.")


def test_bullet_with_section_word_does_not_split_the_job_list():
    cv = parse(
        "Experience\n"
        "Software Engineer\n"
        "Acme Ltd\n"
        "Jan 2020 - Present\n"
        "- Led training sessions for new hires\n"
        "- Built payment APIs\n"
        "Backend Developer\n"
        "Beta Systems Ltd\n"
        "Jun 2017 - Dec 2019\n"
    )
    assert [(w.position, w.company) for w in cv.work_experience] == [
        ("Software Engineer", "Acme Ltd"),
        ("Backend Developer", "Beta Systems Ltd"),
    ]
    assert cv.work_experience[0].responsibilities == ["Led training sessions for new hires", "Built payment APIs"]
    assert cv.courses == []
