from cv_ingestion.core import sections as S
from cv_ingestion.core.sections import detect_sections, match_heading

CV_TEXT = """Jane Doe
jane@example.com

PROFESSIONAL SUMMARY
Backend developer with a focus on APIs.

Education
BSc in Computer Science
XYZ University
2020

## Work Experience ##
Software Engineer
Acme Solutions
- Built payment APIs

Technical Skills:
Languages: Python, JavaScript
"""


def test_heading_matching():
    assert match_heading("EDUCATION") == S.EDUCATION
    assert match_heading("## Work Experience ##") == S.EXPERIENCE
    assert match_heading("Technical Skills:") == S.SKILLS
    assert match_heading("Licenses & Certifications") == S.CERTIFICATIONS


def test_sentences_are_not_headings():
    """A line mentioning a section word is only a heading when it is heading-shaped."""
    assert match_heading("5 years of experience building APIs") is None
    assert match_heading("Gained broad experience with many teams and many stacks over time") is None
    assert match_heading("Experience in education.") is None
    assert match_heading("Jane Doe") is None


def test_sections_detected_in_order():
    found = detect_sections(CV_TEXT)
    assert [s.heading for s in found] == [S.SUMMARY, S.EDUCATION, S.EXPERIENCE, S.SKILLS]
    assert all(s.confidence == 0.8 for s in found)


def test_heading_line_not_in_content_and_preamble_dropped():
    found = detect_sections(CV_TEXT)
    education = found[1]
    assert education.content.splitlines() == ["BSc in Computer Science", "XYZ University", "2020"]
    assert not any("jane@example.com" in s.content for s in found)


def test_section_ranges_do_not_overlap():
    found = detect_sections(CV_TEXT)
    for earlier, later in zip(found, found[1:]):
        assert earlier.start_index <= earlier.end_index < later.start_index


def test_empty_section_ends_on_its_heading():
    found = detect_sections("Projects\nEducation\nBSc, XYZ University")
    assert found[0].heading == S.PROJECTS
    assert found[0].content == ""
    assert found[0].start_index == found[0].end_index == 0


def test_no_text():
    assert detect_sections("") == []


def test_bullets_and_labelled_lines_are_not_headings():
    assert match_heading("- Led training sessions for new hires") is None
    assert match_heading("• Courses on distributed systems") is None
    assert match_heading("Soft Skills: Communication, Teamwork") is None
    assert match_heading("Skills, tools") is None
    assert match_heading("-- Skills --") == S.SKILLS


def test_bullet_mentioning_a_section_word_stays_in_its_section():
    text = (
        "Experience\n"
        "Software Engineer\n"
        "Acme Ltd\n"
        "- Led training sessions for new hires\n"
        "- Built payment APIs\n"
        "Backend Developer\n"
        "Beta Systems Ltd\n"
    )
    found = detect_sections(text)
    assert [s.heading for s in found] == [S.EXPERIENCE]
    assert "Beta Systems Ltd" in found[0].content
